from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from speakingar.contracts import PronunciationSuggestion
from speakingar.conversation.pronunciation_history import (
    MAX_ENTRIES,
    PronunciationHistoryItem,
    PronunciationHistoryStore,
)

THANKS = PronunciationSuggestion(output_phrase="Thank you so much!", phonetic_reading="サンキュー ソー マッチ！", tip="t")


def test_add_entry_is_newest_first_and_persisted(tmp_path: Path) -> None:
    path = tmp_path / "pron.json"
    store = PronunciationHistoryStore(path)
    first = store.add_entry("ありがとう", THANKS)
    second = store.add_entry("感謝します", THANKS)

    assert [item.id for item in store.items] == [second.id, first.id]
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw[0]["inputText"] == "感謝します"
    assert raw[0]["suggestion"] == {"english": "Thank you so much!", "katakana": "サンキュー ソー マッチ！", "tip": "t"}
    assert set(raw[0]) == {"id", "inputText", "suggestion", "createdAt"}


def test_history_is_capped(tmp_path: Path) -> None:
    store = PronunciationHistoryStore(tmp_path / "pron.json")
    for i in range(MAX_ENTRIES + 5):
        store.add_entry(f"入力{i}", THANKS)
    assert len(store.items) == MAX_ENTRIES
    assert store.items[0].input_text == f"入力{MAX_ENTRIES + 4}"
    assert store.items[-1].input_text == "入力5"


def test_load_sorts_newest_first(tmp_path: Path) -> None:
    path = tmp_path / "pron.json"
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    older = PronunciationHistoryItem("古い", THANKS, id="A", created_at=now - timedelta(days=1))
    newer = PronunciationHistoryItem("新しい", THANKS, id="B", created_at=now)
    path.write_text(json.dumps([older.to_dict(), newer.to_dict()]), encoding="utf-8")

    store = PronunciationHistoryStore(path)
    assert [item.id for item in store.items] == ["B", "A"]
    assert store.items[0] == newer


def test_delete(tmp_path: Path) -> None:
    path = tmp_path / "pron.json"
    store = PronunciationHistoryStore(path)
    item = store.add_entry("ありがとう", THANKS)
    assert store.delete("missing") is False
    assert store.delete(item.id) is True
    assert store.items == []
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_corrupt_file_loads_empty(tmp_path: Path) -> None:
    path = tmp_path / "pron.json"
    path.write_text('[{"id": 1}]', encoding="utf-8")
    assert PronunciationHistoryStore(path).items == []


def test_max_entries_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        PronunciationHistoryStore(tmp_path / "pron.json", max_entries=0)
