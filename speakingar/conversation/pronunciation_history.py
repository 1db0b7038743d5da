from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List

from speakingar.app.logging_setup import log_event
from speakingar.contracts import PronunciationSuggestion
from speakingar.conversation.log import write_json_atomic

logger = logging.getLogger(__name__)

MAX_ENTRIES = 50


@dataclass(frozen=True)
class PronunciationHistoryItem:
    input_text: str
    suggestion: PronunciationSuggestion
    id: str = field(default_factory=lambda: str(uuid.uuid4()).upper())
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "inputText": self.input_text,
            "suggestion": {
                "english": self.suggestion.output_phrase,
                "katakana": self.suggestion.phonetic_reading,
                "tip": self.suggestion.tip,
            },
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PronunciationHistoryItem":
        s = payload["suggestion"]
        return cls(
            input_text=str(payload["inputText"]),
            suggestion=PronunciationSuggestion(
                output_phrase=str(s["english"]),
                phonetic_reading=str(s["katakana"]),
                tip=str(s["tip"]),
            ),
            id=str(payload["id"]),
            created_at=datetime.fromisoformat(str(payload["createdAt"]).replace("Z", "+00:00")),
        )


class PronunciationHistoryStore:
    """Newest-first pronunciation lookups, capped at MAX_ENTRIES, persisted on every change."""

    def __init__(self, path: Path, max_entries: int = MAX_ENTRIES) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.path = Path(path)
        self.max_entries = int(max_entries)
        self.items: List[PronunciationHistoryItem] = []
        self.load()

    def load(self) -> None:
        if not self.path.exists():
            self.items = []
            return
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            decoded = [PronunciationHistoryItem.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            log_event(logger, logging.WARNING, "pronunciation_history_load_failed", error=str(e))
            self.items = []
            return
        self.items = sorted(decoded, key=lambda item: item.created_at, reverse=True)

    def add_entry(self, input_text: str, suggestion: PronunciationSuggestion) -> PronunciationHistoryItem:
        item = PronunciationHistoryItem(input_text=input_text, suggestion=suggestion)
        self.items = [item] + self.items[: self.max_entries - 1]
        self._persist()
        return item

    def delete(self, item_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.id != item_id]
        if len(self.items) == before:
            return False
        self._persist()
        return True

    def _persist(self) -> None:
        write_json_atomic(self.path, [item.to_dict() for item in self.items])
