from __future__ import annotations

import argparse
import json
from pathlib import Path

import pytest

from speakingar.app import config as app_config


def test_defaults_contain_expected_keys() -> None:
    cfg = app_config.DEFAULTS
    assert cfg["translator"] in {"stub", "argos"}
    assert cfg["api_key_env"] == "OPENAI_API_KEY"
    assert cfg["chat_model"] == "gpt-4o-mini"
    assert "replay_delay_sec" in cfg


def test_ensure_user_config_exists_creates_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    created = app_config.ensure_user_config_exists({"translator": "stub", "sr": 16000})
    assert created.exists()
    loaded = json.loads(created.read_text(encoding="utf-8"))
    assert loaded["translator"] == "stub"
    assert loaded["sr"] == 16000


def test_load_user_config_ignores_unknown_keys(tmp_path: Path) -> None:
    cfg_path = tmp_path / "user.json"
    cfg_path.write_text(
        json.dumps({"sr": 48000, "translator": "argos", "unexpected": 1}),
        encoding="utf-8",
    )
    loaded, used = app_config.load_user_config(str(cfg_path))
    assert used == cfg_path
    assert loaded["sr"] == 48000
    assert loaded["translator"] == "argos"
    assert loaded["chat_model"] == "gpt-4o-mini"
    assert "unexpected" not in loaded


def test_load_user_config_accepts_bom(tmp_path: Path) -> None:
    cfg_path = tmp_path / "bom.json"
    cfg_path.write_bytes(b"\xef\xbb\xbf" + json.dumps({"sr": 22050}).encode("utf-8"))
    loaded, _ = app_config.load_user_config(str(cfg_path))
    assert loaded["sr"] == 22050


def test_load_user_config_missing_explicit_path_exits(tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match="Config file not found"):
        app_config.load_user_config(str(tmp_path / "nope.json"))


def test_save_user_config_merges_and_filters_keys(tmp_path: Path) -> None:
    cfg_path = tmp_path / "user.json"
    cfg_path.write_text(
        json.dumps({"sr": 16000, "translator": "stub", "debug": False}),
        encoding="utf-8",
    )
    saved = app_config.save_user_config(
        {"translator": "argos", "chat_model": "gpt-4o", "junk": "x"},
        config_path=str(cfg_path),
    )
    assert saved == cfg_path
    loaded = json.loads(cfg_path.read_text(encoding="utf-8"))
    assert loaded["sr"] == 16000
    assert loaded["translator"] == "argos"
    assert loaded["chat_model"] == "gpt-4o"
    assert "junk" not in loaded


def test_data_path_resolves_against_config_dir(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    assert app_config.data_path("chat_history.json") == tmp_path / "chat_history.json"
    absolute = tmp_path / "elsewhere" / "h.json"
    assert app_config.data_path(str(absolute)) == absolute


def test_resolve_api_key_prefers_explicit_then_env(monkeypatch) -> None:
    monkeypatch.setenv("MY_KEY", "  from-env  ")
    assert app_config.resolve_api_key({"api_key": " sk-x ", "api_key_env": "MY_KEY"}) == "sk-x"
    assert app_config.resolve_api_key({"api_key": "", "api_key_env": "MY_KEY"}) == "from-env"
    ns = argparse.Namespace(api_key=None, api_key_env="MY_KEY")
    assert app_config.resolve_api_key(ns) == "from-env"


def test_resolve_api_key_blank_is_missing(monkeypatch) -> None:
    monkeypatch.setenv("MY_KEY", "   ")
    assert app_config.resolve_api_key({"api_key": "  ", "api_key_env": "MY_KEY"}) is None
    monkeypatch.delenv("MY_KEY")
    assert app_config.resolve_api_key({"api_key": None, "api_key_env": "MY_KEY"}) is None
