from __future__ import annotations

import argparse
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir


DEFAULTS: dict[str, Any] = {
    "api_key": None,
    "api_key_env": "OPENAI_API_KEY",
    "endpoint": "https://api.openai.com/v1/chat/completions",
    "chat_model": "gpt-4o-mini",
    "translator": "argos",
    "warm_up": True,
    "list_devices": False,
    "device": None,
    "sr": 16000,
    "channels": 1,
    "chunk_sec": 0.5,
    "rms_th": 250.0,
    "silence_chunks": 2,
    "min_utter_sec": 0.6,
    "max_utter_sec": 8.0,
    "partial_every": 2,
    "asr_model": "tiny",
    "language_lock": "auto",
    "replay_delay_sec": 0.15,
    "history_file": "chat_history.json",
    "pronunciation_history_file": "pronunciation_history.json",
    "print_console": True,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("SpeakingAR", "SpeakingAR"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def data_path(name: str) -> Path:
    """Resolve a history file name against the config dir; absolute paths pass through."""
    path = Path(name)
    if path.is_absolute():
        return path
    return app_paths().config_dir / path


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for hand-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: payload[key] for key in CONFIG_KEYS if key in payload}


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or copy.deepcopy(DEFAULTS))
    return paths.config_path


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists()
    merged = copy.deepcopy(DEFAULTS)
    merged.update(_known_only(_load_json_dict(chosen)))
    return merged, chosen


def save_user_config(values: dict[str, Any], config_path: str | None = None) -> Path:
    path = Path(config_path) if config_path else ensure_user_config_exists()
    existing = _known_only(_load_json_dict(path)) if path.exists() else {}
    merged = copy.deepcopy(DEFAULTS)
    merged.update(existing)
    merged.update(_known_only(values))
    _write_json_dict(path, merged)
    return path


def resolve_api_key(values: dict[str, Any] | argparse.Namespace) -> str | None:
    """Explicit key first, then the configured environment variable. Blank means missing."""
    if isinstance(values, argparse.Namespace):
        values = vars(values)
    explicit = str(values.get("api_key") or "").strip()
    if explicit:
        return explicit
    env_name = str(values.get("api_key_env") or DEFAULTS["api_key_env"])
    from_env = os.getenv(env_name, "").strip()
    return from_env or None


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="speakingar")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")

    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--reply", default=None, metavar="TEXT", help="suggest replies for one utterance and exit")
    mode.add_argument("--pronounce", default=None, metavar="TEXT", help="convert Japanese text to an English phrase")
    mode.add_argument("--replay", default=None, metavar="FILE", help="replay utterances (one per line) as a live session")
    mode.add_argument("--list-devices", action="store_true", help="print audio devices and exit")

    p.add_argument("--api-key", default=defaults["api_key"], help="chat completions API key")
    p.add_argument("--api-key-env", default=defaults["api_key_env"], help="environment variable holding the API key")
    p.add_argument("--endpoint", default=defaults["endpoint"], help="chat completions endpoint URL")
    p.add_argument("--chat-model", default=defaults["chat_model"], help="chat completions model name")
    p.add_argument("--translator", default=defaults["translator"], choices=["argos", "stub"], help="live translator")
    p.add_argument(
        "--warm-up",
        action=argparse.BooleanOptionalAction,
        default=defaults["warm_up"],
        help="prebuild en<->ja translation sessions at startup",
    )
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument("--sr", type=int, default=defaults["sr"], help="sample rate (Hz)")
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument("--chunk-sec", type=float, default=defaults["chunk_sec"], help="mic chunk size in seconds")
    p.add_argument("--rms-th", type=float, default=defaults["rms_th"], help="RMS threshold for speech VAD")
    p.add_argument(
        "--silence-chunks",
        type=int,
        default=defaults["silence_chunks"],
        help="finalize after this many non-speech chunks",
    )
    p.add_argument(
        "--min-utter-sec",
        type=float,
        default=defaults["min_utter_sec"],
        help="ignore utterances shorter than this",
    )
    p.add_argument(
        "--max-utter-sec",
        type=float,
        default=defaults["max_utter_sec"],
        help="force finalize while continuously speaking (seconds)",
    )
    p.add_argument(
        "--partial-every",
        type=int,
        default=defaults["partial_every"],
        help="emit a partial transcript every N speech chunks",
    )
    p.add_argument("--asr-model", default=defaults["asr_model"], help="faster-whisper model size")
    p.add_argument(
        "--language-lock",
        default=defaults["language_lock"],
        choices=["auto", "en", "ja"],
        help="ASR language lock: auto detect or force a language",
    )
    p.add_argument(
        "--replay-delay-sec",
        type=float,
        default=defaults["replay_delay_sec"],
        help="delay between replayed partial transcripts",
    )
    p.add_argument("--history-file", default=defaults["history_file"], help="conversation history JSON")
    p.add_argument(
        "--pronunciation-history-file",
        default=defaults["pronunciation_history_file"],
        help="pronunciation history JSON",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print transcript, translation and replies to console",
    )
    p.add_argument("--debug", action="store_true", help="print chunk RMS and speech decisions")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = load_user_config(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
