from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from speakingar.app.logging_setup import log_event
from speakingar.conversation.message import Message

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.remove(tmp_path)
        except OSError:
            pass
        raise


class ConversationLog:
    """
    Append-only list of conversation messages.

    Provisional messages stay in memory for display and are never written.
    With a `path`, every non-provisional `add` rewrites the JSON array.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._messages: List[Message] = []

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, message: Message) -> None:
        self._messages.append(message)
        if not message.is_provisional:
            self.save()

    def persisted(self) -> List[dict]:
        return [m.to_dict() for m in self._messages if not m.is_provisional]

    def load(self) -> Tuple[Message, ...]:
        if self.path is None or not self.path.exists():
            # Nothing stored yet; whatever is in memory is the whole history.
            return self.messages
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, list):
                raise ValueError("history must be a JSON array")
            self._messages = [Message.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            log_event(logger, logging.WARNING, "history_load_failed", path=str(self.path), error=str(e))
            self._messages = []
        return self.messages

    def save(self) -> None:
        if self.path is None:
            return
        write_json_atomic(self.path, self.persisted())
