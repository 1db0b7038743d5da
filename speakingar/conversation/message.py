from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Tuple, Union


class ReplyTone(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class SuggestedReply:
    tone: ReplyTone
    text: str
    translation: str
    phonetic_reading: str
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tone": self.tone.value,
            "englishText": self.text,
            "japaneseTranslation": self.translation,
            "katakanaReading": self.phonetic_reading,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SuggestedReply":
        return cls(
            tone=ReplyTone(payload["tone"]),
            text=str(payload["englishText"]),
            translation=str(payload["japaneseTranslation"]),
            phonetic_reading=str(payload["katakanaReading"]),
            explanation=str(payload["explanation"]),
        )


@dataclass(frozen=True)
class UserContent:
    text: str


@dataclass(frozen=True)
class AIContent:
    translation: str
    # Tuple so a generated reply list cannot change after the fact.
    replies: Tuple[SuggestedReply, ...] = ()
    is_streaming: bool = False


MessageContent = Union[UserContent, AIContent]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4()).upper()


@dataclass(frozen=True)
class Message:
    content: MessageContent
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)
    is_provisional: bool = False

    @property
    def is_user(self) -> bool:
        return isinstance(self.content, UserContent)

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, UserContent):
            kind: dict[str, Any] = {"user": {"text": self.content.text}}
        else:
            kind = {
                "ai": {
                    "japaneseTranslation": self.content.translation,
                    "suggestedReplies": [r.to_dict() for r in self.content.replies],
                    "isStreamingReplies": self.content.is_streaming,
                }
            }
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": kind,
            "isProvisional": self.is_provisional,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Message":
        kind = payload["type"]
        if not isinstance(kind, dict) or len(kind) != 1:
            raise ValueError(f"message type must hold exactly one variant: {kind!r}")
        if "user" in kind:
            content: MessageContent = UserContent(text=str(kind["user"]["text"]))
        elif "ai" in kind:
            ai = kind["ai"]
            content = AIContent(
                translation=str(ai["japaneseTranslation"]),
                replies=tuple(SuggestedReply.from_dict(r) for r in ai.get("suggestedReplies") or ()),
                is_streaming=bool(ai.get("isStreamingReplies", False)),
            )
        else:
            raise ValueError(f"Unsupported message type: {next(iter(kind))}")

        timestamp = datetime.fromisoformat(str(payload["timestamp"]).replace("Z", "+00:00"))
        return cls(
            content=content,
            id=str(payload["id"]),
            timestamp=timestamp,
            is_provisional=bool(payload.get("isProvisional", False)),
        )
