from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

import httpx

from speakingar.app.logging_setup import log_event
from speakingar.conversation.message import ReplyTone, SuggestedReply
from .chat import DEFAULT_ENDPOINT, DEFAULT_MODEL, ChatCompletionClient, ChatMessage, parse_json_object
from .errors import EmptyInput, InvalidResponse, MissingCredential

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a helpful English conversation partner for Japanese speakers.

The other person spoke the English utterance given by the user. Respond with a JSON object containing:
1. "japanese_translation": a natural Japanese translation of the utterance
2. "suggested_replies": three reply options, one per tone ("positive", "neutral", "negative"), each an object with
   - "tone": the tone of the reply
   - "english_text": a short, natural English reply
   - "japanese_translation": a Japanese translation of that reply
   - "katakana_reading": a katakana pronunciation guide for the English reply
   - "explanation": one short Japanese note on when to use it

Example format:
{
  "japanese_translation": "こんにちは、元気ですか？",
  "suggested_replies": [
    {
      "tone": "positive",
      "english_text": "I'm doing great, thanks! How about you?",
      "japanese_translation": "とても元気だよ、ありがとう！君はどう？",
      "katakana_reading": "アイム ドゥーイング グレイト、サンクス！ ハウ アバウト ユー？",
      "explanation": "明るく返して会話を続けたいときに。"
    }
  ]
}

Rules:
- Keep the English replies casual and natural
- Make the Japanese translations natural and conversational
- Make the katakana readings easy to pronounce for Japanese speakers
- Only respond with valid JSON, nothing else
"""


@dataclass(frozen=True)
class GeneratedReply:
    translation: str
    replies: Tuple[SuggestedReply, ...]


def _required_str(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise InvalidResponse()
    return value.strip()


def _parse_reply(item: Any) -> SuggestedReply:
    if not isinstance(item, dict):
        raise InvalidResponse()
    try:
        tone = ReplyTone(_required_str(item, "tone").lower())
    except ValueError as e:
        raise InvalidResponse() from e
    return SuggestedReply(
        tone=tone,
        text=_required_str(item, "english_text"),
        translation=_required_str(item, "japanese_translation"),
        phonetic_reading=_required_str(item, "katakana_reading"),
        explanation=_required_str(item, "explanation"),
    )


def parse_generated_reply(content: str) -> GeneratedReply:
    payload = parse_json_object(content)
    translation = _required_str(payload, "japanese_translation")
    items = payload.get("suggested_replies")
    if not isinstance(items, list) or not items:
        raise InvalidResponse()
    return GeneratedReply(translation=translation, replies=tuple(_parse_reply(i) for i in items))


class ReplyGenerationService:
    """
    Remote-only: translation of a finalized utterance plus toned reply suggestions.
    Every failure reaches the caller; there is no local fallback.
    """

    max_tokens = 512
    temperature = 0.7

    def __init__(
        self,
        *,
        api_key: str | None,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        key = (api_key or "").strip()
        if not key:
            raise MissingCredential()
        self.chat = ChatCompletionClient(api_key=key, endpoint=endpoint, model=model, http_client=http_client)

    async def generate(self, utterance: str) -> GeneratedReply:
        trimmed = (utterance or "").strip()
        if not trimmed:
            raise EmptyInput()

        content = await self.chat.complete(
            [ChatMessage("system", SYSTEM_PROMPT), ChatMessage("user", trimmed)],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        try:
            result = parse_generated_reply(content)
        except InvalidResponse:
            log_event(logger, logging.WARNING, "reply_invalid_response", chars=len(content))
            raise
        log_event(logger, logging.INFO, "reply_generated", chars=len(trimmed), replies=len(result.replies))
        return result

    async def aclose(self) -> None:
        await self.chat.aclose()
