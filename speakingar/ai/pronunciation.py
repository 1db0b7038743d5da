"""
Japanese input -> short English phrase + katakana reading + usage tip.

Two tiers. The remote tier asks the chat endpoint for a JSON object; any
failure there (transport, status, parse, missing field) falls through to
the local rule table, which always answers. Callers get a
PronunciationSuggestion either way and cannot tell the tiers apart.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from speakingar.app.logging_setup import log_event
from speakingar.contracts import PronunciationSuggestion
from .chat import DEFAULT_ENDPOINT, DEFAULT_MODEL, ChatCompletionClient, ChatMessage, parse_json_object
from .errors import EmptyInput, InvalidResponse

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an English helper for Japanese users. Convert the provided Japanese sentence into a short, natural English phrase and a katakana pronunciation guide for that English.

Return ONLY a JSON object with the following keys:
{
  "english_text": "English phrase",
  "katakana_reading": "Katakana pronunciation of the English phrase",
  "pronunciation_tip": "One concise Japanese tip about how to pronounce or use it"
}

Rules:
- Keep the English phrase conversational and concise.
- Katakana must reflect natural English pronunciation (not romaji). Shorten unstressed vowels and combine connected sounds.
- If the input is unclear, guess a polite, simple phrase that fits daily conversation.
- Output valid JSON only, with no additional commentary.
"""

# Current key first, older key names after it.
PHRASE_KEYS = ("english_text", "english")
READING_KEYS = ("katakana_reading", "katakana")
TIP_KEY = "pronunciation_tip"

DEFAULT_REMOTE_TIP = "口を大きく開けて、リズムよく発音してみましょう。"
DEFAULT_LOCAL_TIP = "シンプルな英語に言い換えて、はっきり発音してみましょう。"
SHORT_INPUT_MAX_CHARS = 8


@dataclass(frozen=True)
class PronunciationRule:
    keywords: Tuple[str, ...]
    phrase: str
    reading: str
    tip: str

    def matches(self, text: str) -> bool:
        return any(k in text for k in self.keywords)


# Order matters: the first matching rule wins.
RULES: Tuple[PronunciationRule, ...] = (
    PronunciationRule(
        keywords=("おはよう", "朝"),
        phrase="Good morning!",
        reading="グッド モーニング！",
        tip="朝の挨拶は明るい声で、笑顔を添えると自然です。",
    ),
    PronunciationRule(
        keywords=("こんにちは", "昼"),
        phrase="Good afternoon!",
        reading="グッド アフタヌーン！",
        tip="初対面でも使いやすいシンプルな挨拶です。",
    ),
    PronunciationRule(
        keywords=("こんばんは", "夜"),
        phrase="Good evening!",
        reading="グッド イーヴニング！",
        tip="夜の場面では落ち着いたトーンで伝えましょう。",
    ),
    PronunciationRule(
        keywords=("ありがとう", "感謝"),
        phrase="Thank you so much!",
        reading="サンキュー ソー マッチ！",
        tip="感謝を強調したいときの定番表現です。",
    ),
    PronunciationRule(
        keywords=("すみません", "ごめん"),
        phrase="I'm sorry.",
        reading="アイム ソーリー",
        tip="軽い謝罪なら I'm sorry.、丁寧に伝えたいときは I apologize. も使えます。",
    ),
    PronunciationRule(
        keywords=("お願いします", "頼む", "お願い"),
        phrase="Could you help me, please?",
        reading="クッジュー ヘルプ ミー、プリーズ？",
        tip="依頼をするときは please を添えると丁寧です。",
    ),
    PronunciationRule(
        keywords=("どこ", "場所", "道"),
        phrase="Where can I find this?",
        reading="ウェア キャナイ ファインド ディス？",
        tip="地図や写真を見せながら聞くと伝わりやすくなります。",
    ),
    PronunciationRule(
        keywords=("いくら", "値段"),
        phrase="How much is this?",
        reading="ハウ マッチ イズ ディス？",
        tip="指差しや商品名を添えるとスムーズです。",
    ),
    PronunciationRule(
        keywords=("できる", "可能"),
        phrase="Is it possible?",
        reading="イズ イット ポッシブル？",
        tip="相談するときのやわらかい聞き方です。",
    ),
)

SHORT_DEFAULT = ("Let's say it simply in English.", "レッツ セイ イット シンプリー イン イングリッシュ")
LONG_DEFAULT = ("Let's put that into simple English.", "レッツ プット ザット イントゥ シンプル イングリッシュ")


class LocalPronunciationFallback:
    def __init__(self, rules: Sequence[PronunciationRule] = RULES) -> None:
        self.rules = tuple(rules)

    def match(self, text: str) -> Optional[PronunciationRule]:
        for rule in self.rules:
            if rule.matches(text):
                return rule
        return None

    def build(self, text: str) -> PronunciationSuggestion:
        trimmed = text.strip()
        rule = self.match(trimmed)
        if rule is not None:
            return PronunciationSuggestion(output_phrase=rule.phrase, phonetic_reading=rule.reading, tip=rule.tip)

        phrase, reading = SHORT_DEFAULT if len(trimmed) <= SHORT_INPUT_MAX_CHARS else LONG_DEFAULT
        return PronunciationSuggestion(output_phrase=phrase, phonetic_reading=reading, tip=DEFAULT_LOCAL_TIP)


def _first_str(payload: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_remote_suggestion(content: str) -> PronunciationSuggestion:
    payload = parse_json_object(content)
    phrase = _first_str(payload, PHRASE_KEYS)
    reading = _first_str(payload, READING_KEYS)
    if phrase is None or reading is None:
        raise InvalidResponse()
    tip = _first_str(payload, (TIP_KEY,)) or DEFAULT_REMOTE_TIP
    return PronunciationSuggestion(output_phrase=phrase, phonetic_reading=reading, tip=tip)


class PronunciationService:
    max_tokens = 200
    temperature = 0.5

    def __init__(
        self,
        *,
        api_key: str | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        http_client: httpx.AsyncClient | None = None,
        fallback: LocalPronunciationFallback | None = None,
    ) -> None:
        key = (api_key or "").strip()
        # No key: local-only for the lifetime of the service.
        self.chat: ChatCompletionClient | None = (
            ChatCompletionClient(api_key=key, endpoint=endpoint, model=model, http_client=http_client)
            if key
            else None
        )
        self.fallback = fallback or LocalPronunciationFallback()

    @property
    def is_remote_enabled(self) -> bool:
        return self.chat is not None

    async def _convert_remote(self, chat: ChatCompletionClient, text: str) -> PronunciationSuggestion:
        content = await chat.complete(
            [ChatMessage("system", SYSTEM_PROMPT), ChatMessage("user", text)],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return parse_remote_suggestion(content)

    async def convert(self, input_text: str) -> PronunciationSuggestion:
        trimmed = (input_text or "").strip()
        if not trimmed:
            raise EmptyInput()

        if self.chat is not None:
            try:
                return await self._convert_remote(self.chat, trimmed)
            except Exception as e:
                log_event(
                    logger,
                    logging.WARNING,
                    "pronunciation_remote_failed",
                    error_type=type(e).__name__,
                    error=str(e),
                )

        suggestion = self.fallback.build(trimmed)
        log_event(logger, logging.INFO, "pronunciation_local", chars=len(trimmed))
        return suggestion

    async def aclose(self) -> None:
        if self.chat is not None:
            await self.chat.aclose()
