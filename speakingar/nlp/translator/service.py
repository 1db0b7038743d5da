from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Optional

from speakingar.app.logging_setup import log_event
from speakingar.contracts import (
    LanguagePair,
    Translated,
    TranslationOutcome,
    TranslationRequest,
    Unavailable,
    UnsupportedLanguage,
)
from speakingar.nlp.language import LanguageDetector
from .base import TranslationSession
from .session_cache import TranslationSessionCache

logger = logging.getLogger(__name__)

# Bidirectional: whichever side is detected translates to the other.
TARGET_LANGUAGES = {
    "en": "ja",
    "ja": "en",
}

WARM_UP_PAIRS: tuple[LanguagePair, ...] = (
    LanguagePair(source="en", target="ja"),
    LanguagePair(source="ja", target="en"),
)


def target_language_for(source: str) -> Optional[str]:
    return TARGET_LANGUAGES.get(source)


class TranslationService:
    """
    Detect -> resolve target -> shared session -> translate.

    `translate` only ever propagates cancellation. Detection problems become
    `UnsupportedLanguage`; any other failure evicts the implicated session and
    becomes `Unavailable`.
    """

    def __init__(self, *, detector: LanguageDetector, cache: TranslationSessionCache) -> None:
        self.detector = detector
        self.cache = cache

    async def _detect(self, text: str) -> Optional[str]:
        try:
            code = await asyncio.to_thread(self.detector.detect, text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_event(logger, logging.WARNING, "language_detect_failed", error=str(e))
            return None
        return code or None

    async def translate(self, text: str) -> TranslationOutcome:
        trimmed = (text or "").strip()
        if not trimmed:
            return UnsupportedLanguage(code=None)

        source = await self._detect(trimmed)
        if source is None:
            return UnsupportedLanguage(code=None)

        target = target_language_for(source)
        if target is None:
            log_event(logger, logging.INFO, "language_unsupported", code=source, chars=len(trimmed))
            return UnsupportedLanguage(code=source)

        pair = LanguagePair(source=source, target=target)
        t0 = time.perf_counter()
        session: TranslationSession | None = None
        try:
            session = await self.cache.get(pair)
            req = TranslationRequest(text=trimmed, source_lang=pair.source, target_lang=pair.target)
            res = await asyncio.to_thread(session.translate, req)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if session is not None:
                # A rebuilt session may already have replaced the one that failed.
                self.cache.evict(pair, session)
            log_event(
                logger,
                logging.WARNING,
                "translation_unavailable",
                source=pair.source,
                target=pair.target,
                error=str(e),
            )
            return Unavailable()

        translated = (res.translated_text or "").strip()
        log_event(
            logger,
            logging.INFO,
            "translation_done",
            source=pair.source,
            target=pair.target,
            chars=len(trimmed),
            provider=res.provider,
            ms=round((time.perf_counter() - t0) * 1000.0, 2),
        )
        return Translated(text=translated, pair=pair)

    async def warm_up(self, pairs: Iterable[LanguagePair] = WARM_UP_PAIRS) -> None:
        pairs = list(pairs)
        results = await asyncio.gather(*(self.cache.get(p) for p in pairs), return_exceptions=True)
        for pair, res in zip(pairs, results):
            if isinstance(res, BaseException):
                log_event(
                    logger,
                    logging.DEBUG,
                    "warm_up_failed",
                    source=pair.source,
                    target=pair.target,
                    error=str(res),
                )
