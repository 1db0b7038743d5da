from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict

from speakingar.app.logging_setup import log_event
from speakingar.contracts import LanguagePair
from .base import SessionFactory, TranslationSession

logger = logging.getLogger(__name__)


class TranslationSessionCache:
    """
    Process-lifetime cache of translation sessions, one per language pair.

    Single-flight: concurrent requests for an uncached pair share one
    construction. All bookkeeping runs on the owning event loop with no
    suspension point between lookup and registration, so the two maps have
    a single writer.
    """

    def __init__(self, factory: SessionFactory) -> None:
        self.factory = factory
        self._sessions: Dict[LanguagePair, TranslationSession] = {}
        self._pending: Dict[LanguagePair, asyncio.Future] = {}
        self.constructions = 0

    def cached(self, pair: LanguagePair) -> TranslationSession | None:
        return self._sessions.get(pair)

    def is_building(self, pair: LanguagePair) -> bool:
        return pair in self._pending

    async def get(self, pair: LanguagePair) -> TranslationSession:
        session = self._sessions.get(pair)
        if session is not None:
            return session

        pending = self._pending.get(pair)
        if pending is None:
            pending = asyncio.ensure_future(self._build(pair))
            self._pending[pair] = pending
            pending.add_done_callback(_consume_result)

        # A cancelled caller must not cancel the construction other callers share.
        return await asyncio.shield(pending)

    async def _build(self, pair: LanguagePair) -> TranslationSession:
        self.constructions += 1
        t0 = time.perf_counter()
        try:
            session = await asyncio.to_thread(self.factory.create, pair)
        except Exception as e:
            log_event(
                logger,
                logging.WARNING,
                "session_build_failed",
                source=pair.source,
                target=pair.target,
                provider=self.factory.name,
                error=str(e),
            )
            raise
        else:
            self._sessions[pair] = session
            log_event(
                logger,
                logging.INFO,
                "session_built",
                source=pair.source,
                target=pair.target,
                provider=self.factory.name,
                ms=round((time.perf_counter() - t0) * 1000.0, 2),
            )
            return session
        finally:
            self._pending.pop(pair, None)

    def evict(self, pair: LanguagePair, session: TranslationSession | None = None) -> bool:
        """Drop the cached session for `pair`; with `session`, only if that one is still cached."""
        cached = self._sessions.get(pair)
        if cached is None or (session is not None and cached is not session):
            return False
        del self._sessions[pair]
        log_event(logger, logging.INFO, "session_evicted", source=pair.source, target=pair.target)
        return True


def _consume_result(fut: asyncio.Future) -> None:
    # Nobody may be awaiting a failed warm-up build; mark its exception retrieved.
    if not fut.cancelled():
        fut.exception()
