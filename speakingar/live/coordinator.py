from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Protocol

from speakingar.app.logging_setup import log_event
from speakingar.contracts import (
    Translated,
    TranslationOutcome,
    Unavailable,
    UnsupportedLanguage,
)

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Translation is unavailable right now. Restart the session to try again."


def unsupported_message(code: Optional[str]) -> str:
    if code:
        return f"Language '{code}' is not supported. Speak in English or Japanese to see a translation."
    return "Could not detect the language. Speak in English or Japanese to see a translation."


class Translator(Protocol):
    async def translate(self, text: str) -> TranslationOutcome:
        ...


@dataclass(frozen=True)
class CoordinatorState:
    translated_text: str = ""
    translation_info: Optional[str] = None
    translation_error: Optional[str] = None
    is_translating: bool = False
    is_unavailable: bool = False


class TranscriptionCoordinator:
    """
    Turns a stream of partial transcripts into at most one live translation.

    Exact-text suppression: an update equal to the last text that triggered
    translation is ignored. A new distinct text cancels the in-flight attempt;
    each attempt carries a generation token that must still be current before
    its outcome may touch state. Must be driven from the owning event loop.
    """

    def __init__(
        self,
        translator: Translator,
        *,
        on_change: Callable[[CoordinatorState], None] | None = None,
    ) -> None:
        self.translator = translator
        self.on_change = on_change
        self._state = CoordinatorState()
        self._last_text = ""
        self._generation = 0
        self._task: asyncio.Task | None = None
        self.attempts = 0
        self.committed = 0
        self.discarded = 0

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def last_text(self) -> str:
        return self._last_text

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        if self.on_change is not None:
            self.on_change(self._state)

    def _cancel_pending(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def on_transcript_update(self, text: str) -> None:
        trimmed = (text or "").strip()
        if trimmed == self._last_text:
            return
        self._last_text = trimmed
        self._generation += 1
        self._cancel_pending()

        if not trimmed:
            self._set(
                translated_text="",
                translation_info=None,
                # The unavailable notice stays visible while latched.
                translation_error=UNAVAILABLE_MESSAGE if self._state.is_unavailable else None,
                is_translating=False,
            )
            return

        if self._state.is_unavailable:
            return

        self.attempts += 1
        generation = self._generation
        self._set(is_translating=True)
        self._task = asyncio.get_running_loop().create_task(self._run_attempt(trimmed, generation))

    async def _run_attempt(self, text: str, generation: int) -> None:
        try:
            outcome = await self.translator.translate(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_event(logger, logging.ERROR, "translator_raised", error=repr(e))
            outcome = Unavailable()

        if generation != self._generation or asyncio.current_task() is not self._task:
            self.discarded += 1
            log_event(logger, logging.DEBUG, "stale_outcome_discarded", generation=generation)
            return

        self._task = None
        self.committed += 1
        self._apply(outcome)

    def _apply(self, outcome: TranslationOutcome) -> None:
        if isinstance(outcome, Translated):
            self._set(
                translated_text=outcome.text,
                translation_info=outcome.pair.describe(),
                translation_error=None,
                is_translating=False,
            )
        elif isinstance(outcome, UnsupportedLanguage):
            self._set(
                translated_text="",
                translation_info=None,
                translation_error=unsupported_message(outcome.code),
                is_translating=False,
            )
        else:
            self._set(
                translated_text="",
                translation_info=None,
                translation_error=UNAVAILABLE_MESSAGE,
                is_translating=False,
                is_unavailable=True,
            )
            log_event(logger, logging.WARNING, "translation_latched_unavailable")

    def stop(self) -> None:
        """Cancel pending work; state stays visible until `reset`."""
        self._generation += 1
        self._cancel_pending()
        if self._state.is_translating:
            self._set(is_translating=False)

    def reset(self) -> None:
        self._generation += 1
        self._cancel_pending()
        self._last_text = ""
        self.attempts = 0
        self.committed = 0
        self.discarded = 0
        self._state = CoordinatorState()
        if self.on_change is not None:
            self.on_change(self._state)

    async def wait_idle(self) -> None:
        task = self._task
        while task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
            if task is self._task:
                return
            task = self._task
