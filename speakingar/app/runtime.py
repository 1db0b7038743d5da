from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

import httpx

from speakingar.ai.errors import GenerationError
from speakingar.ai.reply import GeneratedReply, ReplyGenerationService
from speakingar.app.diagnostics import describe_error
from speakingar.app.logging_setup import log_event
from speakingar.app.state import RuntimeStateTracker
from speakingar.contracts import TranscriptUpdate
from speakingar.conversation.log import ConversationLog
from speakingar.conversation.message import AIContent, Message, UserContent
from speakingar.live.coordinator import TranscriptionCoordinator
from speakingar.live.source import TranscriptEventSource


class LiveSession:
    """
    Owns one listening session: source -> coordinator for live translation,
    and on each finalized utterance, reply generation -> conversation log.

    Lives on one event loop; source notifications arrive there in order and
    are stamped with strictly increasing sequence numbers.
    """

    def __init__(
        self,
        *,
        source: TranscriptEventSource,
        coordinator: TranscriptionCoordinator,
        log: ConversationLog,
        replies: Optional[ReplyGenerationService] = None,
        reply_setup_error: Optional[str] = None,
        on_reply: Callable[[Message], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.source = source
        self.coordinator = coordinator
        self.log = log
        self.replies = replies
        self.reply_setup_error = reply_setup_error
        self.on_reply = on_reply
        self.logger = logger

        self.state = RuntimeStateTracker()
        self.transcript = ""
        self.reply_error: Optional[str] = reply_setup_error
        self.pending_message: Optional[Message] = None

        self._sequence = 0
        self._last_sequence = 0
        self._last_final = ""
        self._reply_task: asyncio.Task | None = None
        self._reply_generation = 0
        self.metrics: dict[str, int] = {}
        self._reset_metrics()

    def _reset_metrics(self) -> None:
        self.metrics = {
            "updates": 0,
            "stale_dropped": 0,
            "finals": 0,
            "replies_ok": 0,
            "replies_failed": 0,
        }

    @property
    def is_generating_reply(self) -> bool:
        return self._reply_task is not None and not self._reply_task.done()

    def _cancel_reply(self) -> None:
        self._reply_generation += 1
        task, self._reply_task = self._reply_task, None
        if task is not None and not task.done():
            task.cancel()
        self.pending_message = None

    async def start(self) -> None:
        if self.state.is_active:
            return
        self.state.set_starting()
        self.coordinator.reset()
        self._cancel_reply()
        self._sequence = 0
        self._last_sequence = 0
        self._last_final = ""
        self.transcript = ""
        self.reply_error = self.reply_setup_error
        self._reset_metrics()
        try:
            self.source.start(self._on_source_event)
        except Exception as e:
            self.state.set_error(describe_error(e))
            log_event(self.logger, logging.ERROR, "session_start_failed", error=describe_error(e))
            raise
        self.state.set_running()
        log_event(
            self.logger,
            logging.INFO,
            "session_started",
            source=type(self.source).__name__,
            replies_enabled=self.replies is not None,
            session=self.state.sessions_started,
        )

    def _on_source_event(self, text: str, is_final: bool) -> None:
        self._sequence += 1
        self.handle_update(TranscriptUpdate(text=text, is_final=is_final, sequence=self._sequence))

    def handle_update(self, update: TranscriptUpdate) -> None:
        if not self.state.is_active:
            return
        if update.sequence <= self._last_sequence:
            self.metrics["stale_dropped"] += 1
            log_event(
                self.logger,
                logging.DEBUG,
                "update_stale_dropped",
                sequence=update.sequence,
                last_sequence=self._last_sequence,
            )
            return
        self._last_sequence = update.sequence
        self.metrics["updates"] += 1
        self.transcript = update.text
        self.coordinator.on_transcript_update(update.text)
        if update.is_final:
            self.metrics["finals"] += 1
            self._request_replies(update.text)

    def _request_replies(self, text: str) -> None:
        trimmed = (text or "").strip()
        if trimmed == self._last_final:
            return
        self._last_final = trimmed
        self._cancel_reply()
        if not trimmed:
            return

        self.log.add(Message(content=UserContent(text=trimmed)))
        if self.replies is None:
            self.reply_error = self.reply_setup_error
            return

        self.reply_error = None
        self.pending_message = Message(
            content=AIContent(translation="", is_streaming=True),
            is_provisional=True,
        )
        generation = self._reply_generation
        self._reply_task = asyncio.get_running_loop().create_task(
            self._generate(self.replies, trimmed, generation)
        )

    async def _generate(self, replies: ReplyGenerationService, text: str, generation: int) -> None:
        try:
            result: GeneratedReply = await replies.generate(text)
        except (GenerationError, httpx.HTTPError) as e:
            if generation != self._reply_generation:
                return
            self._reply_task = None
            self.pending_message = None
            self.reply_error = describe_error(e)
            self.metrics["replies_failed"] += 1
            log_event(
                self.logger,
                logging.WARNING,
                "reply_failed",
                error_type=type(e).__name__,
                error=self.reply_error,
            )
            return

        if generation != self._reply_generation:
            return
        self._reply_task = None
        self.pending_message = None
        message = Message(content=AIContent(translation=result.translation, replies=result.replies))
        self.log.add(message)
        self.metrics["replies_ok"] += 1
        log_event(self.logger, logging.INFO, "reply_committed", replies=len(result.replies))
        if self.on_reply is not None:
            self.on_reply(message)

    async def stop(self) -> None:
        self.source.stop()
        self.coordinator.stop()
        self._cancel_reply()
        with contextlib.suppress(asyncio.CancelledError):
            await self.source.wait_closed()
        self.state.set_stopped()
        log_event(self.logger, logging.INFO, "session_stopped", **self.metrics)

    async def run_until_complete(self) -> None:
        """Wait for the source to finish, then for outstanding translation and reply work."""
        await self.source.wait_closed()
        await self.coordinator.wait_idle()
        task = self._reply_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task


def format_state_line(state: Any) -> str:
    if state.is_translating:
        return "JA: …"
    if state.translation_error:
        return f"!! {state.translation_error}"
    if state.translated_text:
        info = f" ({state.translation_info})" if state.translation_info else ""
        return f"TR{info}: {state.translated_text}"
    return ""


def format_reply_lines(message: Message) -> list[str]:
    content = message.content
    if not isinstance(content, AIContent):
        return []
    lines = [f"意味: {content.translation}"]
    for reply in content.replies:
        lines.append(f"[{reply.tone.value}] {reply.text}")
        lines.append(f"    {reply.phonetic_reading}")
        lines.append(f"    {reply.translation} / {reply.explanation}")
    return lines
