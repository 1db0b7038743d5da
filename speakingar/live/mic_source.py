from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable

from speakingar.app.logging_setup import log_event
from speakingar.live.source import TranscriptListener, TaskTranscriptSource
from speakingar.live.utterance_stream import UtteranceTranscriptStream

logger = logging.getLogger(__name__)


class MicTranscriptSource(TaskTranscriptSource):
    """
    Microphone -> VAD -> faster-whisper, run on a worker thread.

    `stream_factory(chunks_until_stop, on_transcript)` builds the utterance
    stream; transcripts are handed back to the loop with call_soon_threadsafe.
    """

    def __init__(
        self,
        *,
        mic,
        stream_factory: Callable[..., UtteranceTranscriptStream],
    ) -> None:
        super().__init__()
        self.mic = mic
        self.stream_factory = stream_factory
        self._stop_event = threading.Event()
        self._worker: asyncio.Future | None = None

    @property
    def is_running(self) -> bool:
        # A stopped source still owns the device until its thread has exited.
        worker_alive = self._worker is not None and not self._worker.done()
        return super().is_running or worker_alive

    async def _run(self, listener: TranscriptListener) -> None:
        loop = asyncio.get_running_loop()
        self._stop_event = threading.Event()
        stop_event = self._stop_event

        def _post(text: str, is_final: bool) -> None:
            if stop_event.is_set():
                return
            loop.call_soon_threadsafe(listener, text, is_final)

        def _worker() -> None:
            stream = self.stream_factory(self.mic.chunks(stop_event), _post)
            stream.run()

        log_event(logger, logging.INFO, "mic_source_start", sr=self.mic.sample_rate, device=self.mic.device)
        worker = asyncio.ensure_future(asyncio.to_thread(_worker))
        self._worker = worker
        try:
            await asyncio.shield(worker)
        finally:
            # Cancellation cannot interrupt the thread; the event ends its chunk loop.
            stop_event.set()
            log_event(logger, logging.INFO, "mic_source_stop")

    def stop(self) -> None:
        self._stop_event.set()
        super().stop()

    async def wait_closed(self) -> None:
        try:
            await super().wait_closed()
        finally:
            worker = self._worker
            if worker is not None:
                await asyncio.wait({worker})
                self._report_worker_failure(worker)

    def _report_worker_failure(self, worker: asyncio.Future) -> None:
        # After stop() the task is cancelled, so a thread crash would otherwise go unseen.
        if self._task is None or not self._task.cancelled() or worker.cancelled():
            return
        err = worker.exception()
        if err is not None:
            log_event(logger, logging.WARNING, "mic_worker_failed", error_type=type(err).__name__, error=str(err))
