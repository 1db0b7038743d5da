from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List

# (text, is_final); always invoked on the event loop thread.
TranscriptListener = Callable[[str, bool], None]


class TranscriptEventSource(ABC):
    """Emits ordered partial transcripts. `start` must be called from the running loop."""

    @abstractmethod
    def start(self, listener: TranscriptListener) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...

    @abstractmethod
    async def wait_closed(self) -> None:
        """Return once the source has stopped emitting (exhausted, stopped or failed)."""


class TaskTranscriptSource(TranscriptEventSource):
    def __init__(self) -> None:
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, listener: TranscriptListener) -> None:
        if self.is_running:
            raise RuntimeError(f"{type(self).__name__} already started")
        self._task = asyncio.get_running_loop().create_task(self._run(listener))

    @abstractmethod
    async def _run(self, listener: TranscriptListener) -> None: ...

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        task = self._task
        if task is None:
            return
        # A crashed source re-raises here; only its own cancellation is quiet.
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return
            raise


def word_prefixes(utterance: str) -> List[str]:
    words = utterance.split()
    return [" ".join(words[:n]) for n in range(1, len(words) + 1)]


class ReplayTranscriptSource(TaskTranscriptSource):
    """
    Replays written utterances as if spoken: each utterance grows word by
    word as partial transcripts, then arrives once more as final.
    """

    def __init__(self, utterances: Iterable[str], *, delay_sec: float = 0.0) -> None:
        super().__init__()
        if delay_sec < 0:
            raise ValueError("delay_sec must be >= 0")
        self.utterances = [u.strip() for u in utterances if u and u.strip()]
        self.delay_sec = float(delay_sec)

    async def _run(self, listener: TranscriptListener) -> None:
        for utterance in self.utterances:
            prefixes = word_prefixes(utterance)
            for partial in prefixes[:-1]:
                listener(partial, False)
                await asyncio.sleep(self.delay_sec)
            listener(utterance, True)
            await asyncio.sleep(self.delay_sec)
