from __future__ import annotations

import asyncio

import pytest

from speakingar.live.source import ReplayTranscriptSource, TaskTranscriptSource, word_prefixes


def test_word_prefixes() -> None:
    assert word_prefixes("how are  you") == ["how", "how are", "how are you"]
    assert word_prefixes("") == []


def test_replay_emits_growing_partials_then_final() -> None:
    events: list[tuple[str, bool]] = []
    source = ReplayTranscriptSource(["How are you", "  ", "Fine"])

    async def scenario():
        source.start(lambda text, is_final: events.append((text, is_final)))
        await source.wait_closed()

    asyncio.run(scenario())
    assert events == [
        ("How", False),
        ("How are", False),
        ("How are you", True),
        ("Fine", True),
    ]
    assert not source.is_running


def test_replay_stop_ends_early() -> None:
    events: list[tuple[str, bool]] = []
    source = ReplayTranscriptSource(["one two three four"], delay_sec=0.05)

    async def scenario():
        source.start(lambda text, is_final: events.append((text, is_final)))
        await asyncio.sleep(0.01)
        source.stop()
        await source.wait_closed()

    asyncio.run(scenario())
    assert events == [("one", False)]


def test_start_twice_is_rejected() -> None:
    source = ReplayTranscriptSource(["hello"], delay_sec=0.05)

    async def scenario():
        source.start(lambda text, is_final: None)
        with pytest.raises(RuntimeError):
            source.start(lambda text, is_final: None)
        source.stop()
        await source.wait_closed()

    asyncio.run(scenario())


def test_crashed_source_surfaces_on_wait_closed() -> None:
    class Crashing(TaskTranscriptSource):
        async def _run(self, listener) -> None:
            listener("partial", False)
            raise OSError("device lost")

    events: list[tuple[str, bool]] = []

    async def scenario():
        source = Crashing()
        source.start(lambda text, is_final: events.append((text, is_final)))
        with pytest.raises(OSError, match="device lost"):
            await source.wait_closed()

    asyncio.run(scenario())
    assert events == [("partial", False)]


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(ValueError):
        ReplayTranscriptSource(["hi"], delay_sec=-1)
