from __future__ import annotations

import asyncio
import threading
import time

import pytest

from speakingar.contracts import LanguagePair, TranslationRequest
from speakingar.nlp.translator.base import SessionFactory
from speakingar.nlp.translator.session_cache import TranslationSessionCache
from speakingar.nlp.translator.stub import StubSession, StubSessionFactory

EN_JA = LanguagePair(source="en", target="ja")
JA_EN = LanguagePair(source="ja", target="en")


class SlowFactory(SessionFactory):
    def __init__(self, *, delay: float = 0.05, fail_times: int = 0, gate: threading.Event | None = None):
        self.delay = delay
        self.fail_times = fail_times
        self.gate = gate
        self.calls = 0

    @property
    def name(self) -> str:
        return "slow"

    def create(self, pair: LanguagePair) -> StubSession:
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=2.0)
        time.sleep(self.delay)
        if self.calls <= self.fail_times:
            raise RuntimeError(f"model for {pair.source}->{pair.target} unavailable")
        return StubSession(pair)


def test_concurrent_requests_share_one_construction() -> None:
    factory = SlowFactory()
    cache = TranslationSessionCache(factory)

    async def scenario():
        return await asyncio.gather(*(cache.get(EN_JA) for _ in range(8)))

    sessions = asyncio.run(scenario())
    assert factory.calls == 1
    assert cache.constructions == 1
    assert all(s is sessions[0] for s in sessions)
    assert cache.cached(EN_JA) is sessions[0]
    assert not cache.is_building(EN_JA)


def test_pairs_are_built_independently() -> None:
    cache = TranslationSessionCache(StubSessionFactory())

    async def scenario():
        return await cache.get(EN_JA), await cache.get(JA_EN), await cache.get(EN_JA)

    a, b, c = asyncio.run(scenario())
    assert a is c
    assert a is not b
    assert b.pair == JA_EN
    assert cache.constructions == 2


def test_failed_build_clears_handle_and_later_request_retries() -> None:
    factory = SlowFactory(fail_times=1)
    cache = TranslationSessionCache(factory)

    async def scenario():
        results = await asyncio.gather(cache.get(EN_JA), cache.get(EN_JA), return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)
        assert not cache.is_building(EN_JA)
        assert cache.cached(EN_JA) is None
        return await cache.get(EN_JA)

    session = asyncio.run(scenario())
    assert session.pair == EN_JA
    assert factory.calls == 2


def test_cancelled_waiter_does_not_cancel_shared_build() -> None:
    gate = threading.Event()
    factory = SlowFactory(delay=0.0, gate=gate)
    cache = TranslationSessionCache(factory)

    async def scenario():
        first = asyncio.create_task(cache.get(EN_JA))
        await asyncio.sleep(0.01)
        assert cache.is_building(EN_JA)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        gate.set()
        return await cache.get(EN_JA)

    session = asyncio.run(scenario())
    assert session.pair == EN_JA
    assert factory.calls == 1


def test_evict_forces_rebuild() -> None:
    cache = TranslationSessionCache(StubSessionFactory())

    async def scenario():
        first = await cache.get(EN_JA)
        assert cache.evict(EN_JA) is True
        assert cache.evict(EN_JA) is False
        second = await cache.get(EN_JA)
        return first, second

    first, second = asyncio.run(scenario())
    assert first is not second
    assert cache.constructions == 2


def test_stub_session_output_is_deterministic() -> None:
    session = StubSessionFactory().create(EN_JA)
    res = session.translate(TranslationRequest(text="hello", source_lang="en", target_lang="ja"))
    assert res.translated_text == "【仮訳 en>ja】hello"
    assert res.provider == "stub"


def test_evict_with_stale_session_keeps_replacement() -> None:
    cache = TranslationSessionCache(StubSessionFactory())

    async def scenario():
        old = await cache.get(EN_JA)
        cache.evict(EN_JA)
        new = await cache.get(EN_JA)
        assert cache.evict(EN_JA, old) is False
        assert cache.cached(EN_JA) is new
        assert cache.evict(EN_JA, new) is True
        assert cache.cached(EN_JA) is None

    asyncio.run(scenario())
