from __future__ import annotations

import asyncio

import pytest

from speakingar.contracts import Translated
from speakingar.nlp.language import LangdetectDetector, _primary_subtag
from speakingar.nlp.translator.service import TranslationService
from speakingar.nlp.translator.session_cache import TranslationSessionCache
from speakingar.nlp.translator.stub import StubSessionFactory


def test_detects_english_and_japanese() -> None:
    detector = LangdetectDetector()
    assert detector.detect("This is a simple English sentence about the weather today.") == "en"
    assert detector.detect("今日はとても良い天気ですね。散歩に行きましょう。") == "ja"


def test_no_signal_is_none() -> None:
    detector = LangdetectDetector()
    assert detector.detect("") is None
    assert detector.detect("   ") is None
    assert detector.detect("12345 !!!") is None


def test_primary_subtag() -> None:
    assert _primary_subtag("zh-cn") == "zh"
    assert _primary_subtag("EN") == "en"


def test_min_probability_range() -> None:
    with pytest.raises(ValueError):
        LangdetectDetector(min_probability=1.5)


def test_concurrent_first_detections_all_succeed(monkeypatch) -> None:
    from langdetect import detector_factory

    # Start from an unloaded profile set so every call races the first load.
    monkeypatch.setattr(detector_factory, "_factory", None)
    service = TranslationService(
        detector=LangdetectDetector(),
        cache=TranslationSessionCache(StubSessionFactory()),
    )
    text = "Good morning everyone, how are you doing today?"

    async def scenario():
        return await asyncio.gather(*(service.translate(text) for _ in range(6)))

    outcomes = asyncio.run(scenario())
    assert all(isinstance(out, Translated) for out in outcomes)
    assert {out.pair.source for out in outcomes} == {"en"}
