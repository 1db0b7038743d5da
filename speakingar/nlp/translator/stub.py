from __future__ import annotations
from .base import SessionFactory, TranslationSession
from speakingar.contracts import LanguagePair, TranslationRequest, TranslationResult

class StubSession(TranslationSession):
    def __init__(self, pair: LanguagePair) -> None:
        self._pair = pair

    @property
    def pair(self) -> LanguagePair:
        return self._pair

    def translate(self, req: TranslationRequest) -> TranslationResult:
        # Deterministic, test-friendly
        out = f"【仮訳 {self._pair.source}>{self._pair.target}】{req.text}"
        return TranslationResult(source_text=req.text, translated_text=out, provider="stub")


class StubSessionFactory(SessionFactory):
    @property
    def name(self) -> str:
        return "stub"

    def create(self, pair: LanguagePair) -> StubSession:
        return StubSession(pair)
