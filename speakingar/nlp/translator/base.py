from __future__ import annotations
from abc import ABC, abstractmethod
from speakingar.contracts import LanguagePair, TranslationRequest, TranslationResult

class TranslationSession(ABC):
    """A translation resource bound to one language pair, shared by all callers of that pair."""

    @property
    @abstractmethod
    def pair(self) -> LanguagePair: ...

    @abstractmethod
    def translate(self, req: TranslationRequest) -> TranslationResult: ...


class SessionFactory(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def create(self, pair: LanguagePair) -> TranslationSession:
        """Build a ready session for `pair`. Blocking; may be slow and may raise."""
        raise NotImplementedError
