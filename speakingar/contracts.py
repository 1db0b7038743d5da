from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union

LANGUAGE_NAMES = {
    "en": "English",
    "ja": "Japanese",
}


@dataclass(frozen=True)
class LanguagePair:
    source: str
    target: str

    def describe(self) -> str:
        src = LANGUAGE_NAMES.get(self.source, self.source)
        dst = LANGUAGE_NAMES.get(self.target, self.target)
        return f"{src} → {dst}"


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_lang: str = "en"
    target_lang: str = "ja"


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    translated_text: str
    provider: str


@dataclass(frozen=True)
class Translated:
    text: str
    pair: LanguagePair


@dataclass(frozen=True)
class UnsupportedLanguage:
    code: Optional[str] = None


@dataclass(frozen=True)
class Unavailable:
    pass


TranslationOutcome = Union[Translated, UnsupportedLanguage, Unavailable]


@dataclass(frozen=True)
class TranscriptUpdate:
    text: str
    is_final: bool
    sequence: int


@dataclass(frozen=True)
class PronunciationSuggestion:
    output_phrase: str
    phonetic_reading: str
    tip: str


@dataclass(frozen=True)
class ASRSegment:
    text: str
    t0: float
    t1: float
    is_final: bool = True


@dataclass(frozen=True)
class AudioChunk:
    """
    Raw PCM16 audio chunk captured from a live source (e.g., microphone).
    pcm16: little-endian signed 16-bit PCM bytes (interleaved if channels > 1).
    """
    pcm16: bytes
    sample_rate: int
    channels: int
    start_time: float  # seconds since stream start
    duration: float    # seconds
