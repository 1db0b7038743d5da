from __future__ import annotations

import threading
from typing import Optional, Protocol

# langdetect loads its profiles into a module global on first use; concurrent
# first calls see a half-built factory and fail with "Need to load profiles".
_PROFILE_LOCK = threading.Lock()


class LanguageDetector(Protocol):
    def detect(self, text: str) -> Optional[str]:
        ...


def _primary_subtag(code: str) -> str:
    # langdetect reports zh-cn / zh-tw; the target table keys on the primary subtag.
    return code.split("-", 1)[0].lower()


class LangdetectDetector:
    """
    Dominant-language detection backed by `langdetect`.
    Returns None when the text carries no usable signal.
    """

    def __init__(self, min_probability: float = 0.0, seed: int = 0) -> None:
        if not 0.0 <= min_probability <= 1.0:
            raise ValueError("min_probability must be within [0, 1]")
        self.min_probability = float(min_probability)
        self.seed = seed
        self._ready = False

    def _ensure_ready(self) -> None:
        if self._ready:
            return
        from langdetect import DetectorFactory
        from langdetect.detector_factory import init_factory

        with _PROFILE_LOCK:
            # Make results reproducible across calls.
            DetectorFactory.seed = self.seed
            init_factory()
        self._ready = True

    def detect(self, text: str) -> Optional[str]:
        text = (text or "").strip()
        if not text:
            return None

        self._ensure_ready()
        from langdetect import detect_langs
        from langdetect.lang_detect_exception import LangDetectException

        try:
            candidates = detect_langs(text)
        except LangDetectException:
            return None
        if not candidates:
            return None
        best = candidates[0]
        if best.prob < self.min_probability:
            return None
        return _primary_subtag(str(best.lang))
