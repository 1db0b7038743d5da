from __future__ import annotations

import math
from array import array
from typing import Protocol


def pcm16_rms(pcm16: bytes) -> float:
    """Return RMS energy for little-endian int16 PCM bytes."""
    if len(pcm16) < 2:
        return 0.0

    samples = array("h")
    # Ignore a dangling odd byte rather than failing the whole chunk.
    samples.frombytes(pcm16[: len(pcm16) - (len(pcm16) % 2)])
    sum_sq = sum(float(v) * float(v) for v in samples)
    return math.sqrt(sum_sq / len(samples))


def pcm16_duration(pcm16: bytes, sample_rate: int, channels: int) -> float:
    bytes_per_second = sample_rate * channels * 2
    if bytes_per_second <= 0:
        return 0.0
    return len(pcm16) / float(bytes_per_second)


class SpeechDetector(Protocol):
    def is_speech(self, pcm16: bytes) -> bool:
        ...


class EnergyVAD:
    def __init__(self, rms_threshold: float = 250.0) -> None:
        if rms_threshold < 0:
            raise ValueError("rms_threshold must be >= 0")
        self.rms_threshold = float(rms_threshold)

    def is_speech(self, pcm16: bytes) -> bool:
        return pcm16_rms(pcm16) >= self.rms_threshold
