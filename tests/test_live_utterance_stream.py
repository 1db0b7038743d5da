from __future__ import annotations

from array import array

from speakingar.asr.faster_whisper_pcm16 import FasterWhisperPCM16Transcriber
from speakingar.audio.vad import EnergyVAD
from speakingar.contracts import ASRSegment, AudioChunk
from speakingar.live.utterance_stream import UtteranceTranscriptStream

SR = 16000
CHANNELS = 1
CHUNK_SEC = 0.5


def _pcm16_constant(amplitude: int, frames: int, channels: int = 1) -> bytes:
    return array("h", [amplitude] * (frames * channels)).tobytes()


SILENCE = _pcm16_constant(0, int(CHUNK_SEC * SR), CHANNELS)
SPEECH = _pcm16_constant(3000, int(CHUNK_SEC * SR), CHANNELS)


def _chunks(pattern: str) -> list[AudioChunk]:
    """'s' = speech chunk, '.' = silence chunk."""
    return [
        AudioChunk(
            pcm16=SPEECH if c == "s" else SILENCE,
            sample_rate=SR,
            channels=CHANNELS,
            start_time=i * CHUNK_SEC,
            duration=CHUNK_SEC,
        )
        for i, c in enumerate(pattern)
    ]


def _fake_transcriber(monkeypatch, calls: list, text_for=None) -> FasterWhisperPCM16Transcriber:
    transcriber = FasterWhisperPCM16Transcriber(model_size="tiny")

    def fake_transcribe_utterance(pcm16, sample_rate, channels, utter_t0, *, is_final=True):
        calls.append((len(pcm16), sample_rate, channels, utter_t0, is_final))
        text = text_for(utter_t0, is_final) if text_for else ("hello world" if is_final else "hello")
        return [ASRSegment(text=text, t0=utter_t0, t1=utter_t0 + 0.5, is_final=is_final)]

    monkeypatch.setattr(transcriber, "transcribe_utterance", fake_transcribe_utterance)
    return transcriber


def test_partial_then_final_once(monkeypatch):
    calls: list = []
    outputs: list = []
    stream = UtteranceTranscriptStream(
        chunk_iter=_chunks(".ss.."),
        transcriber=_fake_transcriber(monkeypatch, calls),
        vad=EnergyVAD(rms_threshold=500.0),
        on_transcript=lambda text, is_final: outputs.append((text, is_final)),
        silence_chunks_to_finalize=2,
        min_utter_sec=0.6,
        partial_every=2,
    )
    stream.run()

    assert [c[3:] for c in calls] == [(0.5, False), (0.5, True)]
    assert calls[0][1:3] == (SR, CHANNELS)
    assert outputs == [("hello", False), ("hello world", True)]


def test_force_finalizes_on_max_utter(monkeypatch):
    calls: list = []
    outputs: list = []
    stream = UtteranceTranscriptStream(
        chunk_iter=_chunks("ssssssss"),
        transcriber=_fake_transcriber(monkeypatch, calls, text_for=lambda t0, _: f"u{t0:.1f}"),
        vad=EnergyVAD(rms_threshold=500.0),
        on_transcript=lambda text, is_final: outputs.append((text, is_final)),
        silence_chunks_to_finalize=2,
        min_utter_sec=0.6,
        max_utter_sec=1.5,
        partial_every=0,
    )
    stream.run()

    assert [c[3] for c in calls] == [0.0, 1.5, 3.0]
    assert outputs == [("u0.0", True), ("u1.5", True), ("u3.0", True)]


def test_short_utterance_retracts_shown_partial(monkeypatch):
    calls: list = []
    outputs: list = []
    stream = UtteranceTranscriptStream(
        chunk_iter=_chunks("s.."),
        transcriber=_fake_transcriber(monkeypatch, calls),
        vad=EnergyVAD(rms_threshold=500.0),
        on_transcript=lambda text, is_final: outputs.append((text, is_final)),
        min_utter_sec=0.6,
        partial_every=1,
    )
    stream.run()

    assert outputs == [("hello", False), ("", True)]
    assert [c[4] for c in calls] == [False]


def test_short_utterance_without_partial_is_silent(monkeypatch):
    calls: list = []
    outputs: list = []
    stream = UtteranceTranscriptStream(
        chunk_iter=_chunks("s.."),
        transcriber=_fake_transcriber(monkeypatch, calls),
        vad=EnergyVAD(rms_threshold=500.0),
        on_transcript=lambda text, is_final: outputs.append((text, is_final)),
        min_utter_sec=0.6,
        partial_every=0,
    )
    stream.run()

    assert calls == []
    assert outputs == []


def test_stream_end_finalizes_open_utterance(monkeypatch):
    calls: list = []
    outputs: list = []
    stream = UtteranceTranscriptStream(
        chunk_iter=_chunks(".sss"),
        transcriber=_fake_transcriber(monkeypatch, calls),
        vad=EnergyVAD(rms_threshold=500.0),
        on_transcript=lambda text, is_final: outputs.append((text, is_final)),
        partial_every=0,
    )
    stream.run()

    assert outputs == [("hello world", True)]
