from __future__ import annotations

from typing import Callable, Iterable, List, Protocol

from speakingar.audio.vad import SpeechDetector, pcm16_duration, pcm16_rms
from speakingar.contracts import ASRSegment, AudioChunk


class UtteranceTranscriber(Protocol):
    def transcribe_utterance(
        self,
        pcm16: bytes,
        sample_rate: int,
        channels: int,
        utter_t0: float,
        *,
        is_final: bool = True,
    ) -> List[ASRSegment]:
        ...


def _joined(segments: Iterable[ASRSegment]) -> str:
    return " ".join((seg.text or "").strip() for seg in segments if (seg.text or "").strip()).strip()


class UtteranceTranscriptStream:
    """
    VAD-gated utterance loop that reports a growing transcript.

    While speech continues, the utterance so far is re-transcribed every
    `partial_every` speech chunks and reported with is_final=False. The
    utterance is finalized after `silence_chunks_to_finalize` quiet chunks,
    once it reaches `max_utter_sec`, or when the chunk stream ends.
    """

    def __init__(
        self,
        *,
        chunk_iter: Iterable[AudioChunk],
        transcriber: UtteranceTranscriber,
        vad: SpeechDetector,
        on_transcript: Callable[[str, bool], None],
        silence_chunks_to_finalize: int = 2,
        min_utter_sec: float = 0.6,
        max_utter_sec: float | None = None,
        partial_every: int = 2,
        debug: bool = False,
    ) -> None:
        if silence_chunks_to_finalize <= 0:
            raise ValueError("silence_chunks_to_finalize must be > 0")
        if min_utter_sec < 0:
            raise ValueError("min_utter_sec must be >= 0")
        if max_utter_sec is not None and max_utter_sec <= 0:
            raise ValueError("max_utter_sec must be > 0 when set")
        if partial_every < 0:
            raise ValueError("partial_every must be >= 0 (0 disables partials)")

        self.chunk_iter = chunk_iter
        self.transcriber = transcriber
        self.vad = vad
        self.on_transcript = on_transcript
        self.silence_chunks_to_finalize = int(silence_chunks_to_finalize)
        self.min_utter_sec = float(min_utter_sec)
        self.max_utter_sec = float(max_utter_sec) if max_utter_sec is not None else None
        self.partial_every = int(partial_every)
        self.debug = debug

        self._parts: list[bytes] = []
        self._t0 = 0.0
        self._sr = 0
        self._ch = 0
        self._speech_chunks = 0
        self._trailing_silence = 0
        self._partial_sent = False

    @property
    def in_utterance(self) -> bool:
        return bool(self._parts)

    def _begin(self, chunk: AudioChunk) -> None:
        self._parts = []
        self._t0 = float(chunk.start_time)
        self._sr = int(chunk.sample_rate)
        self._ch = int(chunk.channels)
        self._speech_chunks = 0
        self._trailing_silence = 0
        self._partial_sent = False

    def _utter_sec(self) -> float:
        return pcm16_duration(b"".join(self._parts), self._sr, self._ch)

    def _emit_partial(self) -> None:
        segments = self.transcriber.transcribe_utterance(
            b"".join(self._parts),
            sample_rate=self._sr,
            channels=self._ch,
            utter_t0=self._t0,
            is_final=False,
        )
        text = _joined(segments)
        if self.debug:
            print(f"[debug] partial t0={self._t0:.2f}s text='{text}'")
        if text:
            self._partial_sent = True
            self.on_transcript(text, False)

    def _finalize(self, reason: str) -> None:
        pcm16 = b"".join(self._parts)
        utter_sec = pcm16_duration(pcm16, self._sr, self._ch)
        partial_sent = self._partial_sent
        self._parts = []
        self._speech_chunks = 0
        self._trailing_silence = 0
        self._partial_sent = False

        if utter_sec < self.min_utter_sec:
            if self.debug:
                print(f"[debug] finalize skipped short utterance reason={reason} dur={utter_sec:.2f}s")
            if partial_sent:
                # Retract what was shown for an utterance that turned out too short.
                self.on_transcript("", True)
            return

        segments = self.transcriber.transcribe_utterance(
            pcm16,
            sample_rate=self._sr,
            channels=self._ch,
            utter_t0=self._t0,
            is_final=True,
        )
        text = _joined(segments)
        if self.debug:
            print(f"[debug] finalize reason={reason} t0={self._t0:.2f}s dur={utter_sec:.2f}s text='{text}'")
        if text or partial_sent:
            self.on_transcript(text, True)

    def run(self) -> None:
        for i, chunk in enumerate(self.chunk_iter, start=1):
            is_speech = self.vad.is_speech(chunk.pcm16)

            if self.debug:
                chunk_t1 = chunk.start_time + chunk.duration
                print(
                    f"[debug] chunk#{i} {chunk.start_time:.2f}-{chunk_t1:.2f}s "
                    f"rms={pcm16_rms(chunk.pcm16):.1f} speech={is_speech}"
                )

            if is_speech:
                if not self.in_utterance:
                    self._begin(chunk)
                self._parts.append(chunk.pcm16)
                self._speech_chunks += 1
                self._trailing_silence = 0

                if self.max_utter_sec is not None and self._utter_sec() >= self.max_utter_sec:
                    self._finalize("max_utter_sec")
                elif self.partial_every and self._speech_chunks % self.partial_every == 0:
                    self._emit_partial()
                continue

            if self.in_utterance:
                self._trailing_silence += 1
                if self._trailing_silence >= self.silence_chunks_to_finalize:
                    self._finalize("silence")

        if self.in_utterance:
            self._finalize("stream_end")
