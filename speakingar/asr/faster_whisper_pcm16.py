from __future__ import annotations

import io
import threading
import wave
from typing import List, Optional

from speakingar.contracts import ASRSegment


def pcm16_to_wav_bytes(pcm16: bytes, sample_rate: int, channels: int) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm16)
    return buf.getvalue()


class FasterWhisperPCM16Transcriber:
    """Transcribe an in-memory PCM16 utterance with faster-whisper. The model loads on first use."""

    def __init__(
        self,
        *,
        model_size: str = "tiny",
        device: str = "cpu",
        compute_type: str = "int8",
        language: Optional[str] = None,
        beam_size: int = 1,
    ) -> None:
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self.beam_size = beam_size
        self._model = None
        self._lock = threading.Lock()

    def _get_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            self._model = WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type,
            )
        return self._model

    def transcribe_utterance(
        self,
        pcm16: bytes,
        sample_rate: int,
        channels: int,
        utter_t0: float,
        *,
        is_final: bool = True,
    ) -> List[ASRSegment]:
        if not pcm16:
            return []

        audio = io.BytesIO(pcm16_to_wav_bytes(pcm16, sample_rate, channels))
        # WhisperModel is not safe to call from two threads at once.
        with self._lock:
            model = self._get_model()
            segments, _info = model.transcribe(
                audio,
                language=self.language,
                beam_size=self.beam_size,
                vad_filter=False,
                condition_on_previous_text=False,
            )
            out: List[ASRSegment] = []
            for s in segments:
                text = (s.text or "").strip()
                if not text:
                    continue
                out.append(
                    ASRSegment(
                        text=text,
                        t0=float(utter_t0 + float(s.start)),
                        t1=float(utter_t0 + float(s.end)),
                        is_final=is_final,
                    )
                )
        return out
