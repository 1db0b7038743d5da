from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from speakingar.ai.errors import MissingCredential
from speakingar.ai.pronunciation import PronunciationService
from speakingar.ai.reply import ReplyGenerationService
from speakingar.app.config import data_path, resolve_api_key
from speakingar.asr.faster_whisper_pcm16 import FasterWhisperPCM16Transcriber
from speakingar.audio.mic import SoundDeviceMicSource
from speakingar.audio.vad import EnergyVAD
from speakingar.conversation.log import ConversationLog
from speakingar.conversation.pronunciation_history import PronunciationHistoryStore
from speakingar.live.mic_source import MicTranscriptSource
from speakingar.live.utterance_stream import UtteranceTranscriptStream
from speakingar.nlp.language import LangdetectDetector
from speakingar.nlp.translator.factory import get_session_factory
from speakingar.nlp.translator.service import TranslationService
from speakingar.nlp.translator.session_cache import TranslationSessionCache


@dataclass(frozen=True)
class AppServices:
    translation: TranslationService
    replies: Optional[ReplyGenerationService]
    reply_setup_error: Optional[str]
    pronunciation: PronunciationService
    log: ConversationLog
    pronunciation_history: PronunciationHistoryStore


def build_reply_service(args: Any) -> tuple[Optional[ReplyGenerationService], Optional[str]]:
    try:
        service = ReplyGenerationService(
            api_key=resolve_api_key(args),
            endpoint=str(args.endpoint),
            model=str(args.chat_model),
        )
    except MissingCredential as e:
        return None, e.user_message
    return service, None


def build_services(args: Any) -> AppServices:
    cache = TranslationSessionCache(get_session_factory(str(args.translator)))
    translation = TranslationService(detector=LangdetectDetector(), cache=cache)
    replies, setup_error = build_reply_service(args)
    pronunciation = PronunciationService(
        api_key=resolve_api_key(args),
        endpoint=str(args.endpoint),
        model=str(args.chat_model),
    )
    log = ConversationLog(data_path(str(args.history_file)))
    log.load()
    history = PronunciationHistoryStore(data_path(str(args.pronunciation_history_file)))
    return AppServices(
        translation=translation,
        replies=replies,
        reply_setup_error=setup_error,
        pronunciation=pronunciation,
        log=log,
        pronunciation_history=history,
    )


def build_mic_source(args: Any) -> MicTranscriptSource:
    mic = SoundDeviceMicSource(
        chunk_seconds=float(args.chunk_sec),
        sample_rate=int(args.sr),
        channels=int(args.channels),
        device=args.device,
    )
    vad = EnergyVAD(rms_threshold=float(args.rms_th))
    language = None if str(args.language_lock) == "auto" else str(args.language_lock)
    transcriber = FasterWhisperPCM16Transcriber(model_size=str(args.asr_model), language=language)

    def _stream(chunks, on_transcript) -> UtteranceTranscriptStream:
        return UtteranceTranscriptStream(
            chunk_iter=chunks,
            transcriber=transcriber,
            vad=vad,
            on_transcript=on_transcript,
            silence_chunks_to_finalize=int(args.silence_chunks),
            min_utter_sec=float(args.min_utter_sec),
            max_utter_sec=None if args.max_utter_sec is None else float(args.max_utter_sec),
            partial_every=max(0, int(args.partial_every)),
            debug=bool(args.debug),
        )

    return MicTranscriptSource(mic=mic, stream_factory=_stream)
