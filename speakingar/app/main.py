from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Any, List

import httpx

from speakingar.ai.errors import GenerationError
from speakingar.app.config import resolve_args
from speakingar.app.diagnostics import describe_error, hint_for_exception
from speakingar.app.logging_setup import log_event, setup_app_logger
from speakingar.app.runtime import LiveSession, format_reply_lines, format_state_line
from speakingar.app.services import AppServices, build_mic_source, build_services
from speakingar.audio.mic import MicError, SoundDeviceMicSource
from speakingar.conversation.message import AIContent, Message, UserContent
from speakingar.live.coordinator import CoordinatorState, TranscriptionCoordinator
from speakingar.live.source import ReplayTranscriptSource, TranscriptEventSource

EXIT_OK = 0
EXIT_FAILED = 1


def _read_replay_lines(path: str) -> List[str]:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"Replay file not found: {p}")
    return p.read_text(encoding="utf-8-sig").splitlines()


async def _close_services(services: AppServices) -> None:
    if services.replies is not None:
        await services.replies.aclose()
    await services.pronunciation.aclose()


async def _run_reply(args: Any, services: AppServices, logger: logging.Logger) -> int:
    if services.replies is None:
        print(f"[error] {services.reply_setup_error}", file=sys.stderr)
        print(f"[hint] {hint_for_exception(str(services.reply_setup_error))}", file=sys.stderr)
        return EXIT_FAILED

    utterance = str(args.reply)
    result = await services.replies.generate(utterance)
    services.log.add(Message(content=UserContent(text=utterance.strip())))
    message = Message(content=AIContent(translation=result.translation, replies=result.replies))
    services.log.add(message)
    for line in format_reply_lines(message):
        print(line)
    log_event(logger, logging.INFO, "reply_mode_done", replies=len(result.replies))
    return EXIT_OK


async def _run_pronounce(args: Any, services: AppServices, logger: logging.Logger) -> int:
    text = str(args.pronounce)
    suggestion = await services.pronunciation.convert(text)
    services.pronunciation_history.add_entry(text.strip(), suggestion)
    print(suggestion.output_phrase)
    print(f"  {suggestion.phonetic_reading}")
    print(f"  {suggestion.tip}")
    log_event(
        logger,
        logging.INFO,
        "pronounce_mode_done",
        remote=services.pronunciation.is_remote_enabled,
        history=len(services.pronunciation_history.items),
    )
    return EXIT_OK


async def _run_live(args: Any, services: AppServices, logger: logging.Logger) -> int:
    print_console = bool(args.print_console)
    last_line = ""

    def _on_state(state: CoordinatorState) -> None:
        nonlocal last_line
        line = format_state_line(state)
        if print_console and line and line != last_line:
            print(line, flush=True)
        last_line = line

    def _on_reply(message: Message) -> None:
        if print_console:
            for line in format_reply_lines(message):
                print(line, flush=True)

    source: TranscriptEventSource
    if args.replay is not None:
        source = ReplayTranscriptSource(_read_replay_lines(str(args.replay)), delay_sec=float(args.replay_delay_sec))
    else:
        source = build_mic_source(args)

    coordinator = TranscriptionCoordinator(services.translation, on_change=_on_state)
    session = LiveSession(
        source=source,
        coordinator=coordinator,
        log=services.log,
        replies=services.replies,
        reply_setup_error=services.reply_setup_error,
        on_reply=_on_reply,
        logger=logger,
    )
    if services.replies is None and print_console:
        print(f"[info] {services.reply_setup_error}", flush=True)

    warm_task: asyncio.Task | None = None
    if bool(args.warm_up):
        warm_task = asyncio.create_task(services.translation.warm_up())

    await session.start()
    if print_console and args.replay is None:
        print("[mic] listening... Ctrl+C to stop", flush=True)
    try:
        await session.run_until_complete()
    finally:
        await session.stop()
        if warm_task is not None and not warm_task.done():
            warm_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await warm_task
    if session.reply_error and services.replies is not None and print_console:
        print(f"[reply] {session.reply_error}", flush=True)
    return EXIT_OK


async def _dispatch(args: Any, logger: logging.Logger) -> int:
    services = build_services(args)
    try:
        if args.reply is not None:
            return await _run_reply(args, services, logger)
        if args.pronounce is not None:
            return await _run_pronounce(args, services, logger)
        return await _run_live(args, services, logger)
    finally:
        await _close_services(services)


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceMicSource.list_devices())
        return EXIT_OK

    try:
        return asyncio.run(_dispatch(args, logger))
    except KeyboardInterrupt:
        logger.info("app_interrupted")
        return EXIT_OK
    except (GenerationError, httpx.HTTPError, MicError, OSError, RuntimeError, ValueError) as e:
        summary = describe_error(e)
        logger.exception("app_failed")
        print(f"[error] {summary}", file=sys.stderr)
        print(f"[hint] {hint_for_exception(summary)}", file=sys.stderr)
        print(f"[log] {log_path}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        logger.info("app_exit")


if __name__ == "__main__":
    raise SystemExit(main())
