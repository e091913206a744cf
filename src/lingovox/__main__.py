"""Command-line entry point for the Lingovox speech client."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

from lingovox import __version__
from lingovox.api import SpeechApiClient
from lingovox.audio import AudioBlob, AudioRecorder, initialize_audio_pipeline
from lingovox.exceptions import LingovoxError
from lingovox.features import (
    FeatureService,
    SpeechToSpeechFeature,
    StreamTranscribeFeature,
    TextToSpeechFeature,
    TranscribeFeature,
    TranslateFeature,
)
from lingovox.history import HistoryItem, HistoryItemType, HistoryService, HistoryStore
from lingovox.identity import IdentityProvider
from lingovox.languages import get_supported_languages
from lingovox.metrics import get_metrics, initialize_metrics
from lingovox.notifications import Notification, NotificationLevel, Notifier
from lingovox.settings import (
    AppSettings,
    default_log_path,
    default_metrics_log_path,
)

LOGGER = logging.getLogger("lingovox")

F = TypeVar("F", bound=FeatureService)


class ConsoleNotifier(Notifier):
    """Prints warnings and errors to stderr in addition to logging them."""

    def deliver(self, notification: Notification) -> None:
        super().deliver(notification)
        if notification.level in (NotificationLevel.WARNING, NotificationLevel.ERROR):
            print(str(notification), file=sys.stderr)


class AppContext:
    """Wires settings, identity, the API client and history for one command."""

    def __init__(self, settings: AppSettings, notifier: Optional[Notifier] = None) -> None:
        self.settings = settings
        self.notifier = notifier or ConsoleNotifier()
        self.identity = IdentityProvider.from_settings(settings)
        self.client = SpeechApiClient.from_settings(settings)
        self.store = HistoryStore(
            settings.resolved_history_db_path(), max_audio_bytes=settings.max_audio_bytes
        )
        self._history: Optional[HistoryService] = None

    @property
    def history(self) -> HistoryService:
        if self._history is None:
            self._history = HistoryService(self.store, self.identity, self.notifier)
        return self._history

    def feature(self, cls: type[F]) -> F:
        return cls(self.client, self.history, self.identity, self.notifier)

    def close(self) -> None:
        if self._history is not None:
            self._history.close()
        self.store.close()


def configure_logging() -> None:
    """Set up logging for console and a rolling log file.

    - Console level can be overridden via LINGOVOX_LOG_LEVEL (e.g., DEBUG/INFO).
    - Detailed DEBUG logs are always written to lingovox.log in the data directory.
    """
    level_name = os.getenv("LINGOVOX_LOG_LEVEL", "WARNING").upper()
    console_level = getattr(logging, level_name, logging.WARNING)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handlers: list[logging.Handler] = []

    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    handlers.append(ch)

    try:
        from logging.handlers import RotatingFileHandler

        log_path = default_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            str(log_path), maxBytes=1_000_000, backupCount=2, encoding="utf-8"
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        handlers.append(fh)
    except OSError as exc:
        # Console-only when the data directory is not writable
        file_error = exc
    else:
        file_error = None

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    if file_error is not None:
        LOGGER.warning("File logging disabled: %s", file_error)


def _install_thread_excepthook() -> None:
    """Log uncaught exceptions raised in background threads."""
    original_excepthook = threading.excepthook

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        LOGGER.critical(
            "Uncaught exception in thread %s",
            getattr(args.thread, "name", None),
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        original_excepthook(args)

    threading.excepthook = _thread_excepthook


# --- commands -------------------------------------------------------------


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _write_audio(audio: Optional[AudioBlob], output: Optional[str]) -> None:
    if audio is None or not audio or not output:
        return
    path = audio.save(Path(output))
    print(f"Audio written to {path}")


def cmd_stream(ctx: AppContext, args: argparse.Namespace) -> int:
    initialize_audio_pipeline()
    feature = ctx.feature(StreamTranscribeFeature)

    def show(transcript: str) -> None:
        print(f"\r{transcript}", end="", flush=True)

    final: dict[str, Optional[AudioBlob]] = {}

    def complete(transcript: str, audio: Optional[AudioBlob]) -> None:
        final["audio"] = audio

    session = feature.create_session(
        AudioRecorder(),
        language=args.language or ctx.settings.default_language,
        chunk_interval=args.interval or ctx.settings.chunk_interval_seconds,
        on_transcript_update=show,
        on_complete=complete,
    )
    if not session.start():
        return 1
    print("Recording... press Ctrl+C to stop.", file=sys.stderr)
    try:
        deadline = time.monotonic() + args.duration if args.duration else None
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    finally:
        session.stop(drain=True)

    print("\nFinishing pending chunks...", file=sys.stderr)
    if not session.wait_idle(timeout=args.drain_timeout):
        LOGGER.warning("Gave up waiting for pending chunks")
        session.close()
    print()
    print(session.transcript)
    _write_audio(final.get("audio"), args.output)
    return 0


def cmd_transcribe(ctx: AppContext, args: argparse.Namespace) -> int:
    feature = ctx.feature(TranscribeFeature)
    result = feature.transcribe(
        AudioBlob.from_file(args.file), args.language or ctx.settings.default_language
    )
    print(result.transcription)
    return 0


def cmd_translate(ctx: AppContext, args: argparse.Namespace) -> int:
    feature = ctx.feature(TranslateFeature)
    result = feature.translate(args.text, args.source, args.target)
    print(result.translated_text)
    _write_audio(result.audio, args.output)
    return 0


def cmd_tts(ctx: AppContext, args: argparse.Namespace) -> int:
    feature = ctx.feature(TextToSpeechFeature)
    result = feature.convert(args.text, args.language)
    _write_audio(result.audio, args.output)
    return 0


def cmd_sts(ctx: AppContext, args: argparse.Namespace) -> int:
    feature = ctx.feature(SpeechToSpeechFeature)
    result = feature.convert(AudioBlob.from_file(args.file), args.source, args.target)
    print(f"[{result.original_language}] {result.original_text}")
    print(f"[{result.translated_language}] {result.translated_text}")
    _write_audio(result.translated_audio, args.output)
    return 0


def _summarize(item: HistoryItem) -> str:
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(item.timestamp / 1000))
    text = next((str(v) for v in item.to_payload().values() if v), "")
    text = text.replace("\n", " ")
    if len(text) > 60:
        text = text[:57] + "..."
    audio = ",".join(item.audio_payloads()) or "-"
    return f"{item.id}  {stamp}  {item.type.value:<20}  {audio:<40}  {text}"


def cmd_history(ctx: AppContext, args: argparse.Namespace) -> int:
    if not ctx.identity.is_authenticated:
        print("History is only kept for signed-in users (set user_id or --user).",
              file=sys.stderr)
        return 1
    history = ctx.history

    if args.history_command == "list":
        item_type = HistoryItemType(args.type) if args.type else None
        items = history.refresh_history(item_type)
        for item in items[: args.limit] if args.limit else items:
            print(_summarize(item))
        return 0

    if args.history_command == "show":
        item = history.get_history_item(args.id)
        if item is None:
            print(f"No history item {args.id}", file=sys.stderr)
            return 1
        payload = {"id": item.id, "type": item.type.value, "timestamp": item.timestamp}
        payload.update(item.to_payload())
        payload["audio"] = {name: blob.size for name, blob in item.audio_payloads().items()}
        _print_json(payload)
        if args.export_audio:
            for name, blob in item.audio_payloads().items():
                _write_audio(blob, str(Path(args.export_audio) / f"{item.id}-{name}{blob.suffix}"))
        return 0

    if args.history_command == "delete":
        return 0 if history.delete_history_item(args.id) else 1

    if args.history_command == "clear":
        return 0 if history.clear_history() else 1

    raise ValueError(f"Unknown history command {args.history_command}")


def cmd_languages(ctx: AppContext, args: argparse.Namespace) -> int:
    for language in get_supported_languages(include_auto=not args.no_auto):
        print(f"{language['code']:<6} {language['name']}")
    return 0


def cmd_stats(ctx: AppContext, args: argparse.Namespace) -> int:
    _print_json(ctx.client.user_stats())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lingovox",
        description="Transcribe, translate and synthesize speech through the speech API.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--settings", type=Path, help="Path to settings.json")
    parser.add_argument("--api-url", help="Override the speech API base URL")
    parser.add_argument("--user", help="Act as this user id (enables history)")
    sub = parser.add_subparsers(dest="command", required=True)

    stream = sub.add_parser("stream", help="Live transcription from the microphone")
    stream.add_argument("--language", help="Spoken language (name or code)")
    stream.add_argument("--interval", type=float, help="Chunk length in seconds")
    stream.add_argument("--duration", type=float, help="Stop after this many seconds")
    stream.add_argument("--drain-timeout", type=float, default=60.0)
    stream.add_argument("--output", help="Write the recording to this WAV file")
    stream.set_defaults(handler=cmd_stream)

    transcribe = sub.add_parser("transcribe", help="Transcribe an audio file")
    transcribe.add_argument("file", type=Path)
    transcribe.add_argument("--language")
    transcribe.set_defaults(handler=cmd_transcribe)

    translate = sub.add_parser("translate", help="Translate text")
    translate.add_argument("text")
    translate.add_argument("--source", default="auto")
    translate.add_argument("--target", required=True)
    translate.add_argument("--output", help="Write synthesized audio here, if any")
    translate.set_defaults(handler=cmd_translate)

    tts = sub.add_parser("tts", help="Synthesize speech from text")
    tts.add_argument("text")
    tts.add_argument("--language", required=True)
    tts.add_argument("--output", required=True)
    tts.set_defaults(handler=cmd_tts)

    sts = sub.add_parser("sts", help="Translate spoken audio into speech")
    sts.add_argument("file", type=Path)
    sts.add_argument("--source", default="auto")
    sts.add_argument("--target", required=True)
    sts.add_argument("--output")
    sts.set_defaults(handler=cmd_sts)

    history = sub.add_parser("history", help="Inspect the local history")
    history_sub = history.add_subparsers(dest="history_command", required=True)
    history_list = history_sub.add_parser("list")
    history_list.add_argument("--type", choices=[t.value for t in HistoryItemType])
    history_list.add_argument("--limit", type=int, default=0)
    history_show = history_sub.add_parser("show")
    history_show.add_argument("id")
    history_show.add_argument("--export-audio", metavar="DIR")
    history_delete = history_sub.add_parser("delete")
    history_delete.add_argument("id")
    history_sub.add_parser("clear")
    history.set_defaults(handler=cmd_history)

    languages = sub.add_parser("languages", help="List supported languages")
    languages.add_argument("--no-auto", action="store_true")
    languages.set_defaults(handler=cmd_languages)

    stats = sub.add_parser("stats", help="Show usage statistics for the API key")
    stats.set_defaults(handler=cmd_stats)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one lingovox command."""
    args = build_parser().parse_args(argv)
    configure_logging()
    _install_thread_excepthook()
    LOGGER.info(
        "Process starting (python=%s, platform=%s, command=%s)",
        sys.version.split()[0],
        sys.platform,
        args.command,
    )

    settings = AppSettings.load(args.settings)
    if args.api_url:
        settings.api_base_url = args.api_url.rstrip("/")
    if args.user:
        settings.user_id = args.user

    initialize_metrics(
        enabled=settings.telemetry_enabled,
        log_path=default_metrics_log_path() if settings.telemetry_enabled else None,
    )

    ctx = AppContext(settings)
    handler: Callable[[AppContext, argparse.Namespace], int] = args.handler
    try:
        return handler(ctx, args)
    except LingovoxError as exc:
        LOGGER.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        LOGGER.error("Command %s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        ctx.close()
        for summary in get_metrics().summary():
            LOGGER.info("timing summary %s", summary.to_log_line())


if __name__ == "__main__":
    sys.exit(main())
