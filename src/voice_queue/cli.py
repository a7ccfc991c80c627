"""
Command-Line Interface for voice-queue.

Speaks text through the same queue the HTTP service uses, lists voices,
shows which voices other local processes are using, or starts the server.

Usage Examples:
    # Speak with the default voice
    voice-queue "ビルドが完了しました"

    # Choose voice and speed
    voice-queue "テスト" --voice 3 --speed 1.3

    # Speak every line of a file, in order
    voice-queue --file notes.txt

    # List voices offered by the engine
    voice-queue --voices --json

    # Voices currently claimed by any local process
    voice-queue --in-use

    # Run the HTTP API
    voice-queue --serve --host 127.0.0.1 --port 8000

Environment Variables:
    VOICEVOX_URL: Engine base URL
    DEFAULT_VOICE_ID: Voice used when --voice is omitted
    DEFAULT_SPEED: Speed used when --speed is omitted
    VOICE_QUEUE_STATE_DIR: Directory holding the shared usage registry
    VOICE_QUEUE_SETTINGS: Settings file path
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, List, Optional
from uuid import uuid4

from voice_queue.core.config import ConfigValidationError, Settings, load_settings
from voice_queue.core.errors import VoiceQueueError
from voice_queue.core.logging import configure_logging, error, get_logger, info, set_request_id
from voice_queue.services.speech_service import SpeechService

_LOG = get_logger("voice-queue.cli")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="voice-queue",
        description="Sequential speech queue with shared voice coordination",
    )

    # Input options
    parser.add_argument("text_pos", nargs="?", help="Text to speak (positional)")
    parser.add_argument("--text", help="Text to speak")
    parser.add_argument("--file", help="Speak each non-empty line of a file")

    # Speech overrides
    parser.add_argument("--voice", type=int, help="Voice (style) id")
    parser.add_argument("--speed", type=float, help="Speed scale (0.5-2.0)")

    # Query modes
    parser.add_argument("--voices", action="store_true", help="List voices offered by the engine")
    parser.add_argument("--in-use", action="store_true", help="List voices claimed by local processes")
    parser.add_argument("--session", action="store_true", help="Show this process's session voice")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # Server mode
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for --serve")
    parser.add_argument("--port", type=int, default=8000, help="Port for --serve")

    parser.add_argument("--settings", help="Settings YAML path")
    return parser.parse_args(argv)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """Collect texts from --file, --text or the positional argument."""
    if args.file:
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        return [line.strip() for line in lines if line.strip()]
    text = args.text or args.text_pos
    return [text] if text else []


def _emit(payload: Any, as_json: bool, lines: List[str]) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        for line in lines:
            print(line)


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    service = SpeechService(settings)
    try:
        if args.voices:
            voices = await service.list_voices()
            _emit(
                [{"character": v.character, "name": v.name, "id": v.id} for v in voices],
                args.json,
                [f"{v.id:>4}  {v.character} ({v.name})" for v in voices],
            )
            return 0

        if args.in_use:
            voice_ids = await service.voices_in_use()
            _emit(
                {"voice_ids": voice_ids, "client_id": service.registry.client_id},
                args.json,
                [" ".join(str(v) for v in voice_ids) or "(none)"],
            )
            return 0

        if args.session:
            session = await service.session_voice()
            _emit(session.to_dict(), args.json, [f"voice {session.voice_id} ({session.client_id})"])
            return 0

        texts = _load_texts(args)
        if not texts:
            error(_LOG, "no_input", hint="pass TEXT, --text or --file")
            return 1

        for text in texts:
            await service.say(text, voice_id=args.voice, speed=args.speed)
        await service.pipeline.join()

        failed = service.pipeline.failed_count
        _emit(
            {"ok": failed == 0, "spoken": len(texts) - failed, "failed": failed},
            args.json,
            [f"spoken {len(texts) - failed}/{len(texts)}"],
        )
        return 0 if failed == 0 else 1
    finally:
        await service.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    args = _parse_args(argv)

    configure_logging()
    set_request_id(uuid4().hex[:8])

    try:
        settings = load_settings(args.settings, missing_ok=args.settings is None)
    except (FileNotFoundError, ConfigValidationError) as e:
        error(_LOG, "settings_error", error=str(e))
        return 1

    if args.serve:
        import uvicorn

        if args.settings:
            os.environ["VOICE_QUEUE_SETTINGS"] = args.settings
        info(_LOG, "serve", host=args.host, port=args.port)
        uvicorn.run("voice_queue.main:app", host=args.host, port=args.port)
        return 0

    try:
        return asyncio.run(_run(args, settings))
    except (VoiceQueueError, ConfigValidationError) as e:
        error(_LOG, "cli_failed", error=str(e))
        if args.json:
            payload = e.to_dict() if isinstance(e, VoiceQueueError) else {"ok": False, "message": str(e)}
            print(json.dumps(payload, ensure_ascii=False))
        return 1
    except OSError as e:
        error(_LOG, "cli_failed", error=str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
