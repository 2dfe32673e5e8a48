"""
Command-Line Interface for book-voice.

Two subcommands:
    serve  Run the HTTP relay with uvicorn on the configured host/port
    say    Run the provider chain once and write the audio to a file

Usage Examples:
    # Start the server (host/port from settings, PORT/HOST env, or flags)
    book-voice serve --port 8080

    # Generate one file through the fallback chain
    book-voice say "Hola mundo" --out hola.mp3

    # Show text stats and the provider chain without calling anything
    book-voice say --text "Hola mundo" --dry-run --json

Environment Variables:
    BOOK_VOICE_SETTINGS: Settings file (default config/settings.yaml)
    TTS_API_KEY: Bearer token for the primary speech API
    LOCAL_TTS_HOST: Local host tried when the primary is unreachable
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from book_voice.core.config import ConfigValidationError, ServiceConfig, Settings, load_settings
from book_voice.core.logging import configure_logging, get_logger, info, set_request_id
from book_voice.services.errors import VoiceServiceError
from book_voice.services.validators import validate_text
from book_voice.services.voice_service import GenerateRequest, VoiceService


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="book-voice", description="book-voice TTS relay")
    parser.add_argument("--settings", help="Settings YAML (default: BOOK_VOICE_SETTINGS or config/settings.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", help="Listening host override")
    serve.add_argument("--port", type=int, help="Listening port override")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    say = sub.add_parser("say", help="Generate one audio file through the provider chain")
    say.add_argument("text_pos", nargs="?", help="Text to speak (positional)")
    say.add_argument("--text", help="Text to speak")
    say.add_argument("--out", help="Output path (default: <audio_id>.<ext>)")
    say.add_argument("--voice-type", help="female, male or a provider voice name")
    say.add_argument("--voice-id", help="Predefined voice id (e.g. female_1)")
    say.add_argument("--dry-run", action="store_true",
                     help="Validate and summarize without calling providers")
    say.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser.parse_args(argv)


def _blocking(settings: Settings) -> Settings:
    """Copy of settings with background generation turned off."""
    raw = dict(settings.raw)
    raw["generation"] = {**(raw.get("generation") or {}), "background": False}
    return Settings(raw=raw)


def _dry_run_summary(text: str, config: ServiceConfig, voice_type: Optional[str]) -> Dict[str, Any]:
    voice_type = voice_type or config.generation.default_voice_type
    return {
        "characters": len(text),
        "words": len(text.split()),
        "duration_minutes": math.ceil(len(text) / config.generation.chars_per_minute),
        "voice": config.providers.voice_map.get(voice_type.lower(), voice_type),
        "chain": [*config.providers.chain, "placeholder"],
    }


async def _say(settings: Settings, args: argparse.Namespace, text: str, rid: str) -> Dict[str, Any]:
    service = VoiceService(_blocking(settings))
    try:
        result = await service.generate(
            GenerateRequest(text=text, voice_type=args.voice_type, voice_id=args.voice_id),
            request_id=rid,
        )
    finally:
        await service.aclose()

    record = result.record
    out_path = Path(args.out or f"{record.id}.{record.extension}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(record.audio_bytes or b"")

    return {
        "out": str(out_path),
        "bytes": record.size_bytes,
        "content_type": record.content_type,
        "provider_used": record.provider_used,
        "engine": record.engine,
        "used_fallback": record.used_fallback,
    }


def _print(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 2 for invalid input or configuration).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("book-voice.cli")
    rid = str(uuid4())[:12]
    set_request_id(rid)

    settings = load_settings(args.settings)
    try:
        config = settings.get_service_config()
    except ConfigValidationError as e:
        print(f"Invalid configuration: {e}")
        return 2

    if args.command == "serve":
        import uvicorn

        if args.settings:
            os.environ["BOOK_VOICE_SETTINGS"] = args.settings

        host = args.host or config.server.host
        port = args.port or config.server.port
        info(log, "serve", host=host, port=port)
        uvicorn.run(
            "book_voice.main:app",
            host=host,
            port=port,
            reload=args.reload,
            log_config=None,  # keep our handlers
        )
        return 0

    try:
        text = args.text or args.text_pos
        validate_text(text, config.generation.max_text_length)
        if args.dry_run:
            payload = {"ok": True, "dry_run": True, **_dry_run_summary(text, config, args.voice_type)}
            _print(payload, args.json)
            print("DRY_RUN_OK")
            return 0

        info(log, "say_start", chars=len(text))
        item = asyncio.run(_say(settings, args, text, rid))
    except VoiceServiceError as e:
        _print(e.to_dict(), args.json)
        return 2

    _print({"ok": True, "dry_run": False, **item}, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
