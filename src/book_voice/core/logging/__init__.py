"""
book-voice Structured Logging Module.

Thin layer over the standard library ``logging`` package:
    - Numeric log levels (1-4) for simplified configuration
    - Colored console output
    - Optional rotating JSONL file output
    - Request ID correlation via contextvars

Log Levels:
    1 = MINIMAL  - Startup, shutdown, failures only
    2 = NORMAL   - Request lifecycle, provider outcomes (default)
    3 = VERBOSE  - Every provider attempt, sweep results
    4 = DEBUG    - Internal state

Configuration:
    export BOOK_VOICE_LOG_LEVEL=3    # VERBOSE
    export BOOK_VOICE_LOG_DIR=logs   # also write logs/book-voice.jsonl
    export BOOK_VOICE_NO_COLOR=1

    In settings.yaml:
        logging:
          level: 2
          log_dir: logs

Usage:
    from book_voice.core.logging import get_logger, info, warn

    log = get_logger("book-voice.mymodule")
    info(log, "generate_request", chars=150, voice="nova")
    warn(log, "provider_failed", provider="translate", status=503)
    verbose(log, "provider_attempt", provider="speech_api")
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .levels import LEVEL_MAP, LEVEL_NAMES, LogLevel, coerce_level
from .colors import Colors, colorize, get_tag_color, supports_color
from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter


_ALL_RECORDS = logging.DEBUG - 10


def _console_handler(current: LogLevel) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LEVEL_MAP.get(current, logging.INFO))
    handler.setFormatter(ColoredConsoleFormatter())
    return handler


def _jsonl_handler(log_config: dict) -> Optional[logging.Handler]:
    """Rotating JSONL file under log_dir, or None when no directory is set."""
    log_dir = log_config.get("log_dir")
    if not log_dir:
        return None

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / str(log_config.get("jsonl_file", "book-voice.jsonl")),
        maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
        backupCount=int(log_config.get("rotate_backup_count", 5)),
        encoding="utf-8",
        delay=True,
    )
    # The file keeps every record; only the console is filtered
    handler.setLevel(_ALL_RECORDS)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install book-voice handlers on the root logger.

    Calling it again is a no-op unless ``force`` is set, so every module
    can call get_logger() at import time.

    Args:
        level: 1-4, a level name or a LogLevel. When omitted the level
            comes from BOOK_VOICE_LOG_LEVEL or the settings file.
        force: Replace handlers that an earlier call installed.
    """
    from . import colors

    if not force and is_configured():
        return

    colors.USE_COLORS = supports_color()
    log_config = read_logging_config()
    set_log_config(log_config)

    current = coerce_level(level or log_config.get("level", LogLevel.NORMAL))
    set_level(current)

    handlers = [_console_handler(current), _jsonl_handler(log_config)]
    root = logging.getLogger()
    root.setLevel(_ALL_RECORDS)
    root.handlers = [h for h in handlers if h is not None]

    set_configured(True)


def _emit(logger: logging.Logger, py_level: int, tag: str, verbosity: int, msg: str, fields: dict) -> None:
    if verbosity > get_level():
        return

    extra = {
        "tag": tag,
        "numeric_level": int(verbosity),
        "request_id": get_request_id(),
        "event": fields.pop("event", None),
        "seconds": fields.pop("seconds", None),
    }
    extra["extra_data"] = fields or None
    logger.log(py_level, msg, extra=extra)


def get_logger(name: str = "book-voice") -> logging.Logger:
    """Named stdlib logger; configures logging on first use."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "INFO", LogLevel.NORMAL, msg, fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """A completed operation; printed green on the console."""
    _emit(logger, logging.INFO, "SUCCESS", LogLevel.NORMAL, msg, fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Recoverable problem, e.g. a provider that failed and was skipped."""
    _emit(logger, logging.WARNING, "WARN", LogLevel.NORMAL, msg, fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Shown even at MINIMAL."""
    _emit(logger, logging.ERROR, "ERROR", LogLevel.MINIMAL, msg, fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.ERROR, "FAIL", LogLevel.MINIMAL, msg, fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Per-attempt detail, shown from VERBOSE up."""
    _emit(logger, logging.DEBUG, "INFO", LogLevel.VERBOSE, msg, fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.DEBUG, "DEBUG", LogLevel.DEBUG, msg, fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "colorize",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
