"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar so every coroutine serving a request
sees its own id; log lines emitted while handling that request carry it
automatically. The remaining state (level, configured flag, resolved
config) is process-wide.

Environment Variables:
    - BOOK_VOICE_LOG_LEVEL: Override log level (1-4 or name)
    - BOOK_VOICE_LOG_DIR: Write a JSONL log file into this directory
    - BOOK_VOICE_JSONL_FILE: Override JSONL filename
    - BOOK_VOICE_LOG_ROTATE_BYTES: Max log file size
    - BOOK_VOICE_LOG_ROTATE_BACKUP: Number of backup files
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Get the request id of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Get the current log level as "MINIMAL", "NORMAL", "VERBOSE" or "DEBUG"."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(cfg: Dict[str, Any], env_name: str, key: str) -> None:
    value = os.getenv(env_name)
    if not value:
        return
    try:
        cfg[key] = int(value)
    except ValueError:
        pass  # keep the file/default value


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve the logging configuration.

    Priority (highest first): BOOK_VOICE_* environment variables, the
    ``logging`` section of the settings file, built-in defaults.

    Returns:
        Dictionary with level, log_dir, jsonl_file and rotation settings.
    """
    from book_voice.core.config import load_settings

    cfg: Dict[str, Any] = {}
    cfg.update(load_settings().raw.get("logging", {}) or {})

    if os.getenv("BOOK_VOICE_LOG_LEVEL"):
        cfg["level"] = os.environ["BOOK_VOICE_LOG_LEVEL"]
    if os.getenv("BOOK_VOICE_LOG_DIR"):
        cfg["log_dir"] = os.environ["BOOK_VOICE_LOG_DIR"]
    if os.getenv("BOOK_VOICE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["BOOK_VOICE_JSONL_FILE"]
    _env_int(cfg, "BOOK_VOICE_LOG_ROTATE_BYTES", "rotate_max_bytes")
    _env_int(cfg, "BOOK_VOICE_LOG_ROTATE_BACKUP", "rotate_backup_count")

    return cfg
