"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for log files and aggregators
    ColoredConsoleFormatter: short human-readable lines for the terminal

Output Examples:
    JSONL (file):
        {"ts":"2026-01-15T14:30:05+01:00","level":2,"tag":"WARN","message":"provider_failed","request_id":"abc123","extra":{"provider":"speech_api","status":503}}

    Console:
        14:30:05 [ WARN  ] (abc123) provider_failed provider=speech_api status=503
        14:30:06 [SUCCESS] (abc123) generated provider_used=SECONDARY bytes=5321 0.912s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


def _paint(text: str, color: str) -> str:
    # Read the flag at call time; configure_logging() and tests may flip it
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines.

    Fields: ts (ISO, local timezone), level (1-4), tag, message,
    request_id, and when present event, seconds and extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records as colored console lines.

    Format:
        HH:MM:SS [ TAG   ] (rid) message key=value 0.123s
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _paint(ts, Colors.DIM),
            _paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.5:
                time_color = Colors.GREEN
            elif seconds < 3.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_paint(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    def _field_color(self, key: str, value: Any) -> str:
        """
        Pick a color for a structured field.

            - provider_used: green for PRIMARY, yellow for SECONDARY,
              red for FALLBACK
            - status: red for 5xx, yellow for 4xx
            - used_fallback: yellow when true
            - provider / engine: magenta
        """
        if key == "provider_used":
            return {
                "PRIMARY": Colors.GREEN,
                "SECONDARY": Colors.YELLOW,
                "FALLBACK": Colors.RED,
            }.get(str(value), Colors.DIM)

        if key == "status" and isinstance(value, int):
            if value >= 500:
                return Colors.RED
            if value >= 400:
                return Colors.YELLOW
            return Colors.GREEN

        if key == "used_fallback" and value is True:
            return Colors.YELLOW

        if key in ("provider", "engine"):
            return Colors.MAGENTA

        return Colors.DIM
