"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for files and log shippers
    ColoredConsoleFormatter: human-readable line for the terminal

Output Examples:
    JSONL:
        {"ts":"2026-01-15T14:30:05+09:00","level":2,"tag":"INFO","message":"task_enqueued","request_id":"ab12cd34","extra":{"voice_id":47}}

    Console:
        14:30:05 [ INFO  ] (ab12cd34) task_enqueued voice_id=47 pending=1
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


def _paint(text: str, color: str) -> str:
    # Read the flag at call time so configure_logging() and tests can flip it
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines.

    Fields: ts, level (1-4), tag, message, request_id and, when present,
    event, seconds and extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).astimezone().isoformat()

        payload: Dict[str, Any] = {
            "ts": ts,
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

    Timing is green under 0.5s, yellow under 3s, red above. Playback of a
    sentence normally takes seconds, so the thresholds are looser than
    for request latency.
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
                parts.append(_paint(f"{k}={v}", self._field_color(k)))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str) -> str:
        if key in ("error", "reason"):
            return Colors.RED
        if key in ("voice_id", "voice_ids"):
            return Colors.MAGENTA
        if key in ("pending", "status"):
            return Colors.CYAN
        return Colors.DIM
