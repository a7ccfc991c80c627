"""
Request Context and Configuration State for Logging.

A ContextVar carries the request ID so log lines from one API call (and
the pipeline task it spawned) can be correlated. asyncio copies the
context into each task, so a task created while handling a request keeps
that request's ID.

Environment Variables:
    - VOICE_QUEUE_LOG_LEVEL: Override log level (1-4 or name)
    - VOICE_QUEUE_LOG_DIR: Directory for the JSONL log file
    - VOICE_QUEUE_JSONL_FILE: JSONL filename
    - VOICE_QUEUE_LOG_ROTATE_BYTES: Max log file size
    - VOICE_QUEUE_LOG_ROTATE_BACKUP: Number of backup files
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" outside of any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request ID of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set the request ID for log correlation in the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
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


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration from settings file and environment.

    Priority (highest first):
        1. VOICE_QUEUE_LOG_* environment variables
        2. logging section of the settings file
        3. Defaults
    """
    cfg: Dict[str, Any] = {}

    try:
        from voice_queue.core.config import load_settings
        settings = load_settings(missing_ok=True)
        cfg.update(settings.raw.get("logging", {}) or {})
    except Exception:
        # Unreadable settings must not prevent logging from starting
        pass

    if os.getenv("VOICE_QUEUE_LOG_LEVEL"):
        cfg["level"] = os.environ["VOICE_QUEUE_LOG_LEVEL"]
    if os.getenv("VOICE_QUEUE_LOG_DIR"):
        cfg["log_dir"] = os.environ["VOICE_QUEUE_LOG_DIR"]
    if os.getenv("VOICE_QUEUE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["VOICE_QUEUE_JSONL_FILE"]
    if os.getenv("VOICE_QUEUE_LOG_ROTATE_BYTES"):
        try:
            cfg["rotate_max_bytes"] = int(os.environ["VOICE_QUEUE_LOG_ROTATE_BYTES"])
        except ValueError:
            pass
    if os.getenv("VOICE_QUEUE_LOG_ROTATE_BACKUP"):
        try:
            cfg["rotate_backup_count"] = int(os.environ["VOICE_QUEUE_LOG_ROTATE_BACKUP"])
        except ValueError:
            pass

    return cfg
