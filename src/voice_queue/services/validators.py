"""
Input Validation for Speech Requests.

Checks say() arguments before any synthesis or registry work so that bad
requests fail fast with an INVALID_INPUT error instead of surfacing later
as a logged pipeline failure.

Validation Rules:
    - Text: Required (non-blank), max 4000 characters
    - Voice id: Optional, non-negative integer
    - Speed: Optional, 0.5-2.0

Usage:
    text = validate_text(request.text)
    speed = validate_speed(request.speed)
"""
from __future__ import annotations

from typing import Optional

from voice_queue.core.config import Defaults
from voice_queue.core.errors import InvalidInputError

MAX_TEXT_LENGTH = 4000


def validate_text(text: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Validate text input.

    Returns:
        Stripped text.

    Raises:
        InvalidInputError: Text is blank or too long.
    """
    if not text or not text.strip():
        raise InvalidInputError("Text is required", details={"field": "text"})

    text = text.strip()
    if len(text) > max_length:
        raise InvalidInputError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            details={"field": "text"},
        )
    return text


def validate_voice_id(voice_id: Optional[int]) -> Optional[int]:
    if voice_id is None:
        return None
    message = f"voice_id must be a non-negative integer, got {voice_id!r}"
    if isinstance(voice_id, bool):
        raise InvalidInputError(message, details={"field": "voice_id"})
    try:
        value = int(voice_id)
    except (TypeError, ValueError):
        raise InvalidInputError(message, details={"field": "voice_id"})
    if value < 0:
        raise InvalidInputError(message, details={"field": "voice_id"})
    return value


def validate_speed(speed: Optional[float]) -> Optional[float]:
    """Reject speeds outside the range the engine accepts."""
    if speed is None:
        return None
    try:
        speed = float(speed)
    except (TypeError, ValueError):
        raise InvalidInputError(f"speed must be a number, got {speed!r}", details={"field": "speed"})
    if not (Defaults.TTS_MIN_SPEED <= speed <= Defaults.TTS_MAX_SPEED):
        raise InvalidInputError(
            f"speed must be between {Defaults.TTS_MIN_SPEED} and {Defaults.TTS_MAX_SPEED}, got {speed}",
            details={"field": "speed"},
        )
    return speed
