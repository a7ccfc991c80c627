"""
Error Codes and Exceptions.

Every failure the queue can meet is represented by a VoiceQueueError
subclass carrying a stable error code. None of them is fatal to the
process: the pipeline logs them and keeps draining, and the registry
degrades to best-effort behaviour.

Taxonomy:
    - BackendError: Synthesis backend unreachable or returned an error
    - SynthesisError: audio_query/synthesis step rejected (BackendError)
    - PlaybackError: Player command missing or exited non-zero
    - LockUnavailableError: Registry lock not acquired within retry budget
    - CorruptStateError: Registry file unreadable (read as empty)
    - InvalidInputError: Empty text or speed outside 0.5-2.0

Example:
    >>> try:
    ...     await client.synthesize("テスト", 1, 1.0)
    ... except SynthesisError as e:
    ...     print(e.to_dict())
    {'ok': False, 'error': 'SYNTHESIS_FAILED', 'message': '...'}
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Standardized error codes for API responses.

    Used in VoiceQueueError exceptions and returned in API error bodies
    for consistent client handling.
    """
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"  # Backend down or erroring
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"        # audio_query/synthesis rejected
    PLAYBACK_FAILED = "PLAYBACK_FAILED"          # Player command failed
    LOCK_UNAVAILABLE = "LOCK_UNAVAILABLE"        # Registry lock contention
    CORRUPT_STATE = "CORRUPT_STATE"              # Registry file unreadable
    INVALID_INPUT = "INVALID_INPUT"              # Bad request data
    INTERNAL_ERROR = "INTERNAL_ERROR"            # Unexpected error


class VoiceQueueError(Exception):
    """
    Base exception for voice-queue errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class BackendError(VoiceQueueError):
    """Raised when the synthesis backend cannot serve a request."""
    def __init__(self, message: str, details: Optional[Dict] = None, code: str = ErrorCode.BACKEND_UNAVAILABLE):
        super().__init__(message, code, details)


class SynthesisError(BackendError):
    """Raised when the backend rejects the audio_query or synthesis step."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, details, code=ErrorCode.SYNTHESIS_FAILED)


class PlaybackError(VoiceQueueError):
    """Raised when the external player cannot play a payload."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PLAYBACK_FAILED, details)


class LockUnavailableError(VoiceQueueError):
    """Raised when the registry lock cannot be acquired within the retry budget."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.LOCK_UNAVAILABLE, details)


class CorruptStateError(VoiceQueueError):
    """Raised internally when the registry file cannot be parsed."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CORRUPT_STATE, details)


class InvalidInputError(VoiceQueueError):
    """Raised when a speech request has empty text or an out-of-range speed."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)
