"""
Tests for error classes.

Tests cover:
- ErrorCode values
- VoiceQueueError serialization (to_dict)
- Subclass codes and inheritance
- Details preservation
"""
import pytest

from voice_queue.core.errors import (
    BackendError,
    CorruptStateError,
    ErrorCode,
    InvalidInputError,
    LockUnavailableError,
    PlaybackError,
    SynthesisError,
    VoiceQueueError,
)


class TestErrorCode:

    @pytest.mark.parametrize("name", [
        "BACKEND_UNAVAILABLE",
        "SYNTHESIS_FAILED",
        "PLAYBACK_FAILED",
        "LOCK_UNAVAILABLE",
        "CORRUPT_STATE",
        "INVALID_INPUT",
        "INTERNAL_ERROR",
    ])
    def test_code_value_matches_name(self, name):
        assert getattr(ErrorCode, name) == name


class TestVoiceQueueError:
    """Tests for the base exception."""

    def test_defaults(self):
        err = VoiceQueueError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.code == ErrorCode.INTERNAL_ERROR
        assert err.details == {}

    def test_to_dict_without_details(self):
        assert VoiceQueueError("boom").to_dict() == {
            "ok": False,
            "error": "INTERNAL_ERROR",
            "message": "boom",
        }

    def test_to_dict_with_details(self):
        err = VoiceQueueError("boom", details={"voice_id": 3})
        assert err.to_dict()["details"] == {"voice_id": 3}


class TestSubclasses:

    @pytest.mark.parametrize("cls, code", [
        (BackendError, ErrorCode.BACKEND_UNAVAILABLE),
        (SynthesisError, ErrorCode.SYNTHESIS_FAILED),
        (PlaybackError, ErrorCode.PLAYBACK_FAILED),
        (LockUnavailableError, ErrorCode.LOCK_UNAVAILABLE),
        (CorruptStateError, ErrorCode.CORRUPT_STATE),
        (InvalidInputError, ErrorCode.INVALID_INPUT),
    ])
    def test_code_and_base(self, cls, code):
        err = cls("failed", details={"k": "v"})
        assert err.code == code
        assert err.details == {"k": "v"}
        assert isinstance(err, VoiceQueueError)

    def test_synthesis_error_is_backend_error(self):
        """Callers handling BackendError also see rejected synthesis steps."""
        with pytest.raises(BackendError) as exc_info:
            raise SynthesisError("audio_query rejected", details={"stage": "audio_query"})
        assert exc_info.value.code == ErrorCode.SYNTHESIS_FAILED
        assert exc_info.value.to_dict()["details"]["stage"] == "audio_query"
