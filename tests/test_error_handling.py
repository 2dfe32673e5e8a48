"""Tests for the service error hierarchy."""
from book_voice.services.errors import (
    ErrorCode,
    NotFoundError,
    ProcessingError,
    UploadError,
    ValidationError,
    VoiceServiceError,
)


class TestErrorHierarchy:
    """Subclasses carry sensible default codes."""

    def test_defaults(self):
        assert ValidationError("x").code == ErrorCode.VALIDATION_ERROR
        assert UploadError("x").code == ErrorCode.FILE_TYPE_NOT_ALLOWED
        assert NotFoundError("x").code == ErrorCode.AUDIO_NOT_FOUND
        assert ProcessingError("x").code == ErrorCode.PROCESSING_FAILED
        assert VoiceServiceError("x").code == ErrorCode.INTERNAL_ERROR

    def test_inheritance(self):
        assert issubclass(UploadError, ValidationError)
        for cls in (ValidationError, NotFoundError, ProcessingError):
            assert issubclass(cls, VoiceServiceError)


class TestToDict:
    """Tests for VoiceServiceError.to_dict()."""

    def test_without_details(self):
        err = ValidationError("Text is required", ErrorCode.TEXT_REQUIRED)
        assert err.to_dict() == {
            "ok": False,
            "error": "TEXT_REQUIRED",
            "message": "Text is required",
        }

    def test_with_details(self):
        err = NotFoundError("Voice not found: v1", ErrorCode.VOICE_NOT_FOUND, details={"voice_id": "v1"})
        data = err.to_dict()
        assert data["error"] == "VOICE_NOT_FOUND"
        assert data["details"] == {"voice_id": "v1"}

    def test_str_is_message(self):
        assert str(ProcessingError("boom")) == "boom"
