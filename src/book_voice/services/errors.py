"""
Service Error Types.

Every error the service raises on purpose derives from VoiceServiceError
and carries a machine-readable code from ErrorCode. The HTTP layer maps
codes to status codes (see api/routes.py) and serializes errors with
to_dict():

    {"ok": false, "error": "TEXT_TOO_LONG", "message": "...", "details": {...}}

Provider failures never appear here: the orchestrator swallows them and
falls through to the next provider.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    TEXT_REQUIRED = "TEXT_REQUIRED"                  # Missing or blank text
    TEXT_TOO_LONG = "TEXT_TOO_LONG"                  # Over generation.max_text_length
    VALIDATION_ERROR = "VALIDATION_ERROR"            # Malformed request body
    FILE_REQUIRED = "FILE_REQUIRED"                  # No voice file in upload
    FILE_TYPE_NOT_ALLOWED = "FILE_TYPE_NOT_ALLOWED"  # Not an accepted audio type
    FILE_TOO_LARGE = "FILE_TOO_LARGE"                # Over upload.max_bytes
    AUDIO_NOT_FOUND = "AUDIO_NOT_FOUND"
    VOICE_NOT_FOUND = "VOICE_NOT_FOUND"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VoiceServiceError(Exception):
    """
    Base exception for service errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(VoiceServiceError):
    """Raised when request input is missing or out of bounds."""

    def __init__(self, message: str, code: str = ErrorCode.VALIDATION_ERROR, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class UploadError(ValidationError):
    """Raised when an uploaded voice file is missing, too large or not audio."""

    def __init__(self, message: str, code: str = ErrorCode.FILE_TYPE_NOT_ALLOWED, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class NotFoundError(VoiceServiceError):
    """Raised when an audio or voice id is unknown."""

    def __init__(self, message: str, code: str = ErrorCode.AUDIO_NOT_FOUND, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class ProcessingError(VoiceServiceError):
    """Raised when a request cannot be completed for internal reasons."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PROCESSING_FAILED, details)
