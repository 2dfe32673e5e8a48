"""
Input Validation for the Relay.

Validation happens before any provider is called, so a rejected request
never creates an audio record or reaches an external API.

Validation Rules:
    - Text: Required, non-blank, at most generation.max_text_length
      characters (0 disables the limit)
    - Voice file: Required, at most upload.max_bytes, and both the file
      extension and the MIME type must name an accepted audio format

Error codes follow the {FIELD}_{PROBLEM} pattern: TEXT_REQUIRED,
TEXT_TOO_LONG, FILE_REQUIRED, FILE_TOO_LARGE, FILE_TYPE_NOT_ALLOWED.

Usage:
    from book_voice.services.validators import validate_text, validate_voice_upload

    text = validate_text(request.text, max_length=500_000)
    ext = validate_voice_upload("me.wav", "audio/wav", 1024, max_bytes=50 * 1024 * 1024)
"""
from __future__ import annotations

from pathlib import PurePath
from typing import Iterable, Optional

from book_voice.core.config import Defaults
from book_voice.core.logging import get_logger, warn
from book_voice.services.errors import ErrorCode, UploadError, ValidationError

_LOG = get_logger("book-voice.validators")

# MIME types that name an accepted format without containing its extension
MIME_ALIASES = {
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
}


def validate_text(text: Optional[str], max_length: int = Defaults.GENERATION_MAX_TEXT_LENGTH) -> str:
    """
    Validate text input.

    The limit applies to the text as received, surrounding whitespace
    included.

    Args:
        text: Input text.
        max_length: Maximum allowed length; 0 means unbounded.

    Returns:
        The text with surrounding whitespace removed.

    Raises:
        ValidationError: If validation fails.
    """
    if not text or not text.strip():
        raise ValidationError("Text is required", ErrorCode.TEXT_REQUIRED)

    if max_length and len(text) > max_length:
        raise ValidationError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            ErrorCode.TEXT_TOO_LONG,
            details={"characters": len(text), "max_length": max_length},
        )

    return text.strip()


def _mime_allowed(content_type: str, allowed: Iterable[str]) -> bool:
    mime = content_type.split(";", 1)[0].strip().lower()
    if not mime:
        return False
    if mime in MIME_ALIASES:
        return MIME_ALIASES[mime] in allowed
    return any(token in mime for token in allowed)


def validate_voice_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    max_bytes: int = Defaults.UPLOAD_MAX_BYTES,
    allowed_extensions: Iterable[str] = Defaults.UPLOAD_ALLOWED_EXTENSIONS,
) -> str:
    """
    Validate an uploaded voice sample.

    Args:
        filename: Client-supplied file name.
        content_type: Client-supplied MIME type.
        size: File size in bytes.
        max_bytes: Maximum accepted size.
        allowed_extensions: Accepted extensions without the dot.

    Returns:
        The normalized file extension (e.g. "wav").

    Raises:
        UploadError: If the file is missing, too large or not audio.
    """
    if not filename:
        raise UploadError("No voice file provided", ErrorCode.FILE_REQUIRED)

    allowed = tuple(allowed_extensions)
    ext = PurePath(filename).suffix.lower().lstrip(".")

    if ext not in allowed or not _mime_allowed(content_type or "", allowed):
        warn(_LOG, "upload_type_rejected", filename=filename, content_type=content_type)
        raise UploadError(
            f"Only audio files are allowed ({', '.join(allowed)})",
            ErrorCode.FILE_TYPE_NOT_ALLOWED,
            details={"filename": filename, "content_type": content_type},
        )

    if size > max_bytes:
        raise UploadError(
            f"File too large (maximum {max_bytes // (1024 * 1024)}MB)",
            ErrorCode.FILE_TOO_LARGE,
            details={"size_bytes": size, "max_bytes": max_bytes},
        )

    return ext
