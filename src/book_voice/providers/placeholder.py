"""
Placeholder audio served when every provider has failed.

A single silent MPEG-1 Layer III frame header followed by zero padding.
It is not meant to sound like anything; clients can play it without
errors and the response metadata marks it as a placeholder.
"""
from __future__ import annotations

from book_voice.providers.base import CONTENT_TYPE_MPEG, ProviderAudio

PLACEHOLDER_ENGINE = "placeholder"

# Frame sync + MPEG-1 Layer III, 128 kbit/s, 44.1 kHz; one 417-byte frame
PLACEHOLDER_AUDIO = b"\xff\xfb\x90\x64" + b"\x00" * 413


def placeholder_audio() -> ProviderAudio:
    return ProviderAudio(
        audio_bytes=PLACEHOLDER_AUDIO,
        content_type=CONTENT_TYPE_MPEG,
        engine=PLACEHOLDER_ENGINE,
        voice_used="none",
    )
