"""
Provider Adapter Base Class.

This module provides:
    - BaseProvider: Base class every provider adapter inherits from
    - ProviderAudio: Normalized synthesis result (bytes + content type)
    - ProviderVoiceInfo: Normalized voice registration result
    - ProviderError: Normalized failure, carrying the HTTP status if any

A provider adapter wraps exactly one external HTTP API. It translates a
text + voice request into that API's call and returns either a
ProviderAudio or raises ProviderError. Adapters never fall back to other
providers; that is the orchestrator's job. The only exception is the
speech API adapter's own local-host retry (see speech_api.py).

Implementing a New Provider:
    1. Create providers/<name>.py
    2. Inherit from BaseProvider and set ``name``
    3. Implement synthesize() (and upload_voice() if supported)
    4. Register it in providers/__init__.py build_provider()
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from book_voice.core.logging import get_logger

CONTENT_TYPE_WAV = "audio/wav"
CONTENT_TYPE_MPEG = "audio/mpeg"


@dataclass(frozen=True)
class ProviderAudio:
    """
    Audio returned by a provider.

    Attributes:
        audio_bytes: Raw audio payload.
        content_type: "audio/wav" or "audio/mpeg".
        engine: Engine label reported to clients (e.g. "speech_api").
        via_secondary: True when a provider answered from its secondary
            host instead of its primary endpoint.
        voice_used: Voice the provider actually spoke with.
    """
    audio_bytes: bytes
    content_type: str
    engine: str
    via_secondary: bool = False
    voice_used: str = ""


@dataclass(frozen=True)
class ProviderVoiceInfo:
    """
    A voice registered with a provider.

    Attributes:
        voice_id: Provider-side identifier to pass as the voice selector.
        name: Display name echoed by the provider.
        engine: Engine label of the provider that accepted the voice.
    """
    voice_id: str
    name: str
    engine: str


class ProviderError(Exception):
    """
    Normalized provider failure.

    Attributes:
        provider: Name of the adapter that failed.
        message: Human-readable description.
        status: HTTP status code, or None when no response was received.
        connection_failed: True when the host could not be reached at all.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status: Optional[int] = None,
        connection_failed: bool = False,
    ):
        self.provider = provider
        self.message = message
        self.status = status
        self.connection_failed = connection_failed
        super().__init__(f"{provider}: {message}")

    @property
    def kind(self) -> str:
        """Failure category for metrics: connection, status or error."""
        if self.connection_failed:
            return "connection"
        if self.status is not None:
            return "status"
        return "error"


class BaseProvider:
    """
    Base class for provider adapters.

    Subclasses implement synthesize() and, if the remote API supports it,
    upload_voice(). All adapters share one httpx.AsyncClient owned by the
    service, so connection pooling and the timeout are configured once.

    Attributes:
        name: Adapter identifier used in config, logs and metrics.
        supports_upload: Whether upload_voice() is implemented.
    """
    name: str = "base"
    supports_upload: bool = False

    def __init__(self, client: httpx.AsyncClient):
        self.client = client
        self.logger = get_logger(f"book-voice.provider.{self.name}")

    async def synthesize(self, text: str, voice: str) -> ProviderAudio:
        """
        Convert text to audio.

        Args:
            text: Non-empty text to speak.
            voice: Provider voice selector.

        Raises:
            ProviderError: On any failure.
        """
        raise NotImplementedError

    async def upload_voice(
        self,
        audio_bytes: bytes,
        name: str,
        filename: str = "voice.wav",
        content_type: str = CONTENT_TYPE_WAV,
    ) -> ProviderVoiceInfo:
        """
        Register a voice sample with the provider.

        Raises:
            ProviderError: On any failure, or if the provider has no
                voice registration API.
        """
        raise ProviderError(self.name, "voice upload not supported")

    def describe(self) -> str:
        """Short description for health and CLI output."""
        return self.name
