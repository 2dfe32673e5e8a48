"""Shared fixtures: fake clock, stub providers, service and app factories."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from book_voice.api.dependencies import get_settings, get_voice_service
from book_voice.core.config import Settings
from book_voice.main import create_app
from book_voice.providers.base import (
    CONTENT_TYPE_WAV,
    BaseProvider,
    ProviderAudio,
    ProviderError,
    ProviderVoiceInfo,
)
from book_voice.services.voice_service import VoiceService, reset_service


class FakeClock:
    """Manually advanced clock for retention tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider(BaseProvider):
    """
    In-process provider with scripted behaviour.

    Args:
        name: Adapter name reported in logs and results.
        audio: Bytes returned by synthesize().
        error: Exception raised by synthesize() instead of returning.
        via_secondary: Pretend the audio came from a secondary host.
        delay: Seconds to sleep before answering.
        upload_error: Exception raised by upload_voice().
    """

    def __init__(
        self,
        name: str = "stub",
        audio: bytes = b"RIFF" + b"\x00" * 60,
        content_type: str = CONTENT_TYPE_WAV,
        error: Optional[Exception] = None,
        via_secondary: bool = False,
        delay: float = 0.0,
        supports_upload: bool = False,
        upload_error: Optional[Exception] = None,
    ):
        self.name = name
        super().__init__(client=None)
        self.audio = audio
        self.content_type = content_type
        self.error = error
        self.via_secondary = via_secondary
        self.delay = delay
        self.supports_upload = supports_upload
        self.upload_error = upload_error
        self.calls: List[Tuple[str, str]] = []
        self.uploads: List[Dict[str, Any]] = []

    async def synthesize(self, text: str, voice: str) -> ProviderAudio:
        self.calls.append((text, voice))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderAudio(
            audio_bytes=self.audio,
            content_type=self.content_type,
            engine=self.name,
            via_secondary=self.via_secondary,
            voice_used=voice,
        )

    async def upload_voice(self, audio_bytes, name, filename="voice.wav", content_type=CONTENT_TYPE_WAV):
        self.uploads.append({"bytes": len(audio_bytes), "name": name, "filename": filename})
        if self.upload_error is not None:
            raise self.upload_error
        return ProviderVoiceInfo(voice_id=f"prov-{name}", name=name, engine=self.name)


def failing(name: str, status: Optional[int] = 503) -> StubProvider:
    """A stub provider that always fails with ProviderError."""
    return StubProvider(name=name, error=ProviderError(name, "scripted failure", status=status))


def make_settings(**sections: Any) -> Settings:
    """Settings with quiet logging plus the given top-level sections."""
    raw: Dict[str, Any] = {"logging": {"level": 1}}
    raw.update(sections)
    return Settings(raw=raw)


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_service()
    get_settings.cache_clear()
    yield
    reset_service()
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_service(clock):
    """Factory: VoiceService with stub providers and the fake clock."""

    def _make(providers=None, **sections: Any) -> VoiceService:
        if providers is None:
            providers = [StubProvider(name="speech_api")]
        return VoiceService(make_settings(**sections), clock=clock, providers=providers)

    return _make


@pytest.fixture
def client_for():
    """Factory: started TestClient serving the given VoiceService."""
    clients: List[TestClient] = []

    def _make(service: VoiceService) -> TestClient:
        app = create_app()
        app.dependency_overrides[get_voice_service] = lambda: service
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
