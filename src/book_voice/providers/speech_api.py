"""
Primary Speech API Provider.

Calls an OpenAI-style speech endpoint:

    POST {base_url}/v1/audio/speech
    Authorization: Bearer <api_key>
    {"model": "tts-1", "input": "...", "voice": "nova",
     "response_format": "wav", "speed": 1.0}

and returns the binary body as-is.

Local Host Retry:
    When the remote endpoint cannot be reached at all (DNS failure,
    connection refused, connect timeout) the same request is sent, without
    the Authorization header, to ``local_host``. A remote endpoint that
    answers with an error status is NOT retried locally unless
    ``fallback_on_status`` is enabled; the failure goes straight back to
    the orchestrator, which moves on to the next provider.

Voice uploads follow the same remote-then-local shape, posting the sample
as the multipart field ``file`` to ``{base_url}/v1/voices``.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Tuple, TypeVar

import httpx

from book_voice.core.config import SpeechApiConfig
from book_voice.core.logging import verbose, warn
from book_voice.providers.base import (
    CONTENT_TYPE_MPEG,
    CONTENT_TYPE_WAV,
    BaseProvider,
    ProviderAudio,
    ProviderError,
    ProviderVoiceInfo,
)

T = TypeVar("T")

_CONTENT_TYPES = {
    "wav": CONTENT_TYPE_WAV,
    "mp3": CONTENT_TYPE_MPEG,
}

# Failures where no response was ever received from the host
_CONNECTION_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class SpeechApiProvider(BaseProvider):
    """
    Adapter for the primary commercial speech API.

    Args:
        client: Shared async HTTP client.
        config: Speech API settings (URLs, key, model, local host).
    """
    name = "speech_api"
    supports_upload = True

    def __init__(self, client: httpx.AsyncClient, config: SpeechApiConfig):
        super().__init__(client)
        self._config = config

    @property
    def config(self) -> SpeechApiConfig:
        return self._config

    def _headers(self, authenticated: bool) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if authenticated and self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _payload(self, text: str, voice: str) -> Dict[str, Any]:
        return {
            "model": self._config.model,
            "input": text,
            "voice": voice,
            "response_format": self._config.response_format,
            "speed": self._config.speed,
        }

    def _check(self, response: httpx.Response, host: str) -> None:
        if not response.is_success:
            raise ProviderError(
                self.name,
                f"{host} returned HTTP {response.status_code}",
                status=response.status_code,
            )

    async def _send(self, host: str, authenticated: bool, **request: Any) -> httpx.Response:
        """Issue one POST, converting transport failures to ProviderError."""
        try:
            return await self.client.post(headers=self._headers(authenticated), **request)
        except _CONNECTION_ERRORS as e:
            raise ProviderError(
                self.name,
                f"cannot reach {host}: {e.__class__.__name__}",
                connection_failed=True,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request to {host} failed: {e}") from e

    async def _remote_then_local(
        self,
        action: str,
        call: Callable[[str, bool], Awaitable[T]],
    ) -> Tuple[T, bool]:
        """
        Run ``call`` against the remote host, then the local host if allowed.

        Returns:
            Tuple of (result, used_local_host).
        """
        try:
            return await call(self._config.base_url, True), False
        except ProviderError as e:
            local = self._config.local_host
            retry = e.connection_failed or self._config.fallback_on_status
            if not local or not retry:
                raise
            warn(self.logger, "remote_failed_trying_local", action=action,
                 status=e.status, error=e.message, local_host=local)

        return await call(local, False), True

    async def synthesize(self, text: str, voice: str) -> ProviderAudio:
        async def call(host: str, authenticated: bool) -> bytes:
            verbose(self.logger, "speech_request", host=host, voice=voice, chars=len(text))
            response = await self._send(
                host,
                authenticated,
                url=f"{host}{self._config.speech_path}",
                json=self._payload(text, voice),
            )
            self._check(response, host)
            if not response.content:
                raise ProviderError(self.name, f"{host} returned an empty body",
                                    status=response.status_code)
            return response.content

        audio, used_local = await self._remote_then_local("synthesize", call)
        return ProviderAudio(
            audio_bytes=audio,
            content_type=_CONTENT_TYPES.get(self._config.response_format, CONTENT_TYPE_WAV),
            engine=f"{self.name}_local" if used_local else self.name,
            via_secondary=used_local,
            voice_used=voice,
        )

    async def upload_voice(
        self,
        audio_bytes: bytes,
        name: str,
        filename: str = "voice.wav",
        content_type: str = CONTENT_TYPE_WAV,
    ) -> ProviderVoiceInfo:
        async def call(host: str, authenticated: bool) -> Dict[str, Any]:
            verbose(self.logger, "voice_upload_request", host=host, bytes=len(audio_bytes))
            response = await self._send(
                host,
                authenticated,
                url=f"{host}{self._config.voice_path}",
                files={"file": (filename, audio_bytes, content_type)},
                data={"name": name},
            )
            self._check(response, host)
            try:
                body = response.json()
            except ValueError as e:
                raise ProviderError(self.name, f"{host} returned invalid JSON",
                                    status=response.status_code) from e
            if not isinstance(body, dict):
                raise ProviderError(self.name, f"{host} returned an unexpected body",
                                    status=response.status_code)
            return body

        body, used_local = await self._remote_then_local("upload_voice", call)
        voice_id = body.get("voice_id") or body.get("id")
        if not voice_id:
            raise ProviderError(self.name, "voice upload response has no voice id")
        return ProviderVoiceInfo(
            voice_id=str(voice_id),
            name=str(body.get("name") or name),
            engine=f"{self.name}_local" if used_local else self.name,
        )

    def describe(self) -> str:
        local = self._config.local_host or "none"
        return f"{self.name} ({self._config.base_url}, local={local})"
