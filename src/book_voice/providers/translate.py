"""
Translation-Engine TTS Provider.

Uses the public translate_tts endpoint that browser clients call:

    GET {url}?ie=UTF-8&q=<text>&tl=es&client=tw-ob&total=1&idx=0&textlen=<n>

The response is an MP3 stream. Anything other than HTTP 200 with a
non-empty body is a failure.
"""
from __future__ import annotations

from typing import Dict

import httpx

from book_voice.core.config import TranslateConfig
from book_voice.core.logging import verbose
from book_voice.providers.base import CONTENT_TYPE_MPEG, BaseProvider, ProviderAudio, ProviderError


class TranslateProvider(BaseProvider):
    """
    Adapter for the translation-engine TTS endpoint.

    The voice selector is ignored: this endpoint only knows languages.
    """
    name = "translate"

    def __init__(self, client: httpx.AsyncClient, config: TranslateConfig):
        super().__init__(client)
        self._config = config

    def _params(self, text: str) -> Dict[str, str]:
        return {
            "ie": "UTF-8",
            "q": text,
            "tl": self._config.language,
            "client": self._config.client,
            "total": "1",
            "idx": "0",
            "textlen": str(len(text)),
        }

    async def synthesize(self, text: str, voice: str) -> ProviderAudio:
        verbose(self.logger, "translate_request", language=self._config.language, chars=len(text))

        buffer = bytearray()
        try:
            async with self.client.stream("GET", self._config.url, params=self._params(text)) as response:
                if response.status_code != 200:
                    raise ProviderError(
                        self.name,
                        f"translate endpoint returned HTTP {response.status_code}",
                        status=response.status_code,
                    )
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise ProviderError(self.name, f"cannot reach translate endpoint: {e}",
                                connection_failed=True) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"translate request failed: {e}") from e

        if not buffer:
            raise ProviderError(self.name, "translate endpoint returned an empty body", status=200)

        return ProviderAudio(
            audio_bytes=bytes(buffer),
            content_type=CONTENT_TYPE_MPEG,
            engine=self.name,
            voice_used=f"{self.name}-{self._config.language}",
        )

    def describe(self) -> str:
        return f"{self.name} ({self._config.url}, tl={self._config.language})"
