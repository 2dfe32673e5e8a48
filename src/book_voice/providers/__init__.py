"""
Provider adapters and the config-driven chain factory.

Usage:
    from book_voice.providers import build_chain

    async with httpx.AsyncClient(timeout=30.0) as client:
        chain = build_chain(config.providers, client)
        audio = await chain[0].synthesize("Hola", "nova")
"""
from __future__ import annotations

from typing import List

import httpx

from book_voice.core.config import ProvidersConfig
from book_voice.providers.base import (
    CONTENT_TYPE_MPEG,
    CONTENT_TYPE_WAV,
    BaseProvider,
    ProviderAudio,
    ProviderError,
    ProviderVoiceInfo,
)
from book_voice.providers.placeholder import PLACEHOLDER_AUDIO, PLACEHOLDER_ENGINE, placeholder_audio


def build_provider(name: str, config: ProvidersConfig, client: httpx.AsyncClient) -> BaseProvider:
    """
    Create one provider adapter by name.

    Raises:
        ValueError: If name is not a known provider.
    """
    name = name.strip().lower()

    if name == "speech_api":
        from book_voice.providers.speech_api import SpeechApiProvider
        return SpeechApiProvider(client, config.speech_api)

    if name == "translate":
        from book_voice.providers.translate import TranslateProvider
        return TranslateProvider(client, config.translate)

    raise ValueError(f"Unknown provider: {name}")


def build_chain(config: ProvidersConfig, client: httpx.AsyncClient) -> List[BaseProvider]:
    """Create the adapters listed in ``config.chain``, in order."""
    return [build_provider(name, config, client) for name in config.chain]


__all__ = [
    "BaseProvider",
    "ProviderAudio",
    "ProviderError",
    "ProviderVoiceInfo",
    "CONTENT_TYPE_MPEG",
    "CONTENT_TYPE_WAV",
    "PLACEHOLDER_AUDIO",
    "PLACEHOLDER_ENGINE",
    "placeholder_audio",
    "build_provider",
    "build_chain",
]
