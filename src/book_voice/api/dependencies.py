"""
FastAPI Dependency Injection Providers.

    1. get_settings() - Loads and caches application configuration
    2. get_voice_service() - Creates/returns the singleton VoiceService

Both are singletons: every request shares one audio store, one voice
registry and one HTTP client pool.

Tests replace the service with ``app.dependency_overrides[get_voice_service]``;
the application lifespan honours the override as well (see main.py).
"""
from __future__ import annotations

from functools import lru_cache

from book_voice.core.config import Settings, load_settings
from book_voice.services.voice_service import VoiceService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The file is BOOK_VOICE_SETTINGS or config/settings.yaml; a missing
    file means defaults. Restart the process to pick up changes.
    """
    return load_settings()


def get_voice_service() -> VoiceService:
    """Get the singleton VoiceService instance."""
    return get_service(get_settings())
