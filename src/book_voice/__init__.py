"""
book-voice: Text-to-Speech Relay Service.

A small HTTP relay that turns text into a downloadable audio file by handing
it to external text-to-speech providers. Providers are tried in order until
one answers; if every provider fails, a static placeholder clip is returned
so callers always get something playable.

Providers:
    - speech_api: Commercial speech API (bearer token), with a local host
      retried when the remote endpoint cannot be reached
    - translate: Translation-engine TTS endpoint (public, MP3 output)
    - placeholder: Built-in silent MP3 frame, used when the chain is exhausted

Key Features:
    - Ordered, config-driven provider chain (/tts/generate)
    - In-memory audio store with a one-hour retention sweep (/download, /info)
    - Custom voice uploads kept in an in-memory registry (/voice/upload)
    - Prometheus metrics (/metrics)

Example Usage:
    >>> from book_voice.core.config import Settings
    >>> from book_voice.services import VoiceService, GenerateRequest
    >>>
    >>> service = VoiceService(Settings(raw={}))
    >>> result = await service.generate(GenerateRequest(text="Hola mundo"), "req-1")
    >>> result.record.id
    'audio_1700000000000'
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
