"""
API Request/Response Schemas.

Pydantic models for the JSON endpoints. ``text`` is optional at the schema
level so that a missing or blank text reaches the service validator and
gets the TEXT_REQUIRED error code instead of a generic schema error.

Example Request:
    {
        "text": "Hola mundo",
        "voice_type": "female",
        "voice_id": null
    }
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class TTSGenerateRequest(BaseModel):
    """
    POST /tts/generate request body.

    Attributes:
        text: Text to speak (required; length limit from settings).
        voice_type: "female" or "male" (mapped through providers.voice_map),
            or a provider voice name. Defaults to the configured type.
        voice_id: Predefined or uploaded voice id; overrides voice_type.
    """
    text: str | None = Field(
        default=None,
        description="Text to convert to speech"
    )
    voice_type: str | None = Field(
        default=None,
        max_length=100,
        description="Voice type (female, male) or provider voice name"
    )
    voice_id: str | None = Field(
        default=None,
        max_length=100,
        description="Predefined or uploaded voice id"
    )


class AudioInfo(BaseModel):
    status: str
    duration_minutes: int
    file_size_mb: float | None = None
    format: str | None = None
    sample_rate: str
    quality: str
    voice_used: str | None = None
    engine: str | None = None
    used_fallback: bool


class TextStats(BaseModel):
    characters: int
    words: int
    estimated_duration: str


class GenerateResponse(BaseModel):
    """
    POST /tts/generate response body.

    Example Response:
        {
            "success": true,
            "audio_id": "audio_1736950205123",
            "message": "Audio generated successfully",
            "audio_info": {"duration_minutes": 1, "format": "mp3", ...},
            "download_url": "/download/audio_1736950205123",
            "text_stats": {"characters": 10, "words": 2, "estimated_duration": "1 minutes"}
        }
    """
    success: bool
    audio_id: str
    message: str
    audio_info: AudioInfo
    download_url: str
    text_stats: TextStats
