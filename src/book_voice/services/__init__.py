"""
book-voice Services Layer.

Business logic between the HTTP routes and the provider adapters.

Components:
    - voice_service.py: VoiceService facade (generation, download, voices, health)
    - orchestrator.py: FallbackOrchestrator walking the provider chain
    - audio_store.py: AudioStore and RetentionSweeper
    - voice_registry.py: VoiceRegistry with predefined voices
    - validators.py: Text and upload validation
    - errors.py: ErrorCode and the VoiceServiceError hierarchy
"""
from .errors import (
    ErrorCode,
    NotFoundError,
    ProcessingError,
    UploadError,
    ValidationError,
    VoiceServiceError,
)
from .voice_service import (
    GenerateRequest,
    GenerationResult,
    VoiceService,
)

__all__ = [
    "VoiceService",
    "GenerateRequest",
    "GenerationResult",
    "VoiceServiceError",
    "ValidationError",
    "UploadError",
    "NotFoundError",
    "ProcessingError",
    "ErrorCode",
]
