"""
VoiceService - Relay Facade.

Single entry point used by the HTTP routes and the CLI. It owns every
stateful component and wires them together:

    Request → Validate → Resolve voice → Store (pending) → Provider chain → Store (ready)

Key Components:
    - FallbackOrchestrator: speech_api → translate → placeholder
    - AudioStore + RetentionSweeper: one-hour in-memory retention
    - VoiceRegistry: predefined and uploaded voices
    - httpx.AsyncClient: shared by every provider adapter

Generation Modes:
    Blocking (default): generate() returns once the audio is stored.
    Background (generation.background: true): generate() returns a pending
    record immediately and a tracked asyncio task fills it in. Downloads
    answer 202 until then. Pending tasks are cancelled by aclose().

Lifecycle:
    service = VoiceService(settings)
    await service.start()      # starts the retention sweeper
    ...
    await service.aclose()     # stops sweeper, cancels tasks, closes client

Example:
    >>> service = VoiceService(Settings(raw={}))
    >>> result = await service.generate(GenerateRequest(text="Hola mundo"), request_id="abc")
    >>> result.record.id
    'audio_1736950205123'
"""
from __future__ import annotations

import asyncio
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

import httpx

from book_voice import __version__
from book_voice.core.config import ServiceConfig, Settings
from book_voice.core.logging import error, get_logger, info, success, warn
from book_voice.core.metrics import metrics
from book_voice.providers import BaseProvider, ProviderError, build_chain
from book_voice.services.audio_store import AudioRecord, AudioStore, RetentionSweeper
from book_voice.services.errors import (
    ErrorCode,
    NotFoundError,
    ProcessingError,
    UploadError,
    ValidationError,
    VoiceServiceError,
)
from book_voice.services.orchestrator import AudioResult, FallbackOrchestrator, ProviderUsed
from book_voice.services.validators import validate_text, validate_voice_upload
from book_voice.services.voice_registry import VoiceRecord, VoiceRegistry, VoiceType

_LOG = get_logger("book-voice.service")

QUALITY_LABELS = {
    ProviderUsed.PRIMARY.value: "high",
    ProviderUsed.SECONDARY.value: "degraded",
    ProviderUsed.FALLBACK.value: "placeholder",
}


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass
class GenerateRequest:
    """
    Request for audio generation.

    Attributes:
        text: Text to speak (validated by the service).
        voice_type: "female" / "male" or a raw provider voice name.
            Defaults to generation.default_voice_type.
        voice_id: Predefined or uploaded voice id; takes precedence
            over voice_type.
    """
    text: Optional[str]
    voice_type: Optional[str] = None
    voice_id: Optional[str] = None


@dataclass
class GenerationResult:
    """
    Result of an accepted generation request.

    Attributes:
        record: The stored AudioRecord (pending in background mode).
        characters: Length of the text as submitted.
        words: Whitespace-separated word count.
        duration_minutes: Estimated spoken duration, rounded up.
    """
    record: AudioRecord
    characters: int
    words: int
    duration_minutes: int

    @property
    def pending(self) -> bool:
        return self.record.status == "pending"


# =============================================================================
# Main Service Class
# =============================================================================

class VoiceService:
    """
    Relay service: validation, provider chain, storage and voice registry.

    Args:
        settings: Application settings loaded from YAML/environment.
        clock: Time source for the store, registry and uptime.
        providers: Adapter chain override (tests). Built from
            providers.chain when omitted.
        client: Shared HTTP client override. When omitted the service
            creates one and closes it in aclose().
    """

    def __init__(
        self,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.time,
        providers: Optional[Sequence[BaseProvider]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._config = ServiceConfig.from_settings(settings)
        self._clock = clock
        self._started_at = clock()

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.providers.timeout_s)

        if providers is None:
            providers = build_chain(self._config.providers, self._client)
        self._orchestrator = FallbackOrchestrator(providers)

        self._store = AudioStore(retention_seconds=self._config.store.retention_seconds, clock=clock)
        self._sweeper = RetentionSweeper(self._store, self._config.store.sweep_interval_seconds)
        self._voices = VoiceRegistry(clock=clock)

        self._tasks: Set[asyncio.Task] = set()
        self._text_preview_chars = self._config.logging.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def store(self) -> AudioStore:
        return self._store

    @property
    def voices(self) -> VoiceRegistry:
        return self._voices

    @property
    def orchestrator(self) -> FallbackOrchestrator:
        return self._orchestrator

    @property
    def sweeper(self) -> RetentionSweeper:
        return self._sweeper

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the retention sweeper on the running loop."""
        self._sweeper.start()
        info(_LOG, "service_started", providers=",".join(self._orchestrator.describe()),
             background=self._config.generation.background)

    async def aclose(self) -> None:
        """Stop the sweeper, cancel background generations, close the client."""
        await self._sweeper.stop()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            info(_LOG, "background_tasks_cancelled", count=len(tasks))

        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # Generation
    # =========================================================================

    def resolve_voice(self, voice_type: Optional[str], voice_id: Optional[str]) -> str:
        """
        Pick the provider voice selector for a request.

        voice_id wins over voice_type. Predefined voices map through
        providers.voice_map by gender; uploaded voices use the id the
        provider assigned, if any. An unmapped voice_type is passed
        through unchanged.

        Raises:
            NotFoundError: If voice_id is not a known voice.
        """
        voice_map = self._config.providers.voice_map

        if voice_id:
            voice = self._voices.get(voice_id)
            if voice is None:
                raise NotFoundError(
                    f"Voice not found: {voice_id}",
                    ErrorCode.VOICE_NOT_FOUND,
                    details={"voice_id": voice_id},
                )
            if voice.type is VoiceType.PREDEFINED:
                return voice_map.get(voice.gender or "", voice.id)
            return voice.selector

        voice_type = (voice_type or self._config.generation.default_voice_type).strip()
        return voice_map.get(voice_type.lower(), voice_type)

    async def generate(self, request: GenerateRequest, request_id: str) -> GenerationResult:
        """
        Validate a request, store a record and run the provider chain.

        Args:
            request: Generation parameters.
            request_id: Request ID for tracing.

        Returns:
            GenerationResult with the stored record.

        Raises:
            ValidationError: Missing, blank or oversized text.
            NotFoundError: Unknown voice_id.
        """
        text = validate_text(request.text, self._config.generation.max_text_length)
        characters = len(request.text)
        voice = self.resolve_voice(request.voice_type, request.voice_id)

        record = self._store.put(AudioRecord(
            id=self._store.mint_id("audio"),
            source_text=request.text,
            generated_at=self._store.now(),
            voice_used=voice,
            request_id=request_id,
        ))
        info(_LOG, "generate_request", audio_id=record.id, chars=len(text), voice=voice,
             preview=text[:self._text_preview_chars])

        if self._config.generation.background:
            task = asyncio.create_task(self._fill(record.id, text, voice), name=f"generate-{record.id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            try:
                result = await self._orchestrator.generate(text, voice)
            except Exception as e:
                self._store.mark_failed(record.id, str(e))
                raise ProcessingError("Audio generation failed", details={"audio_id": record.id}) from e
            self._attach(record.id, result)

        return GenerationResult(
            record=record,
            characters=characters,
            words=len(text.split()),
            duration_minutes=self.estimate_minutes(characters),
        )

    def _attach(self, audio_id: str, result: AudioResult) -> None:
        record = self._store.attach_audio(
            audio_id,
            result.audio_bytes,
            content_type=result.content_type,
            provider_used=result.provider_used.value,
            used_fallback=result.used_fallback,
            engine=result.engine,
            voice_used=result.voice_used,
        )
        if record is None:
            warn(_LOG, "record_swept_before_attach", audio_id=audio_id)

    async def _fill(self, audio_id: str, text: str, voice: str) -> None:
        try:
            result = await self._orchestrator.generate(text, voice)
            self._attach(audio_id, result)
        except Exception as e:
            self._store.mark_failed(audio_id, str(e))
            error(_LOG, "background_generation_failed", audio_id=audio_id,
                  error=f"{e.__class__.__name__}: {e}")

    def estimate_minutes(self, characters: int) -> int:
        return math.ceil(characters / self._config.generation.chars_per_minute)

    # =========================================================================
    # Presentation
    # =========================================================================

    def audio_info(self, record: AudioRecord) -> Dict[str, Any]:
        """audio_info block of the generate response."""
        minutes = self.estimate_minutes(len(record.source_text))
        ready = record.status == "ready"
        return {
            "status": record.status,
            "duration_minutes": minutes,
            "file_size_mb": round(record.size_bytes / (1024 * 1024), 2) if ready else None,
            "format": record.extension if ready else None,
            "sample_rate": self._config.generation.sample_rate_label,
            "quality": QUALITY_LABELS.get(record.provider_used or "", "pending"),
            "voice_used": record.voice_used,
            "engine": record.engine,
            "used_fallback": record.used_fallback,
        }

    def describe_generation(self, result: GenerationResult) -> Dict[str, Any]:
        """Full JSON body for POST /tts/generate."""
        record = result.record
        return {
            "success": True,
            "audio_id": record.id,
            "message": "Audio generation started" if result.pending else "Audio generated successfully",
            "audio_info": self.audio_info(record),
            "download_url": f"/download/{record.id}",
            "text_stats": {
                "characters": result.characters,
                "words": result.words,
                "estimated_duration": f"{result.duration_minutes} minutes",
            },
        }

    # =========================================================================
    # Retrieval
    # =========================================================================

    def get_audio(self, audio_id: str) -> AudioRecord:
        """
        Look up a stored record.

        Returns the record even while pending; callers check ``status``.

        Raises:
            NotFoundError: Unknown or already swept id.
            ProcessingError: Background generation crashed.
        """
        record = self._store.get(audio_id)
        if record is None:
            raise NotFoundError(
                f"Audio not found: {audio_id}",
                ErrorCode.AUDIO_NOT_FOUND,
                details={"audio_id": audio_id},
            )
        if record.status == "failed":
            raise ProcessingError(
                f"Audio generation failed: {audio_id}",
                details={"audio_id": audio_id},
            )
        return record

    def get_info(self, audio_id: str) -> Dict[str, Any]:
        """JSON snapshot of a record without the audio bytes."""
        record = self._store.get(audio_id)
        if record is None:
            raise NotFoundError(
                f"Audio not found: {audio_id}",
                ErrorCode.AUDIO_NOT_FOUND,
                details={"audio_id": audio_id},
            )
        return {
            "audio_id": record.id,
            "status": record.status,
            "text": record.source_text,
            "characters": len(record.source_text),
            "content_type": record.content_type,
            "size_bytes": record.size_bytes,
            "generated_at": _iso(record.generated_at),
            "expires_at": _iso(self._store.expires_at(record)),
            "provider_used": record.provider_used,
            "used_fallback": record.used_fallback,
            "engine": record.engine,
            "voice_used": record.voice_used,
            "request_id": record.request_id,
            "error": record.error,
        }

    # =========================================================================
    # Voices
    # =========================================================================

    def _upload_provider(self) -> Optional[BaseProvider]:
        for provider in self._orchestrator.providers:
            if provider.supports_upload:
                return provider
        return None

    async def clone_voice(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
        name: Optional[str] = None,
        size: Optional[int] = None,
    ) -> VoiceRecord:
        """
        Validate an uploaded sample and register it as a custom voice.

        size is the declared upload size when the caller knows it before
        reading; otherwise the length of data is checked.

        The sample is also offered to the first provider that supports
        voice uploads; if that fails the voice is still registered, it
        just has no provider voice id.

        Raises:
            UploadError: Missing file, wrong type or too large.
        """
        upload_cfg = self._config.upload
        try:
            validate_voice_upload(
                filename,
                content_type,
                len(data) if size is None else size,
                max_bytes=upload_cfg.max_bytes,
                allowed_extensions=upload_cfg.allowed_extensions,
            )
        except UploadError:
            metrics.record_upload("rejected")
            raise

        display_name = (name or "").strip() or str(filename).rsplit(".", 1)[0]
        provider_voice_id: Optional[str] = None

        provider = self._upload_provider()
        if provider is not None:
            try:
                uploaded = await provider.upload_voice(data, display_name, filename=filename,
                                                       content_type=content_type)
                provider_voice_id = uploaded.voice_id
            except ProviderError as e:
                warn(_LOG, "provider_voice_upload_failed", provider=provider.name,
                     status=e.status, error=e.message)

        voice = self._voices.register(
            display_name,
            original_name=filename,
            size_bytes=len(data),
            provider_voice_id=provider_voice_id,
        )
        metrics.record_upload("accepted")
        success(_LOG, "voice_cloned", voice_id=voice.id, bytes=len(data),
                provider_voice_id=provider_voice_id)
        return voice

    def list_voices(self) -> List[Dict[str, Any]]:
        return [voice.to_dict() for voice in self._voices.list()]

    # =========================================================================
    # Health Check
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """
        Get health and status information.

        Returns a dictionary with:
            - status, timestamp, uptime and version
            - counts of stored audios and known voices
            - provider chain and retention window
        """
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self._clock() - self._started_at, 1),
            "version": __version__,
            "audios": len(self._store),
            "voices": len(self._voices),
            "custom_voices": self._voices.custom_count,
            "store": self._store.stats(),
            "providers": self._orchestrator.describe(),
            "retention_seconds": self._store.retention_seconds,
            "background": self._config.generation.background,
        }


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[VoiceService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> VoiceService:
    """
    Get or create the global VoiceService instance.

    Thread-safe lazy singleton. The service is created on first call
    and reused for subsequent calls.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = VoiceService(settings)
    return _service


def reset_service() -> None:
    """
    Reset the global service instance.

    Used primarily for testing to ensure clean state between tests.
    """
    global _service
    with _service_lock:
        _service = None


__all__ = [
    "VoiceService",
    "GenerateRequest",
    "GenerationResult",
    "ErrorCode",
    "VoiceServiceError",
    "ValidationError",
    "UploadError",
    "NotFoundError",
    "ProcessingError",
    "get_service",
    "reset_service",
]
