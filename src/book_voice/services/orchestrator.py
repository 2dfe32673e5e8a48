"""
Fallback Orchestrator.

Walks an ordered list of provider adapters until one returns audio:

    speech_api (remote, then local host) → translate → placeholder

Each failing stage is logged, counted and swallowed; partial results are
never combined. When every adapter has failed the static placeholder clip
is returned, so generate() never raises a provider failure.

Provider Labels:
    PRIMARY    - first adapter answered from its remote endpoint
    SECONDARY  - first adapter's local host, or any later adapter
    FALLBACK   - placeholder audio

used_fallback is True for anything other than PRIMARY.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from book_voice.core.logging import get_logger, success, verbose, warn
from book_voice.core.metrics import metrics
from book_voice.providers.base import BaseProvider, ProviderAudio, ProviderError
from book_voice.providers.placeholder import placeholder_audio

_LOG = get_logger("book-voice.orchestrator")


class ProviderUsed(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"
    FALLBACK = "FALLBACK"


@dataclass
class ProviderAttempt:
    """One adapter call and how it ended."""
    provider: str
    ok: bool
    seconds: float
    status: Optional[int] = None
    error: Optional[str] = None


@dataclass
class AudioResult:
    """
    Outcome of walking the provider chain.

    Attributes:
        audio_bytes: Audio from the first adapter that succeeded, or the
            placeholder clip.
        content_type: "audio/wav" or "audio/mpeg".
        used_fallback: False only when the primary remote endpoint answered.
        provider_used: PRIMARY, SECONDARY or FALLBACK.
        engine: Engine label of the answering adapter.
        voice_used: Voice the answering adapter spoke with.
        attempts: Every adapter call made, in order.
    """
    audio_bytes: bytes
    content_type: str
    used_fallback: bool
    provider_used: ProviderUsed
    engine: str
    voice_used: str = ""
    attempts: List[ProviderAttempt] = field(default_factory=list)
    seconds: float = 0.0


class FallbackOrchestrator:
    """
    Tries each provider in order; never fails outward.

    Args:
        providers: Adapters in priority order. May be empty, in which case
            every request gets the placeholder.
    """

    def __init__(self, providers: Sequence[BaseProvider]):
        self._providers = list(providers)

    @property
    def providers(self) -> List[BaseProvider]:
        return list(self._providers)

    def _label(self, index: int, audio: ProviderAudio) -> ProviderUsed:
        if index == 0 and not audio.via_secondary:
            return ProviderUsed.PRIMARY
        return ProviderUsed.SECONDARY

    async def generate(self, text: str, voice: str) -> AudioResult:
        """
        Produce audio for non-empty text.

        Args:
            text: Validated text.
            voice: Provider voice selector.

        Returns:
            AudioResult; placeholder audio if every provider failed.
        """
        attempts: List[ProviderAttempt] = []
        t_start = time.perf_counter()

        for index, provider in enumerate(self._providers):
            verbose(_LOG, "provider_attempt", provider=provider.name, voice=voice)
            t0 = time.perf_counter()
            try:
                audio = await provider.synthesize(text, voice)
            except ProviderError as e:
                attempts.append(ProviderAttempt(provider.name, False, time.perf_counter() - t0,
                                                status=e.status, error=e.message))
                metrics.record_provider_failure(provider.name, e.kind)
                warn(_LOG, "provider_failed", provider=provider.name,
                     status=e.status, error=e.message)
                continue
            except Exception as e:
                attempts.append(ProviderAttempt(provider.name, False, time.perf_counter() - t0,
                                                error=f"{e.__class__.__name__}: {e}"))
                metrics.record_provider_failure(provider.name, "error")
                warn(_LOG, "provider_crashed", provider=provider.name,
                     error=f"{e.__class__.__name__}: {e}")
                continue

            attempts.append(ProviderAttempt(provider.name, True, time.perf_counter() - t0))
            label = self._label(index, audio)
            return self._finish(audio, label, attempts, t_start)

        warn(_LOG, "all_providers_failed", attempts=len(attempts))
        return self._finish(placeholder_audio(), ProviderUsed.FALLBACK, attempts, t_start)

    def _finish(
        self,
        audio: ProviderAudio,
        label: ProviderUsed,
        attempts: List[ProviderAttempt],
        t_start: float,
    ) -> AudioResult:
        elapsed = time.perf_counter() - t_start
        metrics.record_generation(label.value, audio.engine, elapsed, len(audio.audio_bytes))
        success(_LOG, "audio_ready", provider_used=label.value, engine=audio.engine,
                bytes=len(audio.audio_bytes), seconds=round(elapsed, 3))
        return AudioResult(
            audio_bytes=audio.audio_bytes,
            content_type=audio.content_type,
            used_fallback=label is not ProviderUsed.PRIMARY,
            provider_used=label,
            engine=audio.engine,
            voice_used=audio.voice_used,
            attempts=attempts,
            seconds=elapsed,
        )

    def describe(self) -> List[str]:
        return [p.describe() for p in self._providers] + ["placeholder"]
