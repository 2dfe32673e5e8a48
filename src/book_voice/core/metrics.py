"""
Prometheus Metrics for the Relay.

Metrics Exposed:
    voice_generate_requests_total   - Generation requests by provider_used and engine
    voice_provider_failures_total   - Failed provider attempts by provider and kind
    voice_placeholder_served_total  - Requests answered with the placeholder clip
    voice_generate_duration_seconds - Time spent walking the provider chain
    voice_audio_bytes_total         - Audio bytes produced
    voice_uploads_total             - Voice uploads by outcome
    voice_stored_audios             - Records currently held by the audio store
    voice_evicted_audios_total      - Records removed by the retention sweep

Usage:
    from book_voice.core.metrics import metrics

    metrics.record_generation("SECONDARY", "translate", duration=0.8, audio_bytes=5120)
    metrics.record_provider_failure("speech_api", "connection")
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class VoiceMetrics:
    """
    Metric collection for the relay.

    Each instance owns a private CollectorRegistry so tests (and several
    apps in one process) never collide on metric names.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._generate_requests = Counter(
            "voice_generate_requests_total",
            "Generation requests by the provider that answered",
            ["provider_used", "engine"],
            registry=self._registry,
        )
        self._provider_failures = Counter(
            "voice_provider_failures_total",
            "Failed provider attempts",
            ["provider", "kind"],
            registry=self._registry,
        )
        self._placeholder_served = Counter(
            "voice_placeholder_served_total",
            "Requests answered with placeholder audio",
            registry=self._registry,
        )
        self._generate_duration = Histogram(
            "voice_generate_duration_seconds",
            "Time spent walking the provider chain",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes = Counter(
            "voice_audio_bytes_total",
            "Audio bytes produced",
            registry=self._registry,
        )
        self._uploads = Counter(
            "voice_uploads_total",
            "Voice uploads by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._stored_audios = Gauge(
            "voice_stored_audios",
            "Audio records currently stored",
            registry=self._registry,
        )
        self._evicted_audios = Counter(
            "voice_evicted_audios_total",
            "Audio records removed by the retention sweep",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_generation(
        self,
        provider_used: str,
        engine: str,
        duration: float,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a completed generation.

        Args:
            provider_used: "PRIMARY", "SECONDARY" or "FALLBACK".
            engine: Engine name that produced the audio.
            duration: Seconds spent in the provider chain.
            audio_bytes: Size of the produced audio.
        """
        self._generate_requests.labels(provider_used=provider_used, engine=engine).inc()
        self._generate_duration.observe(max(duration, 0.0))
        if provider_used == "FALLBACK":
            self._placeholder_served.inc()
        if audio_bytes > 0:
            self._audio_bytes.inc(audio_bytes)

    def record_provider_failure(self, provider: str, kind: str) -> None:
        """
        Record a failed provider attempt.

        Args:
            provider: Adapter name.
            kind: "connection", "status" or "error".
        """
        self._provider_failures.labels(provider=provider, kind=kind).inc()

    def record_upload(self, outcome: str) -> None:
        """Record a voice upload ("accepted" or "rejected")."""
        self._uploads.labels(outcome=outcome).inc()

    def set_stored_audios(self, count: int) -> None:
        self._stored_audios.set(count)

    def record_evictions(self, count: int) -> None:
        if count > 0:
            self._evicted_audios.inc(count)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance
metrics = VoiceMetrics()
