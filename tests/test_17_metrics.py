"""Tests for Prometheus metrics."""
from __future__ import annotations

from book_voice.core.metrics import VoiceMetrics, metrics


class TestVoiceMetrics:
    """Each VoiceMetrics owns a private registry."""

    def test_global_instance(self):
        assert isinstance(metrics, VoiceMetrics)

    def test_record_generation(self):
        m = VoiceMetrics()
        m.record_generation("SECONDARY", "translate", duration=0.8, audio_bytes=5120)

        value = m.registry.get_sample_value(
            "voice_generate_requests_total", {"provider_used": "SECONDARY", "engine": "translate"}
        )
        assert value == 1
        assert m.registry.get_sample_value("voice_audio_bytes_total") == 5120
        assert m.registry.get_sample_value("voice_placeholder_served_total") == 0
        assert m.registry.get_sample_value("voice_generate_duration_seconds_count") == 1

    def test_placeholder_counted(self):
        m = VoiceMetrics()
        m.record_generation("FALLBACK", "placeholder", duration=0.1, audio_bytes=417)
        assert m.registry.get_sample_value("voice_placeholder_served_total") == 1

    def test_provider_failures(self):
        m = VoiceMetrics()
        m.record_provider_failure("speech_api", "connection")
        m.record_provider_failure("speech_api", "connection")
        assert m.registry.get_sample_value(
            "voice_provider_failures_total", {"provider": "speech_api", "kind": "connection"}
        ) == 2

    def test_uploads(self):
        m = VoiceMetrics()
        m.record_upload("accepted")
        m.record_upload("rejected")
        assert m.registry.get_sample_value("voice_uploads_total", {"outcome": "accepted"}) == 1

    def test_store_gauge_and_evictions(self):
        m = VoiceMetrics()
        m.set_stored_audios(3)
        m.record_evictions(2)
        m.record_evictions(0)
        assert m.registry.get_sample_value("voice_stored_audios") == 3
        assert m.registry.get_sample_value("voice_evicted_audios_total") == 2

    def test_metrics_response(self):
        m = VoiceMetrics()
        m.record_upload("accepted")
        content, content_type = m.get_metrics_response()
        assert b"voice_uploads_total" in content
        assert content_type.startswith("text/plain")
