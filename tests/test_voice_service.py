"""
Tests for VoiceService.

Tests cover:
- generate() in blocking and background mode
- Voice resolution (voice_type, predefined and custom voice_id)
- Retrieval, info and expiry
- clone_voice() with and without a provider that accepts uploads
- Health info
"""
import asyncio

import pytest

from book_voice.providers import PLACEHOLDER_AUDIO, ProviderError
from book_voice.services.errors import ErrorCode, NotFoundError, ProcessingError, UploadError, ValidationError
from book_voice.services.voice_service import GenerateRequest, VoiceService, get_service, reset_service

from conftest import StubProvider, failing, make_settings


async def _wait_idle(service, attempts=100):
    for _ in range(attempts):
        if service.pending_tasks == 0:
            return
        await asyncio.sleep(0.01)


class TestGenerate:
    """Tests for generate() in blocking mode."""

    async def test_stores_ready_record(self, make_service):
        service = make_service()
        result = await service.generate(GenerateRequest(text="Hola mundo"), request_id="rid-1")

        record = result.record
        assert record.status == "ready"
        assert record.id.startswith("audio_")
        assert record.provider_used == "PRIMARY"
        assert record.used_fallback is False
        assert record.request_id == "rid-1"
        assert service.store.get(record.id) is record
        assert result.characters == 10
        assert result.words == 2
        assert result.duration_minutes == 1

    async def test_padded_text_counted_as_submitted(self, make_service):
        provider = StubProvider(name="speech_api")
        service = make_service(providers=[provider])
        result = await service.generate(GenerateRequest(text="  Hola mundo  "), request_id="r")
        assert result.record.source_text == "  Hola mundo  "
        assert result.characters == 14
        assert result.words == 2
        assert provider.calls == [("Hola mundo", "nova")]

    async def test_padding_over_limit_creates_no_record(self, make_service):
        service = make_service(generation={"max_text_length": 10})
        with pytest.raises(ValidationError) as exc:
            await service.generate(GenerateRequest(text="abcdefghij "), request_id="r")
        assert exc.value.code == ErrorCode.TEXT_TOO_LONG
        assert len(service.store) == 0

    async def test_rejected_text_creates_no_record(self, make_service):
        service = make_service(generation={"max_text_length": 5})
        with pytest.raises(ValidationError) as exc:
            await service.generate(GenerateRequest(text="Hola mundo"), request_id="r")
        assert exc.value.code == ErrorCode.TEXT_TOO_LONG
        assert len(service.store) == 0

    async def test_blank_text(self, make_service):
        with pytest.raises(ValidationError) as exc:
            await make_service().generate(GenerateRequest(text="   "), request_id="r")
        assert exc.value.code == ErrorCode.TEXT_REQUIRED

    async def test_all_providers_failing_stores_placeholder(self, make_service):
        service = make_service(providers=[failing("speech_api"), failing("translate")])
        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")

        assert result.record.audio_bytes == PLACEHOLDER_AUDIO
        assert result.record.provider_used == "FALLBACK"
        assert result.record.used_fallback is True

    async def test_duration_estimate(self, make_service):
        result = await make_service().generate(GenerateRequest(text="a" * 401), request_id="r")
        assert result.duration_minutes == 3

    async def test_words_count(self, make_service):
        result = await make_service().generate(GenerateRequest(text="uno  dos\ttres\ncuatro"), request_id="r")
        assert result.words == 4


class TestResolveVoice:
    """Tests for resolve_voice()."""

    def test_default_voice_type(self, make_service):
        assert make_service().resolve_voice(None, None) == "nova"

    def test_voice_type_mapping(self, make_service):
        service = make_service()
        assert service.resolve_voice("male", None) == "onyx"
        assert service.resolve_voice("Female", None) == "nova"

    def test_unmapped_voice_type_passes_through(self, make_service):
        assert make_service().resolve_voice("alloy", None) == "alloy"

    def test_predefined_voice_id(self, make_service):
        service = make_service()
        assert service.resolve_voice(None, "male_en_1") == "onyx"
        assert service.resolve_voice("male", "female_1") == "nova"

    def test_custom_voice_id(self, make_service):
        service = make_service()
        voice = service.voices.register("Mine", provider_voice_id="prov-1")
        assert service.resolve_voice(None, voice.id) == "prov-1"

    def test_unknown_voice_id(self, make_service):
        with pytest.raises(NotFoundError) as exc:
            make_service().resolve_voice(None, "voice_404")
        assert exc.value.code == ErrorCode.VOICE_NOT_FOUND
        assert exc.value.details == {"voice_id": "voice_404"}

    async def test_voice_reaches_provider(self, make_service):
        provider = StubProvider(name="speech_api")
        service = make_service(providers=[provider])
        await service.generate(GenerateRequest(text="Hola", voice_type="male"), request_id="r")
        assert provider.calls == [("Hola", "onyx")]


class TestRetrieval:
    """Tests for get_audio() and get_info()."""

    async def test_get_audio(self, make_service):
        service = make_service()
        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")
        assert service.get_audio(result.record.id) is result.record

    def test_unknown_audio(self, make_service):
        with pytest.raises(NotFoundError) as exc:
            make_service().get_audio("audio_1")
        assert exc.value.code == ErrorCode.AUDIO_NOT_FOUND
        assert exc.value.details == {"audio_id": "audio_1"}

    async def test_expired_audio(self, make_service, clock):
        service = make_service()
        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")

        clock.advance(3601)
        service.sweeper.run_once()

        with pytest.raises(NotFoundError):
            service.get_audio(result.record.id)

    async def test_info(self, make_service, clock):
        service = make_service()
        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")
        data = service.get_info(result.record.id)

        assert data["audio_id"] == result.record.id
        assert data["status"] == "ready"
        assert data["text"] == "Hola"
        assert data["provider_used"] == "PRIMARY"
        assert data["generated_at"].endswith("+00:00")
        assert "audio_bytes" not in data

    def test_info_unknown(self, make_service):
        with pytest.raises(NotFoundError):
            make_service().get_info("audio_1")


class TestDescribe:
    """Tests for the response body helpers."""

    async def test_describe_generation(self, make_service):
        service = make_service()
        result = await service.generate(GenerateRequest(text="Hola mundo"), request_id="r")
        body = service.describe_generation(result)

        assert body["success"] is True
        assert body["message"] == "Audio generated successfully"
        assert body["download_url"] == f"/download/{result.record.id}"
        assert body["text_stats"] == {"characters": 10, "words": 2, "estimated_duration": "1 minutes"}
        info = body["audio_info"]
        assert info["status"] == "ready"
        assert info["format"] == "wav"
        assert info["quality"] == "high"
        assert info["sample_rate"] == "44100Hz"
        assert info["voice_used"] == "nova"
        assert info["engine"] == "speech_api"

    async def test_degraded_quality(self, make_service):
        service = make_service(providers=[failing("speech_api"), StubProvider(name="translate")])
        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")
        assert service.audio_info(result.record)["quality"] == "degraded"


class TestBackgroundGeneration:
    """generation.background: true."""

    async def test_pending_then_ready(self, make_service):
        service = make_service(providers=[StubProvider(name="speech_api", delay=0.05)],
                               generation={"background": True})

        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")

        assert result.pending
        assert service.describe_generation(result)["message"] == "Audio generation started"
        assert service.get_audio(result.record.id).audio_bytes is None
        assert service.pending_tasks == 1

        await _wait_idle(service)

        assert service.pending_tasks == 0
        assert service.get_audio(result.record.id).status == "ready"
        await service.aclose()

    async def test_crash_marks_failed(self, make_service, monkeypatch):
        service = make_service(generation={"background": True})

        async def boom(text, voice):
            raise RuntimeError("orchestrator bug")

        monkeypatch.setattr(service.orchestrator, "generate", boom)

        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")
        await _wait_idle(service)

        assert result.record.status == "failed"
        with pytest.raises(ProcessingError):
            service.get_audio(result.record.id)
        await service.aclose()

    async def test_aclose_cancels_pending(self, make_service):
        service = make_service(providers=[StubProvider(name="speech_api", delay=30)],
                               generation={"background": True})
        result = await service.generate(GenerateRequest(text="Hola"), request_id="r")

        await service.aclose()
        await asyncio.sleep(0)

        assert service.pending_tasks == 0
        assert result.record.status == "pending"


class TestCloneVoice:
    """Tests for clone_voice()."""

    async def test_registers_voice(self, make_service, clock):
        service = make_service()
        voice = await service.clone_voice("me.wav", "audio/wav", b"RIFF" * 10, name="Mine")

        assert voice.display_name == "Mine"
        assert voice.original_name == "me.wav"
        assert voice.size_bytes == 40
        assert voice.provider_voice_id is None
        assert service.voices.get(voice.id) is voice
        assert len(service.list_voices()) == 5

    async def test_name_defaults_to_file_stem(self, make_service):
        voice = await make_service().clone_voice("narrator.take2.mp3", "audio/mpeg", b"ID3")
        assert voice.display_name == "narrator.take2"

    async def test_offered_to_upload_provider(self, make_service):
        provider = StubProvider(name="speech_api", supports_upload=True)
        service = make_service(providers=[provider])

        voice = await service.clone_voice("me.wav", "audio/wav", b"RIFF", name="Mine")

        assert provider.uploads == [{"bytes": 4, "name": "Mine", "filename": "me.wav"}]
        assert voice.provider_voice_id == "prov-Mine"
        assert voice.selector == "prov-Mine"

    async def test_provider_upload_failure_still_registers(self, make_service):
        provider = StubProvider(name="speech_api", supports_upload=True,
                                upload_error=ProviderError("speech_api", "rejected", status=400))
        service = make_service(providers=[provider])

        voice = await service.clone_voice("me.wav", "audio/wav", b"RIFF", name="Mine")

        assert voice.provider_voice_id is None
        assert service.voices.custom_count == 1

    async def test_rejected_upload(self, make_service):
        service = make_service()
        with pytest.raises(UploadError) as exc:
            await service.clone_voice("notes.txt", "text/plain", b"x")
        assert exc.value.code == ErrorCode.FILE_TYPE_NOT_ALLOWED
        assert service.voices.custom_count == 0

    async def test_declared_size_checked_without_data(self, make_service):
        service = make_service(upload={"max_bytes": 10})
        with pytest.raises(UploadError) as exc:
            await service.clone_voice("me.wav", "audio/wav", b"", size=11)
        assert exc.value.code == ErrorCode.FILE_TOO_LARGE
        assert service.voices.custom_count == 0


class TestHealth:
    def test_health_info(self, make_service):
        health = make_service().get_health_info()
        assert health["status"] == "healthy"
        assert health["audios"] == 0
        assert health["voices"] == 4
        assert health["custom_voices"] == 0
        assert health["providers"] == ["speech_api", "placeholder"]
        assert health["retention_seconds"] == 3600


class TestSingleton:
    def test_get_service_reuses_instance(self):
        settings = make_settings()
        first = get_service(settings)
        assert get_service(settings) is first
        reset_service()
        assert get_service(settings) is not first

    def test_default_chain_built_from_settings(self):
        service = VoiceService(make_settings(providers={"chain": ["translate"]}))
        assert [p.name for p in service.orchestrator.providers] == ["translate"]
