"""Tests for the voice registry."""
from book_voice.services.voice_registry import (
    PREDEFINED_VOICES,
    VoiceRegistry,
    VoiceStatus,
    VoiceType,
)


class TestPredefinedVoices:
    """The four built-in voices."""

    def test_ids(self):
        assert [v.id for v in PREDEFINED_VOICES] == ["female_1", "male_1", "female_en_1", "male_en_1"]

    def test_metadata(self):
        sofia = PREDEFINED_VOICES[0]
        assert sofia.display_name == "Sofía"
        assert sofia.gender == "female"
        assert sofia.language == "es"
        assert sofia.type is VoiceType.PREDEFINED
        assert sofia.status is VoiceStatus.READY


class TestVoiceRegistry:
    """Tests for VoiceRegistry."""

    def test_lookup_predefined(self, clock):
        registry = VoiceRegistry(clock=clock)
        assert registry.get("male_1").display_name == "Carlos"
        assert registry.get("nope") is None

    def test_register_custom(self, clock):
        registry = VoiceRegistry(clock=clock)
        voice = registry.register("Mine", original_name="me.wav", size_bytes=1234)

        assert voice.id == f"voice_{int(clock() * 1000)}"
        assert voice.type is VoiceType.CUSTOM
        assert voice.uploaded_at == clock()
        assert registry.get(voice.id) is voice
        assert registry.custom_count == 1
        assert len(registry) == 5

    def test_same_millisecond_ids_unique(self, clock):
        registry = VoiceRegistry(clock=clock)
        first = registry.register("a")
        second = registry.register("b")
        assert first.id != second.id

    def test_list_order(self, clock):
        registry = VoiceRegistry(clock=clock)
        registry.register("first")
        clock.advance(1)
        registry.register("second")

        names = [v.display_name for v in registry.list()]
        assert names[:4] == ["Sofía", "Carlos", "Emma", "James"]
        assert names[4:] == ["first", "second"]

    def test_selector_prefers_provider_id(self, clock):
        registry = VoiceRegistry(clock=clock)
        assert registry.register("a", provider_voice_id="prov-9").selector == "prov-9"
        assert registry.register("b").selector.startswith("voice_")


class TestVoiceRecordToDict:
    """Tests for VoiceRecord.to_dict()."""

    def test_predefined(self):
        data = PREDEFINED_VOICES[2].to_dict()
        assert data["id"] == "female_en_1"
        assert data["name"] == "Emma"
        assert data["type"] == "predefined"
        assert data["status"] == "ready"
        assert "original_name" not in data
        assert "provider_voice_id" not in data

    def test_custom(self, clock):
        data = VoiceRegistry(clock=clock).register("Mine", original_name="me.wav", size_bytes=10).to_dict()
        assert data["type"] == "custom"
        assert data["original_name"] == "me.wav"
        assert data["size_bytes"] == 10
