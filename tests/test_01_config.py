"""
Tests for configuration validation and defaults.

Tests cover:
- ServiceConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Missing sections use defaults
- load_settings() YAML and environment overrides
"""

import pytest

from book_voice.core.config import (
    ConfigValidationError,
    Defaults,
    ServiceConfig,
    Settings,
    load_settings,
)


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so teardown also removes values a .env file put there
    for name in ("HOST", "PORT", "TTS_API_KEY", "TTS_API_URL", "LOCAL_TTS_HOST", "BOOK_VOICE_SETTINGS"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestDefaults:
    """Tests for Defaults class values."""

    def test_store_defaults(self):
        """Records are kept for one hour."""
        assert Defaults.STORE_RETENTION_SECONDS == 3600

    def test_generation_defaults(self):
        assert Defaults.GENERATION_MAX_TEXT_LENGTH == 500_000
        assert Defaults.GENERATION_DEFAULT_VOICE_TYPE == "female"
        assert Defaults.GENERATION_BACKGROUND is False

    def test_upload_defaults(self):
        """50MB limit and the five audio extensions."""
        assert Defaults.UPLOAD_MAX_BYTES == 50 * 1024 * 1024
        assert set(Defaults.UPLOAD_ALLOWED_EXTENSIONS) == {"wav", "mp3", "m4a", "ogg", "flac"}

    def test_provider_defaults(self):
        assert Defaults.PROVIDERS_CHAIN == ("speech_api", "translate")
        assert Defaults.SPEECH_API_FALLBACK_ON_STATUS is False
        assert Defaults.SERVER_PORT == 8000


class TestServiceConfigFromSettings:
    """Tests for ServiceConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        """Missing sections fall back to Defaults."""
        config = ServiceConfig.from_settings(Settings(raw={}))

        assert config.server.port == 8000
        assert config.generation.max_text_length == 500_000
        assert config.store.retention_seconds == 3600
        assert config.providers.chain == ("speech_api", "translate")
        assert config.providers.voice_map == {"female": "nova", "male": "onyx"}
        assert config.providers.speech_api.local_host == "http://localhost:8880"
        assert config.logging.level == 2

    def test_null_sections_use_defaults(self):
        """A YAML section with no keys parses to None."""
        config = ServiceConfig.from_settings(Settings(raw={"store": None, "providers": None}))
        assert config.store.retention_seconds == 3600
        assert config.providers.chain == ("speech_api", "translate")

    def test_custom_values(self):
        config = ServiceConfig.from_settings(Settings(raw={
            "generation": {"max_text_length": 100, "background": True},
            "store": {"retention_seconds": 60, "sweep_interval_seconds": 5},
            "providers": {
                "chain": ["Translate"],
                "voice_map": {"female": "shimmer"},
                "speech_api": {"base_url": "https://tts.example.com/", "api_key": "sk-1"},
            },
        }))

        assert config.generation.max_text_length == 100
        assert config.generation.background is True
        assert config.store.retention_seconds == 60
        assert config.providers.chain == ("translate",)
        assert config.providers.voice_map == {"female": "shimmer", "male": "onyx"}
        assert config.providers.speech_api.base_url == "https://tts.example.com"
        assert config.providers.speech_api.api_key == "sk-1"

    def test_zero_max_text_length_allowed(self):
        """0 disables the length check."""
        config = ServiceConfig.from_settings(Settings(raw={"generation": {"max_text_length": 0}}))
        assert config.generation.max_text_length == 0

    def test_null_local_host_disables_retry(self):
        config = ServiceConfig.from_settings(Settings(raw={"providers": {"speech_api": {"local_host": None}}}))
        assert config.providers.speech_api.local_host is None

    def test_upload_extensions_normalized(self):
        config = ServiceConfig.from_settings(Settings(raw={"upload": {"allowed_extensions": [".WAV", "mp3"]}}))
        assert config.upload.allowed_extensions == ("wav", "mp3")

    def test_string_log_level(self):
        """String levels are mapped to 1-4."""
        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4

        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "info"}}))
        assert config.logging.level == 2


class TestValidation:
    """Invalid values raise ConfigValidationError."""

    @pytest.mark.parametrize("raw", [
        {"store": {"retention_seconds": 0}},
        {"store": {"sweep_interval_seconds": -1}},
        {"generation": {"max_text_length": -5}},
        {"generation": {"chars_per_minute": 0}},
        {"upload": {"max_bytes": 0}},
        {"upload": {"allowed_extensions": []}},
        {"providers": {"timeout_s": 0}},
        {"providers": {"speech_api": {"speed": 10}}},
        {"server": {"port": 70000}},
        {"logging": {"level": 9}},
    ])
    def test_invalid_values_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            ServiceConfig.from_settings(Settings(raw=raw))

    def test_unknown_provider_rejected(self):
        with pytest.raises(ConfigValidationError, match="unknown provider"):
            ServiceConfig.from_settings(Settings(raw={"providers": {"chain": ["speech_api", "espeak"]}}))


class TestSettings:
    """Tests for the Settings container."""

    def test_properties(self):
        settings = Settings(raw={"server": {"host": "127.0.0.1", "port": 9000},
                                 "providers": {"chain": ["translate"]}})
        assert settings.host == "127.0.0.1"
        assert settings.port == 9000
        assert settings.provider_chain == ["translate"]

    def test_property_defaults(self):
        settings = Settings(raw={})
        assert settings.port == 8000
        assert settings.provider_chain == ["speech_api", "translate"]

    def test_get_service_config(self):
        assert isinstance(Settings(raw={}).get_service_config(), ServiceConfig)


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_missing_file_gives_empty_settings(self, tmp_path, clean_env):
        clean_env.chdir(tmp_path)
        settings = load_settings(str(tmp_path / "nope.yaml"))
        assert settings.raw == {}

    def test_yaml_file(self, tmp_path, clean_env):
        clean_env.chdir(tmp_path)
        path = tmp_path / "settings.yaml"
        path.write_text("store:\n  retention_seconds: 120\n", encoding="utf-8")

        settings = load_settings(str(path))
        assert settings.get_service_config().store.retention_seconds == 120

    def test_settings_path_from_env(self, tmp_path, clean_env):
        clean_env.chdir(tmp_path)
        path = tmp_path / "custom.yaml"
        path.write_text("server:\n  port: 9100\n", encoding="utf-8")
        clean_env.setenv("BOOK_VOICE_SETTINGS", str(path))

        assert load_settings().port == 9100

    def test_env_overrides(self, tmp_path, clean_env):
        """PORT, TTS_API_KEY and LOCAL_TTS_HOST win over the file."""
        clean_env.chdir(tmp_path)
        path = tmp_path / "settings.yaml"
        path.write_text("server:\n  port: 9100\n", encoding="utf-8")
        clean_env.setenv("PORT", "9200")
        clean_env.setenv("TTS_API_KEY", "sk-env")
        clean_env.setenv("LOCAL_TTS_HOST", "http://gpu-box:8880/")

        config = load_settings(str(path)).get_service_config()
        assert config.server.port == 9200
        assert config.providers.speech_api.api_key == "sk-env"
        assert config.providers.speech_api.local_host == "http://gpu-box:8880"

    def test_dotenv_file_loaded(self, tmp_path, clean_env):
        """A .env file in the working directory acts like the environment."""
        clean_env.chdir(tmp_path)
        (tmp_path / ".env").write_text("TTS_API_KEY=sk-dotenv\n", encoding="utf-8")

        config = load_settings(str(tmp_path / "nope.yaml")).get_service_config()
        assert config.providers.speech_api.api_key == "sk-dotenv"
