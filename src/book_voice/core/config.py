"""
Configuration Management for book-voice.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with .env and environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (PORT, TTS_API_KEY, LOCAL_TTS_HOST, etc.)
    2. .env file in the working directory (loaded into the environment)
    3. YAML config file (config/settings.yaml or BOOK_VOICE_SETTINGS)
    4. Defaults class values

Example settings.yaml:
    server:
      port: 8000

    generation:
      max_text_length: 500000
      default_voice_type: female

    store:
      retention_seconds: 3600

    providers:
      chain: [speech_api, translate]
      speech_api:
        base_url: https://api.openai.com
      translate:
        language: es
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import os

import yaml
from dotenv import load_dotenv


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    All default values are defined here so that the YAML file only has
    to list what differs from them.

    Sections:
        - Server: Listening address
        - Generation: Request limits and response metadata
        - Store: Audio retention and sweep cadence
        - Upload: Voice file limits
        - Providers: Chain order, HTTP timeout and per-provider settings
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 8000

    # ─────────────────────────────────────────────────────────────────────────
    # Generation
    # ─────────────────────────────────────────────────────────────────────────
    GENERATION_MAX_TEXT_LENGTH = 500_000    # 0 = unbounded
    GENERATION_DEFAULT_VOICE_TYPE = "female"
    GENERATION_BACKGROUND = False           # Fill records after responding
    GENERATION_CHARS_PER_MINUTE = 200       # Duration estimate
    GENERATION_SAMPLE_RATE_LABEL = "44100Hz"

    # ─────────────────────────────────────────────────────────────────────────
    # Audio Store
    # ─────────────────────────────────────────────────────────────────────────
    STORE_RETENTION_SECONDS = 3600          # Records live for one hour
    STORE_SWEEP_INTERVAL_SECONDS = 300      # How often the sweeper runs

    # ─────────────────────────────────────────────────────────────────────────
    # Voice Uploads
    # ─────────────────────────────────────────────────────────────────────────
    UPLOAD_MAX_BYTES = 50 * 1024 * 1024
    UPLOAD_ALLOWED_EXTENSIONS = ("wav", "mp3", "m4a", "ogg", "flac")

    # ─────────────────────────────────────────────────────────────────────────
    # Providers
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDERS_CHAIN = ("speech_api", "translate")
    PROVIDERS_TIMEOUT_S = 30.0
    PROVIDERS_VOICE_MAP = {"female": "nova", "male": "onyx"}

    SPEECH_API_BASE_URL = "https://api.openai.com"
    SPEECH_API_SPEECH_PATH = "/v1/audio/speech"
    SPEECH_API_VOICE_PATH = "/v1/voices"
    SPEECH_API_LOCAL_HOST = "http://localhost:8880"
    SPEECH_API_MODEL = "tts-1"
    SPEECH_API_RESPONSE_FORMAT = "wav"
    SPEECH_API_SPEED = 1.0
    SPEECH_API_FALLBACK_ON_STATUS = False   # Only connection errors reach the local host

    TRANSLATE_URL = "https://translate.google.com/translate_tts"
    TRANSLATE_LANGUAGE = "es"
    TRANSLATE_CLIENT = "tw-ob"

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                       # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class ServerConfig:
    """Listening address for uvicorn."""
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class GenerationConfig:
    """
    Text generation request handling.

    max_text_length of 0 disables the length check entirely.
    """
    max_text_length: int = Defaults.GENERATION_MAX_TEXT_LENGTH
    default_voice_type: str = Defaults.GENERATION_DEFAULT_VOICE_TYPE
    background: bool = Defaults.GENERATION_BACKGROUND
    chars_per_minute: int = Defaults.GENERATION_CHARS_PER_MINUTE
    sample_rate_label: str = Defaults.GENERATION_SAMPLE_RATE_LABEL


@dataclass
class StoreConfig:
    """
    In-memory audio store configuration.

    Records older than retention_seconds are removed by the sweeper,
    which wakes every sweep_interval_seconds.
    """
    retention_seconds: int = Defaults.STORE_RETENTION_SECONDS
    sweep_interval_seconds: int = Defaults.STORE_SWEEP_INTERVAL_SECONDS


@dataclass
class UploadConfig:
    """Voice upload limits."""
    max_bytes: int = Defaults.UPLOAD_MAX_BYTES
    allowed_extensions: Tuple[str, ...] = Defaults.UPLOAD_ALLOWED_EXTENSIONS


@dataclass
class SpeechApiConfig:
    """
    Primary speech API configuration.

    The local_host is only tried when the remote endpoint cannot be
    reached, unless fallback_on_status is enabled.
    """
    base_url: str = Defaults.SPEECH_API_BASE_URL
    speech_path: str = Defaults.SPEECH_API_SPEECH_PATH
    voice_path: str = Defaults.SPEECH_API_VOICE_PATH
    local_host: Optional[str] = Defaults.SPEECH_API_LOCAL_HOST
    api_key: Optional[str] = None
    model: str = Defaults.SPEECH_API_MODEL
    response_format: str = Defaults.SPEECH_API_RESPONSE_FORMAT
    speed: float = Defaults.SPEECH_API_SPEED
    fallback_on_status: bool = Defaults.SPEECH_API_FALLBACK_ON_STATUS


@dataclass
class TranslateConfig:
    """Translation-engine TTS configuration."""
    url: str = Defaults.TRANSLATE_URL
    language: str = Defaults.TRANSLATE_LANGUAGE
    client: str = Defaults.TRANSLATE_CLIENT


@dataclass
class ProvidersConfig:
    """
    Provider chain configuration.

    chain lists adapter names in the order they are tried. The placeholder
    is always appended by the orchestrator and never listed here.
    """
    chain: Tuple[str, ...] = Defaults.PROVIDERS_CHAIN
    timeout_s: float = Defaults.PROVIDERS_TIMEOUT_S
    voice_map: Dict[str, str] = field(default_factory=lambda: dict(Defaults.PROVIDERS_VOICE_MAP))
    speech_api: SpeechApiConfig = field(default_factory=SpeechApiConfig)
    translate: TranslateConfig = field(default_factory=TranslateConfig)


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, provider outcomes (default)
        3 = VERBOSE: Per-attempt detail, sweep results
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


KNOWN_PROVIDERS = ("speech_api", "translate")


@dataclass
class ServiceConfig:
    """
    Validated configuration for VoiceService.

    This is the main configuration object created from Settings.
    It validates all values and provides typed access to configuration.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.store.retention_seconds)
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Reads the raw configuration dictionary, applies defaults for missing
        values, validates constraints, and returns typed configuration.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=int(server_raw.get("port", Defaults.SERVER_PORT)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)

        # ─────────────────────────────────────────────────────────────────────
        # Generation
        # ─────────────────────────────────────────────────────────────────────
        gen_raw = raw.get("generation", {}) or {}
        generation = GenerationConfig(
            max_text_length=int(gen_raw.get("max_text_length", Defaults.GENERATION_MAX_TEXT_LENGTH)),
            default_voice_type=str(gen_raw.get("default_voice_type", Defaults.GENERATION_DEFAULT_VOICE_TYPE)),
            background=bool(gen_raw.get("background", Defaults.GENERATION_BACKGROUND)),
            chars_per_minute=int(gen_raw.get("chars_per_minute", Defaults.GENERATION_CHARS_PER_MINUTE)),
            sample_rate_label=str(gen_raw.get("sample_rate_label", Defaults.GENERATION_SAMPLE_RATE_LABEL)),
        )
        cls._validate_non_negative("generation.max_text_length", generation.max_text_length)
        cls._validate_positive("generation.chars_per_minute", generation.chars_per_minute)

        # ─────────────────────────────────────────────────────────────────────
        # Store
        # ─────────────────────────────────────────────────────────────────────
        store_raw = raw.get("store", {}) or {}
        store = StoreConfig(
            retention_seconds=int(store_raw.get("retention_seconds", Defaults.STORE_RETENTION_SECONDS)),
            sweep_interval_seconds=int(
                store_raw.get("sweep_interval_seconds", Defaults.STORE_SWEEP_INTERVAL_SECONDS)
            ),
        )
        cls._validate_positive("store.retention_seconds", store.retention_seconds)
        cls._validate_positive("store.sweep_interval_seconds", store.sweep_interval_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Upload
        # ─────────────────────────────────────────────────────────────────────
        upload_raw = raw.get("upload", {}) or {}
        extensions = upload_raw.get("allowed_extensions", Defaults.UPLOAD_ALLOWED_EXTENSIONS)
        upload = UploadConfig(
            max_bytes=int(upload_raw.get("max_bytes", Defaults.UPLOAD_MAX_BYTES)),
            allowed_extensions=tuple(str(e).lower().lstrip(".") for e in extensions),
        )
        cls._validate_positive("upload.max_bytes", upload.max_bytes)
        if not upload.allowed_extensions:
            raise ConfigValidationError("upload.allowed_extensions must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Providers
        # ─────────────────────────────────────────────────────────────────────
        prov_raw = raw.get("providers", {}) or {}
        chain = tuple(str(name).strip().lower() for name in prov_raw.get("chain", Defaults.PROVIDERS_CHAIN))
        for name in chain:
            if name not in KNOWN_PROVIDERS:
                raise ConfigValidationError(
                    f"providers.chain contains unknown provider {name!r} "
                    f"(known: {', '.join(KNOWN_PROVIDERS)})"
                )

        voice_map = dict(Defaults.PROVIDERS_VOICE_MAP)
        voice_map.update({str(k): str(v) for k, v in (prov_raw.get("voice_map") or {}).items()})

        api_raw = prov_raw.get("speech_api", {}) or {}
        # An explicit null/empty local_host disables the local retry
        if "local_host" in api_raw:
            local_host = str(api_raw["local_host"]).rstrip("/") if api_raw["local_host"] else None
        else:
            local_host = Defaults.SPEECH_API_LOCAL_HOST
        speech_api = SpeechApiConfig(
            base_url=str(api_raw.get("base_url", Defaults.SPEECH_API_BASE_URL)).rstrip("/"),
            speech_path=str(api_raw.get("speech_path", Defaults.SPEECH_API_SPEECH_PATH)),
            voice_path=str(api_raw.get("voice_path", Defaults.SPEECH_API_VOICE_PATH)),
            local_host=local_host,
            api_key=api_raw.get("api_key") or None,
            model=str(api_raw.get("model", Defaults.SPEECH_API_MODEL)),
            response_format=str(api_raw.get("response_format", Defaults.SPEECH_API_RESPONSE_FORMAT)),
            speed=float(api_raw.get("speed", Defaults.SPEECH_API_SPEED)),
            fallback_on_status=bool(api_raw.get("fallback_on_status", Defaults.SPEECH_API_FALLBACK_ON_STATUS)),
        )
        cls._validate_range("providers.speech_api.speed", speech_api.speed, 0.25, 4.0)

        tr_raw = prov_raw.get("translate", {}) or {}
        translate = TranslateConfig(
            url=str(tr_raw.get("url", Defaults.TRANSLATE_URL)),
            language=str(tr_raw.get("language", Defaults.TRANSLATE_LANGUAGE)),
            client=str(tr_raw.get("client", Defaults.TRANSLATE_CLIENT)),
        )

        providers = ProvidersConfig(
            chain=chain,
            timeout_s=float(prov_raw.get("timeout_s", Defaults.PROVIDERS_TIMEOUT_S)),
            voice_map=voice_map,
            speech_api=speech_api,
            translate=translate,
        )
        cls._validate_positive("providers.timeout_s", providers.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            server=server,
            generation=generation,
            store=store,
            upload=upload,
            providers=providers,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get a validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def host(self) -> str:
        """Get the listening host."""
        return str((self.raw.get("server") or {}).get("host", Defaults.SERVER_HOST))

    @property
    def port(self) -> int:
        """Get the listening port."""
        return int((self.raw.get("server") or {}).get("port", Defaults.SERVER_PORT))

    @property
    def provider_chain(self) -> List[str]:
        """Get the configured provider order."""
        chain = (self.raw.get("providers") or {}).get("chain", Defaults.PROVIDERS_CHAIN)
        return [str(name) for name in chain]

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _set_path(raw: Dict[str, Any], path: Tuple[str, ...], value: Any) -> None:
    node = raw
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
    node[path[-1]] = value


# Environment variable -> settings path
ENV_OVERRIDES: Dict[str, Tuple[str, ...]] = {
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "TTS_API_KEY": ("providers", "speech_api", "api_key"),
    "TTS_API_URL": ("providers", "speech_api", "base_url"),
    "LOCAL_TTS_HOST": ("providers", "speech_api", "local_host"),
}


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    A .env file in the working directory is loaded first so its values
    behave like ordinary environment variables. A missing YAML file is
    not an error: the defaults are used.

    Environment variable overrides:
        - HOST, PORT: Listening address
        - TTS_API_KEY: Bearer token for the primary speech API
        - TTS_API_URL: Base URL of the primary speech API
        - LOCAL_TTS_HOST: Local host tried when the primary is unreachable

    Args:
        path: Path to the YAML file. Defaults to BOOK_VOICE_SETTINGS or
            config/settings.yaml.

    Returns:
        Settings object with loaded configuration.
    """
    load_dotenv(Path(".env"), override=False)

    p = Path(path or os.getenv("BOOK_VOICE_SETTINGS", "config/settings.yaml"))
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    for env_name, settings_path in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            _set_path(raw, settings_path, value)

    return Settings(raw=raw)
