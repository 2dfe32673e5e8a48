"""
In-Memory Voice Registry.

Two kinds of voices exist:
    - Predefined: module constants (PREDEFINED_VOICES), never stored
    - Custom: registered on upload, kept until the process exits

There is no update or delete operation; custom voices accumulate for the
lifetime of the process.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from book_voice.core.logging import get_logger, info
from book_voice.services.audio_store import time_based_id

_LOG = get_logger("book-voice.voices")


class VoiceType(str, Enum):
    PREDEFINED = "predefined"
    CUSTOM = "custom"


class VoiceStatus(str, Enum):
    READY = "ready"


@dataclass(frozen=True)
class VoiceRecord:
    """
    A voice that can be selected with ``voice_id``.

    Attributes:
        id: Voice identifier (e.g. "female_1" or "voice_1736950205123").
        display_name: Human-readable name.
        type: PREDEFINED or CUSTOM.
        uploaded_at: Unix timestamp of registration (0 for predefined).
        status: Always READY.
        gender: "female" / "male", if known.
        language: Language code, if known.
        description: Free-form description.
        original_name: Uploaded file name (custom voices).
        size_bytes: Uploaded file size (custom voices).
        provider_voice_id: Id assigned by the speech provider, if it
            accepted the sample.
    """
    id: str
    display_name: str
    type: VoiceType
    uploaded_at: float = 0.0
    status: VoiceStatus = VoiceStatus.READY
    gender: Optional[str] = None
    language: Optional[str] = None
    description: Optional[str] = None
    original_name: Optional[str] = None
    size_bytes: Optional[int] = None
    provider_voice_id: Optional[str] = None

    @property
    def selector(self) -> str:
        """Voice selector to send to the providers."""
        return self.provider_voice_id or self.id

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["name"] = data.pop("display_name")
        data["type"] = self.type.value
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}


PREDEFINED_VOICES: tuple[VoiceRecord, ...] = (
    VoiceRecord(
        id="female_1",
        display_name="Sofía",
        type=VoiceType.PREDEFINED,
        gender="female",
        language="es",
        description="Voz femenina profesional en español",
    ),
    VoiceRecord(
        id="male_1",
        display_name="Carlos",
        type=VoiceType.PREDEFINED,
        gender="male",
        language="es",
        description="Voz masculina profesional en español",
    ),
    VoiceRecord(
        id="female_en_1",
        display_name="Emma",
        type=VoiceType.PREDEFINED,
        gender="female",
        language="en",
        description="Professional female voice in English",
    ),
    VoiceRecord(
        id="male_en_1",
        display_name="James",
        type=VoiceType.PREDEFINED,
        gender="male",
        language="en",
        description="Professional male voice in English",
    ),
)

_PREDEFINED_BY_ID = {v.id: v for v in PREDEFINED_VOICES}


class VoiceRegistry:
    """Predefined voices plus custom voices registered at runtime."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._custom: Dict[str, VoiceRecord] = {}

    def register(self, name: str, **meta: Any) -> VoiceRecord:
        """
        Register a custom voice.

        Args:
            name: Display name.
            **meta: Optional VoiceRecord fields (original_name, size_bytes,
                provider_voice_id, gender, language, description).
        """
        now = self._clock()
        voice_id = time_based_id("voice", now, self._custom)
        record = VoiceRecord(
            id=voice_id,
            display_name=name,
            type=VoiceType.CUSTOM,
            uploaded_at=now,
            **meta,
        )
        self._custom[voice_id] = record
        info(_LOG, "voice_registered", voice_id=voice_id, name=name,
             provider_voice_id=record.provider_voice_id)
        return record

    def get(self, voice_id: str) -> Optional[VoiceRecord]:
        return _PREDEFINED_BY_ID.get(voice_id) or self._custom.get(voice_id)

    def list(self) -> List[VoiceRecord]:
        """Predefined voices first, then custom voices in registration order."""
        return [*PREDEFINED_VOICES, *self._custom.values()]

    @property
    def custom_count(self) -> int:
        return len(self._custom)

    def __len__(self) -> int:
        return len(PREDEFINED_VOICES) + len(self._custom)

