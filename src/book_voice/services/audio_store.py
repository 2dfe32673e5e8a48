"""
In-Memory Audio Store with Retention Sweep.

Holds every generated audio artifact for a fixed retention window
(one hour by default). Records are keyed by time-based ids such as
``audio_1736950205123`` and removed by a periodic sweep once they are
older than the window. Nothing is persisted; a restart loses everything.

Record Lifecycle:
    1. put() a record when a generation request is accepted
    2. attach_audio() exactly once when the provider chain returns
       (immediately in blocking mode, later in background mode)
    3. sweep() deletes it once now - generated_at > retention_seconds

generated_at never changes, so reading a record does not extend its
life. A download racing the sweep simply sees "not found".

The clock is injected so tests can advance time without sleeping:

    >>> now = [1000.0]
    >>> store = AudioStore(retention_seconds=3600, clock=lambda: now[0])
    >>> record = store.put(AudioRecord(id=store.mint_id(), source_text="Hola", generated_at=now[0]))
    >>> now[0] += 3601
    >>> store.sweep()
    1
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Container, Dict, Iterator, Optional

from book_voice.core.config import Defaults
from book_voice.core.logging import error, get_logger, info, verbose
from book_voice.core.metrics import metrics

_LOG = get_logger("book-voice.store")

Clock = Callable[[], float]


def time_based_id(prefix: str, now: float, taken: Container[str]) -> str:
    """
    Build ``<prefix>_<epoch-ms>``, adding ``_<n>`` if that id is taken.

    Two requests inside the same millisecond would otherwise collide.
    """
    base = f"{prefix}_{int(now * 1000)}"
    candidate = base
    n = 1
    while candidate in taken:
        candidate = f"{base}_{n}"
        n += 1
    return candidate


class AudioAlreadyAttachedError(RuntimeError):
    """Raised when audio is attached to a record that already has it."""


@dataclass
class AudioRecord:
    """
    A generated (or pending) audio artifact.

    Attributes:
        id: Time-based identifier, also used in the download URL.
        source_text: Text as submitted, surrounding whitespace included.
        generated_at: Unix timestamp of acceptance; drives eviction.
        audio_bytes: Audio payload, None while pending.
        content_type: "audio/wav" or "audio/mpeg" once ready.
        provider_used: "PRIMARY", "SECONDARY" or "FALLBACK" once ready.
        used_fallback: True unless the primary remote endpoint answered.
        engine: Engine label of the provider that answered.
        voice_used: Voice the answering provider spoke with (the requested
            selector while pending).
        request_id: Request that created the record.
        error: Failure message if background generation crashed.
    """
    id: str
    source_text: str
    generated_at: float
    audio_bytes: Optional[bytes] = None
    content_type: Optional[str] = None
    provider_used: Optional[str] = None
    used_fallback: bool = False
    engine: Optional[str] = None
    voice_used: Optional[str] = None
    request_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def status(self) -> str:
        """One of pending, ready or failed."""
        if self.audio_bytes is not None:
            return "ready"
        if self.error is not None:
            return "failed"
        return "pending"

    @property
    def size_bytes(self) -> int:
        return len(self.audio_bytes) if self.audio_bytes is not None else 0

    @property
    def extension(self) -> str:
        return "wav" if self.content_type == "audio/wav" else "mp3"


class AudioStore:
    """
    Mapping from audio id to AudioRecord with time-based eviction.

    Every method runs to completion without awaiting, so on a single event
    loop no lock is needed.

    Attributes:
        retention_seconds: Record lifetime measured from generated_at.
    """

    def __init__(
        self,
        retention_seconds: int = Defaults.STORE_RETENTION_SECONDS,
        clock: Clock = time.time,
    ):
        self.retention_seconds = int(retention_seconds)
        self._clock = clock
        self._records: Dict[str, AudioRecord] = {}
        self._evicted_total = 0

    @property
    def clock(self) -> Clock:
        return self._clock

    def now(self) -> float:
        return self._clock()

    def mint_id(self, prefix: str = "audio") -> str:
        """Mint a fresh, currently unused id."""
        return time_based_id(prefix, self._clock(), self._records)

    def put(self, record: AudioRecord) -> AudioRecord:
        self._records[record.id] = record
        metrics.set_stored_audios(len(self._records))
        return record

    def get(self, audio_id: str) -> Optional[AudioRecord]:
        return self._records.get(audio_id)

    def delete(self, audio_id: str) -> bool:
        removed = self._records.pop(audio_id, None) is not None
        if removed:
            metrics.set_stored_audios(len(self._records))
        return removed

    def attach_audio(
        self,
        audio_id: str,
        audio_bytes: bytes,
        *,
        content_type: str,
        provider_used: str,
        used_fallback: bool,
        engine: str,
        voice_used: Optional[str] = None,
    ) -> Optional[AudioRecord]:
        """
        Fill in a pending record.

        Returns:
            The updated record, or None if it was swept in the meantime.

        Raises:
            AudioAlreadyAttachedError: If the record already holds audio.
        """
        record = self._records.get(audio_id)
        if record is None:
            return None
        if record.audio_bytes is not None:
            raise AudioAlreadyAttachedError(f"audio already attached to {audio_id}")

        record.audio_bytes = audio_bytes
        record.content_type = content_type
        record.provider_used = provider_used
        record.used_fallback = used_fallback
        record.engine = engine
        if voice_used:
            record.voice_used = voice_used
        return record

    def mark_failed(self, audio_id: str, message: str) -> None:
        record = self._records.get(audio_id)
        if record is not None and record.audio_bytes is None:
            record.error = message

    def expires_at(self, record: AudioRecord) -> float:
        return record.generated_at + self.retention_seconds

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Remove every record older than the retention window.

        Args:
            now: Reference time, defaults to the store clock.

        Returns:
            Number of records removed.
        """
        if now is None:
            now = self._clock()

        expired = [
            audio_id
            for audio_id, record in self._records.items()
            if now - record.generated_at > self.retention_seconds
        ]
        for audio_id in expired:
            del self._records[audio_id]

        self._evicted_total += len(expired)
        metrics.record_evictions(len(expired))
        metrics.set_stored_audios(len(self._records))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        """Counts for health and info output."""
        pending = sum(1 for r in self._records.values() if r.status == "pending")
        return {
            "stored": len(self._records),
            "pending": pending,
            "bytes": sum(r.size_bytes for r in self._records.values()),
            "evicted_total": self._evicted_total,
            "retention_seconds": self.retention_seconds,
        }

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, audio_id: object) -> bool:
        return audio_id in self._records

    def __iter__(self) -> Iterator[AudioRecord]:
        return iter(list(self._records.values()))


class RetentionSweeper:
    """
    Periodic task that calls AudioStore.sweep().

    Owned by the application lifespan: start() when the app starts,
    await stop() when it shuts down. A failing sweep is logged and the
    loop keeps running.
    """

    def __init__(self, store: AudioStore, interval_seconds: float = Defaults.STORE_SWEEP_INTERVAL_SECONDS):
        self._store = store
        self._interval = float(interval_seconds)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="audio-retention-sweep")
        info(_LOG, "sweeper_started", interval_s=self._interval,
             retention_s=self._store.retention_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        info(_LOG, "sweeper_stopped")

    def run_once(self) -> int:
        removed = self._store.sweep()
        verbose(_LOG, "sweep_done", removed=removed, remaining=len(self._store))
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception as e:
                error(_LOG, "sweep_failed", error=str(e))
