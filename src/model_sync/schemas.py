"""Typed schemas for model sync runs, health, history, and configuration."""

from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from typing import Any

LOGGER = logging.getLogger(__name__)

HISTORY_RETENTION = 1000
KNOWN_PROVIDERS: tuple[str, ...] = ("anthropic", "openai", "google", "openrouter", "litellm")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ModelSource(IntEnum):
    """Source rank; lower values are more authoritative."""

    OFFICIAL_API = 1
    OFFICIAL_DOCS = 2
    OPENROUTER = 3
    LITELLM = 4
    MANUAL = 10


class ConflictResolution(StrEnum):
    """Policy deciding which offer wins when two sources price the same model."""

    OFFICIAL_FIRST = "official_first"
    MOST_RECENT = "most_recent"
    LOWEST_PRICE = "lowest_price"
    HIGHEST_CONTEXT_WINDOW = "highest_context_window"


class SyncErrorCode(StrEnum):
    """Categories of sync failures."""

    API_ERROR = "API_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    AUTH_ERROR = "AUTH_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"

    @property
    def recoverable(self) -> bool:
        """Return True for failures worth retrying."""
        return self in (SyncErrorCode.API_ERROR, SyncErrorCode.RATE_LIMIT, SyncErrorCode.STORAGE_ERROR)


@dataclass(frozen=True)
class SyncErrorRecord:
    """One error observed during a sync run."""

    code: SyncErrorCode
    message: str
    recoverable: bool
    timestamp: datetime = field(default_factory=_utc_now)

    @classmethod
    def from_code(cls, code: SyncErrorCode, message: str) -> SyncErrorRecord:
        """Build a record whose recoverability follows the code."""
        return cls(code=code, message=message, recoverable=code.recoverable)


@dataclass
class SyncResult:
    """Outcome of syncing one provider, or of a full pass when `provider` is `all`."""

    provider: str
    models_added: int = 0
    models_updated: int = 0
    models_unchanged: int = 0
    upsert_failures: int = 0
    duration_ms: int = 0
    last_sync: datetime = field(default_factory=_utc_now)
    errors: list[SyncErrorRecord] = field(default_factory=list)
    success: bool = True

    @property
    def total_models(self) -> int:
        """Return the number of models written or confirmed."""
        return self.models_added + self.models_updated + self.models_unchanged

    def add_error(self, error: SyncErrorRecord, *, fatal: bool = True) -> None:
        """Record an error; fatal errors mark the run as failed."""
        self.errors.append(error)
        if fatal:
            self.success = False

    def absorb(self, other: SyncResult) -> None:
        """Fold a provider result into a combined result."""
        self.models_added += other.models_added
        self.models_updated += other.models_updated
        self.models_unchanged += other.models_unchanged
        self.upsert_failures += other.upsert_failures
        self.errors.extend(other.errors)
        if not other.success:
            self.success = False


@dataclass(frozen=True)
class SyncHistoryEntry:
    """Append-only record of one provider sync."""

    provider: str
    success: bool
    models_synced: int
    duration_ms: int
    timestamp: datetime = field(default_factory=_utc_now)
    error_message: str | None = None

    @classmethod
    def from_result(cls, result: SyncResult) -> SyncHistoryEntry:
        """Summarize a provider result."""
        if result.success:
            return cls(
                provider=result.provider,
                success=True,
                models_synced=result.total_models,
                duration_ms=result.duration_ms,
                timestamp=result.last_sync,
            )
        return cls(
            provider=result.provider,
            success=False,
            models_synced=0,
            duration_ms=result.duration_ms,
            timestamp=result.last_sync,
            error_message=result.errors[0].message if result.errors else "Unknown error",
        )

    def to_record(self) -> dict[str, Any]:
        """Return a JSON-ready mapping."""
        record = asdict(self)
        record["timestamp"] = self.timestamp.isoformat()
        return record


class SyncHistory:
    """Bounded history keeping the most recent entries."""

    def __init__(self, retention: int = HISTORY_RETENTION) -> None:
        self._entries: deque[SyncHistoryEntry] = deque(maxlen=retention)

    def __len__(self) -> int:
        return len(self._entries)

    def add_entry(self, entry: SyncHistoryEntry) -> None:
        self._entries.append(entry)

    def recent(self, limit: int) -> list[SyncHistoryEntry]:
        """Return up to `limit` newest entries, oldest first."""
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def success_count(self) -> int:
        return sum(1 for entry in self._entries if entry.success)

    def failure_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.success)


@dataclass
class ProviderSyncStatus:
    """Rolling health of one provider."""

    provider: str
    enabled: bool
    last_sync: datetime | None = None
    last_success: bool = True
    models_count: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None

    def record(self, result: SyncResult) -> None:
        """Update health counters from a finished run."""
        self.last_sync = result.last_sync
        self.last_success = result.success
        self.models_count = result.total_models
        if result.success:
            self.consecutive_failures = 0
            self.last_error = None
        else:
            self.consecutive_failures += 1
            self.last_error = result.errors[0].message if result.errors else "Unknown error"


@dataclass
class SyncStatus:
    """Scheduler-wide status snapshot."""

    is_running: bool = False
    last_full_sync: datetime | None = None
    next_scheduled_sync: datetime | None = None
    provider_status: dict[str, ProviderSyncStatus] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncConfig:
    """Scheduler settings.

    Attributes:
        interval_seconds: Delay between full syncs.
        retry_max_attempts: Fetch attempts per provider within one run. Retrying is
            opt-in; the default single attempt falls straight back to the built-in list.
        retry_base_delay_seconds: Delay before the first retry; doubles per attempt.
        retry_max_delay_seconds: Upper bound for one retry delay.
        disabled_providers: Provider names skipped by full syncs.
        conflict_resolution: Policy applied when a model is already stored by another source.
    """

    interval_seconds: float = 6 * 60 * 60
    retry_max_attempts: int = 1
    retry_base_delay_seconds: float = 60
    retry_max_delay_seconds: float = 3600
    disabled_providers: frozenset[str] = frozenset()
    conflict_resolution: ConflictResolution = ConflictResolution.OFFICIAL_FIRST

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Build a config honoring `MODEL_SYNC_INTERVAL_HOURS` and `MODEL_SYNC_DISABLED_PROVIDERS`."""
        interval_seconds = cls.interval_seconds
        raw_interval = os.environ.get("MODEL_SYNC_INTERVAL_HOURS")
        if raw_interval:
            try:
                interval_seconds = float(raw_interval) * 3600
            except ValueError:
                LOGGER.warning("Ignoring invalid MODEL_SYNC_INTERVAL_HOURS=%r.", raw_interval)
        raw_disabled = os.environ.get("MODEL_SYNC_DISABLED_PROVIDERS", "")
        disabled = frozenset(name.strip().lower() for name in raw_disabled.split(",") if name.strip())
        return cls(interval_seconds=interval_seconds, disabled_providers=disabled)

    def is_provider_enabled(self, provider_name: str) -> bool:
        return provider_name.lower() not in self.disabled_providers

    def retry_delay(self, attempt: int) -> float:
        """Return the backoff before retry number `attempt` (1-based)."""
        return min(self.retry_base_delay_seconds * (2 ** (attempt - 1)), self.retry_max_delay_seconds)
