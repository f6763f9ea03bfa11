"""Model price synchronization: providers, aggregation, and the background scheduler."""

from .aggregator import ModelAggregator, normalize_model_name, normalize_provider_name, validate_pricing
from .errors import ProviderFetchError, ProviderNotFoundError, SchedulerAlreadyRunningError, SyncSchedulerError
from .providers import SyncProvider, default_providers
from .scheduler import SyncScheduler
from .schemas import (
    ConflictResolution,
    ModelSource,
    ProviderSyncStatus,
    SyncConfig,
    SyncErrorCode,
    SyncErrorRecord,
    SyncHistoryEntry,
    SyncResult,
    SyncStatus,
)

__all__ = [
    "ConflictResolution",
    "ModelAggregator",
    "ModelSource",
    "ProviderFetchError",
    "ProviderNotFoundError",
    "ProviderSyncStatus",
    "SchedulerAlreadyRunningError",
    "SyncConfig",
    "SyncErrorCode",
    "SyncErrorRecord",
    "SyncHistoryEntry",
    "SyncProvider",
    "SyncResult",
    "SyncScheduler",
    "SyncSchedulerError",
    "SyncStatus",
    "default_providers",
    "normalize_model_name",
    "normalize_provider_name",
    "validate_pricing",
]
