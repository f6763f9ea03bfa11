"""Background scheduler that syncs provider prices into the pricing repository."""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from model_pricing import ModelInfo
from model_pricing.errors import PricingRepositoryError
from model_pricing.repository import ModelPricingRepository, UpsertOutcome
from telemetry_internal.events import EventSink, TelemetryEvent, TelemetryEventKind, emit_event

from .aggregator import ModelAggregator
from .errors import ProviderFetchError, ProviderNotFoundError, SchedulerAlreadyRunningError
from .providers.base import SyncProvider
from .schemas import (
    ProviderSyncStatus,
    SyncConfig,
    SyncErrorCode,
    SyncErrorRecord,
    SyncHistory,
    SyncHistoryEntry,
    SyncResult,
    SyncStatus,
)

LOGGER = logging.getLogger(__name__)

ALL_PROVIDERS = "all"


class SyncScheduler:
    """Run provider syncs on a daemon thread and track their health.

    `_lock` guards the provider registry, status, and history and is never
    held across network or database calls. `_run_lock` serializes whole sync
    passes so a manual trigger and a timer tick never interleave.
    """

    def __init__(
        self,
        repository: ModelPricingRepository,
        config: SyncConfig | None = None,
        *,
        aggregator: ModelAggregator | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or SyncConfig()
        self._aggregator = aggregator or ModelAggregator(self._config.conflict_resolution)
        self._event_sink = event_sink
        self._providers: dict[str, SyncProvider] = {}
        self._status = SyncStatus()
        self._history = SyncHistory()
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._running = False

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def register_provider(self, provider: SyncProvider) -> None:
        """Add or replace a provider by name."""
        name = provider.provider_name()
        with self._lock:
            self._providers[name] = provider
            self._status.provider_status[name] = ProviderSyncStatus(
                provider=name,
                enabled=self._config.is_provider_enabled(name),
            )
        LOGGER.info("Registered sync provider %s (priority %d).", name, provider.priority())

    def register_providers(self, providers: Iterable[SyncProvider]) -> None:
        for provider in providers:
            self.register_provider(provider)

    def unregister_provider(self, name: str) -> SyncProvider | None:
        """Remove a provider; returns it, or None when it was not registered."""
        with self._lock:
            _ = self._status.provider_status.pop(name, None)
            return self._providers.pop(name, None)

    def provider_names(self) -> list[str]:
        """Return registered provider names in sync order."""
        return [provider.provider_name() for provider in self._ordered_providers()]

    def start(self) -> None:
        """Start the background loop: one eager sync, then one per interval.

        Raises:
            SchedulerAlreadyRunningError: If the loop is already running.
        """
        with self._lock:
            if self._running:
                raise SchedulerAlreadyRunningError("Sync scheduler is already running.")
            self._running = True
            self._status.is_running = True
            # Each run owns its event so a loop outliving a timed-out stop still exits.
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(target=self._run_loop, args=(stop_event,), name="model-sync", daemon=True)
            thread = self._thread
        thread.start()
        LOGGER.info("Sync scheduler started with interval %.0fs.", self._config.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to stop and wait for it; safe when not running."""
        with self._lock:
            stop_event = self._stop_event
            thread = self._thread
            self._stop_event = None
            self._thread = None
            self._running = False
            self._status.is_running = False
            self._status.next_scheduled_sync = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            LOGGER.info("Sync scheduler stopped.")

    def trigger_sync(self) -> SyncResult:
        """Sync every enabled provider, in priority order, and return the combined result."""
        return self._sync_all(None)

    def _sync_all(self, stop_event: threading.Event | None) -> SyncResult:
        with self._run_lock:
            started = time.monotonic()
            combined = SyncResult(provider=ALL_PROVIDERS)
            for provider in self._ordered_providers():
                if stop_event is not None and stop_event.is_set():
                    LOGGER.info("Sync pass interrupted by stop.")
                    break
                if not self._config.is_provider_enabled(provider.provider_name()):
                    LOGGER.info("Skipping disabled provider %s.", provider.provider_name())
                    continue
                combined.absorb(self._sync_and_record(provider, stop_event))
            combined.duration_ms = _elapsed_ms(started)
            combined.last_sync = datetime.now(UTC)

            with self._lock:
                self._status.last_full_sync = combined.last_sync
                if self._running:
                    self._status.next_scheduled_sync = combined.last_sync + timedelta(
                        seconds=self._config.interval_seconds
                    )
                next_sync = self._status.next_scheduled_sync

        LOGGER.info(
            "Full sync finished in %dms: %d added, %d updated, %d unchanged, %d error(s).",
            combined.duration_ms,
            combined.models_added,
            combined.models_updated,
            combined.models_unchanged,
            len(combined.errors),
        )
        emit_event(
            self._event_sink,
            TelemetryEvent(
                kind=TelemetryEventKind.SYNC_COMPLETED,
                payload={
                    "success": combined.success,
                    "models_added": combined.models_added,
                    "models_updated": combined.models_updated,
                    "models_unchanged": combined.models_unchanged,
                    "error_count": len(combined.errors),
                    "duration_ms": combined.duration_ms,
                    "next_scheduled_sync": next_sync.isoformat() if next_sync is not None else None,
                },
            ),
        )
        return combined

    def trigger_provider_sync(self, name: str) -> SyncResult:
        """Sync one provider regardless of the disabled list.

        Raises:
            ProviderNotFoundError: If no provider with that name is registered.
        """
        with self._lock:
            provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotFoundError(f"Provider {name!r} is not registered.")
        with self._run_lock:
            return self._sync_and_record(provider, None)

    def get_status(self) -> SyncStatus:
        """Return a snapshot copy of scheduler and provider status."""
        with self._lock:
            return copy.deepcopy(self._status)

    def get_history(self, limit: int = 50) -> list[SyncHistoryEntry]:
        """Return up to `limit` newest history entries, oldest first."""
        with self._lock:
            return self._history.recent(limit)

    def health_check_providers(self) -> dict[str, bool]:
        """Health-check each registered provider; a check that raises counts as unhealthy."""
        results: dict[str, bool] = {}
        for provider in self._ordered_providers():
            name = provider.provider_name()
            try:
                results[name] = provider.health_check()
            except Exception:
                LOGGER.exception("Health check for %s raised.", name)
                results[name] = False
        return results

    def _run_loop(self, stop_event: threading.Event) -> None:
        self._sync_safely(stop_event)
        while not stop_event.wait(self._config.interval_seconds):
            self._sync_safely(stop_event)

    def _sync_safely(self, stop_event: threading.Event) -> None:
        try:
            _ = self._sync_all(stop_event)
        except Exception:
            LOGGER.exception("Scheduled sync failed.")

    def _ordered_providers(self) -> list[SyncProvider]:
        with self._lock:
            providers = list(self._providers.values())
        return sorted(providers, key=lambda provider: provider.priority())

    def _sync_and_record(self, provider: SyncProvider, stop_event: threading.Event | None) -> SyncResult:
        result = self._sync_provider(provider, stop_event)
        entry = SyncHistoryEntry.from_result(result)
        with self._lock:
            status = self._status.provider_status.get(result.provider)
            if status is not None:
                status.record(result)
            self._history.add_entry(entry)
        return result

    def _sync_provider(self, provider: SyncProvider, stop_event: threading.Event | None) -> SyncResult:
        name = provider.provider_name()
        started = time.monotonic()
        result = SyncResult(provider=name)

        try:
            remote = self._fetch_with_retry(provider, stop_event)
        except ProviderFetchError as exc:
            result.add_error(SyncErrorRecord.from_code(exc.code, str(exc)))
            remote = None
        models = remote if remote is not None else provider.known_models()

        if models:
            valid = self._aggregator.filter_valid_models(models)
            self._persist(provider, self._aggregator.deduplicate(valid), result)

        result.duration_ms = _elapsed_ms(started)
        result.last_sync = datetime.now(UTC)
        if result.success:
            LOGGER.info("Synced %d model(s) from %s in %dms.", result.total_models, name, result.duration_ms)
        else:
            LOGGER.warning("Sync of %s failed: %s", name, result.errors[0].message)
        return result

    def _fetch_with_retry(self, provider: SyncProvider, stop_event: threading.Event | None) -> list[ModelInfo] | None:
        """Fetch with backoff; a loop's stop event cuts the wait short, manual triggers sleep."""
        attempts = max(self._config.retry_max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                return provider.fetch_remote()
            except ProviderFetchError as exc:
                if not exc.recoverable or attempt == attempts:
                    raise
                delay = self._config.retry_delay(attempt)
                LOGGER.warning(
                    "Fetching %s failed (attempt %d/%d): %s; retrying in %.0fs.",
                    provider.provider_name(),
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                if stop_event is None:
                    time.sleep(delay)
                elif stop_event.wait(delay):
                    raise
        return None

    def _persist(self, provider: SyncProvider, models: list[ModelInfo], result: SyncResult) -> None:
        name = provider.provider_name()
        priority = provider.priority()
        for model in models:
            try:
                stored = self._repository.get_stored(model.identity_key)
                if (
                    stored is not None
                    and stored.source_name != name
                    and not self._aggregator.should_replace(stored.model, stored.source_priority, model, priority)
                ):
                    result.models_unchanged += 1
                    continue
                outcome = self._repository.upsert_model(model, name, priority)
            except PricingRepositoryError as exc:
                LOGGER.warning("Failed storing %s: %s", model.identity_key, exc)
                result.upsert_failures += 1
                result.add_error(SyncErrorRecord.from_code(SyncErrorCode.STORAGE_ERROR, str(exc)), fatal=False)
                continue
            if outcome is UpsertOutcome.ADDED:
                result.models_added += 1
            elif outcome is UpsertOutcome.UPDATED:
                result.models_updated += 1
            else:
                result.models_unchanged += 1


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
