"""DuckDB repository for synced model prices."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

import duckdb

from telemetry_internal.database import connect_utc, parse_db_timestamp

from .errors import PricingRepositoryError
from .schemas import ModelInfo, model_identity_key

_SELECT_COLUMNS = """
    provider,
    model_name,
    input_price_per_1k,
    output_price_per_1k,
    context_window,
    CAST(last_synced AS VARCHAR),
    source_name,
    source_priority
"""


class UpsertOutcome(StrEnum):
    """Effect of one model upsert on the stored table."""

    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class StoredModel:
    """A persisted model price together with the source that wrote it."""

    model: ModelInfo
    source_name: str
    source_priority: int


class ModelPricingRepository:
    """DuckDB-backed store of `ModelInfo` rows keyed by `provider/model` identity.

    The connection is shared between the scheduler thread and callers, so every
    statement runs under an internal lock.
    """

    def __init__(self, database_path: Path) -> None:
        database_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = connect_utc(database_path)
        except duckdb.Error as exc:
            raise PricingRepositoryError(f"Failed opening pricing database {database_path}: {exc}") from exc
        self._lock = threading.RLock()

    def close(self) -> None:
        """Close DuckDB connection."""
        with self._lock:
            self._connection.close()

    def ensure_schema(self) -> None:
        """Create the model price table when missing."""
        with self._lock:
            _ = self._connection.execute(
                """
CREATE TABLE IF NOT EXISTS model_prices (
    identity_key VARCHAR PRIMARY KEY,
    provider VARCHAR NOT NULL,
    model_name VARCHAR NOT NULL,
    input_price_per_1k DOUBLE NOT NULL,
    output_price_per_1k DOUBLE NOT NULL,
    context_window BIGINT NOT NULL,
    last_synced TIMESTAMPTZ NOT NULL,
    source_name VARCHAR NOT NULL,
    source_priority INTEGER NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
                """
            )
            _ = self._connection.execute(
                """
CREATE INDEX IF NOT EXISTS idx_model_prices_provider
ON model_prices (provider)
                """
            )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Open a DB transaction scope."""
        with self._lock:
            _ = self._connection.execute("BEGIN TRANSACTION")
            try:
                yield
            except Exception:
                _ = self._connection.execute("ROLLBACK")
                raise
            else:
                _ = self._connection.execute("COMMIT")

    def get_stored(self, identity_key: str) -> StoredModel | None:
        """Return the stored row for an identity key, with its source."""
        with self._lock:
            row = self._connection.execute(
                f"SELECT {_SELECT_COLUMNS} FROM model_prices WHERE identity_key = ?",
                [identity_key.lower()],
            ).fetchone()
        if row is None:
            return None
        return _row_to_stored(row)

    def get_by_identity(self, identity_key: str) -> ModelInfo | None:
        """Return the model stored under `provider/model`, case-insensitively."""
        stored = self.get_stored(identity_key)
        return stored.model if stored is not None else None

    def get_model(self, provider: str, model_name: str) -> ModelInfo | None:
        """Return one model by provider and name."""
        return self.get_by_identity(model_identity_key(provider, model_name))

    def upsert_model(self, model: ModelInfo, source_name: str, source_priority: int) -> UpsertOutcome:
        """Insert or overwrite a model price by identity key.

        Returns:
            ADDED for a new key, UNCHANGED when prices and context window are
            identical to the stored row (only `last_synced` is refreshed),
            UPDATED otherwise.
        """
        with self._lock:
            existing = self.get_stored(model.identity_key)
            try:
                _ = self._connection.execute(
                    """
INSERT INTO model_prices (
    identity_key,
    provider,
    model_name,
    input_price_per_1k,
    output_price_per_1k,
    context_window,
    last_synced,
    source_name,
    source_priority
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (identity_key)
DO UPDATE SET
    provider = EXCLUDED.provider,
    model_name = EXCLUDED.model_name,
    input_price_per_1k = EXCLUDED.input_price_per_1k,
    output_price_per_1k = EXCLUDED.output_price_per_1k,
    context_window = EXCLUDED.context_window,
    last_synced = EXCLUDED.last_synced,
    source_name = EXCLUDED.source_name,
    source_priority = EXCLUDED.source_priority,
    updated_at = NOW()
                    """,
                    [
                        model.identity_key,
                        model.provider,
                        model.model_name,
                        model.input_price_per_1k,
                        model.output_price_per_1k,
                        model.context_window,
                        model.last_synced,
                        source_name,
                        source_priority,
                    ],
                )
            except duckdb.Error as exc:
                raise PricingRepositoryError(f"Failed upserting {model.identity_key}: {exc}") from exc

        if existing is None:
            return UpsertOutcome.ADDED
        if _same_prices(existing.model, model):
            return UpsertOutcome.UNCHANGED
        return UpsertOutcome.UPDATED

    def list_models(self, provider: str | None = None) -> list[ModelInfo]:
        """List stored models ordered by identity key, optionally for one provider."""
        with self._lock:
            if provider is None:
                rows = self._connection.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM model_prices ORDER BY identity_key"
                ).fetchall()
            else:
                rows = self._connection.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM model_prices WHERE lower(provider) = ? ORDER BY identity_key",
                    [provider.strip().lower()],
                ).fetchall()
        return [_row_to_stored(row).model for row in rows]

    def count_models(self) -> int:
        """Return the number of stored models."""
        with self._lock:
            row = self._connection.execute("SELECT COUNT(*) FROM model_prices").fetchone()
        return int(row[0]) if row is not None else 0

    def load_rate_overrides(self, provider: str | None = None) -> list[ModelInfo]:
        """Return stored models suitable for `CostCalculator.with_overrides`."""
        return self.list_models(provider)


def _row_to_stored(row: tuple[object, ...]) -> StoredModel:
    last_synced = parse_db_timestamp(row[5])  # type: ignore[arg-type]
    if last_synced is None:
        raise PricingRepositoryError(f"Stored model {row[0]}/{row[1]} has no last_synced value.")
    return StoredModel(
        model=ModelInfo(
            provider=str(row[0]),
            model_name=str(row[1]),
            input_price_per_1k=float(row[2]),  # type: ignore[arg-type]
            output_price_per_1k=float(row[3]),  # type: ignore[arg-type]
            context_window=int(row[4]),  # type: ignore[arg-type]
            last_synced=last_synced,
        ),
        source_name=str(row[6]),
        source_priority=int(row[7]),  # type: ignore[arg-type]
    )


def _same_prices(left: ModelInfo, right: ModelInfo) -> bool:
    return (
        left.input_price_per_1k == right.input_price_per_1k
        and left.output_price_per_1k == right.output_price_per_1k
        and left.context_window == right.context_window
    )
