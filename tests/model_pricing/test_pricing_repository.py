"""Tests for the DuckDB model price repository."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from model_pricing import ModelInfo
from model_pricing.repository import ModelPricingRepository, UpsertOutcome


def test_upsert_reports_added_updated_and_unchanged(tmp_path: Path) -> None:
    """Upserts should classify new, changed, and identical prices."""
    repository = _open_repository(tmp_path)
    try:
        first = repository.upsert_model(_model(0.015, 0.075), "anthropic", 1)
        same = repository.upsert_model(_model(0.015, 0.075), "anthropic", 1)
        changed = repository.upsert_model(_model(0.02, 0.08), "openrouter", 50)
    finally:
        repository.close()

    assert [first, same, changed] == [UpsertOutcome.ADDED, UpsertOutcome.UNCHANGED, UpsertOutcome.UPDATED]


def test_stored_row_round_trips_with_source(tmp_path: Path) -> None:
    """Lookups should be case-insensitive and return the writing source."""
    synced_at = datetime(2026, 2, 1, 8, 30, tzinfo=UTC)
    repository = _open_repository(tmp_path)
    try:
        _ = repository.upsert_model(_model(0.015, 0.075, last_synced=synced_at), "anthropic", 1)
        stored = repository.get_stored("Anthropic/Claude-3-Opus")
        by_name = repository.get_model("anthropic", "claude-3-opus")
    finally:
        repository.close()

    assert stored is not None
    assert stored.source_name == "anthropic"
    assert stored.source_priority == 1
    assert stored.model.input_price_per_1k == pytest.approx(0.015)
    assert stored.model.last_synced == synced_at
    assert by_name == stored.model


def test_list_models_filters_by_provider_and_orders_by_key(tmp_path: Path) -> None:
    """Listing should be ordered by identity key and optionally narrowed to one provider."""
    repository = _open_repository(tmp_path)
    try:
        _ = repository.upsert_model(_model(0.015, 0.075, model_name="claude-3-opus"), "anthropic", 1)
        _ = repository.upsert_model(_model(0.003, 0.015, model_name="claude-3-5-sonnet"), "anthropic", 1)
        _ = repository.upsert_model(
            ModelInfo("openai", "gpt-4o", 0.005, 0.015, 128_000),
            "openai",
            1,
        )
        everything = repository.list_models()
        anthropic_only = repository.list_models("ANTHROPIC")
        count = repository.count_models()
    finally:
        repository.close()

    assert [model.identity_key for model in everything] == [
        "anthropic/claude-3-5-sonnet",
        "anthropic/claude-3-opus",
        "openai/gpt-4o",
    ]
    assert len(anthropic_only) == 2
    assert count == 3


def test_transaction_rolls_back_on_error(tmp_path: Path) -> None:
    """An exception inside a transaction should discard its writes."""
    repository = _open_repository(tmp_path)
    try:
        with pytest.raises(RuntimeError):
            with repository.transaction():
                _ = repository.upsert_model(_model(0.015, 0.075), "anthropic", 1)
                raise RuntimeError("abort")
        count = repository.count_models()
    finally:
        repository.close()

    assert count == 0


def test_missing_model_lookup_returns_none(tmp_path: Path) -> None:
    """Unknown identity keys should return None."""
    repository = _open_repository(tmp_path)
    try:
        assert repository.get_by_identity("nobody/nothing") is None
    finally:
        repository.close()


def _open_repository(tmp_path: Path) -> ModelPricingRepository:
    repository = ModelPricingRepository(tmp_path / "db" / "prices.duckdb")
    repository.ensure_schema()
    return repository


def _model(
    input_price: float,
    output_price: float,
    *,
    model_name: str = "claude-3-opus",
    last_synced: datetime | None = None,
) -> ModelInfo:
    return ModelInfo(
        provider="anthropic",
        model_name=model_name,
        input_price_per_1k=input_price,
        output_price_per_1k=output_price,
        context_window=200_000,
        last_synced=last_synced or datetime.now(UTC),
    )
