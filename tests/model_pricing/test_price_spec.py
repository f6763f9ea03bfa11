"""Tests for the community price specification fetch and cache."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any

import orjson
import pytest

from model_pricing import price_spec as price_spec_module
from model_pricing.errors import PriceSpecError
from telemetry_internal.http import HttpFetchError


def test_get_price_spec_uses_fresh_cache(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Fresh cache should be returned without attempting a remote fetch."""
    cache_file = tmp_path / "prices.json"
    cached_data = {"gpt-5": {"input_cost_per_token": 0.001}}
    cache_file.write_bytes(orjson.dumps(cached_data))

    def _unexpected_fetch(url: str) -> dict[str, Any]:
        raise AssertionError(f"Unexpected fetch for {url}")

    monkeypatch.setattr(price_spec_module, "_fetch_from_url", _unexpected_fetch)

    result = price_spec_module.get_price_spec(update_interval_seconds=86400, cache_path=cache_file)

    assert result == cached_data


def test_get_price_spec_refreshes_stale_cache(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Stale cache should be refreshed and rewritten with fetched data."""
    cache_file = tmp_path / "prices.json"
    refreshed_data = {"new": {"input_cost_per_token": 0.2}}
    _write_stale_cache(cache_file, {"old": {"input_cost_per_token": 0.1}})

    monkeypatch.setattr(price_spec_module, "_fetch_from_url", lambda _: refreshed_data)

    result = price_spec_module.get_price_spec(update_interval_seconds=60, cache_path=cache_file)

    assert result == refreshed_data
    assert orjson.loads(cache_file.read_bytes()) == refreshed_data


def test_get_price_spec_falls_back_to_stale_cache_on_fetch_error(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """When fetch fails, stale cache should be returned if readable."""
    cache_file = tmp_path / "prices.json"
    stale_data = {"fallback": {"output_cost_per_token": 0.3}}
    _write_stale_cache(cache_file, stale_data)

    monkeypatch.setattr(price_spec_module, "_fetch_from_url", _failing_fetch)

    result = price_spec_module.get_price_spec(update_interval_seconds=60, cache_path=cache_file)

    assert result == stale_data


def test_get_price_spec_raises_without_cache_when_fetch_fails(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failed fetch with no cache should surface as `PriceSpecError`."""
    monkeypatch.setattr(price_spec_module, "_fetch_from_url", _failing_fetch)

    with pytest.raises(PriceSpecError):
        _ = price_spec_module.get_price_spec(cache_path=tmp_path / "missing.json")


def test_get_price_spec_rejects_non_object_documents(monkeypatch: pytest.MonkeyPatch) -> None:
    """A JSON array is not a usable price specification."""
    monkeypatch.setattr(price_spec_module, "_fetch_from_url", lambda _: ["not", "a", "mapping"])

    with pytest.raises(PriceSpecError):
        _ = price_spec_module.get_price_spec(cache_path=None)


def test_get_price_spec_uses_env_cache_path_when_cache_path_not_provided(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """PRICE_CACHE_PATH should be honored when cache_path is omitted."""
    cache_file = tmp_path / "env-prices.json"
    cached_data = {"o3": {"cache_read_input_token_cost": 0.0003}}
    cache_file.write_bytes(orjson.dumps(cached_data))
    monkeypatch.setenv("PRICE_CACHE_PATH", str(cache_file))

    def _unexpected_fetch(url: str) -> dict[str, Any]:
        raise AssertionError(f"Unexpected fetch for {url}")

    monkeypatch.setattr(price_spec_module, "_fetch_from_url", _unexpected_fetch)

    result = price_spec_module.get_price_spec(update_interval_seconds=86400)

    assert result == cached_data
    assert price_spec_module.PriceSpecConfig.from_env().cache_path == cache_file


def test_iter_model_specs_skips_sample_and_non_object_entries() -> None:
    """The schema placeholder and scalar entries should never be yielded."""
    price_spec = {
        "sample_spec": {"input_cost_per_token": 0},
        "gpt-4o": {"input_cost_per_token": 0.0000025},
        "broken": 42,
    }

    assert [code for code, _ in price_spec_module.iter_model_specs(price_spec)] == ["gpt-4o"]


def test_resolve_model_spec_strips_provider_prefix() -> None:
    """Lookups should fall back to the name without its `provider/` prefix."""
    price_spec = {"claude-3-opus-20240229": {"input_cost_per_token": 0.000015}}

    assert price_spec_module.resolve_model_spec("anthropic/claude-3-opus-20240229", price_spec) is not None
    assert price_spec_module.resolve_model_spec("unknown-model", price_spec) is None


def _failing_fetch(_: str) -> dict[str, Any]:
    raise HttpFetchError("boom")


def _write_stale_cache(cache_file: Path, payload: dict[str, Any]) -> None:
    cache_file.write_bytes(orjson.dumps(payload))
    stale_time = time.time() - 10000
    _ = os.utime(cache_file, (stale_time, stale_time))
