"""Tests for shared timestamp, cache, event, and path helpers."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson
import pytest

from telemetry_internal.events import TelemetryEvent, TelemetryEventKind, emit_event
from telemetry_internal.http import HttpFetchError, fetch_json_cached
from telemetry_internal.paths import get_default_database_path, get_default_sync_history_path
from telemetry_internal.timestamps import parse_timestamp


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-01-15T10:30:00Z", datetime(2026, 1, 15, 10, 30, tzinfo=UTC)),
        ("2026-01-15T12:30:00+02:00", datetime(2026, 1, 15, 10, 30, tzinfo=UTC)),
        ("2026-01-15", datetime(2026, 1, 15, tzinfo=UTC)),
        (1_767_225_600, datetime(2026, 1, 1, tzinfo=UTC)),
        (1_767_225_600_000, datetime(2026, 1, 1, tzinfo=UTC)),
        ("1767225600", datetime(2026, 1, 1, tzinfo=UTC)),
    ],
)
def test_parse_timestamp_accepts_common_encodings(value: Any, expected: datetime) -> None:
    """RFC3339 strings, dates, and epoch seconds or milliseconds should all parse to UTC."""
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", [None, True, "", "yesterday", -5, [2026]])
def test_parse_timestamp_rejects_garbage(value: Any) -> None:
    """Unparseable values should yield None rather than raising."""
    assert parse_timestamp(value) is None


def test_cached_fetch_reuses_fresh_cache(tmp_path: Path) -> None:
    """A fresh cache file should be returned without calling the fetcher."""
    cache_path = tmp_path / "cache.json"
    cache_path.write_bytes(orjson.dumps({"cached": True}))

    payload = fetch_json_cached("https://example.invalid/prices.json", cache_path, fetcher=_unexpected_fetch)

    assert payload == {"cached": True}


def test_cached_fetch_refreshes_and_falls_back_to_stale_cache(tmp_path: Path) -> None:
    """A stale cache should be refreshed, and reused when the refresh fails."""
    cache_path = tmp_path / "nested" / "cache.json"

    fresh = fetch_json_cached("https://example.invalid/a", cache_path, fetcher=lambda url: {"url": url})
    assert fresh == {"url": "https://example.invalid/a"}
    assert orjson.loads(cache_path.read_bytes()) == fresh

    old = cache_path.stat().st_mtime - 2 * 86400
    os.utime(cache_path, (old, old))
    stale = fetch_json_cached("https://example.invalid/a", cache_path, fetcher=_failing_fetch)

    assert stale == fresh


def test_cached_fetch_without_cache_propagates_failure(tmp_path: Path) -> None:
    """Without any cache the fetch error should surface."""
    with pytest.raises(HttpFetchError):
        _ = fetch_json_cached("https://example.invalid/a", tmp_path / "missing.json", fetcher=_failing_fetch)


def test_emit_event_isolates_sink_failures() -> None:
    """A failing sink must not break the caller, and a missing sink is a no-op."""
    received: list[TelemetryEvent] = []
    event = TelemetryEvent(TelemetryEventKind.COST_RECORDED, {"cost_usd": 0.5})

    emit_event(None, event)
    emit_event(received.append, event)
    emit_event(_exploding_sink, event)

    assert received == [event]


def test_default_paths_honor_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """The pricing database path should follow the override, then the XDG data home."""
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("MODEL_PRICING_DB_PATH", raising=False)

    assert get_default_database_path() == tmp_path / "data" / "coding-agent-telemetry" / "model_pricing.duckdb"
    assert get_default_sync_history_path().parent == tmp_path / "data" / "coding-agent-telemetry"

    monkeypatch.setenv("MODEL_PRICING_DB_PATH", str(tmp_path / "custom.duckdb"))
    assert get_default_database_path() == tmp_path / "custom.duckdb"


def _unexpected_fetch(url: str) -> Any:
    raise AssertionError(f"Unexpected fetch for {url}")


def _failing_fetch(url: str) -> Any:
    raise HttpFetchError("offline")


def _exploding_sink(event: TelemetryEvent) -> None:
    raise RuntimeError("sink down")
