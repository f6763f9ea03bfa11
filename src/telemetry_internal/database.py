"""Shared DuckDB utilities for coding-agent-telemetry."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from pathlib import Path

import duckdb

_SHORT_OFFSET_PATTERN = re.compile(r"([+-]\d{2})$")


def connect_utc(database_path: Path) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection whose TIMESTAMPTZ rendering is pinned to UTC."""
    connection = duckdb.connect(str(database_path))
    _ = connection.execute("SET TimeZone = 'UTC'")
    return connection


def parse_db_timestamp(value: str | None) -> datetime | None:
    """Parse DuckDB TIMESTAMPTZ string output into an aware UTC datetime."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"Expected timestamp string from DB, got {type(value).__name__}.")
    normalized = _SHORT_OFFSET_PATTERN.sub(r"\1:00", value.replace(" ", "T"))
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
