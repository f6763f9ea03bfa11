"""Lenient timestamp parsing shared by the session format parsers."""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from pathlib import Path
from typing import Any

# Epoch values above this are treated as milliseconds.
_EPOCH_MILLIS_THRESHOLD = 10_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC3339 string, `YYYY-MM-DD` date, or epoch number into an aware UTC datetime.

    Unparseable values return None instead of raising, so one bad field never
    discards an otherwise usable record.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        return _parse_epoch(value)
    if not isinstance(value, str):
        return None

    stripped = value.strip()
    if not stripped:
        return None
    if stripped.isdigit():
        return _parse_epoch(int(stripped))

    normalized = stripped.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        try:
            return datetime.combine(date.fromisoformat(stripped), time.min, tzinfo=UTC)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def file_modified_at(path: Path) -> datetime | None:
    """Return a file's modification time as an aware UTC datetime."""
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
    except OSError:
        return None


def _parse_epoch(value: int | float) -> datetime | None:
    """Convert epoch seconds or milliseconds into a UTC datetime."""
    if value < 0:
        return None
    seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None
