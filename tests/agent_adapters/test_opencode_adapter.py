"""Tests for the OpenCode adapter's SQLite and file-based sources."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import orjson
import pytest

from agent_adapters import OpenCodeAdapter
from agent_adapters.discovery import AdapterPaths
from agent_adapters.errors import SourceDatabaseError
from agent_adapters.opencode import OpenCodeDatabaseReader

JAN_1_2026_MS = 1_767_225_600_000


def test_database_messages_aggregate_per_session(tmp_path: Path) -> None:
    """Assistant rows should fold into one session with summed tokens and reported cost."""
    root = tmp_path / "opencode"
    root.mkdir()
    _build_source_db(
        root / "opencode.db",
        [
            ("m1", "s1", JAN_1_2026_MS, _assistant_payload(100, 20, reasoning=5, cache_read=40, cost=0.01)),
            ("m2", "s1", JAN_1_2026_MS + 60_000, _assistant_payload(50, 10, cost=0.02)),
            ("m3", "s1", JAN_1_2026_MS + 30_000, {"role": "user"}),
        ],
    )

    sessions = _adapter(root).get_sessions()

    assert len(sessions) == 1
    session = sessions[0]
    assert session.session_id == "s1"
    assert session.usage.input_tokens == 150
    assert session.usage.output_tokens == 35
    assert session.usage.cache_read_tokens == 40
    assert session.message_count == 2
    assert session.model_name == "anthropic/claude-sonnet-4-5"
    assert session.project_path == "/tmp/project"
    assert session.metadata["title"] == "Refactor"
    assert session.cost_usd == pytest.approx(0.03)
    assert session.started_at == datetime(2026, 1, 1, tzinfo=UTC)


def test_database_duplicates_win_over_session_files(tmp_path: Path) -> None:
    """A session id present in both the database and a JSON file should keep the database record."""
    root = tmp_path / "opencode"
    root.mkdir()
    _build_source_db(root / "opencode.db", [("m1", "s1", JAN_1_2026_MS, _assistant_payload(100, 20))])
    _write_json(root / "sessions" / "s1.json", {"id": "s1", "created_at": "2026-01-01T00:00:00Z", "input_tokens": 9})
    _write_json(root / "history" / "s2.json", {"id": "s2", "created_at": "2026-01-02T00:00:00Z", "input_tokens": 3})

    sessions = {session.session_id: session for session in _adapter(root).get_sessions()}

    assert sessions.keys() == {"s1", "s2"}
    assert sessions["s1"].usage.input_tokens == 100


def test_session_document_top_level_totals_override_messages(tmp_path: Path) -> None:
    """Top-level token fields should replace summed message usage."""
    root = tmp_path / "opencode"
    _write_json(
        root / "sessions" / "doc.json",
        {
            "id": "doc",
            "started_at": "2026-01-03T00:00:00Z",
            "ended_at": "2026-01-03T01:00:00Z",
            "provider": "openai",
            "model": "gpt-4o",
            "input_tokens": 1_000_000,
            "messages": [{"usage": {"input_tokens": 5, "output_tokens": 7}}],
        },
    )

    session = _adapter(root).get_sessions()[0]

    assert session.usage.input_tokens == 1_000_000
    assert session.usage.output_tokens == 7
    assert session.model_name == "openai/gpt-4o"
    assert session.cost_usd == pytest.approx(2.5 + 7 / 1_000_000 * 10.0)


def test_project_state_reports_active_session(tmp_path: Path) -> None:
    """A recent per-project `state.json` should surface as the active session."""
    now = datetime.now(UTC)
    root = tmp_path / "opencode"
    _write_json(
        root / "sessions" / "proj" / "state.json",
        {
            "current_session_id": "live",
            "last_active": (now - timedelta(minutes=2)).isoformat(),
            "total_input_tokens": 10,
            "total_output_tokens": 15,
            "provider": "anthropic",
            "model": "claude-opus-4",
        },
    )

    active = _adapter(root).get_active_session()

    assert active is not None
    assert active.session_id == "live"
    assert active.current_tokens == 25
    assert active.model_name == "anthropic/claude-opus-4"


def test_project_state_without_id_reports_one_session(tmp_path: Path) -> None:
    """An id-less `state.json` should be reported once with the same id on every scan."""
    root = tmp_path / "opencode"
    _write_json(
        root / "sessions" / "proj" / "state.json",
        {"last_active": (datetime.now(UTC) - timedelta(minutes=2)).isoformat(), "total_input_tokens": 10},
    )
    adapter = _adapter(root)

    first = adapter.get_active_sessions()
    second = adapter.get_active_sessions()

    assert len(first) == 1
    assert [active.session_id for active in second] == [first[0].session_id]


def test_database_without_required_tables_is_skipped(tmp_path: Path) -> None:
    """A database missing `session` should raise from the reader and be skipped by the adapter."""
    root = tmp_path / "opencode"
    root.mkdir()
    connection = sqlite3.connect(str(root / "opencode.db"))
    try:
        _ = connection.execute(
            "CREATE TABLE message (id TEXT PRIMARY KEY, session_id TEXT, time_created INTEGER, time_updated INTEGER, data TEXT)"
        )
        connection.commit()
    finally:
        connection.close()

    reader = OpenCodeDatabaseReader(root / "opencode.db")
    try:
        with pytest.raises(SourceDatabaseError):
            reader.ensure_schema()
    finally:
        reader.close()
    assert _adapter(root).get_sessions() == []


def _adapter(root: Path) -> OpenCodeAdapter:
    return OpenCodeAdapter(AdapterPaths((root,), None))


def _assistant_payload(
    input_tokens: int,
    output_tokens: int,
    *,
    reasoning: int = 0,
    cache_read: int = 0,
    cost: float | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "role": "assistant",
        "providerID": "anthropic",
        "modelID": "claude-sonnet-4-5",
        "tokens": {
            "input": input_tokens,
            "output": output_tokens,
            "reasoning": reasoning,
            "cache": {"read": cache_read, "write": 0},
        },
    }
    if cost is not None:
        payload["cost"] = cost
    return payload


def _build_source_db(source_db: Path, rows: list[tuple[str, str, int, dict[str, Any]]]) -> None:
    connection = sqlite3.connect(str(source_db))
    try:
        _ = connection.execute(
            "CREATE TABLE session (id TEXT PRIMARY KEY, project_id TEXT, title TEXT, directory TEXT, version TEXT)"
        )
        _ = connection.execute(
            "CREATE TABLE message (id TEXT PRIMARY KEY, session_id TEXT, time_created INTEGER, time_updated INTEGER, data TEXT)"
        )
        _ = connection.execute(
            "INSERT INTO session (id, project_id, title, directory, version) "
            "VALUES ('s1', 'p1', 'Refactor', '/tmp/project', '1.0.0')"
        )
        for message_id, session_id, time_ms, payload in rows:
            _ = connection.execute(
                "INSERT INTO message (id, session_id, time_created, time_updated, data) VALUES (?, ?, ?, ?, ?)",
                (message_id, session_id, time_ms, time_ms, orjson.dumps(payload).decode("utf-8")),
            )
        connection.commit()
    finally:
        connection.close()


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(payload))
