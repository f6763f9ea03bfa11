"""Tests for the Goose adapter."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import pytest

from agent_adapters import GooseAdapter
from agent_adapters.discovery import AdapterPaths


def test_session_object_splits_message_tokens_by_role(tmp_path: Path) -> None:
    """Message-level tokens should count as output for the assistant and input otherwise."""
    root = tmp_path / "goose"
    _write_json(
        root / "sessions" / "work.json",
        {
            "id": "g-1",
            "created_at": "2026-01-07T12:00:00Z",
            "ended_at": "2026-01-07T12:20:00Z",
            "provider": "openai",
            "model": "gpt-4o",
            "working_directory": "/home/dev/app",
            "messages": [
                {"role": "user", "tokens": 120},
                {"role": "assistant", "tokens": 80},
                "not-a-message",
            ],
        },
    )

    sessions = _adapter(root).get_sessions()

    assert len(sessions) == 1
    session = sessions[0]
    assert session.usage.input_tokens == 120
    assert session.usage.output_tokens == 80
    assert session.message_count == 2
    assert session.project_path == "/home/dev/app"
    assert session.metadata["provider"] == "openai"
    assert session.cost_usd == pytest.approx(120 / 1000 * 0.0025 + 80 / 1000 * 0.010)


def test_provider_only_model_prices_with_provider_default(tmp_path: Path) -> None:
    """A session naming only `ollama` should be priced with the free local rate."""
    root = tmp_path / "goose"
    _write_json(
        root / "sessions" / "local.json",
        {
            "session_id": "g-local",
            "started_at": "2026-01-07T12:00:00Z",
            "ended_at": "2026-01-07T13:00:00Z",
            "total_input_tokens": 5000,
            "total_output_tokens": 5000,
            "provider": "ollama",
        },
    )

    sessions = _adapter(root).get_sessions()

    assert sessions[0].model_name == "ollama/default"
    assert sessions[0].cost_usd == 0.0


def test_jsonl_log_reads_metadata_line_then_messages(tmp_path: Path) -> None:
    """The first non-message line should be metadata and messages should supply usage."""
    root = tmp_path / "goose"
    _write_jsonl(
        root / "sessions" / "log.jsonl",
        [
            {"id": "g-log", "created_at": "2026-01-08T09:00:00Z", "working_dir": "/srv", "model": "claude-3-haiku"},
            {"role": "user", "created": "2026-01-08T09:01:00Z", "usage": {"input_tokens": 40}},
            {"role": "assistant", "created": "2026-01-08T09:02:00Z", "usage": {"output_tokens": 60}},
        ],
    )

    sessions = _adapter(root).get_sessions()

    assert len(sessions) == 1
    session = sessions[0]
    assert session.session_id == "g-log"
    assert session.total_tokens == 100
    assert session.message_count == 2
    assert session.project_path == "/srv"
    assert session.model_name == "claude-3-haiku"


def test_session_directories_fall_back_to_metadata_json(tmp_path: Path) -> None:
    """Per-session directories should use `metadata.json` when `session.json` is absent."""
    root = tmp_path / "goose"
    _write_json(
        root / "sessions" / "abc" / "metadata.json",
        {"id": "g-dir", "created_at": "2026-01-09T00:00:00Z", "ended_at": "2026-01-09T01:00:00Z", "input_tokens": 7},
    )

    sessions = _adapter(root).get_sessions()

    assert [session.session_id for session in sessions] == ["g-dir"]
    assert sessions[0].usage.input_tokens == 7


def test_config_and_data_directories_are_both_scanned(tmp_path: Path) -> None:
    """Sessions from every existing candidate directory should be merged."""
    config_root = tmp_path / "config" / "goose"
    data_root = tmp_path / "data" / "goose"
    _write_json(config_root / "sessions" / "a.json", {"id": "from-config", "created_at": "2026-01-01T00:00:00Z"})
    _write_json(data_root / "sessions" / "b.json", {"id": "from-data", "created_at": "2026-01-02T00:00:00Z"})
    adapter = GooseAdapter(AdapterPaths((config_root, data_root), None))

    assert [session.session_id for session in adapter.get_sessions()] == ["from-data", "from-config"]


def _adapter(root: Path) -> GooseAdapter:
    return GooseAdapter(AdapterPaths((root,), None))


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(payload))


def _write_jsonl(path: Path, lines: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"".join(orjson.dumps(line) + b"\n" for line in lines))
