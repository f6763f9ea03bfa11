"""Tests for the Cursor adapter and its subscription pricing."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import pytest

from agent_adapters import CursorAdapter
from agent_adapters.discovery import AdapterPaths


def test_chat_conversation_estimates_missing_token_counts(tmp_path: Path) -> None:
    """Messages without a token count should be estimated at four characters per token."""
    root = tmp_path / "Cursor"
    _write_conversation(
        root,
        "cursor.chat",
        "chat-1",
        {
            "id": "chat-1",
            "createdAt": "2026-01-12T10:00:00Z",
            "updatedAt": "2026-01-12T10:05:00Z",
            "files": ["a.py", "b.py"],
            "messages": [
                {"role": "user", "content": "x" * 400},
                {"role": "assistant", "tokens": 250, "model": "gpt-4o"},
            ],
        },
    )

    sessions = _adapter(root).get_sessions()

    assert len(sessions) == 1
    session = sessions[0]
    assert session.usage.input_tokens == 100
    assert session.usage.output_tokens == 250
    assert session.model_name == "gpt-4o"
    assert session.message_count == 2
    assert session.metadata == {"kind": "chat", "files": 2}
    assert session.cost_usd == pytest.approx(100 / 1000 * 0.0025 + 250 / 1000 * 0.010)


def test_composer_session_object_without_messages(tmp_path: Path) -> None:
    """A composer entry without `messages` should be read as a plain session object."""
    root = tmp_path / "Cursor"
    _write_conversation(
        root,
        "cursor.composer",
        "comp-1",
        {
            "id": "comp-1",
            "startedAt": "2026-01-13T10:00:00Z",
            "endedAt": "2026-01-13T11:00:00Z",
            "inputTokens": 1000,
            "outputTokens": 2000,
            "model": "claude-3-5-sonnet",
            "workspacePath": "/code/site",
        },
    )

    session = _adapter(root).get_sessions()[0]

    assert session.session_id == "comp-1"
    assert session.total_tokens == 3000
    assert session.project_path == "/code/site"


def test_free_tier_bills_all_usage(tmp_path: Path) -> None:
    """On the free plan the monthly cost should equal the per-token usage cost."""
    root = tmp_path / "Cursor"
    _write_conversation(root, "cursor.chat", "c", _conversation("c", 1000, "gpt-4o"))
    adapter = _adapter(root, tier="free")

    assert adapter.get_monthly_cost() == pytest.approx(adapter.get_total_cost())
    assert adapter.get_monthly_cost() > 0


def test_pro_tier_within_quota_costs_the_flat_fee(tmp_path: Path) -> None:
    """Premium requests under the quota should leave only the plan fee."""
    root = tmp_path / "Cursor"
    _write_conversation(root, "cursor.chat", "c", _conversation("c", 1000, "gpt-4o"))
    _write_conversation(root, "cursor.chat", "d", _conversation("d", 1000, "cursor-small"))
    adapter = _adapter(root, tier="pro")

    assert adapter.premium_request_count() == 1
    assert adapter.get_monthly_cost() == pytest.approx(20.0)


def _adapter(root: Path, tier: str = "free") -> CursorAdapter:
    return CursorAdapter(AdapterPaths((root,), None), tier=tier)


def _conversation(conversation_id: str, tokens: int, model: str) -> dict[str, Any]:
    return {
        "id": conversation_id,
        "createdAt": "2026-01-14T10:00:00Z",
        "messages": [{"role": "assistant", "tokens": tokens, "model": model}],
    }


def _write_conversation(root: Path, kind: str, name: str, payload: dict[str, Any]) -> None:
    path = root / "User" / "globalStorage" / kind / f"{name}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(payload))
