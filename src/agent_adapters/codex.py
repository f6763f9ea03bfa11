"""Codex CLI adapter: history file, per-session objects, and rollout event logs."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from agent_sessions import ActivityDetector, AgentType, FallbackChain, Session, SessionSource, UsageTotals
from agent_sessions.normalizer import aggregate_file, in_subdirectory, json_document_parser, per_file
from agent_sessions.parsing import (
    COUNTED_ROLES,
    as_float,
    as_int,
    as_str,
    build_session,
    get_path,
    iter_json_lines,
    resolve_session_id,
    timestamp_or_mtime,
)
from model_pricing.rate_tables import codex_calculator
from telemetry_internal.events import EventSink
from telemetry_internal.timestamps import file_modified_at, parse_timestamp

from .base import AgentAdapter
from .discovery import AdapterPaths, codex_paths

LOGGER = logging.getLogger(__name__)

HISTORY_FILE_NAME = "history.json"
SESSIONS_DIR_NAME = "sessions"
ROLLOUT_PREFIX = "rollout-"

_TRAILING_UUID = re.compile(r"([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})$")


def parse_history_entry(entry: dict[str, Any], path: Path) -> Session | None:
    """Convert one `history.json` entry."""
    started_at = timestamp_or_mtime(entry.get("started_at"), path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.CODEX,
        session_id=resolve_session_id(entry.get("session_id")),
        started_at=started_at,
        ended_at=parse_timestamp(entry.get("ended_at")),
        usage=UsageTotals(
            input_tokens=as_int(entry.get("total_input_tokens")),
            output_tokens=as_int(entry.get("total_output_tokens")),
            model_name=as_str(entry.get("model")),
        ),
        project_path=as_str(entry.get("cwd")),
        cost_usd=as_float(entry.get("total_cost_usd")),
        source_path=path,
    )


def parse_session_document(document: Any, path: Path) -> Session | None:
    """Convert one `sessions/<id>.json` object; reasoning tokens count as output."""
    if not isinstance(document, dict):
        return None
    started_at = timestamp_or_mtime(document.get("created_at"), path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.CODEX,
        session_id=resolve_session_id(document.get("id"), path.stem),
        started_at=started_at,
        ended_at=None,
        usage=UsageTotals(
            input_tokens=as_int(document.get("input_tokens")),
            output_tokens=as_int(document.get("output_tokens")) + as_int(document.get("reasoning_tokens")),
            model_name=as_str(document.get("model")),
        ),
        project_path=as_str(document.get("cwd")),
        cost_usd=as_float(document.get("cost_usd")),
        last_activity_at=parse_timestamp(document.get("updated_at")),
        source_path=path,
    )


def parse_rollout_log(path: Path) -> Session | None:
    """Build a session from a `rollout-*.jsonl` event log.

    `token_count` events carry cumulative totals, so the last snapshot wins.
    Cached input is reported inside `input_tokens` and is split out as cache
    reads; reasoning tokens are already part of `output_tokens`.
    """
    embedded_id: str | None = None
    project_path: str | None = None
    model_name: str | None = None
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    total_usage: Mapping[str, Any] | None = None
    message_count = 0
    lines_accepted = 0

    for _line_number, event in iter_json_lines(path):
        lines_accepted += 1
        timestamp = parse_timestamp(event.get("timestamp"))
        if timestamp is not None:
            first_timestamp = timestamp if first_timestamp is None else min(first_timestamp, timestamp)
            last_timestamp = timestamp if last_timestamp is None else max(last_timestamp, timestamp)

        payload = event.get("payload")
        if not isinstance(payload, dict):
            continue
        event_type = event.get("type")
        if event_type == "session_meta" and embedded_id is None:
            embedded_id = as_str(payload.get("id"))
            project_path = as_str(payload.get("cwd"))
        elif event_type == "turn_context":
            model_name = as_str(payload.get("model")) or model_name
        elif event_type == "response_item" and payload.get("type") == "message":
            role = as_str(payload.get("role"))
            if role is not None and role.lower() in COUNTED_ROLES:
                message_count += 1
        elif event_type == "event_msg" and payload.get("type") == "token_count":
            snapshot = get_path(payload, ("info", "total_token_usage"))
            if isinstance(snapshot, Mapping):
                total_usage = snapshot

    if lines_accepted == 0:
        return None
    started_at = first_timestamp or file_modified_at(path)
    if started_at is None:
        return None

    usage = UsageTotals(model_name=model_name)
    if total_usage is not None:
        input_tokens = as_int(total_usage.get("input_tokens"))
        cached_tokens = as_int(total_usage.get("cached_input_tokens"))
        usage = UsageTotals(
            input_tokens=max(input_tokens - cached_tokens, 0),
            output_tokens=as_int(total_usage.get("output_tokens")),
            cache_read_tokens=cached_tokens,
            model_name=model_name,
        )

    return build_session(
        agent_type=AgentType.CODEX,
        session_id=resolve_session_id(embedded_id, _rollout_stem_id(path)),
        started_at=started_at,
        ended_at=None,
        usage=usage,
        project_path=project_path,
        message_count=message_count,
        last_activity_at=last_timestamp,
        source_path=path,
    )


def _rollout_stem_id(path: Path) -> str | None:
    match = _TRAILING_UUID.search(path.stem)
    return match.group(1) if match is not None else None


CODEX_CHAIN = FallbackChain(
    strategies=(
        ("history_file", aggregate_file(HISTORY_FILE_NAME, parse_history_entry)),
        (
            "session_files",
            in_subdirectory(SESSIONS_DIR_NAME, per_file((".json",), json_document_parser(parse_session_document))),
        ),
        (
            "rollout_logs",
            in_subdirectory(
                SESSIONS_DIR_NAME,
                per_file((".jsonl",), parse_rollout_log, recursive=True, name_prefix=ROLLOUT_PREFIX),
            ),
        ),
    )
)


class CodexAdapter(AgentAdapter):
    """Adapter for the Codex CLI data directory."""

    agent_type = AgentType.CODEX
    display_name = "Codex"

    def __init__(
        self,
        paths: AdapterPaths | None = None,
        *,
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        super().__init__(paths or codex_paths(), codex_calculator(), detector=detector, event_sink=event_sink)

    def session_sources(self) -> list[SessionSource]:
        return [SessionSource(name="codex", directories=self.data_dirs, chain=CODEX_CHAIN)]
