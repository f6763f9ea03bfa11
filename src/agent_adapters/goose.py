"""Goose adapter: session files and per-session directories under `sessions/`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from agent_sessions import ActivityDetector, AgentType, FallbackChain, Session, SessionSource, UsageTotals
from agent_sessions.normalizer import child_directories, per_file, state_file
from agent_sessions.parsing import (
    LineLogAccumulator,
    LineLogFormat,
    as_float,
    as_int,
    as_str,
    build_session,
    iter_json_lines,
    read_json_document,
    resolve_session_id,
    timestamp_or_mtime,
)
from model_pricing.rate_tables import goose_calculator
from telemetry_internal.events import EventSink
from telemetry_internal.timestamps import parse_timestamp

from .base import AgentAdapter
from .discovery import AdapterPaths, goose_paths

LOGGER = logging.getLogger(__name__)

SESSIONS_DIR_NAME = "sessions"
GOOSE_LOG_FORMAT = LineLogFormat(
    timestamp_paths=(("created",), ("timestamp",)),
    session_id_paths=(("session_id",), ("id",)),
    role_paths=(("role",),),
    usage_paths=(("usage",),),
    model_paths=(("model",),),
    project_paths=(("working_dir",), ("working_directory",)),
)


def goose_model_name(model: Any, provider: Any) -> str | None:
    """Return the model, or `<provider>/default` when only the provider is known."""
    explicit = as_str(model)
    if explicit is not None:
        return explicit
    provider_name = as_str(provider)
    return f"{provider_name}/default" if provider_name is not None else None


def parse_session_object(data: dict[str, Any], path: Path) -> Session | None:
    """Convert a Goose session object or history entry, whichever shape it has."""
    if "session_id" in data or "total_input_tokens" in data:
        return _parse_history_entry(data, path)
    return _parse_session_data(data, path)


def _parse_session_data(data: dict[str, Any], path: Path) -> Session | None:
    started_at = timestamp_or_mtime(data.get("created_at"), path)
    if started_at is None:
        return None
    messages = data.get("messages")
    message_list = [message for message in messages if isinstance(message, dict)] if isinstance(messages, list) else []

    input_tokens = as_int(data.get("input_tokens"))
    output_tokens = as_int(data.get("output_tokens"))
    if input_tokens == 0 and output_tokens == 0:
        for message in message_list:
            tokens = as_int(message.get("tokens"))
            if as_str(message.get("role")) == "assistant":
                output_tokens += tokens
            else:
                input_tokens += tokens

    return build_session(
        agent_type=AgentType.GOOSE,
        session_id=resolve_session_id(data.get("id"), path.stem),
        started_at=started_at,
        ended_at=parse_timestamp(data.get("ended_at")),
        usage=UsageTotals(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model_name=goose_model_name(data.get("model"), data.get("provider")),
        ),
        project_path=as_str(data.get("working_directory")) or as_str(data.get("working_dir")),
        message_count=len(message_list),
        cost_usd=as_float(data.get("total_cost_usd")),
        last_activity_at=parse_timestamp(data.get("updated_at")),
        source_path=path,
        metadata={"profile": data.get("profile"), "provider": data.get("provider")},
    )


def _parse_history_entry(entry: dict[str, Any], path: Path) -> Session | None:
    started_at = timestamp_or_mtime(entry.get("started_at"), path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.GOOSE,
        session_id=resolve_session_id(entry.get("session_id"), path.stem),
        started_at=started_at,
        ended_at=parse_timestamp(entry.get("ended_at")),
        usage=UsageTotals(
            input_tokens=as_int(entry.get("total_input_tokens")),
            output_tokens=as_int(entry.get("total_output_tokens")),
            model_name=goose_model_name(entry.get("model"), entry.get("provider")),
        ),
        project_path=as_str(entry.get("working_directory")),
        cost_usd=as_float(entry.get("total_cost_usd")),
        source_path=path,
        metadata={"profile": entry.get("profile"), "provider": entry.get("provider")},
    )


def parse_session_log(path: Path) -> Session | None:
    """Build a session from a `.jsonl` log whose first non-message line is metadata."""
    metadata: dict[str, Any] | None = None
    accumulator = LineLogAccumulator(log_format=GOOSE_LOG_FORMAT)
    for _line_number, event in iter_json_lines(path):
        if metadata is None and "role" not in event:
            metadata = event
            continue
        accumulator.feed(event)

    if metadata is None:
        return accumulator.to_session(AgentType.GOOSE, path)

    session = _parse_session_data(metadata, path)
    if session is None:
        return None
    if session.usage.total_tokens == 0 and accumulator.lines_accepted:
        usage = accumulator.usage_totals()
        usage = UsageTotals(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cache_read_tokens=usage.cache_read_tokens,
            cache_write_tokens=usage.cache_write_tokens,
            model_name=session.model_name or usage.model_name,
        )
    else:
        usage = session.usage
    return build_session(
        agent_type=AgentType.GOOSE,
        session_id=session.session_id,
        started_at=accumulator.first_timestamp or session.started_at,
        ended_at=session.ended_at,
        usage=usage,
        project_path=session.project_path or accumulator.project_path,
        message_count=as_int(metadata.get("message_count")) or accumulator.message_count,
        cost_usd=session.cost_usd,
        last_activity_at=accumulator.last_timestamp or session.last_activity_at,
        source_path=path,
        metadata=session.metadata,
    )


def parse_session_file(path: Path) -> Session | None:
    """Parse a top-level `.json` or `.jsonl` session file."""
    if path.suffix == ".jsonl":
        return parse_session_log(path)
    document = read_json_document(path)
    if not isinstance(document, dict):
        return None
    return parse_session_object(document, path)


SESSION_FILES_CHAIN = FallbackChain(
    strategies=(("session_files", per_file((".json", ".jsonl"), parse_session_file)),),
)
SESSION_DIR_CHAIN = FallbackChain(
    strategies=(
        ("session_json", state_file("session.json", parse_session_object)),
        ("metadata_json", state_file("metadata.json", parse_session_object)),
    )
)


class GooseAdapter(AgentAdapter):
    """Adapter for Goose session storage under its config and data directories."""

    agent_type = AgentType.GOOSE
    display_name = "Goose"

    def __init__(
        self,
        paths: AdapterPaths | None = None,
        *,
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        super().__init__(paths or goose_paths(), goose_calculator(), detector=detector, event_sink=event_sink)

    def sessions_dirs(self) -> list[Path]:
        """Return each existing `sessions/` directory."""
        candidates = [data_dir / SESSIONS_DIR_NAME for data_dir in self.data_dirs()]
        return [candidate for candidate in candidates if candidate.is_dir()]

    def session_subdirs(self) -> list[Path]:
        """Return per-session directories nested under `sessions/`."""
        subdirs: list[Path] = []
        for sessions_dir in self.sessions_dirs():
            subdirs.extend(child_directories(sessions_dir))
        return subdirs

    def session_sources(self) -> list[SessionSource]:
        return [
            SessionSource(name="goose.files", directories=self.sessions_dirs, chain=SESSION_FILES_CHAIN),
            SessionSource(name="goose.directories", directories=self.session_subdirs, chain=SESSION_DIR_CHAIN),
        ]
