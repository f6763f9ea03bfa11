"""Claude Code adapter: per-project session files under `projects/`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from agent_sessions import (
    ActiveSession,
    ActivityDetector,
    AgentType,
    FallbackChain,
    Session,
    SessionSource,
    UsageTotals,
)
from agent_sessions.errors import SessionParseError
from agent_sessions.normalizer import aggregate_file, child_directories, per_file, state_file
from agent_sessions.parsing import (
    LineLogFormat,
    accumulate_line_log,
    as_float,
    as_int,
    as_str,
    build_session,
    read_json_document,
    resolve_session_id,
    timestamp_or_mtime,
)
from model_pricing.rate_tables import claude_code_calculator
from telemetry_internal.events import EventSink
from telemetry_internal.timestamps import parse_timestamp

from .base import AgentAdapter
from .discovery import AdapterPaths, claude_code_paths

LOGGER = logging.getLogger(__name__)

SESSIONS_FILE_NAME = "sessions.json"
STATE_FILE_NAME = "state.json"

CLAUDE_LOG_FORMAT = LineLogFormat(
    timestamp_paths=(("timestamp",), ("snapshot", "timestamp")),
    session_id_paths=(("sessionId",), ("session_id",)),
    role_paths=(("message", "role"), ("type",)),
    usage_paths=(("message", "usage"),),
    model_paths=(("message", "model"),),
    project_paths=(("cwd",),),
)


def parse_session_entry(entry: dict[str, Any], path: Path) -> Session | None:
    """Convert one `sessions.json` entry."""
    started_at = timestamp_or_mtime(entry.get("started_at"), path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.CLAUDE_CODE,
        session_id=resolve_session_id(entry.get("id")),
        started_at=started_at,
        ended_at=parse_timestamp(entry.get("ended_at")),
        usage=UsageTotals(
            input_tokens=as_int(entry.get("input_tokens")),
            output_tokens=as_int(entry.get("output_tokens")),
            cache_read_tokens=as_int(entry.get("cache_read_tokens")),
            cache_write_tokens=as_int(entry.get("cache_write_tokens")),
            model_name=as_str(entry.get("model")),
        ),
        project_path=as_str(entry.get("project_path")),
        cost_usd=as_float(entry.get("cost_usd")),
        source_path=path,
    )


def parse_project_state(state: dict[str, Any], path: Path) -> Session | None:
    """Infer one open session from a project's `state.json`."""
    last_active = parse_timestamp(state.get("last_active"))
    started_at = last_active or timestamp_or_mtime(None, path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.CLAUDE_CODE,
        session_id=resolve_session_id(state.get("session_id"), source_path=path),
        started_at=started_at,
        ended_at=None,
        usage=UsageTotals(
            input_tokens=as_int(state.get("total_input_tokens")),
            output_tokens=as_int(state.get("total_output_tokens")),
            model_name=as_str(state.get("model")),
        ),
        project_path=as_str(state.get("project_path")) or str(path.parent),
        cost_usd=as_float(state.get("total_cost_usd")),
        last_activity_at=last_active,
        source_path=path,
    )


def parse_session_log(path: Path) -> Session | None:
    """Accumulate one `<session-id>.jsonl` conversation log."""
    return accumulate_line_log(path, AgentType.CLAUDE_CODE, CLAUDE_LOG_FORMAT)


PROJECT_CHAIN = FallbackChain(
    strategies=(
        ("sessions_file", aggregate_file(SESSIONS_FILE_NAME, parse_session_entry)),
        ("state_file", state_file(STATE_FILE_NAME, parse_project_state)),
        ("jsonl_logs", per_file((".jsonl",), parse_session_log, recursive=True)),
    )
)


class ClaudeCodeAdapter(AgentAdapter):
    """Adapter for Claude Code's `~/.claude/projects/<project>/` layout."""

    agent_type = AgentType.CLAUDE_CODE
    display_name = "Claude Code"

    def __init__(
        self,
        paths: AdapterPaths | None = None,
        *,
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        super().__init__(paths or claude_code_paths(), claude_code_calculator(), detector=detector, event_sink=event_sink)

    def project_dirs(self) -> list[Path]:
        """Return every project directory across the existing config directories."""
        project_dirs: list[Path] = []
        for data_dir in self.data_dirs():
            project_dirs.extend(child_directories(data_dir / "projects"))
        return project_dirs

    def session_sources(self) -> list[SessionSource]:
        return [SessionSource(name="claude_code.projects", directories=self.project_dirs, chain=PROJECT_CHAIN)]

    def active_candidates(self) -> list[ActiveSession]:
        """Project every `state.json` carrying a `last_active` stamp."""
        candidates: list[ActiveSession] = []
        for project_dir in self.project_dirs():
            state_path = project_dir / STATE_FILE_NAME
            if not state_path.is_file():
                continue
            try:
                state = read_json_document(state_path)
            except SessionParseError as exc:
                LOGGER.debug("Skipping state file for liveness: %s", exc)
                continue
            if not isinstance(state, dict):
                continue
            last_active = parse_timestamp(state.get("last_active"))
            if last_active is None:
                continue
            candidates.append(
                ActiveSession(
                    session_id=resolve_session_id(state.get("session_id"), source_path=state_path),
                    agent_type=AgentType.CLAUDE_CODE,
                    started_at=last_active,
                    current_tokens=as_int(state.get("total_input_tokens")) + as_int(state.get("total_output_tokens")),
                    last_activity_at=last_active,
                    model_name=as_str(state.get("model")),
                    project_path=as_str(state.get("project_path")) or str(project_dir),
                )
            )
        return candidates
