"""OpenCode adapter: JSON/JSONL session files, per-project state, and the SQLite message store."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson

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
    INPUT_TOKEN_KEYS,
    OUTPUT_TOKEN_KEYS,
    LineLogFormat,
    accumulate_line_log,
    as_float,
    as_int,
    as_str,
    build_session,
    first_value,
    get_path,
    read_json_document,
    resolve_session_id,
    timestamp_or_mtime,
)
from model_pricing.rate_tables import opencode_calculator
from telemetry_internal.events import EventSink
from telemetry_internal.timestamps import parse_timestamp

from .base import AgentAdapter
from .discovery import AdapterPaths, opencode_paths
from .errors import SourceDatabaseError

LOGGER = logging.getLogger(__name__)

DATABASE_FILE_NAME = "opencode.db"
STATE_FILE_NAME = "state.json"
REQUIRED_TABLES: tuple[str, ...] = ("message", "session")

OPENCODE_LOG_FORMAT = LineLogFormat(
    timestamp_paths=(("timestamp",), ("time",), ("created_at",)),
    session_id_paths=(("session_id",), ("sessionID",)),
    usage_paths=(("usage",),),
    model_paths=(("model",),),
    project_paths=(("cwd",), ("project_path",)),
    count_every_line=True,
)


def opencode_model_name(provider: Any, model: Any) -> str | None:
    """Join provider and model as `provider/model` when both are known."""
    provider_name = as_str(provider)
    model_name = as_str(model)
    if provider_name is not None and model_name is not None:
        return f"{provider_name}/{model_name}"
    return model_name or provider_name


def parse_session_document(document: Any, path: Path) -> Session | None:
    """Convert a session JSON document; top-level token totals override summed message usage."""
    if not isinstance(document, dict):
        return None
    started_at = timestamp_or_mtime(document.get("started_at") or document.get("created_at"), path)
    if started_at is None:
        return None

    messages = document.get("messages")
    message_list = [message for message in messages if isinstance(message, dict)] if isinstance(messages, list) else []
    input_tokens = 0
    output_tokens = 0
    for message in message_list:
        usage = message.get("usage")
        if isinstance(usage, dict):
            input_tokens += as_int(first_value(usage, INPUT_TOKEN_KEYS))
            output_tokens += as_int(first_value(usage, OUTPUT_TOKEN_KEYS))

    if document.get("input_tokens") is not None:
        input_tokens = as_int(document.get("input_tokens"))
    if document.get("output_tokens") is not None:
        output_tokens = as_int(document.get("output_tokens"))
    if input_tokens == 0 and output_tokens == 0:
        input_tokens = as_int(document.get("total_tokens"))

    return build_session(
        agent_type=AgentType.OPENCODE,
        session_id=resolve_session_id(document.get("id"), path.stem),
        started_at=started_at,
        ended_at=parse_timestamp(document.get("ended_at")),
        usage=UsageTotals(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model_name=opencode_model_name(document.get("provider"), document.get("model")),
        ),
        project_path=as_str(document.get("project_path")) or as_str(document.get("cwd")),
        message_count=len(message_list),
        cost_usd=as_float(document.get("cost_usd")),
        last_activity_at=parse_timestamp(document.get("updated_at")),
        source_path=path,
    )


def parse_session_file(path: Path) -> Session | None:
    """Parse a `.json` session document or a `.jsonl` message log."""
    if path.suffix == ".jsonl":
        return accumulate_line_log(path, AgentType.OPENCODE, OPENCODE_LOG_FORMAT)
    return parse_session_document(read_json_document(path), path)


def parse_session_entry(entry: dict[str, Any], path: Path) -> Session | None:
    """Convert one entry of a project's `sessions.json`."""
    return parse_session_document(entry, path)


def parse_project_state(state: dict[str, Any], path: Path) -> Session | None:
    """Infer one open session from a `state.json`."""
    last_active = parse_timestamp(state.get("last_active"))
    started_at = last_active or timestamp_or_mtime(None, path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.OPENCODE,
        session_id=resolve_session_id(state.get("current_session_id"), source_path=path),
        started_at=started_at,
        ended_at=None,
        usage=UsageTotals(
            input_tokens=as_int(state.get("total_input_tokens")),
            output_tokens=as_int(state.get("total_output_tokens")),
            model_name=opencode_model_name(state.get("provider"), state.get("model")),
        ),
        project_path=as_str(state.get("project_path")) or str(path.parent),
        cost_usd=as_float(state.get("total_cost_usd")),
        last_activity_at=last_active,
        source_path=path,
    )


@dataclass
class _SessionUsage:
    """Per-session totals folded from assistant message rows."""

    first_created: datetime | None = None
    last_updated: datetime | None = None
    message_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    model_name: str | None = None
    cost_usd: float | None = None
    directory: str | None = None
    title: str | None = None


class OpenCodeDatabaseReader:
    """Read assistant message usage from OpenCode's SQLite storage."""

    def __init__(self, database_path: Path) -> None:
        self._database_path = database_path
        self._connection = _connect_read_only(database_path)

    def close(self) -> None:
        """Close SQLite connection."""
        self._connection.close()

    def ensure_schema(self) -> None:
        """Validate required source tables exist."""
        rows = self._connection.execute(
            """
SELECT name
FROM sqlite_master
WHERE type = 'table'
  AND name IN (?, ?)
            """,
            list(REQUIRED_TABLES),
        ).fetchall()
        existing = {str(row[0]) for row in rows}
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if missing:
            raise SourceDatabaseError(f"Missing required table(s) in {self._database_path}: {', '.join(missing)}")

    def iter_assistant_rows(self) -> Iterator[tuple[str, int, int, str, str | None, str | None]]:
        """Yield `(session_id, time_created_ms, time_updated_ms, data, directory, title)` rows."""
        try:
            cursor = self._connection.execute(
                """
SELECT
    m.session_id,
    m.time_created,
    m.time_updated,
    m.data,
    s.directory,
    s.title
FROM message m
JOIN session s ON s.id = m.session_id
WHERE json_extract(m.data, '$.role') = 'assistant'
ORDER BY m.time_updated ASC, m.id ASC
                """
            )
            for row in cursor:
                yield (
                    str(row[0]),
                    int(row[1] or 0),
                    int(row[2] or 0),
                    str(row[3]),
                    str(row[4]) if row[4] is not None else None,
                    str(row[5]) if row[5] is not None else None,
                )
        except sqlite3.Error as exc:
            raise SourceDatabaseError(f"Failed reading {self._database_path}: {exc}") from exc

    def read_sessions(self) -> list[Session]:
        """Aggregate assistant message rows into one session per OpenCode session id."""
        totals: dict[str, _SessionUsage] = {}
        for session_id, created_ms, updated_ms, data, directory, title in self.iter_assistant_rows():
            try:
                payload = orjson.loads(data)
            except orjson.JSONDecodeError as exc:
                LOGGER.debug("Skipping malformed message payload in session %s: %s", session_id, exc)
                continue
            if not isinstance(payload, dict):
                continue
            usage = totals.setdefault(session_id, _SessionUsage(directory=directory, title=title))
            _fold_message(usage, payload, created_ms, updated_ms)

        sessions: list[Session] = []
        for session_id, usage in totals.items():
            if usage.first_created is None:
                continue
            sessions.append(
                build_session(
                    agent_type=AgentType.OPENCODE,
                    session_id=session_id,
                    started_at=usage.first_created,
                    ended_at=None,
                    usage=UsageTotals(
                        input_tokens=usage.input_tokens,
                        output_tokens=usage.output_tokens,
                        cache_read_tokens=usage.cache_read_tokens,
                        cache_write_tokens=usage.cache_write_tokens,
                        model_name=usage.model_name,
                    ),
                    project_path=usage.directory,
                    message_count=usage.message_count,
                    cost_usd=usage.cost_usd,
                    last_activity_at=usage.last_updated,
                    source_path=self._database_path,
                    metadata={"title": usage.title} if usage.title else None,
                )
            )
        return sessions


def _fold_message(usage: _SessionUsage, payload: dict[str, Any], created_ms: int, updated_ms: int) -> None:
    created_at = _ms_to_datetime(created_ms)
    updated_at = _ms_to_datetime(updated_ms)
    if created_at is not None and (usage.first_created is None or created_at < usage.first_created):
        usage.first_created = created_at
    if updated_at is not None and (usage.last_updated is None or updated_at > usage.last_updated):
        usage.last_updated = updated_at

    usage.message_count += 1
    tokens = payload.get("tokens")
    if isinstance(tokens, dict):
        usage.input_tokens += as_int(tokens.get("input"))
        usage.output_tokens += as_int(tokens.get("output")) + as_int(tokens.get("reasoning"))
        usage.cache_read_tokens += as_int(get_path(tokens, ("cache", "read")))
        usage.cache_write_tokens += as_int(get_path(tokens, ("cache", "write")))

    model_name = opencode_model_name(payload.get("providerID"), payload.get("modelID"))
    if model_name is not None:
        usage.model_name = model_name
    cost = as_float(payload.get("cost"))
    if cost is not None:
        usage.cost_usd = (usage.cost_usd or 0.0) + cost


def _ms_to_datetime(value: int) -> datetime | None:
    if value <= 0:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _connect_read_only(database_path: Path) -> sqlite3.Connection:
    if not database_path.exists():
        raise SourceDatabaseError(f"Source database not found: {database_path}")

    uri = f"file:{database_path.expanduser()}?mode=ro"
    try:
        return sqlite3.connect(uri, uri=True)
    except sqlite3.Error as exc:
        raise SourceDatabaseError(f"Failed to open source database {database_path}: {exc}") from exc


def read_database_sessions(directory: Path) -> list[Session]:
    """Strategy reading `directory/opencode.db`; database errors are logged and yield nothing."""
    database_path = directory / DATABASE_FILE_NAME
    if not database_path.is_file():
        return []
    try:
        reader = OpenCodeDatabaseReader(database_path)
    except SourceDatabaseError as exc:
        LOGGER.warning("Skipping OpenCode database: %s", exc)
        return []
    try:
        reader.ensure_schema()
        return reader.read_sessions()
    except SourceDatabaseError as exc:
        LOGGER.warning("Skipping OpenCode database: %s", exc)
        return []
    finally:
        reader.close()


SESSION_FILES_CHAIN = FallbackChain(
    strategies=(("session_files", per_file((".json", ".jsonl"), parse_session_file)),),
)
PROJECT_CHAIN = FallbackChain(
    strategies=(
        ("sessions_file", aggregate_file("sessions.json", parse_session_entry)),
        ("state_file", state_file(STATE_FILE_NAME, parse_project_state)),
    )
)
DATABASE_CHAIN = FallbackChain(strategies=(("sqlite", read_database_sessions),))


class OpenCodeAdapter(AgentAdapter):
    """Adapter for OpenCode's file-based storage and its SQLite database."""

    agent_type = AgentType.OPENCODE
    display_name = "OpenCode"

    def __init__(
        self,
        paths: AdapterPaths | None = None,
        *,
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        super().__init__(paths or opencode_paths(), opencode_calculator(), detector=detector, event_sink=event_sink)

    def session_file_dirs(self) -> list[Path]:
        """Return existing `sessions/` and `history/` directories."""
        candidates = [data_dir / name for data_dir in self.data_dirs() for name in ("sessions", "history")]
        return [candidate for candidate in candidates if candidate.is_dir()]

    def project_dirs(self) -> list[Path]:
        """Return per-project directories nested under `sessions/`."""
        project_dirs: list[Path] = []
        for data_dir in self.data_dirs():
            project_dirs.extend(child_directories(data_dir / "sessions"))
        return project_dirs

    def session_sources(self) -> list[SessionSource]:
        return [
            SessionSource(name="opencode.database", directories=self.data_dirs, chain=DATABASE_CHAIN),
            SessionSource(name="opencode.files", directories=self.session_file_dirs, chain=SESSION_FILES_CHAIN),
            SessionSource(name="opencode.projects", directories=self.project_dirs, chain=PROJECT_CHAIN),
        ]

    def active_candidates(self) -> list[ActiveSession]:
        """Project the root and per-project `state.json` files carrying `last_active`."""
        state_paths = [data_dir / STATE_FILE_NAME for data_dir in self.data_dirs()]
        state_paths.extend(project_dir / STATE_FILE_NAME for project_dir in self.project_dirs())
        candidates: list[ActiveSession] = []
        for state_path in state_paths:
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
                    session_id=resolve_session_id(state.get("current_session_id"), source_path=state_path),
                    agent_type=AgentType.OPENCODE,
                    started_at=last_active,
                    current_tokens=as_int(state.get("total_input_tokens")) + as_int(state.get("total_output_tokens")),
                    last_activity_at=last_active,
                    model_name=opencode_model_name(state.get("provider"), state.get("model")),
                    project_path=as_str(state.get("project_path")),
                )
            )
        return candidates
