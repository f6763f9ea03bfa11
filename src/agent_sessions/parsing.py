"""Tolerant decoding helpers shared by the per-tool format parsers."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import NAMESPACE_URL, UUID, uuid4, uuid5

import orjson

from telemetry_internal.timestamps import file_modified_at, parse_timestamp

from .errors import SessionParseError
from .schemas import AgentType, Session, SessionStatus, UsageTotals

LOGGER = logging.getLogger(__name__)

INPUT_TOKEN_KEYS: tuple[str, ...] = ("input_tokens", "prompt_tokens", "inputTokens", "input")
OUTPUT_TOKEN_KEYS: tuple[str, ...] = ("output_tokens", "completion_tokens", "outputTokens", "output")
CACHE_READ_TOKEN_KEYS: tuple[str, ...] = ("cache_read_input_tokens", "cache_read_tokens", "cacheReadTokens")
CACHE_WRITE_TOKEN_KEYS: tuple[str, ...] = (
    "cache_creation_input_tokens",
    "cache_write_tokens",
    "cacheWriteTokens",
)
COUNTED_ROLES: frozenset[str] = frozenset({"assistant", "user", "human"})


def read_json_document(path: Path) -> Any:
    """Read and decode a whole JSON file.

    Raises:
        SessionParseError: When the file cannot be read or is not valid JSON.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SessionParseError(f"Failed reading {path}: {exc}") from exc
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise SessionParseError(f"Malformed JSON in {path}: {exc}.") from exc


def iter_json_lines(path: Path) -> Iterator[tuple[int, dict[str, Any]]]:
    """Yield JSON object lines with line numbers, skipping blank and malformed lines.

    Raises:
        SessionParseError: When the file itself cannot be opened.
    """
    try:
        handle = path.open("rb")
    except OSError as exc:
        raise SessionParseError(f"Failed opening {path}: {exc}") from exc
    with handle:
        for line_number, raw_line in enumerate(handle, start=1):
            if not raw_line.strip():
                continue
            try:
                payload = orjson.loads(raw_line)
            except orjson.JSONDecodeError as exc:
                LOGGER.debug("Skipping malformed JSON in %s at line %d: %s", path, line_number, exc)
                continue
            if not isinstance(payload, dict):
                LOGGER.debug("Skipping non-object JSON in %s at line %d.", path, line_number)
                continue
            yield line_number, payload


def get_path(mapping: Mapping[str, Any], path: Sequence[str]) -> Any:
    """Follow nested keys, returning None as soon as one level is missing."""
    current: Any = mapping
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def first_value(mapping: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the first non-null value among alternative key spellings."""
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def as_int(value: Any) -> int:
    """Coerce a JSON number (or numeric string) into a non-negative int."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    if isinstance(value, str):
        try:
            return max(int(float(value)), 0)
        except ValueError:
            return 0
    return 0


def as_float(value: Any) -> float | None:
    """Coerce a JSON number into a float, returning None when absent or invalid."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def as_str(value: Any) -> str | None:
    """Return non-empty strings unchanged and everything else as None."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def is_uuid(value: str) -> bool:
    """Return True when the value parses as a UUID."""
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def resolve_session_id(embedded_id: Any, file_stem: str | None = None, *, source_path: Path | None = None) -> str:
    """Resolve a session identity.

    Prefers an explicit embedded id, then a UUID-shaped file stem. Files that
    describe exactly one session pass `source_path` and get an id derived from
    that path, stable across scans. Otherwise a random id is synthesized which
    is only stable within a single scan.
    """
    explicit = as_str(embedded_id)
    if explicit is not None:
        return explicit
    if file_stem is not None and is_uuid(file_stem):
        return file_stem
    if source_path is not None:
        return str(uuid5(NAMESPACE_URL, str(source_path)))
    return str(uuid4())


def timestamp_or_mtime(value: Any, path: Path) -> datetime | None:
    """Parse a timestamp field, falling back to the file's modification time."""
    return parse_timestamp(value) or file_modified_at(path)


def build_session(
    *,
    agent_type: AgentType,
    session_id: str,
    started_at: datetime,
    ended_at: datetime | None,
    usage: UsageTotals,
    project_path: str | None = None,
    message_count: int = 0,
    cost_usd: float | None = None,
    last_activity_at: datetime | None = None,
    source_path: Path | None = None,
    metadata: dict[str, Any] | None = None,
) -> Session:
    """Assemble a canonical session whose provisional status follows its end time."""
    return Session(
        session_id=session_id,
        agent_type=agent_type,
        started_at=started_at,
        ended_at=ended_at,
        status=SessionStatus.COMPLETED if ended_at is not None else SessionStatus.ACTIVE,
        usage=usage,
        project_path=project_path,
        message_count=message_count,
        cost_usd=cost_usd,
        last_activity_at=last_activity_at,
        source_modified_at=file_modified_at(source_path) if source_path is not None else None,
        source_path=str(source_path) if source_path is not None else None,
        metadata=metadata or {},
    )


@dataclass(frozen=True)
class LineLogFormat:
    """Field locations used when accumulating a line-delimited event log."""

    timestamp_paths: tuple[tuple[str, ...], ...] = (("timestamp",),)
    session_id_paths: tuple[tuple[str, ...], ...] = (("sessionId",), ("session_id",))
    role_paths: tuple[tuple[str, ...], ...] = (("message", "role"), ("role",), ("type",))
    usage_paths: tuple[tuple[str, ...], ...] = (("message", "usage"), ("usage",))
    model_paths: tuple[tuple[str, ...], ...] = (("message", "model"), ("model",))
    project_paths: tuple[tuple[str, ...], ...] = (("cwd",),)
    count_every_line: bool = False


@dataclass
class LineLogAccumulator:
    """Builds one session incrementally from the events of a line-delimited log."""

    log_format: LineLogFormat = field(default_factory=LineLogFormat)
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    embedded_session_id: str | None = None
    model_name: str | None = None
    project_path: str | None = None
    message_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    lines_accepted: int = 0

    def feed(self, event: Mapping[str, Any]) -> None:
        """Fold one decoded event into the running totals."""
        self.lines_accepted += 1
        timestamp = _first_path_value(event, self.log_format.timestamp_paths, parse_timestamp)
        if timestamp is not None:
            if self.first_timestamp is None or timestamp < self.first_timestamp:
                self.first_timestamp = timestamp
            if self.last_timestamp is None or timestamp > self.last_timestamp:
                self.last_timestamp = timestamp

        if self.embedded_session_id is None:
            self.embedded_session_id = _first_path_value(event, self.log_format.session_id_paths, as_str)
        if self.project_path is None:
            self.project_path = _first_path_value(event, self.log_format.project_paths, as_str)

        if self.log_format.count_every_line:
            self.message_count += 1
        else:
            role = _first_path_value(event, self.log_format.role_paths, as_str)
            if role is not None and role.lower() in COUNTED_ROLES:
                self.message_count += 1

        model = _first_path_value(event, self.log_format.model_paths, as_str)
        if model is not None:
            self.model_name = model

        usage = _first_path_value(event, self.log_format.usage_paths, _as_mapping)
        if usage is not None:
            self.input_tokens += as_int(first_value(usage, INPUT_TOKEN_KEYS))
            self.output_tokens += as_int(first_value(usage, OUTPUT_TOKEN_KEYS))
            self.cache_read_tokens += as_int(first_value(usage, CACHE_READ_TOKEN_KEYS))
            self.cache_write_tokens += as_int(first_value(usage, CACHE_WRITE_TOKEN_KEYS))

    def usage_totals(self) -> UsageTotals:
        """Return the accumulated token counters."""
        return UsageTotals(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_read_tokens=self.cache_read_tokens,
            cache_write_tokens=self.cache_write_tokens,
            model_name=self.model_name,
        )

    def to_session(
        self,
        agent_type: AgentType,
        log_path: Path,
        project_path: str | None = None,
    ) -> Session | None:
        """Convert accumulated state into a session; None when no line was usable."""
        if self.lines_accepted == 0:
            return None
        modified_at = file_modified_at(log_path)
        started_at = self.first_timestamp or modified_at
        if started_at is None:
            return None
        return build_session(
            agent_type=agent_type,
            session_id=resolve_session_id(self.embedded_session_id, log_path.stem, source_path=log_path),
            started_at=started_at,
            ended_at=None,
            usage=self.usage_totals(),
            project_path=project_path or self.project_path,
            message_count=self.message_count,
            last_activity_at=self.last_timestamp,
            source_path=log_path,
        )


def accumulate_line_log(
    log_path: Path,
    agent_type: AgentType,
    log_format: LineLogFormat | None = None,
    project_path: str | None = None,
) -> Session | None:
    """Scan every line of a log file and build a session from the well-formed ones."""
    accumulator = LineLogAccumulator(log_format=log_format or LineLogFormat())
    for _line_number, event in iter_json_lines(log_path):
        accumulator.feed(event)
    return accumulator.to_session(agent_type, log_path, project_path=project_path)


def _first_path_value(event: Mapping[str, Any], paths: Sequence[Sequence[str]], convert: Any) -> Any:
    """Return the first converted non-null value among alternative field paths."""
    for path in paths:
        converted = convert(get_path(event, path))
        if converted is not None:
            return converted
    return None


def _as_mapping(value: Any) -> Mapping[str, Any] | None:
    return value if isinstance(value, Mapping) else None
