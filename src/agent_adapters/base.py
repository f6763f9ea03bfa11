"""Uniform capability surface shared by every coding-tool adapter."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from pathlib import Path

from agent_sessions import (
    ActiveSession,
    ActivityDetector,
    AgentType,
    Session,
    SessionNormalizer,
    SessionSource,
    SessionStatus,
    UsageStats,
)
from agent_sessions.activity import utc_now
from model_pricing import CostCalculator, CostRecord, ModelInfo
from telemetry_internal.events import EventSink, TelemetryEvent, TelemetryEventKind, emit_event

from .discovery import AdapterPaths, Installation, discover, read_version
from .errors import AdapterConnectionError

LOGGER = logging.getLogger(__name__)


class AdapterStatus(StrEnum):
    """Connection status of an adapter."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AdapterInfo:
    """Snapshot of an adapter's identity and connection state."""

    name: str
    agent_type: AgentType
    status: AdapterStatus
    version: str | None = None
    config_path: str | None = None
    last_connected: datetime | None = None
    error_message: str | None = None


class AgentAdapter(ABC):
    """Composes discovery, session normalization, liveness, and pricing for one tool.

    Subclasses declare the tool's fallback chains through `session_sources()` and
    may add raw liveness candidates through `active_candidates()`. Everything
    else is shared.
    """

    agent_type: AgentType
    display_name: str

    def __init__(
        self,
        paths: AdapterPaths,
        calculator: CostCalculator,
        *,
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._paths = paths
        self._calculator = calculator
        self._detector = detector or ActivityDetector()
        self._event_sink = event_sink
        self._status = AdapterStatus.UNKNOWN
        self._version: str | None = None
        self._last_connected: datetime | None = None
        self._error_message: str | None = None
        self._reported_active: set[str] = set()
        self._recorded_costs: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        """Return the adapter's display name."""
        return self.display_name

    @property
    def paths(self) -> AdapterPaths:
        """Return the configured data locations."""
        return self._paths

    @property
    def calculator(self) -> CostCalculator:
        """Return the per-token cost calculator."""
        return self._calculator

    @property
    def status(self) -> AdapterStatus:
        """Return the current connection status."""
        return self._status

    def config_dir(self) -> Path | None:
        """Return the first existing config directory."""
        return self._paths.config_dir()

    def data_dirs(self) -> list[Path]:
        """Return every existing data directory for this tool."""
        return self._paths.existing_dirs()

    def installation(self) -> Installation:
        """Look for config directories and the executable on PATH."""
        return discover(self._paths)

    def is_installed(self) -> bool:
        """Return True if a config directory exists or the executable is on PATH."""
        return self.installation().installed

    def detect_version(self) -> str:
        """Return the tool's reported version, or `unknown`."""
        version = read_version(self.installation().executable_path)
        self._version = version
        return version

    def connect(self) -> None:
        """Mark the adapter connected.

        Raises:
            AdapterConnectionError: If the tool is not installed.
        """
        if not self.is_installed():
            self._status = AdapterStatus.ERROR
            self._error_message = f"{self.display_name} is not installed."
            raise AdapterConnectionError(self._error_message)
        self._status = AdapterStatus.CONNECTED
        self._last_connected = utc_now()
        self._error_message = None
        LOGGER.info("Connected %s adapter.", self.display_name)

    def disconnect(self) -> None:
        """Mark the adapter disconnected; never fails."""
        self._status = AdapterStatus.DISCONNECTED
        LOGGER.info("Disconnected %s adapter.", self.display_name)

    def health_check(self) -> bool:
        """Return True only while connected and still installed; demote to ERROR otherwise."""
        if self._status is not AdapterStatus.CONNECTED:
            return False
        if self.is_installed():
            return True
        self._status = AdapterStatus.ERROR
        self._error_message = f"{self.display_name} installation is no longer present."
        LOGGER.warning(self._error_message)
        return False

    def info(self) -> AdapterInfo:
        """Return an identity and status snapshot."""
        config_dir = self.config_dir()
        return AdapterInfo(
            name=self.display_name,
            agent_type=self.agent_type,
            status=self._status,
            version=self._version,
            config_path=str(config_dir) if config_dir is not None else None,
            last_connected=self._last_connected,
            error_message=self._error_message,
        )

    def with_price_overrides(self, models: Iterable[ModelInfo]) -> None:
        """Prefer synced model prices over the static table from now on."""
        self._calculator = self._calculator.with_overrides(models)

    @abstractmethod
    def session_sources(self) -> list[SessionSource]:
        """Return the tool's session sources, each with its fallback chain."""

    def active_candidates(self) -> list[ActiveSession]:
        """Return liveness candidates read straight from raw state files."""
        return []

    def get_sessions(self) -> list[Session]:
        """Return every session, liveness resolved and cost filled in, most recent first."""
        normalizer = SessionNormalizer(self.session_sources(), self._detector)
        sessions = [self._with_cost(session) for session in normalizer.normalize()]
        report = normalizer.last_report
        LOGGER.debug(
            "%s: %d session(s) from %d director(ies), %d duplicate(s) skipped.",
            self.display_name,
            report.sessions_found,
            report.directories_scanned,
            report.duplicates_skipped,
        )
        self._track_transitions(sessions)
        return sessions

    def get_active_sessions(self) -> list[ActiveSession]:
        """Return every live session, most recently active first."""
        return self._detector.active_sessions(self.get_sessions(), self.active_candidates())

    def get_active_session(self) -> ActiveSession | None:
        """Return the single most recently active session."""
        active = self.get_active_sessions()
        return active[0] if active else None

    def get_usage(self, since: datetime | None = None) -> UsageStats:
        """Aggregate token usage of sessions started at or after `since`."""
        stats = UsageStats()
        for session in self._sessions_since(since):
            stats.add_session(session)
        return stats

    def get_total_cost(self, since: datetime | None = None) -> float:
        """Return the summed cost of sessions started at or after `since`."""
        return sum(self.session_cost(session) for session in self._sessions_since(since))

    def get_cost_records(self, since: datetime | None = None) -> list[CostRecord]:
        """Return one cost record per session started at or after `since`.

        `cost_recorded` is emitted once per session, and again only when its cost changes.
        """
        records: list[CostRecord] = []
        fresh: list[CostRecord] = []
        for session in self._sessions_since(since):
            record = CostRecord(
                session_id=session.session_id,
                agent_type=str(self.agent_type),
                model_name=session.model_name or self._calculator.table.default_model,
                input_tokens=session.usage.input_tokens,
                output_tokens=session.usage.output_tokens,
                cost_usd=self.session_cost(session),
                recorded_at=session.ended_at or session.latest_activity,
                cache_read_tokens=session.usage.cache_read_tokens,
                cache_write_tokens=session.usage.cache_write_tokens,
            )
            records.append(record)
            with self._lock:
                if self._recorded_costs.get(record.session_id) != record.cost_usd:
                    self._recorded_costs[record.session_id] = record.cost_usd
                    fresh.append(record)
        for record in fresh:
            emit_event(
                self._event_sink,
                TelemetryEvent(
                    kind=TelemetryEventKind.COST_RECORDED,
                    payload={
                        "session_id": record.session_id,
                        "agent_type": record.agent_type,
                        "model_name": record.model_name,
                        "cost_usd": record.cost_usd,
                    },
                ),
            )
        return records

    def calculate_cost(
        self,
        input_tokens: int,
        output_tokens: int,
        model_name: str | None,
        cache_read_tokens: int = 0,
        cache_write_tokens: int = 0,
    ) -> float:
        """Price token counts for a model; unknown models use the table default."""
        return self._calculator.calculate(
            input_tokens,
            output_tokens,
            model_name,
            cache_read_tokens=cache_read_tokens,
            cache_write_tokens=cache_write_tokens,
        )

    def session_cost(self, session: Session) -> float:
        """Return the tool-reported cost when present, else the computed one."""
        if session.cost_usd is not None:
            return session.cost_usd
        return self.calculate_cost(
            session.usage.input_tokens,
            session.usage.output_tokens,
            session.model_name,
            cache_read_tokens=session.usage.cache_read_tokens,
            cache_write_tokens=session.usage.cache_write_tokens,
        )

    def get_supported_models(self) -> list[str]:
        """Return `provider/model` names of the static rate table."""
        return self._calculator.supported_models()

    def get_model_info(self, model_name: str) -> ModelInfo | None:
        """Return per-1K pricing for a model known to the rate table."""
        return self._calculator.model_info(model_name)

    def _with_cost(self, session: Session) -> Session:
        if session.cost_usd is not None:
            return session
        return replace(session, cost_usd=self.session_cost(session))

    def _sessions_since(self, since: datetime | None) -> list[Session]:
        sessions = self.get_sessions()
        if since is None:
            return sessions
        return [session for session in sessions if session.started_at >= since]

    def _track_transitions(self, sessions: list[Session]) -> None:
        """Emit start/end events for sessions whose liveness changed since the last scan."""
        events: list[TelemetryEvent] = []
        seen = {session.session_id for session in sessions}
        with self._lock:
            for session in sessions:
                was_active = session.session_id in self._reported_active
                if session.status is SessionStatus.ACTIVE and not was_active:
                    self._reported_active.add(session.session_id)
                    events.append(_session_event(TelemetryEventKind.SESSION_STARTED, session))
                elif session.status.is_terminal and was_active:
                    self._reported_active.discard(session.session_id)
                    events.append(_session_event(TelemetryEventKind.SESSION_ENDED, session))
            # Forget sessions that are no longer on disk.
            self._reported_active &= seen
        for event in events:
            emit_event(self._event_sink, event)


def _session_event(kind: TelemetryEventKind, session: Session) -> TelemetryEvent:
    return TelemetryEvent(
        kind=kind,
        payload={
            "session_id": session.session_id,
            "agent_type": str(session.agent_type),
            "total_tokens": session.total_tokens,
            "ended_at": session.ended_at.isoformat() if session.ended_at is not None else None,
        },
    )
