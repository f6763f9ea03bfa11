"""GitHub Copilot adapter: daily usage caches, telemetry events, and extension session data."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from agent_sessions import ActivityDetector, AgentType, FallbackChain, Session, SessionSource, UsageTotals
from agent_sessions.errors import SessionParseError
from agent_sessions.normalizer import in_subdirectory, json_document_parser, per_file
from agent_sessions.parsing import as_int, as_str, build_session, read_json_document, resolve_session_id
from model_pricing import SubscriptionCostCalculator
from model_pricing.rate_tables import copilot_calculator
from telemetry_internal.events import EventSink
from telemetry_internal.timestamps import parse_timestamp

from .base import AgentAdapter
from .discovery import AdapterPaths, copilot_paths

LOGGER = logging.getLogger(__name__)

USAGE_DIR_NAME = "usage"
TELEMETRY_FILE_NAME = "telemetry.json"
EXTENSION_TELEMETRY_DIR_NAME = "telemetry"
EXTENSION_DIR_PREFIX = "github.copilot-"
DEFAULT_MODEL = "copilot-gpt-4"
CHARS_PER_TOKEN = 4
USAGE_DAY_LENGTH = timedelta(hours=8)


def estimated_usage(characters: int, model_name: str | None) -> UsageTotals:
    """Estimate tokens from inserted characters, split evenly between input and output."""
    half = (max(characters, 0) // CHARS_PER_TOKEN) // 2
    return UsageTotals(input_tokens=half, output_tokens=half, model_name=model_name or DEFAULT_MODEL)


def parse_usage_document(document: Any, path: Path) -> Session | None:
    """Convert one `usage/<date>.json` daily summary into an eight-hour session."""
    if not isinstance(document, dict):
        return None
    day = as_str(document.get("date")) or path.stem
    started_at = parse_timestamp(day)
    if started_at is None:
        LOGGER.debug("Skipping usage file %s without a parseable date.", path)
        return None
    return build_session(
        agent_type=AgentType.COPILOT,
        session_id=f"copilot-usage-{started_at.date().isoformat()}",
        started_at=started_at,
        ended_at=started_at + USAGE_DAY_LENGTH,
        usage=estimated_usage(as_int(document.get("total_characters")), as_str(document.get("model"))),
        message_count=as_int(document.get("accepted_suggestions")),
        source_path=path,
        metadata={
            "editor": document.get("editor"),
            "total_suggestions": as_int(document.get("total_suggestions")),
        },
    )


def group_events_by_day(events: list[Any]) -> dict[str, list[dict[str, Any]]]:
    """Group telemetry events by the UTC day of their timestamp."""
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for event in events:
        if not isinstance(event, dict):
            continue
        timestamp = parse_timestamp(event.get("timestamp"))
        grouped[timestamp.date().isoformat() if timestamp is not None else "unknown"].append(event)
    return dict(grouped)


def parse_telemetry_day(day: str, events: list[dict[str, Any]], path: Path) -> Session | None:
    """Fold one day of telemetry events into a completed session."""
    timestamps = [stamp for stamp in (parse_timestamp(event.get("timestamp")) for event in events) if stamp is not None]
    if not timestamps:
        return None
    model_name = next((as_str(event.get("model")) for event in events if as_str(event.get("model"))), None)
    return build_session(
        agent_type=AgentType.COPILOT,
        session_id=f"copilot-telemetry-{day}",
        started_at=min(timestamps),
        ended_at=max(timestamps),
        usage=estimated_usage(sum(as_int(event.get("characters")) for event in events), model_name),
        message_count=sum(1 for event in events if event.get("accepted") is True),
        source_path=path,
        metadata={"events": len(events)},
    )


def telemetry_file_sessions(directory: Path) -> list[Session]:
    """Read `telemetry.json` and return one session per day of events."""
    path = directory / TELEMETRY_FILE_NAME
    if not path.is_file():
        return []
    try:
        document = read_json_document(path)
    except SessionParseError as exc:
        LOGGER.warning("Skipping telemetry file: %s", exc)
        return []
    events = document.get("events") if isinstance(document, dict) else document
    if not isinstance(events, list):
        return []
    sessions: list[Session] = []
    for day, day_events in sorted(group_events_by_day(events).items()):
        session = parse_telemetry_day(day, day_events, path)
        if session is not None:
            sessions.append(session)
    return sessions


def parse_extension_session(document: Any, path: Path) -> Session | None:
    """Convert one extension `telemetry/*.json` session record."""
    if not isinstance(document, dict):
        return None
    started_at = parse_timestamp(document.get("started_at"))
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.COPILOT,
        session_id=resolve_session_id(document.get("session_id"), path.stem),
        started_at=started_at,
        ended_at=None,
        usage=estimated_usage(as_int(document.get("characters_inserted")), as_str(document.get("model"))),
        project_path=as_str(document.get("workspace")),
        message_count=as_int(document.get("suggestions_accepted")),
        last_activity_at=parse_timestamp(document.get("last_activity")),
        source_path=path,
        metadata={"editor": document.get("editor"), "suggestions_shown": as_int(document.get("suggestions_shown"))},
    )


CONFIG_CHAIN = FallbackChain(
    strategies=(
        ("usage_files", in_subdirectory(USAGE_DIR_NAME, per_file((".json",), json_document_parser(parse_usage_document)))),
        ("telemetry_file", telemetry_file_sessions),
    )
)
EXTENSION_CHAIN = FallbackChain(
    strategies=(("extension_sessions", per_file((".json",), json_document_parser(parse_extension_session))),),
)


class CopilotAdapter(AgentAdapter):
    """Adapter for GitHub Copilot; usage is covered by a flat product subscription."""

    agent_type = AgentType.COPILOT
    display_name = "GitHub Copilot"

    def __init__(
        self,
        paths: AdapterPaths | None = None,
        *,
        product: str = "individual",
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._subscription = copilot_calculator(product)
        super().__init__(
            paths or copilot_paths(),
            self._subscription.usage_calculator,
            detector=detector,
            event_sink=event_sink,
        )

    @property
    def subscription(self) -> SubscriptionCostCalculator:
        """Return the subscription product calculator."""
        return self._subscription

    def config_dirs(self) -> list[Path]:
        return [path for path in self.data_dirs() if not path.name.startswith(EXTENSION_DIR_PREFIX)]

    def extension_telemetry_dirs(self) -> list[Path]:
        candidates = [
            path / EXTENSION_TELEMETRY_DIR_NAME
            for path in self.data_dirs()
            if path.name.startswith(EXTENSION_DIR_PREFIX)
        ]
        return [candidate for candidate in candidates if candidate.is_dir()]

    def session_sources(self) -> list[SessionSource]:
        return [
            SessionSource(name="copilot.config", directories=self.config_dirs, chain=CONFIG_CHAIN),
            SessionSource(name="copilot.extension", directories=self.extension_telemetry_dirs, chain=EXTENSION_CHAIN),
        ]

    def get_monthly_cost(self, since: datetime | None = None) -> float:
        """Return the product fee; per-token usage is included in it."""
        sessions = self._sessions_since(since)
        usage_cost = sum(self.session_cost(session) for session in sessions)
        return self._subscription.subscription_cost() + self._subscription.overage_for_usage_cost(
            usage_cost, len(sessions)
        )
