"""Event values handed to an external hook dispatcher."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

LOGGER = logging.getLogger(__name__)


class TelemetryEventKind(StrEnum):
    """Kinds of notifications emitted by the telemetry core."""

    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    COST_RECORDED = "cost_recorded"
    SYNC_COMPLETED = "sync_completed"


@dataclass(frozen=True)
class TelemetryEvent:
    """One notification for the hook dispatcher."""

    kind: TelemetryEventKind
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


EventSink = Callable[[TelemetryEvent], None]


def emit_event(sink: EventSink | None, event: TelemetryEvent) -> None:
    """Deliver an event to the sink; sink failures are logged and never propagate."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        LOGGER.exception("Event sink failed for %s event.", event.kind)
