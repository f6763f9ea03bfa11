"""Recency-window heuristics that decide whether a session is still live."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from .schemas import ActiveSession, Session, SessionStatus

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current aware UTC time."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class ActivityWindows:
    """Recency thresholds used for liveness inference.

    Attributes:
        active_window: Maximum age of the last activity for a session to count as live.
        stale_window: File-modification age past which a session is force-completed.
    """

    active_window: timedelta = timedelta(minutes=30)
    stale_window: timedelta = timedelta(minutes=60)


class ActivityDetector:
    """Resolve provisional session status from timestamps and file modification times."""

    def __init__(self, windows: ActivityWindows | None = None, clock: Clock = utc_now) -> None:
        self._windows = windows or ActivityWindows()
        self._clock = clock

    @property
    def windows(self) -> ActivityWindows:
        """Return the configured recency thresholds."""
        return self._windows

    def now(self) -> datetime:
        """Return the evaluation instant from the injected clock."""
        return self._clock()

    def is_recent(self, instant: datetime | None, now: datetime | None = None) -> bool:
        """Return True when the instant falls inside the active window."""
        if instant is None:
            return False
        reference = now or self._clock()
        return reference - instant <= self._windows.active_window

    def resolve(self, session: Session, now: datetime | None = None) -> Session:
        """Settle the status of a session that has no recorded end time.

        Terminal sessions are returned unchanged. An open session whose source
        file has not been modified within the stale window is completed at the
        file's modification time. Otherwise the last activity timestamp (falling
        back to the file modification time, then the start time) decides: inside
        the active window the session stays active, outside it the session is
        completed at that instant.
        """
        if session.status is not SessionStatus.ACTIVE:
            return session

        reference = now or self._clock()
        modified_at = session.source_modified_at
        if modified_at is not None and reference - modified_at > self._windows.stale_window:
            LOGGER.debug("Force-completing stale session %s at %s.", session.session_id, modified_at)
            return replace(session, status=SessionStatus.COMPLETED, ended_at=modified_at)

        last_activity = session.last_activity_at or modified_at or session.started_at
        if reference - last_activity <= self._windows.active_window:
            return session
        return replace(session, status=SessionStatus.COMPLETED, ended_at=last_activity)

    def active_sessions(
        self,
        sessions: Iterable[Session],
        extra_candidates: Iterable[ActiveSession] = (),
        now: datetime | None = None,
    ) -> list[ActiveSession]:
        """Return every live session, most recently active first.

        `extra_candidates` carries projections built straight from raw state
        files; they are kept only when inside the active window and not already
        represented by a normalized session.
        """
        reference = now or self._clock()
        by_id: dict[str, ActiveSession] = {}
        for session in sessions:
            resolved = self.resolve(session, reference)
            if resolved.status is SessionStatus.ACTIVE:
                by_id[resolved.session_id] = ActiveSession.from_session(resolved)
        for candidate in extra_candidates:
            if candidate.session_id in by_id or not self.is_recent(candidate.last_activity_at, reference):
                continue
            by_id[candidate.session_id] = candidate
        return sorted(by_id.values(), key=lambda item: item.last_activity_at, reverse=True)

    def most_recent_active(
        self,
        sessions: Iterable[Session],
        extra_candidates: Iterable[ActiveSession] = (),
        now: datetime | None = None,
    ) -> ActiveSession | None:
        """Return the single most recently active session, if any."""
        active = self.active_sessions(sessions, extra_candidates, now)
        return active[0] if active else None
