"""Tests for session liveness detection."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from agent_sessions import ActiveSession, ActivityDetector, ActivityWindows, AgentType, Session, SessionStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_recent_activity_keeps_session_active() -> None:
    """A session active five minutes ago should stay active without an end time."""
    detector = _detector()
    session = _open_session(last_activity_at=NOW - timedelta(minutes=5))

    resolved = detector.resolve(session)

    assert resolved.status is SessionStatus.ACTIVE
    assert resolved.ended_at is None


def test_old_activity_completes_session_at_last_activity() -> None:
    """A session idle for 45 minutes should complete at its last activity."""
    detector = _detector()
    last_activity = NOW - timedelta(minutes=45)
    session = _open_session(last_activity_at=last_activity)

    resolved = detector.resolve(session)

    assert resolved.status is SessionStatus.COMPLETED
    assert resolved.ended_at == last_activity


def test_stale_source_file_force_completes_at_modification_time() -> None:
    """An untouched source file past the stale window should end the session at its mtime."""
    detector = _detector()
    modified_at = NOW - timedelta(hours=2)
    session = _open_session(last_activity_at=NOW - timedelta(minutes=1), source_modified_at=modified_at)

    resolved = detector.resolve(session)

    assert resolved.status is SessionStatus.COMPLETED
    assert resolved.ended_at == modified_at


def test_terminal_sessions_are_returned_unchanged() -> None:
    """Sessions that already ended should never be reopened."""
    detector = _detector()
    session = Session(
        session_id="done",
        agent_type=AgentType.CODEX,
        started_at=NOW - timedelta(minutes=3),
        ended_at=NOW - timedelta(minutes=2),
        status=SessionStatus.COMPLETED,
    )

    assert detector.resolve(session) is session


def test_start_time_is_used_when_no_activity_is_known() -> None:
    """Without activity or mtime stamps the start time should decide liveness."""
    detector = _detector()
    session = Session(
        session_id="bare",
        agent_type=AgentType.GOOSE,
        started_at=NOW - timedelta(minutes=10),
        status=SessionStatus.ACTIVE,
    )

    assert detector.resolve(session).status is SessionStatus.ACTIVE


def test_custom_windows_are_honored() -> None:
    """A narrower active window should complete sessions sooner."""
    detector = ActivityDetector(ActivityWindows(active_window=timedelta(minutes=2)), clock=lambda: NOW)
    session = _open_session(last_activity_at=NOW - timedelta(minutes=5))

    assert detector.resolve(session).status is SessionStatus.COMPLETED


def test_active_sessions_merge_raw_candidates_and_sort_by_activity() -> None:
    """Raw candidates should fill in live sessions the normalizer did not see."""
    detector = _detector()
    sessions = [
        _open_session("a", last_activity_at=NOW - timedelta(minutes=10)),
        _open_session("b", last_activity_at=NOW - timedelta(minutes=50)),
    ]
    candidates = [
        _candidate("a", NOW - timedelta(minutes=1)),
        _candidate("c", NOW - timedelta(minutes=2)),
        _candidate("d", NOW - timedelta(hours=3)),
    ]

    active = detector.active_sessions(sessions, candidates)

    assert [item.session_id for item in active] == ["c", "a"]
    assert active[1].last_activity_at == NOW - timedelta(minutes=10)


def test_most_recent_active_returns_none_without_live_sessions() -> None:
    """No live session should yield None."""
    detector = _detector()

    assert detector.most_recent_active([_open_session(last_activity_at=NOW - timedelta(hours=1))]) is None


def test_active_session_cannot_carry_end_time() -> None:
    """The session schema should reject an active session with an end time."""
    with pytest.raises(ValueError):
        _ = Session(
            session_id="bad",
            agent_type=AgentType.CLAUDE_CODE,
            started_at=NOW,
            ended_at=NOW,
            status=SessionStatus.ACTIVE,
        )


def _detector() -> ActivityDetector:
    return ActivityDetector(clock=lambda: NOW)


def _open_session(
    session_id: str = "s1",
    *,
    last_activity_at: datetime | None = None,
    source_modified_at: datetime | None = None,
) -> Session:
    return Session(
        session_id=session_id,
        agent_type=AgentType.CLAUDE_CODE,
        started_at=NOW - timedelta(hours=1),
        status=SessionStatus.ACTIVE,
        last_activity_at=last_activity_at,
        source_modified_at=source_modified_at,
    )


def _candidate(session_id: str, last_activity_at: datetime) -> ActiveSession:
    return ActiveSession(
        session_id=session_id,
        agent_type=AgentType.CLAUDE_CODE,
        started_at=last_activity_at,
        current_tokens=10,
        last_activity_at=last_activity_at,
    )
