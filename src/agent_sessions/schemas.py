"""Canonical session schemas shared by every agent adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class AgentType(StrEnum):
    """Supported coding-assistant tools."""

    CLAUDE_CODE = "claude_code"
    CODEX = "codex"
    GOOSE = "goose"
    OPENCODE = "opencode"
    CURSOR = "cursor"
    COPILOT = "copilot"


class SessionStatus(StrEnum):
    """Lifecycle status of a canonical session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        """Return True for every status other than ACTIVE."""
        return self is not SessionStatus.ACTIVE


@dataclass(frozen=True)
class UsageTotals:
    """Token counters for one session; the model is the last one seen."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    model_name: str | None = None

    def __post_init__(self) -> None:
        for field_name in ("input_tokens", "output_tokens", "cache_read_tokens", "cache_write_tokens"):
            value = getattr(self, field_name)
            if value < 0:
                object.__setattr__(self, field_name, 0)

    @property
    def total_tokens(self) -> int:
        """Return the sum of all token kinds."""
        return self.input_tokens + self.output_tokens + self.cache_read_tokens + self.cache_write_tokens


@dataclass(frozen=True)
class Session:
    """Tool-agnostic representation of one coding-assistant usage episode."""

    session_id: str
    agent_type: AgentType
    started_at: datetime
    ended_at: datetime | None = None
    status: SessionStatus = SessionStatus.COMPLETED
    usage: UsageTotals = field(default_factory=UsageTotals)
    project_path: str | None = None
    message_count: int = 0
    cost_usd: float | None = None
    last_activity_at: datetime | None = None
    source_modified_at: datetime | None = None
    source_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.status is SessionStatus.ACTIVE and self.ended_at is not None:
            raise ValueError(f"Active session {self.session_id} cannot carry an end time.")

    @property
    def total_tokens(self) -> int:
        """Return total tokens across all kinds."""
        return self.usage.total_tokens

    @property
    def model_name(self) -> str | None:
        """Return the last-seen model name."""
        return self.usage.model_name

    @property
    def latest_activity(self) -> datetime:
        """Return the best known instant of last activity."""
        candidates = [value for value in (self.last_activity_at, self.ended_at) if value is not None]
        return max(candidates) if candidates else self.started_at


@dataclass(frozen=True)
class ActiveSession:
    """Lightweight projection of a session that is currently live."""

    session_id: str
    agent_type: AgentType
    started_at: datetime
    current_tokens: int
    last_activity_at: datetime
    model_name: str | None = None
    project_path: str | None = None

    @classmethod
    def from_session(cls, session: Session) -> ActiveSession:
        """Project a canonical session into its active-session view."""
        return cls(
            session_id=session.session_id,
            agent_type=session.agent_type,
            started_at=session.started_at,
            current_tokens=session.total_tokens,
            last_activity_at=session.latest_activity,
            model_name=session.model_name,
            project_path=session.project_path,
        )


@dataclass
class UsageStats:
    """Accumulates token usage over a set of sessions."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    requests: int = 0
    model_name: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None

    @property
    def total_tokens(self) -> int:
        """Return input plus output tokens including cache traffic."""
        return self.input_tokens + self.output_tokens + self.cache_read_tokens + self.cache_write_tokens

    def add(self, other: UsageStats) -> None:
        """Mutate this object by adding another stats object in-place."""
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.cache_write_tokens += other.cache_write_tokens
        self.requests += other.requests
        if other.model_name is not None:
            self.model_name = other.model_name
        self.period_start = _earliest(self.period_start, other.period_start)
        self.period_end = _latest(self.period_end, other.period_end)

    def add_session(self, session: Session) -> None:
        """Accumulate one session's usage."""
        self.add(
            UsageStats(
                input_tokens=session.usage.input_tokens,
                output_tokens=session.usage.output_tokens,
                cache_read_tokens=session.usage.cache_read_tokens,
                cache_write_tokens=session.usage.cache_write_tokens,
                requests=max(session.message_count, 1),
                model_name=session.model_name,
                period_start=session.started_at,
                period_end=session.ended_at or session.latest_activity,
            )
        )


def _earliest(left: datetime | None, right: datetime | None) -> datetime | None:
    if left is None:
        return right
    if right is None:
        return left
    return min(left, right)


def _latest(left: datetime | None, right: datetime | None) -> datetime | None:
    if left is None:
        return right
    if right is None:
        return left
    return max(left, right)
