"""Canonical sessions, tolerant format parsing, and liveness detection."""

from .activity import ActivityDetector, ActivityWindows
from .normalizer import FallbackChain, SessionNormalizer, SessionSource
from .schemas import ActiveSession, AgentType, Session, SessionStatus, UsageStats, UsageTotals

__all__ = [
    "ActiveSession",
    "ActivityDetector",
    "ActivityWindows",
    "AgentType",
    "FallbackChain",
    "Session",
    "SessionNormalizer",
    "SessionSource",
    "SessionStatus",
    "UsageStats",
    "UsageTotals",
]
