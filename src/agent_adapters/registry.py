"""Registry of adapters with thread-pool fan-out across tools."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import TypeVar

from agent_sessions import ActiveSession, ActivityDetector, AgentType, Session, UsageStats
from agent_sessions.normalizer import sort_sessions
from telemetry_internal.events import EventSink

from .base import AgentAdapter
from .claude_code import ClaudeCodeAdapter
from .codex import CodexAdapter
from .copilot import CopilotAdapter
from .cursor import CursorAdapter
from .errors import AdapterConnectionError, AdapterError, AdapterNotFoundError
from .goose import GooseAdapter
from .opencode import OpenCodeAdapter

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

T = TypeVar("T")


class AdapterRegistry:
    """Holds one adapter per tool and runs blocking scans on a worker pool."""

    def __init__(self, adapters: Iterable[AgentAdapter] = (), *, max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        self._adapters: dict[AgentType, AgentAdapter] = {}
        self._max_workers = max_workers
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: AgentAdapter) -> None:
        """Add an adapter, replacing any previous one for the same tool."""
        if adapter.agent_type in self._adapters:
            LOGGER.info("Replacing registered adapter for %s.", adapter.agent_type)
        self._adapters[adapter.agent_type] = adapter

    def unregister(self, agent_type: AgentType) -> AgentAdapter | None:
        """Remove and return the adapter for a tool, if registered."""
        return self._adapters.pop(agent_type, None)

    def get(self, agent_type: AgentType) -> AgentAdapter:
        """Return the adapter for a tool.

        Raises:
            AdapterNotFoundError: When no adapter is registered for the tool.
        """
        adapter = self._adapters.get(agent_type)
        if adapter is None:
            raise AdapterNotFoundError(f"No adapter registered for {agent_type}.")
        return adapter

    def adapters(self) -> list[AgentAdapter]:
        """Return registered adapters in registration order."""
        return list(self._adapters.values())

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, agent_type: object) -> bool:
        return agent_type in self._adapters

    def detect_installed(self) -> list[AgentType]:
        """Return the tools whose installation can be verified."""
        return [agent_type for agent_type, adapter in self._adapters.items() if adapter.is_installed()]

    def connect_all(self) -> dict[AgentType, bool]:
        """Connect every adapter; tools that are not installed are reported as False."""
        results: dict[AgentType, bool] = {}
        for agent_type, adapter in self._adapters.items():
            try:
                adapter.connect()
            except AdapterConnectionError as exc:
                LOGGER.info("Skipping %s: %s", adapter.name, exc)
                results[agent_type] = False
                continue
            results[agent_type] = True
        return results

    def disconnect_all(self) -> None:
        """Disconnect every adapter."""
        for adapter in self._adapters.values():
            adapter.disconnect()

    def health_check_all(self) -> dict[AgentType, bool]:
        """Run every adapter's health check."""
        return self._fan_out(lambda adapter: adapter.health_check(), default_factory=bool)

    def get_all_sessions(self) -> list[Session]:
        """Return sessions from every tool, most recent first."""
        per_tool = self._fan_out(lambda adapter: adapter.get_sessions(), default_factory=list)
        return sort_sessions(session for sessions in per_tool.values() for session in sessions)

    def get_all_active_sessions(self) -> list[ActiveSession]:
        """Return live sessions from every tool, most recently active first."""
        per_tool = self._fan_out(lambda adapter: adapter.get_active_sessions(), default_factory=list)
        active = [session for sessions in per_tool.values() for session in sessions]
        return sorted(active, key=lambda session: session.last_activity_at, reverse=True)

    def get_aggregated_usage(self, since: datetime | None = None) -> dict[AgentType, UsageStats]:
        """Return usage per tool for sessions started at or after `since`."""
        return self._fan_out(lambda adapter: adapter.get_usage(since), default_factory=UsageStats)

    def get_aggregated_cost(self, since: datetime | None = None) -> dict[AgentType, float]:
        """Return total cost per tool for sessions started at or after `since`."""
        return self._fan_out(lambda adapter: adapter.get_total_cost(since), default_factory=float)

    def find_session(self, session_id: str) -> Session | None:
        """Return the first session with the given id across every tool."""
        for session in self.get_all_sessions():
            if session.session_id == session_id:
                return session
        return None

    def _fan_out(
        self, operation: Callable[[AgentAdapter], T], *, default_factory: Callable[[], T]
    ) -> dict[AgentType, T]:
        """Run an operation on every adapter in parallel; each failure yields a fresh default."""
        if not self._adapters:
            return {}
        results: dict[AgentType, T] = {}
        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(self._adapters))) as pool:
            futures = {pool.submit(operation, adapter): agent_type for agent_type, adapter in self._adapters.items()}
            for future in as_completed(futures):
                agent_type = futures[future]
                try:
                    results[agent_type] = future.result()
                except (AdapterError, OSError) as exc:
                    LOGGER.warning("Scan failed for %s: %s", agent_type, exc)
                    results[agent_type] = default_factory()
        return {agent_type: results[agent_type] for agent_type in self._adapters}


def build_default_registry(
    *,
    detector: ActivityDetector | None = None,
    event_sink: EventSink | None = None,
    cursor_tier: str = "free",
    copilot_product: str = "individual",
) -> AdapterRegistry:
    """Return a registry holding an adapter for every supported tool with default paths."""
    return AdapterRegistry(
        [
            ClaudeCodeAdapter(detector=detector, event_sink=event_sink),
            CodexAdapter(detector=detector, event_sink=event_sink),
            GooseAdapter(detector=detector, event_sink=event_sink),
            OpenCodeAdapter(detector=detector, event_sink=event_sink),
            CursorAdapter(tier=cursor_tier, detector=detector, event_sink=event_sink),
            CopilotAdapter(product=copilot_product, detector=detector, event_sink=event_sink),
        ]
    )
