"""Cursor adapter: chat and composer conversations in the editor's global storage."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from agent_sessions import ActivityDetector, AgentType, FallbackChain, Session, SessionSource, UsageTotals
from agent_sessions.normalizer import json_document_parser, per_file
from agent_sessions.parsing import as_float, as_int, as_str, build_session, resolve_session_id, timestamp_or_mtime
from model_pricing import SubscriptionCostCalculator
from model_pricing.rate_tables import cursor_calculator, is_cursor_premium_model
from telemetry_internal.events import EventSink
from telemetry_internal.timestamps import parse_timestamp

from .base import AgentAdapter
from .discovery import AdapterPaths, cursor_paths

LOGGER = logging.getLogger(__name__)

GLOBAL_STORAGE_PARTS = ("User", "globalStorage")
CONVERSATION_DIR_NAMES = ("cursor.chat", "cursor.composer")
CHARS_PER_TOKEN = 4


def message_tokens(message: dict[str, Any]) -> int:
    """Return a message's token count, estimated from its text when not recorded."""
    tokens = as_int(message.get("tokens"))
    if tokens > 0:
        return tokens
    content = message.get("content")
    return len(content) // CHARS_PER_TOKEN if isinstance(content, str) else 0


def parse_conversation_document(document: Any, path: Path) -> Session | None:
    """Convert a chat/composer entry, or a plain session object when there are no messages."""
    if not isinstance(document, dict):
        return None
    messages = document.get("messages")
    if isinstance(messages, list):
        return _parse_conversation(document, [message for message in messages if isinstance(message, dict)], path)
    return _parse_session_data(document, path)


def _parse_conversation(entry: dict[str, Any], messages: list[dict[str, Any]], path: Path) -> Session | None:
    started_at = timestamp_or_mtime(entry.get("createdAt"), path)
    if started_at is None:
        return None
    input_tokens = 0
    output_tokens = 0
    model_name = as_str(entry.get("model"))
    for message in messages:
        tokens = message_tokens(message)
        if as_str(message.get("role")) == "assistant":
            output_tokens += tokens
        else:
            input_tokens += tokens
        model_name = as_str(message.get("model")) or model_name

    metadata: dict[str, Any] = {"kind": path.parent.name.removeprefix("cursor.")}
    files = entry.get("files")
    if isinstance(files, list):
        metadata["files"] = len(files)
    return build_session(
        agent_type=AgentType.CURSOR,
        session_id=resolve_session_id(entry.get("id"), path.stem),
        started_at=started_at,
        ended_at=None,
        usage=UsageTotals(input_tokens=input_tokens, output_tokens=output_tokens, model_name=model_name),
        message_count=len(messages),
        last_activity_at=parse_timestamp(entry.get("updatedAt")),
        source_path=path,
        metadata=metadata,
    )


def _parse_session_data(data: dict[str, Any], path: Path) -> Session | None:
    started_at = timestamp_or_mtime(data.get("startedAt"), path)
    if started_at is None:
        return None
    return build_session(
        agent_type=AgentType.CURSOR,
        session_id=resolve_session_id(data.get("id"), path.stem),
        started_at=started_at,
        ended_at=parse_timestamp(data.get("endedAt")),
        usage=UsageTotals(
            input_tokens=as_int(data.get("inputTokens")),
            output_tokens=as_int(data.get("outputTokens")),
            model_name=as_str(data.get("model")),
        ),
        project_path=as_str(data.get("workspacePath")) or as_str(data.get("workspace")),
        cost_usd=as_float(data.get("totalCostUsd")),
        last_activity_at=parse_timestamp(data.get("updatedAt")),
        source_path=path,
    )


CONVERSATION_CHAIN = FallbackChain(
    strategies=(("conversation_files", per_file((".json",), json_document_parser(parse_conversation_document))),),
)


class CursorAdapter(AgentAdapter):
    """Adapter for Cursor's chat and composer history, priced under a subscription plan."""

    agent_type = AgentType.CURSOR
    display_name = "Cursor"

    def __init__(
        self,
        paths: AdapterPaths | None = None,
        *,
        tier: str = "free",
        detector: ActivityDetector | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._subscription = cursor_calculator(tier)
        super().__init__(
            paths or cursor_paths(),
            self._subscription.usage_calculator,
            detector=detector,
            event_sink=event_sink,
        )

    @property
    def subscription(self) -> SubscriptionCostCalculator:
        """Return the subscription plan calculator."""
        return self._subscription

    def conversation_dirs(self) -> list[Path]:
        """Return the existing `cursor.chat` and `cursor.composer` storage directories."""
        candidates = [
            data_dir.joinpath(*GLOBAL_STORAGE_PARTS, name)
            for data_dir in self.data_dirs()
            for name in CONVERSATION_DIR_NAMES
        ]
        return [candidate for candidate in candidates if candidate.is_dir()]

    def session_sources(self) -> list[SessionSource]:
        return [SessionSource(name="cursor.conversations", directories=self.conversation_dirs, chain=CONVERSATION_CHAIN)]

    def premium_request_count(self, since: datetime | None = None) -> int:
        """Count assistant turns spent on premium models; a session counts at least once."""
        default_model = self.calculator.table.default_model
        return sum(
            max(session.message_count, 1)
            for session in self._sessions_since(since)
            if is_cursor_premium_model(session.model_name or default_model)
        )

    def get_monthly_cost(self, since: datetime | None = None) -> float:
        """Return the plan fee plus any usage billed beyond the included requests."""
        usage_cost = self.get_total_cost(since)
        requests = self.premium_request_count(since)
        overage = self._subscription.overage_for_usage_cost(usage_cost, requests)
        LOGGER.debug("Cursor %s plan: %d premium request(s), overage %.4f.", self._subscription.tier.name, requests, overage)
        return self._subscription.subscription_cost() + overage
