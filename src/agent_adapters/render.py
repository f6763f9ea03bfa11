"""Rich rendering helpers for adapter status, sessions, and costs."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from rich.console import Console
from rich.table import Table

from agent_sessions import ActiveSession, Session
from model_pricing import CostSummary

from .base import AdapterInfo

TABLE_ROW_STYLES = ["white", "yellow"]


@dataclass(frozen=True)
class AgentCostRow:
    """One tool's cost summary, with its plan estimate when it bills by subscription."""

    agent_name: str
    summary: CostSummary
    monthly_plan_cost: float | None = None


def render_agents(rows: Sequence[tuple[AdapterInfo, bool]], console: Console) -> None:
    """Render installation and connection status for each tool."""
    table = Table(title="Coding Agents", title_justify="left")
    table.add_column("Agent", justify="left")
    table.add_column("Installed", justify="left")
    table.add_column("Status", justify="left")
    table.add_column("Version", justify="left")
    table.add_column("Config Path", justify="left")

    for index, (info, installed) in enumerate(rows):
        style = TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)]
        table.add_row(
            info.name,
            "yes" if installed else "no",
            str(info.status),
            info.version or "-",
            info.config_path or "-",
            style=style,
        )
    console.print(table)


def render_sessions(sessions: Sequence[Session], console: Console) -> None:
    """Render sessions with their token totals and costs."""
    if not sessions:
        console.print("No sessions found.")
        return

    table = Table(title="Sessions", show_footer=True, title_justify="left")
    table.add_column("Agent", footer="Grand Total", justify="left")
    table.add_column("Session", justify="left")
    table.add_column("Started", justify="left")
    table.add_column("Status", justify="left")
    table.add_column("Model", justify="left")
    table.add_column("Messages", footer_style="bold", justify="right")
    table.add_column("Total Tokens", footer_style="bold", justify="right")
    table.add_column("Cost ($)", footer_style="bold", justify="right")

    total_messages = 0
    total_tokens = 0
    total_cost = 0.0
    for index, session in enumerate(sessions):
        cost = session.cost_usd or 0.0
        total_messages += session.message_count
        total_tokens += session.total_tokens
        total_cost += cost
        table.add_row(
            str(session.agent_type),
            session.session_id,
            _format_instant(session.started_at),
            str(session.status),
            session.model_name or "-",
            str(session.message_count),
            f"{session.total_tokens:,}",
            f"{cost:,.6f}",
            style=TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)],
        )

    table.columns[5].footer = str(total_messages)
    table.columns[6].footer = f"{total_tokens:,}"
    table.columns[7].footer = f"{total_cost:,.6f}"
    console.print(table)


def render_active_sessions(active: Sequence[ActiveSession], console: Console) -> None:
    """Render live sessions, most recently active first."""
    if not active:
        console.print("No active sessions.")
        return

    table = Table(title="Active Sessions", title_justify="left")
    table.add_column("Agent", justify="left")
    table.add_column("Session", justify="left")
    table.add_column("Last Activity", justify="left")
    table.add_column("Model", justify="left")
    table.add_column("Project", justify="left")
    table.add_column("Tokens", justify="right")

    for index, session in enumerate(active):
        table.add_row(
            str(session.agent_type),
            session.session_id,
            _format_instant(session.last_activity_at),
            session.model_name or "-",
            session.project_path or "-",
            f"{session.current_tokens:,}",
            style=TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)],
        )
    console.print(table)


def render_costs(rows: Sequence[AgentCostRow], console: Console) -> None:
    """Render per-tool cost totals with a grand-total footer."""
    table = Table(title="Costs by Agent", show_footer=True, title_justify="left")
    table.add_column("Agent", footer="Grand Total", justify="left")
    table.add_column("Requests", footer_style="bold", justify="right")
    table.add_column("Input Tokens", footer_style="bold", justify="right")
    table.add_column("Output Tokens", footer_style="bold", justify="right")
    table.add_column("Avg / Request ($)", justify="right")
    table.add_column("Usage Cost ($)", footer_style="bold", justify="right")
    table.add_column("Plan Monthly ($)", justify="right")

    total_requests = 0
    total_input = 0
    total_output = 0
    total_cost = 0.0
    for index, row in enumerate(rows):
        summary = row.summary
        total_requests += summary.request_count
        total_input += summary.total_input_tokens
        total_output += summary.total_output_tokens
        total_cost += summary.total_cost_usd
        table.add_row(
            row.agent_name,
            str(summary.request_count),
            f"{summary.total_input_tokens:,}",
            f"{summary.total_output_tokens:,}",
            f"{summary.average_cost_per_request:,.6f}",
            f"{summary.total_cost_usd:,.6f}",
            f"{row.monthly_plan_cost:,.2f}" if row.monthly_plan_cost is not None else "-",
            style=TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)],
        )

    table.columns[1].footer = str(total_requests)
    table.columns[2].footer = f"{total_input:,}"
    table.columns[3].footer = f"{total_output:,}"
    table.columns[5].footer = f"{total_cost:,.6f}"
    console.print(table)


def _format_instant(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")
