"""CLI entrypoints for inspecting local coding-agent telemetry."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time
from pathlib import Path

import typer
from rich.console import Console

from agent_sessions import AgentType
from model_pricing import summarize_costs
from model_pricing.errors import PricingRepositoryError
from model_pricing.repository import ModelPricingRepository
from model_pricing.rate_tables import COPILOT_PRODUCTS, CURSOR_TIERS
from telemetry_internal.paths import get_default_database_path

from .copilot import CopilotAdapter
from .cursor import CursorAdapter
from .registry import AdapterRegistry, build_default_registry
from .render import AgentCostRow, render_active_sessions, render_agents, render_costs, render_sessions

LOGGER = logging.getLogger(__name__)
DEFAULT_SESSION_LIMIT = 20

TYPER_APP = typer.Typer(help="Coding-agent session and cost telemetry.")


@TYPER_APP.callback()
def main() -> None:
    """Root CLI callback."""


@TYPER_APP.command("agents")
def agents_command(
    detect_version: bool = typer.Option(
        True,
        "--detect-version/--no-detect-version",
        help="Run each installed tool with --version to report its version.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """List supported tools with installation and connection status."""
    _configure_logging(verbose)
    registry = build_default_registry()
    connected = registry.connect_all()
    rows = []
    for adapter in registry.adapters():
        if detect_version and connected[adapter.agent_type]:
            adapter.detect_version()
        rows.append((adapter.info(), adapter.is_installed()))
    render_agents(rows, Console())


@TYPER_APP.command("sessions")
def sessions_command(
    agent: str | None = typer.Option(None, "--agent", "-a", help="Only show sessions of this tool."),
    since: str | None = typer.Option(None, "--since", help="Include only sessions started on/after this date (YYYY-MM-DD)."),
    limit: int = typer.Option(DEFAULT_SESSION_LIMIT, "--limit", "-n", min=1, help="Maximum number of sessions shown."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """Print normalized sessions, most recent first."""
    _configure_logging(verbose)
    registry = _build_registry(agent)
    since_instant = _parse_since_date(since)
    sessions = registry.get_all_sessions()
    if since_instant is not None:
        sessions = [session for session in sessions if session.started_at >= since_instant]
    render_sessions(sessions[:limit], Console())


@TYPER_APP.command("active")
def active_command(
    agent: str | None = typer.Option(None, "--agent", "-a", help="Only show sessions of this tool."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """Print sessions that are currently live."""
    _configure_logging(verbose)
    registry = _build_registry(agent)
    render_active_sessions(registry.get_all_active_sessions(), Console())


@TYPER_APP.command("costs")
def costs_command(
    agent: str | None = typer.Option(None, "--agent", "-a", help="Only show costs of this tool."),
    since: str | None = typer.Option(None, "--since", help="Include only sessions started on/after this date (YYYY-MM-DD)."),
    use_synced: bool = typer.Option(
        False,
        "--use-synced/--static-rates",
        help="Prefer model prices stored by `model-sync` over the built-in rate tables.",
    ),
    database_path: Path | None = typer.Option(
        None,
        "--database-path",
        "-d",
        help="DuckDB file holding synced model prices (used with --use-synced).",
    ),
    cursor_tier: str = typer.Option("free", "--cursor-tier", help="Cursor plan: free, pro, or business."),
    copilot_product: str = typer.Option(
        "individual", "--copilot-product", help="Copilot product: individual, business, or enterprise."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """Aggregate and print usage cost per tool."""
    _configure_logging(verbose)
    if cursor_tier not in CURSOR_TIERS:
        raise typer.BadParameter(f"Unknown Cursor plan: {cursor_tier}.")
    if copilot_product not in COPILOT_PRODUCTS:
        raise typer.BadParameter(f"Unknown Copilot product: {copilot_product}.")

    registry = _build_registry(agent, cursor_tier=cursor_tier, copilot_product=copilot_product)
    if use_synced:
        _apply_synced_prices(registry, database_path or get_default_database_path())

    since_instant = _parse_since_date(since)
    rows: list[AgentCostRow] = []
    for adapter in registry.adapters():
        summary = summarize_costs(adapter.get_cost_records(since_instant))
        monthly_plan_cost = None
        if isinstance(adapter, (CursorAdapter, CopilotAdapter)):
            monthly_plan_cost = adapter.get_monthly_cost(since_instant)
        rows.append(AgentCostRow(agent_name=adapter.name, summary=summary, monthly_plan_cost=monthly_plan_cost))
    render_costs(rows, Console())


def _build_registry(
    agent: str | None,
    *,
    cursor_tier: str = "free",
    copilot_product: str = "individual",
) -> AdapterRegistry:
    """Build the default registry, narrowed to one tool when `--agent` is given."""
    registry = build_default_registry(cursor_tier=cursor_tier, copilot_product=copilot_product)
    if agent is None:
        return registry
    selected = _parse_agent(agent)
    for agent_type in list(AgentType):
        if agent_type is not selected:
            _ = registry.unregister(agent_type)
    return registry


def _apply_synced_prices(registry: AdapterRegistry, database_path: Path) -> None:
    """Load stored model prices and install them as calculator overrides."""
    if not database_path.exists():
        raise typer.BadParameter(f"Database file not found: {database_path}")
    repository: ModelPricingRepository | None = None
    try:
        repository = ModelPricingRepository(database_path)
        repository.ensure_schema()
        models = repository.load_rate_overrides()
    except PricingRepositoryError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        if repository is not None:
            repository.close()

    LOGGER.info("Loaded %d synced model price(s) from %s.", len(models), database_path)
    for adapter in registry.adapters():
        adapter.with_price_overrides(models)


def _configure_logging(verbose: bool) -> None:
    """Initialize default logging for CLI usage."""
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(asctime)s][%(levelname)s][%(name)s] %(message)s",
    )


def _parse_agent(agent: str) -> AgentType:
    """Parse `--agent` into a tool type."""
    try:
        return AgentType(agent.strip().lower())
    except ValueError as exc:
        choices = ", ".join(str(agent_type) for agent_type in AgentType)
        raise typer.BadParameter(f"Unknown agent: {agent}. Expected one of: {choices}.") from exc


def _parse_since_date(since: str | None) -> datetime | None:
    """Parse `--since` value into the UTC start of that day."""
    if since is None:
        return None
    try:
        return datetime.combine(date.fromisoformat(since), time.min, tzinfo=UTC)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid --since value: {since}. Expected YYYY-MM-DD.") from exc


def module_cli_entry_point():
    TYPER_APP()
