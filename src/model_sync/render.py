"""Rich rendering helpers for sync results, stored models, and provider health."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from rich.console import Console
from rich.table import Table

from model_pricing import ModelInfo

from .schemas import SyncHistoryEntry, SyncResult

TABLE_ROW_STYLES = ["white", "yellow"]


def render_sync_history(entries: Sequence[SyncHistoryEntry], total: SyncResult, console: Console) -> None:
    """Render one row per provider run with a combined footer."""
    if not entries:
        console.print("No providers were synced.")
        return

    table = Table(title="Model Sync", show_footer=True, title_justify="left")
    table.add_column("Provider", footer="Total", justify="left")
    table.add_column("Result", justify="left")
    table.add_column("Models", justify="right")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Error", justify="left")

    for index, entry in enumerate(entries):
        style = TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)]
        table.add_row(
            entry.provider,
            "ok" if entry.success else "failed",
            f"{entry.models_synced:,}",
            f"{entry.duration_ms:,}",
            entry.error_message or "",
            style=style,
        )

    table.columns[1].footer = "ok" if total.success else "failed"
    table.columns[2].footer = f"{total.total_models:,}"
    table.columns[3].footer = f"{total.duration_ms:,}"
    table.columns[4].footer = (
        f"+{total.models_added} ~{total.models_updated} ={total.models_unchanged} !{total.upsert_failures}"
    )
    console.print(table)


def render_models(models: Sequence[ModelInfo], console: Console) -> None:
    """Render stored model prices."""
    if not models:
        console.print("No stored models found.")
        return

    table = Table(title="Model Prices (USD per 1K tokens)", show_footer=True, title_justify="left")
    table.add_column("Provider", footer=f"{len(models):,} models", justify="left")
    table.add_column("Model", justify="left")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Context", justify="right")
    table.add_column("Synced", justify="left")

    for index, model in enumerate(models):
        style = TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)]
        table.add_row(
            model.provider,
            model.model_name,
            f"{model.input_price_per_1k:.6f}",
            f"{model.output_price_per_1k:.6f}",
            f"{model.context_window:,}",
            model.last_synced.strftime("%Y-%m-%d %H:%M"),
            style=style,
        )
    console.print(table)


def render_provider_health(health: Mapping[str, bool], priorities: Mapping[str, int], console: Console) -> None:
    """Render provider reachability."""
    table = Table(title="Sync Providers", title_justify="left")
    table.add_column("Provider", justify="left")
    table.add_column("Priority", justify="right")
    table.add_column("Healthy", justify="left")

    for index, (name, healthy) in enumerate(health.items()):
        style = TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)]
        table.add_row(name, str(priorities.get(name, "-")), "yes" if healthy else "no", style=style)
    console.print(table)
