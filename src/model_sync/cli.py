"""CLI entrypoints for syncing model prices into the pricing repository."""

from __future__ import annotations

import logging
from pathlib import Path

import orjsonl
import typer
from rich.console import Console

from model_pricing.errors import PricingRepositoryError
from model_pricing.repository import ModelPricingRepository
from telemetry_internal.paths import get_default_database_path, get_default_sync_history_path

from .errors import ProviderNotFoundError
from .providers import default_providers
from .render import render_models, render_provider_health, render_sync_history
from .scheduler import SyncScheduler
from .schemas import ConflictResolution, SyncConfig, SyncHistoryEntry

LOGGER = logging.getLogger(__name__)

TYPER_APP = typer.Typer(help="Sync model prices from provider sources.")


@TYPER_APP.callback()
def main() -> None:
    """Root CLI callback."""


@TYPER_APP.command("sync")
def sync_command(
    database_path: Path | None = typer.Option(
        None,
        "--database-path",
        "-d",
        help="DuckDB file receiving synced prices. Defaults to the XDG data directory.",
    ),
    provider: str | None = typer.Option(None, "--provider", "-p", help="Sync only this provider."),
    conflict_resolution: str = typer.Option(
        str(ConflictResolution.OFFICIAL_FIRST),
        "--conflict-resolution",
        help="Policy when another source already stored a model.",
    ),
    history_file: Path | None = typer.Option(
        None,
        "--history-file",
        help="JSONL file collecting sync history. Defaults to the XDG data directory.",
    ),
    write_history: bool = typer.Option(True, "--write-history/--no-write-history", help="Append this run's history."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """Fetch prices from every enabled provider and store them."""
    _configure_logging(verbose)
    config = _build_config(conflict_resolution)
    repository = _open_repository(database_path or get_default_database_path())
    try:
        scheduler = SyncScheduler(repository, config)
        scheduler.register_providers(default_providers())
        if provider is None:
            total = scheduler.trigger_sync()
            entries = scheduler.get_history(len(scheduler.provider_names()))
        else:
            try:
                total = scheduler.trigger_provider_sync(provider.strip().lower())
            except ProviderNotFoundError as exc:
                raise typer.BadParameter(str(exc)) from exc
            entries = scheduler.get_history(1)
    finally:
        repository.close()

    if write_history:
        _append_history(history_file or get_default_sync_history_path(), entries)
    render_sync_history(entries, total, Console())
    if not total.success:
        raise typer.Exit(code=1)


@TYPER_APP.command("models")
def models_command(
    database_path: Path | None = typer.Option(
        None,
        "--database-path",
        "-d",
        help="DuckDB file holding synced prices. Defaults to the XDG data directory.",
    ),
    provider: str | None = typer.Option(None, "--provider", "-p", help="Only show models of this provider."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """Print stored model prices."""
    _configure_logging(verbose)
    resolved_path = database_path or get_default_database_path()
    if not resolved_path.exists():
        raise typer.BadParameter(f"Database file not found: {resolved_path}")
    repository = _open_repository(resolved_path)
    try:
        models = repository.list_models(provider)
    except PricingRepositoryError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        repository.close()
    render_models(models, Console())


@TYPER_APP.command("providers")
def providers_command(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info-level logging."),
) -> None:
    """Check that each provider source is reachable."""
    _configure_logging(verbose)
    providers = default_providers()
    health: dict[str, bool] = {}
    for source in providers:
        try:
            health[source.provider_name()] = source.health_check()
        except Exception:
            LOGGER.exception("Health check for %s raised.", source.provider_name())
            health[source.provider_name()] = False
    priorities = {source.provider_name(): source.priority() for source in providers}
    render_provider_health(health, priorities, Console())


def _build_config(conflict_resolution: str) -> SyncConfig:
    """Build sync settings from the environment and `--conflict-resolution`."""
    try:
        policy = ConflictResolution(conflict_resolution.strip().lower())
    except ValueError as exc:
        choices = ", ".join(str(item) for item in ConflictResolution)
        raise typer.BadParameter(
            f"Unknown conflict resolution: {conflict_resolution}. Expected one of: {choices}."
        ) from exc
    env_config = SyncConfig.from_env()
    return SyncConfig(
        interval_seconds=env_config.interval_seconds,
        disabled_providers=env_config.disabled_providers,
        conflict_resolution=policy,
    )


def _open_repository(database_path: Path) -> ModelPricingRepository:
    """Open the pricing repository and make sure its table exists."""
    try:
        repository = ModelPricingRepository(database_path)
    except PricingRepositoryError as exc:
        raise typer.BadParameter(str(exc)) from exc
    try:
        repository.ensure_schema()
    except Exception:
        repository.close()
        raise
    return repository


def _append_history(history_file: Path, entries: list[SyncHistoryEntry]) -> None:
    """Append history entries as JSON lines."""
    if not entries:
        return
    history_file.parent.mkdir(parents=True, exist_ok=True)
    orjsonl.extend(history_file, [entry.to_record() for entry in entries])
    LOGGER.info("Appended %d history entries to %s.", len(entries), history_file)


def _configure_logging(verbose: bool) -> None:
    """Initialize default logging for CLI usage."""
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(asctime)s][%(levelname)s][%(name)s] %(message)s",
    )


def module_cli_entry_point():
    TYPER_APP()
