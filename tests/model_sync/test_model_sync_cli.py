"""Tests for the model sync Typer CLI."""

from __future__ import annotations

from pathlib import Path

import orjsonl
import pytest
from typer.testing import CliRunner

from model_pricing import ModelInfo
from model_sync.cli import TYPER_APP
from model_sync.errors import ProviderFetchError
from model_sync.providers.base import SyncProvider
from model_sync.schemas import SyncErrorCode


@pytest.fixture(autouse=True)
def stub_providers(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace the built-in providers with offline stubs."""
    monkeypatch.setattr(
        "model_sync.cli.default_providers",
        lambda: [
            _StubProvider("anthropic", 1, [ModelInfo("anthropic", "claude-3-opus", 0.015, 0.075, 200_000)]),
            _StubProvider("openrouter", 50, [ModelInfo("anthropic", "claude-3-opus", 0.02, 0.09, 200_000)]),
        ],
    )
    monkeypatch.delenv("MODEL_SYNC_DISABLED_PROVIDERS", raising=False)
    monkeypatch.setenv("COLUMNS", "220")


def test_sync_command_stores_models_and_appends_history(tmp_path: Path) -> None:
    """`sync` should store prices, print a table, and append one history line per provider."""
    database_path = tmp_path / "models.duckdb"
    history_file = tmp_path / "history" / "sync.jsonl"

    result = CliRunner().invoke(
        TYPER_APP,
        ["sync", "--database-path", str(database_path), "--history-file", str(history_file)],
        terminal_width=220,
    )

    assert result.exit_code == 0
    assert "Model Sync" in result.stdout
    records = list(orjsonl.stream(history_file))
    assert [record["provider"] for record in records] == ["anthropic", "openrouter"]
    assert all(record["success"] for record in records)

    listing = CliRunner().invoke(TYPER_APP, ["models", "--database-path", str(database_path)], terminal_width=220)
    assert listing.exit_code == 0
    assert "claude-3-opus" in listing.stdout
    assert "0.015000" in listing.stdout


def test_sync_single_provider_without_history(tmp_path: Path) -> None:
    """`sync --provider` should run one provider and skip history when asked."""
    history_file = tmp_path / "sync.jsonl"

    result = CliRunner().invoke(
        TYPER_APP,
        [
            "sync",
            "--database-path",
            str(tmp_path / "models.duckdb"),
            "--provider",
            "OpenRouter",
            "--history-file",
            str(history_file),
            "--no-write-history",
        ],
        terminal_width=220,
    )

    assert result.exit_code == 0
    assert "openrouter" in result.stdout
    assert not history_file.exists()


def test_sync_rejects_unknown_provider_and_policy(tmp_path: Path) -> None:
    """Unknown provider names and conflict policies should be usage errors."""
    runner = CliRunner()
    database_path = str(tmp_path / "models.duckdb")

    unknown_provider = runner.invoke(TYPER_APP, ["sync", "-d", database_path, "-p", "nobody", "--no-write-history"])
    unknown_policy = runner.invoke(TYPER_APP, ["sync", "-d", database_path, "--conflict-resolution", "coin_flip"])

    assert unknown_provider.exit_code != 0
    assert unknown_policy.exit_code != 0


def test_sync_exits_nonzero_when_a_provider_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """A failed provider should make `sync` exit with status 1."""
    monkeypatch.setattr(
        "model_sync.cli.default_providers",
        lambda: [_StubProvider("openai", 1, [], failure=SyncErrorCode.AUTH_ERROR)],
    )

    result = CliRunner().invoke(
        TYPER_APP,
        ["sync", "-d", str(tmp_path / "models.duckdb"), "--no-write-history"],
        terminal_width=220,
    )

    assert result.exit_code == 1
    assert "failed" in result.stdout


def test_models_command_requires_existing_database(tmp_path: Path) -> None:
    """`models` against a missing database should be a usage error."""
    result = CliRunner().invoke(TYPER_APP, ["models", "--database-path", str(tmp_path / "missing.duckdb")])

    assert result.exit_code != 0


def test_providers_command_reports_health() -> None:
    """`providers` should list each source with its reachability."""
    result = CliRunner().invoke(TYPER_APP, ["providers"], terminal_width=220)

    assert result.exit_code == 0
    assert "anthropic" in result.stdout
    assert "openrouter" in result.stdout


class _StubProvider(SyncProvider):
    def __init__(
        self,
        name: str,
        priority: int,
        models: list[ModelInfo],
        failure: SyncErrorCode | None = None,
    ) -> None:
        super().__init__()
        self.name = name
        self.default_priority = priority
        self._models = models
        self._failure = failure

    def fetch_remote(self) -> list[ModelInfo] | None:
        if self._failure is not None:
            raise ProviderFetchError(f"{self.name} unavailable", self._failure)
        return list(self._models)
