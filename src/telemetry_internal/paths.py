"""Shared path utilities for coding-agent-telemetry."""

from __future__ import annotations

import os
from pathlib import Path

APP_DIR_NAME = "coding-agent-telemetry"


def get_xdg_config_home() -> Path:
    """Return the XDG config home, defaulting to `~/.config`."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home).expanduser()
    return Path("~/.config").expanduser()


def get_xdg_data_home() -> Path:
    """Return the XDG data home, defaulting to `~/.local/share`."""
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home).expanduser()
    return Path("~/.local/share").expanduser()


def get_default_database_path() -> Path:
    """Return the default pricing DuckDB path.

    `MODEL_PRICING_DB_PATH` overrides the XDG data directory default.
    """
    env_path = os.environ.get("MODEL_PRICING_DB_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_xdg_data_home() / APP_DIR_NAME / "model_pricing.duckdb"


def get_default_price_cache_path() -> Path:
    """Return the default cache path following XDG conventions."""
    xdg_cache_home = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache_home:
        base_cache_dir = Path(xdg_cache_home).expanduser()
    else:
        base_cache_dir = Path("~/.cache").expanduser()
    return base_cache_dir / APP_DIR_NAME / "price_cache.json"


def get_default_sync_history_path() -> Path:
    """Return the default JSONL file that collects sync history entries."""
    return get_xdg_data_home() / APP_DIR_NAME / "sync_history.jsonl"
