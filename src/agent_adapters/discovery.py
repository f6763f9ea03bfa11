"""Installation discovery: config-directory candidates, executables, and version probing."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from telemetry_internal.paths import get_xdg_config_home, get_xdg_data_home

LOGGER = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"
VERSION_TIMEOUT_SECONDS = 5.0

_VERSION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bv(\d+\.\d+\.\d+(?:[-+.][0-9A-Za-z.-]+)?)"),
    re.compile(r"\b(\d+\.\d+\.\d+(?:[-+.][0-9A-Za-z.-]+)?)"),
    re.compile(r"Version:\s*(\S+)", re.IGNORECASE),
)


@dataclass(frozen=True)
class AdapterPaths:
    """Where one tool keeps its data.

    Attributes:
        config_candidates: Ordered config-directory candidates; the first existing
            readable one wins.
        executable: Executable name looked up on PATH, or None to skip the lookup.
    """

    config_candidates: tuple[Path, ...]
    executable: str | None = None

    def config_dir(self) -> Path | None:
        """Return the first existing readable candidate directory."""
        for candidate in self.config_candidates:
            if candidate.is_dir() and os.access(candidate, os.R_OK):
                return candidate
        return None

    def existing_dirs(self) -> list[Path]:
        """Return every existing candidate directory, in order, without duplicates."""
        seen: set[Path] = set()
        existing: list[Path] = []
        for candidate in self.config_candidates:
            resolved = candidate.resolve() if candidate.exists() else candidate
            if resolved in seen or not candidate.is_dir():
                continue
            seen.add(resolved)
            existing.append(candidate)
        return existing


@dataclass(frozen=True)
class Installation:
    """Outcome of discovering one tool on this machine."""

    config_dir: Path | None
    executable_path: str | None

    @property
    def installed(self) -> bool:
        """Return True when a config directory exists or the executable resolves."""
        return self.config_dir is not None or self.executable_path is not None

    @property
    def configured(self) -> bool:
        """Return False for an executable that has never written its config directory."""
        return self.config_dir is not None


def discover(paths: AdapterPaths) -> Installation:
    """Look for config directories and executables on PATH without touching the network."""
    executable_path = shutil.which(paths.executable) if paths.executable else None
    return Installation(config_dir=paths.config_dir(), executable_path=executable_path)


def parse_version(output: str) -> str:
    """Return the first version string found on any line, else `unknown`."""
    for line in output.splitlines():
        for pattern in _VERSION_PATTERNS:
            match = pattern.search(line)
            if match is not None:
                return match.group(1)
    return UNKNOWN_VERSION


def read_version(executable_path: str | None, timeout: float = VERSION_TIMEOUT_SECONDS) -> str:
    """Run `<executable> --version` and parse its output; failures yield `unknown`."""
    if executable_path is None:
        return UNKNOWN_VERSION
    try:
        completed = subprocess.run(
            [executable_path, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        LOGGER.debug("Version check for %s failed: %s", executable_path, exc)
        return UNKNOWN_VERSION
    return parse_version(completed.stdout or completed.stderr or "")


def home_dir() -> Path:
    """Return the user's home directory."""
    return Path("~").expanduser()


def claude_code_paths() -> AdapterPaths:
    """Return Claude Code config candidates."""
    return AdapterPaths((home_dir() / ".claude", get_xdg_config_home() / "claude"), "claude")


def codex_paths() -> AdapterPaths:
    """Return Codex config candidates."""
    return AdapterPaths((home_dir() / ".codex", get_xdg_config_home() / "codex"), "codex")


def goose_paths() -> AdapterPaths:
    """Return Goose config and data candidates."""
    return AdapterPaths((get_xdg_config_home() / "goose", get_xdg_data_home() / "goose"), "goose")


def opencode_paths() -> AdapterPaths:
    """Return OpenCode config and data candidates."""
    return AdapterPaths((home_dir() / ".opencode", get_xdg_data_home() / "opencode"), "opencode")


def cursor_app_data_dir() -> Path:
    """Return Cursor's per-platform application data directory."""
    if sys.platform == "darwin":
        return home_dir() / "Library" / "Application Support" / "Cursor"
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else home_dir() / "AppData" / "Roaming"
        return base / "Cursor"
    return get_xdg_config_home() / "Cursor"


def cursor_paths() -> AdapterPaths:
    """Return Cursor app-data candidates."""
    return AdapterPaths((cursor_app_data_dir(), home_dir() / ".cursor"), "cursor")


def copilot_extension_dirs(extensions_root: Path) -> list[Path]:
    """Return installed `github.copilot-*` extension directories, excluding Copilot Chat."""
    if not extensions_root.is_dir():
        return []
    return sorted(
        entry
        for entry in extensions_root.iterdir()
        if entry.is_dir() and entry.name.startswith("github.copilot-") and "chat" not in entry.name
    )


def copilot_paths() -> AdapterPaths:
    """Return Copilot config candidates followed by its VS Code extension directories."""
    extensions = copilot_extension_dirs(home_dir() / ".vscode" / "extensions")
    return AdapterPaths((get_xdg_config_home() / "github-copilot", *extensions), None)
