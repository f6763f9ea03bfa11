"""Fallback-chain session normalization over one tool's data directories."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .activity import ActivityDetector
from .errors import SessionParseError
from .parsing import read_json_document
from .schemas import Session

LOGGER = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIR_NAMES: frozenset[str] = frozenset({"subagents"})

ParseStrategy = Callable[[Path], list[Session]]
DocumentParser = Callable[[Any, Path], Session | None]
EntryParser = Callable[[dict[str, Any], Path], Session | None]
FileParser = Callable[[Path], Session | None]


@dataclass(frozen=True)
class FallbackChain:
    """Ordered parse strategies; the first one yielding sessions for a directory wins."""

    strategies: tuple[tuple[str, ParseStrategy], ...]

    def parse_directory(self, directory: Path) -> list[Session]:
        """Try each strategy in order and return the first non-empty result."""
        for name, strategy in self.strategies:
            try:
                sessions = strategy(directory)
            except OSError as exc:
                LOGGER.warning("Strategy %s failed for %s: %s", name, directory, exc)
                continue
            if sessions:
                LOGGER.debug("Strategy %s produced %d session(s) for %s.", name, len(sessions), directory)
                return sessions
        return []


@dataclass(frozen=True)
class SessionSource:
    """A set of directories parsed with one fallback chain."""

    name: str
    directories: Callable[[], Iterable[Path]]
    chain: FallbackChain


@dataclass
class NormalizationReport:
    """Counters collected during one normalization pass."""

    directories_scanned: int = 0
    sessions_found: int = 0
    duplicates_skipped: int = 0
    failed_sources: list[str] = field(default_factory=list)


class SessionNormalizer:
    """Merge the sessions of several sources with first-found-wins identity deduplication."""

    def __init__(self, sources: Sequence[SessionSource], detector: ActivityDetector | None = None) -> None:
        self._sources = tuple(sources)
        self._detector = detector or ActivityDetector()
        self.last_report = NormalizationReport()

    def normalize(self, now: datetime | None = None) -> list[Session]:
        """Return all sessions with liveness resolved, most recent start first."""
        report = NormalizationReport()
        collected: dict[str, Session] = {}
        for source in self._sources:
            try:
                directories = list(source.directories())
            except OSError as exc:
                LOGGER.warning("Could not list directories for source %s: %s", source.name, exc)
                report.failed_sources.append(source.name)
                continue

            for directory in directories:
                report.directories_scanned += 1
                for session in source.chain.parse_directory(directory):
                    if session.session_id in collected:
                        report.duplicates_skipped += 1
                        LOGGER.debug("Skipping duplicate session %s from %s.", session.session_id, source.name)
                        continue
                    collected[session.session_id] = session

        reference = now or self._detector.now()
        resolved = [self._detector.resolve(session, reference) for session in collected.values()]
        report.sessions_found = len(resolved)
        self.last_report = report
        return sort_sessions(resolved)


def sort_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Sort sessions by start time, most recent first."""
    return sorted(sessions, key=lambda session: session.started_at, reverse=True)


def walk_files(
    root: Path,
    suffixes: Sequence[str],
    *,
    recursive: bool = True,
    excluded_dir_names: frozenset[str] = DEFAULT_EXCLUDED_DIR_NAMES,
) -> Iterator[Path]:
    """Yield files under `root` with one of the suffixes, skipping excluded directories."""
    if not root.is_dir():
        return
    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        LOGGER.warning("Failed listing %s: %s", root, exc)
        return
    for entry in entries:
        if entry.is_dir():
            if recursive and entry.name not in excluded_dir_names:
                yield from walk_files(entry, suffixes, recursive=True, excluded_dir_names=excluded_dir_names)
            continue
        if entry.suffix in suffixes:
            yield entry


def child_directories(root: Path) -> list[Path]:
    """Return immediate subdirectories of `root`, or an empty list when absent."""
    if not root.is_dir():
        return []
    return sorted(entry for entry in root.iterdir() if entry.is_dir())


def existing_directories(*candidates: Path) -> Callable[[], list[Path]]:
    """Build a directory provider that yields the candidates that exist."""

    def _provider() -> list[Path]:
        return [candidate for candidate in candidates if candidate.is_dir()]

    return _provider


def aggregate_file(file_name: str, parse_entry: EntryParser) -> ParseStrategy:
    """Strategy reading one JSON array of session objects from `directory/file_name`."""

    def _strategy(directory: Path) -> list[Session]:
        path = directory / file_name
        if not path.is_file():
            return []
        try:
            document = read_json_document(path)
        except SessionParseError as exc:
            LOGGER.warning("Skipping aggregate file: %s", exc)
            return []
        entries = document.get("sessions") if isinstance(document, dict) else document
        if not isinstance(entries, list):
            LOGGER.warning("Aggregate file %s does not hold a session array.", path)
            return []
        sessions: list[Session] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                LOGGER.debug("Skipping non-object entry %d in %s.", index, path)
                continue
            session = parse_entry(entry, path)
            if session is not None:
                sessions.append(session)
        return sessions

    return _strategy


def state_file(file_name: str, parse_state: EntryParser) -> ParseStrategy:
    """Strategy reading one JSON "current state" object from `directory/file_name`."""

    def _strategy(directory: Path) -> list[Session]:
        path = directory / file_name
        if not path.is_file():
            return []
        try:
            document = read_json_document(path)
        except SessionParseError as exc:
            LOGGER.warning("Skipping state file: %s", exc)
            return []
        if not isinstance(document, dict):
            return []
        session = parse_state(document, path)
        return [session] if session is not None else []

    return _strategy


def per_file(
    suffixes: Sequence[str],
    parse_file: FileParser,
    *,
    recursive: bool = False,
    excluded_dir_names: frozenset[str] = DEFAULT_EXCLUDED_DIR_NAMES,
    name_prefix: str = "",
) -> ParseStrategy:
    """Strategy producing at most one session per matching file in a directory."""

    def _strategy(directory: Path) -> list[Session]:
        sessions: list[Session] = []
        for path in walk_files(directory, suffixes, recursive=recursive, excluded_dir_names=excluded_dir_names):
            if not path.name.startswith(name_prefix):
                continue
            try:
                session = parse_file(path)
            except SessionParseError as exc:
                LOGGER.warning("Skipping session file: %s", exc)
                continue
            if session is not None:
                sessions.append(session)
        return sessions

    return _strategy


def in_subdirectory(name: str, strategy: ParseStrategy) -> ParseStrategy:
    """Apply a strategy to `directory/name` instead of `directory`."""

    def _strategy(directory: Path) -> list[Session]:
        return strategy(directory / name)

    return _strategy


def json_document_parser(parse_document: DocumentParser) -> FileParser:
    """Adapt a decoded-document parser into a file parser."""

    def _parse(path: Path) -> Session | None:
        return parse_document(read_json_document(path), path)

    return _parse
