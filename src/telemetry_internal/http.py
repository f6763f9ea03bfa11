"""Small urllib helpers for fetching JSON documents with timeouts and an on-disk cache."""

from __future__ import annotations

import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path
from typing import Any

import orjson

LOGGER = logging.getLogger(__name__)
DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpFetchError(RuntimeError):
    """Raised when a remote JSON document cannot be fetched or decoded."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def fetch_json(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """Fetch and decode a JSON document.

    Raises:
        HttpFetchError: On transport errors, non-200 responses, or invalid JSON.
            `status` carries the HTTP status when one was received.
    """
    request = urllib.request.Request(url, headers=headers or {}, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            if response.status != 200:
                raise HttpFetchError(f"GET {_redact(url)} returned HTTP {response.status}", status=response.status)
            return orjson.loads(response.read())
    except HttpFetchError:
        raise
    except urllib.error.HTTPError as exc:
        raise HttpFetchError(f"GET {_redact(url)} returned HTTP {exc.code}", status=exc.code) from exc
    except orjson.JSONDecodeError as exc:
        raise HttpFetchError(f"Invalid JSON from {_redact(url)}: {exc}") from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise HttpFetchError(f"GET {_redact(url)} failed: {exc}") from exc


def check_url(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    method: str = "HEAD",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> bool:
    """Return True when the URL answers with a 2xx status within the timeout."""
    request = urllib.request.Request(url, headers=headers or {}, method=method)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return 200 <= response.status < 300
    except (urllib.error.URLError, OSError, ValueError):
        return False


def fetch_json_cached(
    url: str,
    cache_path: Path | None,
    *,
    max_age_seconds: int = 86400,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    fetcher: Callable[[str], Any] | None = None,
) -> Any:
    """Fetch a JSON document through a file cache.

    A cache file younger than `max_age_seconds` is returned without network
    access. Otherwise the document is refetched with `fetcher` (default
    `fetch_json`) and the cache rewritten; when the fetch fails, a stale cache
    is returned if readable.

    Raises:
        HttpFetchError: If no usable cache exists and the remote fetch fails.
    """
    if fetcher is None:

        def fetcher(target: str) -> Any:
            return fetch_json(target, timeout=timeout)

    if cache_path is None:
        return fetcher(url)

    if cache_path.exists():
        age_seconds = time.time() - cache_path.stat().st_mtime
        if age_seconds < max_age_seconds:
            cached = _read_cache(cache_path)
            if cached is not None:
                return cached
            LOGGER.warning("Failed reading fresh cache at %s; refetching.", cache_path)

    try:
        payload = fetcher(url)
    except HttpFetchError:
        cached = _read_cache(cache_path) if cache_path.exists() else None
        if cached is not None:
            LOGGER.warning("Using stale cache at %s after fetch error.", cache_path)
            return cached
        raise

    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_bytes(orjson.dumps(payload))
    except OSError:
        LOGGER.warning("Failed writing cache at %s.", cache_path)
    return payload


def _read_cache(cache_path: Path) -> Any | None:
    """Read a cached JSON document, returning None when unreadable."""
    try:
        return orjson.loads(cache_path.read_bytes())
    except (OSError, orjson.JSONDecodeError):
        return None


def _redact(url: str) -> str:
    """Drop query strings so API keys passed as parameters never reach logs."""
    return url.split("?", 1)[0]
