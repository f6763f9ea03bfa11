"""Common surface of a model price source."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import orjson

from model_pricing import ModelInfo
from telemetry_internal.http import DEFAULT_TIMEOUT_SECONDS, HttpFetchError, fetch_json, check_url

from ..errors import ProviderFetchError
from ..schemas import SyncErrorCode

LOGGER = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100


@dataclass(frozen=True)
class HealthRequest:
    """Request used to check that a source is reachable."""

    url: str
    headers: dict[str, str]
    method: str = "GET"


def _fetch_from_url(url: str, headers: dict[str, str], timeout: float) -> Any:
    """Fetch one JSON document from a provider endpoint."""
    return fetch_json(url, headers=headers, timeout=timeout)


def error_code_for(exc: HttpFetchError) -> SyncErrorCode:
    """Classify a transport failure."""
    if exc.status in (401, 403):
        return SyncErrorCode.AUTH_ERROR
    if exc.status == 429:
        return SyncErrorCode.RATE_LIMIT
    if isinstance(exc.__cause__, orjson.JSONDecodeError):
        return SyncErrorCode.PARSE_ERROR
    return SyncErrorCode.API_ERROR


def known_models(provider: str, rows: Iterable[tuple[str, float, float, int]]) -> list[ModelInfo]:
    """Build `ModelInfo` entries from `(model, input_per_1k, output_per_1k, context)` rows."""
    return [
        ModelInfo(
            provider=provider,
            model_name=model_name,
            input_price_per_1k=input_price,
            output_price_per_1k=output_price,
            context_window=context_window,
        )
        for model_name, input_price, output_price, context_window in rows
    ]


def require_list(document: Any, key: str, source: str) -> list[dict[str, Any]]:
    """Return the object items of `document[key]`.

    Raises:
        ProviderFetchError: With PARSE_ERROR when the document lacks the list.
    """
    items = document.get(key) if isinstance(document, dict) else None
    if not isinstance(items, list):
        raise ProviderFetchError(f"{source} response has no {key!r} list.", SyncErrorCode.PARSE_ERROR)
    return [item for item in items if isinstance(item, dict)]


class SyncProvider(ABC):
    """A source of priced models.

    `fetch_remote()` talks to the source and raises `ProviderFetchError` on
    failure; it returns None when no credential is configured. `fetch_models()`
    never raises and degrades to `known_models()`.
    """

    name: str
    official: bool = False
    default_priority: int = DEFAULT_PRIORITY

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def provider_name(self) -> str:
        return self.name

    def is_official_source(self) -> bool:
        return self.official

    def priority(self) -> int:
        """Return the source rank; lower is more authoritative."""
        return self.default_priority

    def supports_streaming(self) -> bool:
        return False

    def known_models(self) -> list[ModelInfo]:
        """Return the built-in fallback list."""
        return []

    @abstractmethod
    def fetch_remote(self) -> list[ModelInfo] | None:
        """Fetch the live model list, or return None when no credential is configured."""

    def fetch_models(self) -> list[ModelInfo]:
        """Return live models, falling back to the built-in list on any failure."""
        try:
            remote = self.fetch_remote()
        except ProviderFetchError as exc:
            fallback = self.known_models()
            LOGGER.warning("Fetching %s models failed (%s); using %d known model(s).", self.name, exc, len(fallback))
            return fallback
        if remote is None:
            fallback = self.known_models()
            LOGGER.info("Using %d known %s model(s).", len(fallback), self.name)
            return fallback
        LOGGER.info("Fetched %d model(s) from %s.", len(remote), self.name)
        return remote

    def health_request(self) -> HealthRequest | None:
        """Return the request used by `health_check`, or None when there is nothing to check."""
        return None

    def health_check(self) -> bool:
        """Return True when the source answers, or when it needs no remote access."""
        request = self.health_request()
        if request is None:
            return True
        return check_url(request.url, headers=request.headers, method=request.method, timeout=self._timeout)

    def _get_json(self, url: str, headers: dict[str, str] | None = None, *, missing_ok: bool = False) -> Any:
        """Fetch a JSON document, translating transport failures.

        Returns None for HTTP 404 when `missing_ok` is set.

        Raises:
            ProviderFetchError: On transport, status, or decoding failures.
        """
        try:
            return _fetch_from_url(url, headers or {}, self._timeout)
        except HttpFetchError as exc:
            if missing_ok and exc.status == 404:
                LOGGER.debug("%s endpoint not available.", self.name)
                return None
            raise ProviderFetchError(f"{self.name}: {exc}", error_code_for(exc)) from exc
