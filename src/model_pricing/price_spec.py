"""Community price specification fetch, cache, and per-model extraction."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any

from telemetry_internal.http import HttpFetchError, fetch_json, fetch_json_cached
from telemetry_internal.paths import get_default_price_cache_path

from .errors import PriceSpecError

LOGGER = logging.getLogger(__name__)
DEFAULT_PRICE_SPEC_URL = (
    "https://raw.githubusercontent.com/BerriAI/litellm/refs/heads/main/model_prices_and_context_window.json"
)
# Placeholder entry documenting the schema of the community file.
SAMPLE_SPEC_KEY = "sample_spec"
_CACHE_PATH_UNSET = object()


@dataclass(frozen=True)
class PriceSpecConfig:
    """Where and how often the community price specification is refreshed.

    Attributes:
        url: Remote JSON endpoint that returns pricing metadata.
        update_interval_seconds: Minimum refresh interval for cache updates.
        cache_path: Cache file; None disables caching.
    """

    url: str = DEFAULT_PRICE_SPEC_URL
    update_interval_seconds: int = 86400
    cache_path: Path | None = None

    @classmethod
    def from_env(cls) -> PriceSpecConfig:
        """Build a config whose cache path honors `PRICE_CACHE_PATH`."""
        return cls(cache_path=_resolve_cache_path(_CACHE_PATH_UNSET))


def _fetch_from_url(url: str) -> Any:
    """Fetch the latest price specification from a URL."""
    return fetch_json(url)


def _resolve_cache_path(cache_path: Path | str | None | object) -> Path | None:
    """Resolve the effective cache path from an explicit value, the env, or the XDG default."""
    if cache_path is _CACHE_PATH_UNSET:
        env_cache_path = os.environ.get("PRICE_CACHE_PATH")
        return Path(env_cache_path).expanduser() if env_cache_path else get_default_price_cache_path()
    if cache_path is None:
        return None
    assert isinstance(cache_path, (Path, str)), f"Invalid cache_path: {cache_path}"
    return Path(cache_path).expanduser()


def get_price_spec(
    update_interval_seconds: int = 86400,
    *,
    cache_path: Path | str | None | object = _CACHE_PATH_UNSET,
    url: str = DEFAULT_PRICE_SPEC_URL,
) -> dict[str, Any]:
    """Fetch and cache the community pricing document.

    Args:
        update_interval_seconds: Minimum number of seconds between cache refreshes.
        cache_path: Cache file path configuration.
            - Omitted: use `PRICE_CACHE_PATH` env var if set, else the XDG cache default.
            - `None`: disable cache.
            - `Path` or `str`: use explicit path.
        url: URL to fetch pricing JSON from.

    Returns:
        Model pricing data keyed by model code.

    Raises:
        PriceSpecError: If no usable fresh/stale cache exists and the remote fetch
            fails, or the document is not a JSON object.
    """
    effective_cache_path = _resolve_cache_path(cache_path)
    try:
        document = fetch_json_cached(
            url,
            effective_cache_path,
            max_age_seconds=update_interval_seconds,
            fetcher=lambda target: _fetch_from_url(target),
        )
    except HttpFetchError as exc:
        raise PriceSpecError(f"Failed to fetch price spec: {exc}") from exc
    if not isinstance(document, dict):
        raise PriceSpecError(f"Price spec from {url} is not a JSON object.")
    return document


def iter_model_specs(price_spec: dict[str, Any]) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield `(model_code, spec)` pairs, skipping the sample entry and non-object values."""
    for model_code, spec in price_spec.items():
        if model_code == SAMPLE_SPEC_KEY:
            continue
        if not isinstance(spec, dict):
            LOGGER.debug("Skipping non-object price spec entry %r.", model_code)
            continue
        yield model_code, spec


def resolve_model_spec(model_code: str, price_spec: dict[str, Any]) -> dict[str, Any] | None:
    """Look up a model's spec by exact code, then by its `provider/`-stripped name."""
    spec = price_spec.get(model_code)
    if isinstance(spec, dict):
        return spec
    stripped = model_code.rpartition("/")[2]
    for candidate_code, candidate in iter_model_specs(price_spec):
        if candidate_code.rpartition("/")[2] == stripped:
            return candidate
    return None
