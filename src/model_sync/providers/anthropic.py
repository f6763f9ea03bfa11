"""Anthropic models endpoint, backed by a known price list."""

from __future__ import annotations

import logging
import os

from model_pricing import ModelInfo
from telemetry_internal.http import DEFAULT_TIMEOUT_SECONDS

from .base import HealthRequest, SyncProvider, known_models, require_list

LOGGER = logging.getLogger(__name__)

ANTHROPIC_API_BASE = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"
DEFAULT_CONTEXT_WINDOW = 200_000

KNOWN_MODELS: tuple[tuple[str, float, float, int], ...] = (
    ("claude-opus-4-5-20251101", 0.015, 0.075, 200_000),
    ("claude-opus-4-1-20250805", 0.015, 0.075, 200_000),
    ("claude-opus-4-20250514", 0.015, 0.075, 200_000),
    ("claude-sonnet-4-5-20250929", 0.003, 0.015, 200_000),
    ("claude-sonnet-4-20250514", 0.003, 0.015, 200_000),
    ("claude-haiku-4-5-20251001", 0.001, 0.005, 200_000),
    ("claude-3-7-sonnet-20250219", 0.003, 0.015, 200_000),
    ("claude-3-5-sonnet-20241022", 0.003, 0.015, 200_000),
    ("claude-3-5-sonnet-20240620", 0.003, 0.015, 200_000),
    ("claude-3-5-haiku-20241022", 0.0008, 0.004, 200_000),
    ("claude-3-opus-20240229", 0.015, 0.075, 200_000),
    ("claude-3-sonnet-20240229", 0.003, 0.015, 200_000),
    ("claude-3-haiku-20240307", 0.00025, 0.00125, 200_000),
    ("claude-2.1", 0.008, 0.024, 200_000),
    ("claude-2.0", 0.008, 0.024, 100_000),
    ("claude-instant-1.2", 0.0008, 0.0024, 100_000),
)

# First matching substring wins.
_PRICING_RULES: tuple[tuple[str, float, float], ...] = (
    ("opus-4", 0.015, 0.075),
    ("sonnet-4", 0.003, 0.015),
    ("haiku-4-5", 0.001, 0.005),
    ("3-7-sonnet", 0.003, 0.015),
    ("3-5-sonnet", 0.003, 0.015),
    ("3-5-haiku", 0.0008, 0.004),
    ("3-opus", 0.015, 0.075),
    ("3-sonnet", 0.003, 0.015),
    ("3-haiku", 0.00025, 0.00125),
    ("2.1", 0.008, 0.024),
    ("2.0", 0.008, 0.024),
    ("instant", 0.0008, 0.0024),
)
_DEFAULT_PRICING = (0.003, 0.015)


def model_pricing(model_id: str) -> tuple[float, float]:
    """Return `(input, output)` per-1K prices for an Anthropic model id."""
    for pattern, input_price, output_price in _PRICING_RULES:
        if pattern in model_id:
            return input_price, output_price
    return _DEFAULT_PRICING


class AnthropicSyncProvider(SyncProvider):
    """Official Anthropic source; the API lists models and prices come from the rules above."""

    name = "anthropic"
    official = True
    default_priority = 1

    def __init__(self, api_key: str | None = None, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key if api_key is not None else os.environ.get("ANTHROPIC_API_KEY")

    def known_models(self) -> list[ModelInfo]:
        return known_models(self.name, KNOWN_MODELS)

    def fetch_remote(self) -> list[ModelInfo] | None:
        if not self._api_key:
            LOGGER.debug("No Anthropic API key available.")
            return None
        document = self._get_json(f"{ANTHROPIC_API_BASE}/v1/models", self._headers(), missing_ok=True)
        if document is None:
            return None
        models: list[ModelInfo] = []
        for entry in require_list(document, "data", "Anthropic"):
            model_id = entry.get("id")
            if not isinstance(model_id, str):
                continue
            input_price, output_price = model_pricing(model_id)
            context_window = entry.get("context_window")
            models.append(
                ModelInfo(
                    provider=self.name,
                    model_name=model_id,
                    input_price_per_1k=input_price,
                    output_price_per_1k=output_price,
                    context_window=context_window if isinstance(context_window, int) else DEFAULT_CONTEXT_WINDOW,
                )
            )
        return models

    def health_request(self) -> HealthRequest | None:
        if not self._api_key:
            return None
        return HealthRequest(url=f"{ANTHROPIC_API_BASE}/v1/models", headers=self._headers())

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key or "",
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
