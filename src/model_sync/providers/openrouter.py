"""OpenRouter model catalogue with per-token prices."""

from __future__ import annotations

import logging
import os
from typing import Any

from model_pricing import ModelInfo
from telemetry_internal.http import DEFAULT_TIMEOUT_SECONDS

from ..aggregator import normalize_provider_name
from .base import HealthRequest, SyncProvider, require_list

LOGGER = logging.getLogger(__name__)

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"
DEFAULT_CONTEXT_WINDOW = 4_096
UNKNOWN_PROVIDER = "unknown"


def parse_model_id(model_id: str) -> tuple[str, str]:
    """Split `provider/model`; ids without a slash get the `unknown` provider."""
    provider, slash, model_name = model_id.partition("/")
    if not slash:
        return UNKNOWN_PROVIDER, model_id
    return provider, model_name


def per_token_price(value: Any) -> float | None:
    """Parse a per-token price string; None when unparseable."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class OpenRouterSyncProvider(SyncProvider):
    """Community catalogue; the key is optional and there is no built-in fallback."""

    name = "openrouter"
    official = False
    default_priority = 50

    def __init__(self, api_key: str | None = None, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key if api_key is not None else os.environ.get("OPENROUTER_API_KEY")

    def fetch_remote(self) -> list[ModelInfo] | None:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        document = self._get_json(f"{OPENROUTER_API_BASE}/models", headers)

        models: list[ModelInfo] = []
        for entry in require_list(document, "data", "OpenRouter"):
            model_id = entry.get("id")
            pricing = entry.get("pricing")
            if not isinstance(model_id, str) or not isinstance(pricing, dict):
                continue
            prompt_price = per_token_price(pricing.get("prompt"))
            completion_price = per_token_price(pricing.get("completion"))
            # Negative prices mark routers with variable pricing.
            if prompt_price is None or prompt_price < 0:
                continue
            provider, model_name = parse_model_id(model_id)
            context_length = entry.get("context_length")
            models.append(
                ModelInfo(
                    provider=normalize_provider_name(provider),
                    model_name=model_name,
                    input_price_per_1k=prompt_price * 1000,
                    output_price_per_1k=(completion_price or 0.0) * 1000,
                    context_window=context_length if isinstance(context_length, int) else DEFAULT_CONTEXT_WINDOW,
                )
            )
        if not models:
            LOGGER.warning("No models fetched from OpenRouter.")
        return models

    def health_request(self) -> HealthRequest | None:
        return HealthRequest(url=f"{OPENROUTER_API_BASE}/models", headers={})
