"""LiteLLM community price file, fetched through the shared price-spec cache."""

from __future__ import annotations

import logging
from typing import Any

from model_pricing import ModelInfo, PriceSpecConfig, get_price_spec
from model_pricing.errors import PriceSpecError
from model_pricing.price_spec import iter_model_specs
from telemetry_internal.http import DEFAULT_TIMEOUT_SECONDS

from ..aggregator import normalize_provider_name
from ..errors import ProviderFetchError
from .base import HealthRequest, SyncProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 4_096
UNKNOWN_PROVIDER = "unknown"

_PROVIDER_PREFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("claude",), "anthropic"),
    (("gpt", "o1", "o3", "o4"), "openai"),
    (("gemini",), "google"),
    (("llama",), "meta"),
    (("mistral", "mixtral", "codestral"), "mistral"),
    (("command",), "cohere"),
    (("deepseek",), "deepseek"),
)


def infer_provider(model_name: str) -> str | None:
    """Guess the provider from a bare model name."""
    for prefixes, provider in _PROVIDER_PREFIXES:
        if model_name.startswith(prefixes):
            return provider
    return None


def parse_model_key(model_key: str, spec: dict[str, Any]) -> tuple[str, str]:
    """Return `(provider, model)` for a price-file key.

    Keys with a slash carry their provider; bare keys are inferred from the
    model name, then from the entry's `litellm_provider`.
    """
    provider, slash, model_name = model_key.partition("/")
    if slash:
        return normalize_provider_name(provider), model_name
    inferred = infer_provider(model_key)
    if inferred is None:
        declared = spec.get("litellm_provider")
        inferred = declared if isinstance(declared, str) and declared else UNKNOWN_PROVIDER
    return normalize_provider_name(inferred), model_key


def spec_to_model(model_key: str, spec: dict[str, Any]) -> ModelInfo | None:
    """Convert one price-file entry with per-token costs into per-1K `ModelInfo`."""
    input_cost = spec.get("input_cost_per_token")
    if not isinstance(input_cost, (int, float)) or isinstance(input_cost, bool):
        return None
    output_cost = spec.get("output_cost_per_token")
    if not isinstance(output_cost, (int, float)) or isinstance(output_cost, bool):
        output_cost = 0.0
    max_tokens = spec.get("max_tokens")
    provider, model_name = parse_model_key(model_key, spec)
    return ModelInfo(
        provider=provider,
        model_name=model_name,
        input_price_per_1k=float(input_cost) * 1000,
        output_price_per_1k=float(output_cost) * 1000,
        context_window=max_tokens if isinstance(max_tokens, int) and max_tokens > 0 else DEFAULT_CONTEXT_WINDOW,
    )


class LiteLLMSyncProvider(SyncProvider):
    """Community price file; cached on disk and served stale when the fetch fails."""

    name = "litellm"
    official = False
    default_priority = 60

    def __init__(self, config: PriceSpecConfig | None = None, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout=timeout)
        self._config = config or PriceSpecConfig.from_env()

    @property
    def config(self) -> PriceSpecConfig:
        return self._config

    def fetch_remote(self) -> list[ModelInfo] | None:
        try:
            price_spec = get_price_spec(
                self._config.update_interval_seconds,
                cache_path=self._config.cache_path,
                url=self._config.url,
            )
        except PriceSpecError as exc:
            raise ProviderFetchError(str(exc)) from exc

        models: list[ModelInfo] = []
        for model_key, spec in iter_model_specs(price_spec):
            model = spec_to_model(model_key, spec)
            if model is not None:
                models.append(model)
        if not models:
            LOGGER.warning("No priced models found in the LiteLLM price file.")
        return models

    def health_request(self) -> HealthRequest | None:
        return HealthRequest(url=self._config.url, headers={}, method="HEAD")
