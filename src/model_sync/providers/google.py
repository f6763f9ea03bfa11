"""Google Generative Language models endpoint, backed by a known price list."""

from __future__ import annotations

import logging
import os

from model_pricing import ModelInfo
from telemetry_internal.http import DEFAULT_TIMEOUT_SECONDS

from .base import HealthRequest, SyncProvider, known_models, require_list

LOGGER = logging.getLogger(__name__)

GOOGLE_AI_API_BASE = "https://generativelanguage.googleapis.com"
DEFAULT_CONTEXT_WINDOW = 32_760

KNOWN_MODELS: tuple[tuple[str, float, float, int], ...] = (
    ("gemini-2.5-pro", 0.00125, 0.01, 1_048_576),
    ("gemini-2.5-flash", 0.0003, 0.0025, 1_048_576),
    ("gemini-2.0-flash", 0.0, 0.0, 1_048_576),
    ("gemini-2.0-flash-exp", 0.0, 0.0, 1_048_576),
    ("gemini-1.5-pro", 0.00125, 0.005, 2_097_152),
    ("gemini-1.5-pro-002", 0.00125, 0.005, 2_097_152),
    ("gemini-1.5-flash", 0.000075, 0.0003, 1_048_576),
    ("gemini-1.5-flash-002", 0.000075, 0.0003, 1_048_576),
    ("gemini-1.5-flash-8b", 0.0000375, 0.00015, 1_048_576),
    ("gemini-1.0-pro", 0.0005, 0.0015, 32_760),
    ("gemini-pro", 0.0005, 0.0015, 32_760),
    ("gemini-pro-vision", 0.0005, 0.0015, 16_384),
    ("text-embedding-004", 0.00001, 0.0, 2_048),
    ("embedding-001", 0.00001, 0.0, 2_048),
)

# First matching substring wins.
_PRICING_RULES: tuple[tuple[str, float, float], ...] = (
    ("2.5-pro", 0.00125, 0.01),
    ("2.5-flash", 0.0003, 0.0025),
    ("2.0-flash", 0.0, 0.0),
    ("1.5-pro", 0.00125, 0.005),
    ("1.5-flash-8b", 0.0000375, 0.00015),
    ("1.5-flash", 0.000075, 0.0003),
    ("1.0-pro", 0.0005, 0.0015),
    ("pro-vision", 0.0005, 0.0015),
    ("embedding", 0.00001, 0.0),
)
_DEFAULT_PRICING = (0.0005, 0.0015)


def is_generative_model(name: str) -> bool:
    """Return True for Gemini and embedding models."""
    return "gemini" in name or "embedding" in name


def extract_model_name(full_name: str) -> str:
    """Strip the `models/` resource prefix."""
    return full_name.removeprefix("models/")


def model_pricing(model_name: str) -> tuple[float, float]:
    """Return `(input, output)` per-1K prices for a Gemini model name."""
    if model_name == "gemini-pro":
        return 0.0005, 0.0015
    for pattern, input_price, output_price in _PRICING_RULES:
        if pattern in model_name:
            return input_price, output_price
    return _DEFAULT_PRICING


class GoogleSyncProvider(SyncProvider):
    """Official Google source; the key comes from `GOOGLE_API_KEY` or `GEMINI_API_KEY`."""

    name = "google"
    official = True
    default_priority = 1

    def __init__(self, api_key: str | None = None, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout=timeout)
        if api_key is None:
            api_key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY")
        self._api_key = api_key

    def known_models(self) -> list[ModelInfo]:
        return known_models(self.name, KNOWN_MODELS)

    def fetch_remote(self) -> list[ModelInfo] | None:
        if not self._api_key:
            LOGGER.debug("No Google API key available.")
            return None
        document = self._get_json(self._models_url(), self._headers())
        models: list[ModelInfo] = []
        for entry in require_list(document, "models", "Google"):
            resource_name = entry.get("name")
            if not isinstance(resource_name, str) or not is_generative_model(resource_name):
                continue
            model_name = extract_model_name(resource_name)
            input_price, output_price = model_pricing(model_name)
            context_window = entry.get("inputTokenLimit")
            models.append(
                ModelInfo(
                    provider=self.name,
                    model_name=model_name,
                    input_price_per_1k=input_price,
                    output_price_per_1k=output_price,
                    context_window=context_window if isinstance(context_window, int) else DEFAULT_CONTEXT_WINDOW,
                )
            )
        return models

    def health_request(self) -> HealthRequest | None:
        if not self._api_key:
            return None
        return HealthRequest(url=self._models_url(), headers=self._headers())

    def _models_url(self) -> str:
        return f"{GOOGLE_AI_API_BASE}/v1beta/models"

    def _headers(self) -> dict[str, str]:
        # Sent as a header so the key never appears in logged URLs.
        return {"x-goog-api-key": self._api_key or "", "Content-Type": "application/json"}
