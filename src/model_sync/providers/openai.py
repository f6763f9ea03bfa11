"""OpenAI models endpoint, backed by a known price list."""

from __future__ import annotations

import logging
import os

from model_pricing import ModelInfo
from telemetry_internal.http import DEFAULT_TIMEOUT_SECONDS

from .base import HealthRequest, SyncProvider, known_models, require_list

LOGGER = logging.getLogger(__name__)

OPENAI_API_BASE = "https://api.openai.com"
CHAT_MODEL_PREFIXES: tuple[str, ...] = ("gpt-", "o1", "o3", "o4", "text-embedding", "chatgpt")

KNOWN_MODELS: tuple[tuple[str, float, float, int], ...] = (
    ("gpt-4o", 0.005, 0.015, 128_000),
    ("gpt-4o-2024-11-20", 0.005, 0.015, 128_000),
    ("gpt-4o-2024-08-06", 0.005, 0.015, 128_000),
    ("gpt-4o-mini", 0.00015, 0.0006, 128_000),
    ("gpt-4o-mini-2024-07-18", 0.00015, 0.0006, 128_000),
    ("o1", 0.015, 0.060, 200_000),
    ("o1-2024-12-17", 0.015, 0.060, 200_000),
    ("o1-mini", 0.003, 0.012, 128_000),
    ("o1-preview", 0.015, 0.060, 128_000),
    ("o3-mini", 0.0011, 0.0044, 200_000),
    ("o4-mini", 0.0011, 0.0044, 200_000),
    ("gpt-4-turbo", 0.01, 0.03, 128_000),
    ("gpt-4-turbo-2024-04-09", 0.01, 0.03, 128_000),
    ("gpt-4", 0.03, 0.06, 8_192),
    ("gpt-4-32k", 0.06, 0.12, 32_768),
    ("gpt-3.5-turbo", 0.0005, 0.0015, 16_385),
    ("gpt-3.5-turbo-instruct", 0.0015, 0.002, 4_096),
    ("text-embedding-3-small", 0.00002, 0.0, 8_191),
    ("text-embedding-3-large", 0.00013, 0.0, 8_191),
    ("text-embedding-ada-002", 0.0001, 0.0, 8_191),
)

_DEFAULT_DETAILS = (0.001, 0.002, 4_096)


def is_chat_model(model_id: str) -> bool:
    """Return True for model ids worth pricing."""
    return model_id.startswith(CHAT_MODEL_PREFIXES)


def model_details(model_id: str) -> tuple[float, float, int]:
    """Return `(input, output, context_window)` for an OpenAI model id."""
    if model_id.startswith("gpt-4o-mini"):
        return 0.00015, 0.0006, 128_000
    if model_id.startswith("gpt-4o"):
        return 0.005, 0.015, 128_000
    if model_id == "o1" or model_id.startswith("o1-2024"):
        return 0.015, 0.060, 200_000
    if model_id.startswith("o1-mini"):
        return 0.003, 0.012, 128_000
    if model_id.startswith("o1-preview"):
        return 0.015, 0.060, 128_000
    if model_id.startswith(("o3-mini", "o4-mini")):
        return 0.0011, 0.0044, 200_000
    if "gpt-4-turbo" in model_id:
        return 0.01, 0.03, 128_000
    if model_id.startswith("gpt-4-32k"):
        return 0.06, 0.12, 32_768
    if model_id.startswith("gpt-4"):
        return 0.03, 0.06, 8_192
    if "gpt-3.5-turbo-instruct" in model_id:
        return 0.0015, 0.002, 4_096
    if model_id.startswith("gpt-3.5-turbo"):
        return 0.0005, 0.0015, 16_385
    if "text-embedding-3-small" in model_id:
        return 0.00002, 0.0, 8_191
    if "text-embedding-3-large" in model_id:
        return 0.00013, 0.0, 8_191
    if "text-embedding-ada" in model_id:
        return 0.0001, 0.0, 8_191
    return _DEFAULT_DETAILS


class OpenAISyncProvider(SyncProvider):
    """Official OpenAI source."""

    name = "openai"
    official = True
    default_priority = 1

    def __init__(self, api_key: str | None = None, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY")

    def known_models(self) -> list[ModelInfo]:
        return known_models(self.name, KNOWN_MODELS)

    def fetch_remote(self) -> list[ModelInfo] | None:
        if not self._api_key:
            LOGGER.debug("No OpenAI API key available.")
            return None
        document = self._get_json(f"{OPENAI_API_BASE}/v1/models", self._headers())
        models: list[ModelInfo] = []
        for entry in require_list(document, "data", "OpenAI"):
            model_id = entry.get("id")
            if not isinstance(model_id, str) or not is_chat_model(model_id):
                continue
            input_price, output_price, context_window = model_details(model_id)
            models.append(
                ModelInfo(
                    provider=self.name,
                    model_name=model_id,
                    input_price_per_1k=input_price,
                    output_price_per_1k=output_price,
                    context_window=context_window,
                )
            )
        return models

    def health_request(self) -> HealthRequest | None:
        if not self._api_key:
            return None
        return HealthRequest(url=f"{OPENAI_API_BASE}/v1/models", headers=self._headers())

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
