"""Tests for model sync providers with network calls stubbed out."""

from __future__ import annotations

from typing import Any

import pytest

from model_pricing import PriceSpecConfig
from model_pricing import price_spec as price_spec_module
from model_sync.errors import ProviderFetchError
from model_sync.providers import (
    AnthropicSyncProvider,
    GoogleSyncProvider,
    LiteLLMSyncProvider,
    OpenAISyncProvider,
    OpenRouterSyncProvider,
    default_providers,
)
from model_sync.providers import base as base_module
from model_sync.providers.litellm import parse_model_key, spec_to_model
from model_sync.providers.openai import is_chat_model, model_details
from model_sync.schemas import SyncErrorCode
from telemetry_internal.http import HttpFetchError


def test_anthropic_without_key_uses_known_models(monkeypatch: pytest.MonkeyPatch) -> None:
    """No API key should mean no network call and the built-in price list."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setattr(base_module, "_fetch_from_url", _unexpected_fetch)
    provider = AnthropicSyncProvider()

    assert provider.fetch_remote() is None
    models = provider.fetch_models()
    assert any(model.model_name == "claude-3-opus-20240229" for model in models)
    assert provider.health_request() is None
    assert provider.health_check()


def test_anthropic_prices_listed_models_by_family(monkeypatch: pytest.MonkeyPatch) -> None:
    """Listed Anthropic ids should be priced by family rules and sent versioned headers."""
    calls: list[tuple[str, dict[str, str]]] = []

    def _fetch(url: str, headers: dict[str, str], timeout: float) -> Any:
        calls.append((url, headers))
        return {"data": [{"id": "claude-opus-4-1-20250805"}, {"id": "claude-3-haiku-20240307", "context_window": 100}]}

    monkeypatch.setattr(base_module, "_fetch_from_url", _fetch)

    models = AnthropicSyncProvider(api_key="sk-test").fetch_remote()

    assert models is not None
    assert [(model.model_name, model.input_price_per_1k, model.context_window) for model in models] == [
        ("claude-opus-4-1-20250805", 0.015, 200_000),
        ("claude-3-haiku-20240307", 0.00025, 100),
    ]
    assert calls[0][0] == "https://api.anthropic.com/v1/models"
    assert calls[0][1]["x-api-key"] == "sk-test"
    assert calls[0][1]["anthropic-version"] == "2023-06-01"


def test_openai_filters_non_chat_models(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only chat and embedding model ids should be kept from the OpenAI listing."""
    monkeypatch.setattr(
        base_module,
        "_fetch_from_url",
        lambda url, headers, timeout: {"data": [{"id": "gpt-4o"}, {"id": "dall-e-3"}, {"id": "whisper-1"}]},
    )

    models = OpenAISyncProvider(api_key="sk-test").fetch_remote()

    assert models is not None
    assert [model.model_name for model in models] == ["gpt-4o"]
    assert not is_chat_model("tts-1")
    assert model_details("brand-new-model") == (0.001, 0.002, 4096)


def test_auth_failure_is_classified_and_degrades(monkeypatch: pytest.MonkeyPatch) -> None:
    """HTTP 401 should raise AUTH_ERROR from `fetch_remote` and fall back in `fetch_models`."""

    def _unauthorized(url: str, headers: dict[str, str], timeout: float) -> Any:
        raise HttpFetchError("GET returned HTTP 401", status=401)

    monkeypatch.setattr(base_module, "_fetch_from_url", _unauthorized)
    provider = OpenAISyncProvider(api_key="bad")

    with pytest.raises(ProviderFetchError) as excinfo:
        _ = provider.fetch_remote()

    assert excinfo.value.code is SyncErrorCode.AUTH_ERROR
    assert not excinfo.value.recoverable
    assert len(provider.fetch_models()) == len(provider.known_models())


def test_rate_limit_is_recoverable(monkeypatch: pytest.MonkeyPatch) -> None:
    """HTTP 429 should map to a recoverable RATE_LIMIT error."""

    def _limited(url: str, headers: dict[str, str], timeout: float) -> Any:
        raise HttpFetchError("GET returned HTTP 429", status=429)

    monkeypatch.setattr(base_module, "_fetch_from_url", _limited)

    with pytest.raises(ProviderFetchError) as excinfo:
        _ = OpenRouterSyncProvider().fetch_remote()

    assert excinfo.value.code is SyncErrorCode.RATE_LIMIT
    assert excinfo.value.recoverable


def test_google_sends_key_as_header_and_strips_resource_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    """The Gemini key should travel in a header and `models/` prefixes should be dropped."""
    seen: dict[str, Any] = {}

    def _fetch(url: str, headers: dict[str, str], timeout: float) -> Any:
        seen["url"] = url
        seen["headers"] = headers
        return {
            "models": [
                {"name": "models/gemini-1.5-pro", "inputTokenLimit": 2_097_152},
                {"name": "models/aqa"},
            ]
        }

    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "gem-key")
    monkeypatch.setattr(base_module, "_fetch_from_url", _fetch)

    models = GoogleSyncProvider().fetch_remote()

    assert models is not None
    assert [(model.model_name, model.input_price_per_1k, model.context_window) for model in models] == [
        ("gemini-1.5-pro", 0.00125, 2_097_152)
    ]
    assert "gem-key" not in seen["url"]
    assert seen["headers"]["x-goog-api-key"] == "gem-key"


def test_openrouter_converts_per_token_prices(monkeypatch: pytest.MonkeyPatch) -> None:
    """Per-token strings should become per-1K prices and variable-price routers be skipped."""
    monkeypatch.setattr(
        base_module,
        "_fetch_from_url",
        lambda url, headers, timeout: {
            "data": [
                {"id": "meta-llama/llama-3-70b", "pricing": {"prompt": "0.0000008", "completion": "0.0000009"}},
                {"id": "openrouter/auto", "pricing": {"prompt": "-1", "completion": "-1"}},
                {"id": "solo-model", "pricing": {"prompt": "0.000001"}, "context_length": 8192},
                {"id": "broken", "pricing": {"prompt": "n/a"}},
            ]
        },
    )

    models = OpenRouterSyncProvider().fetch_remote()

    assert models is not None
    assert [(model.provider, model.model_name) for model in models] == [
        ("meta", "llama-3-70b"),
        ("unknown", "solo-model"),
    ]
    assert models[0].input_price_per_1k == pytest.approx(0.0008)
    assert models[0].context_window == 4096
    assert models[1].output_price_per_1k == 0.0


def test_litellm_reads_price_spec_entries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Price-file entries with a numeric input cost should become models."""
    monkeypatch.setattr(
        price_spec_module,
        "_fetch_from_url",
        lambda url: {
            "sample_spec": {"input_cost_per_token": 0},
            "claude-3-opus-20240229": {"input_cost_per_token": 0.000015, "output_cost_per_token": 0.000075},
            "vertex_ai/gemini-1.5-pro": {"input_cost_per_token": 0.00000125, "max_tokens": 8192},
            "image-only": {"output_cost_per_image": 0.04},
        },
    )

    models = LiteLLMSyncProvider(PriceSpecConfig(cache_path=None)).fetch_remote()

    assert models is not None
    assert [model.identity_key for model in models] == ["anthropic/claude-3-opus-20240229", "google/gemini-1.5-pro"]
    assert models[0].input_price_per_1k == pytest.approx(0.015)
    assert models[1].context_window == 8192


def test_litellm_fetch_failure_raises_provider_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """A price-file failure without cache should surface as a provider fetch error."""

    def _failing(url: str) -> Any:
        raise HttpFetchError("boom")

    monkeypatch.setattr(price_spec_module, "_fetch_from_url", _failing)
    provider = LiteLLMSyncProvider(PriceSpecConfig(cache_path=None))

    with pytest.raises(ProviderFetchError):
        _ = provider.fetch_remote()
    assert provider.fetch_models() == []


def test_litellm_key_parsing() -> None:
    """Provider inference should use slashes, name prefixes, then the declared provider."""
    assert parse_model_key("mistralai/mixtral-8x7b", {}) == ("mistral", "mixtral-8x7b")
    assert parse_model_key("gpt-4o", {}) == ("openai", "gpt-4o")
    assert parse_model_key("j2-ultra", {"litellm_provider": "ai21"}) == ("ai21", "j2-ultra")
    assert parse_model_key("mystery", {}) == ("unknown", "mystery")
    assert spec_to_model("x", {"input_cost_per_token": True}) is None


def test_default_providers_cover_every_source() -> None:
    """The default provider set should include every supported source in rank order."""
    providers = default_providers()

    assert [provider.provider_name() for provider in providers] == [
        "anthropic",
        "openai",
        "google",
        "openrouter",
        "litellm",
    ]
    assert [provider.is_official_source() for provider in providers] == [True, True, True, False, False]


def _unexpected_fetch(url: str, headers: dict[str, str], timeout: float) -> Any:
    raise AssertionError(f"Unexpected fetch for {url}")
