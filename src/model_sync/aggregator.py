"""Merge priced model lists from several sources into one canonical table."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from model_pricing import ModelInfo

from .schemas import ConflictResolution

LOGGER = logging.getLogger(__name__)

# Per-1K prices above this are logged as suspicious but still accepted.
SANITY_PRICE_CEILING_PER_1K = 1000.0

_PROVIDER_ALIASES: dict[str, str] = {
    "claude": "anthropic",
    "gpt": "openai",
    "gemini": "google",
    "vertex": "google",
    "vertex_ai": "google",
    "llama": "meta",
    "meta-llama": "meta",
    "mistralai": "mistral",
}


def normalize_provider_name(provider: str) -> str:
    """Map provider aliases onto canonical lowercase provider names."""
    lowered = provider.strip().lower()
    return _PROVIDER_ALIASES.get(lowered, lowered)


def normalize_model_name(model_name: str) -> str:
    """Lowercase a model name and replace spaces and underscores with dashes."""
    return model_name.strip().lower().replace(" ", "-").replace("_", "-")


def validate_pricing(model: ModelInfo) -> bool:
    """Return False for negative prices or a non-positive context window."""
    if model.input_price_per_1k < 0:
        LOGGER.warning("Invalid negative input price for %s: %s", model.full_name, model.input_price_per_1k)
        return False
    if model.output_price_per_1k < 0:
        LOGGER.warning("Invalid negative output price for %s: %s", model.full_name, model.output_price_per_1k)
        return False
    if model.context_window <= 0:
        LOGGER.warning("Invalid context window for %s: %s", model.full_name, model.context_window)
        return False
    if model.input_price_per_1k > SANITY_PRICE_CEILING_PER_1K or model.output_price_per_1k > SANITY_PRICE_CEILING_PER_1K:
        LOGGER.warning(
            "Suspiciously high pricing for %s: input=%s, output=%s",
            model.full_name,
            model.input_price_per_1k,
            model.output_price_per_1k,
        )
    return True


class ModelAggregator:
    """Apply a conflict policy to models keyed by `provider/model` identity.

    Ties under any policy go to the source with the numerically lower priority;
    when priorities tie as well, the entry seen first is kept.
    """

    def __init__(self, conflict_resolution: ConflictResolution = ConflictResolution.OFFICIAL_FIRST) -> None:
        self._conflict_resolution = conflict_resolution

    @property
    def conflict_resolution(self) -> ConflictResolution:
        return self._conflict_resolution

    def should_replace(
        self,
        existing: ModelInfo,
        existing_priority: int,
        candidate: ModelInfo,
        candidate_priority: int,
    ) -> bool:
        """Return True when the candidate offer beats the existing one."""
        policy = self._conflict_resolution
        if policy is ConflictResolution.OFFICIAL_FIRST:
            return candidate_priority < existing_priority
        if policy is ConflictResolution.MOST_RECENT:
            existing_score, candidate_score = existing.last_synced, candidate.last_synced
            if candidate_score != existing_score:
                return candidate_score > existing_score
        elif policy is ConflictResolution.LOWEST_PRICE:
            existing_price, candidate_price = existing.combined_price_per_1k, candidate.combined_price_per_1k
            if candidate_price != existing_price:
                return candidate_price < existing_price
        elif policy is ConflictResolution.HIGHEST_CONTEXT_WINDOW:
            if candidate.context_window != existing.context_window:
                return candidate.context_window > existing.context_window
        return candidate_priority < existing_priority

    def merge(self, sources: Iterable[tuple[int, Iterable[ModelInfo]]]) -> list[ModelInfo]:
        """Merge `(source_priority, models)` groups into one list ordered by identity key."""
        merged: dict[str, tuple[ModelInfo, int]] = {}
        for source_priority, models in sources:
            for model in models:
                key = model.identity_key
                current = merged.get(key)
                if current is None:
                    merged[key] = (model, source_priority)
                    continue
                existing, existing_priority = current
                if self.should_replace(existing, existing_priority, model, source_priority):
                    LOGGER.debug("Replacing %s from priority %d with priority %d.", key, existing_priority, source_priority)
                    merged[key] = (model, source_priority)
        return [merged[key][0] for key in sorted(merged)]

    def deduplicate(self, models: Iterable[ModelInfo]) -> list[ModelInfo]:
        """Keep the most recently synced entry per identity key."""
        latest: dict[str, ModelInfo] = {}
        for model in models:
            existing = latest.get(model.identity_key)
            if existing is None or model.last_synced > existing.last_synced:
                latest[model.identity_key] = model
        return [latest[key] for key in sorted(latest)]

    def filter_valid_models(self, models: Sequence[ModelInfo]) -> list[ModelInfo]:
        """Drop models failing `validate_pricing`."""
        valid = [model for model in models if validate_pricing(model)]
        if len(valid) != len(models):
            LOGGER.info("Filtered %d invalid model price(s).", len(models) - len(valid))
        return valid
