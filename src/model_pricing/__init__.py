"""Shared model pricing: rate tables, cost calculation, and synced price storage."""

from .calculator import CostCalculator, SubscriptionCostCalculator, SubscriptionTier
from .price_spec import DEFAULT_PRICE_SPEC_URL, PriceSpecConfig, get_price_spec
from .schemas import CostRecord, CostSummary, ModelInfo, RateEntry, RateTable, TokenScale, summarize_costs

__all__ = [
    "DEFAULT_PRICE_SPEC_URL",
    "CostCalculator",
    "CostRecord",
    "CostSummary",
    "ModelInfo",
    "PriceSpecConfig",
    "RateEntry",
    "RateTable",
    "SubscriptionCostCalculator",
    "SubscriptionTier",
    "TokenScale",
    "get_price_spec",
    "summarize_costs",
]
