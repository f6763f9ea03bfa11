"""Model-name resolution and token cost calculation over static rate tables."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from .schemas import MatchKind, ModelInfo, RateEntry, RateTable, ResolvedRate

LOGGER = logging.getLogger(__name__)

FamilyNormalizer = Callable[[str], str | None]

# Queries shorter than this never take part in substring matching.
_MIN_SUBSTRING_QUERY_LENGTH = 2


class CostCalculator:
    """Resolve free-form model names against a rate table and price token usage.

    Resolution order:
        1. Strip an optional `provider/` prefix.
        2. Exact case-insensitive key match (synced overrides first, then the table).
        3. Bidirectional substring match: the longest table key contained in the
           name, else the shortest key containing the name.
        4. Family normalization of the name, then steps 2 and 3 again.
        5. The table's default for the stripped provider prefix, then its global default.
    """

    def __init__(
        self,
        table: RateTable,
        family_normalizer: FamilyNormalizer | None = None,
        overrides: Mapping[str, RateEntry] | None = None,
    ) -> None:
        self._table = table
        self._family_normalizer = family_normalizer
        self._entries = {key.lower(): entry for key, entry in table.entries.items()}
        self._overrides = {key.lower(): entry for key, entry in (overrides or {}).items()}

    @property
    def table(self) -> RateTable:
        """Return the underlying static rate table."""
        return self._table

    @property
    def scale(self) -> int:
        """Return the token unit of the table."""
        return int(self._table.scale)

    def with_overrides(self, models: Iterable[ModelInfo]) -> CostCalculator:
        """Return a calculator that prefers synced per-1K prices, converted to this table's unit."""
        factor = self.scale / 1000
        overrides = dict(self._overrides)
        for model in models:
            overrides[model.model_name.lower()] = RateEntry(
                input_rate=model.input_price_per_1k * factor,
                output_rate=model.output_price_per_1k * factor,
                context_window=model.context_window,
            )
        return CostCalculator(self._table, self._family_normalizer, overrides)

    def resolve(self, model_name: str | None) -> ResolvedRate:
        """Resolve a model name to a rate entry; never fails."""
        if not model_name or not model_name.strip():
            return self._default(None)

        lowered = model_name.strip().lower()
        provider_prefix, _, stripped = lowered.rpartition("/")
        query = stripped or lowered

        resolved = self._match(query, MatchKind.EXACT)
        if resolved is not None:
            return resolved

        family = self._family_normalizer(query) if self._family_normalizer is not None else None
        if family is not None and family != query:
            resolved = self._match(family.lower(), MatchKind.FAMILY)
            if resolved is not None:
                return resolved

        LOGGER.debug("No rate for model %r in table %s; using default.", model_name, self._table.name)
        return self._default(provider_prefix.split("/")[-1] if provider_prefix else None)

    def calculate(
        self,
        input_tokens: int,
        output_tokens: int,
        model_name: str | None,
        cache_read_tokens: int = 0,
        cache_write_tokens: int = 0,
    ) -> float:
        """Return USD cost: each token kind divided by the table unit times its rate."""
        rate = self.resolve(model_name).rate
        return price_tokens(
            rate,
            self.scale,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_read_tokens=cache_read_tokens,
            cache_write_tokens=cache_write_tokens,
        )

    def supported_models(self) -> list[str]:
        """Return `provider/model` names for every table entry."""
        return [f"{self._table.provider}/{model_key}" for model_key in self._table.entries]

    def model_info(self, model_name: str) -> ModelInfo | None:
        """Return per-1K pricing for a model that resolves without falling back to a default."""
        resolved = self.resolve(model_name)
        if resolved.is_fallback:
            return None
        factor = 1000 / self.scale
        return ModelInfo(
            provider=self._table.provider,
            model_name=resolved.model_key,
            input_price_per_1k=resolved.rate.input_rate * factor,
            output_price_per_1k=resolved.rate.output_rate * factor,
            context_window=resolved.rate.context_window or 200_000,
        )

    def _match(self, query: str, exact_kind: MatchKind) -> ResolvedRate | None:
        """Run the exact and substring steps for one query string."""
        if query in self._overrides:
            return ResolvedRate(query, self._overrides[query], MatchKind.OVERRIDE)
        if query in self._entries:
            return ResolvedRate(query, self._entries[query], exact_kind)
        if len(query) < _MIN_SUBSTRING_QUERY_LENGTH:
            return None

        contained = [key for key in self._entries if key in query]
        if contained:
            best = max(contained, key=len)
            return ResolvedRate(best, self._entries[best], MatchKind.SUBSTRING)
        containing = [key for key in self._entries if query in key]
        if containing:
            best = min(containing, key=len)
            return ResolvedRate(best, self._entries[best], MatchKind.SUBSTRING)
        return None

    def _default(self, provider_prefix: str | None) -> ResolvedRate:
        """Return the provider-specific default when known, else the table default."""
        if provider_prefix is not None:
            provider_default = self._table.provider_defaults.get(provider_prefix)
            if provider_default is not None:
                return ResolvedRate(
                    provider_default,
                    self._table.entries[provider_default],
                    MatchKind.PROVIDER_DEFAULT,
                )
        default_key = self._table.default_model
        return ResolvedRate(default_key, self._table.entries[default_key], MatchKind.DEFAULT)


def price_tokens(
    rate: RateEntry,
    scale: int,
    *,
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int = 0,
    cache_write_tokens: int = 0,
) -> float:
    """Apply one rate entry to token counts; kinds without a rate contribute zero."""
    cost = (max(input_tokens, 0) / scale) * rate.input_rate
    cost += (max(output_tokens, 0) / scale) * rate.output_rate
    if rate.cache_read_rate is not None:
        cost += (max(cache_read_tokens, 0) / scale) * rate.cache_read_rate
    if rate.cache_write_rate is not None:
        cost += (max(cache_write_tokens, 0) / scale) * rate.cache_write_rate
    return cost


@dataclass(frozen=True)
class SubscriptionTier:
    """A flat-fee plan.

    Attributes:
        name: Plan label.
        monthly_cost: Flat monthly fee in USD.
        requests_included: Requests covered by the fee; None means unlimited.
        bills_all_usage: When True every token is billed at API rates on top of the fee.
    """

    name: str
    monthly_cost: float
    requests_included: int | None = None
    bills_all_usage: bool = False


class SubscriptionCostCalculator:
    """Combine a flat subscription fee with pro-rated per-token overage charges."""

    def __init__(self, usage_calculator: CostCalculator, tier: SubscriptionTier) -> None:
        self._usage_calculator = usage_calculator
        self._tier = tier

    @property
    def tier(self) -> SubscriptionTier:
        """Return the active plan."""
        return self._tier

    @property
    def usage_calculator(self) -> CostCalculator:
        """Return the per-token calculator used for overage."""
        return self._usage_calculator

    def subscription_cost(self, month_fraction: float = 1.0) -> float:
        """Return the flat fee for a fraction of a month."""
        return self._tier.monthly_cost * month_fraction

    def daily_rate(self, days_in_month: int = 30) -> float:
        """Return the flat fee per day."""
        return self._tier.monthly_cost / days_in_month

    def prorated_cost(self, days_used: int, days_in_month: int) -> float:
        """Return the flat fee pro-rated over the days used."""
        return self.daily_rate(days_in_month) * days_used

    def overage_cost(
        self,
        input_tokens: int,
        output_tokens: int,
        model_name: str | None,
        requests: int,
        cache_read_tokens: int = 0,
        cache_write_tokens: int = 0,
    ) -> float:
        """Return the per-token charge on top of the flat fee.

        Above the included-request quota, the per-token cost of the period is
        charged in proportion to the share of requests past the quota.
        """
        usage_cost = self._usage_calculator.calculate(
            input_tokens,
            output_tokens,
            model_name,
            cache_read_tokens=cache_read_tokens,
            cache_write_tokens=cache_write_tokens,
        )
        return self.overage_for_usage_cost(usage_cost, requests)

    def overage_for_usage_cost(self, usage_cost: float, requests: int) -> float:
        """Return the billable share of an already-priced usage cost."""
        if self._tier.bills_all_usage:
            return usage_cost
        if self._tier.requests_included is None:
            return 0.0
        overage_requests = max(requests - self._tier.requests_included, 0)
        if overage_requests == 0:
            return 0.0
        return usage_cost * (overage_requests / max(requests, 1))

    def total_monthly_cost(
        self,
        input_tokens: int,
        output_tokens: int,
        model_name: str | None,
        requests: int,
        cache_read_tokens: int = 0,
        cache_write_tokens: int = 0,
    ) -> float:
        """Return flat fee plus overage for one month of usage."""
        return self.subscription_cost() + self.overage_cost(
            input_tokens,
            output_tokens,
            model_name,
            requests,
            cache_read_tokens=cache_read_tokens,
            cache_write_tokens=cache_write_tokens,
        )
