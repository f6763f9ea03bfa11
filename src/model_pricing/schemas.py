"""Typed schemas for model rates and computed costs."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum, StrEnum


def model_identity_key(provider: str, model_name: str) -> str:
    """Return the case-insensitive identity key `provider/model`."""
    return f"{provider.strip().lower()}/{model_name.strip().lower()}"


@dataclass(frozen=True)
class ModelInfo:
    """Priced model entry with rates expressed per 1,000 tokens."""

    provider: str
    model_name: str
    input_price_per_1k: float
    output_price_per_1k: float
    context_window: int
    last_synced: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def identity_key(self) -> str:
        """Return the lowercase `provider/model` identity key."""
        return model_identity_key(self.provider, self.model_name)

    @property
    def full_name(self) -> str:
        """Return the display name `provider/model`."""
        return f"{self.provider}/{self.model_name}"

    @property
    def combined_price_per_1k(self) -> float:
        """Return input plus output price, used when comparing offers."""
        return self.input_price_per_1k + self.output_price_per_1k

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Return USD cost for the given token counts."""
        return (input_tokens / 1000) * self.input_price_per_1k + (output_tokens / 1000) * self.output_price_per_1k


class TokenScale(IntEnum):
    """Token unit a rate table is expressed in."""

    PER_THOUSAND = 1_000
    PER_MILLION = 1_000_000


@dataclass(frozen=True)
class RateEntry:
    """Rates for one model in the unit of its table; cache rates are optional."""

    input_rate: float
    output_rate: float
    cache_read_rate: float | None = None
    cache_write_rate: float | None = None
    context_window: int | None = None

    def scaled(self, factor: float) -> RateEntry:
        """Return a copy with every rate multiplied by `factor`."""
        return RateEntry(
            input_rate=self.input_rate * factor,
            output_rate=self.output_rate * factor,
            cache_read_rate=self.cache_read_rate * factor if self.cache_read_rate is not None else None,
            cache_write_rate=self.cache_write_rate * factor if self.cache_write_rate is not None else None,
            context_window=self.context_window,
        )


@dataclass(frozen=True)
class RateTable:
    """A tool's static rate table.

    Attributes:
        name: Table name used in logs.
        provider: Provider label reported for supported models.
        scale: Token unit shared by every entry.
        entries: Model key to rates, in priority order for fuzzy matching.
        default_model: Key used when a model name cannot be resolved.
        provider_defaults: Fallback key per `provider/` prefix, consulted before `default_model`.
    """

    name: str
    provider: str
    scale: TokenScale
    entries: dict[str, RateEntry]
    default_model: str
    provider_defaults: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_model not in self.entries:
            raise ValueError(f"Default model {self.default_model!r} missing from rate table {self.name!r}.")

    def to_model_infos(self) -> list[ModelInfo]:
        """Express the table as per-1K `ModelInfo` entries."""
        factor = 1000 / int(self.scale)
        return [
            ModelInfo(
                provider=self.provider,
                model_name=model_key,
                input_price_per_1k=entry.input_rate * factor,
                output_price_per_1k=entry.output_rate * factor,
                context_window=entry.context_window or 200_000,
            )
            for model_key, entry in self.entries.items()
        ]


class MatchKind(StrEnum):
    """How a free-form model name was matched to a rate entry."""

    OVERRIDE = "override"
    EXACT = "exact"
    SUBSTRING = "substring"
    FAMILY = "family"
    PROVIDER_DEFAULT = "provider_default"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedRate:
    """Outcome of resolving a model name against a rate table."""

    model_key: str
    rate: RateEntry
    match: MatchKind

    @property
    def is_fallback(self) -> bool:
        """Return True when the name was priced with a default entry."""
        return self.match in (MatchKind.PROVIDER_DEFAULT, MatchKind.DEFAULT)


@dataclass(frozen=True)
class CostRecord:
    """Computed cost for one session; never mutated after creation."""

    session_id: str
    agent_type: str
    model_name: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    recorded_at: datetime
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Return all tokens priced by this record."""
        return self.input_tokens + self.output_tokens + self.cache_read_tokens + self.cache_write_tokens


@dataclass
class CostSummary:
    """Accumulates cost records."""

    total_cost_usd: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    request_count: int = 0
    cost_by_model: dict[str, float] = field(default_factory=lambda: defaultdict(float))
    period_start: datetime | None = None
    period_end: datetime | None = None

    @property
    def average_cost_per_request(self) -> float:
        """Return mean cost per record, or 0.0 when empty."""
        if self.request_count == 0:
            return 0.0
        return self.total_cost_usd / self.request_count

    def add(self, record: CostRecord) -> None:
        """Mutate this summary by adding one record in-place."""
        self.total_cost_usd += record.cost_usd
        self.total_input_tokens += record.input_tokens
        self.total_output_tokens += record.output_tokens
        self.request_count += 1
        self.cost_by_model[record.model_name] += record.cost_usd
        if self.period_start is None or record.recorded_at < self.period_start:
            self.period_start = record.recorded_at
        if self.period_end is None or record.recorded_at > self.period_end:
            self.period_end = record.recorded_at


def summarize_costs(records: list[CostRecord]) -> CostSummary:
    """Build a summary over cost records."""
    summary = CostSummary()
    for record in records:
        summary.add(record)
    return summary
