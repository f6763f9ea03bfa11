"""Static rate tables and model-family normalizers for each supported tool."""

from __future__ import annotations

from .calculator import CostCalculator, SubscriptionCostCalculator, SubscriptionTier
from .schemas import RateEntry, RateTable, TokenScale

CLAUDE_CODE_RATES = RateTable(
    name="claude_code",
    provider="anthropic",
    scale=TokenScale.PER_MILLION,
    entries={
        "claude-opus-4-5": RateEntry(15.0, 75.0, 1.50, 18.75, 200_000),
        "claude-opus-4-1": RateEntry(15.0, 75.0, 1.50, 18.75, 200_000),
        "claude-opus-4": RateEntry(15.0, 75.0, 1.50, 18.75, 200_000),
        "claude-sonnet-4-5": RateEntry(3.0, 15.0, 0.30, 3.75, 200_000),
        "claude-sonnet-4": RateEntry(3.0, 15.0, 0.30, 3.75, 200_000),
        "claude-3-7-sonnet": RateEntry(3.0, 15.0, 0.30, 3.75, 200_000),
        "claude-3-5-sonnet": RateEntry(3.0, 15.0, 0.30, 3.75, 200_000),
        "claude-3-opus": RateEntry(15.0, 75.0, 1.50, 18.75, 200_000),
        "claude-3-sonnet": RateEntry(3.0, 15.0, 0.30, 3.75, 200_000),
        "claude-haiku-4-5": RateEntry(1.0, 5.0, 0.10, 1.25, 200_000),
        "claude-3-5-haiku": RateEntry(1.0, 5.0, 0.10, 1.25, 200_000),
        "claude-3-haiku": RateEntry(0.25, 1.25, 0.03, 0.30, 200_000),
    },
    default_model="claude-sonnet-4",
)

CODEX_RATES = RateTable(
    name="codex",
    provider="openai",
    scale=TokenScale.PER_THOUSAND,
    entries={
        "o3": RateEntry(0.010, 0.040, 0.0025, None, 200_000),
        "o3-mini": RateEntry(0.0011, 0.0044, 0.00055, None, 200_000),
        "o4-mini": RateEntry(0.0011, 0.0044, 0.000275, None, 200_000),
        "gpt-4.1": RateEntry(0.002, 0.008, 0.0005, None, 1_047_576),
        "gpt-4.1-mini": RateEntry(0.0004, 0.0016, 0.0001, None, 1_047_576),
        "gpt-4.1-nano": RateEntry(0.0001, 0.0004, 0.000025, None, 1_047_576),
        "gpt-4o": RateEntry(0.0025, 0.010, 0.00125, None, 128_000),
        "gpt-4o-mini": RateEntry(0.00015, 0.0006, 0.000075, None, 128_000),
        "gpt-4-turbo": RateEntry(0.01, 0.03, None, None, 128_000),
        "gpt-4": RateEntry(0.03, 0.06, None, None, 8_192),
        "gpt-3.5-turbo": RateEntry(0.0005, 0.0015, None, None, 16_385),
        "o1": RateEntry(0.015, 0.060, 0.0075, None, 200_000),
        "o1-mini": RateEntry(0.003, 0.012, 0.0015, None, 128_000),
        "o1-preview": RateEntry(0.015, 0.060, 0.0075, None, 128_000),
    },
    default_model="o4-mini",
)

GOOSE_RATES = RateTable(
    name="goose",
    provider="goose",
    scale=TokenScale.PER_THOUSAND,
    entries={
        # anthropic
        "claude-3-5-sonnet": RateEntry(0.003, 0.015, None, None, 200_000),
        "claude-3-opus": RateEntry(0.015, 0.075, None, None, 200_000),
        "claude-3-sonnet": RateEntry(0.003, 0.015, None, None, 200_000),
        "claude-3-5-haiku": RateEntry(0.0008, 0.004, None, None, 200_000),
        "claude-3-haiku": RateEntry(0.00025, 0.00125, None, None, 200_000),
        # openai
        "gpt-4o": RateEntry(0.0025, 0.010, None, None, 128_000),
        "gpt-4o-mini": RateEntry(0.00015, 0.0006, None, None, 128_000),
        "gpt-4-turbo": RateEntry(0.01, 0.03, None, None, 128_000),
        "gpt-4": RateEntry(0.03, 0.06, None, None, 8_192),
        "gpt-3.5-turbo": RateEntry(0.0005, 0.0015, None, None, 16_385),
        "o1": RateEntry(0.015, 0.060, None, None, 200_000),
        "o1-mini": RateEntry(0.003, 0.012, None, None, 128_000),
        "o3": RateEntry(0.010, 0.040, None, None, 200_000),
        "o3-mini": RateEntry(0.0011, 0.0044, None, None, 200_000),
        "o4-mini": RateEntry(0.0011, 0.0044, None, None, 200_000),
        # google
        "gemini-2.0-flash": RateEntry(0.0001, 0.0004, None, None, 1_048_576),
        "gemini-1.5-pro": RateEntry(0.00125, 0.005, None, None, 2_097_152),
        "gemini-1.5-flash": RateEntry(0.000075, 0.0003, None, None, 1_048_576),
        # mistral
        "mistral-large": RateEntry(0.002, 0.006, None, None, 128_000),
        "mistral-small": RateEntry(0.0002, 0.0006, None, None, 32_000),
        "codestral": RateEntry(0.0002, 0.0006, None, None, 256_000),
        # groq
        "llama-3.3-70b": RateEntry(0.00059, 0.00079, None, None, 128_000),
        "llama-3.1-8b": RateEntry(0.00005, 0.00008, None, None, 128_000),
        "mixtral-8x7b": RateEntry(0.00024, 0.00024, None, None, 32_768),
        # ollama runs locally
        "local": RateEntry(0.0, 0.0, None, None, 8_192),
        "llama3": RateEntry(0.0, 0.0, None, None, 8_192),
        "codellama": RateEntry(0.0, 0.0, None, None, 16_384),
        # deepseek
        "deepseek-chat": RateEntry(0.00014, 0.00028, None, None, 64_000),
        "deepseek-coder": RateEntry(0.00014, 0.00028, None, None, 64_000),
    },
    default_model="claude-3-5-sonnet",
    provider_defaults={
        "anthropic": "claude-3-5-sonnet",
        "openai": "gpt-4o",
        "google": "gemini-1.5-pro",
        "mistral": "mistral-large",
        "groq": "llama-3.3-70b",
        "ollama": "local",
        "deepseek": "deepseek-chat",
    },
)

OPENCODE_RATES = RateTable(
    name="opencode",
    provider="opencode",
    scale=TokenScale.PER_MILLION,
    entries={
        "claude-opus": RateEntry(15.0, 75.0, 1.50, 18.75, 200_000),
        "claude-sonnet": RateEntry(3.0, 15.0, 0.30, 3.75, 200_000),
        "claude-haiku": RateEntry(0.25, 1.25, 0.03, 0.30, 200_000),
        "gpt-5": RateEntry(1.25, 10.0, 0.125, None, 400_000),
        "gpt-4o": RateEntry(2.5, 10.0, 1.25, None, 128_000),
        "gpt-4": RateEntry(30.0, 60.0, None, None, 8_192),
        "gemini": RateEntry(1.25, 5.0, None, None, 1_048_576),
        "deepseek": RateEntry(0.27, 1.1, None, None, 64_000),
    },
    default_model="claude-sonnet",
)

CURSOR_RATES = RateTable(
    name="cursor",
    provider="cursor",
    scale=TokenScale.PER_THOUSAND,
    entries={
        "gpt-4o": RateEntry(0.0025, 0.010, None, None, 128_000),
        "gpt-4o-mini": RateEntry(0.00015, 0.0006, None, None, 128_000),
        "gpt-4-turbo": RateEntry(0.01, 0.03, None, None, 128_000),
        "gpt-4": RateEntry(0.03, 0.06, None, None, 8_192),
        "gpt-3.5-turbo": RateEntry(0.0005, 0.0015, None, None, 16_385),
        "o1": RateEntry(0.015, 0.060, None, None, 200_000),
        "o1-mini": RateEntry(0.003, 0.012, None, None, 128_000),
        "o3": RateEntry(0.010, 0.040, None, None, 200_000),
        "o3-mini": RateEntry(0.0011, 0.0044, None, None, 200_000),
        "claude-3-5-sonnet": RateEntry(0.003, 0.015, None, None, 200_000),
        "claude-3-opus": RateEntry(0.015, 0.075, None, None, 200_000),
        "claude-3-sonnet": RateEntry(0.003, 0.015, None, None, 200_000),
        "claude-3-haiku": RateEntry(0.00025, 0.00125, None, None, 200_000),
        "gemini-2.0-flash": RateEntry(0.0001, 0.0004, None, None, 1_000_000),
        "gemini-1.5-pro": RateEntry(0.00125, 0.005, None, None, 2_000_000),
        "cursor-small": RateEntry(0.0001, 0.0003, None, None, 32_000),
        "cursor-fast": RateEntry(0.00005, 0.0002, None, None, 16_000),
    },
    default_model="gpt-4o",
)

COPILOT_RATES = RateTable(
    name="copilot",
    provider="github",
    scale=TokenScale.PER_THOUSAND,
    entries={
        "copilot-gpt-4": RateEntry(0.0, 0.0, None, None, 8_192),
        "copilot-gpt-3.5-turbo": RateEntry(0.0, 0.0, None, None, 4_096),
        "copilot-claude-3.5-sonnet": RateEntry(0.0, 0.0, None, None, 200_000),
        "copilot-gemini-1.5-pro": RateEntry(0.0, 0.0, None, None, 1_000_000),
    },
    default_model="copilot-gpt-4",
)

CURSOR_TIERS: dict[str, SubscriptionTier] = {
    "free": SubscriptionTier("free", 0.0, requests_included=2000, bills_all_usage=True),
    "pro": SubscriptionTier("pro", 20.0, requests_included=500),
    "business": SubscriptionTier("business", 40.0, requests_included=500),
}

CURSOR_PREMIUM_MODELS: tuple[str, ...] = (
    "gpt-4o",
    "gpt-4",
    "gpt-4-turbo",
    "o1",
    "o1-mini",
    "o3",
    "o3-mini",
    "claude-3-5-sonnet",
    "claude-3-opus",
    "claude-3-sonnet",
    "gemini-1.5-pro",
)

COPILOT_PRODUCTS: dict[str, SubscriptionTier] = {
    "individual": SubscriptionTier("individual", 10.0),
    "business": SubscriptionTier("business", 19.0),
    "enterprise": SubscriptionTier("enterprise", 39.0),
}


def claude_family(name: str) -> str | None:
    """Collapse dated or dotted Claude model names into a family bucket."""
    normalized = name.replace(".", "-")
    if "opus" in normalized:
        if "4-5" in normalized:
            return "claude-opus-4-5"
        if "4-1" in normalized:
            return "claude-opus-4-1"
        if "claude-3" in normalized or "3-opus" in normalized:
            return "claude-3-opus"
        return "claude-opus-4"
    if "sonnet" in normalized:
        if "4-5" in normalized:
            return "claude-sonnet-4-5"
        if "3-7" in normalized:
            return "claude-3-7-sonnet"
        if "3-5" in normalized:
            return "claude-3-5-sonnet"
        if "claude-3" in normalized or "3-sonnet" in normalized:
            return "claude-3-sonnet"
        return "claude-sonnet-4"
    if "haiku" in normalized:
        if "4-5" in normalized:
            return "claude-haiku-4-5"
        if "3-5" in normalized:
            return "claude-3-5-haiku"
        return "claude-3-haiku"
    return None


def openai_family(name: str) -> str | None:
    """Map OpenAI aliases onto table keys."""
    if name.startswith("codex"):
        return "o4-mini"
    if name.startswith("chatgpt-4o"):
        return "gpt-4o"
    return None


def goose_family(name: str) -> str | None:
    """Map names from any Goose provider onto the multi-provider table."""
    if "claude" in name or "opus" in name or "sonnet" in name or "haiku" in name:
        if "opus" in name:
            return "claude-3-opus"
        if "haiku" in name:
            return "claude-3-5-haiku" if "3-5" in name or "3.5" in name else "claude-3-haiku"
        return "claude-3-5-sonnet"
    if "gemini" in name:
        return "gemini-2.0-flash" if "flash" in name else "gemini-1.5-pro"
    if "mistral" in name:
        return "mistral-small" if "small" in name else "mistral-large"
    if "deepseek" in name:
        return "deepseek-coder" if "coder" in name else "deepseek-chat"
    return openai_family(name)


def opencode_family(name: str) -> str | None:
    """Bucket OpenCode model names by vendor family."""
    if "claude" in name or "anthropic" in name:
        if "opus" in name:
            return "claude-opus"
        if "haiku" in name:
            return "claude-haiku"
        return "claude-sonnet"
    if "gemini" in name:
        return "gemini"
    if "deepseek" in name:
        return "deepseek"
    return None


def copilot_family(name: str) -> str | None:
    """Map Copilot and plain OpenAI names onto the Copilot model list."""
    if "claude" in name:
        return "copilot-claude-3.5-sonnet"
    if "gemini" in name:
        return "copilot-gemini-1.5-pro"
    if "gpt-4" in name:
        return "copilot-gpt-4"
    if "3.5" in name or "3-5" in name:
        return "copilot-gpt-3.5-turbo"
    return None


def claude_code_calculator() -> CostCalculator:
    """Return the per-1M Claude Code calculator with cache rates."""
    return CostCalculator(CLAUDE_CODE_RATES, claude_family)


def codex_calculator() -> CostCalculator:
    """Return the per-1K Codex calculator."""
    return CostCalculator(CODEX_RATES, openai_family)


def goose_calculator() -> CostCalculator:
    """Return the per-1K multi-provider Goose calculator."""
    return CostCalculator(GOOSE_RATES, goose_family)


def opencode_calculator() -> CostCalculator:
    """Return the per-1M OpenCode calculator."""
    return CostCalculator(OPENCODE_RATES, opencode_family)


def cursor_calculator(tier: str = "free") -> SubscriptionCostCalculator:
    """Return the Cursor subscription calculator for a plan name."""
    return SubscriptionCostCalculator(CostCalculator(CURSOR_RATES, openai_family), CURSOR_TIERS[tier])


def copilot_calculator(product: str = "individual") -> SubscriptionCostCalculator:
    """Return the Copilot subscription calculator for a product name."""
    return SubscriptionCostCalculator(CostCalculator(COPILOT_RATES, copilot_family), COPILOT_PRODUCTS[product])


def is_cursor_premium_model(model_name: str) -> bool:
    """Return True when the model consumes Cursor premium requests."""
    normalized = model_name.lower().rpartition("/")[2]
    return any(premium in normalized for premium in CURSOR_PREMIUM_MODELS)
