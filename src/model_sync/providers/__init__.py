"""Model price sources."""

from .anthropic import AnthropicSyncProvider
from .base import HealthRequest, SyncProvider
from .google import GoogleSyncProvider
from .litellm import LiteLLMSyncProvider
from .openai import OpenAISyncProvider
from .openrouter import OpenRouterSyncProvider

__all__ = [
    "AnthropicSyncProvider",
    "GoogleSyncProvider",
    "HealthRequest",
    "LiteLLMSyncProvider",
    "OpenAISyncProvider",
    "OpenRouterSyncProvider",
    "SyncProvider",
    "default_providers",
]


def default_providers() -> list[SyncProvider]:
    """Return one instance of every built-in source, configured from the environment."""
    return [
        AnthropicSyncProvider(),
        OpenAISyncProvider(),
        GoogleSyncProvider(),
        OpenRouterSyncProvider(),
        LiteLLMSyncProvider(),
    ]
