"""Provider adapters, one per AI vendor."""

from pundits.agents.providers.anthropic import AnthropicAdapter
from pundits.agents.providers.base import (
    AgentResult,
    ProviderAdapter,
    ProviderError,
    ProviderName,
    ProviderResponse,
)
from pundits.agents.providers.google import GeminiAdapter
from pundits.agents.providers.openai import OpenAIResponsesAdapter
from pundits.agents.providers.registry import build_provider_registry, close_providers
from pundits.agents.providers.xai import XAIAdapter

__all__ = [
    "AgentResult",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OpenAIResponsesAdapter",
    "ProviderAdapter",
    "ProviderError",
    "ProviderName",
    "ProviderResponse",
    "XAIAdapter",
    "build_provider_registry",
    "close_providers",
]
