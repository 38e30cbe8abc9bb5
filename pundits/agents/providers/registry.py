"""Build the provider -> adapter map at the composition root."""

import logging
from typing import Mapping, Optional

import httpx

from pundits.agents.providers.anthropic import AnthropicAdapter
from pundits.agents.providers.base import ProviderAdapter, ProviderName
from pundits.agents.providers.google import GeminiAdapter
from pundits.agents.providers.openai import OpenAIResponsesAdapter
from pundits.agents.providers.xai import XAIAdapter
from pundits.config import Settings

logger = logging.getLogger(__name__)

ProviderRegistry = Mapping[ProviderName, ProviderAdapter]


def build_provider_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[ProviderName, ProviderAdapter]:
    """
    One adapter per supported provider, credentials taken from settings.

    With LLM_GATEWAY_API_KEY set every adapter points at the gateway with
    its prefixed model id; otherwise each talks to its vendor directly.
    """
    # Leave headroom so the call policy deadline fires before httpx's own timeout
    http_timeout = settings.PREDICTION_TIMEOUT_SECONDS + 30

    if settings.gateway_enabled:
        key = settings.LLM_GATEWAY_API_KEY
        base = settings.LLM_GATEWAY_BASE_URL.rstrip("/")
        logger.info(f"[PROVIDERS] routing all providers through gateway {base}")
        registry = {
            ProviderName.ANTHROPIC: AnthropicAdapter(
                key,
                model=settings.LLM_GATEWAY_ANTHROPIC_MODEL,
                base_url=base,
                api_version=settings.ANTHROPIC_API_VERSION,
                max_tokens=settings.ANTHROPIC_MAX_TOKENS,
                thinking_budget=settings.ANTHROPIC_THINKING_BUDGET,
                max_searches=settings.ANTHROPIC_MAX_SEARCHES,
                timeout=http_timeout,
                transport=transport,
            ),
            ProviderName.OPENAI: OpenAIResponsesAdapter(
                key,
                model=settings.LLM_GATEWAY_OPENAI_MODEL,
                base_url=f"{base}/v1",
                reasoning_effort=settings.OPENAI_REASONING_EFFORT,
                timeout=http_timeout,
                transport=transport,
            ),
            ProviderName.XAI: XAIAdapter(
                key,
                model=settings.LLM_GATEWAY_XAI_MODEL,
                base_url=f"{base}/v1",
                reasoning_effort=settings.OPENAI_REASONING_EFFORT,
                timeout=http_timeout,
                transport=transport,
            ),
            ProviderName.GOOGLE: GeminiAdapter(
                key,
                model=settings.LLM_GATEWAY_GEMINI_MODEL,
                base_url=f"{base}/v1",
                via_gateway=True,
                gateway_max_tokens=settings.GEMINI_GATEWAY_MAX_TOKENS,
                timeout=http_timeout,
                transport=transport,
            ),
        }
    else:
        registry = {
            ProviderName.ANTHROPIC: AnthropicAdapter(
                settings.ANTHROPIC_API_KEY,
                model=settings.ANTHROPIC_MODEL,
                base_url=settings.ANTHROPIC_BASE_URL,
                api_version=settings.ANTHROPIC_API_VERSION,
                max_tokens=settings.ANTHROPIC_MAX_TOKENS,
                thinking_budget=settings.ANTHROPIC_THINKING_BUDGET,
                max_searches=settings.ANTHROPIC_MAX_SEARCHES,
                timeout=http_timeout,
                transport=transport,
            ),
            ProviderName.OPENAI: OpenAIResponsesAdapter(
                settings.OPENAI_API_KEY,
                model=settings.OPENAI_MODEL,
                base_url=settings.OPENAI_BASE_URL,
                reasoning_effort=settings.OPENAI_REASONING_EFFORT,
                timeout=http_timeout,
                transport=transport,
            ),
            ProviderName.XAI: XAIAdapter(
                settings.XAI_API_KEY,
                model=settings.XAI_MODEL,
                base_url=settings.XAI_BASE_URL,
                reasoning_effort=settings.OPENAI_REASONING_EFFORT,
                timeout=http_timeout,
                transport=transport,
            ),
            ProviderName.GOOGLE: GeminiAdapter(
                settings.GEMINI_API_KEY,
                model=settings.GEMINI_MODEL,
                base_url=settings.GEMINI_BASE_URL,
                thinking_budget=settings.GEMINI_THINKING_BUDGET,
                timeout=http_timeout,
                transport=transport,
            ),
        }

    missing = [name.value for name, adapter in registry.items() if not adapter.api_key]
    if missing:
        logger.warning(f"[PROVIDERS] no API key for: {', '.join(missing)}")
    return registry


async def close_providers(registry: ProviderRegistry) -> None:
    for adapter in registry.values():
        await adapter.close()
