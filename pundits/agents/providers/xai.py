"""xAI Grok adapter: OpenAI-compatible Responses API with xAI's web_search tool."""

from typing import Optional

import httpx

from pundits.agents.providers.base import DEFAULT_HTTP_TIMEOUT_SECONDS, ProviderName
from pundits.agents.providers.openai import OpenAIResponsesAdapter


class XAIAdapter(OpenAIResponsesAdapter):
    provider = ProviderName.XAI
    search_tool = "web_search"

    def __init__(
        self,
        api_key: str,
        model: str = "grok-4",
        base_url: str = "https://api.x.ai/v1",
        reasoning_effort: str = "medium",
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            api_key,
            model=model,
            base_url=base_url,
            reasoning_effort=reasoning_effort,
            timeout=timeout,
            transport=transport,
        )
