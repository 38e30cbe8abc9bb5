"""Anthropic Messages API adapter (extended thinking + server-side web search)."""

import logging
from typing import Optional

import httpx

from pundits.agents.providers.base import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    ProviderAdapter,
    ProviderName,
    ProviderResponse,
)

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = "web_search_20250305"


class AnthropicAdapter(ProviderAdapter):
    provider = ProviderName.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str = "claude-opus-4-6",
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        max_tokens: int = 16000,
        thinking_budget: int = 5000,
        max_searches: int = 5,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, base_url, timeout=timeout, transport=transport)
        self.api_version = api_version
        self.max_tokens = max_tokens
        self.thinking_budget = thinking_budget
        self.max_searches = max_searches

    def build_payload(self, system: str, user: str) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "thinking": {"type": "enabled", "budget_tokens": self.thinking_budget},
            "tools": [
                {"type": WEB_SEARCH_TOOL, "name": "web_search", "max_uses": self.max_searches}
            ],
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }

    async def _request(self, system: str, user: str) -> ProviderResponse:
        data = await self._post_json(
            f"{self.base_url}/v1/messages",
            self.build_payload(system, user),
            headers={"x-api-key": self.api_key, "anthropic-version": self.api_version},
        )
        return self.parse_body(data)

    @staticmethod
    def parse_body(data: dict) -> ProviderResponse:
        """Text from text blocks, queries from server_tool_use web_search blocks."""
        text_parts = []
        queries = []
        for block in data.get("content") or []:
            block_type = block.get("type")
            if block_type == "text":
                text_parts.append(block.get("text") or "")
            elif block_type == "server_tool_use" and block.get("name") == "web_search":
                query = (block.get("input") or {}).get("query")
                if isinstance(query, str) and query:
                    queries.append(query)

        usage = data.get("usage") or {}
        return ProviderResponse(
            text="".join(text_parts),
            search_queries=queries,
            tokens_in=usage.get("input_tokens") or 0,
            tokens_out=usage.get("output_tokens") or 0,
        )
