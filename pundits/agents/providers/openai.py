"""OpenAI Responses API adapter with the web_search_preview tool."""

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


class OpenAIResponsesAdapter(ProviderAdapter):
    """Also the base for OpenAI-compatible Responses endpoints (xAI, gateway)."""

    provider = ProviderName.OPENAI
    search_tool = "web_search_preview"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-5.2",
        base_url: str = "https://api.openai.com/v1",
        reasoning_effort: str = "medium",
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, base_url, timeout=timeout, transport=transport)
        self.reasoning_effort = reasoning_effort

    def build_payload(self, system: str, user: str) -> dict:
        return {
            "model": self.model,
            "instructions": system,
            "input": user,
            "reasoning": {"effort": self.reasoning_effort},
            "tools": [{"type": self.search_tool}],
        }

    async def _request(self, system: str, user: str) -> ProviderResponse:
        data = await self._post_json(
            f"{self.base_url}/responses",
            self.build_payload(system, user),
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return self.parse_body(data)

    @staticmethod
    def parse_body(data: dict) -> ProviderResponse:
        """Text from message/output_text parts, queries from web_search_call items."""
        text_parts = []
        queries = []
        for item in data.get("output") or []:
            item_type = item.get("type")
            if item_type == "web_search_call":
                query = item.get("query") or (item.get("action") or {}).get("query")
                if isinstance(query, str) and query:
                    queries.append(query)
            elif item_type == "message":
                for part in item.get("content") or []:
                    if part.get("type") == "output_text":
                        text_parts.append(part.get("text") or "")

        usage = data.get("usage") or {}
        return ProviderResponse(
            text="".join(text_parts),
            search_queries=queries,
            tokens_in=usage.get("input_tokens") or 0,
            tokens_out=usage.get("output_tokens") or 0,
        )
