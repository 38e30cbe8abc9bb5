"""
Google Gemini adapter.

Direct mode calls generateContent with Google Search grounding. Gateway mode
goes through an OpenAI-compatible chat completions endpoint, where grounding
metadata only survives somewhere inside the JSON body, so search queries are
regex-extracted from it.
"""

import json
import logging
import re
from typing import Optional

import httpx

from pundits.agents.providers.base import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    ProviderAdapter,
    ProviderName,
    ProviderResponse,
)

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
_SEARCH_QUERIES_RE = re.compile(r"\"webSearchQueries\"\s*:\s*(\[[^\]]*\])")


class GeminiAdapter(ProviderAdapter):
    provider = ProviderName.GOOGLE

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3.0-pro",
        base_url: str = GEMINI_BASE_URL,
        thinking_budget: int = 5000,
        via_gateway: bool = False,
        gateway_max_tokens: int = 8000,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, base_url, timeout=timeout, transport=transport)
        self.thinking_budget = thinking_budget
        self.via_gateway = via_gateway
        self.gateway_max_tokens = gateway_max_tokens

    async def _request(self, system: str, user: str) -> ProviderResponse:
        if self.via_gateway:
            return await self._request_gateway(system, user)
        return await self._request_direct(system, user)

    # -------------------------------------------------------------------------
    # Direct (generateContent)
    # -------------------------------------------------------------------------

    def build_payload(self, system: str, user: str) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": user}]}],
            "systemInstruction": {"parts": [{"text": system}]},
            "tools": [{"googleSearch": {}}],
            "generationConfig": {
                "thinkingConfig": {"thinkingBudget": self.thinking_budget},
            },
        }

    async def _request_direct(self, system: str, user: str) -> ProviderResponse:
        url = f"{self.base_url}/{self.model}:generateContent?key={self.api_key}"
        data = await self._post_json(url, self.build_payload(system, user))
        return self.parse_body(data)

    @staticmethod
    def parse_body(data: dict) -> ProviderResponse:
        """Join non-thought text parts of the first candidate."""
        candidates = data.get("candidates") or []
        text = ""
        queries = []
        if candidates:
            candidate = candidates[0]
            finish_reason = candidate.get("finishReason")
            if finish_reason and finish_reason != "STOP":
                logger.warning(f"[GOOGLE] finishReason={finish_reason}")

            parts = (candidate.get("content") or {}).get("parts") or []
            text = "".join(
                part.get("text") or "" for part in parts if not part.get("thought")
            )
            grounding = candidate.get("groundingMetadata") or {}
            queries = [q for q in grounding.get("webSearchQueries") or [] if isinstance(q, str)]

        usage = data.get("usageMetadata") or {}
        return ProviderResponse(
            text=text,
            search_queries=queries,
            tokens_in=usage.get("promptTokenCount") or 0,
            tokens_out=usage.get("candidatesTokenCount") or 0,
        )

    # -------------------------------------------------------------------------
    # Gateway (OpenAI-compatible chat completions)
    # -------------------------------------------------------------------------

    def build_gateway_payload(self, system: str, user: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": self.gateway_max_tokens,
            "tools": [{"googleSearch": {}}],
        }

    async def _request_gateway(self, system: str, user: str) -> ProviderResponse:
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            self.build_gateway_payload(system, user),
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return self.parse_gateway_body(data)

    @staticmethod
    def parse_gateway_body(data: dict) -> ProviderResponse:
        choices = data.get("choices") or []
        text = ""
        if choices:
            text = ((choices[0].get("message") or {}).get("content")) or ""

        queries = []
        match = _SEARCH_QUERIES_RE.search(json.dumps(data))
        if match:
            try:
                found = json.loads(match.group(1))
            except json.JSONDecodeError:
                found = []
            queries = [q for q in found if isinstance(q, str)]

        usage = data.get("usage") or {}
        return ProviderResponse(
            text=text,
            search_queries=queries,
            tokens_in=usage.get("prompt_tokens") or 0,
            tokens_out=usage.get("completion_tokens") or 0,
        )
