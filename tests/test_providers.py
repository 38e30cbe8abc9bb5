"""Tests for provider adapters against mocked HTTP transports."""

import json

import httpx
import pytest

from pundits.agents.parse import ParseError
from pundits.agents.providers import (
    AnthropicAdapter,
    GeminiAdapter,
    OpenAIResponsesAdapter,
    ProviderError,
    ProviderName,
    XAIAdapter,
    build_provider_registry,
)
from pundits.config import Settings

ANSWER = '{"winner": "India", "confidence": 0.74, "reasoning": "Deeper batting and a strong pace attack."}'


def transport_for(body: dict, status_code: int = 200, seen: list = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


class TestAnthropicAdapter:
    """Messages API with server-side web search."""

    @pytest.mark.asyncio
    async def test_successful_call(self):
        seen = []
        body = {
            "content": [
                {"type": "thinking", "thinking": "Let me research."},
                {"type": "server_tool_use", "name": "web_search", "input": {"query": "India vs USA T20 2026"}},
                {"type": "web_search_tool_result", "content": []},
                {"type": "text", "text": ANSWER[:30]},
                {"type": "text", "text": ANSWER[30:]},
            ],
            "usage": {"input_tokens": 2100, "output_tokens": 450},
        }
        adapter = AnthropicAdapter("sk-test", transport=transport_for(body, seen=seen))

        result = await adapter.call("system prompt", "user prompt", "India", "USA")
        await adapter.close()

        assert result.prediction.winner == "India"
        assert result.prediction.confidence == 0.74
        assert result.search_queries == ["India vs USA T20 2026"]
        assert result.raw_response == ANSWER
        assert result.tokens_used == 2550
        assert result.model == "claude-opus-4-6"

        request = seen[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "sk-test"
        payload = json.loads(request.content)
        assert payload["system"] == "system prompt"
        assert payload["thinking"] == {"type": "enabled", "budget_tokens": 5000}
        assert payload["tools"][0]["type"] == "web_search_20250305"
        assert payload["tools"][0]["max_uses"] == 5

    @pytest.mark.asyncio
    async def test_empty_text_is_provider_error(self):
        body = {"content": [{"type": "thinking", "thinking": "..."}], "usage": {}}
        adapter = AnthropicAdapter("sk-test", transport=transport_for(body))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.call("s", "u", "India", "USA")
        assert exc_info.value.error_code == "empty_response"

    @pytest.mark.asyncio
    async def test_server_error(self):
        adapter = AnthropicAdapter("sk-test", transport=transport_for({"error": "overloaded"}, 529))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.call("s", "u", "India", "USA")
        assert exc_info.value.status_code == 529
        assert exc_info.value.error_code == "http_5xx"

    @pytest.mark.asyncio
    async def test_unparseable_answer_is_parse_error(self):
        body = {"content": [{"type": "text", "text": "Too close to call."}], "usage": {}}
        adapter = AnthropicAdapter("sk-test", transport=transport_for(body))
        with pytest.raises(ParseError):
            await adapter.call("s", "u", "India", "USA")


class TestOpenAIResponsesAdapter:
    """Responses API, also used for xAI."""

    BODY = {
        "output": [
            {"type": "reasoning", "summary": []},
            {"type": "web_search_call", "action": {"type": "search", "query": "Nassau pitch report"}},
            {"type": "web_search_call", "query": "USA squad news"},
            {
                "type": "message",
                "content": [{"type": "output_text", "text": ANSWER}],
            },
        ],
        "usage": {"input_tokens": 900, "output_tokens": 120},
    }

    @pytest.mark.asyncio
    async def test_successful_call(self):
        seen = []
        adapter = OpenAIResponsesAdapter("sk-test", transport=transport_for(self.BODY, seen=seen))
        result = await adapter.call("sys", "usr", "India", "USA")

        assert result.prediction.winner == "India"
        assert result.search_queries == ["Nassau pitch report", "USA squad news"]
        assert result.tokens_in == 900
        assert result.tokens_out == 120

        request = seen[0]
        assert str(request.url) == "https://api.openai.com/v1/responses"
        assert request.headers["authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["instructions"] == "sys"
        assert payload["input"] == "usr"
        assert payload["reasoning"] == {"effort": "medium"}
        assert payload["tools"] == [{"type": "web_search_preview"}]

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        adapter = OpenAIResponsesAdapter("sk-test", transport=transport_for({}, 429))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.call("s", "u", "India", "USA")
        assert exc_info.value.error_code == "rate_limit"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = OpenAIResponsesAdapter("sk-test", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.call("s", "u", "India", "USA")
        assert exc_info.value.error_code == "transport"
        assert str(exc_info.value) == "openai transport error"
        assert "ConnectError" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_request(self):
        seen = []
        adapter = OpenAIResponsesAdapter("", transport=transport_for(self.BODY, seen=seen))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.call("s", "u", "India", "USA")
        assert exc_info.value.error_code == "not_configured"
        assert seen == []

    @pytest.mark.asyncio
    async def test_xai_uses_own_endpoint_and_tool(self):
        seen = []
        adapter = XAIAdapter("xai-test", transport=transport_for(self.BODY, seen=seen))
        result = await adapter.call("sys", "usr", "India", "USA")

        assert adapter.provider == ProviderName.XAI
        assert result.model == "grok-4"
        assert str(seen[0].url) == "https://api.x.ai/v1/responses"
        assert json.loads(seen[0].content)["tools"] == [{"type": "web_search"}]


class TestGeminiAdapter:
    """generateContent direct mode and gateway chat completions mode."""

    @pytest.mark.asyncio
    async def test_direct_call(self):
        seen = []
        body = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "thinking about it", "thought": True},
                            {"text": ANSWER},
                        ]
                    },
                    "finishReason": "STOP",
                    "groundingMetadata": {"webSearchQueries": ["india usa weather new york"]},
                }
            ],
            "usageMetadata": {"promptTokenCount": 700, "candidatesTokenCount": 90},
        }
        adapter = GeminiAdapter("g-test", transport=transport_for(body, seen=seen))
        result = await adapter.call("sys", "usr", "India", "USA")

        assert result.raw_response == ANSWER
        assert result.search_queries == ["india usa weather new york"]
        assert result.tokens_used == 790

        request = seen[0]
        assert request.url.path.endswith("/gemini-3.0-pro:generateContent")
        assert request.url.params["key"] == "g-test"
        payload = json.loads(request.content)
        assert payload["systemInstruction"] == {"parts": [{"text": "sys"}]}
        assert payload["tools"] == [{"googleSearch": {}}]
        assert payload["generationConfig"]["thinkingConfig"]["thinkingBudget"] == 5000

    @pytest.mark.asyncio
    async def test_gateway_call_extracts_queries_from_body(self):
        seen = []
        body = {
            "choices": [{"message": {"role": "assistant", "content": ANSWER}}],
            "vertex_metadata": {"groundingMetadata": {"webSearchQueries": ["q1", "q2"]}},
            "usage": {"prompt_tokens": 500, "completion_tokens": 80},
        }
        adapter = GeminiAdapter(
            "gw-test",
            model="google/gemini-3-pro-preview",
            base_url="https://api.getunbound.ai/v1",
            via_gateway=True,
            transport=transport_for(body, seen=seen),
        )
        result = await adapter.call("sys", "usr", "India", "USA")

        assert result.search_queries == ["q1", "q2"]
        assert result.tokens_used == 580
        assert str(seen[0].url) == "https://api.getunbound.ai/v1/chat/completions"
        payload = json.loads(seen[0].content)
        assert payload["max_tokens"] == 8000
        assert payload["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_no_candidates_is_empty_response(self):
        adapter = GeminiAdapter("g-test", transport=transport_for({"candidates": []}))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.call("s", "u", "India", "USA")
        assert exc_info.value.error_code == "empty_response"


class TestProviderRegistry:
    """Composition-root construction."""

    def test_direct_mode(self):
        settings = Settings(ANTHROPIC_API_KEY="a", OPENAI_API_KEY="o", GEMINI_API_KEY="g", XAI_API_KEY="x")
        registry = build_provider_registry(settings)

        assert set(registry) == set(ProviderName)
        assert registry[ProviderName.ANTHROPIC].api_key == "a"
        assert registry[ProviderName.XAI].base_url == "https://api.x.ai/v1"
        assert registry[ProviderName.GOOGLE].via_gateway is False

    def test_gateway_mode(self):
        settings = Settings(LLM_GATEWAY_API_KEY="gw", ANTHROPIC_API_KEY="ignored")
        registry = build_provider_registry(settings)

        assert all(adapter.api_key == "gw" for adapter in registry.values())
        assert registry[ProviderName.ANTHROPIC].base_url == "https://api.getunbound.ai"
        assert registry[ProviderName.ANTHROPIC].model == "anthropic/claude-opus-4-6"
        assert registry[ProviderName.OPENAI].base_url == "https://api.getunbound.ai/v1"
        assert registry[ProviderName.GOOGLE].via_gateway is True
        assert registry[ProviderName.GOOGLE].model == "google/gemini-3-pro-preview"
