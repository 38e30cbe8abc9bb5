"""
Provider adapter contract.

An adapter sends one system/user prompt pair to its provider with web
search enabled, joins the textual output, collects the search queries the
provider reports, and hands the text to the response parser. The
orchestrator only sees ProviderAdapter and AgentResult.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx

from pundits.agents.parse import ParsedPrediction, parse_prediction_response
from pundits.config import estimate_cost_usd
from pundits.telemetry import record_llm_request

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT_SECONDS = 120.0


class ProviderName(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    XAI = "xai"


class ProviderError(Exception):
    """Transport failure, non-2xx status, empty output or exceeded deadline."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
        error_code: str = "provider_error",
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.error_code = error_code


@dataclass
class ProviderResponse:
    """Raw provider output before parsing."""

    text: str
    search_queries: list[str] = field(default_factory=list)
    tokens_in: int = 0
    tokens_out: int = 0


@dataclass
class AgentResult:
    """Successful adapter call: parsed prediction plus telemetry."""

    prediction: ParsedPrediction
    search_queries: list[str]
    raw_response: str
    tokens_in: int
    tokens_out: int
    latency_ms: int
    model: str
    cost_usd: float = 0.0

    @property
    def tokens_used(self) -> int:
        return self.tokens_in + self.tokens_out


def classify_status(status_code: int) -> str:
    if status_code == 429:
        return "rate_limit"
    if 400 <= status_code < 500:
        return "http_4xx"
    return "http_5xx"


class ProviderAdapter(ABC):
    """Base class for one provider. Subclasses implement _request()."""

    provider: ProviderName

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return self.provider.value

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post_json(self, url: str, payload: dict, headers: Optional[dict] = None) -> dict:
        """POST and decode JSON; every failure becomes a ProviderError."""
        client = await self._get_client()
        start = time.time()
        try:
            response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            elapsed_ms = int((time.time() - start) * 1000)
            logger.error(f"[{self.name.upper()}] timeout after {elapsed_ms}ms")
            record_llm_request(self.name, "timeout", elapsed_ms)
            raise ProviderError(
                f"{self.name} request timed out", provider=self.name, error_code="timeout"
            ) from e
        except httpx.HTTPError as e:
            elapsed_ms = int((time.time() - start) * 1000)
            logger.error(f"[{self.name.upper()}] transport error: {type(e).__name__}: {e}")
            record_llm_request(self.name, "transport", elapsed_ms)
            raise ProviderError(
                f"{self.name} transport error",
                provider=self.name,
                error_code="transport",
            ) from e

        elapsed_ms = int((time.time() - start) * 1000)
        if response.status_code < 200 or response.status_code >= 300:
            error_text = response.text[:500]
            status = classify_status(response.status_code)
            logger.error(f"[{self.name.upper()}] API error {response.status_code}: {error_text}")
            record_llm_request(self.name, status, elapsed_ms)
            raise ProviderError(
                f"HTTP {response.status_code}: {error_text}",
                provider=self.name,
                status_code=response.status_code,
                error_code=status,
            )

        try:
            return response.json()
        except ValueError as e:
            record_llm_request(self.name, "transport", elapsed_ms)
            raise ProviderError(
                f"{self.name} returned non-JSON body", provider=self.name, error_code="transport"
            ) from e

    @abstractmethod
    async def _request(self, system: str, user: str) -> ProviderResponse:
        """Send the prompt pair and return the joined text plus telemetry."""

    async def call(self, system: str, user: str, team_a: str, team_b: str) -> AgentResult:
        """
        Run one web-search-augmented generation and parse the answer.

        Raises:
            ProviderError: not configured, transport failure, non-2xx or empty text.
            ParseError: text did not contain a valid prediction.
        """
        if not self.api_key:
            raise ProviderError(
                f"{self.name} API key not configured",
                provider=self.name,
                error_code="not_configured",
            )

        start = time.time()
        response = await self._request(system, user)
        latency_ms = int((time.time() - start) * 1000)

        if not response.text or not response.text.strip():
            record_llm_request(self.name, "empty_response", latency_ms)
            raise ProviderError(
                f"No text response from {self.model}",
                provider=self.name,
                error_code="empty_response",
            )

        cost_usd = estimate_cost_usd(self.model, response.tokens_in, response.tokens_out)
        record_llm_request(
            self.name,
            "ok",
            latency_ms,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            cost_usd=cost_usd,
            search_queries=len(response.search_queries),
        )
        logger.info(
            f"[{self.name.upper()}] {self.model} ok in {latency_ms}ms "
            f"(tokens_in={response.tokens_in}, tokens_out={response.tokens_out}, "
            f"searches={len(response.search_queries)})"
        )

        prediction = parse_prediction_response(response.text, team_a, team_b)

        return AgentResult(
            prediction=prediction,
            search_queries=response.search_queries,
            raw_response=response.text,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            latency_ms=latency_ms,
            model=self.model,
            cost_usd=cost_usd,
        )
