"""
Prometheus metrics for provider calls, orchestration and settlement.

Design principles:
- Low cardinality: labels are bounded enumerations (provider, status,
  error_code, outcome). Match ids, agent ids, team names and raw error
  messages are never labels; use logs for those.
- Best-effort: record_* helpers never raise into the main flow.
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# PROVIDER (LLM) METRICS
# =============================================================================

llm_requests_total = Counter(
    "pundits_llm_requests_total",
    "Total LLM requests by provider and status",
    ["provider", "status"],  # status: ok, http_4xx, http_5xx, rate_limit, timeout, transport, empty_response
)

llm_latency_ms = Histogram(
    "pundits_llm_latency_ms",
    "LLM request latency in milliseconds by provider",
    ["provider"],
    buckets=[500, 1000, 2000, 5000, 10000, 20000, 30000, 45000, 60000, 120000],
)

llm_tokens_total = Counter(
    "pundits_llm_tokens_total",
    "Total LLM tokens by provider and direction",
    ["provider", "direction"],  # direction: input/output
)

llm_cost_usd = Counter(
    "pundits_llm_cost_usd",
    "Estimated LLM cost in USD by provider. Formula: (in_tokens * in_rate + out_tokens * out_rate) / 1M",
    ["provider"],
)

llm_search_queries_total = Counter(
    "pundits_llm_search_queries_total",
    "Web search queries reported by providers",
    ["provider"],
)

# =============================================================================
# ORCHESTRATION METRICS
# =============================================================================

prediction_outcomes_total = Counter(
    "pundits_prediction_outcomes_total",
    "Per-agent orchestration outcomes",
    ["provider", "status", "error_code"],  # status: success/error
)

prediction_retries_total = Counter(
    "pundits_prediction_retries_total",
    "Retries issued by the call policy",
    ["provider", "error_code"],
)

# =============================================================================
# SETTLEMENT METRICS
# =============================================================================

settlement_predictions_total = Counter(
    "pundits_settlement_predictions_total",
    "Predictions written by the settlement engine",
    ["outcome"],  # correct, incorrect, void
)


def record_llm_request(
    provider: str,
    status: str,
    latency_ms: float,
    tokens_in: int = 0,
    tokens_out: int = 0,
    cost_usd: float = 0.0,
    search_queries: int = 0,
) -> None:
    """Record one provider HTTP round trip with its usage."""
    try:
        llm_requests_total.labels(provider=provider, status=status).inc()
        llm_latency_ms.labels(provider=provider).observe(latency_ms)
        if tokens_in:
            llm_tokens_total.labels(provider=provider, direction="input").inc(tokens_in)
        if tokens_out:
            llm_tokens_total.labels(provider=provider, direction="output").inc(tokens_out)
        if cost_usd > 0:
            llm_cost_usd.labels(provider=provider).inc(cost_usd)
        if search_queries:
            llm_search_queries_total.labels(provider=provider).inc(search_queries)
    except Exception as e:
        logger.warning(f"Failed to record LLM request metric: {e}")


def record_prediction_outcome(provider: str, status: str, error_code: str = "") -> None:
    try:
        prediction_outcomes_total.labels(
            provider=provider,
            status=status,
            error_code=error_code or "none",
        ).inc()
    except Exception as e:
        logger.warning(f"Failed to record prediction outcome metric: {e}")


def record_retry(provider: str, error_code: str) -> None:
    try:
        prediction_retries_total.labels(provider=provider, error_code=error_code).inc()
    except Exception as e:
        logger.warning(f"Failed to record retry metric: {e}")


def record_settlement(outcome: str, count: int = 1) -> None:
    """Record settled predictions (outcome: correct, incorrect, void)."""
    try:
        if count:
            settlement_predictions_total.labels(outcome=outcome).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record settlement metric: {e}")
