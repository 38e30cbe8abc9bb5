"""
Telemetry Module

Provides Prometheus metrics for:
- Provider calls (requests, latency, tokens, estimated cost)
- Orchestration outcomes and retries
- Settlement

Design: provider label on every provider-facing metric, low cardinality.
"""

from pundits.telemetry.metrics import (
    record_llm_request,
    record_prediction_outcome,
    record_retry,
    record_settlement,
)

__all__ = [
    "record_llm_request",
    "record_prediction_outcome",
    "record_retry",
    "record_settlement",
]
