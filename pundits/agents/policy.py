"""
Deadline and retry policy for a single agent call.

Each attempt runs under asyncio.wait_for, so when the deadline passes the
in-flight provider request is cancelled (its HTTP connection is released)
rather than left running in the background.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from pundits.agents.parse import ParseError
from pundits.agents.providers.base import ProviderError
from pundits.config import Settings
from pundits.telemetry import record_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (ProviderError, ParseError)


@dataclass(frozen=True)
class CallPolicy:
    timeout_seconds: float = 60.0
    retry_delay_seconds: float = 5.0
    max_attempts: int = 2

    @classmethod
    def from_settings(cls, settings: Settings) -> "CallPolicy":
        return cls(
            timeout_seconds=settings.PREDICTION_TIMEOUT_SECONDS,
            retry_delay_seconds=settings.PREDICTION_RETRY_DELAY_SECONDS,
            max_attempts=max(1, settings.PREDICTION_MAX_ATTEMPTS),
        )


def classify_error(error: BaseException) -> str:
    """Short machine-safe error code for results, logs and metrics."""
    if isinstance(error, ProviderError):
        return "timeout" if error.error_code == "timeout" else "provider_error"
    if isinstance(error, ParseError):
        return "parse_error"
    return "unknown"


async def run_with_policy(
    agent_id: str,
    call_factory: Callable[[], Awaitable[T]],
    policy: CallPolicy,
    provider: str = "",
) -> T:
    """
    Await call_factory() under the policy deadline, retrying once after a delay.

    call_factory must build a fresh awaitable on every invocation.

    Raises:
        ProviderError: deadline exceeded (error_code="timeout") or provider failure
            on the last attempt.
        ParseError: unparseable answer on the last attempt.
    Any other exception propagates immediately without retry.
    """
    last_error: Exception = ProviderError("no attempts made", provider=provider)

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await asyncio.wait_for(call_factory(), timeout=policy.timeout_seconds)
        except asyncio.TimeoutError:
            last_error = ProviderError(
                f"deadline of {policy.timeout_seconds:g}s exceeded",
                provider=provider,
                error_code="timeout",
            )
        except RETRYABLE_ERRORS as e:
            last_error = e

        if attempt < policy.max_attempts:
            error_code = classify_error(last_error)
            logger.warning(
                f"[POLICY] {agent_id} attempt {attempt}/{policy.max_attempts} failed "
                f"({error_code}: {str(last_error)[:200]}). "
                f"Retrying in {policy.retry_delay_seconds:g}s..."
            )
            record_retry(provider or "unknown", error_code)
            await asyncio.sleep(policy.retry_delay_seconds)

    logger.error(
        f"[POLICY] {agent_id} failed after {policy.max_attempts} attempts: "
        f"{classify_error(last_error)}: {str(last_error)[:200]}"
    )
    raise last_error
