"""Retry policy for the model backend using tenacity."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from wavecore.errors import ProviderError
from wavecore.integrations.utilities.logger import get_logger

logger = get_logger(__name__)

# Three retries after the first attempt, waiting 1s, 2s then 4s.
MAX_ATTEMPTS = 4
BASE_DELAY_SECONDS = 1.0

Sleeper = Callable[[float], Awaitable[Any]]


def is_rate_limited(exc: BaseException) -> bool:
    """Only HTTP 429 is worth retrying."""
    return isinstance(exc, ProviderError) and exc.status_code == 429


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    delay = state.next_action.sleep if state.next_action else 0.0
    logger.warning(
        "rate_limited_retrying",
        attempt=state.attempt_number,
        delay_ms=int(delay * 1000),
        error=str(exc) if exc else None,
    )


def rate_limit_retrying(
    sleep: Sleeper,
    *,
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY_SECONDS,
) -> AsyncRetrying:
    """Build an AsyncRetrying for 429 responses.

    Args:
        sleep: Awaitable sleep used between attempts. Passing a
            cancellation-aware sleep lets an abort interrupt the backoff.
        max_attempts: Total attempts including the first.
        base_delay: Delay before the first retry; doubles after each.

    The last error is re-raised once attempts are exhausted.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        retry=retry_if_exception(is_rate_limited),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
