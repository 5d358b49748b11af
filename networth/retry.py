"""
Retry Policy

Exponential backoff around an async operation, built on tenacity.

Delay before retry n is initial_delay * backoff_multiplier ** (n - 1),
capped at max_delay, all in seconds. No jitter, so delays are
deterministic. After max_retries + 1 attempts the last error is re-raised
unchanged.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from networth.services.prices.errors import (
    HttpError,
    NetworkError,
    PriceFetchError,
    PriceProviderError,
    RateLimitedError,
)


T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY = 10.0


def is_transient_error(error: BaseException) -> bool:
    """
    Whether an error is worth retrying.

    Rate limits, network failures and 5xx responses are transient.
    Unknown symbols, missing data, unpriceable holdings and 4xx are not.
    """
    if isinstance(error, (RateLimitedError, NetworkError)):
        return True
    if isinstance(error, HttpError):
        return error.status_code is not None and error.status_code >= 500
    if isinstance(error, (PriceProviderError, PriceFetchError)):
        return False
    return isinstance(error, (httpx.TransportError, TimeoutError))


def _retry_everything(error: BaseException) -> bool:
    return True


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    max_delay: float = DEFAULT_MAX_DELAY,
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[RetryCallback] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation`, retrying failures with exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_retries: Retries after the first attempt
        initial_delay: Seconds before the first retry
        backoff_multiplier: Growth factor between delays
        max_delay: Upper bound for any single delay
        is_retryable: Predicate on the raised error. None retries everything.
        on_retry: Called as on_retry(attempt, error, delay) before each wait
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The operation's result

    Raises:
        The last error once retries are exhausted or the error isn't retryable
    """

    def before_sleep(retry_state: RetryCallState) -> None:
        if on_retry is None:
            return
        on_retry(
            retry_state.attempt_number,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(
            multiplier=initial_delay,
            exp_base=backoff_multiplier,
            min=0,
            max=max_delay,
        ),
        retry=retry_if_exception(is_retryable or _retry_everything),
        before_sleep=before_sleep,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
