"""
Retry with exponential backoff, built on tenacity.

Only failures classified as retryable (network, upstream rate limit) are
retried. Anything else, or the last failure once attempts are exhausted,
propagates unchanged to the caller.
"""
import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from astroai.core.errors import classify_error
from astroai.core.logging import get_logger

logger = get_logger(__name__)


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, Exception) and classify_error(exc).retryable


def backoff_wait(base_delay: float = 1.0, jitter: float = 1.0) -> wait_base:
    """Delay before retry n (1-based): base * 2^(n-1) + U(0, jitter)."""
    wait = wait_exponential(multiplier=base_delay)
    if jitter > 0:
        wait = wait + wait_random(0, jitter)
    return wait


async def retry_with_backoff(
    operation: Callable[[], Any],
    max_retries: int = 3,
    base_delay: float = 1.0,
    jitter: float = 1.0,
    operation_name: Optional[str] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """
    Run `operation` and retry retryable failures.

    Args:
        operation: Zero-argument callable; may be sync or return an awaitable
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Base delay in seconds
        jitter: Upper bound of the random jitter added to each delay, in seconds
        operation_name: Label used in logs
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        Result of the first successful attempt

    Raises:
        The original exception from the failing attempt
    """
    name = operation_name or getattr(operation, "__name__", "operation")

    def log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        logger.info(
            "retry_scheduled",
            operation=name,
            attempt=retry_state.attempt_number,
            delay_seconds=round(retry_state.next_action.sleep, 3),
            error_kind=classify_error(exc).kind.value,
            error_type=type(exc).__name__,
        )

    retrying = AsyncRetrying(
        sleep=sleep,
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(max_retries + 1),
        wait=backoff_wait(base_delay, jitter),
        before_sleep=log_retry,
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
    except Exception as e:
        if is_retryable(e):
            logger.warning(
                "retry_exhausted",
                operation=name,
                attempts=retrying.statistics.get("attempt_number"),
                error_kind=classify_error(e).kind.value,
            )
        raise
    return result
