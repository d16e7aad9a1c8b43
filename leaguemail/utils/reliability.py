"""
Reliability patterns for LeagueMail.

Provides bounded exponential-backoff retries for directory-service calls and
performance tracking for async operations.
"""

import time
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from leaguemail.core.exceptions import DirectoryServiceError, RateLimited

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Only taxonomy errors flagged retryable are retried."""
    return isinstance(exc, DirectoryServiceError) and exc.retryable


class BackoffWait:
    """
    Exponential backoff that honours a server-supplied Retry-After.

    Waits ``initial_delay * 2 ** (attempt - 1)`` seconds, capped at ``max_delay``.
    """

    def __init__(self, initial_delay: float = 1.0, max_delay: float = 30.0):
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._exponential = wait_exponential(multiplier=initial_delay, max=max_delay)

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimited) and exc.retry_after is not None:
            return min(exc.retry_after, self.max_delay)
        if self.initial_delay <= 0:
            return 0.0
        return self._exponential(retry_state)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying operation",
        attempt=retry_state.attempt_number,
        error=str(exc),
        error_type=type(exc).__name__,
        next_wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
) -> T:
    """
    Await ``operation`` until it succeeds or fails with a non-retryable error.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts including the first
        initial_delay: Backoff before the second attempt, in seconds
        max_delay: Upper bound on any single backoff

    Returns:
        The operation's result

    Raises:
        DirectoryServiceError: The last error once attempts are exhausted
    """
    result: Any = None
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=BackoffWait(initial_delay, max_delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            result = await operation()
    return result


def track_performance(operation_name: str, log_level: Optional[str] = "debug"):
    """
    Decorator to track performance metrics for coroutine functions.

    Args:
        operation_name: Name of the operation for logging
        log_level: Level used for the success entry
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    "Performance tracking failed",
                    operation=operation_name,
                    duration_seconds=round(time.perf_counter() - start_time, 4),
                    status="failed",
                    error=str(e),
                )
                raise

            getattr(logger, log_level or "debug")(
                "Performance tracking completed",
                operation=operation_name,
                duration_seconds=round(time.perf_counter() - start_time, 4),
                status="success",
            )
            return result

        return wrapper

    return decorator
