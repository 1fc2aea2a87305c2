"""Retry utilities for handling transient failures.

Provides a decorator for retrying async operations with exponential backoff
plus random jitter. Used around every remote call that may hit rate limiting.

Key Exports:
    async_retry: Decorator for adding retry logic to async functions.
    backoff_delay: The delay formula, exposed for testing.

Example:
    >>> from depsync.utils.retry import async_retry
    >>>
    >>> @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(TransientRemoteError,))
    ... async def list_pulls() -> list[dict]:
    ...     ...

Backoff Formula:
    delay = backoff_factor ** attempt_number + uniform(0, jitter)
    For backoff_factor=2.0: 2s, 4s, 8s, ... each plus up to ``jitter`` seconds.
"""

import asyncio
import functools
import random
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from depsync.exceptions import TransientRemoteError

log = structlog.get_logger(__name__)


def backoff_delay(attempt: int, backoff_factor: float, jitter: float) -> float:
    """Return the sleep before retrying after ``attempt`` failed attempts."""
    return backoff_factor**attempt + random.uniform(0, jitter)  # nosec B311 # jitter, not crypto


def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    jitter: float = 1.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator for async functions with exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts before giving up. Default
            is 3 (original attempt + 2 retries).
        backoff_factor: Base for exponential backoff calculation.
        jitter: Upper bound in seconds of the random delay added to each
            backoff, so concurrent callers do not retry in lockstep.
        exceptions: Tuple of exception types to catch and retry. Other
            exceptions propagate immediately.

    Returns:
        A decorator function that wraps async functions with retry logic.

    Raises:
        The last caught exception if all retry attempts are exhausted.

    Note:
        Each retry is logged at WARNING level and exhausted retries at ERROR
        level, so retry patterns are visible in the structured logs.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt == max_attempts:
                        log.error(
                            "retry_exhausted",
                            function=func.__name__,
                            attempts=attempt,
                            error=str(e),
                        )
                        raise

                    delay = backoff_delay(attempt, backoff_factor, jitter)
                    log.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay=round(delay, 3),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

            if last_exception:
                raise last_exception
            raise RuntimeError("Retry logic error")

        return wrapper

    return decorator


# Rate limiting, 5xx responses and connection failures.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (TransientRemoteError, httpx.TransportError)
