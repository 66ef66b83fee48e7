"""
Retry helpers for flaky remote calls (LLM requests).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError as TenacityRetryError,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOptions:
    """Bounded exponential backoff policy. Delays are in seconds."""

    max_retries: int
    delay: float
    backoff_multiplier: float = 1.5
    max_delay: float = 30.0


class RetryError(Exception):
    """Raised when an operation still fails after all attempts."""

    def __init__(self, message: str, attempts: int, last_error: Exception):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Execute an async operation, retrying with exponential backoff.

    The n-th wait is delay * backoff_multiplier ** (n - 1), capped at max_delay.

    Args:
        operation: Zero-argument coroutine factory
        options: Retry policy
        sleep: Awaitable sleep function (defaults to asyncio.sleep)

    Returns:
        The operation's result

    Raises:
        RetryError: After max_retries failed attempts
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_retries),
        wait=wait_exponential(
            multiplier=options.delay,
            exp_base=options.backoff_multiplier,
            max=options.max_delay,
        ),
        sleep=sleep or asyncio.sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=False,
    )
    try:
        return await retrying(operation)
    except TenacityRetryError as e:
        last_error = e.last_attempt.exception()
        attempts = e.last_attempt.attempt_number
        logger.error(f"Operation failed after {attempts} attempts: {last_error}")
        raise RetryError(
            f"Operation failed after {attempts} attempts: {last_error}",
            attempts=attempts,
            last_error=last_error,
        ) from last_error
