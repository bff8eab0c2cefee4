"""
Retry utilities with exponential backoff.

Used by the queue worker and the HTTP knowledge store client.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar
from dataclasses import dataclass

from brainprep.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 60.0  # Maximum delay in seconds
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: Tuple[float, float] = (0.5, 1.5)
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_delay(
    attempt: int,
    config: RetryConfig
) -> float:
    """
    Calculate delay before next retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds before next attempt
    """
    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        delay *= random.uniform(*config.jitter_range)

    return delay


async def retry_async_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    **kwargs: Any
) -> T:
    """
    Await func(*args, **kwargs), retrying retryable exceptions with backoff.

    Makes config.max_retries + 1 attempts in total; the last exception is
    re-raised once they are used up. Other exceptions propagate at once.
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = config.max_retries + 1

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt + 1 >= attempts:
                logger.error(f"All {attempts} attempts failed. Last error: {e}")
                raise
            delay = calculate_delay(attempt, config)
            logger.warning(f"Attempt {attempt + 1}/{attempts} failed: {e}. Retrying in {delay:.2f}s...")
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop exited without a result")


# Store calls: a couple of quick retries before surfacing a StorageError
STORE_RETRY_CONFIG = RetryConfig(
    max_retries=2,
    base_delay=0.5,
    max_delay=5.0,
    exponential_base=2.0,
    jitter=True
)
