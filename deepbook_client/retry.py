"""
DeepBook Client - Retry Policy.

Bounded exponential backoff for NetworkTransient failures.

SAFETY:
- Only NetworkTransient is retried here. It is raised only for
  requests known not to have reached the chain.
- ChainTimeout is never retried: the outcome is unknown.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, TypeVar

from .config import RetryConfig
from .errors import NetworkTransient


logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delays(retry_config: RetryConfig) -> Iterator[float]:
    """Yield the delay before each retry, max_retries values in total."""
    delay = retry_config.initial_delay_seconds
    for _ in range(retry_config.max_retries):
        yield delay
        delay = min(
            delay * retry_config.backoff_multiplier,
            retry_config.max_delay_seconds,
        )


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    retry_config: RetryConfig,
    description: str,
) -> T:
    """
    Run operation, retrying NetworkTransient with backoff.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        retry_config: Retry bounds
        description: Used in log messages

    Raises:
        NetworkTransient: When retries are exhausted
    """
    delays = backoff_delays(retry_config)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except NetworkTransient as e:
            delay = next(delays, None)
            if delay is None:
                logger.error(
                    f"{description} failed after {attempt} attempts: {e}"
                )
                raise
            logger.warning(
                f"{description} network error "
                f"(attempt {attempt}/{retry_config.max_retries + 1}): "
                f"{e}. Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
