"""
Retry helpers for transient network failures.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


class RetryConfig:
    """How many times to try and how long to wait in between."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter


class RetryError(Exception):
    """Raised when every attempt failed; wraps the last failure."""

    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


async def call_with_retry(func: Callable[..., Awaitable[Any]],
                          *args,
                          exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                          config: Optional[RetryConfig] = None,
                          **kwargs) -> Any:
    """Await ``func(*args, **kwargs)``, retrying on ``exceptions``.

    Exceptions outside ``exceptions`` propagate immediately. When the last
    attempt fails a ``RetryError`` carrying that failure is raised.
    """
    config = config or RetryConfig()
    name = getattr(func, "__qualname__", repr(func))
    logger = get_logger(f"retry.{name}")

    for attempt in range(1, config.max_attempts + 1):
        try:
            result = await func(*args, **kwargs)
        except exceptions as e:
            if attempt == config.max_attempts:
                if config.max_attempts > 1:
                    logger.warning("All retry attempts exhausted", attempts=attempt, error=str(e))
                raise RetryError(
                    f"{name} failed after {attempt} attempt(s)",
                    last_exception=e,
                    attempts=attempt
                ) from e

            delay = _calculate_delay(attempt, config)
            logger.info("Attempt failed, retrying", attempt=attempt, delay=round(delay, 3), error=str(e))
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info("Retry succeeded", attempt=attempt)
        return result

    raise AssertionError("unreachable")


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Exponential backoff capped at ``max_delay``, with 10% jitter."""
    delay = min(config.base_delay * (config.exponential_base ** (attempt - 1)), config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
