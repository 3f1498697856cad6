"""
Retry with backoff for store round-trips.

Used for the direct audit write and for opening the connection pool on
start-up. Only the listed exception types are retried; anything else
propagates on the first attempt.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and backoff shape."""
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_strategy: str = "exponential"  # exponential | linear | fixed

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""
        if self.backoff_strategy == "exponential":
            delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        elif self.backoff_strategy == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1 * delay, 0.1 * delay)
        return max(0.0, delay)


class RetryError(Exception):
    """Every attempt failed; ``last_exception`` is the final cause."""

    def __init__(self, operation: str, last_exception: BaseException, attempts: int):
        super().__init__(f"{operation} failed after {attempts} attempts: {last_exception}")
        self.operation = operation
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Decorate a coroutine function so listed failures are retried."""
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        operation = getattr(func, "__qualname__", None) or type(func).__name__
        logger = get_logger("permissions.retry")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 1
            while True:
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= config.max_attempts:
                        logger.error("Retries exhausted", operation=operation, attempts=attempt, error=str(e))
                        raise RetryError(operation, e, attempt) from e

                    delay = config.delay_for(attempt)
                    logger.warning("Attempt failed, backing off", operation=operation, attempt=attempt,
                                   delay=round(delay, 3), error=str(e))
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                if attempt > 1:
                    logger.info("Succeeded after retry", operation=operation, attempt=attempt)
                return result

        return wrapper

    return decorator
