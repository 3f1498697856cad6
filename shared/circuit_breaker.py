"""
Circuit breaker guarding publishes to the audit queue.

While the breaker is open, audit records skip the queue entirely and the
caller falls back to the store immediately instead of waiting on a broker
timeout for every decision.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Tuple, Type

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"  # one trial call allowed


class CircuitBreakerOpenException(Exception):
    """Raised instead of calling through while the breaker is open."""

    def __init__(self, name: str, retry_in: float):
        super().__init__(f"Circuit breaker '{name}' is open, retry in {retry_in:.1f}s")
        self.name = name
        self.retry_in = retry_in


class CircuitBreaker:
    """Counts consecutive failures of a dependency and fails fast past a threshold."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        name: str = "default",
        expected_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.expected_exceptions = expected_exceptions
        self.clock = clock
        self.logger = get_logger(f"permissions.breaker.{name}")

        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    def is_open(self) -> bool:
        return self._state == CircuitBreakerState.OPEN

    def _remaining_cooldown(self) -> float:
        return max(0.0, self.recovery_timeout - (self.clock() - self._opened_at))

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self._state == CircuitBreakerState.OPEN:
            remaining = self._remaining_cooldown()
            if remaining > 0:
                raise CircuitBreakerOpenException(self.name, remaining)
            self._state = CircuitBreakerState.HALF_OPEN
            self.logger.info("Trial call after cooldown", breaker=self.name)

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._on_failure()
            raise

        self._on_success()
        return result

    def _on_success(self):
        if self._state == CircuitBreakerState.HALF_OPEN:
            self.logger.info("Dependency recovered, closing breaker", breaker=self.name)
        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0

    def _on_failure(self):
        self._consecutive_failures += 1

        trial_failed = self._state == CircuitBreakerState.HALF_OPEN
        if trial_failed or self._consecutive_failures >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = self.clock()
            self.logger.warning(
                "Breaker opened",
                breaker=self.name,
                consecutive_failures=self._consecutive_failures,
                threshold=self.failure_threshold,
                trial_failed=trial_failed
            )

    def snapshot(self) -> Dict[str, Any]:
        """State for health reporting."""
        return {
            "name": self.name,
            "state": self._state.value,
            "consecutive_failures": self._consecutive_failures,
            "retry_in": self._remaining_cooldown() if self.is_open() else 0.0,
        }
