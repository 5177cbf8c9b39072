"""Circuit breaker for the AI provider."""

import time
from enum import Enum
from typing import Any, Callable

import structlog

logger = structlog.get_logger()


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject immediately
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreakerOpen(Exception):
    """Raised when circuit breaker is in open state."""

    pass


class CircuitBreaker:
    """Async circuit breaker for external service calls.

    Only exceptions listed in ``trip_on`` count as failures. Any other error
    (bad credentials, quota) still means the service answered, so it counts
    as a success and closes a half-open circuit. A cancelled trial call gives
    its half-open slot back.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 1,
        trip_on: tuple[type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls
        self.trip_on = trip_on

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0
        self._half_open_calls = 0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN:
            # Check if recovery timeout has elapsed
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0
                logger.info("circuit_breaker.half_open", name=self.name)
        return self._state

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.CLOSED
            logger.info("circuit_breaker.closed", name=self.name)
        self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "circuit_breaker.open",
                name=self.name,
                failures=self._failure_count,
            )

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """Execute function through the circuit breaker."""
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitBreakerOpen(f"Circuit breaker '{self.name}' is open")

        if state == CircuitState.HALF_OPEN:
            self._half_open_calls += 1
            if self._half_open_calls > self.half_open_max_calls:
                raise CircuitBreakerOpen(
                    f"Circuit breaker '{self.name}' half-open limit reached"
                )

        try:
            result = await func(*args, **kwargs)
        except self.trip_on:
            self.record_failure()
            raise
        except Exception:
            # The service answered; the request itself was refused.
            self.record_success()
            raise
        except BaseException:
            if state == CircuitState.HALF_OPEN:
                self._half_open_calls -= 1
            raise
        self.record_success()
        return result
