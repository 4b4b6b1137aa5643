"""Circuit breaker for the appointment store and doctor directory.

Purpose: Stop hammering a collaborator that keeps failing; callers get an
immediate CircuitBreakerOpen instead of waiting out another 15 s timeout.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Service failing, requests fail immediately
- HALF_OPEN: Reset timeout elapsed, one trial request is allowed
"""
import time
from enum import Enum
from typing import Any, Callable, Optional

from clinic_booking.logging_config import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when circuit breaker is open (fail fast)."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(
            f"Circuit breaker '{name}' is OPEN. Retry after {retry_after:.1f}s"
        )
        self.name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Circuit breaker for one external service."""

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        timeout: int = 60,
        clock: Callable[[], float] = time.monotonic,
        counts_as_failure: Optional[Callable[[Exception], bool]] = None,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Service name used in logs and errors
            failure_threshold: Consecutive failures before opening the circuit
            timeout: Seconds to wait before allowing a half-open trial
            clock: Monotonic time source
            counts_as_failure: Decides whether an exception trips the breaker;
                               by default every exception does
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.clock = clock
        self.counts_as_failure = counts_as_failure or (lambda exc: True)
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self._state = CircuitState.CLOSED

    @property
    def state(self) -> str:
        """Get current state as string."""
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute function with circuit breaker protection.

        Raises:
            CircuitBreakerOpen: If circuit is open (fail fast)
            Exception: Whatever func raises
        """
        if self._state == CircuitState.OPEN:
            if self._time_until_retry() > 0:
                raise CircuitBreakerOpen(self.name, self._time_until_retry())
            self._state = CircuitState.HALF_OPEN
            logger.info("circuit_half_open", service=self.name)

        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            if self.counts_as_failure(exc):
                self._on_failure()
            else:
                self._on_success()
            raise

        self._on_success()
        return result

    def reset(self) -> None:
        """Force the circuit closed."""
        self.failure_count = 0
        self.last_failure_time = None
        self._state = CircuitState.CLOSED

    def _time_until_retry(self) -> float:
        if self.last_failure_time is None:
            return 0.0
        elapsed = self.clock() - self.last_failure_time
        return max(0.0, self.timeout - elapsed)

    def _on_success(self):
        self.failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.CLOSED
            logger.info("circuit_closed", service=self.name)

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = self.clock()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning("circuit_reopened", service=self.name)
        elif self.failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "circuit_opened",
                service=self.name,
                failures=self.failure_count,
                timeout=self.timeout,
            )
