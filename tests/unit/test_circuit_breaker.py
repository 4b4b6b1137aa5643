"""Tests for the circuit breaker."""
import pytest

from clinic_booking.circuit_breaker import CircuitBreaker, CircuitBreakerOpen


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def failing_call():
    raise ConnectionError("API failed")


def open_circuit(cb, failures=3):
    for _ in range(failures):
        with pytest.raises(ConnectionError):
            cb.call(failing_call)


class TestCircuitBreaker:
    """Test circuit breaker behavior."""

    def test_allows_requests_when_closed(self, clock):
        cb = CircuitBreaker(failure_threshold=3, timeout=1, clock=clock)

        assert cb.call(lambda: "success") == "success"
        assert cb.state == "closed"

    def test_opens_after_threshold_failures(self, clock):
        cb = CircuitBreaker(failure_threshold=3, timeout=1, clock=clock)
        attempts = []

        open_circuit(cb)
        assert cb.state == "open"

        with pytest.raises(CircuitBreakerOpen) as exc_info:
            cb.call(lambda: attempts.append(1))

        assert attempts == []
        assert exc_info.value.retry_after == pytest.approx(1.0)

    def test_half_open_failure_reopens(self, clock):
        cb = CircuitBreaker(failure_threshold=3, timeout=1, clock=clock)
        open_circuit(cb)

        clock.now += 1.1

        with pytest.raises(ConnectionError):
            cb.call(failing_call)
        assert cb.state == "open"

    def test_half_open_success_closes(self, clock):
        cb = CircuitBreaker(failure_threshold=3, timeout=1, clock=clock)
        open_circuit(cb)

        clock.now += 1.1

        assert cb.call(lambda: "ok") == "ok"
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_success_resets_failure_count(self, clock):
        cb = CircuitBreaker(failure_threshold=3, timeout=1, clock=clock)
        open_circuit(cb, failures=2)

        cb.call(lambda: None)
        open_circuit(cb, failures=2)

        assert cb.state == "closed"

    def test_ignored_exceptions_do_not_trip(self, clock):
        """Exceptions outside counts_as_failure pass through without counting."""
        cb = CircuitBreaker(
            failure_threshold=1,
            timeout=1,
            clock=clock,
            counts_as_failure=lambda exc: not isinstance(exc, KeyError),
        )

        def rejected():
            raise KeyError("not found")

        for _ in range(3):
            with pytest.raises(KeyError):
                cb.call(rejected)

        assert cb.state == "closed"

    def test_reset(self, clock):
        cb = CircuitBreaker(failure_threshold=1, timeout=60, clock=clock)
        open_circuit(cb, failures=1)

        cb.reset()

        assert cb.state == "closed"
        assert cb.call(lambda: 1) == 1

    def test_error_message_names_service(self, clock):
        cb = CircuitBreaker(name="doctor-directory", failure_threshold=1, timeout=60, clock=clock)
        open_circuit(cb, failures=1)

        with pytest.raises(CircuitBreakerOpen, match="doctor-directory"):
            cb.call(failing_call)
