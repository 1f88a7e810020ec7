import pytest

from app_platform.config.breaker import BreakerConfig
from app_platform.utils.circuit_breaker import BreakerOpenError, BreakerState, CircuitBreaker
from tests.utils.fake_identity import FrozenClock


@pytest.fixture
def monotonic():
    return FrozenClock(epoch=100.0)


@pytest.fixture
def breaker(monotonic):
    return CircuitBreaker(failure_threshold=2, window_seconds=10, half_open_after_s=5, time_func=monotonic)


class TestCircuitBreaker:
    def test_trips_after_threshold(self, breaker):
        breaker.on_failure()
        assert breaker.state is BreakerState.CLOSED
        breaker.on_failure()

        assert breaker.state is BreakerState.OPEN
        assert breaker.allow_call() is False

    def test_failures_outside_window_are_forgotten(self, breaker, monotonic):
        breaker.on_failure()
        monotonic.advance(11)
        breaker.on_failure()

        assert breaker.state is BreakerState.CLOSED

    def test_half_open_admits_single_probe(self, breaker, monotonic):
        breaker.on_failure()
        breaker.on_failure()
        monotonic.advance(5)

        assert breaker.allow_call() is True
        assert breaker.state is BreakerState.HALF_OPEN
        assert breaker.allow_call() is False

    def test_successful_probe_closes(self, breaker, monotonic):
        breaker.on_failure()
        breaker.on_failure()
        monotonic.advance(5)
        breaker.allow_call()

        breaker.on_success()

        assert breaker.state is BreakerState.CLOSED
        assert breaker.snapshot()["failures"] == 0

    def test_failed_probe_reopens(self, breaker, monotonic):
        breaker.on_failure()
        breaker.on_failure()
        monotonic.advance(5)
        breaker.allow_call()

        breaker.on_failure()

        assert breaker.state is BreakerState.OPEN
        assert breaker.allow_call() is False

    def test_wrap_call_retries_then_succeeds(self, monotonic):
        breaker = CircuitBreaker(failure_threshold=5, time_func=monotonic, backoff_fn=lambda n: 0)
        outcomes = iter([RuntimeError("boom"), "ok"])

        def call():
            value = next(outcomes)
            if isinstance(value, Exception):
                raise value
            return value

        assert breaker.wrap_call(call, max_tries=2) == "ok"
        assert breaker.snapshot()["failures"] == 0

    def test_wrap_call_refuses_when_open(self, breaker):
        breaker.on_failure()
        breaker.on_failure()

        with pytest.raises(BreakerOpenError):
            breaker.wrap_call(lambda: "never")

    def test_from_config(self):
        breaker = CircuitBreaker.from_config(BreakerConfig(failure_threshold=7, window_seconds=60, half_open_after_seconds=20))

        snapshot = breaker.snapshot()
        assert snapshot["state"] == "CLOSED"
        assert snapshot["window_s"] == 60
        assert snapshot["half_open_after_s"] == 20
