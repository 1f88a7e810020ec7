from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

from app_platform.config.breaker import BreakerConfig


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class BreakerOpenError(RuntimeError):
    """Raised by ``wrap_call`` when the breaker refuses admission."""


class CircuitBreaker:
    """Circuit breaker guarding calls to a remote dependency.

    States: CLOSED -> OPEN -> HALF_OPEN -> CLOSED
    - failure_threshold: failures within window_seconds that trip the breaker
    - half_open_after_s: time before a single probe call is admitted
    - time_func: monotonic clock, injectable for tests
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        window_seconds: float = 30,
        half_open_after_s: float = 15,
        backoff_fn: Optional[Callable[[int], float]] = None,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._state = BreakerState.CLOSED
        self._failures: list[float] = []
        self._opened_at: float = 0.0
        self._probe_inflight = False
        self._threshold = max(1, int(failure_threshold))
        self._window_s = float(window_seconds)
        self._half_open_after = float(half_open_after_s)
        self._backoff = backoff_fn or (lambda n: min(1.0, 0.05 * (2 ** max(0, n - 1))))
        self._now = time_func

    @classmethod
    def from_config(cls, config: BreakerConfig, **kwargs: Any) -> "CircuitBreaker":
        return cls(
            failure_threshold=config.failure_threshold,
            window_seconds=config.window_seconds,
            half_open_after_s=config.half_open_after_seconds,
            **kwargs,
        )

    @property
    def state(self) -> BreakerState:
        with self._lock:
            return self._state

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_s
        self._failures = [ts for ts in self._failures if ts >= cutoff]

    def allow_call(self) -> bool:
        now = self._now()
        with self._lock:
            if self._state is BreakerState.OPEN:
                if (now - self._opened_at) >= self._half_open_after and not self._probe_inflight:
                    self._state = BreakerState.HALF_OPEN
                    self._probe_inflight = True
                    return True
                return False
            if self._state is BreakerState.HALF_OPEN:
                # only the single probe is admitted while half-open
                return not self._probe_inflight
            return True

    def on_success(self) -> None:
        with self._lock:
            if self._state is BreakerState.HALF_OPEN:
                self._state = BreakerState.CLOSED
                self._probe_inflight = False
            self._failures.clear()

    def on_failure(self, exc: Optional[BaseException] = None) -> None:
        now = self._now()
        with self._lock:
            if self._state is BreakerState.HALF_OPEN:
                self._state = BreakerState.OPEN
                self._opened_at = now
                self._probe_inflight = False
                return
            self._failures.append(now)
            self._prune(now)
            if len(self._failures) >= self._threshold:
                self._state = BreakerState.OPEN
                self._opened_at = now

    def wrap_call(self, fn: Callable[[], Any], *, max_tries: int = 1) -> Any:
        """Run ``fn`` under the breaker, retrying up to ``max_tries`` times."""

        attempt = 0
        last_exc: Optional[BaseException] = None
        while attempt < max_tries:
            attempt += 1
            if not self.allow_call():
                raise BreakerOpenError("breaker_open")
            try:
                result = fn()
            except Exception as exc:  # noqa: BLE001 - re-raised after retries
                last_exc = exc
                self.on_failure(exc)
                if attempt < max_tries:
                    time.sleep(self._backoff(attempt))
                continue
            self.on_success()
            return result
        assert last_exc is not None
        raise last_exc

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "state": self._state.value,
                "failures": len(self._failures),
                "window_s": self._window_s,
                "half_open_after_s": self._half_open_after,
            }


__all__ = ["BreakerOpenError", "BreakerState", "CircuitBreaker"]
