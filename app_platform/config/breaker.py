from __future__ import annotations

from dataclasses import dataclass

from .env import _int_env


@dataclass
class BreakerConfig:
    """Circuit breaker defaults for identity provider calls."""

    failure_threshold: int = 5            # trips after N failures
    window_seconds: int = 30              # rolling window for failure count
    half_open_after_seconds: int = 15     # time before trying half-open

    @classmethod
    def from_env(cls) -> "BreakerConfig":
        return cls(
            failure_threshold=_int_env("SESSION_BREAKER_FAILURES", 5, minimum=1),
            window_seconds=_int_env("SESSION_BREAKER_WINDOW_S", 30, minimum=1),
            half_open_after_seconds=_int_env("SESSION_BREAKER_HALF_OPEN_S", 15, minimum=1),
        )
