"""Staleness policy for cached session snapshots."""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Optional

from domains.session.models import SessionSnapshot


DEFAULT_STALENESS_SECONDS = 24 * 60 * 60


class CacheGate:
    """Decide whether a snapshot must be rebuilt.

    Concurrent rebuilds of the same stale snapshot are not coordinated; the
    last write to the snapshot store wins.
    """

    def __init__(self, staleness_seconds: float = DEFAULT_STALENESS_SECONDS, time_func: Callable[[], float] = time.time):
        if staleness_seconds <= 0:
            raise ValueError("staleness_seconds must be positive")

        self._threshold = float(staleness_seconds) # Staleness threshold
        self._now = time_func # Time function

    @property
    def staleness_seconds(self) -> float:
        return self._threshold

    def age_seconds(self, snapshot: SessionSnapshot) -> float:
        """Seconds between now and the snapshot's last rebuild."""

        return float(self._now()) - snapshot.cache.last_updated.timestamp()

    def is_stale(self, snapshot: Optional[SessionSnapshot]) -> bool:
        if snapshot is None:
            return True

        return self.age_seconds(snapshot) >= self._threshold

    def invalidate(self, snapshot: SessionSnapshot) -> SessionSnapshot:
        """Return a copy whose cache descriptor points at the Unix epoch."""

        return replace(snapshot, cache=snapshot.cache.invalidated())


__all__ = ["CacheGate", "DEFAULT_STALENESS_SECONDS"]
