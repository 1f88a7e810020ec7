"""Read and write session snapshots through the configured snapshot store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from adapters.cache.redis.snapshot_store import SnapshotStore, SnapshotStoreUnavailableError
from adapters.providers.exceptions import (
    IdentityNotFoundError,
    IdentityProviderError,
    ProviderUnavailableError,
    RateLimitedError,
)
from app_platform.utils.circuit_breaker import BreakerOpenError
from domains.session.exceptions import SnapshotDecodeError
from domains.session.models import SessionSnapshot
from domains.session.serializers import optional_snapshot_from_dict, snapshot_to_dict

logger = logging.getLogger(__name__)


class SkipReason(str, Enum):
    RATE_LIMITED = "rate_limited"
    BREAKER_OPEN = "breaker_open"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class BridgeResult:
    """Outcome of a snapshot write; a skipped write is not an error."""

    written: bool
    reason: Optional[SkipReason] = None

    @classmethod
    def stored(cls) -> "BridgeResult":
        return cls(written=True)

    @classmethod
    def skipped(cls, reason: SkipReason) -> "BridgeResult":
        return cls(written=False, reason=reason)

    def to_dict(self) -> dict:
        return {"written": self.written, "reason": self.reason.value if self.reason else None}


class IdentityBridge:
    """Push and pull snapshots, absorbing rate limiting as a value."""

    def __init__(self, store: SnapshotStore) -> None:
        self._store = store

    def push(self, user_id: str, snapshot: SessionSnapshot) -> BridgeResult:
        """Store ``snapshot``; rate limiting or an open breaker yields a skipped result."""

        try:
            self._store.write(user_id, snapshot_to_dict(snapshot))
        except RateLimitedError:
            logger.warning("Snapshot push rate limited; serving in-memory snapshot", extra={"user_id": user_id})
            return BridgeResult.skipped(SkipReason.RATE_LIMITED)
        except BreakerOpenError:
            logger.warning("Snapshot push skipped; breaker open", extra={"user_id": user_id})
            return BridgeResult.skipped(SkipReason.BREAKER_OPEN)
        except ProviderUnavailableError as exc:
            reason = SkipReason.BREAKER_OPEN if exc.breaker_open else SkipReason.UNAVAILABLE
            logger.warning("Snapshot push skipped", extra={"user_id": user_id, "reason": reason.value})
            return BridgeResult.skipped(reason)
        except SnapshotStoreUnavailableError as exc:
            logger.warning("Snapshot push skipped; store unavailable: %s", exc, extra={"user_id": user_id})
            return BridgeResult.skipped(SkipReason.UNAVAILABLE)

        return BridgeResult.stored()

    def discard(self, user_id: str) -> BridgeResult:
        """Drop the stored snapshot; a provider user that no longer exists has nothing to drop."""

        try:
            self._store.delete(user_id)
        except IdentityNotFoundError:
            logger.info("Snapshot owner already gone at identity provider", extra={"user_id": user_id})
        except RateLimitedError:
            logger.warning("Snapshot discard rate limited", extra={"user_id": user_id})
            return BridgeResult.skipped(SkipReason.RATE_LIMITED)
        except BreakerOpenError:
            logger.warning("Snapshot discard skipped; breaker open", extra={"user_id": user_id})
            return BridgeResult.skipped(SkipReason.BREAKER_OPEN)
        except ProviderUnavailableError as exc:
            reason = SkipReason.BREAKER_OPEN if exc.breaker_open else SkipReason.UNAVAILABLE
            logger.warning("Snapshot discard skipped", extra={"user_id": user_id, "reason": reason.value})
            return BridgeResult.skipped(reason)
        except SnapshotStoreUnavailableError as exc:
            logger.warning("Snapshot discard skipped; store unavailable: %s", exc, extra={"user_id": user_id})
            return BridgeResult.skipped(SkipReason.UNAVAILABLE)

        return BridgeResult.stored()

    def pull(self, user_id: str) -> Optional[SessionSnapshot]:
        """Return the stored snapshot, or None when absent or unreadable."""

        try:
            payload = self._store.read(user_id)
        except RateLimitedError:
            logger.warning("Snapshot pull rate limited; treating as cache miss", extra={"user_id": user_id})
            return None
        except (IdentityProviderError, SnapshotStoreUnavailableError, BreakerOpenError) as exc:
            logger.warning("Snapshot pull failed; treating as cache miss: %s", exc, extra={"user_id": user_id})
            return None

        try:
            return optional_snapshot_from_dict(payload)
        except SnapshotDecodeError as exc:
            logger.warning("Discarding undecodable snapshot: %s", exc, extra={"user_id": user_id})
            return None


__all__ = ["BridgeResult", "IdentityBridge", "SkipReason"]
