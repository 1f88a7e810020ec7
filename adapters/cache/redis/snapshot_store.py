"""Snapshot stores keyed by identity id."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Protocol

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class SnapshotStoreUnavailableError(RuntimeError):
    """Raised when the backing cache cannot be reached."""


class SnapshotStore(Protocol):
    """Protocol for a per-user snapshot store."""

    def read(self, user_id: str) -> Optional[Mapping[str, Any]]: ...
    def write(self, user_id: str, payload: Mapping[str, Any]) -> None: ...
    def delete(self, user_id: str) -> None: ...


class RedisSnapshotStore:
    """Redis-backed snapshot store holding one JSON value per user."""

    def __init__(self, redis_client, *, key_prefix: str = "session:snapshot:", ttl_s: Optional[int] = None):
        """Initialize the snapshot store."""

        if redis_client is None:
            raise ValueError("Redis client is required")

        self._r = redis_client # Redis client
        self._prefix = key_prefix # Key prefix
        self._ttl_s = ttl_s # TTL

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}{user_id}"

    def read(self, user_id: str) -> Optional[Mapping[str, Any]]:
        """Return the stored payload or None."""

        try:
            raw = self._r.get(self._key(user_id))
        except RedisError as exc:
            raise SnapshotStoreUnavailableError(f"redis read failed: {exc}") from exc

        if raw is None:
            return None
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable snapshot", extra={"user_id": user_id})
            return None

        return data if isinstance(data, dict) else None

    def write(self, user_id: str, payload: Mapping[str, Any]) -> None:
        """Store the payload, replacing any previous value."""

        body = json.dumps(dict(payload), separators=(",", ":"), default=str)
        try:
            if self._ttl_s:
                self._r.setex(self._key(user_id), int(self._ttl_s), body)
            else:
                self._r.set(self._key(user_id), body)
        except RedisError as exc:
            raise SnapshotStoreUnavailableError(f"redis write failed: {exc}") from exc

    def delete(self, user_id: str) -> None:
        """Remove the stored payload; a missing key is not an error."""

        try:
            self._r.delete(self._key(user_id))
        except RedisError as exc:
            raise SnapshotStoreUnavailableError(f"redis delete failed: {exc}") from exc


__all__ = ["RedisSnapshotStore", "SnapshotStore", "SnapshotStoreUnavailableError"]
