"""Snapshot store backed by the identity provider's per-user public metadata."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from adapters.providers.clerk import ClerkClient

logger = logging.getLogger(__name__)


class IdentityMetadataSnapshotStore:
    """Keep the snapshot under one public-metadata key of the provider's user.

    Provider errors (rate limiting included) propagate to the caller.
    """

    def __init__(self, client: ClerkClient, *, metadata_key: str = "session") -> None:
        self._client = client
        self._key = metadata_key

    @property
    def metadata_key(self) -> str:
        return self._key

    def read(self, user_id: str) -> Optional[Mapping[str, Any]]:
        metadata = self._client.get_public_metadata(user_id)
        payload = metadata.get(self._key)
        if payload is None:
            return None
        if not isinstance(payload, Mapping):
            logger.warning("Ignoring non-object session metadata", extra={"user_id": user_id})
            return None
        return payload

    def write(self, user_id: str, payload: Mapping[str, Any]) -> None:
        # the metadata endpoint merges top-level keys, so sibling keys survive
        self._client.update_public_metadata(user_id, {self._key: dict(payload)})

    def delete(self, user_id: str) -> None:
        # a null value removes the key from the merged metadata
        self._client.update_public_metadata(user_id, {self._key: None})


__all__ = ["IdentityMetadataSnapshotStore"]
