"""Session service: the entry point used by HTTP handlers and webhooks."""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Any, Dict, Iterable, Mapping, Optional

from adapters.db.firestore.base import FirestoreError
from adapters.db.firestore.models import User
from adapters.db.firestore.organization_store import OrganizationRepository
from adapters.db.firestore.users_store import UsersRepository
from domains.session.exceptions import MembershipNotFoundError, UserNotFoundError
from domains.session.memberships import find_membership
from domains.session.models import (
    CacheDescriptor,
    OrganizationQuickData,
    OrganizationSummary,
    PrimaryOrganization,
    SessionSnapshot,
)

from .bridge import BridgeResult, IdentityBridge
from .builder import SessionBuilder
from .cache_gate import CacheGate
from .sync import IdentitySync

logger = logging.getLogger(__name__)

_ORGANIZATION_FIELDS = {f.name for f in fields(OrganizationSummary)} - {"id"}
_PRIMARY_FIELDS = {f.name for f in fields(PrimaryOrganization)} - {"id"}


class SessionService:
    """Materialize, cache and mutate session snapshots for identity ids."""

    def __init__(
        self,
        *,
        users: UsersRepository,
        organizations: OrganizationRepository,
        builder: SessionBuilder,
        gate: CacheGate,
        bridge: IdentityBridge,
        sync: IdentitySync,
    ) -> None:
        self._users = users
        self._organizations = organizations
        self._builder = builder
        self._gate = gate
        self._bridge = bridge
        self._sync = sync

    # Login ----------------------------------------------------------------

    def process_login(self, identity_id: str, force_refresh: bool = False) -> SessionSnapshot:
        """Return a fresh snapshot, rebuilding and pushing it when the cached one is stale."""

        cached = self._bridge.pull(identity_id)
        if not force_refresh and not self._gate.is_stale(cached):
            logger.debug("Serving cached session", extra={"user_id": identity_id})
            return cached

        user = self._load_user(identity_id)
        if user is None:
            logger.info("User record missing; syncing from identity provider", extra={"user_id": identity_id})
            user = self._sync.sync_user(identity_id)
        if user is None:
            raise UserNotFoundError(identity_id)

        snapshot = self._builder.build(user, previous=cached)
        result = self._bridge.push(identity_id, snapshot)
        if not result.written:
            logger.warning(
                "Session rebuilt but not cached",
                extra={"user_id": identity_id, "reason": result.reason.value if result.reason else None},
            )

        try:
            self._users.record_login(user.id or identity_id)
        except FirestoreError as exc:
            logger.error("Failed to record login: %s", exc, extra={"user_id": identity_id})

        logger.info(
            "Session materialized",
            extra={"user_id": identity_id, "version": snapshot.cache.version, "organizations": len(snapshot.organizations)},
        )
        return snapshot

    # Invalidation ---------------------------------------------------------

    def invalidate_session_cache(self, identity_id: str) -> Optional[BridgeResult]:
        """Force the next login to rebuild; None when nothing is cached."""

        cached = self._bridge.pull(identity_id)
        if cached is None:
            return None

        result = self._bridge.push(identity_id, self._gate.invalidate(cached))
        logger.info("Session cache invalidated", extra={"user_id": identity_id, "written": result.written})
        return result

    def bulk_invalidate_session_cache(self, identity_ids: Iterable[str]) -> Dict[str, Optional[BridgeResult]]:
        results: Dict[str, Optional[BridgeResult]] = {}
        for identity_id in identity_ids:
            try:
                results[identity_id] = self.invalidate_session_cache(identity_id)
            except Exception as exc:  # noqa: BLE001 - one failure must not stop the batch
                logger.error("Failed to invalidate session cache: %s", exc, extra={"user_id": identity_id})
                results[identity_id] = None
        return results

    def discard_session(self, identity_id: str) -> BridgeResult:
        """Remove the stored snapshot outright, e.g. once the user is deleted."""

        result = self._bridge.discard(identity_id)
        logger.info("Session snapshot discarded", extra={"user_id": identity_id, "written": result.written})
        return result

    # Mutations ------------------------------------------------------------

    def switch_primary_organization(self, identity_id: str, org_id: str) -> Optional[BridgeResult]:
        """Persist a new primary membership and invalidate the cached snapshot."""

        user = self._load_user(identity_id)
        if user is None:
            raise UserNotFoundError(identity_id)
        if find_membership(user.organizations, org_id) is None:
            raise MembershipNotFoundError(org_id)

        self._users.set_primary_membership(user.id or identity_id, org_id)
        logger.info("Primary organization switched", extra={"user_id": identity_id, "org_id": org_id})
        return self.invalidate_session_cache(identity_id)

    def update_cached_membership(self, identity_id: str, org_id: str, updates: Mapping[str, Any]) -> Optional[BridgeResult]:
        """Patch one organization entry of a fresh cached snapshot; None when there is none."""

        cached = self._fresh_cached(identity_id)
        if cached is None:
            return None

        org_updates = {k: v for k, v in updates.items() if k in _ORGANIZATION_FIELDS}
        organizations = [
            replace(org, **org_updates) if org.id == org_id else org
            for org in cached.organizations
        ]

        primary = cached.primary_organization
        if primary is not None and primary.id == org_id:
            primary = replace(primary, **{k: v for k, v in updates.items() if k in _PRIMARY_FIELDS})

        snapshot = replace(cached, organizations=organizations, primary_organization=primary, cache=self._bumped(cached))
        return self._bridge.push(identity_id, snapshot)

    def switch_client_context(self, identity_id: str, client_id: str) -> Optional[BridgeResult]:
        """Select one of the cached snapshot's clients; None when it is not available."""

        cached = self._fresh_cached(identity_id)
        if cached is None:
            return None

        client = next((c for c in cached.clients if c.id == client_id), None)
        if client is None:
            return None

        snapshot = replace(cached, current_client=client, cache=self._bumped(cached))
        return self._bridge.push(identity_id, snapshot)

    # Queries --------------------------------------------------------------

    def get_organization_quick_data(self, org_id: str, user_id: str) -> Optional[OrganizationQuickData]:
        org_result = self._organizations.get_by_id(org_id)
        user_result = self._users.get_by_id(user_id)
        if not org_result.success or not user_result.success:
            return None

        org, user = org_result.data, user_result.data
        membership = find_membership(user.organizations, org_id)
        if membership is None:
            return None

        return OrganizationQuickData(
            id=org.id,
            name=org.name,
            type=org.org_type,
            size=org.size,
            logo_url=org.logo_url,
            plan=org.plan,
            status=org.subscription_status,
            seats_total=org.seats,
            seats_used=org.used_seats,
            user_role=membership.role,
            user_permissions=list(membership.permissions),
        )

    def cached_session(self, identity_id: str) -> Optional[SessionSnapshot]:
        return self._bridge.pull(identity_id)

    def resolve_session(self, identity_id: str) -> SessionSnapshot:
        """Return the fresh cached snapshot or an unsaved build, without login bookkeeping."""

        cached = self._fresh_cached(identity_id)
        if cached is not None:
            return cached

        user = self._load_user(identity_id)
        if user is None:
            raise UserNotFoundError(identity_id)
        return self._builder.build(user)

    # Helpers --------------------------------------------------------------

    def _load_user(self, identity_id: str) -> Optional[User]:
        result = self._users.get_by_id(identity_id)
        if result.success:
            return result.data

        result = self._users.get_by_identity_id(identity_id)
        return result.data if result.success else None

    def _fresh_cached(self, identity_id: str) -> Optional[SessionSnapshot]:
        cached = self._bridge.pull(identity_id)
        if cached is None or self._gate.is_stale(cached):
            return None
        return cached

    def _bumped(self, snapshot: SessionSnapshot) -> CacheDescriptor:
        # patches keep the build time so the staleness window still runs from the last rebuild
        return replace(snapshot.cache, version=snapshot.cache.version + 1)


__all__ = ["SessionService"]
