"""Copy identity-provider users, organizations and memberships into the record store."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from adapters.db.firestore.base import now_ms
from adapters.db.firestore.models import Organization, OrganizationMembership, User
from adapters.db.firestore.organization_store import OrganizationRepository
from adapters.db.firestore.users_store import UsersRepository
from adapters.providers.clerk import ClerkClient, IdentityMembership, IdentityOrganization, IdentityUser, normalize_provider_role
from adapters.providers.exceptions import IdentityNotFoundError, IdentityProviderError, RateLimitedError
from app_platform.contracts import OrgRole, OrgSize, OrgType, SubscriptionPlan, SubscriptionStatus
from domains.session.memberships import normalize_primary

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    users_synced: int = 0
    organizations_synced: int = 0
    memberships_synced: int = 0
    users_deleted: int = 0
    organizations_deleted: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "users_synced": self.users_synced,
            "organizations_synced": self.organizations_synced,
            "memberships_synced": self.memberships_synced,
            "users_deleted": self.users_deleted,
            "organizations_deleted": self.organizations_deleted,
            "errors": list(self.errors),
        }


class IdentitySync:
    """Keep user and organization records aligned with the identity provider."""

    def __init__(
        self,
        identity: ClerkClient,
        users: UsersRepository,
        organizations: OrganizationRepository,
        *,
        time_func: Callable[[], float] = time.time,
    ) -> None:
        self._identity = identity
        self._users = users
        self._organizations = organizations
        self._now = time_func

    # Users ----------------------------------------------------------------

    def sync_user(self, identity_id: str) -> Optional[User]:
        """Upsert the user record from the provider; None when the provider has no answer."""

        try:
            remote = self._identity.get_user(identity_id)
        except RateLimitedError:
            logger.warning("Rate limited by identity provider; skipping user sync", extra={"user_id": identity_id})
            return None
        except IdentityNotFoundError:
            logger.error("User not found at identity provider", extra={"user_id": identity_id})
            return None

        stored = self._users.get_by_id(identity_id)
        existing = stored.data if stored.success else None
        previous_memberships = list(existing.organizations) if existing else []

        try:
            remote_memberships: Optional[List[IdentityMembership]] = self._identity.list_user_memberships(identity_id)
        except RateLimitedError:
            logger.warning("Rate limited fetching memberships; keeping stored memberships", extra={"user_id": identity_id})
            remote_memberships = None
        except IdentityProviderError as exc:
            logger.error("Error fetching memberships; keeping stored memberships: %s", exc, extra={"user_id": identity_id})
            remote_memberships = None

        if remote_memberships is None:
            memberships = previous_memberships
        else:
            memberships = self._merge_memberships(remote, remote_memberships, previous_memberships)

        user = existing or User(id=identity_id, identity_id=identity_id)
        self._apply_remote_user(user, remote)
        user.organizations = memberships

        result = self._users.upsert(user)
        logger.info(
            "User synced from identity provider",
            extra={"user_id": identity_id, "memberships": len(memberships)},
        )
        return result.data

    def delete_user(self, user_id: str) -> bool:
        self._users.delete(user_id)
        logger.info("User record deleted", extra={"user_id": user_id})
        return True

    # Organizations --------------------------------------------------------

    def sync_organization(self, org_id: str) -> Optional[Organization]:
        """Upsert the organization record; classification fields are never reset."""

        try:
            remote = self._identity.get_organization(org_id)
        except RateLimitedError:
            logger.warning("Rate limited by identity provider; skipping organization sync", extra={"org_id": org_id})
            return None
        except IdentityNotFoundError:
            logger.error("Organization not found at identity provider", extra={"org_id": org_id})
            return None

        stored = self._organizations.get_by_id(org_id)
        org = stored.data if stored.success and stored.data else self._new_organization(remote)
        self._apply_remote_organization(org, remote)

        result = self._organizations.upsert(org)
        logger.info("Organization synced from identity provider", extra={"org_id": org_id})
        return result.data

    def delete_organization(self, org_id: str) -> bool:
        # memberships that still point here are dropped when snapshots are built
        self._organizations.delete(org_id)
        logger.info("Organization record deleted", extra={"org_id": org_id})
        return True

    # Memberships ----------------------------------------------------------

    def sync_membership(
        self,
        user_id: str,
        org_id: str,
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
    ) -> Optional[User]:
        """Add or update one membership on an existing user record."""

        result = self._users.upsert_membership(user_id, org_id, normalize_provider_role(role), permissions)
        if result.not_found:
            logger.error("User not found in record store; membership not synced", extra={"user_id": user_id, "org_id": org_id})
            return None

        logger.info("Membership synced", extra={"user_id": user_id, "org_id": org_id})
        return result.data

    def remove_membership(self, user_id: str, org_id: str) -> Optional[User]:
        result = self._users.remove_membership(user_id, org_id)
        if result.not_found:
            logger.error("User not found in record store; membership not removed", extra={"user_id": user_id, "org_id": org_id})
            return None

        logger.info("Membership removed", extra={"user_id": user_id, "org_id": org_id})
        return result.data

    # Bulk -----------------------------------------------------------------

    def sync_all(self, limit: int = 100) -> SyncReport:
        """Sync up to ``limit`` provider users with their organizations and memberships."""

        report = SyncReport()
        for remote_user in self._identity.list_users(limit=limit):
            try:
                if self.sync_user(remote_user.id) is not None:
                    report.users_synced += 1

                for membership in self._identity.list_user_memberships(remote_user.id):
                    if self.sync_organization(membership.org_id) is not None:
                        report.organizations_synced += 1
                    if self.sync_membership(remote_user.id, membership.org_id, membership.role, membership.permissions) is not None:
                        report.memberships_synced += 1
            except IdentityProviderError as exc:
                logger.error("Full sync failed for user: %s", exc, extra={"user_id": remote_user.id})
                report.errors.append(f"{remote_user.id}: {exc}")

        logger.info("Full sync completed", extra=report.to_dict())
        return report

    def cleanup_deleted(self) -> SyncReport:
        """Delete records whose provider counterpart no longer exists."""

        report = SyncReport()

        for user_id in self._users.list_ids().data or []:
            try:
                self._identity.get_user(user_id)
            except IdentityNotFoundError:
                self.delete_user(user_id)
                report.users_deleted += 1
            except IdentityProviderError as exc:
                report.errors.append(f"{user_id}: {exc}")

        for org_id in self._organizations.list_ids().data or []:
            try:
                self._identity.get_organization(org_id)
            except IdentityNotFoundError:
                self.delete_organization(org_id)
                report.organizations_deleted += 1
            except IdentityProviderError as exc:
                report.errors.append(f"{org_id}: {exc}")

        logger.info("Cleanup completed", extra=report.to_dict())
        return report

    # Helpers --------------------------------------------------------------

    def _merge_memberships(
        self,
        remote_user: IdentityUser,
        remote: List[IdentityMembership],
        previous: List[OrganizationMembership],
    ) -> List[OrganizationMembership]:
        previous_by_org = {m.org_id: m for m in previous}
        stamp = now_ms(self._now)

        merged = [
            OrganizationMembership(
                org_id=m.org_id,
                role=m.role,
                permissions=list(m.permissions),
                joined_at=m.created_at or (previous_by_org[m.org_id].joined_at if m.org_id in previous_by_org else stamp),
                updated_at=m.updated_at or stamp,
            )
            for m in remote
        ]
        if not merged:
            return merged

        ids = [m.org_id for m in merged]
        primary_id = _metadata_value(remote_user.public_metadata, "primary_organization_id", "primaryOrganizationId")
        if primary_id not in ids:
            primary_id = next((m.org_id for m in previous if m.is_primary and m.org_id in ids), None)
        if primary_id is None:
            primary_id = ids[0]

        for membership in merged:
            membership.is_primary = membership.org_id == primary_id
        return normalize_primary(merged)

    def _apply_remote_user(self, user: User, remote: IdentityUser) -> None:
        metadata = remote.public_metadata
        user.identity_id = remote.id
        user.email = remote.email
        user.first_name = remote.first_name
        user.last_name = remote.last_name
        user.display_name = f"{remote.first_name} {remote.last_name}".strip() or None
        user.avatar_url = remote.image_url
        user.is_active = not remote.banned
        role = OrgRole.parse(_metadata_value(metadata, "role"))
        user.role = role.value if role else None
        user.user_type = str(_metadata_value(metadata, "user_type", "userType") or user.user_type)
        user.job_title = _metadata_value(metadata, "job_title", "jobTitle") or user.job_title
        user.security = dict(user.security or {})
        user.security["mfa_enabled"] = bool(remote.two_factor_enabled)
        if remote.last_sign_in_at:
            user.last_login_at = int(remote.last_sign_in_at)

    def _new_organization(self, remote: IdentityOrganization) -> Organization:
        metadata = remote.public_metadata
        return Organization(
            id=remote.id,
            name=remote.name,
            org_type=_enum_value(OrgType, _metadata_value(metadata, "type", "org_type"), OrgType.ENTERPRISE),
            industry=_metadata_value(metadata, "industry"),
            size=_enum_value(OrgSize, _metadata_value(metadata, "size"), OrgSize.MEDIUM),
            plan=_enum_value(SubscriptionPlan, _metadata_value(metadata, "plan"), SubscriptionPlan.STARTER),
            subscription_status=_enum_value(SubscriptionStatus, _metadata_value(metadata, "status", "subscription_status"), SubscriptionStatus.ACTIVE),
        )

    def _apply_remote_organization(self, org: Organization, remote: IdentityOrganization) -> None:
        org.name = remote.name or org.name
        org.slug = remote.slug or org.slug
        org.logo_url = remote.image_url or org.logo_url
        if remote.max_allowed_memberships:
            org.seats = int(remote.max_allowed_memberships)
        if remote.members_count is not None:
            org.used_seats = int(remote.members_count)


def _metadata_value(metadata: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = metadata.get(key)
        if value not in (None, ""):
            return value
    return None


def _enum_value(enum_cls, value: Any, default) -> str:
    if isinstance(value, str):
        for item in enum_cls:
            if item.value == value.strip().lower():
                return item.value
    return default.value


__all__ = ["IdentitySync", "SyncReport"]
