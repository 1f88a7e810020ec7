"""Materialize a session snapshot from the user and organization records."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from adapters.db.firestore.models import Organization, User
from adapters.db.firestore.organization_store import OrganizationRepository
from app_platform.contracts import LEAST_PRIVILEGED_ROLE
from domains.session.capabilities import capabilities_for
from domains.session.memberships import primary_membership
from domains.session.models import (
    CacheDescriptor,
    ClientSummary,
    DashboardPreferences,
    NotificationPreferences,
    OrganizationSummary,
    Preferences,
    PrimaryOrganization,
    SecuritySummary,
    SessionSnapshot,
    UserSummary,
)

logger = logging.getLogger(__name__)


class ClientsResolver(Protocol):
    """Lists the clients a user may act on behalf of."""

    def __call__(self, user: User, organizations: List[OrganizationSummary]) -> List[ClientSummary]: ...


def no_clients(user: User, organizations: List[OrganizationSummary]) -> List[ClientSummary]:
    return []


class SessionBuilder:
    """Build :class:`SessionSnapshot` objects.

    Organizations are resolved with one batched lookup. Memberships whose
    organization no longer exists are dropped from the snapshot.
    """

    def __init__(
        self,
        organizations: OrganizationRepository,
        *,
        clients_resolver: Optional[ClientsResolver] = None,
        time_func: Callable[[], float] = time.time,
    ) -> None:
        self._organizations = organizations
        self._clients_resolver = clients_resolver or no_clients
        self._now = time_func

    def build(self, user: User, previous: Optional[SessionSnapshot] = None) -> SessionSnapshot:
        memberships = list(user.organizations)
        resolved = self._resolve_organizations([m.org_id for m in memberships])

        organizations: List[OrganizationSummary] = []
        for membership in memberships:
            org = resolved.get(membership.org_id)
            if org is None:
                logger.warning(
                    "Dropping membership with dangling organization reference",
                    extra={"user_id": user.id, "org_id": membership.org_id},
                )
                continue
            organizations.append(
                OrganizationSummary(
                    id=org.id,
                    name=org.name,
                    type=org.org_type,
                    role=membership.role,
                    permissions=list(membership.permissions),
                    is_primary=membership.is_primary,
                    industry=org.industry,
                    size=org.size,
                    plan=org.plan,
                    status=org.subscription_status,
                )
            )

        primary = primary_membership(memberships)
        primary_org: Optional[PrimaryOrganization] = None
        if primary is not None and primary.org_id in resolved:
            org = resolved[primary.org_id]
            primary_org = PrimaryOrganization(
                id=org.id,
                name=org.name,
                type=org.org_type,
                role=primary.role,
                permissions=list(primary.permissions),
                plan=org.plan,
                status=org.subscription_status,
                industry=org.industry,
                size=org.size,
                logo_url=org.logo_url,
                website=org.website,
            )

        effective_role = user.role or (primary.role if primary is not None else None) or LEAST_PRIVILEGED_ROLE.value

        clients = list(self._clients_resolver(user, organizations))
        version = previous.cache.version + 1 if previous is not None else 1

        return SessionSnapshot(
            user=_user_summary(user),
            organizations=organizations,
            primary_organization=primary_org,
            capabilities=capabilities_for(effective_role),
            preferences=_preferences(user.preferences, user),
            security=_security(user.security),
            cache=CacheDescriptor(
                last_updated=datetime.fromtimestamp(float(self._now()), tz=timezone.utc),
                version=version,
            ),
            clients=clients,
            current_client=clients[0] if clients else None,
        )

    def _resolve_organizations(self, org_ids: List[str]) -> Dict[str, Organization]:
        if not org_ids:
            return {}
        result = self._organizations.get_many(org_ids)
        return dict(result.data or {}) if result.success else {}


def _user_summary(user: User) -> UserSummary:
    display_name = user.display_name or f"{user.first_name} {user.last_name}".strip() or None
    return UserSummary(
        id=user.id or user.identity_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        display_name=display_name,
        avatar_url=user.avatar_url,
        status=user.status,
        job_title=user.job_title,
        department=user.department,
        phone=user.phone,
        timezone=user.timezone,
        locale=user.locale,
    )


def _preferences(data: Mapping[str, Any], user: User) -> Preferences:
    notifications = data.get("notifications") or {}
    dashboard = data.get("dashboard") or {}
    return Preferences(
        language=str(data.get("language") or user.locale or "en-US"),
        timezone=data.get("timezone") or user.timezone,
        theme=data.get("theme"),
        notifications=NotificationPreferences(
            email=bool(notifications.get("email", True)),
            sms=bool(notifications.get("sms", False)),
            desktop=bool(notifications.get("desktop", True)),
            mobile=bool(notifications.get("mobile", notifications.get("push", True))),
        ),
        dashboard=DashboardPreferences(
            layout=str(dashboard.get("layout") or "sidebar"),
            compact_mode=bool(dashboard.get("compact_mode", False)),
            sidebar_collapsed=bool(dashboard.get("sidebar_collapsed", False)),
            custom_widgets=[str(w) for w in dashboard.get("custom_widgets") or []],
            widget_order=[str(w) for w in dashboard.get("widget_order") or []],
        ),
    )


def _security(data: Mapping[str, Any]) -> SecuritySummary:
    last_change = data.get("last_password_change")
    return SecuritySummary(
        mfa_enabled=bool(data.get("mfa_enabled", False)),
        require_password_change=bool(data.get("require_password_change", False)),
        last_password_change=str(last_change) if last_change is not None else None,
    )


__all__ = ["ClientsResolver", "SessionBuilder", "no_clients"]
