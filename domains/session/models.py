"""Pure session domain models.

A :class:`SessionSnapshot` is a derived projection of a user record, the
organization records it references and the capability table. It carries no
information that cannot be rebuilt from those sources.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app_platform.contracts import OrgRole, UserStatus


SCHEMA_VERSION = 2

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class OrganizationMembership:
    """A user's membership in one organization (value object owned by the user)."""

    org_id: str
    role: str = OrgRole.ORG_VIEWER.value
    permissions: List[str] = field(default_factory=list)
    is_primary: bool = False
    joined_at: Optional[int] = None
    updated_at: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.org_id:
            raise ValueError("org_id is required")
        if not isinstance(self.permissions, list):
            self.permissions = list(self.permissions) if self.permissions else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "org_id": self.org_id,
            "role": self.role,
            "permissions": list(self.permissions),
            "is_primary": bool(self.is_primary),
            "joined_at": self.joined_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrganizationMembership":
        return cls(
            org_id=str(data.get("org_id") or data.get("orgId") or ""),
            role=str(data.get("role") or OrgRole.ORG_VIEWER.value),
            permissions=[str(p) for p in data.get("permissions") or []],
            is_primary=bool(data.get("is_primary", data.get("isPrimary", False))),
            joined_at=data.get("joined_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class CapabilitySet:
    """Fixed per-role boolean permission flags."""

    can_manage_users: bool = False
    can_manage_organizations: bool = False
    can_view_analytics: bool = False
    can_manage_compliance: bool = False
    can_manage_incidents: bool = False
    can_manage_clients: bool = False
    can_access_audit_logs: bool = False
    can_manage_settings: bool = False
    can_export_data: bool = False
    can_create_reports: bool = False

    def has(self, capability: str) -> bool:
        if capability not in self.flag_names():
            return False
        return bool(getattr(self, capability))

    def to_dict(self) -> Dict[str, bool]:
        return {name: bool(getattr(self, name)) for name in self.flag_names()}

    @classmethod
    def flag_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))


@dataclass
class UserSummary:
    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    status: str = UserStatus.ACTIVE.value
    job_title: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None


@dataclass
class OrganizationSummary:
    """One resolved membership as shown in the organization switcher."""

    id: str
    name: str
    type: str
    role: str
    permissions: List[str] = field(default_factory=list)
    is_primary: bool = False
    industry: Optional[str] = None
    size: Optional[str] = None
    plan: Optional[str] = None
    status: Optional[str] = None


@dataclass
class PrimaryOrganization:
    """Richer view of the user's default organizational context."""

    id: str
    name: str
    type: str
    role: str
    permissions: List[str] = field(default_factory=list)
    plan: Optional[str] = None
    status: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None


@dataclass
class ClientSummary:
    id: str
    name: str
    type: str = "enterprise"
    status: str = "active"
    industry: Optional[str] = None
    plan: Optional[str] = None


@dataclass
class NotificationPreferences:
    email: bool = True
    sms: bool = False
    desktop: bool = True
    mobile: bool = True


@dataclass
class DashboardPreferences:
    layout: str = "sidebar"
    compact_mode: bool = False
    sidebar_collapsed: bool = False
    custom_widgets: List[str] = field(default_factory=list)
    widget_order: List[str] = field(default_factory=list)


@dataclass
class Preferences:
    language: str = "en-US"
    timezone: Optional[str] = None
    theme: Optional[str] = None
    notifications: NotificationPreferences = field(default_factory=NotificationPreferences)
    dashboard: DashboardPreferences = field(default_factory=DashboardPreferences)


@dataclass
class SecuritySummary:
    mfa_enabled: bool = False
    require_password_change: bool = False
    last_password_change: Optional[str] = None


@dataclass(frozen=True)
class CacheDescriptor:
    last_updated: datetime
    version: int = 1

    def invalidated(self) -> "CacheDescriptor":
        return replace(self, last_updated=EPOCH)


@dataclass
class SessionSnapshot:
    """Cached, fully derivable summary of a user's identity, organizations and capabilities."""

    user: UserSummary
    organizations: List[OrganizationSummary]
    primary_organization: Optional[PrimaryOrganization]
    capabilities: CapabilitySet
    preferences: Preferences
    security: SecuritySummary
    cache: CacheDescriptor
    clients: List[ClientSummary] = field(default_factory=list)
    current_client: Optional[ClientSummary] = None
    schema_version: int = SCHEMA_VERSION

    def organization(self, org_id: str) -> Optional[OrganizationSummary]:
        for org in self.organizations:
            if org.id == org_id:
                return org
        return None


@dataclass
class OrganizationQuickData:
    """Compact organization card used by dashboards."""

    id: str
    name: str
    type: str
    size: Optional[str]
    logo_url: Optional[str]
    plan: Optional[str]
    status: Optional[str]
    seats_total: int
    seats_used: int
    user_role: str
    user_permissions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "logo_url": self.logo_url,
            "plan": self.plan,
            "status": self.status,
            "seats": {"total": self.seats_total, "used": self.seats_used},
            "user_role": self.user_role,
            "user_permissions": list(self.user_permissions),
        }


__all__ = [
    "EPOCH",
    "SCHEMA_VERSION",
    "CacheDescriptor",
    "CapabilitySet",
    "ClientSummary",
    "DashboardPreferences",
    "NotificationPreferences",
    "OrganizationMembership",
    "OrganizationQuickData",
    "OrganizationSummary",
    "Preferences",
    "PrimaryOrganization",
    "SecuritySummary",
    "SessionSnapshot",
    "UserSummary",
]
