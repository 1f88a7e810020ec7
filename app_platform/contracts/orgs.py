"""Shared organization/role contracts used across services."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class OrgRole(str, Enum):
    """Roles a user can hold, globally or inside an organization."""

    SUPER_ADMIN = "super_admin"
    PLATFORM_ADMIN = "platform_admin"
    ORG_ADMIN = "org_admin"
    ORG_MANAGER = "org_manager"
    ORG_ANALYST = "org_analyst"
    ORG_VIEWER = "org_viewer"
    AUDITOR = "auditor"
    CHANNEL_PARTNER = "channel_partner"

    @classmethod
    def parse(cls, value: object) -> Optional["OrgRole"]:
        """Return the matching role or None for unknown input."""

        if isinstance(value, OrgRole):
            return value
        if not isinstance(value, str):
            return None

        normalized = value.strip().lower()
        for item in cls:
            if item.value == normalized:
                return item

        return None


LEAST_PRIVILEGED_ROLE = OrgRole.ORG_VIEWER


class OrgType(str, Enum):
    """Organization classification."""

    LAW_FIRM = "law_firm"
    ENTERPRISE = "enterprise"
    CHANNEL_PARTNER = "channel_partner"
    PLATFORM = "platform"


class OrgSize(str, Enum):
    """Organization headcount bracket."""

    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class SubscriptionPlan(str, Enum):
    """Billing plan of an organization."""

    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"
    CUSTOM = "custom"


class SubscriptionStatus(str, Enum):
    """Billing lifecycle status of an organization."""

    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class UserStatus(str, Enum):
    """Account status surfaced in session snapshots."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    DELETED = "deleted"


__all__ = [
    "LEAST_PRIVILEGED_ROLE",
    "OrgRole",
    "OrgSize",
    "OrgType",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "UserStatus",
]
