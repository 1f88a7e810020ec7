"""Shared contracts and type definitions across session services."""

from .orgs import (  # noqa: F401
    LEAST_PRIVILEGED_ROLE,
    OrgRole,
    OrgSize,
    OrgType,
    SubscriptionPlan,
    SubscriptionStatus,
    UserStatus,
)

__all__ = [
    "LEAST_PRIVILEGED_ROLE",
    "OrgRole",
    "OrgSize",
    "OrgType",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "UserStatus",
]
