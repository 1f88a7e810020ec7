"""Role to capability table.

Unknown or missing roles resolve to the least privileged entry so that a
malformed role string never grants access.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from app_platform.contracts import LEAST_PRIVILEGED_ROLE, OrgRole

from .models import CapabilitySet


_ALL = CapabilitySet(*([True] * len(CapabilitySet.flag_names())))

CAPABILITY_TABLE: Mapping[OrgRole, CapabilitySet] = MappingProxyType(
    {
        OrgRole.SUPER_ADMIN: _ALL,
        OrgRole.PLATFORM_ADMIN: CapabilitySet(
            can_manage_users=True,
            can_manage_organizations=True,
            can_view_analytics=True,
            can_manage_compliance=True,
            can_manage_incidents=True,
            can_manage_clients=False,
            can_access_audit_logs=True,
            can_manage_settings=True,
            can_export_data=True,
            can_create_reports=True,
        ),
        OrgRole.ORG_ADMIN: CapabilitySet(
            can_manage_users=True,
            can_view_analytics=True,
            can_manage_compliance=True,
            can_manage_incidents=True,
            can_manage_clients=True,
            can_access_audit_logs=True,
            can_manage_settings=True,
            can_export_data=True,
            can_create_reports=True,
        ),
        OrgRole.ORG_MANAGER: CapabilitySet(
            can_view_analytics=True,
            can_manage_compliance=True,
            can_manage_incidents=True,
            can_manage_clients=True,
            can_export_data=True,
            can_create_reports=True,
        ),
        OrgRole.ORG_ANALYST: CapabilitySet(
            can_view_analytics=True,
            can_export_data=True,
            can_create_reports=True,
        ),
        OrgRole.ORG_VIEWER: CapabilitySet(),
        OrgRole.AUDITOR: CapabilitySet(
            can_view_analytics=True,
            can_access_audit_logs=True,
            can_export_data=True,
            can_create_reports=True,
        ),
        OrgRole.CHANNEL_PARTNER: CapabilitySet(
            can_view_analytics=True,
            can_manage_compliance=True,
            can_manage_incidents=True,
            can_manage_clients=True,
            can_export_data=True,
            can_create_reports=True,
        ),
    }
)


def capabilities_for(role: Optional[str]) -> CapabilitySet:
    """Return the capability set for ``role``, defaulting to the least privileged."""

    parsed = OrgRole.parse(role) if role is not None else None
    if parsed is None:
        return CAPABILITY_TABLE[LEAST_PRIVILEGED_ROLE]
    return CAPABILITY_TABLE.get(parsed, CAPABILITY_TABLE[LEAST_PRIVILEGED_ROLE])


__all__ = ["CAPABILITY_TABLE", "capabilities_for"]
