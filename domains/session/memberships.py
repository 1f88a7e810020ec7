"""Rules over a user's membership list.

A user holds at most one primary membership. Every function returns a new
list and leaves its input untouched.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .exceptions import MembershipNotFoundError
from .models import OrganizationMembership


def find_membership(
    memberships: Iterable[OrganizationMembership], org_id: str
) -> Optional[OrganizationMembership]:
    for membership in memberships:
        if membership.org_id == org_id:
            return membership
    return None


def primary_membership(
    memberships: Iterable[OrganizationMembership],
) -> Optional[OrganizationMembership]:
    for membership in memberships:
        if membership.is_primary:
            return membership
    return None


def normalize_primary(
    memberships: Sequence[OrganizationMembership],
) -> List[OrganizationMembership]:
    """Keep only the first primary flag found."""

    seen_primary = False
    result: List[OrganizationMembership] = []
    for membership in memberships:
        if membership.is_primary and not seen_primary:
            seen_primary = True
            result.append(replace(membership))
        else:
            result.append(replace(membership, is_primary=False))
    return result


def upsert_membership(
    memberships: Sequence[OrganizationMembership],
    org_id: str,
    role: str,
    permissions: Optional[Iterable[str]] = None,
    now_ms: Optional[int] = None,
) -> List[OrganizationMembership]:
    """Add or update the membership for ``org_id``.

    An existing entry keeps its primary flag and join time. A new entry becomes
    primary only when no other membership is primary.
    """

    perms = list(permissions or [])
    result: List[OrganizationMembership] = []
    updated = False
    for membership in normalize_primary(memberships):
        if membership.org_id == org_id:
            result.append(
                replace(membership, role=role, permissions=perms, updated_at=now_ms)
            )
            updated = True
        else:
            result.append(membership)

    if not updated:
        result.append(
            OrganizationMembership(
                org_id=org_id,
                role=role,
                permissions=perms,
                is_primary=primary_membership(result) is None,
                joined_at=now_ms,
                updated_at=now_ms,
            )
        )
    return result


def remove_membership(
    memberships: Sequence[OrganizationMembership], org_id: str
) -> List[OrganizationMembership]:
    """Drop the membership for ``org_id``, promoting the first remaining entry if needed."""

    removed = find_membership(memberships, org_id)
    remaining = [replace(m) for m in memberships if m.org_id != org_id]
    if removed is not None and removed.is_primary and remaining:
        if primary_membership(remaining) is None:
            remaining[0] = replace(remaining[0], is_primary=True)
    return normalize_primary(remaining)


def set_primary(
    memberships: Sequence[OrganizationMembership], org_id: str
) -> List[OrganizationMembership]:
    """Make ``org_id`` the only primary membership."""

    if find_membership(memberships, org_id) is None:
        raise MembershipNotFoundError(org_id)
    return [replace(m, is_primary=(m.org_id == org_id)) for m in memberships]


__all__ = [
    "find_membership",
    "normalize_primary",
    "primary_membership",
    "remove_membership",
    "set_primary",
    "upsert_membership",
]
