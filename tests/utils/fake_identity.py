"""In-memory identity-provider and snapshot-store doubles."""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from adapters.providers.clerk import IdentityMembership, IdentityOrganization, IdentityUser
from adapters.providers.exceptions import IdentityNotFoundError


class FakeIdentityClient:
    """Implements the ``ClerkClient`` surface used by sync and the metadata store.

    ``fail_with`` maps a method name to an exception raised on every call.
    """

    enabled = True

    def __init__(self) -> None:
        self.users: Dict[str, IdentityUser] = {}
        self.organizations: Dict[str, IdentityOrganization] = {}
        self.memberships: Dict[str, List[IdentityMembership]] = {}
        self.fail_with: Dict[str, Exception] = {}
        self.calls: List[str] = []

    # seeding --------------------------------------------------------------

    def add_user(self, user_id: str, **fields: Any) -> IdentityUser:
        user = IdentityUser(id=user_id, **fields)
        self.users[user_id] = user
        return user

    def add_organization(self, org_id: str, **fields: Any) -> IdentityOrganization:
        org = IdentityOrganization(id=org_id, **fields)
        self.organizations[org_id] = org
        return org

    def add_membership(self, user_id: str, org_id: str, role: str = "org_viewer", permissions: Optional[List[str]] = None) -> None:
        payload = {
            "organization": {"id": org_id},
            "public_user_data": {"user_id": user_id},
            "role": role,
            "permissions": list(permissions or []),
        }
        self.memberships.setdefault(user_id, []).append(IdentityMembership.from_payload(payload))

    # client surface -------------------------------------------------------

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        error = self.fail_with.get(name)
        if error is not None:
            raise error

    def get_user(self, user_id: str) -> IdentityUser:
        self._enter("get_user")
        if user_id not in self.users:
            raise IdentityNotFoundError(f"user {user_id} not found")
        return replace(self.users[user_id], public_metadata=copy.deepcopy(self.users[user_id].public_metadata))

    def list_users(self, *, limit: int = 100, offset: int = 0) -> List[IdentityUser]:
        self._enter("list_users")
        return list(self.users.values())[offset: offset + limit]

    def list_user_memberships(self, user_id: str, *, limit: int = 100) -> List[IdentityMembership]:
        self._enter("list_user_memberships")
        return list(self.memberships.get(user_id, []))[:limit]

    def get_public_metadata(self, user_id: str) -> Dict[str, Any]:
        self._enter("get_public_metadata")
        if user_id not in self.users:
            raise IdentityNotFoundError(f"user {user_id} not found")
        return copy.deepcopy(self.users[user_id].public_metadata)

    def update_public_metadata(self, user_id: str, metadata: Mapping[str, Any]) -> None:
        self._enter("update_public_metadata")
        if user_id not in self.users:
            raise IdentityNotFoundError(f"user {user_id} not found")
        current = self.users[user_id].public_metadata
        for key, value in copy.deepcopy(dict(metadata)).items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = value

    def get_organization(self, org_id: str) -> IdentityOrganization:
        self._enter("get_organization")
        if org_id not in self.organizations:
            raise IdentityNotFoundError(f"organization {org_id} not found")
        return self.organizations[org_id]


class MemorySnapshotStore:
    """Dict-backed snapshot store with optional failure injection."""

    def __init__(self) -> None:
        self.payloads: Dict[str, Dict[str, Any]] = {}
        self.write_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.writes = 0

    def read(self, user_id: str) -> Optional[Mapping[str, Any]]:
        if self.read_error is not None:
            raise self.read_error
        payload = self.payloads.get(user_id)
        return copy.deepcopy(payload) if payload is not None else None

    def write(self, user_id: str, payload: Mapping[str, Any]) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes += 1
        self.payloads[user_id] = copy.deepcopy(dict(payload))

    def delete(self, user_id: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.payloads.pop(user_id, None)


@dataclass
class FrozenClock:
    """Mutable clock returned by the ``clock`` fixture."""

    epoch: float = 1_700_000_000.0

    def advance(self, seconds: float) -> None:
        self.epoch += seconds

    def time(self) -> float:
        return self.epoch

    def __call__(self) -> float:
        return self.epoch
