"""Top-level pytest configuration for the session service tests.

Every fixture here is in-memory: Firestore, the identity provider and the
snapshot store are replaced by the doubles in ``tests.utils``.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from adapters.db.firestore.organization_store import OrganizationRepository
from adapters.db.firestore.users_store import UsersRepository
from application.session.bridge import IdentityBridge
from application.session.builder import SessionBuilder
from application.session.cache_gate import CacheGate
from application.session.service import SessionService
from application.session.sync import IdentitySync

from tests.utils.fake_firestore import FakeFirestoreClient
from tests.utils.fake_identity import FakeIdentityClient, FrozenClock, MemorySnapshotStore


def pytest_configure(config: pytest.Config) -> None:  # pragma: no cover - configuration hook
    """Register global markers used across the repository."""

    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "http: Flask route tests")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Ensure sensible default markers based on collection context."""

    for item in items:
        if not any(marker.name == "integration" for marker in item.iter_markers()):
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def firestore_client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture
def users_repo(firestore_client: FakeFirestoreClient, clock: FrozenClock) -> UsersRepository:
    return UsersRepository(firestore_client, time_func=clock)


@pytest.fixture
def orgs_repo(firestore_client: FakeFirestoreClient, clock: FrozenClock) -> OrganizationRepository:
    return OrganizationRepository(firestore_client, time_func=clock)


@pytest.fixture
def identity() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture
def snapshot_store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def seeded(firestore_client: FakeFirestoreClient) -> FakeFirestoreClient:
    """User ``u1`` with memberships A (primary, org_admin) and B (org_viewer)."""

    firestore_client.seed("organizations", "A", {"name": "Acme Legal", "org_type": "law_firm", "plan": "professional", "seats": 10, "used_seats": 4})
    firestore_client.seed("organizations", "B", {"name": "Beta Corp", "org_type": "enterprise", "size": "large"})
    firestore_client.seed(
        "users",
        "u1",
        {
            "identity_id": "u1",
            "email": "u1@example.com",
            "first_name": "Uma",
            "last_name": "One",
            "organizations": [
                {"org_id": "A", "role": "org_admin", "permissions": ["reports:read"], "is_primary": True},
                {"org_id": "B", "role": "org_viewer", "permissions": [], "is_primary": False},
            ],
            "login_count": 3,
        },
    )
    return firestore_client


@pytest.fixture
def session_stack(
    seeded: FakeFirestoreClient,
    users_repo: UsersRepository,
    orgs_repo: OrganizationRepository,
    identity: FakeIdentityClient,
    snapshot_store: MemorySnapshotStore,
    clock: FrozenClock,
) -> Iterator[SessionService]:
    """A fully wired ``SessionService`` over the seeded fake stores."""

    sync = IdentitySync(identity, users_repo, orgs_repo, time_func=clock)
    service = SessionService(
        users=users_repo,
        organizations=orgs_repo,
        builder=SessionBuilder(orgs_repo, time_func=clock),
        gate=CacheGate(time_func=clock),
        bridge=IdentityBridge(snapshot_store),
        sync=sync,
    )
    yield service
