"""Tests for IdentityBridge push/pull semantics."""

import pytest

from adapters.cache.identity_metadata import IdentityMetadataSnapshotStore
from adapters.cache.redis.snapshot_store import SnapshotStoreUnavailableError
from adapters.providers.exceptions import IdentityProviderError, ProviderUnavailableError, RateLimitedError
from application.session.bridge import BridgeResult, IdentityBridge, SkipReason
from application.session.builder import SessionBuilder
from app_platform.utils.circuit_breaker import BreakerOpenError


@pytest.fixture
def snapshot(seeded, users_repo, orgs_repo, clock):
    return SessionBuilder(orgs_repo, time_func=clock).build(users_repo.get_by_id("u1").data)


class TestIdentityBridge:
    def test_pull_returns_what_was_pushed(self, snapshot_store, snapshot):
        bridge = IdentityBridge(snapshot_store)

        assert bridge.push("u1", snapshot) == BridgeResult.stored()
        assert bridge.pull("u1") == snapshot

    def test_pull_of_unknown_user_is_absent(self, snapshot_store):
        assert IdentityBridge(snapshot_store).pull("nobody") is None

    @pytest.mark.parametrize(
        "error, reason",
        [
            (RateLimitedError(), SkipReason.RATE_LIMITED),
            (BreakerOpenError("breaker_open"), SkipReason.BREAKER_OPEN),
            (ProviderUnavailableError("open", breaker_open=True), SkipReason.BREAKER_OPEN),
            (ProviderUnavailableError("not configured"), SkipReason.UNAVAILABLE),
            (SnapshotStoreUnavailableError("down"), SkipReason.UNAVAILABLE),
        ],
    )
    def test_push_skips_instead_of_raising(self, snapshot_store, snapshot, error, reason):
        snapshot_store.write_error = error

        result = IdentityBridge(snapshot_store).push("u1", snapshot)

        assert result.written is False
        assert result.reason is reason
        assert result.to_dict() == {"written": False, "reason": reason.value}

    def test_other_provider_errors_propagate_on_push(self, snapshot_store, snapshot):
        snapshot_store.write_error = IdentityProviderError("bad request", status_code=400)
        with pytest.raises(IdentityProviderError):
            IdentityBridge(snapshot_store).push("u1", snapshot)

    def test_pull_failures_are_cache_misses(self, snapshot_store, snapshot):
        bridge = IdentityBridge(snapshot_store)
        bridge.push("u1", snapshot)

        snapshot_store.read_error = RateLimitedError()
        assert bridge.pull("u1") is None

        snapshot_store.read_error = SnapshotStoreUnavailableError("down")
        assert bridge.pull("u1") is None

    def test_undecodable_payload_is_a_cache_miss(self, snapshot_store):
        snapshot_store.payloads["u1"] = {"schema_version": 2, "user": {}, "cache": {}}
        assert IdentityBridge(snapshot_store).pull("u1") is None


    def test_discard_removes_snapshot(self, snapshot_store, snapshot):
        bridge = IdentityBridge(snapshot_store)
        bridge.push("u1", snapshot)

        assert bridge.discard("u1").written is True
        assert bridge.pull("u1") is None

    def test_discard_skips_when_store_unavailable(self, snapshot_store):
        snapshot_store.write_error = SnapshotStoreUnavailableError("down")
        assert IdentityBridge(snapshot_store).discard("u1") == BridgeResult.skipped(SkipReason.UNAVAILABLE)

class TestIdentityMetadataStore:
    def test_snapshot_lives_under_one_metadata_key(self, identity, snapshot):
        identity.add_user("u1", public_metadata={"onboarded": True})
        bridge = IdentityBridge(IdentityMetadataSnapshotStore(identity, metadata_key="session"))

        bridge.push("u1", snapshot)

        metadata = identity.users["u1"].public_metadata
        assert metadata["onboarded"] is True
        assert metadata["session"]["user"]["id"] == "u1"
        assert bridge.pull("u1") == snapshot

    def test_missing_provider_user_is_a_cache_miss(self, identity):
        bridge = IdentityBridge(IdentityMetadataSnapshotStore(identity))
        assert bridge.pull("ghost") is None

    def test_discard_drops_only_the_session_key(self, identity, snapshot):
        identity.add_user("u1", public_metadata={"onboarded": True})
        bridge = IdentityBridge(IdentityMetadataSnapshotStore(identity))
        bridge.push("u1", snapshot)

        bridge.discard("u1")

        assert identity.users["u1"].public_metadata == {"onboarded": True}

    def test_discard_for_deleted_provider_user(self, identity):
        assert IdentityBridge(IdentityMetadataSnapshotStore(identity)).discard("ghost").written is True

    def test_non_object_metadata_is_ignored(self, identity):
        identity.add_user("u1", public_metadata={"session": "corrupt"})
        assert IdentityMetadataSnapshotStore(identity).read("u1") is None
