"""Tests for webhook signature verification and identity event dispatch."""

import base64
import json
from unittest.mock import Mock

import pytest

from apps.session_service.services import (
    IdentityEventDispatcher,
    InvalidWebhookError,
    ServiceConfigurationError,
    WebhookVerifier,
)
from tests.utils.fake_identity import FrozenClock

SECRET = "whsec_" + base64.b64encode(b"super-secret-signing-key").decode("ascii")


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def verifier(clock):
    return WebhookVerifier(SECRET, tolerance_s=300, time_func=clock)


def _headers(verifier, body: bytes, *, msg_id="msg_1", timestamp=None, clock=None):
    ts = int(timestamp if timestamp is not None else clock.time())
    return {"svix-id": msg_id, "svix-timestamp": str(ts), "svix-signature": verifier.sign(msg_id, ts, body)}


class TestWebhookVerifier:
    def test_valid_delivery_returns_event(self, verifier, clock):
        body = json.dumps({"type": "user.created", "data": {"id": "user_1"}}).encode()

        event = verifier.verify(_headers(verifier, body, clock=clock), body)

        assert event["type"] == "user.created"

    def test_any_presented_signature_may_match(self, verifier, clock):
        body = b'{"type": "user.created"}'
        headers = _headers(verifier, body, clock=clock)
        headers["svix-signature"] = f"v1,bm90LXRoaXMtb25l {headers['svix-signature']}"

        assert verifier.verify(headers, body)["type"] == "user.created"

    def test_secret_without_prefix_is_accepted(self, clock):
        plain = WebhookVerifier(SECRET[len("whsec_"):], time_func=clock)
        prefixed = WebhookVerifier(SECRET, time_func=clock)

        assert plain.sign("m", 1, b"{}") == prefixed.sign("m", 1, b"{}")

    def test_tampered_body_is_rejected(self, verifier, clock):
        body = b'{"type": "user.created"}'
        headers = _headers(verifier, body, clock=clock)

        with pytest.raises(InvalidWebhookError, match="signature"):
            verifier.verify(headers, b'{"type": "user.deleted"}')

    def test_timestamp_outside_tolerance(self, verifier, clock):
        body = b'{"type": "user.created"}'
        headers = _headers(verifier, body, timestamp=clock.time() - 301)

        with pytest.raises(InvalidWebhookError, match="tolerance"):
            verifier.verify(headers, body)

    @pytest.mark.parametrize("missing", ["svix-id", "svix-timestamp", "svix-signature"])
    def test_missing_headers(self, verifier, clock, missing):
        body = b'{"type": "user.created"}'
        headers = _headers(verifier, body, clock=clock)
        del headers[missing]

        with pytest.raises(InvalidWebhookError):
            verifier.verify(headers, body)

    def test_event_without_type(self, verifier, clock):
        body = b'{"data": {}}'
        with pytest.raises(InvalidWebhookError, match="type"):
            verifier.verify(_headers(verifier, body, clock=clock), body)

    def test_unconfigured_secret(self, clock):
        verifier = WebhookVerifier(None, time_func=clock)

        assert verifier.enabled is False
        with pytest.raises(ServiceConfigurationError):
            verifier.verify({}, b"{}")

    def test_invalid_secret(self):
        with pytest.raises(ServiceConfigurationError):
            WebhookVerifier("whsec_not base64!")


@pytest.fixture
def sync():
    return Mock()


@pytest.fixture
def sessions():
    return Mock()


@pytest.fixture
def dispatcher(sync, sessions):
    return IdentityEventDispatcher(sync=sync, sessions=sessions)


def _membership(role="org:admin"):
    return {
        "organization": {"id": "org_1"},
        "public_user_data": {"user_id": "user_1"},
        "role": role,
        "permissions": ["org:sys_memberships:read"],
    }


class TestIdentityEventDispatcher:
    def test_user_created(self, dispatcher, sync, sessions):
        assert dispatcher.dispatch({"type": "user.created", "data": {"id": "user_1"}}) is True
        sync.sync_user.assert_called_once_with("user_1")
        sessions.invalidate_session_cache.assert_not_called()

    def test_user_updated_invalidates_cache(self, dispatcher, sync, sessions):
        dispatcher.dispatch({"type": "user.updated", "data": {"id": "user_1"}})
        sync.sync_user.assert_called_once_with("user_1")
        sessions.invalidate_session_cache.assert_called_once_with("user_1")

    def test_user_deleted_discards_snapshot(self, dispatcher, sync, sessions):
        dispatcher.dispatch({"type": "user.deleted", "data": {"id": "user_1"}})
        sync.delete_user.assert_called_once_with("user_1")
        sessions.discard_session.assert_called_once_with("user_1")

    @pytest.mark.parametrize("event_type", ["organization.created", "organization.updated"])
    def test_organization_synced(self, dispatcher, sync, event_type):
        dispatcher.dispatch({"type": event_type, "data": {"id": "org_1"}})
        sync.sync_organization.assert_called_once_with("org_1")

    def test_organization_deleted(self, dispatcher, sync):
        dispatcher.dispatch({"type": "organization.deleted", "data": {"id": "org_1"}})
        sync.delete_organization.assert_called_once_with("org_1")

    def test_membership_created(self, dispatcher, sync, sessions):
        dispatcher.dispatch({"type": "organizationMembership.created", "data": _membership()})

        sync.sync_membership.assert_called_once_with("user_1", "org_1", "org:admin", ["org:sys_memberships:read"])
        sessions.invalidate_session_cache.assert_called_once_with("user_1")

    def test_membership_deleted(self, dispatcher, sync, sessions):
        dispatcher.dispatch({"type": "organizationMembership.deleted", "data": _membership()})

        sync.remove_membership.assert_called_once_with("user_1", "org_1")
        sessions.invalidate_session_cache.assert_called_once_with("user_1")

    def test_session_created_warms_the_cache(self, dispatcher, sessions):
        dispatcher.dispatch({"type": "session.created", "data": {"user_id": "user_1"}})
        sessions.process_login.assert_called_once_with("user_1")

    def test_session_created_swallows_warmup_failures(self, dispatcher, sessions):
        sessions.process_login.side_effect = RuntimeError("firestore down")

        assert dispatcher.dispatch({"type": "session.created", "data": {"user_id": "user_1"}}) is True

    def test_unknown_event_is_ignored(self, dispatcher, sync, sessions):
        assert dispatcher.dispatch({"type": "email.created", "data": {}}) is False
        assert sync.method_calls == []
        assert sessions.method_calls == []

    def test_missing_ids_are_rejected(self, dispatcher, sync):
        with pytest.raises(InvalidWebhookError):
            dispatcher.dispatch({"type": "user.created", "data": {}})
        with pytest.raises(InvalidWebhookError):
            dispatcher.dispatch({"type": "organizationMembership.created", "data": {"organization": {"id": "org_1"}}})
        sync.sync_user.assert_not_called()

    def test_handler_errors_propagate(self, dispatcher, sync):
        sync.sync_user.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            dispatcher.dispatch({"type": "user.created", "data": {"id": "user_1"}})
