"""Tests for ClerkClient retry, rate-limit and breaker behavior."""

import json
from unittest.mock import Mock

import pytest
import requests

from adapters.providers.clerk import ClerkClient, IdentityMembership, IdentityUser, normalize_provider_role
from adapters.providers.exceptions import (
    IdentityNotFoundError,
    IdentityProviderError,
    ProviderUnavailableError,
    RateLimitedError,
)
from app_platform.config.identity import IdentityProviderConfig
from app_platform.utils.circuit_breaker import BreakerState, CircuitBreaker


def _response(status: int, payload=None, headers=None) -> Mock:
    response = Mock()
    response.status_code = status
    response.headers = headers or {}
    response.content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    response.json.return_value = payload
    return response


@pytest.fixture
def config() -> IdentityProviderConfig:
    return IdentityProviderConfig(secret_key="sk_test", api_url="https://api.clerk.test/v1", retries=2, rps=1000, burst=100)


@pytest.fixture
def session() -> Mock:
    return Mock(spec=requests.Session)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def client(config, session, sleeps) -> ClerkClient:
    return ClerkClient(config, session, breaker=CircuitBreaker(failure_threshold=3), sleep=sleeps.append)


USER_PAYLOAD = {
    "id": "user_1",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "primary_email_address_id": "e2",
    "email_addresses": [
        {"id": "e1", "email_address": "old@example.com"},
        {"id": "e2", "email_address": "ada@example.com"},
    ],
    "public_metadata": {"session": {"schema_version": 2}},
    "two_factor_enabled": True,
}


class TestClerkClient:
    def test_get_user(self, client, session):
        session.request.return_value = _response(200, USER_PAYLOAD)

        user = client.get_user("user_1")

        assert isinstance(user, IdentityUser)
        assert user.email == "ada@example.com"
        assert user.two_factor_enabled is True
        method, url = session.request.call_args.args
        assert (method, url) == ("GET", "https://api.clerk.test/v1/users/user_1")
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer sk_test"

    def test_list_user_memberships_normalizes_roles(self, client, session):
        session.request.return_value = _response(
            200,
            {
                "data": [
                    {"organization": {"id": "org_1"}, "public_user_data": {"user_id": "user_1"}, "role": "org:admin"},
                    {"organization": {"id": "org_2"}, "public_user_data": {"user_id": "user_1"}, "role": "org:member"},
                    {"organization": {}, "role": "org:admin"},
                ]
            },
        )

        memberships = client.list_user_memberships("user_1")

        assert memberships == [
            IdentityMembership(org_id="org_1", user_id="user_1", role="org_admin"),
            IdentityMembership(org_id="org_2", user_id="user_1", role="org_viewer"),
        ]

    def test_update_public_metadata_patches(self, client, session):
        session.request.return_value = _response(200, {"id": "user_1"})

        client.update_public_metadata("user_1", {"session": {"a": 1}})

        method, url = session.request.call_args.args
        assert method == "PATCH"
        assert url.endswith("/users/user_1/metadata")
        assert session.request.call_args.kwargs["json"] == {"public_metadata": {"session": {"a": 1}}}

    def test_429_is_raised_without_retry(self, client, session, sleeps):
        session.request.return_value = _response(429, {"errors": []}, headers={"Retry-After": "7"})

        with pytest.raises(RateLimitedError) as excinfo:
            client.get_user("user_1")

        assert excinfo.value.retry_after_s == 7.0
        assert session.request.call_count == 1
        assert sleeps == []
        assert client.breaker.state is BreakerState.CLOSED

    def test_404_is_not_found(self, client, session):
        session.request.return_value = _response(404, {"errors": []})

        with pytest.raises(IdentityNotFoundError):
            client.get_organization("org_missing")

        assert session.request.call_count == 1

    def test_5xx_is_retried_then_succeeds(self, client, session, sleeps):
        session.request.side_effect = [_response(502), _response(503), _response(200, USER_PAYLOAD)]

        assert client.get_user("user_1").id == "user_1"
        assert session.request.call_count == 3
        assert sleeps == [0.1, 0.2]

    def test_5xx_exhausts_retries(self, client, session):
        session.request.return_value = _response(500)

        with pytest.raises(IdentityProviderError) as excinfo:
            client.get_user("user_1")

        assert excinfo.value.status_code == 500
        assert session.request.call_count == 3

    def test_network_errors_are_retried(self, client, session):
        session.request.side_effect = [requests.ConnectionError("reset"), _response(200, USER_PAYLOAD)]
        assert client.get_user("user_1").id == "user_1"

    def test_4xx_is_not_retried(self, client, session):
        session.request.return_value = _response(422, {"errors": []})

        with pytest.raises(IdentityProviderError) as excinfo:
            client.get_user("user_1")

        assert excinfo.value.status_code == 422
        assert session.request.call_count == 1

    def test_open_breaker_refuses_calls(self, client, session):
        session.request.return_value = _response(500)
        with pytest.raises(IdentityProviderError):
            client.get_user("user_1")
        assert client.breaker.state is BreakerState.OPEN

        with pytest.raises(ProviderUnavailableError) as excinfo:
            client.get_user("user_1")

        assert excinfo.value.breaker_open is True
        assert session.request.call_count == 3

    def test_unconfigured_client_is_unavailable(self, session):
        client = ClerkClient(IdentityProviderConfig(secret_key=None), session)

        assert client.enabled is False
        with pytest.raises(ProviderUnavailableError):
            client.get_user("user_1")
        session.request.assert_not_called()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("org:admin", "org_admin"),
        ("org:member", "org_viewer"),
        ("admin", "org_admin"),
        ("org:org_manager", "org_manager"),
        ("auditor", "auditor"),
        ("org:custom_role", "org_viewer"),
        (None, "org_viewer"),
    ],
)
def test_normalize_provider_role(raw, expected):
    assert normalize_provider_role(raw) == expected
