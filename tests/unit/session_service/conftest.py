"""Fixtures for Flask route tests of the session service."""

from __future__ import annotations

import base64
from unittest.mock import Mock

import pytest
import requests

from app_platform.config import BreakerConfig, IdentityProviderConfig, SessionConfig
from apps.session_service.main import bootstrap_runtime, create_app

from tests.utils.session_http import StubTokenVerifier

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"route-test-signing-key").decode("ascii")


@pytest.fixture
def token_verifier() -> StubTokenVerifier:
    return StubTokenVerifier()


@pytest.fixture
def runtime(seeded, identity, snapshot_store, clock, token_verifier):
    runtime = bootstrap_runtime(
        session_config=SessionConfig(),
        identity_config=IdentityProviderConfig(webhook_secret=WEBHOOK_SECRET),
        breaker_config=BreakerConfig(),
        firestore_client=seeded,
        http_session=Mock(spec=requests.Session),
        identity_client=identity,
        snapshot_store=snapshot_store,
        time_func=clock,
    )
    runtime.token_verifier = token_verifier
    return runtime


@pytest.fixture
def app(runtime):
    app = create_app(runtime)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client
