"""Session service composition root.

Entry points:
    - :func:`create_app` constructs and wires a Flask application instance.
    - :func:`bootstrap_runtime` builds the underlying service dependencies.
    - :func:`register_healthcheck` exposes a lightweight readiness endpoint.

All runtime state is carried inside the Flask application factory; no
module-level singletons are required, keeping the service safe to run inside
Gunicorn or Cloud Run where multiple worker processes import the module
concurrently.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import redis
import requests

from flask import Flask, jsonify, request

from adapters.cache.identity_metadata import IdentityMetadataSnapshotStore
from adapters.cache.redis.snapshot_store import RedisSnapshotStore, SnapshotStore
from adapters.db.firestore.organization_store import OrganizationRepository
from adapters.db.firestore.service_factory import FirestoreServiceFactory
from adapters.db.firestore.users_store import UsersRepository
from adapters.providers.clerk import ClerkClient
from adapters.providers.token_verifier import SessionTokenVerifier
from app_platform.config import BreakerConfig, IdentityProviderConfig, SessionConfig
from app_platform.errors.api import register_error_handlers
from app_platform.utils.circuit_breaker import CircuitBreaker
from application.session.bridge import IdentityBridge
from application.session.builder import SessionBuilder
from application.session.cache_gate import CacheGate
from application.session.service import SessionService
from application.session.sync import IdentitySync

from apps.session_service.services import IdentityEventDispatcher, WebhookVerifier

logger = logging.getLogger("session.main")


@dataclass(slots=True)
class SessionRuntime:
    """Container for the session service runtime dependencies."""

    session_config: SessionConfig
    identity_config: IdentityProviderConfig
    breaker_config: BreakerConfig
    http_session: requests.Session
    breaker: CircuitBreaker
    firestore_factory: FirestoreServiceFactory
    users: UsersRepository
    organizations: OrganizationRepository
    identity_client: Any
    snapshot_store: SnapshotStore
    bridge: IdentityBridge
    gate: CacheGate
    builder: SessionBuilder
    sync: IdentitySync
    session_service: SessionService
    webhook_verifier: WebhookVerifier
    dispatcher: IdentityEventDispatcher
    token_verifier: Optional[Any] = None


def create_app(runtime: Optional[SessionRuntime] = None) -> Flask:
    """Construct the session Flask application.

    Parameters
    ----------
    runtime:
        Optional pre-built runtime; tests pass one wired to in-memory fakes.
    """

    log_level = os.getenv("SESSION_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
    logger.info("Creating session service application")

    app = Flask(__name__)

    runtime = runtime or bootstrap_runtime()
    app.config.setdefault("SESSION_RUNTIME", runtime)

    register_healthcheck(app, runtime)
    register_error_handlers(app)
    _register_request_hooks(app, runtime)
    _register_blueprints(app)

    return app


def _build_snapshot_store(config: SessionConfig, identity_client: ClerkClient) -> SnapshotStore:
    if config.cache_backend == "redis" and config.redis_url:
        client = redis.Redis.from_url(
            config.redis_url,
            socket_timeout=1.0,
            socket_connect_timeout=1.0,
            retry_on_timeout=True,
        )
        logger.info("Session snapshots stored in Redis")
        return RedisSnapshotStore(client, ttl_s=config.redis_ttl_s)

    logger.info("Session snapshots stored in identity metadata", extra={"metadata_key": config.metadata_key})
    return IdentityMetadataSnapshotStore(identity_client, metadata_key=config.metadata_key)


def bootstrap_runtime(
    *,
    session_config: Optional[SessionConfig] = None,
    identity_config: Optional[IdentityProviderConfig] = None,
    breaker_config: Optional[BreakerConfig] = None,
    firestore_client: Optional[Any] = None,
    http_session: Optional[requests.Session] = None,
    identity_client: Optional[Any] = None,
    snapshot_store: Optional[SnapshotStore] = None,
    time_func: Callable[[], float] = time.time,
) -> SessionRuntime:
    """Initialize configuration and shared dependencies for the session service."""

    session_config = session_config or SessionConfig.from_env()
    identity_config = identity_config or IdentityProviderConfig.from_env()
    breaker_config = breaker_config or BreakerConfig.from_env()
    session_config.validate()
    identity_config.validate()

    if http_session is None:
        http_session = requests.Session()
        http_session.headers.update({"User-Agent": "org-session-service/1.0"})

    breaker = CircuitBreaker.from_config(breaker_config)

    firestore_factory = FirestoreServiceFactory(firestore_client, config=session_config, time_func=time_func)
    users = firestore_factory.get_users_service()
    organizations = firestore_factory.get_organization_service()

    identity_client = identity_client or ClerkClient(identity_config, http_session, breaker=breaker)
    if not identity_client.enabled:
        logger.warning("Identity provider client disabled; sync and metadata calls will be skipped")

    store = snapshot_store or _build_snapshot_store(session_config, identity_client)
    bridge = IdentityBridge(store)
    gate = CacheGate(staleness_seconds=session_config.staleness_seconds, time_func=time_func)
    builder = SessionBuilder(organizations, time_func=time_func)
    sync = IdentitySync(identity_client, users, organizations, time_func=time_func)
    session_service = SessionService(
        users=users,
        organizations=organizations,
        builder=builder,
        gate=gate,
        bridge=bridge,
        sync=sync,
    )

    token_verifier: Optional[SessionTokenVerifier] = None
    if identity_config.verification_enabled:
        token_verifier = SessionTokenVerifier.from_config(identity_config, http_session, breaker=CircuitBreaker.from_config(breaker_config))

    webhook_verifier = WebhookVerifier(
        identity_config.webhook_secret,
        tolerance_s=identity_config.webhook_tolerance_s,
        time_func=time_func,
    )
    dispatcher = IdentityEventDispatcher(sync=sync, sessions=session_service)

    runtime = SessionRuntime(
        session_config=session_config,
        identity_config=identity_config,
        breaker_config=breaker_config,
        http_session=http_session,
        breaker=breaker,
        firestore_factory=firestore_factory,
        users=users,
        organizations=organizations,
        identity_client=identity_client,
        snapshot_store=store,
        bridge=bridge,
        gate=gate,
        builder=builder,
        sync=sync,
        session_service=session_service,
        webhook_verifier=webhook_verifier,
        dispatcher=dispatcher,
        token_verifier=token_verifier,
    )

    logger.info(
        "Session service runtime initialized",
        extra={
            "cache_backend": session_config.cache_backend,
            "staleness_hours": session_config.staleness_hours,
            "identity_enabled": identity_client.enabled,
            "token_verification": token_verifier is not None,
            "webhooks_enabled": webhook_verifier.enabled,
        },
    )

    return runtime


def register_healthcheck(app: Flask, runtime: SessionRuntime) -> None:
    """Expose a simple readiness endpoint."""

    @app.route("/healthz", methods=["GET"])
    def _healthcheck():
        firestore_status = runtime.firestore_factory.health_check()
        healthy = firestore_status.get("status") == "healthy"
        status = {
            "status": "ok" if healthy else "degraded",
            "firestore": firestore_status.get("status"),
            "identity_provider": "enabled" if runtime.identity_client.enabled else "disabled",
            "breaker": runtime.breaker.snapshot(),
            "cache_backend": runtime.session_config.cache_backend,
        }
        return jsonify(status), 200 if healthy else 503


def _register_request_hooks(app: Flask, runtime: SessionRuntime) -> None:
    """Attach request lifecycle hooks so blueprints can pull dependencies."""

    @app.before_request
    def _attach_runtime_to_request() -> None:
        request.session_runtime = runtime


def _register_blueprints(app: Flask) -> None:
    """Register HTTP route blueprints."""

    from apps.session_service.http import session_bp, sync_bp, webhook_bp  # noqa: WPS433

    app.register_blueprint(session_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(webhook_bp)


def main() -> None:  # pragma: no cover - CLI entrypoint
    app = create_app()
    port = int(os.getenv("SESSION_SERVICE_PORT", "8080"))
    host = os.getenv("SESSION_SERVICE_HOST", "0.0.0.0")
    logger.info("Starting session service on %s:%s", host, port)
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
