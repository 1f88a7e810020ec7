"""Bearer session-token enforcement for session-service routes."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Optional

from flask import g, jsonify, request

from adapters.providers.exceptions import ProviderUnavailableError, TokenVerificationError
from app_platform.utils.circuit_breaker import BreakerOpenError

logger = logging.getLogger(__name__)


def _bearer_token() -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token_value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token_value.strip()
    return token or None


def require_session(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Verify the caller's session token and expose ``g.identity_id``."""

    @wraps(fn)
    def _wrapper(*args: Any, **kwargs: Any) -> Any:
        runtime = getattr(request, "session_runtime", None)
        verifier = getattr(runtime, "token_verifier", None)
        if verifier is None:
            logger.error("Session token verifier not configured")
            return jsonify({"error": "Authentication unavailable", "code": "SERVICE_DISABLED"}), 503

        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Missing bearer token", "code": "UNAUTHORIZED"}), 401

        try:
            claims = verifier.verify(token)
        except TokenVerificationError as exc:
            logger.info("Session token rejected", extra={"error": str(exc)})
            return jsonify({"error": "Invalid session token", "code": "UNAUTHORIZED"}), 401
        except (BreakerOpenError, ProviderUnavailableError) as exc:
            logger.warning("Signing keys unavailable: %s", exc)
            return jsonify({"error": "Authentication unavailable", "code": "UNAVAILABLE"}), 503

        g.identity_id = claims["sub"]
        g.session_claims = claims
        return fn(*args, **kwargs)

    return _wrapper


def identity_mismatch(identity_id: str) -> Optional[Any]:
    """Return a 403 response when a body identity differs from the token subject."""

    if identity_id != g.identity_id:
        logger.warning(
            "Identity mismatch between token and request body",
            extra={"token_subject": g.identity_id, "requested": identity_id},
        )
        return jsonify({"error": "Forbidden", "code": "FORBIDDEN"}), 403
    return None


__all__ = ["identity_mismatch", "require_session"]
