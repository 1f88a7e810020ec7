"""Central API error codes and registration helpers."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import jsonify
from werkzeug.exceptions import HTTPException

from adapters.db.firestore.base import (
    FirestoreError as FsError,
    NotFoundError as FsNotFoundError,
    PermissionError as FsPermissionError,
    ValidationError as FsValidationError,
)
from adapters.providers.exceptions import IdentityProviderError, ProviderUnavailableError, RateLimitedError
from app_platform.schemas import SchemaValidationError
from domains.session.exceptions import MembershipNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)


ERRORS: Dict[str, int] = {
    'INVALID_ARGUMENT': 400,
    'VALIDATION_ERROR': 400,
    'AUTH_ERROR': 401,
    'PERMISSION_DENIED': 403,
    'NOT_FOUND': 404,
    'USER_NOT_FOUND': 404,
    'MEMBERSHIP_NOT_FOUND': 404,
    'METHOD_NOT_ALLOWED': 405,
    'RATE_LIMITED': 429,
    'INTERNAL_ERROR': 500,
    'FIRESTORE_ERROR': 502,
    'UPSTREAM_ERROR': 502,
    'UNAVAILABLE': 503,
}


def make_error(message: str, code: str, **details: Any) -> Any:
    """Make an error response."""

    status = ERRORS.get(code, 500)
    payload = {'error': message, 'code': code}
    payload.update({k: v for k, v in details.items() if v is not None})
    return jsonify(payload), status


def register_error_handlers(app) -> None:
    """Register error handlers."""

    @app.errorhandler(404)
    def _h_404(_e):
        """Handle 404 errors."""

        return make_error('Not found', 'NOT_FOUND')

    @app.errorhandler(405)
    def _h_405(_e):
        """Handle 405 errors."""

        return make_error('Method not allowed', 'METHOD_NOT_ALLOWED')

    @app.errorhandler(Exception)
    def _h_exc(e: Exception):
        """Handle all other errors."""

        if isinstance(e, HTTPException):
            body, _status = make_error(e.description or e.name, 'INVALID_ARGUMENT' if (e.code or 500) < 500 else 'INTERNAL_ERROR')
            return body, e.code or 500
        if isinstance(e, SchemaValidationError):
            return make_error('Invalid payload', 'INVALID_ARGUMENT', details=list(e.errors) or str(e))
        if isinstance(e, UserNotFoundError):
            return make_error('User not found', 'USER_NOT_FOUND')
        if isinstance(e, MembershipNotFoundError):
            return make_error('Organization membership not found', 'MEMBERSHIP_NOT_FOUND')
        if isinstance(e, FsValidationError):
            return make_error(str(e), 'VALIDATION_ERROR')
        if isinstance(e, FsNotFoundError):
            return make_error('Resource not found', 'NOT_FOUND')
        if isinstance(e, FsPermissionError):
            return make_error('Permission denied', 'PERMISSION_DENIED')
        if isinstance(e, FsError):
            logger.error("Firestore error: %s", e)
            return make_error('Firestore error', 'FIRESTORE_ERROR')
        if isinstance(e, RateLimitedError):
            return make_error('Identity provider rate limited', 'RATE_LIMITED', retry_after_s=e.retry_after_s)
        if isinstance(e, ProviderUnavailableError):
            return make_error('Identity provider unavailable', 'UNAVAILABLE')
        if isinstance(e, IdentityProviderError):
            logger.error("Identity provider error: %s", e)
            return make_error('Identity provider error', 'UPSTREAM_ERROR')

        logger.exception("Unhandled request error")
        return make_error('Internal server error', 'INTERNAL_ERROR')


__all__ = ["ERRORS", "make_error", "register_error_handlers"]
