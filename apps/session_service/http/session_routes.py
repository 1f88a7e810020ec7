"""Session routes served by the session service.

Collaborators are attached per request by ``apps.session_service.main`` as
``request.session_runtime``; domain errors are translated to JSON responses by
``app_platform.errors.api``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Blueprint, g, jsonify, request

from app_platform.errors.api import make_error
from application.session.bridge import BridgeResult
from domains.session.serializers import snapshot_to_dict

from apps.session_service.http.auth import identity_mismatch, require_session
from apps.session_service.http.schemas import (
    parse_refresh,
    parse_switch_client,
    parse_switch_organization,
)

session_bp = Blueprint("session_service", __name__)

logger = logging.getLogger(__name__)


def _sessions():
    return request.session_runtime.session_service


def _cache_body(result: Optional[BridgeResult]) -> dict:
    if result is None:
        return {"cache": None}
    return {"cache": result.to_dict()}


@session_bp.route("/session", methods=["GET"])
@require_session
def get_session() -> Any:
    snapshot = _sessions().process_login(g.identity_id)
    return jsonify(snapshot_to_dict(snapshot)), 200


@session_bp.route("/session/refresh", methods=["POST"])
@require_session
def refresh_session() -> Any:
    schema = parse_refresh(request.get_json(silent=True))
    forbidden = identity_mismatch(schema.identity_id)
    if forbidden is not None:
        return forbidden

    snapshot = _sessions().process_login(schema.identity_id, force_refresh=True)
    logger.info("Session refreshed on request", extra={"user_id": schema.identity_id})
    return jsonify(snapshot_to_dict(snapshot)), 200


@session_bp.route("/session/switch-organization", methods=["POST"])
@require_session
def switch_organization() -> Any:
    schema = parse_switch_organization(request.get_json(silent=True))
    forbidden = identity_mismatch(schema.identity_id)
    if forbidden is not None:
        return forbidden

    result = _sessions().switch_primary_organization(schema.identity_id, schema.org_id)
    body = {"status": "ok", "primary_organization_id": schema.org_id}
    body.update(_cache_body(result))
    return jsonify(body), 200


@session_bp.route("/session/switch-client", methods=["POST"])
@require_session
def switch_client() -> Any:
    schema = parse_switch_client(request.get_json(silent=True))
    forbidden = identity_mismatch(schema.identity_id)
    if forbidden is not None:
        return forbidden

    result = _sessions().switch_client_context(schema.identity_id, schema.client_id)
    if result is None:
        return make_error("Client not available in current session", "NOT_FOUND")
    body = {"status": "ok", "client_id": schema.client_id}
    body.update(_cache_body(result))
    return jsonify(body), 200


@session_bp.route("/session/invalidate", methods=["POST"])
@require_session
def invalidate_session() -> Any:
    result = _sessions().invalidate_session_cache(g.identity_id)
    body = {"status": "ok", "invalidated": result is not None}
    body.update(_cache_body(result))
    return jsonify(body), 200


@session_bp.route("/organizations/<org_id>/quick", methods=["GET"])
@require_session
def organization_quick(org_id: str) -> Any:
    data = _sessions().get_organization_quick_data(org_id, g.identity_id)
    if data is None:
        return make_error("Organization not found", "NOT_FOUND")
    return jsonify(data.to_dict()), 200


__all__ = ["session_bp"]
