"""Manual identity-sync routes.

Callers may always resync their own user record from the identity provider;
every other action needs the ``can_manage_users`` capability on their session.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, g, jsonify, request

from app_platform.errors.api import make_error
from app_platform.schemas import SchemaValidationError, require_str

from apps.session_service.http.auth import require_session
from apps.session_service.http.schemas import SyncRequest, parse_sync_request

sync_bp = Blueprint("identity_sync", __name__)

logger = logging.getLogger(__name__)

_SELF_ACTIONS = ("sync-user",)


def _is_self_service(schema: SyncRequest) -> bool:
    return schema.action in _SELF_ACTIONS and schema.user_id == g.identity_id


def _can_manage_users() -> bool:
    snapshot = request.session_runtime.session_service.resolve_session(g.identity_id)
    return snapshot.capabilities.has("can_manage_users")


def _run(schema: SyncRequest) -> Any:
    sync = request.session_runtime.sync

    if schema.action == "sync-user":
        user = sync.sync_user(schema.user_id)
        if user is None:
            return make_error("User could not be synced", "NOT_FOUND")
        return jsonify({"status": "ok", "action": schema.action, "user_id": user.id}), 200

    if schema.action == "sync-organization":
        org = sync.sync_organization(schema.org_id)
        if org is None:
            return make_error("Organization could not be synced", "NOT_FOUND")
        return jsonify({"status": "ok", "action": schema.action, "org_id": org.id}), 200

    if schema.action == "sync-membership":
        user = sync.sync_membership(schema.user_id, schema.org_id, schema.role, schema.permissions)
        if user is None:
            return make_error("User not found", "USER_NOT_FOUND")
        request.session_runtime.session_service.invalidate_session_cache(schema.user_id)
        return jsonify({"status": "ok", "action": schema.action, "user_id": schema.user_id, "org_id": schema.org_id}), 200

    if schema.action == "sync-all":
        report = sync.sync_all(limit=schema.limit)
    else:
        report = sync.cleanup_deleted()
    return jsonify({"status": "ok", "action": schema.action, "report": report.to_dict()}), 200


@sync_bp.route("/sync/identity", methods=["POST"])
@require_session
def trigger_sync() -> Any:
    schema = parse_sync_request(request.get_json(silent=True))

    if not _is_self_service(schema) and not _can_manage_users():
        logger.warning("Sync request denied", extra={"user_id": g.identity_id, "action": schema.action})
        return make_error("Forbidden", "PERMISSION_DENIED")

    logger.info("Manual identity sync", extra={"user_id": g.identity_id, "action": schema.action})
    return _run(schema)


@sync_bp.route("/sync/identity", methods=["GET"])
@require_session
def sync_status() -> Any:
    action = request.args.get("action", "user")
    if action != "user":
        raise SchemaValidationError(f"Unknown status action '{action}'")

    user_id = require_str(request.args.get("user_id", g.identity_id), "user_id")
    if user_id != g.identity_id and not _can_manage_users():
        return make_error("Forbidden", "PERMISSION_DENIED")

    result = request.session_runtime.users.get_by_id(user_id)
    if not result.success:
        return make_error("User not found", "USER_NOT_FOUND")

    user = result.data
    primary = user.primary_membership
    return jsonify({
        "user_id": user.id,
        "synced": True,
        "updated_at": user.updated_at,
        "organizations": [m.org_id for m in user.organizations],
        "primary_organization_id": primary.org_id if primary else None,
    }), 200


__all__ = ["sync_bp"]
