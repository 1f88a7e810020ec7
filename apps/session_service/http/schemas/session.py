"""Request schemas for session and sync routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from app_platform.schemas import (
    BaseSchema,
    SchemaValidationError,
    optional_str,
    require_str,
    string_tuple,
)


SYNC_ACTIONS = ("sync-user", "sync-organization", "sync-membership", "sync-all", "cleanup")


def _extract(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    return None


def _ensure_object(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise SchemaValidationError("Request body must be a JSON object")
    return payload


@dataclass(slots=True)
class RefreshRequest(BaseSchema):
    identity_id: str


@dataclass(slots=True)
class SwitchOrganizationRequest(BaseSchema):
    identity_id: str
    org_id: str


@dataclass(slots=True)
class SwitchClientRequest(BaseSchema):
    identity_id: str
    client_id: str


@dataclass(slots=True)
class SyncRequest(BaseSchema):
    action: str
    user_id: Optional[str] = None
    org_id: Optional[str] = None
    role: Optional[str] = None
    permissions: Tuple[str, ...] = ()
    limit: int = 100


def parse_refresh(payload: Any) -> RefreshRequest:
    body = _ensure_object(payload)
    return RefreshRequest(identity_id=require_str(_extract(body, "identity_id", "clerkId"), "identity_id"))


def parse_switch_organization(payload: Any) -> SwitchOrganizationRequest:
    body = _ensure_object(payload)
    return SwitchOrganizationRequest(
        identity_id=require_str(_extract(body, "identity_id", "clerkId"), "identity_id"),
        org_id=require_str(_extract(body, "org_id", "orgId"), "org_id"),
    )


def parse_switch_client(payload: Any) -> SwitchClientRequest:
    body = _ensure_object(payload)
    return SwitchClientRequest(
        identity_id=require_str(_extract(body, "identity_id", "clerkId"), "identity_id"),
        client_id=require_str(_extract(body, "client_id", "clientId"), "client_id"),
    )


def parse_sync_request(payload: Any) -> SyncRequest:
    body = _ensure_object(payload)
    action = require_str(body.get("action"), "action")
    if action not in SYNC_ACTIONS:
        raise SchemaValidationError(f"Unknown sync action '{action}'")

    user_id = optional_str(_extract(body, "user_id", "userId"), "user_id")
    org_id = optional_str(_extract(body, "org_id", "orgId"), "org_id")

    errors = []
    if action in ("sync-user", "sync-membership") and not user_id:
        errors.append("user_id is required")
    if action in ("sync-organization", "sync-membership") and not org_id:
        errors.append("org_id is required")
    if errors:
        raise SchemaValidationError("Invalid sync request", errors=errors)

    limit_raw = body.get("limit", 100)
    if isinstance(limit_raw, bool) or not isinstance(limit_raw, int) or not 1 <= limit_raw <= 500:
        raise SchemaValidationError("Field 'limit' must be an integer between 1 and 500")

    return SyncRequest(
        action=action,
        user_id=user_id,
        org_id=org_id,
        role=optional_str(body.get("role"), "role"),
        permissions=string_tuple(body.get("permissions"), "permissions"),
        limit=limit_raw,
    )


__all__ = [
    "RefreshRequest",
    "SYNC_ACTIONS",
    "SwitchClientRequest",
    "SwitchOrganizationRequest",
    "SyncRequest",
    "parse_refresh",
    "parse_switch_client",
    "parse_switch_organization",
    "parse_sync_request",
]
