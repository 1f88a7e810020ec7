"""Session-service request schema definitions."""

from app_platform.schemas import SchemaValidationError

from .session import (
    SYNC_ACTIONS,
    RefreshRequest,
    SwitchClientRequest,
    SwitchOrganizationRequest,
    SyncRequest,
    parse_refresh,
    parse_switch_client,
    parse_switch_organization,
    parse_sync_request,
)

__all__ = [
    "SchemaValidationError",
    "SYNC_ACTIONS",
    "RefreshRequest",
    "SwitchClientRequest",
    "SwitchOrganizationRequest",
    "SyncRequest",
    "parse_refresh",
    "parse_switch_client",
    "parse_switch_organization",
    "parse_sync_request",
]
