"""Serialization helpers for session snapshots.

Snapshots are stored as JSON-compatible dictionaries tagged with
``schema_version``. Payloads without a version are the legacy camelCase shape
and are migrated on read.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from .exceptions import SnapshotDecodeError
from .models import (
    SCHEMA_VERSION,
    CacheDescriptor,
    CapabilitySet,
    ClientSummary,
    DashboardPreferences,
    NotificationPreferences,
    OrganizationSummary,
    Preferences,
    PrimaryOrganization,
    SecuritySummary,
    SessionSnapshot,
    UserSummary,
)

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

# legacy capability names that do not map 1:1 through case conversion
_LEGACY_CAPABILITY_ALIASES = {
    "can_manage_orgs": "can_manage_organizations",
    "can_view_audit_logs": "can_access_audit_logs",
}


def snapshot_to_dict(snapshot: SessionSnapshot) -> dict[str, Any]:
    """Convert a :class:`SessionSnapshot` into a JSON-compatible dictionary."""

    payload = asdict(snapshot)
    payload["cache"] = {
        "last_updated": _format_timestamp(snapshot.cache.last_updated),
        "version": snapshot.cache.version,
    }
    payload["schema_version"] = SCHEMA_VERSION
    return payload


def snapshot_from_dict(data: Mapping[str, Any]) -> SessionSnapshot:
    """Create a :class:`SessionSnapshot` from a stored payload, migrating old shapes."""

    if not isinstance(data, Mapping):
        raise SnapshotDecodeError("snapshot payload must be an object")

    version = data.get("schema_version")
    if version is None:
        logger.debug("Migrating legacy session payload")
        data = migrate_legacy_payload(data)
        version = SCHEMA_VERSION

    if not isinstance(version, int) or version > SCHEMA_VERSION or version < 1:
        raise SnapshotDecodeError(f"unsupported snapshot schema_version {version!r}")

    migrate = _MIGRATIONS.get(version)
    if migrate is not None:
        data = migrate(data)

    try:
        return _build_snapshot(data)
    except SnapshotDecodeError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotDecodeError(f"malformed snapshot payload: {exc}") from exc


def migrate_legacy_payload(data: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite the unversioned camelCase payload into the current key layout."""

    converted = _snake_keys(data)
    capabilities = converted.get("capabilities")
    if isinstance(capabilities, dict):
        converted["capabilities"] = {
            _LEGACY_CAPABILITY_ALIASES.get(key, key): value
            for key, value in capabilities.items()
        }
    converted["schema_version"] = SCHEMA_VERSION
    return converted


def _migrate_v1(data: Mapping[str, Any]) -> dict[str, Any]:
    # v1 stored the timestamp as epoch milliseconds under cache.updated_at
    payload = dict(data)
    cache = dict(payload.get("cache") or {})
    if "last_updated" not in cache and "updated_at" in cache:
        cache["last_updated"] = cache.pop("updated_at")
    payload["cache"] = cache
    payload["schema_version"] = SCHEMA_VERSION
    return payload


_MIGRATIONS: Dict[int, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
    1: _migrate_v1,
}


def _build_snapshot(data: Mapping[str, Any]) -> SessionSnapshot:
    user_data = data.get("user")
    if not isinstance(user_data, Mapping) or not user_data.get("id"):
        raise SnapshotDecodeError("snapshot payload is missing user.id")

    cache_data = data.get("cache")
    if not isinstance(cache_data, Mapping):
        raise SnapshotDecodeError("snapshot payload is missing cache")

    primary_data = data.get("primary_organization")
    current_client = data.get("current_client")

    return SessionSnapshot(
        user=_pick(UserSummary, user_data),
        organizations=[
            _pick(OrganizationSummary, item) for item in data.get("organizations") or []
        ],
        primary_organization=(
            _pick(PrimaryOrganization, primary_data)
            if isinstance(primary_data, Mapping)
            else None
        ),
        capabilities=_capabilities_from_dict(data.get("capabilities") or {}),
        preferences=_preferences_from_dict(data.get("preferences") or {}),
        security=_pick(SecuritySummary, data.get("security") or {}),
        cache=CacheDescriptor(
            last_updated=_parse_timestamp(cache_data.get("last_updated")),
            version=_coerce_int(cache_data.get("version"), default=1),
        ),
        clients=[_pick(ClientSummary, item) for item in data.get("clients") or []],
        current_client=(
            _pick(ClientSummary, current_client)
            if isinstance(current_client, Mapping)
            else None
        ),
        schema_version=SCHEMA_VERSION,
    )


def _capabilities_from_dict(data: Mapping[str, Any]) -> CapabilitySet:
    names = CapabilitySet.flag_names()
    return CapabilitySet(**{name: bool(data.get(name, False)) for name in names})


def _preferences_from_dict(data: Mapping[str, Any]) -> Preferences:
    return Preferences(
        language=str(data.get("language") or "en-US"),
        timezone=data.get("timezone"),
        theme=data.get("theme"),
        notifications=_pick(NotificationPreferences, data.get("notifications") or {}),
        dashboard=_pick(DashboardPreferences, data.get("dashboard") or {}),
    )


def _pick(cls: Any, data: Mapping[str, Any]) -> Any:
    """Instantiate ``cls`` from the keys of ``data`` it knows about."""

    if not isinstance(data, Mapping):
        raise SnapshotDecodeError(f"expected an object for {cls.__name__}")
    known = cls.__dataclass_fields__
    return cls(**{key: value for key, value in data.items() if key in known})


def _snake_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {_to_snake(str(key)): _snake_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_snake_keys(item) for item in value]
    return value


def _to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise SnapshotDecodeError("cache.last_updated must be a timestamp")
    if isinstance(value, (int, float)):
        # values above 1e11 are epoch milliseconds
        seconds = value / 1000.0 if value > 1e11 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise SnapshotDecodeError(f"invalid cache.last_updated {value!r}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise SnapshotDecodeError("cache.last_updated is missing")


def _coerce_int(value: Any, *, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def optional_snapshot_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[SessionSnapshot]:
    """Decode ``data`` or return None when nothing is stored."""

    if not data:
        return None
    return snapshot_from_dict(data)


__all__ = [
    "migrate_legacy_payload",
    "optional_snapshot_from_dict",
    "snapshot_from_dict",
    "snapshot_to_dict",
]
