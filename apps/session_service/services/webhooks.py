"""Identity-provider webhook verification and event dispatch."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from application.session.service import SessionService
from application.session.sync import IdentitySync

from .exceptions import InvalidWebhookError, ServiceConfigurationError

logger = logging.getLogger(__name__)


SECRET_PREFIX = "whsec_"


class WebhookVerifier:
    """Verify Svix-signed webhook deliveries.

    The signed content is ``"{svix-id}.{svix-timestamp}.{body}"``; the
    ``svix-signature`` header carries space-separated ``v1,<base64>`` entries,
    any one of which may match.
    """

    def __init__(self, secret: Optional[str], *, tolerance_s: int = 300, time_func: Callable[[], float] = time.time) -> None:
        self._key = _decode_secret(secret) if secret else None
        self._tolerance_s = int(tolerance_s)
        self._now = time_func

    @property
    def enabled(self) -> bool:
        return self._key is not None

    def sign(self, msg_id: str, timestamp: int, body: bytes) -> str:
        """Return the ``v1,<signature>`` header value for a delivery."""

        if self._key is None:
            raise ServiceConfigurationError("Webhook secret not configured")
        digest = hmac.new(self._key, _signed_content(msg_id, timestamp, body), hashlib.sha256).digest()
        return f"v1,{base64.b64encode(digest).decode('ascii')}"

    def verify(self, headers: Mapping[str, str], body: bytes) -> Dict[str, Any]:
        """Verify the delivery and return the decoded event."""

        if self._key is None:
            raise ServiceConfigurationError("Webhook secret not configured")

        msg_id = headers.get("svix-id")
        ts_raw = headers.get("svix-timestamp")
        signature_header = headers.get("svix-signature")
        if not msg_id or not ts_raw or not signature_header:
            raise InvalidWebhookError("Missing svix headers")

        try:
            timestamp = int(ts_raw)
        except ValueError as exc:
            raise InvalidWebhookError("Invalid svix-timestamp") from exc

        if abs(float(self._now()) - timestamp) > self._tolerance_s:
            raise InvalidWebhookError("Webhook timestamp outside tolerance")

        expected = self.sign(msg_id, timestamp, body).split(",", 1)[1]
        presented = [
            entry.split(",", 1)[1]
            for entry in signature_header.split()
            if entry.startswith("v1,")
        ]
        if not any(_constant_time_compare(sig, expected) for sig in presented):
            raise InvalidWebhookError("Invalid webhook signature")

        try:
            event = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidWebhookError("Webhook body is not JSON") from exc

        if not isinstance(event, dict) or not isinstance(event.get("type"), str):
            raise InvalidWebhookError("Webhook event has no type")
        return event


class IdentityEventDispatcher:
    """Route verified identity events to the sync and session services."""

    def __init__(self, *, sync: IdentitySync, sessions: SessionService) -> None:
        self._sync = sync
        self._sessions = sessions
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], None]] = {
            "user.created": self._user_created,
            "user.updated": self._user_updated,
            "user.deleted": self._user_deleted,
            "organization.created": self._organization_synced,
            "organization.updated": self._organization_synced,
            "organization.deleted": self._organization_deleted,
            "organizationMembership.created": self._membership_synced,
            "organizationMembership.updated": self._membership_synced,
            "organizationMembership.deleted": self._membership_deleted,
            "session.created": self._session_created,
            "session.ended": self._session_ended,
        }

    def dispatch(self, event: Mapping[str, Any]) -> bool:
        """Handle one event; returns False for event types that are ignored."""

        event_type = str(event.get("type"))
        data = event.get("data") or {}
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled identity webhook event", extra={"event_type": event_type})
            return False

        logger.info("Identity webhook event", extra={"event_type": event_type})
        handler(data)
        return True

    def _user_created(self, data: Mapping[str, Any]) -> None:
        self._sync.sync_user(_require(data, "id"))

    def _user_updated(self, data: Mapping[str, Any]) -> None:
        user_id = _require(data, "id")
        self._sync.sync_user(user_id)
        self._sessions.invalidate_session_cache(user_id)

    def _user_deleted(self, data: Mapping[str, Any]) -> None:
        user_id = _require(data, "id")
        self._sync.delete_user(user_id)
        self._sessions.discard_session(user_id)

    def _organization_synced(self, data: Mapping[str, Any]) -> None:
        self._sync.sync_organization(_require(data, "id"))

    def _organization_deleted(self, data: Mapping[str, Any]) -> None:
        self._sync.delete_organization(_require(data, "id"))

    def _membership_synced(self, data: Mapping[str, Any]) -> None:
        user_id, org_id = _membership_ids(data)
        self._sync.sync_membership(user_id, org_id, data.get("role"), data.get("permissions") or [])
        self._sessions.invalidate_session_cache(user_id)

    def _membership_deleted(self, data: Mapping[str, Any]) -> None:
        user_id, org_id = _membership_ids(data)
        self._sync.remove_membership(user_id, org_id)
        self._sessions.invalidate_session_cache(user_id)

    def _session_created(self, data: Mapping[str, Any]) -> None:
        user_id = _require(data, "user_id")
        try:
            self._sessions.process_login(user_id)
        except Exception as exc:  # noqa: BLE001 - sign-in must not fail on cache warmup
            logger.error("Session warmup failed: %s", exc, extra={"user_id": user_id})

    def _session_ended(self, data: Mapping[str, Any]) -> None:
        logger.info("Session ended", extra={"user_id": data.get("user_id")})


def _require(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidWebhookError(f"Webhook event missing '{key}'")
    return value


def _membership_ids(data: Mapping[str, Any]) -> tuple[str, str]:
    user_id = _require(data.get("public_user_data") or {}, "user_id")
    org_id = _require(data.get("organization") or {}, "id")
    return user_id, org_id


def _decode_secret(secret: str) -> bytes:
    raw = secret.strip()
    if raw.startswith(SECRET_PREFIX):
        raw = raw[len(SECRET_PREFIX):]
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ServiceConfigurationError("Webhook secret is not valid base64") from exc


def _signed_content(msg_id: str, timestamp: int, body: bytes) -> bytes:
    return f"{msg_id}.{timestamp}.".encode("utf-8") + body


def _constant_time_compare(presented: str, expected: str) -> bool:
    try:
        presented_bytes = presented.encode("ascii")
        expected_bytes = expected.encode("ascii")
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(presented_bytes, expected_bytes)


__all__ = ["IdentityEventDispatcher", "WebhookVerifier"]
