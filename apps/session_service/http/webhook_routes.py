"""Identity-provider webhook endpoint."""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, jsonify, request

from apps.session_service.services import InvalidWebhookError, ServiceConfigurationError

webhook_bp = Blueprint("identity_webhooks", __name__)

logger = logging.getLogger(__name__)


@webhook_bp.route("/webhooks/identity", methods=["POST"])
def identity_webhook() -> Any:
    runtime = request.session_runtime
    raw_body = request.get_data(cache=True, as_text=False) or b""

    try:
        event = runtime.webhook_verifier.verify(request.headers, raw_body)
    except ServiceConfigurationError as exc:
        logger.error("Webhook verification misconfigured", extra={"error": str(exc)})
        return jsonify({"error": "Webhook handling disabled", "code": "SERVICE_DISABLED"}), 503
    except InvalidWebhookError as exc:
        logger.warning("Webhook rejected", extra={"error": str(exc)})
        return jsonify({"error": "Invalid webhook", "code": "INVALID_SIGNATURE"}), 400

    try:
        handled = runtime.dispatcher.dispatch(event)
    except InvalidWebhookError as exc:
        logger.warning("Webhook payload incomplete", extra={"error": str(exc), "event_type": event.get("type")})
        return jsonify({"error": "Invalid webhook payload", "code": "INVALID_ARGUMENT"}), 400
    except Exception:  # noqa: BLE001
        logger.exception("Webhook handler failed", extra={"event_type": event.get("type")})
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"received": True, "handled": handled}), 200


__all__ = ["webhook_bp"]
