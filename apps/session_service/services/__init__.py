"""Service layer helpers for the session service."""

from .exceptions import InvalidWebhookError, ServiceConfigurationError, UnauthorizedRequestError
from .webhooks import IdentityEventDispatcher, WebhookVerifier

__all__ = [
    "IdentityEventDispatcher",
    "InvalidWebhookError",
    "ServiceConfigurationError",
    "UnauthorizedRequestError",
    "WebhookVerifier",
]
