"""Custom exceptions used across session-service HTTP services."""

from __future__ import annotations


class ServiceConfigurationError(RuntimeError):
    """Raised when required configuration for a service is missing."""


class UnauthorizedRequestError(RuntimeError):
    """Raised when an incoming request fails authentication or signature checks."""


class InvalidWebhookError(UnauthorizedRequestError):
    """Raised when webhook headers are missing or the signature does not verify."""
