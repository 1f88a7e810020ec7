"""Exceptions raised by identity-provider adapters."""

from __future__ import annotations

from typing import Optional


class IdentityProviderError(RuntimeError):
    """Raised when the identity provider responds with an error or is unreachable."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(IdentityProviderError):
    """Raised on HTTP 429; callers decide whether to skip or fail."""

    def __init__(self, message: str = "identity provider rate limited", *, retry_after_s: Optional[float] = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after_s = retry_after_s


class IdentityNotFoundError(IdentityProviderError):
    """Raised on HTTP 404 for a user or organization lookup."""

    def __init__(self, message: str = "identity resource not found") -> None:
        super().__init__(message, status_code=404)


class ProviderUnavailableError(IdentityProviderError):
    """Raised when the client is unconfigured or its breaker is open."""

    def __init__(self, message: str, *, breaker_open: bool = False) -> None:
        super().__init__(message)
        self.breaker_open = breaker_open


class TokenVerificationError(ValueError):
    """Raised when a session token fails verification."""


__all__ = [
    "IdentityNotFoundError",
    "IdentityProviderError",
    "ProviderUnavailableError",
    "RateLimitedError",
    "TokenVerificationError",
]
