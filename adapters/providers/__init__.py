"""
Identity provider adapters.

Convenience re-exports so callers can import the backend client and token
verifier from ``adapters.providers`` directly.
"""

from .clerk import ClerkClient, IdentityMembership, IdentityOrganization, IdentityUser
from .exceptions import (
    IdentityNotFoundError,
    IdentityProviderError,
    ProviderUnavailableError,
    RateLimitedError,
    TokenVerificationError,
)
from .token_verifier import SessionTokenVerifier

__all__ = [
    "ClerkClient",
    "IdentityMembership",
    "IdentityNotFoundError",
    "IdentityOrganization",
    "IdentityProviderError",
    "IdentityUser",
    "ProviderUnavailableError",
    "RateLimitedError",
    "SessionTokenVerifier",
    "TokenVerificationError",
]
