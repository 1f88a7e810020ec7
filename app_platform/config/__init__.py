"""Configuration utilities and loaders."""

from .breaker import BreakerConfig
from .identity import IdentityProviderConfig
from .session import SessionConfig

__all__ = [
    "BreakerConfig",
    "IdentityProviderConfig",
    "SessionConfig",
]
