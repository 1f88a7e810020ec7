"""Identity provider (Clerk Backend API) configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .env import _float_env, _int_env, _str_env

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://api.clerk.com/v1/"


@dataclass(slots=True)
class IdentityProviderConfig:
    """Settings for the identity provider backend client and token verification."""

    secret_key: str | None = None
    api_url: str = DEFAULT_API_URL
    timeout_s: float = 5.0
    rps: float = 10.0  # client-side request budget
    burst: int = 20
    retries: int = 2
    backoff_base_ms: int = 100
    backoff_max_ms: int = 1000

    # Session token verification
    jwks_url: str | None = None
    issuer: str | None = None
    audience: str | None = None
    jwks_cache_ttl_s: int = 3600
    jwks_timeout_s: int = 5
    clock_skew_s: int = 5

    # Webhooks
    webhook_secret: str | None = None
    webhook_tolerance_s: int = 300

    @classmethod
    def from_env(cls) -> "IdentityProviderConfig":
        logger.info("Loading identity provider configuration from environment variables")
        return cls(
            secret_key=_str_env("CLERK_SECRET_KEY"),
            api_url=_str_env("CLERK_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL,
            timeout_s=_float_env("CLERK_TIMEOUT_S", 5.0, minimum=0.5),
            rps=_float_env("CLERK_RPS", 10.0, minimum=0.1),
            burst=_int_env("CLERK_BURST", 20, minimum=1),
            retries=_int_env("CLERK_RETRIES", 2, minimum=0),
            backoff_base_ms=_int_env("CLERK_BACKOFF_BASE_MS", 100, minimum=0),
            backoff_max_ms=_int_env("CLERK_BACKOFF_MAX_MS", 1000, minimum=0),
            jwks_url=_str_env("CLERK_JWKS_URL"),
            issuer=_str_env("CLERK_ISSUER"),
            audience=_str_env("CLERK_AUDIENCE"),
            jwks_cache_ttl_s=_int_env("CLERK_JWKS_CACHE_TTL_S", 3600, minimum=60),
            jwks_timeout_s=_int_env("CLERK_JWKS_TIMEOUT_S", 5, minimum=1),
            clock_skew_s=_int_env("CLERK_CLOCK_SKEW_S", 5, minimum=0),
            webhook_secret=_str_env("CLERK_WEBHOOK_SECRET"),
            webhook_tolerance_s=_int_env("CLERK_WEBHOOK_TOLERANCE_S", 300, minimum=30),
        )

    @property
    def backend_enabled(self) -> bool:
        return bool(self.secret_key and self.api_url)

    @property
    def verification_enabled(self) -> bool:
        return bool(self.jwks_url and self.issuer)

    def validate(self) -> bool:
        """Log configuration problems; never raises."""

        if not self.secret_key:
            logger.warning("CLERK_SECRET_KEY not set; identity provider calls are disabled")
        if self.jwks_url and not self.jwks_url.startswith("https://"):
            logger.warning("CLERK_JWKS_URL should be an https URL", extra={"jwks_url": self.jwks_url})
        if self.jwks_url and not self.issuer:
            logger.warning("CLERK_JWKS_URL set without CLERK_ISSUER; session tokens cannot be verified")
        if not self.webhook_secret:
            logger.warning("CLERK_WEBHOOK_SECRET not set; identity webhooks will be rejected")
        if self.retries > 5:
            logger.warning("Identity provider retries unusually high", extra={"retries": self.retries})
        return True


__all__ = ["IdentityProviderConfig", "DEFAULT_API_URL"]
