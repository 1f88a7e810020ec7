"""Session materialization and record store configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .env import _int_env, _str_env

logger = logging.getLogger(__name__)


CACHE_BACKENDS = ("identity", "redis")


@dataclass(slots=True)
class SessionConfig:
    """Normalized configuration for the session service."""

    staleness_hours: int = 24
    cache_backend: str = "identity"
    metadata_key: str = "session"
    redis_url: str | None = None
    redis_ttl_s: int = 7 * 24 * 3600
    gcp_project_id: str | None = None
    firestore_emulator_host: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "SessionConfig":
        backend = (_str_env("SESSION_CACHE_BACKEND", "identity") or "identity").lower()
        return cls(
            staleness_hours=_int_env("SESSION_STALENESS_HOURS", 24, minimum=1),
            cache_backend=backend,
            metadata_key=_str_env("SESSION_METADATA_KEY", "session") or "session",
            redis_url=_str_env("SESSION_REDIS_URL"),
            redis_ttl_s=_int_env("SESSION_REDIS_TTL_S", 7 * 24 * 3600, minimum=60),
            gcp_project_id=_str_env("GOOGLE_CLOUD_PROJECT"),
            firestore_emulator_host=_str_env("FIRESTORE_EMULATOR_HOST"),
            log_level=(_str_env("SESSION_LOG_LEVEL", "INFO") or "INFO").upper(),
        )

    @property
    def staleness_seconds(self) -> int:
        return self.staleness_hours * 3600

    def validate(self) -> bool:
        """Log configuration problems; never raises."""

        if self.cache_backend not in CACHE_BACKENDS:
            logger.warning(
                "Unknown session cache backend, falling back to identity metadata",
                extra={"backend": self.cache_backend},
            )
            self.cache_backend = "identity"
        if self.cache_backend == "redis" and not self.redis_url:
            logger.warning("Redis session cache selected without SESSION_REDIS_URL")
        if self.staleness_hours != 24:
            logger.info("Session staleness threshold overridden", extra={"hours": self.staleness_hours})
        return True


__all__ = ["SessionConfig", "CACHE_BACKENDS"]
