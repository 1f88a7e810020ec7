"""Session token verification against the identity provider's JWKS."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import requests
from jose import jwt  # type: ignore[import]
from jose.exceptions import JWTError  # type: ignore[import]

from app_platform.config.identity import IdentityProviderConfig
from app_platform.utils.circuit_breaker import CircuitBreaker

from .exceptions import TokenVerificationError
from .jwks import JWKSClient

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Strict RS256 verifier enforcing issuer, optional audience and standard claims."""

    def verify(self, *, token: str, key: Any, issuer: str, audience: Optional[str], clock_skew_s: int) -> Dict[str, Any]:
        """Verify a token and return the claims."""

        try:
            claims = jwt.decode(
                token,
                key.to_pem().decode("utf-8"),
                algorithms=["RS256"],
                audience=audience,
                issuer=issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": bool(audience),
                    "verify_iss": True,
                    "verify_iat": True,
                    "verify_exp": True,
                    "leeway": int(clock_skew_s),
                },
            )
        except JWTError as exc:
            raise TokenVerificationError(f"invalid token: {exc}") from exc

        return dict(claims)


class SessionTokenVerifier:
    """Verify identity-provider session tokens.

    - RS256 only
    - issuer must match; audience is checked only when configured
    - ``sub`` is required and is the identity id
    """

    def __init__(self, *, issuer: str, jwks: JWKSClient, audience: Optional[str] = None, clock_skew_s: int = 5) -> None:
        if not issuer:
            raise ValueError("issuer is required")

        self._issuer = issuer.rstrip("/") # Issuer as the provider emits it (no trailing slash)
        self._audience = audience # Optional audience
        self._clock_skew_s = int(clock_skew_s) # Clock skew in seconds
        self._jwks = jwks # JWKS client
        self._verifier = TokenVerifier() # Claims verifier

    @classmethod
    def from_config(cls, config: IdentityProviderConfig, session: requests.Session, *, breaker: Optional[CircuitBreaker] = None) -> "SessionTokenVerifier":
        jwks_url = config.jwks_url or f"{(config.issuer or '').rstrip('/')}/.well-known/jwks.json"
        jwks = JWKSClient(
            url=jwks_url,
            session=session,
            timeout_s=config.jwks_timeout_s,
            cache_ttl_s=config.jwks_cache_ttl_s,
            breaker=breaker or CircuitBreaker(),
        )
        return cls(issuer=config.issuer or "", jwks=jwks, audience=config.audience, clock_skew_s=config.clock_skew_s)

    @property
    def issuer(self) -> str:
        return self._issuer

    def verify(self, token: str) -> Mapping[str, Any]:
        """Verify a token and return the claims."""

        if not token or not isinstance(token, str):
            raise TokenVerificationError("token must be a non-empty string")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise TokenVerificationError(f"invalid token header: {exc}") from exc

        if header.get("alg") != "RS256":
            raise TokenVerificationError("unsupported alg; RS256 required")

        kid = header.get("kid")
        if not kid:
            raise TokenVerificationError("missing kid in token header")

        key = self._jwks.resolve_key(kid)
        claims = self._verifier.verify(
            token=token,
            key=key,
            issuer=self._issuer,
            audience=self._audience,
            clock_skew_s=self._clock_skew_s,
        )

        if not claims.get("sub"):
            raise TokenVerificationError("token has no subject")

        return claims


__all__ = ["SessionTokenVerifier", "TokenVerifier"]
