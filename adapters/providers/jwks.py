from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional

import requests
from jose import jwk  # type: ignore[import]
from jose.exceptions import JWKError  # type: ignore[import]

from app_platform.utils.circuit_breaker import CircuitBreaker

from .exceptions import TokenVerificationError


class _JwksCache:
    """Cache for JWKS keys with TTL and thread-safety.

    Internal-only utility. Uses a monotonic clock for TTL correctness.
    """

    def __init__(self, ttl_seconds: int, time_func: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache with a TTL (seconds)."""

        if ttl_seconds is None or ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be a positive integer, got {ttl_seconds}")

        self._ttl = int(ttl_seconds) # TTL in seconds
        self._keys: Dict[str, Any] = {} # JWKS keys by KID
        self._fetched_at: float = 0.0 # last fetch time (monotonic)
        self._now = time_func
        self._lock = threading.Lock() # lock for thread safety

    def is_expired(self) -> bool:
        """Return True if the cache is empty or past TTL."""

        with self._lock:
            if self._fetched_at <= 0:
                return True

            return (self._now() - self._fetched_at) >= self._ttl

    def get(self, kid: str) -> Optional[Any]:
        with self._lock:
            return self._keys.get(kid)

    def set_all(self, kid_to_key: Dict[str, Any]) -> None:
        """Replace the cache with the provided KID to key mapping."""

        with self._lock:
            self._keys = dict(kid_to_key)
            self._fetched_at = self._now()

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()
            self._fetched_at = 0.0

    def age_seconds(self) -> float:
        """Return elapsed seconds since last fetch, or inf if never populated."""

        with self._lock:
            if self._fetched_at <= 0:
                return float("inf")

            return max(0.0, self._now() - self._fetched_at)


class JWKSClient:
    """Encapsulate JWKS fetch, cache and preparation behind a breaker."""

    def __init__(
        self,
        *,
        url: str,
        session: requests.Session,
        timeout_s: int,
        cache_ttl_s: int,
        breaker: CircuitBreaker,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        if not url or not isinstance(url, str):
            raise ValueError(f"url must be a non-empty string, got {url}")
        if not timeout_s or timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")

        self._url = url # URL of the JWKS endpoint
        self._session = session # HTTP session
        self._timeout_s = timeout_s # Timeout in seconds
        self._cache = _JwksCache(int(cache_ttl_s), time_func) # Cache for JWKS keys
        self._breaker = breaker # Circuit breaker for JWKS fetch

    @property
    def url(self) -> str:
        return self._url

    def get_key(self, kid: str) -> Optional[Any]:
        """Return the prepared key for the given KID if cached."""

        if not kid or not isinstance(kid, str):
            raise ValueError(f"kid must be a non-empty string, got {kid}")

        return self._cache.get(kid)

    def resolve_key(self, kid: str) -> Any:
        """Return the key for ``kid``, refreshing the JWKS on a miss or expiry."""

        key = self.get_key(kid)
        if key is not None and not self._cache.is_expired():
            return key

        kid_to_key = self.prepare_keys(self.fetch_raw())
        self._cache.set_all(kid_to_key)

        key = kid_to_key.get(kid)
        if key is None:
            raise TokenVerificationError("kid not found in JWKS")
        return key

    def age_seconds(self) -> float:
        return self._cache.age_seconds()

    def is_expired(self) -> bool:
        return self._cache.is_expired()

    def invalidate(self) -> None:
        self._cache.clear()

    def fetch_raw(self) -> Dict[str, Any]:
        """Fetch the raw JWKS document from the endpoint."""

        def _net_call() -> Dict[str, Any]:
            resp = self._session.get(self._url, timeout=self._timeout_s)
            resp.raise_for_status()
            data = resp.json()

            if not isinstance(data, dict) or "keys" not in data:
                raise ValueError("malformed JWKS document")

            return data

        try:
            return self._breaker.wrap_call(_net_call, max_tries=3)
        except requests.RequestException as exc:
            raise TokenVerificationError(f"failed to fetch JWKS: {exc}") from exc
        except ValueError as exc:
            raise TokenVerificationError(f"failed to parse JWKS: {exc}") from exc

    def prepare_keys(self, jwks: Mapping[str, Any]) -> Dict[str, Any]:
        """Construct RS256 signing keys from a JWKS document."""

        if not jwks or not isinstance(jwks, Mapping):
            raise TokenVerificationError("jwks must be a non-empty object")

        kid_to_key: Dict[str, Any] = {}
        keys = jwks.get("keys")

        if not isinstance(keys, list):
            raise TokenVerificationError("JWKS keys must be a list")

        for key_dict in keys:
            if not isinstance(key_dict, dict):
                continue

            kty = key_dict.get("kty")
            alg = key_dict.get("alg")
            kid = key_dict.get("kid")
            use = key_dict.get("use")

            if kty != "RSA" or (alg and alg != "RS256"):
                continue
            if use and use != "sig":
                continue
            if not kid:
                continue

            try:
                key = jwk.construct(key_dict, algorithm="RS256")
            except JWKError:
                continue

            kid_to_key[str(kid)] = key

        if not kid_to_key:
            raise TokenVerificationError("no usable RSA keys in JWKS")

        return kid_to_key


__all__ = ["JWKSClient"]
