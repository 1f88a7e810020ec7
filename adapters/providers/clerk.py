"""Clerk Backend API client with client-side rate limiting and breaker."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urljoin, urlparse

import requests

from app_platform.config.identity import IdentityProviderConfig
from app_platform.contracts import OrgRole
from app_platform.utils.circuit_breaker import CircuitBreaker

from .exceptions import (
    IdentityNotFoundError,
    IdentityProviderError,
    ProviderUnavailableError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

# provider role keys that do not match an OrgRole value once the "org:" prefix is stripped
_PROVIDER_ROLE_ALIASES = {
    "admin": OrgRole.ORG_ADMIN,
    "member": OrgRole.ORG_VIEWER,
    "basic_member": OrgRole.ORG_VIEWER,
    "manager": OrgRole.ORG_MANAGER,
    "analyst": OrgRole.ORG_ANALYST,
    "viewer": OrgRole.ORG_VIEWER,
}


def normalize_provider_role(value: Any) -> str:
    """Map a provider role key such as ``org:admin`` onto an :class:`OrgRole` value."""

    if not isinstance(value, str) or not value.strip():
        return OrgRole.ORG_VIEWER.value

    raw = value.strip().lower()
    if raw.startswith("org:"):
        raw = raw[4:]

    role = OrgRole.parse(raw) or OrgRole.parse(f"org_{raw}") or _PROVIDER_ROLE_ALIASES.get(raw)
    return (role or OrgRole.ORG_VIEWER).value


@dataclass(slots=True)
class IdentityUser:
    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    image_url: Optional[str] = None
    username: Optional[str] = None
    banned: bool = False
    two_factor_enabled: bool = False
    public_metadata: Dict[str, Any] = field(default_factory=dict)
    private_metadata: Dict[str, Any] = field(default_factory=dict)
    unsafe_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    last_sign_in_at: Optional[int] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "IdentityUser":
        emails = data.get("email_addresses") or []
        primary_id = data.get("primary_email_address_id")
        email = ""
        for item in emails:
            if not isinstance(item, Mapping):
                continue
            if not email or item.get("id") == primary_id:
                email = str(item.get("email_address") or "")
        return cls(
            id=str(data["id"]),
            email=email,
            first_name=str(data.get("first_name") or ""),
            last_name=str(data.get("last_name") or ""),
            image_url=data.get("image_url"),
            username=data.get("username"),
            banned=bool(data.get("banned", False)),
            two_factor_enabled=bool(data.get("two_factor_enabled", False)),
            public_metadata=dict(data.get("public_metadata") or {}),
            private_metadata=dict(data.get("private_metadata") or {}),
            unsafe_metadata=dict(data.get("unsafe_metadata") or {}),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            last_sign_in_at=data.get("last_sign_in_at"),
        )


@dataclass(slots=True)
class IdentityOrganization:
    id: str
    name: str = ""
    slug: Optional[str] = None
    image_url: Optional[str] = None
    members_count: Optional[int] = None
    max_allowed_memberships: Optional[int] = None
    public_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "IdentityOrganization":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            slug=data.get("slug"),
            image_url=data.get("image_url"),
            members_count=data.get("members_count"),
            max_allowed_memberships=data.get("max_allowed_memberships"),
            public_metadata=dict(data.get("public_metadata") or {}),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(slots=True)
class IdentityMembership:
    org_id: str
    user_id: Optional[str]
    role: str
    permissions: List[str] = field(default_factory=list)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "IdentityMembership":
        org = data.get("organization") or {}
        user = data.get("public_user_data") or {}
        return cls(
            org_id=str(org.get("id") or data.get("organization_id") or ""),
            user_id=user.get("user_id"),
            role=normalize_provider_role(data.get("role")),
            permissions=[str(p) for p in data.get("permissions") or []],
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


class _TokenBucket:
    def __init__(self, *, rate: float, capacity: int) -> None:
        self._rate = max(rate, 0.1)
        self._capacity = max(capacity, 1)
        self._tokens = float(capacity)
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()

    def acquire(self, timeout_s: float = 1.0) -> bool:
        deadline = time.monotonic() + max(timeout_s, 0.0)
        while True:
            with self._lock:
                self._refill_locked()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(min(0.05, max(0.0, deadline - time.monotonic())))

    def _refill_locked(self) -> None:
        now = time.monotonic()
        elapsed = max(0.0, now - self._last_refill)
        if elapsed <= 0.0:
            return
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now


class ClerkClient:
    """Thin wrapper around the Clerk Backend API with retries and breaker.

    HTTP 429 raises :class:`RateLimitedError` immediately and is never retried;
    the caller owns the skip-or-fail decision. 5xx and network failures are
    retried with capped exponential backoff.
    """

    def __init__(
        self,
        config: IdentityProviderConfig,
        session: requests.Session,
        *,
        breaker: Optional[CircuitBreaker] = None,
        sleep=time.sleep,
    ) -> None:
        self._config = config
        self._session = session
        self._breaker = breaker or CircuitBreaker()
        self._bucket = _TokenBucket(rate=config.rps or 10.0, capacity=config.burst or 20)
        self._base_url = self._normalize_base_url(config.api_url)
        self._sleep = sleep

    @staticmethod
    def _normalize_base_url(base_url: Optional[str]) -> Optional[str]:
        if not base_url:
            return None
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            logger.warning("Invalid Clerk API URL provided: %s", base_url)
            return None
        normalized = f"{parsed.scheme}://{parsed.netloc}"
        if parsed.path:
            normalized = urljoin(normalized + "/", parsed.path.lstrip("/"))
        if not normalized.endswith("/"):
            normalized = f"{normalized}/"
        return normalized

    @property
    def enabled(self) -> bool:
        return bool(self._config.secret_key and self._base_url)

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    # --------------------- Users ---------------------
    def get_user(self, user_id: str) -> IdentityUser:
        data = self._request("GET", f"users/{user_id}")
        return IdentityUser.from_payload(data)

    def list_users(self, *, limit: int = 100, offset: int = 0) -> List[IdentityUser]:
        data = self._request("GET", "users", params={"limit": int(limit), "offset": int(offset)})
        items = data.get("data", []) if isinstance(data, Mapping) else data
        return [IdentityUser.from_payload(item) for item in items or []]

    def list_user_memberships(self, user_id: str, *, limit: int = 100) -> List[IdentityMembership]:
        data = self._request(
            "GET",
            f"users/{user_id}/organization_memberships",
            params={"limit": int(limit)},
        )
        items = data.get("data", []) if isinstance(data, Mapping) else data
        memberships = [IdentityMembership.from_payload(item) for item in items or []]
        return [m for m in memberships if m.org_id]

    def get_public_metadata(self, user_id: str) -> Dict[str, Any]:
        return dict(self.get_user(user_id).public_metadata)

    def update_public_metadata(self, user_id: str, metadata: Mapping[str, Any]) -> None:
        """Merge ``metadata`` into the user's public metadata."""

        self._request("PATCH", f"users/{user_id}/metadata", json={"public_metadata": dict(metadata)})

    # --------------------- Organizations ---------------------
    def get_organization(self, org_id: str) -> IdentityOrganization:
        data = self._request("GET", f"organizations/{org_id}")
        return IdentityOrganization.from_payload(data)

    # --------------------- HTTP helpers ---------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        assert path, "path required"
        if not self.enabled:
            raise ProviderUnavailableError("Clerk backend client not configured")
        url = urljoin(self._base_url, path.lstrip("/"))

        backoff = self._config.backoff_base_ms / 1000.0
        max_backoff = self._config.backoff_max_ms / 1000.0
        attempts = max(1, self._config.retries + 1)

        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            if not self._bucket.acquire(timeout_s=2.0):
                logger.warning("Clerk client-side budget exhausted", extra={"path": path})
                raise RateLimitedError("identity provider client budget exhausted")

            if not self._breaker.allow_call():
                raise ProviderUnavailableError("Clerk breaker open", breaker_open=True)

            headers = {
                "Authorization": f"Bearer {self._config.secret_key}",
                "Content-Type": "application/json",
            }

            try:
                response = self._session.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self._config.timeout_s,
                    **kwargs,
                )
            except requests.RequestException as exc:
                self._breaker.on_failure(exc)
                last_error = exc
                if attempt >= attempts:
                    break
                self._sleep(min(max_backoff, backoff))
                backoff = min(max_backoff, backoff * 2 or 0.05)
                continue

            status = response.status_code

            if status == 429:
                # the provider is healthy, so the breaker is not charged
                raise RateLimitedError(retry_after_s=_retry_after(response))

            if status == 404:
                self._breaker.on_success()
                raise IdentityNotFoundError(f"{method} {path} not found")

            if status >= 500:
                self._breaker.on_failure(RuntimeError(f"clerk_{status}"))
                last_error = IdentityProviderError(f"Clerk error {status}", status_code=status)
                if attempt >= attempts:
                    break
                self._sleep(min(max_backoff, backoff))
                backoff = min(max_backoff, backoff * 2 or 0.05)
                continue

            if status >= 400:
                self._breaker.on_failure(RuntimeError(f"clerk_{status}"))
                raise IdentityProviderError(
                    f"Clerk request failed ({status})",
                    status_code=status,
                )

            self._breaker.on_success()
            if response.content:
                try:
                    return response.json()
                except ValueError:
                    return response.text
            return None

        if isinstance(last_error, IdentityProviderError):
            raise last_error
        raise IdentityProviderError(f"Clerk request failed: {last_error}")


def _retry_after(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After") if response.headers is not None else None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


__all__ = [
    "ClerkClient",
    "IdentityMembership",
    "IdentityOrganization",
    "IdentityUser",
    "normalize_provider_role",
]
