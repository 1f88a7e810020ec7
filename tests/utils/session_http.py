"""Bearer-token helpers for session-service route tests."""

from __future__ import annotations

from typing import Any, Dict

from adapters.providers.exceptions import TokenVerificationError


class StubTokenVerifier:
    """Accepts ``token-<identity id>`` bearer tokens."""

    def __init__(self) -> None:
        self.fail_with: Exception | None = None

    def verify(self, token: str) -> Dict[str, Any]:
        if self.fail_with is not None:
            raise self.fail_with
        if not token.startswith("token-"):
            raise TokenVerificationError("unknown token")
        return {"sub": token[len("token-"):], "sid": "sess_test"}


def bearer(identity_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer token-{identity_id}"}
