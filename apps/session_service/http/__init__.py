"""HTTP blueprints for the session service."""

from __future__ import annotations

from .session_routes import session_bp
from .sync_routes import sync_bp
from .webhook_routes import webhook_bp

__all__ = ["session_bp", "sync_bp", "webhook_bp"]
