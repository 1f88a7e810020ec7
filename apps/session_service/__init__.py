"""Session service package bootstrap."""

from __future__ import annotations

from .main import SessionRuntime, bootstrap_runtime, create_app, register_healthcheck

__all__ = ["SessionRuntime", "create_app", "bootstrap_runtime", "register_healthcheck"]
