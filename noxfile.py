"""Nox sessions orchestrating the session service unit suites."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import nox


PYTHON_VERSIONS = ["3.11"]
PROJECT_ROOT = Path(__file__).parent

nox.options.sessions = [
    "tests(unit_session)",
    "tests(unit_http)",
    "tests(unit_adapters)",
]


def _install_test_requirements(session: nox.Session) -> None:
    """Install the project and its testing toolchain inside the session environment."""

    session.install("-e", ".[test]")


def _normalize_pythonpath(existing: str | None) -> str:
    parts = [str(PROJECT_ROOT)]
    if existing:
        parts.append(existing)
    return ":".join(part for part in parts if part)


def _run_suite(session: nox.Session, suite: str, targets: Iterable[str]) -> None:
    _install_test_requirements(session)

    env = dict(session.env)
    env["PYTHONPATH"] = _normalize_pythonpath(env.get("PYTHONPATH"))

    args = ["coverage", "run", f"--context={suite}", "-m", "pytest", *targets]
    if session.posargs:
        args.extend(session.posargs)

    session.log("Running %s suite: %s", suite, " ".join(targets))
    session.run(*args, env=env)
    session.run("coverage", "report", "-m", env=env)


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_session)")
def tests_unit_session(session: nox.Session) -> None:
    """Execute session domain and application suites."""

    _run_suite(session, "session", ["tests/unit/session"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_http)")
def tests_unit_http(session: nox.Session) -> None:
    """Execute Flask route, webhook and schema suites."""

    _run_suite(session, "http", ["tests/unit/session_service"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_adapters)")
def tests_unit_adapters(session: nox.Session) -> None:
    """Execute Firestore, cache and identity-provider adapter suites."""

    _run_suite(session, "adapters", ["tests/unit/firestore", "tests/unit/cache", "tests/unit/providers"])
