"""Shared fixtures and fakes for the lambda_lens test suite.

Provides:
- ``settings`` — deterministic ``Settings`` that ignore ``.env`` / env vars
- ``workspace`` — a temporary workspace folder with a resolver
- ``FakeRunner`` — scripted stand-in for ``lambda_lens.runner.run``
- ``fake_sam`` — an executable placeholder file usable as SAM_CLI_LOCATION
"""

from __future__ import annotations

import asyncio
import os
import stat
from pathlib import Path
from typing import Callable

import pytest

from lambda_lens.config import Settings
from lambda_lens.document import Document
from lambda_lens.runner import RunResult
from lambda_lens.workspace import FolderResolver


# ---------------------------------------------------------------------------
# Marker registration
# ---------------------------------------------------------------------------


def pytest_configure(config):
    """Register custom markers.

    Tests that spawn real subprocesses are marked ``subprocess``; run
    ``pytest -m 'not subprocess'`` to skip them.
    """
    config.addinivalue_line(
        "markers",
        "subprocess: tests that spawn real child processes",
    )


# ---------------------------------------------------------------------------
# Settings & workspace
# ---------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    values = {
        "SAM_CLI_LOCATION": "",
        "SAM_CLI_MIN_VERSION": "1.0.0",
        "SAM_CLI_MAX_VERSION": "2.0.0",
        "DEBUG_PORT": 5858,
        "PYTHON_RUNTIME": "python3.12",
        "NODE_RUNTIME": "nodejs20.x",
        "TELEMETRY_ENABLED": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


class Workspace:
    """A temporary workspace root plus helpers to create documents in it."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()
        self.resolver = FolderResolver([root])
        self.folder = self.resolver.folders[0]

    def document(self, rel_path: str, text: str, language_id: str | None = None) -> Document:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return Document(path, text, language_id)


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    root = tmp_path / "project"
    root.mkdir()
    return Workspace(root)


@pytest.fixture
def fake_sam(tmp_path: Path) -> str:
    """An executable file standing in for the sam binary."""
    path = tmp_path / "bin" / "sam"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


# ---------------------------------------------------------------------------
# Fake process runner
# ---------------------------------------------------------------------------


def ok(stdout: str = "", stderr: str = "", command: str = "sam") -> RunResult:
    return RunResult(exit_code=0, stdout=stdout, stderr=stderr, command=command)


def fail(stderr: str = "", exit_code: int = 1, stdout: str = "", killed: bool = False) -> RunResult:
    return RunResult(
        exit_code=-1 if killed else exit_code,
        stdout=stdout,
        stderr=stderr,
        killed=killed,
        command="sam",
    )


class FakeRunner:
    """Scripted async runner.

    *respond* maps an argv list to a ``RunResult``.  Every call is
    recorded in ``calls``; ``delay`` suspends before answering so tests can
    overlap concurrent callers.
    """

    def __init__(self, respond: Callable[[list[str]], RunResult], delay: float = 0.0) -> None:
        self.respond = respond
        self.delay = delay
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []

    async def __call__(self, argv, *, timeout_s=120, cwd=None, env=None) -> RunResult:
        self.calls.append(list(argv))
        self.kwargs.append({"timeout_s": timeout_s, "cwd": cwd, "env": env})
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.respond(list(argv))

    def subcommands(self) -> list[str]:
        """``"--version"``, ``"build"`` or ``"local"`` per recorded call."""
        return [argv[1] for argv in self.calls]


def sam_responder(
    version: str = "SAM CLI, version 1.97.0",
    build: RunResult | None = None,
    invoke: RunResult | None = None,
) -> Callable[[list[str]], RunResult]:
    def _respond(argv: list[str]) -> RunResult:
        if argv[1] == "--version":
            return ok(stdout=version)
        if argv[1] == "build":
            return build or ok(stdout="Build Succeeded")
        if argv[1] == "local":
            return invoke or ok(stdout='{"statusCode": 200}')
        raise AssertionError(f"unexpected argv: {argv}")
    return _respond


@pytest.fixture
def no_sam_on_host(monkeypatch):
    """Hide every standard install location and PATH lookup."""
    monkeypatch.setattr("lambda_lens.probe.standard_locations", lambda platform=None: [])
    monkeypatch.setattr("lambda_lens.probe.shutil.which", lambda name: None)
    monkeypatch.delenv("LAMBDA_LENS_SAM_CLI_LOCATION", raising=False)


SKIP_ON_WINDOWS = pytest.mark.skipif(os.name == "nt", reason="POSIX executable bits")
