"""Process runner — argv-based subprocess calls for the SAM CLI.

``run()`` spawns one argv list (never through a shell) on a worker thread
and hands back a ``RunResult``.  The child sees only a pass-through subset
of the parent environment plus whatever the caller adds.

Outcomes that do not raise:

* the process outlives ``timeout_s``: killed, ``killed=True``, exit ``-1``
* the binary cannot be spawned: exit ``-1``, OS error text in ``stderr``

Only a malformed argv raises (``LensError``).
"""

from __future__ import annotations

import asyncio
import os
import subprocess
import time
from typing import Awaitable, Protocol

from pydantic import BaseModel, ConfigDict, Field

from lambda_lens.errors import LensError

STDOUT_LIMIT = 200_000
STDERR_LIMIT = 50_000
DEFAULT_TIMEOUT_S = 120

# Passed through to SAM.  AWS_* select profile/region, DOCKER_* reach the
# container runtime used by ``sam local``.
PASSTHROUGH_ENV: frozenset[str] = frozenset({
    "PATH", "HOME", "USERPROFILE", "SYSTEMROOT",
    "TMPDIR", "TEMP", "TMP", "LANG", "LC_ALL",
    "AWS_PROFILE", "AWS_REGION", "AWS_DEFAULT_REGION",
    "AWS_CONFIG_FILE", "AWS_SHARED_CREDENTIALS_FILE",
    "DOCKER_HOST", "DOCKER_CERT_PATH", "DOCKER_TLS_VERIFY",
})


class RunResult(BaseModel):
    """What one child process produced."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(..., description="Printable form of the argv")
    exit_code: int = Field(..., description="Child exit status; -1 when killed or never started")
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = Field(default=0, ge=0)
    truncated: bool = Field(default=False, description="Either stream was clipped")
    killed: bool = Field(default=False, description="Timed out and was killed")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.killed

    @property
    def combined_output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class ProcessRunner(Protocol):
    def __call__(
        self,
        argv: list[str],
        *,
        timeout_s: int = ...,
        cwd: str | None = ...,
        env: dict[str, str] | None = ...,
    ) -> Awaitable[RunResult]: ...


def validate_argv(argv: list[str]) -> str | None:
    """Return an error message for an unusable argv, else ``None``."""
    if not argv or not argv[0].strip():
        return "Error: Command is empty"
    if any("\x00" in arg for arg in argv):
        return "Error: Command contains a NUL byte"
    return None


def child_env(extra: dict[str, str] | None = None) -> dict[str, str]:
    """Pass-through subset of ``os.environ`` overlaid with *extra*."""
    env = {k: v for k, v in os.environ.items() if k in PASSTHROUGH_ENV and v}
    env.update(extra or {})
    return env


def _clip(text: str, limit: int) -> tuple[str, bool]:
    if len(text) <= limit:
        return text, False
    dropped = len(text) - limit
    return f"{text[:limit]}\n\n[... {dropped} more characters clipped at {limit} ...]", True


def _as_text(data: str | bytes | None) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data or ""


def _spawn(
    argv: list[str], timeout_s: int, cwd: str | None, env: dict[str, str]
) -> tuple[int, str, str, bool]:
    """Blocking half of ``run``; executes on the default thread pool."""
    try:
        proc = subprocess.run(
            argv,
            cwd=cwd,
            env=env,
            timeout=timeout_s,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired as exc:
        return -1, _as_text(exc.stdout), _as_text(exc.stderr), True
    return proc.returncode, proc.stdout or "", proc.stderr or "", False


async def run(
    argv: list[str],
    *,
    timeout_s: int = DEFAULT_TIMEOUT_S,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> RunResult:
    """Run *argv* to completion (or timeout) and describe the outcome.

    Raises ``LensError`` when *argv* is empty or contains NUL bytes.
    """
    problem = validate_argv(argv)
    if problem:
        raise LensError(problem, detail={"argv": list(argv)})

    command = subprocess.list2cmdline(argv)
    started = time.perf_counter()
    loop = asyncio.get_running_loop()
    try:
        code, out, err, killed = await loop.run_in_executor(
            None, _spawn, list(argv), timeout_s, cwd, child_env(env),
        )
    except OSError as exc:
        return RunResult(
            command=command,
            exit_code=-1,
            stderr=f"Error: {exc}",
            duration_ms=_ms_since(started),
        )

    out, out_clipped = _clip(out, STDOUT_LIMIT)
    err, err_clipped = _clip(err, STDERR_LIMIT)
    return RunResult(
        command=command,
        exit_code=code,
        stdout=out,
        stderr=err,
        duration_ms=_ms_since(started),
        truncated=out_clipped or err_clipped,
        killed=killed,
    )


def _ms_since(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = [
    "ProcessRunner",
    "RunResult",
    "child_env",
    "run",
    "validate_argv",
]
