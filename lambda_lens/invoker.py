"""Local invocation orchestrator — build and run one handler through SAM CLI.

State machine per invocation::

    Idle → Building → Invoking → Succeeded
                 ↘          ↘
                  Failed      Failed

Pre-flight detection runs before ``Building``; an unusable CLI fails the
invocation without spawning anything.  A failed build never reaches
``Invoking``.  Failures are terminal and never retried; the caller
decides whether to trigger again.

Each invocation writes a generated template and event file into
``<workspace>/<WORK_DIR_NAME>/<handler>/`` and runs::

    sam build --template template.yaml --build-dir build --base-dir <workspace>
    sam local invoke LocalInvokeFunction --template build/template.yaml \\
        --event event.json [--debug-port <port>]
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import yaml

from lambda_lens.affordances import supports_debug
from lambda_lens.config import Settings
from lambda_lens.contracts import (
    Affordance,
    ErrorDetail,
    InvocationRequest,
    InvocationResult,
    InvocationState,
    InvocationStatus,
    ValidationOutcome,
)
from lambda_lens.errors import (
    BuildFailure,
    InvocationFailure,
    LensError,
    ToolDetectionError,
    ToolVersionError,
)
from lambda_lens.handler_config import load_handler_config
from lambda_lens.probe import TOOL_NAME, ToolProbe
from lambda_lens.runner import ProcessRunner
from lambda_lens.runner import run as default_runner

logger = logging.getLogger(__name__)

LOGICAL_ID = "LocalInvokeFunction"
TEMPLATE_FILE = "template.yaml"
EVENT_FILE = "event.json"
BUILD_DIR = "build"
FUNCTION_TIMEOUT_S = 30


def runtime_for(language: str, settings: Settings) -> str:
    """Map a language id to the SAM runtime identifier."""
    runtimes = {
        "python": settings.PYTHON_RUNTIME,
        "javascript": settings.NODE_RUNTIME,
        "typescript": settings.NODE_RUNTIME,
    }
    try:
        return runtimes[language]
    except KeyError:
        raise LensError(
            f"No local runtime is configured for language '{language}'",
            detail={"language": language},
        ) from None


def _safe_dir_name(handler_name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.\-]", "_", handler_name)


class _Trail:
    """Records the states one invocation passes through."""

    def __init__(self, handler_name: str) -> None:
        self.handler_name = handler_name
        self.states: list[InvocationState] = [InvocationState.IDLE]

    def enter(self, state: InvocationState) -> None:
        logger.info("[lens:invoke] %s → %s", self.handler_name, state.value)
        self.states.append(state)

    def failed(self, exc: LensError, output: str) -> InvocationResult:
        self.enter(InvocationState.FAILED)
        logger.warning("[lens:invoke] %s", exc)
        return InvocationResult(
            status=InvocationStatus.FAILED,
            output=output,
            error=ErrorDetail.from_error(exc),
            states=list(self.states),
        )

    def succeeded(self, output: str) -> InvocationResult:
        self.enter(InvocationState.SUCCEEDED)
        return InvocationResult(
            status=InvocationStatus.SUCCEEDED, output=output, states=list(self.states),
        )


class LocalInvoker:
    """Drives build + local invoke for run/debug affordances."""

    def __init__(
        self,
        settings: Settings,
        probe: ToolProbe,
        *,
        runner: ProcessRunner = default_runner,
    ) -> None:
        self.settings = settings
        self.probe = probe
        self.runner = runner

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------

    def build_request(self, affordance: Affordance, is_debug: bool) -> InvocationRequest:
        """Resolve runtime, debug port and event payload for *affordance*.

        Raises ``LensError`` for unsupported languages, debug requests on
        languages without debug support, or a malformed handler config.
        """
        if is_debug and not supports_debug(affordance.language):
            raise LensError(
                f"Local debugging is not supported for {affordance.language}",
                detail={"language": affordance.language},
            )
        config = load_handler_config(affordance.workspace_folder, affordance.handler_name)
        return InvocationRequest(
            handler_name=affordance.handler_name,
            workspace_folder=affordance.workspace_folder,
            document_uri=affordance.document_uri,
            language=affordance.language,
            is_debug=is_debug,
            runtime=runtime_for(affordance.language, self.settings),
            debug_port=self.settings.DEBUG_PORT if is_debug else None,
            event=config.event,
            environment=config.environment_variables,
        )

    # ------------------------------------------------------------------
    # Invoke
    # ------------------------------------------------------------------

    async def invoke(self, affordance: Affordance, is_debug: bool = False) -> InvocationResult:
        """Build and locally invoke the handler behind *affordance*."""
        trail = _Trail(affordance.handler_name)

        try:
            request = self.build_request(affordance, is_debug)
        except LensError as exc:
            return trail.failed(exc, exc.message)

        detection = await self.probe.detect()
        outcome = detection.validation_outcome
        if outcome is not ValidationOutcome.VALID:
            if outcome is ValidationOutcome.NOT_FOUND:
                err: LensError = ToolDetectionError(TOOL_NAME)
            else:
                err = ToolVersionError(
                    TOOL_NAME, outcome.value,
                    str(detection.version) if detection.version else detection.raw_version,
                )
            return trail.failed(err, self.probe.describe(detection))

        sam = detection.path or "sam"
        try:
            work_dir = self._prepare_work_dir(affordance, request)
        except OSError as exc:
            return trail.failed(
                LensError(
                    f"Could not prepare the work directory for '{request.handler_name}': {exc}",
                    detail={"handler_name": request.handler_name, "path": str(exc.filename or "")},
                ),
                str(exc),
            )
        cwd = request.workspace_folder.path

        # Building ---------------------------------------------------------
        trail.enter(InvocationState.BUILDING)
        build = await self.runner(
            [
                sam, "build",
                "--template", str(work_dir / TEMPLATE_FILE),
                "--build-dir", str(work_dir / BUILD_DIR),
                "--base-dir", cwd,
            ],
            timeout_s=self.settings.BUILD_TIMEOUT_S,
            cwd=cwd,
        )
        if not build.ok:
            output = build.stderr or build.stdout
            return trail.failed(
                BuildFailure(request.handler_name, build.exit_code, output), output,
            )

        # Invoking ---------------------------------------------------------
        trail.enter(InvocationState.INVOKING)
        invoke = await self.runner(
            self._invoke_argv(sam, work_dir, request),
            timeout_s=self.settings.INVOKE_TIMEOUT_S,
            cwd=cwd,
        )
        if not invoke.ok:
            output = invoke.combined_output
            return trail.failed(
                InvocationFailure(
                    request.handler_name, invoke.exit_code, output, killed=invoke.killed,
                ),
                output,
            )

        return trail.succeeded(invoke.combined_output)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _invoke_argv(self, sam: str, work_dir: Path, request: InvocationRequest) -> list[str]:
        argv = [
            sam, "local", "invoke", LOGICAL_ID,
            "--template", str(work_dir / BUILD_DIR / TEMPLATE_FILE),
            "--event", str(work_dir / EVENT_FILE),
        ]
        if request.is_debug and request.debug_port is not None:
            argv += ["--debug-port", str(request.debug_port)]
        return argv

    def _prepare_work_dir(self, affordance: Affordance, request: InvocationRequest) -> Path:
        root = Path(request.workspace_folder.path)
        work_dir = root / self.settings.WORK_DIR_NAME / _safe_dir_name(request.handler_name)
        work_dir.mkdir(parents=True, exist_ok=True)

        template = build_template(affordance, request)
        (work_dir / TEMPLATE_FILE).write_text(
            yaml.safe_dump(template, sort_keys=False), encoding="utf-8",
        )
        (work_dir / EVENT_FILE).write_text(json.dumps(request.event), encoding="utf-8")
        return work_dir


def build_template(affordance: Affordance, request: InvocationRequest) -> dict[str, Any]:
    """Generate a single-function SAM template for *request*."""
    root = Path(request.workspace_folder.path)
    doc_dir = _document_dir(affordance.document_uri)
    try:
        code_uri = doc_dir.relative_to(root).as_posix() or "."
    except ValueError:
        code_uri = doc_dir.as_posix()

    properties: dict[str, Any] = {
        "Handler": request.handler_name,
        "CodeUri": code_uri,
        "Runtime": request.runtime,
        "Timeout": FUNCTION_TIMEOUT_S,
    }
    if request.environment:
        properties["Environment"] = {"Variables": dict(request.environment)}

    return {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Transform": "AWS::Serverless-2016-10-31",
        "Resources": {
            LOGICAL_ID: {
                "Type": "AWS::Serverless::Function",
                "Properties": properties,
            },
        },
    }


def _document_dir(document_uri: str) -> Path:
    parsed = urlparse(document_uri)
    raw = unquote(parsed.path)
    if re.match(r"^/[A-Za-z]:", raw):  # file:///C:/...
        raw = raw[1:]
    return Path(raw).parent


__all__ = [
    "LOGICAL_ID",
    "LocalInvoker",
    "build_template",
    "runtime_for",
]
