"""Toolkit facade — the surface a host editor integration talks to.

``LambdaLensToolkit`` wires the scanner, affordance generator, tool probe,
invoker and command table together.  A host:

1. calls ``initialize()`` once at start-up (non-forced detection),
2. calls ``build_affordances()`` on every refresh and renders the result,
3. forwards triggered affordances to ``invoke()`` / ``configure()``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from lambda_lens.affordances import CONFIGURE_COMMAND, get_invoke_cmd_key, make_affordances
from lambda_lens.config import Settings, get_settings
from lambda_lens.contracts import (
    Affordance,
    HandlerCandidate,
    InvocationResult,
    ToolDetectionResult,
    ValidationOutcome,
    WorkspaceFolder,
)
from lambda_lens.commands import CommandTable
from lambda_lens.document import Document
from lambda_lens.handler_config import ensure_handler_config
from lambda_lens.invoker import LocalInvoker, runtime_for
from lambda_lens.lang import SCANNERS, CancellationToken, scan_document
from lambda_lens.probe import DETECT_KEY, Notifier, ToolProbe
from lambda_lens.runner import ProcessRunner
from lambda_lens.runner import run as default_runner
from lambda_lens.single_flight import SingleFlight
from lambda_lens.telemetry import (
    LoggingTelemetrySink,
    NullTelemetrySink,
    TelemetryRecorder,
    TelemetrySink,
)
from lambda_lens.workspace import FolderResolver, WorkspaceResolver

logger = logging.getLogger(__name__)

VALIDATE_COMMAND = "samcli.validate.version"


class LambdaLensToolkit:
    """Handler discovery and local invocation for one host session."""

    def __init__(
        self,
        resolver: WorkspaceResolver | list[str | Path],
        settings: Settings | None = None,
        *,
        runner: ProcessRunner = default_runner,
        telemetry_sink: TelemetrySink | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.resolver: WorkspaceResolver = (
            FolderResolver(resolver) if isinstance(resolver, list) else resolver
        )

        if not self.settings.TELEMETRY_ENABLED:
            sink: TelemetrySink = NullTelemetrySink()
        else:
            sink = telemetry_sink or LoggingTelemetrySink()

        self.flights = SingleFlight()
        self.probe = ToolProbe(
            self.settings, runner=runner, flights=self.flights, notifier=notifier,
        )
        self.invoker = LocalInvoker(self.settings, self.probe, runner=runner)
        self.commands = CommandTable(
            TelemetryRecorder(sink, sink_timeout_s=self.settings.TELEMETRY_SINK_TIMEOUT_S)
        )
        self._register_commands()

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------

    def _register_commands(self) -> None:
        for language in sorted(SCANNERS):
            self.commands.register(
                get_invoke_cmd_key(language),
                self.invoker.invoke,
                f"Build and locally invoke a {language} handler",
                runtime=runtime_for(language, self.settings),
                succeeded=lambda result: result.succeeded,
            )
        self.commands.register(
            CONFIGURE_COMMAND,
            ensure_handler_config,
            "Create or open the handler configuration entry",
        )
        self.commands.register(
            DETECT_KEY,
            lambda: self.detect_tool(force_refresh=True),
            "Re-detect the SAM CLI",
        )
        self.commands.register(
            VALIDATE_COMMAND,
            self.probe.validate_and_notify,
            "Validate the SAM CLI version",
            succeeded=lambda outcome: outcome is ValidationOutcome.VALID,
        )

    async def initialize(self) -> ToolDetectionResult:
        """Run the initial (cached, non-forced) detection."""
        result = await self.probe.detect(force_refresh=False)
        logger.info("[lens:toolkit] initialized (SAM CLI %s)", result.validation_outcome.value)
        return result

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    def scan(
        self, document: Document, token: CancellationToken | None = None
    ) -> list[HandlerCandidate]:
        return list(scan_document(document, token=token))

    def build_affordances(
        self,
        document: Document,
        language: str | None = None,
        token: CancellationToken | None = None,
    ) -> list[Affordance]:
        """Scan *document* and return its affordances.

        Raises ``WorkspaceResolutionError`` for documents outside every
        workspace folder.
        """
        lang = language or document.language_id
        candidates = scan_document(document, lang, token=token)
        return make_affordances(document, candidates, lang, self.resolver)

    async def invoke(
        self, affordance: Affordance, is_debug: bool | None = None
    ) -> InvocationResult:
        """Dispatch a run/debug affordance; *is_debug* defaults to the action."""
        debug = affordance.is_debug if is_debug is None else is_debug
        return await self.commands.dispatch(
            get_invoke_cmd_key(affordance.language), affordance, debug, is_debug=debug,
        )

    async def configure(self, workspace_folder: WorkspaceFolder, handler_name: str) -> Path:
        return await self.commands.dispatch(CONFIGURE_COMMAND, workspace_folder, handler_name)

    async def detect_tool(self, force_refresh: bool = False) -> ToolDetectionResult:
        return await self.probe.detect(force_refresh)

    async def validate_tool_version(self) -> ValidationOutcome:
        return await self.commands.dispatch(VALIDATE_COMMAND)


__all__ = [
    "LambdaLensToolkit",
    "VALIDATE_COMMAND",
]
