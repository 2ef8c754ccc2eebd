"""Handler-lens error hierarchy.

Errors keep their inputs as attributes.  ``to_dict()`` feeds
``ErrorDetail`` on a failed ``InvocationResult``; ``str()`` is the
user-facing message.

Scan and handler-name errors are recovered locally (logged, skipped).
Workspace resolution errors propagate to the caller.  Tool detection and
version errors are normally reported as a classified ``ValidationOutcome``
rather than raised.  Build and invocation failures are folded into a
``Failed`` ``InvocationResult``.
"""

from __future__ import annotations


class LensError(Exception):
    """Base error for all handler-lens failures."""

    def __init__(self, message: str, *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.message, **self.detail}

    def __str__(self) -> str:
        return self.message


class ScanError(LensError):
    """A source construct could not be parsed while scanning for handlers."""

    def __init__(self, path: str, line: int, reason: str) -> None:
        self.path = path
        self.line = line
        self.reason = reason
        super().__init__(
            f"Could not scan '{path}' at line {line}: {reason}",
            detail={"path": path, "line": line, "reason": reason},
        )


class WorkspaceResolutionError(LensError):
    """The document does not live inside any workspace folder."""

    def __init__(self, document_uri: str) -> None:
        self.document_uri = document_uri
        super().__init__(
            f"Source file {document_uri} is external to the current workspace.",
            detail={"document_uri": document_uri},
        )


class HandlerNameValidationError(LensError):
    """Handler name contains characters outside ``[A-Za-z0-9_.-]``."""

    def __init__(self, handler_name: str) -> None:
        self.handler_name = handler_name
        super().__init__(
            f"Invalid handler name: '{handler_name}'. "
            "Handler names can contain only letters, numbers, hyphens, and underscores.",
            detail={"handler_name": handler_name},
        )


class ToolDetectionError(LensError):
    """The external build CLI could not be found or executed."""

    def __init__(self, tool_name: str, reason: str = "not found") -> None:
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(
            f"{tool_name} is unavailable: {reason}",
            detail={"tool_name": tool_name, "reason": reason},
        )


class ToolVersionError(LensError):
    """The external build CLI reported an unusable version."""

    def __init__(self, tool_name: str, outcome: str, version: str | None = None) -> None:
        self.tool_name = tool_name
        self.outcome = outcome
        self.version = version
        super().__init__(
            f"{tool_name} version check failed ({outcome}): {version or 'unknown'}",
            detail={"tool_name": tool_name, "outcome": outcome, "version": version},
        )


class BuildFailure(LensError):
    """The build subcommand exited non-zero, timed out or crashed."""

    def __init__(self, handler_name: str, exit_code: int, output: str) -> None:
        self.handler_name = handler_name
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            f"Build failed for handler '{handler_name}' (exit code {exit_code})",
            detail={"handler_name": handler_name, "exit_code": exit_code},
        )


class InvocationFailure(LensError):
    """The local invoke subcommand exited non-zero, timed out or crashed."""

    def __init__(
        self, handler_name: str, exit_code: int, output: str, *, killed: bool = False
    ) -> None:
        self.handler_name = handler_name
        self.exit_code = exit_code
        self.output = output
        self.killed = killed
        reason = "timed out" if killed else f"exit code {exit_code}"
        super().__init__(
            f"Local invocation failed for handler '{handler_name}' ({reason})",
            detail={"handler_name": handler_name, "exit_code": exit_code, "killed": killed},
        )


class CommandNotFound(LensError):
    """Requested command key is not registered."""

    def __init__(self, command: str, available_commands: list[str]) -> None:
        self.command = command
        self.available_commands = available_commands
        super().__init__(
            f"Command '{command}' not found. Available: {', '.join(available_commands)}",
            detail={"command": command, "available_commands": available_commands},
        )
