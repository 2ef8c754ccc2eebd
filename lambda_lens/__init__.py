"""Serverless handler discovery and local invocation through SAM CLI.

Public API
----------
Toolkit::

    LambdaLensToolkit  — scan / build_affordances / invoke / detect_tool /
                         validate_tool_version / configure

Contracts (Pydantic models)::

    SourceRange, Position, PositionRange, HandlerCandidate,
    WorkspaceFolder, Affordance, AffordanceAction,
    SemVer, ValidationOutcome, ToolDetectionResult,
    InvocationRequest, InvocationResult, InvocationState, InvocationStatus,
    ErrorDetail, TelemetryDatum,

Scanning::

    Document, scan_document, HandlerScan, CancellationToken

Errors::

    LensError, ScanError, WorkspaceResolutionError,
    HandlerNameValidationError, ToolDetectionError, ToolVersionError,
    BuildFailure, InvocationFailure, CommandNotFound,

Components::

    make_affordances, ToolProbe, DetectionCache, SingleFlight,
    LocalInvoker, TelemetryRecorder, CommandTable, FolderResolver
"""

from lambda_lens.affordances import get_invoke_cmd_key, make_affordances
from lambda_lens.commands import CommandTable
from lambda_lens.config import Settings, get_settings
from lambda_lens.contracts import (
    Affordance,
    AffordanceAction,
    ErrorDetail,
    HandlerCandidate,
    InvocationRequest,
    InvocationResult,
    InvocationState,
    InvocationStatus,
    Position,
    PositionRange,
    SemVer,
    SourceRange,
    TelemetryDatum,
    ToolDetectionResult,
    ValidationOutcome,
    WorkspaceFolder,
)
from lambda_lens.document import Document
from lambda_lens.errors import (
    BuildFailure,
    CommandNotFound,
    HandlerNameValidationError,
    InvocationFailure,
    LensError,
    ScanError,
    ToolDetectionError,
    ToolVersionError,
    WorkspaceResolutionError,
)
from lambda_lens.invoker import LocalInvoker
from lambda_lens.lang import CancellationToken, HandlerScan, scan_document
from lambda_lens.probe import DetectionCache, ToolProbe
from lambda_lens.single_flight import SingleFlight
from lambda_lens.telemetry import MemoryTelemetrySink, TelemetryRecorder
from lambda_lens.toolkit import LambdaLensToolkit
from lambda_lens.workspace import FolderResolver

__all__ = [
    # Toolkit
    "LambdaLensToolkit",
    # Config
    "Settings",
    "get_settings",
    # Contracts
    "Affordance",
    "AffordanceAction",
    "ErrorDetail",
    "HandlerCandidate",
    "InvocationRequest",
    "InvocationResult",
    "InvocationState",
    "InvocationStatus",
    "Position",
    "PositionRange",
    "SemVer",
    "SourceRange",
    "TelemetryDatum",
    "ToolDetectionResult",
    "ValidationOutcome",
    "WorkspaceFolder",
    # Scanning
    "CancellationToken",
    "Document",
    "HandlerScan",
    "scan_document",
    # Errors
    "BuildFailure",
    "CommandNotFound",
    "HandlerNameValidationError",
    "InvocationFailure",
    "LensError",
    "ScanError",
    "ToolDetectionError",
    "ToolVersionError",
    "WorkspaceResolutionError",
    # Components
    "CommandTable",
    "DetectionCache",
    "FolderResolver",
    "LocalInvoker",
    "MemoryTelemetrySink",
    "SingleFlight",
    "TelemetryRecorder",
    "ToolProbe",
    "get_invoke_cmd_key",
    "make_affordances",
]
