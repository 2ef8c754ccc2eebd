"""Handler-lens contracts — Pydantic models shared by every component.

Scanner output, affordances, tool detection, invocation requests/results
and telemetry data all travel through these models.
All models are frozen (immutable after creation).

Source ranges come in two shapes: the canonical offset form
(``SourceRange``) and the editor-native line/character form
(``PositionRange``).  ``Document.normalize_range`` converts the latter into
the former at the boundary; everything downstream works on offsets only.
"""

from __future__ import annotations

import enum
import re
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Source ranges
# ---------------------------------------------------------------------------


class SourceRange(BaseModel):
    """Absolute character offsets into a document's text buffer."""

    model_config = ConfigDict(frozen=True)

    position_start: int = Field(..., ge=0, description="Start offset (inclusive)")
    position_end: int = Field(..., ge=0, description="End offset (exclusive)")

    @model_validator(mode="after")
    def _check_order(self) -> "SourceRange":
        if self.position_start > self.position_end:
            raise ValueError(
                f"position_start ({self.position_start}) must not exceed "
                f"position_end ({self.position_end})"
            )
        return self


class Position(BaseModel):
    """Zero-based line/character position, as editors report them."""

    model_config = ConfigDict(frozen=True)

    line: int = Field(..., ge=0)
    character: int = Field(..., ge=0)


class PositionRange(BaseModel):
    """Editor-native range between two positions."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position


RangeLike = Union[SourceRange, PositionRange]


# ---------------------------------------------------------------------------
# Scanner output
# ---------------------------------------------------------------------------


class HandlerCandidate(BaseModel):
    """A function that looks like a serverless handler entry point."""

    model_config = ConfigDict(frozen=True)

    handler_name: str = Field(..., min_length=1, description="e.g. 'app.handler'")
    range: RangeLike


# ---------------------------------------------------------------------------
# Workspace & affordances
# ---------------------------------------------------------------------------


class WorkspaceFolder(BaseModel):
    """A root folder opened in the host editor."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str = Field(..., description="Absolute, resolved folder path")
    index: int = Field(default=0, ge=0)


class AffordanceAction(str, enum.Enum):
    """What an inline affordance does when triggered."""

    RUN = "run"
    DEBUG = "debug"
    CONFIGURE = "configure"


class Affordance(BaseModel):
    """Data-only inline action bound to a handler's source range.

    The presentation layer turns these into host widgets; ``command`` is
    the dispatch key the widget triggers.
    """

    model_config = ConfigDict(frozen=True)

    document_uri: str
    handler_name: str
    range: SourceRange
    workspace_folder: WorkspaceFolder
    language: str
    action: AffordanceAction
    command: str
    title: str

    @property
    def is_debug(self) -> bool:
        return self.action is AffordanceAction.DEBUG


# ---------------------------------------------------------------------------
# Tool detection
# ---------------------------------------------------------------------------

_SEMVER_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")


class SemVer(BaseModel):
    """Three-component semantic version."""

    model_config = ConfigDict(frozen=True)

    major: int = Field(..., ge=0)
    minor: int = Field(..., ge=0)
    patch: int = Field(..., ge=0)

    @classmethod
    def parse(cls, text: str) -> "SemVer | None":
        """Return the first ``X.Y.Z`` found in *text*, or ``None``."""
        m = _SEMVER_RE.search(text or "")
        if not m:
            return None
        return cls(major=int(m.group(1)), minor=int(m.group(2)), patch=int(m.group(3)))

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: "SemVer") -> bool:
        return self.as_tuple() < other.as_tuple()

    def __le__(self, other: "SemVer") -> bool:
        return self.as_tuple() <= other.as_tuple()

    def __gt__(self, other: "SemVer") -> bool:
        return self.as_tuple() > other.as_tuple()

    def __ge__(self, other: "SemVer") -> bool:
        return self.as_tuple() >= other.as_tuple()

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


class ValidationOutcome(str, enum.Enum):
    """Terminal classification of the external CLI's version check."""

    VALID = "Valid"
    TOO_OLD = "TooOld"
    TOO_NEW = "TooNew"
    VERSION_NOT_PARSEABLE = "VersionNotParseable"
    NOT_FOUND = "NotFound"


class ToolDetectionResult(BaseModel):
    """Outcome of locating the external build CLI."""

    model_config = ConfigDict(frozen=True)

    found: bool
    path: str | None = None
    version: SemVer | None = None
    raw_version: str | None = Field(
        default=None, description="Unparsed ``--version`` output"
    )
    validation_outcome: ValidationOutcome

    @classmethod
    def not_found(cls) -> "ToolDetectionResult":
        return cls(found=False, validation_outcome=ValidationOutcome.NOT_FOUND)


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


class InvocationRequest(BaseModel):
    """Everything needed to build and locally invoke one handler."""

    model_config = ConfigDict(frozen=True)

    handler_name: str = Field(..., min_length=1)
    workspace_folder: WorkspaceFolder
    document_uri: str
    language: str
    is_debug: bool = False
    runtime: str
    debug_port: int | None = Field(default=None, ge=1, le=65535)
    event: dict[str, Any] = Field(default_factory=dict)
    environment: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_debug_port(self) -> "InvocationRequest":
        if self.is_debug and self.debug_port is None:
            raise ValueError("debug invocations require a debug_port")
        if not self.is_debug and self.debug_port is not None:
            raise ValueError("debug_port is only valid for debug invocations")
        return self


class InvocationState(str, enum.Enum):
    """Per-invocation state machine."""

    IDLE = "Idle"
    BUILDING = "Building"
    INVOKING = "Invoking"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class InvocationStatus(str, enum.Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class ErrorDetail(BaseModel):
    """Serialised ``LensError`` attached to a failed result."""

    model_config = ConfigDict(frozen=True)

    error: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: Exception) -> "ErrorDetail":
        data = exc.to_dict() if hasattr(exc, "to_dict") else {
            "error": type(exc).__name__, "message": str(exc),
        }
        error = data.pop("error")
        message = data.pop("message")
        return cls(error=error, message=message, detail=data)


class InvocationResult(BaseModel):
    """Terminal outcome of one local invocation."""

    model_config = ConfigDict(frozen=True)

    status: InvocationStatus
    output: str = ""
    error: ErrorDetail | None = None
    states: list[InvocationState] = Field(
        default_factory=list, description="States visited, in order"
    )

    @property
    def succeeded(self) -> bool:
        return self.status is InvocationStatus.SUCCEEDED


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------


class TelemetryDatum(BaseModel):
    """One emitted telemetry event for a wrapped command."""

    model_config = ConfigDict(frozen=True)

    command: str
    metadata: dict[str, str] = Field(default_factory=dict)
    success: bool
    duration_ms: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
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
    "RangeLike",
    "SemVer",
    "SourceRange",
    "TelemetryDatum",
    "ToolDetectionResult",
    "ValidationOutcome",
    "WorkspaceFolder",
]
