"""External tool probe — locate the SAM CLI, read its version, classify it.

Detection never raises for a missing or broken CLI: every outcome is one
of the five ``ValidationOutcome`` states.  Results are kept in a
``DetectionCache`` owned by the probe; forced refreshes go through the
single-flight key ``samcli.detect`` so concurrent requests share one
``sam --version`` subprocess.

Search order: configured path, standard install locations, then ``PATH``.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Any, Callable

from lambda_lens.config import Settings
from lambda_lens.contracts import SemVer, ToolDetectionResult, ValidationOutcome
from lambda_lens.errors import LensError, ToolDetectionError, ToolVersionError
from lambda_lens.runner import ProcessRunner, RunResult
from lambda_lens.runner import run as default_runner
from lambda_lens.single_flight import SingleFlight

logger = logging.getLogger(__name__)

TOOL_NAME = "SAM CLI"
DETECT_KEY = "samcli.detect"

Notifier = Callable[[ValidationOutcome, str], Any]

# ---------------------------------------------------------------------------
# Install locations
# ---------------------------------------------------------------------------

_POSIX_LOCATIONS: tuple[str, ...] = (
    "/usr/local/bin/sam",
    "/usr/bin/sam",
    "/opt/homebrew/bin/sam",
    "/home/linuxbrew/.linuxbrew/bin/sam",
    "~/.local/bin/sam",
)

_WINDOWS_LOCATIONS: tuple[str, ...] = (
    r"C:\Program Files\Amazon\AWSSAMCLI\bin\sam.cmd",
    r"C:\Program Files (x86)\Amazon\AWSSAMCLI\bin\sam.cmd",
)


def standard_locations(platform: str | None = None) -> list[str]:
    platform = platform or sys.platform
    raw = _WINDOWS_LOCATIONS if platform == "win32" else _POSIX_LOCATIONS
    return [os.path.expanduser(p) for p in raw]


def _binary_name(platform: str | None = None) -> str:
    return "sam.cmd" if (platform or sys.platform) == "win32" else "sam"


def _is_executable(path: str) -> bool:
    p = Path(path)
    return p.is_file() and os.access(p, os.X_OK)


# ---------------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------------


def parse_version(raw: str) -> SemVer | None:
    """Extract ``X.Y.Z`` from ``sam --version`` output.

    Accepts ``SAM CLI, version 1.97.0`` as well as a bare ``1.97.0``.
    Returns ``None`` when no three-component version is present.
    """
    return SemVer.parse(raw.strip()) if raw else None


def classify_version(
    version: SemVer | None, minimum: SemVer, maximum: SemVer
) -> ValidationOutcome:
    """Place *version* in the supported range ``[minimum, maximum)``."""
    if version is None:
        return ValidationOutcome.VERSION_NOT_PARSEABLE
    if version < minimum:
        return ValidationOutcome.TOO_OLD
    if version >= maximum:
        return ValidationOutcome.TOO_NEW
    return ValidationOutcome.VALID


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class DetectionCache:
    """Holds the last completed detection.  One write per detection cycle."""

    __slots__ = ("_result",)

    def __init__(self) -> None:
        self._result: ToolDetectionResult | None = None

    def get(self) -> ToolDetectionResult | None:
        return self._result

    def set(self, result: ToolDetectionResult) -> None:
        self._result = result

    def invalidate(self) -> None:
        self._result = None


# ---------------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------------


def _log_notifier(outcome: ValidationOutcome, message: str) -> None:
    logger.warning("[lens:probe] %s: %s", outcome.value, message)


class ToolProbe:
    """Detects and validates the external SAM CLI."""

    def __init__(
        self,
        settings: Settings,
        *,
        runner: ProcessRunner = default_runner,
        cache: DetectionCache | None = None,
        flights: SingleFlight | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.cache = cache or DetectionCache()
        self.flights = flights or SingleFlight()
        self.notifier: Notifier = notifier or _log_notifier

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect(self, force_refresh: bool = False) -> ToolDetectionResult:
        """Return the cached detection, or run one (shared across callers)."""
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached
        return await self.flights.get_existing_or_create(DETECT_KEY, self._detect_uncached)

    def locate(self) -> str | None:
        """Return the first usable CLI path, or ``None``."""
        configured = self.settings.SAM_CLI_LOCATION.strip()
        if configured:
            if _is_executable(configured):
                return configured
            logger.warning(
                "[lens:probe] configured SAM CLI location %r is not executable", configured
            )

        for candidate in standard_locations():
            if _is_executable(candidate):
                return candidate

        return shutil.which(_binary_name())

    async def _detect_uncached(self) -> ToolDetectionResult:
        path = self.locate()
        if path is None:
            logger.info("[lens:probe] %s", ToolDetectionError(TOOL_NAME))
            result = ToolDetectionResult.not_found()
            self.cache.set(result)
            return result

        try:
            run_result: RunResult = await self.runner(
                [path, "--version"], timeout_s=self.settings.DETECT_TIMEOUT_S,
            )
        except LensError as exc:
            logger.warning("[lens:probe] could not run %s: %s", path, exc)
            result = ToolDetectionResult(
                found=False, path=path, validation_outcome=ValidationOutcome.NOT_FOUND,
            )
            self.cache.set(result)
            return result

        if run_result.killed or run_result.exit_code == -1:
            err = ToolDetectionError(TOOL_NAME, run_result.stderr.strip() or "did not respond")
            logger.warning("[lens:probe] %s (path=%s)", err, path)
            result = ToolDetectionResult(
                found=False, path=path, validation_outcome=ValidationOutcome.NOT_FOUND,
            )
            self.cache.set(result)
            return result

        raw = run_result.stdout.strip() or run_result.stderr.strip()
        version = parse_version(raw)
        outcome = classify_version(
            version, self.settings.min_version, self.settings.max_version,
        )
        result = ToolDetectionResult(
            found=True,
            path=path,
            version=version,
            raw_version=raw,
            validation_outcome=outcome,
        )
        self.cache.set(result)
        logger.info(
            "[lens:probe] found %s at %s version=%s outcome=%s",
            TOOL_NAME, path, version, outcome.value,
        )
        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_and_notify(self) -> ValidationOutcome:
        """Detect, classify, and notify the user of any non-Valid outcome."""
        result = await self.detect()
        outcome = result.validation_outcome
        if outcome is ValidationOutcome.VALID:
            return outcome

        if outcome is ValidationOutcome.NOT_FOUND:
            logger.info("[lens:probe] %s", ToolDetectionError(TOOL_NAME))
        else:
            version_text = str(result.version) if result.version else result.raw_version
            logger.info("[lens:probe] %s", ToolVersionError(TOOL_NAME, outcome.value, version_text))

        message = self.describe(result)
        try:
            self.notifier(outcome, message)
        except Exception:
            logger.warning("[lens:probe] notifier failed for %s", outcome.value, exc_info=True)
        return outcome

    def describe(self, result: ToolDetectionResult) -> str:
        """User-facing message for a detection outcome."""
        low, high = self.settings.min_version, self.settings.max_version
        outcome = result.validation_outcome
        if outcome is ValidationOutcome.NOT_FOUND:
            return (
                f"{TOOL_NAME} was not found. Install it, or set "
                "LAMBDA_LENS_SAM_CLI_LOCATION to the path of the sam executable."
            )
        if outcome is ValidationOutcome.TOO_OLD:
            return (
                f"{TOOL_NAME} {result.version} is too old. Version {low} or newer "
                f"(below {high}) is required; please upgrade."
            )
        if outcome is ValidationOutcome.TOO_NEW:
            return (
                f"{TOOL_NAME} {result.version} is newer than supported "
                f"(must be below {high}). Please update lambda_lens."
            )
        if outcome is ValidationOutcome.VERSION_NOT_PARSEABLE:
            return (
                f"Could not determine the {TOOL_NAME} version from "
                f"{result.raw_version!r}."
            )
        return f"{TOOL_NAME} {result.version} is supported."


__all__ = [
    "DETECT_KEY",
    "DetectionCache",
    "ToolProbe",
    "classify_version",
    "parse_version",
    "standard_locations",
]
