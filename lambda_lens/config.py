"""Handler-lens configuration loaded from environment variables.

Uses ``pydantic-settings`` for env-var loading, type coercion and ``.env``
file support.  Every variable carries the ``LAMBDA_LENS_`` prefix, e.g.
``LAMBDA_LENS_SAM_CLI_LOCATION=/opt/sam/bin/sam``.

Tests build ``Settings(...)`` directly instead of going through
``get_settings()``.
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lambda_lens.contracts import SemVer

VERSION = "0.1.0"


class Settings(BaseSettings):
    """Runtime settings — sourced from environment / ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="LAMBDA_LENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- external build CLI --
    SAM_CLI_LOCATION: str = ""  # explicit binary path; searched first
    SAM_CLI_MIN_VERSION: str = "1.0.0"  # inclusive
    SAM_CLI_MAX_VERSION: str = "2.0.0"  # exclusive

    # -- subprocess timeouts (seconds) --
    DETECT_TIMEOUT_S: int = Field(default=15, ge=1)
    BUILD_TIMEOUT_S: int = Field(default=600, ge=1)
    INVOKE_TIMEOUT_S: int = Field(default=300, ge=1)

    # -- local invocation --
    DEBUG_PORT: int = Field(default=5858, ge=1, le=65535)
    PYTHON_RUNTIME: str = "python3.12"
    NODE_RUNTIME: str = "nodejs20.x"
    WORK_DIR_NAME: str = ".lambda_lens"  # per-workspace scratch directory

    # -- telemetry & logging --
    TELEMETRY_ENABLED: bool = True
    TELEMETRY_SINK_TIMEOUT_S: float = Field(default=5.0, gt=0)
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    @model_validator(mode="after")
    def _check_version_range(self) -> "Settings":
        low = SemVer.parse(self.SAM_CLI_MIN_VERSION)
        high = SemVer.parse(self.SAM_CLI_MAX_VERSION)
        if low is None or high is None:
            raise ValueError("SAM CLI version bounds must look like X.Y.Z")
        if low >= high:
            raise ValueError(
                f"SAM_CLI_MIN_VERSION ({low}) must be below SAM_CLI_MAX_VERSION ({high})"
            )
        return self

    @property
    def min_version(self) -> SemVer:
        return SemVer.parse(self.SAM_CLI_MIN_VERSION)  # type: ignore[return-value]

    @property
    def max_version(self) -> SemVer:
        return SemVer.parse(self.SAM_CLI_MAX_VERSION)  # type: ignore[return-value]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


class _PlainFormatter(logging.Formatter):
    """Compact single-line formatter: time, level, short logger name, message."""

    def format(self, record: logging.LogRecord) -> str:
        ts = self.formatTime(record, "%H:%M:%S")
        name = record.name.split(".")[-1][:16]
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"
        return f"{ts} {record.levelname:<8s} [{name:>16s}] {msg}"


def configure_logging(settings: Settings) -> None:
    """Configure the root logger once for CLI / host start-up."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_PlainFormatter())
    handlers: list[logging.Handler] = [handler]

    if settings.LOG_FILE:
        from logging.handlers import RotatingFileHandler
        from pathlib import Path

        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_path),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(_PlainFormatter())
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
