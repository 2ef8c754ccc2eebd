"""Per-workspace handler configuration — event payloads and env vars.

The "configure" affordance points at ``<workspace>/.aws/templates.json``::

    {
      "handlers": {
        "app.handler": {
          "event": {"key": "value"},
          "environmentVariables": {"TABLE_NAME": "local"}
        }
      }
    }

Local invocations read the event payload and environment variables for
their handler from this file; a missing file or entry means ``{}``.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from lambda_lens.contracts import WorkspaceFolder
from lambda_lens.errors import HandlerNameValidationError, LensError

logger = logging.getLogger(__name__)

CONFIG_RELATIVE_PATH = Path(".aws") / "templates.json"

# Fully-qualified names include '.', which handler names proper forbid.
HANDLER_NAME_RE = re.compile(r"[A-Za-z0-9_.\-]+")


def validate_handler_name(handler_name: str) -> None:
    """Raise ``HandlerNameValidationError`` unless the name is well formed."""
    if not HANDLER_NAME_RE.fullmatch(handler_name):
        raise HandlerNameValidationError(handler_name)


class HandlerConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event: dict[str, Any] = Field(default_factory=dict)
    environment_variables: dict[str, str] = Field(
        default_factory=dict, alias="environmentVariables"
    )


def config_path(workspace_folder: WorkspaceFolder) -> Path:
    return Path(workspace_folder.path) / CONFIG_RELATIVE_PATH


def _read(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {"handlers": {}}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise LensError(
            f"Could not read handler configuration {path}: {exc.msg} (line {exc.lineno})",
            detail={"path": str(path)},
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LensError(
            f"Could not read handler configuration {path}: {exc}",
            detail={"path": str(path)},
        ) from exc
    if not isinstance(data, dict):
        raise LensError(
            f"Handler configuration {path} must be a JSON object",
            detail={"path": str(path)},
        )
    handlers = data.setdefault("handlers", {})
    if not isinstance(handlers, dict):
        raise LensError(
            f"'handlers' in {path} must be a JSON object",
            detail={"path": str(path)},
        )
    return data


def load_handler_config(workspace_folder: WorkspaceFolder, handler_name: str) -> HandlerConfig:
    """Return the configuration for *handler_name* (defaults when absent).

    Raises ``LensError`` when the file exists but is malformed.
    """
    path = config_path(workspace_folder)
    entry = _read(path)["handlers"].get(handler_name) or {}
    try:
        return HandlerConfig.model_validate(entry)
    except ValidationError as exc:
        raise LensError(
            f"Invalid configuration for handler '{handler_name}' in {path}: {exc}",
            detail={"path": str(path), "handler_name": handler_name},
        ) from exc


def ensure_handler_config(workspace_folder: WorkspaceFolder, handler_name: str) -> Path:
    """Create the configuration entry for *handler_name* if missing.

    Returns the path of the configuration file so the host can open it.
    """
    validate_handler_name(handler_name)
    path = config_path(workspace_folder)
    data = _read(path)
    if handler_name in data["handlers"]:
        return path

    data["handlers"][handler_name] = {"event": {}, "environmentVariables": {}}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    logger.info("[lens:config] added handler %s to %s", handler_name, path)
    return path


__all__ = [
    "CONFIG_RELATIVE_PATH",
    "HANDLER_NAME_RE",
    "HandlerConfig",
    "config_path",
    "ensure_handler_config",
    "load_handler_config",
    "validate_handler_name",
]
