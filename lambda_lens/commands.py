"""Command dispatch table — stable string keys mapped to handlers.

The ``CommandTable`` is a plain class (not a singleton) so tests can create
fresh instances.  The toolkit creates one and registers the invoke,
configure, detect and validate commands on it; a host UI only needs to
forward the key and arguments of whatever widget was triggered.

Every dispatch is wrapped in ``TelemetryRecorder.with_telemetry``.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from lambda_lens.errors import CommandNotFound
from lambda_lens.telemetry import TelemetryRecorder

logger = logging.getLogger(__name__)


@dataclass
class _CommandEntry:
    """Internal record for a registered command."""

    key: str
    handler: Callable[..., Any]
    description: str
    runtime: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    succeeded: Callable[[Any], bool] | None = None


class CommandTable:
    """Command registry with telemetry-wrapped dispatch.

    Usage::

        table = CommandTable(recorder)
        table.register("samcli.detect", detect_fn, "Detect SAM CLI")
        result = await table.dispatch("samcli.detect")
    """

    def __init__(self, recorder: TelemetryRecorder | None = None) -> None:
        self._commands: dict[str, _CommandEntry] = {}
        self.recorder = recorder or TelemetryRecorder()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        key: str,
        handler: Callable[..., Any],
        description: str,
        *,
        runtime: str | None = None,
        metadata: dict[str, str] | None = None,
        succeeded: Callable[[Any], bool] | None = None,
    ) -> None:
        """Register *handler* under *key*.

        *succeeded* classifies a returned value for telemetry.
        Raises ``ValueError`` if *key* is already registered.
        """
        if key in self._commands:
            raise ValueError(f"Command '{key}' is already registered")
        self._commands[key] = _CommandEntry(
            key=key,
            handler=handler,
            description=description,
            runtime=runtime,
            metadata=dict(metadata or {}),
            succeeded=succeeded,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        key: str,
        *args: Any,
        is_debug: bool | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Any:
        """Run the handler for *key* and return its result.

        Unknown keys raise ``CommandNotFound``.  Handler exceptions are
        recorded as failed telemetry and then re-raised unmodified.
        """
        entry = self._commands.get(key)
        if entry is None:
            raise CommandNotFound(key, list(self._commands))

        merged = {**entry.metadata, **(metadata or {})}

        async def _call() -> Any:
            result = entry.handler(*args)
            if inspect.isawaitable(result):
                result = await result
            logger.info("[lens:command] ran %s (runtime=%s)", key, entry.runtime or "none")
            return result

        return await self.recorder.with_telemetry(
            key, merged, _call,
            runtime=entry.runtime, is_debug=is_debug, succeeded=entry.succeeded,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def has_command(self, key: str) -> bool:
        return key in self._commands

    def command_keys(self) -> list[str]:
        return list(self._commands)

    def describe(self) -> list[dict[str, Any]]:
        return [
            {"command": e.key, "description": e.description, "runtime": e.runtime}
            for e in self._commands.values()
        ]


__all__ = ["CommandTable"]
