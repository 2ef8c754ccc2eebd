"""Telemetry wrapper — one structured event per wrapped command.

``TelemetryRecorder.with_telemetry`` runs an operation exactly once and
emits exactly one ``TelemetryDatum`` afterwards, whether the operation
returned or raised.  The original exception is re-raised unmodified after
emission.

Sinks receive data after the operation settles.  A failing sink is
logged and never affects the caller; an async sink gets at most
``sink_timeout_s`` before it is cancelled.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import deque
from typing import Any, Callable, Protocol

from lambda_lens.contracts import TelemetryDatum

logger = logging.getLogger(__name__)

DEFAULT_SINK_TIMEOUT_S = 5.0


class TelemetrySink(Protocol):
    def record(self, datum: TelemetryDatum) -> Any: ...


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class MemoryTelemetrySink:
    """Keeps the most recent data in a bounded buffer."""

    def __init__(self, maxlen: int = 1000) -> None:
        self._data: deque[TelemetryDatum] = deque(maxlen=maxlen)

    def record(self, datum: TelemetryDatum) -> None:
        self._data.append(datum)

    @property
    def data(self) -> list[TelemetryDatum]:
        return list(self._data)

    def clear(self) -> None:
        self._data.clear()


class LoggingTelemetrySink:
    """Writes each datum to the ``lambda_lens.telemetry`` logger."""

    def record(self, datum: TelemetryDatum) -> None:
        logger.info(
            "[lens:telemetry] %s success=%s duration=%dms metadata=%s",
            datum.command, datum.success, datum.duration_ms, datum.metadata,
        )


class NullTelemetrySink:
    """Drops everything.  Used when telemetry is disabled."""

    def record(self, datum: TelemetryDatum) -> None:
        return None


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


def default_metadata(runtime: str | None, is_debug: bool | None) -> dict[str, str]:
    return {
        "runtime": runtime or "none",
        "debug": "true" if is_debug else "false",
    }


class TelemetryRecorder:
    """Wraps command executions with success/failure telemetry."""

    def __init__(
        self,
        sink: TelemetrySink | None = None,
        *,
        sink_timeout_s: float = DEFAULT_SINK_TIMEOUT_S,
    ) -> None:
        self.sink: TelemetrySink = sink or MemoryTelemetrySink()
        self.sink_timeout_s = sink_timeout_s

    async def with_telemetry(
        self,
        command: str,
        metadata: dict[str, str] | None,
        operation: Callable[[], Any],
        *,
        runtime: str | None = None,
        is_debug: bool | None = None,
        succeeded: Callable[[Any], bool] | None = None,
    ) -> Any:
        """Run *operation* once, emit one datum, return or re-raise.

        *operation* may be a plain callable or return an awaitable.
        *succeeded* lets a returned value count as a failure (e.g. a
        ``Failed`` invocation result); an exception always does.
        """
        start = time.perf_counter()
        success = False
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
            success = succeeded(result) if succeeded is not None else True
            return result
        finally:
            merged = default_metadata(runtime, is_debug)
            merged.update({k: str(v) for k, v in (metadata or {}).items()})
            merged["result"] = "Succeeded" if success else "Failed"
            await self._emit(TelemetryDatum(
                command=command,
                metadata=merged,
                success=success,
                duration_ms=int((time.perf_counter() - start) * 1000),
            ))

    async def _emit(self, datum: TelemetryDatum) -> None:
        try:
            outcome = self.sink.record(datum)
            if inspect.isawaitable(outcome):
                await asyncio.wait_for(outcome, timeout=self.sink_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(
                "[lens:telemetry] sink timed out after %.1fs for %s",
                self.sink_timeout_s, datum.command,
            )
        except Exception:
            logger.warning("[lens:telemetry] sink failed for %s", datum.command, exc_info=True)


__all__ = [
    "LoggingTelemetrySink",
    "MemoryTelemetrySink",
    "NullTelemetrySink",
    "TelemetryRecorder",
    "TelemetrySink",
    "default_metadata",
]
