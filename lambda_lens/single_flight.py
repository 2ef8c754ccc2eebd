"""Single-flight coordinator — one in-flight operation per key.

Concurrent callers asking for the same key join the running operation and
receive its result (or its exception) instead of starting a duplicate.
The key is cleared as soon as the operation settles; there is no TTL and
no result caching here.

Usage::

    flights = SingleFlight()
    result = await flights.get_existing_or_create(
        "samcli.detect", lambda: probe.detect(force_refresh=True),
    )
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """Deduplicates concurrent async operations by string key."""

    def __init__(self) -> None:
        self._flights: dict[str, asyncio.Task[Any]] = {}

    async def get_existing_or_create(
        self, key: str, factory: Callable[[], Awaitable[T]]
    ) -> T:
        """Await the in-flight operation for *key*, starting it if needed.

        A caller being cancelled does not cancel the shared operation.
        """
        task = self._flights.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(factory())
            self._flights[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
            logger.debug("[lens:flight] START %s", key)
        else:
            logger.debug("[lens:flight] JOIN  %s", key)
        return await asyncio.shield(task)

    def in_flight(self, key: str) -> bool:
        task = self._flights.get(key)
        return task is not None and not task.done()

    def keys(self) -> list[str]:
        return [k for k, t in self._flights.items() if not t.done()]

    def _settle(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._flights.get(key) is task:
            del self._flights[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("[lens:flight] FAIL  %s: %s", key, task.exception())
        else:
            logger.debug("[lens:flight] DONE  %s", key)


__all__ = ["SingleFlight"]
