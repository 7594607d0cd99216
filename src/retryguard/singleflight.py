"""Keyed single-flight coordination for recovery side effects."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = py_logging.getLogger(__name__)


class SingleFlight:
    """At most one running operation per key.

    Registration happens without suspending, so two callers on the same event
    loop cannot both become the leader for a key.
    """

    def __init__(self) -> None:
        self._flights: dict[str, asyncio.Future[Any]] = {}

    def in_flight(self, key: str) -> bool:
        flight = self._flights.get(key)
        return flight is not None and not flight.done()

    def start(
        self,
        key: str,
        operation: Callable[[], Awaitable[Any]],
    ) -> tuple[asyncio.Future[Any], bool]:
        """Return the flight for ``key`` and whether this call started it."""
        flight = self._flights.get(key)
        if flight is not None and not flight.done():
            return flight, False
        flight = asyncio.ensure_future(operation())
        self._flights[key] = flight
        flight.add_done_callback(lambda done, name=key: self._release(name, done))
        logger.debug("Started single-flight operation key=%s", key)
        return flight, True

    async def join(self, key: str, timeout: float | None) -> bool:
        """Wait for the running flight under ``key``.

        Returns False when ``timeout`` elapsed first; the flight keeps running.
        Exceptions raised by the operation propagate to every joiner.
        """
        flight = self._flights.get(key)
        if flight is None or flight.done():
            return True
        try:
            await asyncio.wait_for(asyncio.shield(flight), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("Stopped waiting for single-flight key=%s after %ss", key, timeout)
            return False
        return True

    def _release(self, key: str, flight: asyncio.Future[Any]) -> None:
        if self._flights.get(key) is flight:
            del self._flights[key]
