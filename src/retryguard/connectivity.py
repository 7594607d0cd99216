"""Network reachability probe."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum

logger = py_logging.getLogger(__name__)


class ConnectivityResult(str, Enum):
    NONE = "none"
    MOBILE = "mobile"
    WIFI = "wifi"
    ETHERNET = "ethernet"
    OTHER = "other"


ConnectivityProbe = Callable[[], Awaitable[ConnectivityResult]]


@dataclass(frozen=True)
class SocketConnectivityProbe:
    """Reports ``NONE`` when a TCP connection to a well-known host fails.

    It cannot tell link types apart, so reachable networks report ``OTHER``.
    """

    host: str = "1.1.1.1"
    port: int = 53
    timeout_seconds: float = 1.5

    async def __call__(self) -> ConnectivityResult:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout_seconds,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("Connectivity probe to %s:%s failed: %s", self.host, self.port, exc)
            return ConnectivityResult.NONE
        writer.close()
        with suppress(OSError):
            await writer.wait_closed()
        return ConnectivityResult.OTHER
