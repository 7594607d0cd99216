"""Retry decisions and the recovery side effects that go with them."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable

from retryguard.connectivity import ConnectivityProbe, ConnectivityResult, SocketConnectivityProbe
from retryguard.failures import Cancelled, Failure, ResponseFailure, TransportFailure
from retryguard.singleflight import SingleFlight
from retryguard.status_codes import UNKNOWN_STATUS_RETRYABLE, StatusClassifier, is_retryable

logger = py_logging.getLogger(__name__)

RefreshTokenFunction = Callable[[], Awaitable[None]]
NoConnectivityNavigator = Callable[[], Awaitable[None]]

REFRESH_KEY = "refresh"
NOTIFY_KEY = "notify"
UNAUTHORIZED = 401
DEFAULT_REFRESH_GRACE_SECONDS = 2.0


class RetryEvaluator:
    """Decides whether a failed request may be retried.

    A 401 triggers one token refresh per orchestrator; requests failing while
    that refresh runs wait for it, up to ``refresh_grace_seconds``. A transport
    failure while offline triggers one no-connectivity notification; requests
    failing while it runs do not wait.
    """

    def __init__(
        self,
        *,
        navigator: NoConnectivityNavigator,
        refresh_token: RefreshTokenFunction | None = None,
        classifier: StatusClassifier = is_retryable,
        probe: ConnectivityProbe | None = None,
        refresh_grace_seconds: float = DEFAULT_REFRESH_GRACE_SECONDS,
        flights: SingleFlight | None = None,
    ) -> None:
        if refresh_grace_seconds < 0:
            raise ValueError("refresh_grace_seconds must be >= 0")
        self._navigator = navigator
        self._refresh_token = refresh_token
        self._classifier = classifier
        self._probe = probe or SocketConnectivityProbe()
        self._refresh_grace_seconds = refresh_grace_seconds
        self._flights = flights or SingleFlight()

    @property
    def flights(self) -> SingleFlight:
        return self._flights

    async def should_retry(self, failure: Failure, attempt: int) -> bool:
        if isinstance(failure, ResponseFailure):
            return await self._evaluate_response(failure, attempt)
        if isinstance(failure, TransportFailure):
            await self._notify_if_offline(attempt)
            return True
        if isinstance(failure, Cancelled):
            logger.debug("Cancelled request is not retried (attempt %s)", attempt)
            return False
        raise TypeError(f"Unsupported failure event: {failure!r}")

    async def _evaluate_response(self, failure: ResponseFailure, attempt: int) -> bool:
        status = failure.status_code
        retryable = self._classifier(status) if status is not None else UNKNOWN_STATUS_RETRYABLE
        if status == UNAUTHORIZED and self._refresh_token is not None:
            await self._refresh_or_wait(attempt)
        logger.debug("Status %s retryable=%s (attempt %s)", status, retryable, attempt)
        return retryable

    async def _refresh_or_wait(self, attempt: int) -> None:
        flight, leader = self._flights.start(REFRESH_KEY, self._refresh_token)
        if leader:
            logger.info("Refreshing access token after 401 (attempt %s)", attempt)
            await asyncio.shield(flight)
            return
        logger.debug("Token refresh already running, waiting up to %ss", self._refresh_grace_seconds)
        await self._flights.join(REFRESH_KEY, self._refresh_grace_seconds)

    async def _notify_if_offline(self, attempt: int) -> None:
        result = await self._probe()
        if result != ConnectivityResult.NONE:
            return
        flight, leader = self._flights.start(NOTIFY_KEY, self._navigator)
        if not leader:
            logger.debug("No-connectivity notification already running (attempt %s)", attempt)
            return
        logger.warning("No network connectivity detected, notifying (attempt %s)", attempt)
        await asyncio.shield(flight)
