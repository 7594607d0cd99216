"""httpx transport that runs every request through a RetryOrchestrator."""

from __future__ import annotations

import asyncio
import logging as py_logging
from typing import TYPE_CHECKING

import httpx

from retryguard.errors import SecondaryFailureError
from retryguard.failures import ResponseFailure
from retryguard.orchestrator import (
    AccessTokenGetter,
    LogSink,
    RetryOrchestrator,
    RetryOutcome,
    RetryResult,
    Sleep,
)

if TYPE_CHECKING:
    from retryguard.config import RetryConfig
    from retryguard.connectivity import ConnectivityProbe
    from retryguard.evaluator import NoConnectivityNavigator, RefreshTokenFunction
    from retryguard.status_codes import StatusClassifier

logger = py_logging.getLogger(__name__)

OUTCOME_EXTENSION = "retryguard.outcome"
ATTEMPTS_EXTENSION = "retryguard.attempts"


def placeholder_response(request: httpx.Request) -> httpx.Response:
    """Successful-shaped stand-in for a retried request that broke."""
    return httpx.Response(200, json={}, request=request)


class RetryTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        orchestrator: RetryOrchestrator,
        *,
        inner: httpx.AsyncBaseTransport | None = None,
        mask_secondary_failures: bool = True,
    ) -> None:
        self._orchestrator = orchestrator
        self._inner = inner
        self._mask_secondary_failures = mask_secondary_failures

    @classmethod
    def build(
        cls,
        *,
        inner: httpx.AsyncBaseTransport,
        config: RetryConfig,
        navigator: NoConnectivityNavigator,
        refresh_token: RefreshTokenFunction | None = None,
        access_token_getter: AccessTokenGetter | None = None,
        log_sink: LogSink | None = None,
        classifier: StatusClassifier | None = None,
        probe: ConnectivityProbe | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> RetryTransport:
        orchestrator = RetryOrchestrator.from_config(
            inner.handle_async_request,
            config,
            navigator=navigator,
            refresh_token=refresh_token,
            access_token_getter=access_token_getter,
            log_sink=log_sink,
            classifier=classifier,
            probe=probe,
            sleep=sleep,
        )
        return cls(
            orchestrator,
            inner=inner,
            mask_secondary_failures=config.mask_secondary_failures,
        )

    @property
    def orchestrator(self) -> RetryOrchestrator:
        return self._orchestrator

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        result = await self._orchestrator.send(request)
        response = self._resolve(request, result)
        response.extensions[OUTCOME_EXTENSION] = result.outcome
        response.extensions[ATTEMPTS_EXTENSION] = result.attempts
        return response

    def _resolve(self, request: httpx.Request, result: RetryResult) -> httpx.Response:
        if result.ok and result.response is not None:
            return result.response

        if result.outcome is RetryOutcome.SECONDARY_FAILURE:
            if self._mask_secondary_failures:
                logger.debug("[%s] Masking secondary failure: %r", request.url, result.error)
                return placeholder_response(request)
            raise SecondaryFailureError(
                f"Retry of {request.method} {request.url} failed",
                hint="Inspect the chained exception for the underlying cause.",
                attempts=result.attempts,
            ) from result.error

        failure = result.failure
        if isinstance(failure, ResponseFailure):
            if failure.error is not None:
                raise failure.error
            if failure.response is not None:
                return failure.response
        elif failure is not None:
            raise failure.error
        raise RuntimeError(f"Retry result {result.outcome.value} carries no response or error")

    async def aclose(self) -> None:
        if self._inner is not None:
            await self._inner.aclose()
