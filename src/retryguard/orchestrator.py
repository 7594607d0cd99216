"""Failure handling and re-issuance of retried requests."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from retryguard.context import discard_context, get_context
from retryguard.evaluator import NoConnectivityNavigator, RefreshTokenFunction, RetryEvaluator
from retryguard.failures import (
    Failure,
    ResponseFailure,
    describe,
    failure_from_exception,
    failure_from_response,
)
from retryguard.retry import RetryPolicy
from retryguard.status_codes import StatusClassifier

if TYPE_CHECKING:
    from retryguard.config import RetryConfig
    from retryguard.connectivity import ConnectivityProbe

logger = py_logging.getLogger(__name__)

Sender = Callable[[httpx.Request], Awaitable[httpx.Response]]
AccessTokenGetter = Callable[[], str]
LogSink = Callable[[str], None]
Sleep = Callable[[float], Awaitable[None]]

AUTHORIZATION_HEADER = "Authorization"


class RetryState(str, Enum):
    RECEIVED = "received"
    EVALUATING = "evaluating"
    RETRYING = "retrying"
    PROPAGATING = "propagating"


class RetryOutcome(str, Enum):
    SUCCESS = "success"
    RETRIED_SUCCESS = "retried_success"
    FAILED = "failed"
    SECONDARY_FAILURE = "secondary_failure"


@dataclass
class RetryResult:
    outcome: RetryOutcome
    response: httpx.Response | None = None
    failure: Failure | None = None
    error: BaseException | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.outcome in (RetryOutcome.SUCCESS, RetryOutcome.RETRIED_SUCCESS)


class RetryOrchestrator:
    """Runs the retry cycle for requests sent through ``send``.

    One instance is shared by all requests of a client, so its evaluator's
    single-flight guards cover every request in flight.
    """

    def __init__(
        self,
        send: Sender,
        *,
        evaluator: RetryEvaluator,
        policy: RetryPolicy | None = None,
        access_token_getter: AccessTokenGetter | None = None,
        log_sink: LogSink | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._send = send
        self._evaluator = evaluator
        self._policy = policy or RetryPolicy()
        self._access_token_getter = access_token_getter
        self._log_sink = log_sink
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        send: Sender,
        config: RetryConfig,
        *,
        navigator: NoConnectivityNavigator,
        refresh_token: RefreshTokenFunction | None = None,
        access_token_getter: AccessTokenGetter | None = None,
        log_sink: LogSink | None = None,
        classifier: StatusClassifier | None = None,
        probe: ConnectivityProbe | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> RetryOrchestrator:
        evaluator = RetryEvaluator(
            navigator=navigator,
            refresh_token=refresh_token,
            classifier=classifier or config.classifier(),
            probe=probe,
            refresh_grace_seconds=config.refresh_grace_seconds,
        )
        return cls(
            send,
            evaluator=evaluator,
            policy=config.to_policy(),
            access_token_getter=access_token_getter,
            log_sink=log_sink,
            sleep=sleep,
        )

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def evaluator(self) -> RetryEvaluator:
        return self._evaluator

    async def send(self, request: httpx.Request) -> RetryResult:
        try:
            response = await self._send(request)
        except Exception as exc:
            failure = failure_from_exception(exc)
            if failure is None:
                discard_context(request)
                raise
            return await self.handle_failure(request, failure)

        failure = failure_from_response(response)
        if failure is None:
            discard_context(request)
            return RetryResult(RetryOutcome.SUCCESS, response=response)
        return await self.handle_failure(request, failure)

    async def handle_failure(self, request: httpx.Request, failure: Failure) -> RetryResult:
        context = get_context(request)
        try:
            while True:
                self._enter(request, RetryState.RECEIVED, failure)
                if context.disable_retry:
                    return self._propagate(request, failure, context.attempt)

                self._enter(request, RetryState.EVALUATING, failure)
                attempt = context.attempt + 1
                if not self._policy.allows(attempt):
                    return self._propagate(request, failure, context.attempt)
                if not await self._evaluator.should_retry(failure, attempt):
                    return self._propagate(request, failure, context.attempt)

                self._enter(request, RetryState.RETRYING, failure)
                context.attempt = attempt
                delay = self._policy.delay_for(attempt)
                self._log_retry(request, attempt, delay, failure)
                if delay > 0:
                    await self._sleep(delay)
                await _release(failure)

                try:
                    request.headers = self._rebuild_headers(request)
                    response = await self._send(request)
                except Exception as exc:
                    next_failure = failure_from_exception(exc)
                    if next_failure is None:
                        logger.warning(
                            "[%s] Retried request failed outside the retry cycle (attempt %s): %r",
                            request.url,
                            attempt,
                            exc,
                        )
                        discard_context(request)
                        return RetryResult(
                            RetryOutcome.SECONDARY_FAILURE,
                            failure=failure,
                            error=exc,
                            attempts=attempt,
                        )
                    failure = next_failure
                    continue

                next_failure = failure_from_response(response)
                if next_failure is None:
                    discard_context(request)
                    return RetryResult(
                        RetryOutcome.RETRIED_SUCCESS, response=response, attempts=attempt
                    )
                failure = next_failure
        except BaseException:
            await _release(failure)
            discard_context(request)
            raise

    def _rebuild_headers(self, request: httpx.Request) -> httpx.Headers:
        headers = httpx.Headers(request.headers)
        if self._access_token_getter is not None:
            headers[AUTHORIZATION_HEADER] = self._access_token_getter()
        return headers

    def _propagate(self, request: httpx.Request, failure: Failure, attempts: int) -> RetryResult:
        self._enter(request, RetryState.PROPAGATING, failure)
        discard_context(request)
        return RetryResult(RetryOutcome.FAILED, failure=failure, attempts=attempts)

    def _log_retry(self, request: httpx.Request, attempt: int, delay: float, failure: Failure) -> None:
        message = (
            f"[{request.url}] An error occurred during request, trying again "
            f"(attempt: {attempt}/{self._policy.max_retries}, "
            f"wait {int(delay * 1000)} ms, error: {describe(failure)})"
        )
        logger.info("%s", message)
        if self._log_sink is not None:
            self._log_sink(message)

    @staticmethod
    def _enter(request: httpx.Request, state: RetryState, failure: Failure) -> None:
        logger.debug("[%s] %s (%s)", request.url, state.value, describe(failure))


async def _release(failure: Failure) -> None:
    if isinstance(failure, ResponseFailure) and failure.response is not None:
        await failure.response.aclose()
