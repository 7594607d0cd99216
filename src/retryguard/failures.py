"""Failure events produced by the transport and consumed by the evaluator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import httpx

from retryguard.errors import RequestCancelledError


@dataclass(frozen=True)
class ResponseFailure:
    status_code: int | None
    response: httpx.Response | None = None
    error: httpx.HTTPStatusError | None = None


@dataclass(frozen=True)
class TransportFailure:
    error: httpx.TransportError


@dataclass(frozen=True)
class Cancelled:
    error: Exception


Failure = Union[ResponseFailure, TransportFailure, Cancelled]


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def failure_from_response(response: httpx.Response) -> ResponseFailure | None:
    if is_success_status(response.status_code):
        return None
    return ResponseFailure(status_code=response.status_code, response=response)


def failure_from_exception(exc: BaseException) -> Failure | None:
    """Map an exception raised by a transport to a failure event.

    Returns ``None`` for exceptions that are not transport outcomes; those are
    left to propagate untouched.
    """
    if isinstance(exc, RequestCancelledError):
        return Cancelled(error=exc)
    if isinstance(exc, httpx.HTTPStatusError):
        return ResponseFailure(status_code=exc.response.status_code, response=exc.response, error=exc)
    if isinstance(exc, httpx.TransportError):
        return TransportFailure(error=exc)
    return None


def describe(failure: Failure) -> str:
    if isinstance(failure, ResponseFailure):
        status = failure.status_code if failure.status_code is not None else "unknown"
        return f"response status {status}"
    if isinstance(failure, TransportFailure):
        return f"{type(failure.error).__name__}: {failure.error}"
    return f"cancelled: {failure.error}"
