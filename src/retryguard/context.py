"""Per-request retry bookkeeping.

The state lives in a :class:`RequestContext` stored under
``request.extensions`` so it follows the request object when it is re-sent.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

CONTEXT_KEY = "retryguard"


@dataclass
class RequestContext:
    attempt: int = 0
    disable_retry: bool = False

    def __post_init__(self) -> None:
        _check_attempt(self.attempt)


def _check_attempt(value: int) -> int:
    if value < 0:
        raise ValueError(f"attempt must be >= 0, got {value}")
    return value


def get_context(request: httpx.Request) -> RequestContext:
    context = request.extensions.get(CONTEXT_KEY)
    if not isinstance(context, RequestContext):
        context = RequestContext()
        request.extensions[CONTEXT_KEY] = context
    return context


def discard_context(request: httpx.Request) -> None:
    request.extensions.pop(CONTEXT_KEY, None)


def get_attempt(request: httpx.Request) -> int:
    return get_context(request).attempt


def set_attempt(request: httpx.Request, value: int) -> None:
    get_context(request).attempt = _check_attempt(value)


def get_disable_retry(request: httpx.Request) -> bool:
    return get_context(request).disable_retry


def set_disable_retry(request: httpx.Request, value: bool = True) -> None:
    get_context(request).disable_retry = bool(value)
