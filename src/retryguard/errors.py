"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import httpx


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    REQUEST_FAILED = 5
    SECONDARY_FAILURE = 6


@dataclass
class RetryGuardError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class SecondaryFailureError(RetryGuardError):
    """The re-issued request failed outside the retry loop."""

    code: ExitCode = ExitCode.SECONDARY_FAILURE
    attempts: int = 0


class RequestCancelledError(httpx.RequestError):
    """Raised by a transport when the caller gave up on the request."""


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
