"""Retry coordination for httpx: backoff, token refresh and connectivity recovery."""

from retryguard.config import RetryConfig, load_config
from retryguard.connectivity import ConnectivityResult, SocketConnectivityProbe
from retryguard.context import (
    RequestContext,
    get_attempt,
    get_context,
    get_disable_retry,
    set_attempt,
    set_disable_retry,
)
from retryguard.errors import RequestCancelledError, RetryGuardError, SecondaryFailureError
from retryguard.evaluator import RetryEvaluator
from retryguard.failures import Cancelled, ResponseFailure, TransportFailure
from retryguard.orchestrator import RetryOrchestrator, RetryOutcome, RetryResult, RetryState
from retryguard.retry import RetryPolicy, delay_for
from retryguard.singleflight import SingleFlight
from retryguard.transport import OUTCOME_EXTENSION, RetryTransport

__all__ = [
    "OUTCOME_EXTENSION",
    "Cancelled",
    "ConnectivityResult",
    "RequestCancelledError",
    "RequestContext",
    "ResponseFailure",
    "RetryConfig",
    "RetryEvaluator",
    "RetryGuardError",
    "RetryOrchestrator",
    "RetryOutcome",
    "RetryPolicy",
    "RetryResult",
    "RetryState",
    "RetryTransport",
    "SecondaryFailureError",
    "SingleFlight",
    "SocketConnectivityProbe",
    "TransportFailure",
    "delay_for",
    "get_attempt",
    "get_context",
    "get_disable_retry",
    "load_config",
    "set_attempt",
    "set_disable_retry",
]
