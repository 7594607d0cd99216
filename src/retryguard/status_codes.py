"""Default status-code retry classification."""

from __future__ import annotations

from collections.abc import Callable, Iterable

StatusClassifier = Callable[[int], bool]

DEFAULT_RETRYABLE_STATUSES: frozenset[int] = frozenset(
    {
        408,  # request timeout
        429,  # too many requests
        440,  # login timeout
        460,  # client closed connection (load balancer)
        499,  # client closed request
        500,
        502,
        503,
        504,
        520,
        521,
        522,
        523,
        524,
        525,
        526,
        527,
        598,  # network read timeout
        599,  # network connect timeout
    }
)
UNKNOWN_STATUS_RETRYABLE = True


def is_retryable(status_code: int) -> bool:
    return status_code in DEFAULT_RETRYABLE_STATUSES


def classifier_for(statuses: Iterable[int]) -> StatusClassifier:
    allowed = frozenset(statuses)

    def classify(status_code: int) -> bool:
        return status_code in allowed

    return classify
