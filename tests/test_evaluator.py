from __future__ import annotations

import asyncio

import httpx
import pytest

from retryguard.errors import RequestCancelledError
from retryguard.evaluator import NOTIFY_KEY, REFRESH_KEY, RetryEvaluator
from retryguard.failures import Cancelled, ResponseFailure, TransportFailure

_CONNECT_ERROR = httpx.ConnectError("network unreachable")


def _always(value: bool):
    return lambda status: value


@pytest.mark.asyncio
async def test_retryable_status_follows_classifier(navigator, online_probe) -> None:
    evaluator = RetryEvaluator(
        navigator=navigator,
        classifier=lambda status: status == 503,
        probe=online_probe,
    )

    assert await evaluator.should_retry(ResponseFailure(503), 1) is True
    assert await evaluator.should_retry(ResponseFailure(404), 1) is False


@pytest.mark.asyncio
async def test_unknown_status_is_retryable(navigator, online_probe) -> None:
    evaluator = RetryEvaluator(navigator=navigator, classifier=_always(False), probe=online_probe)

    assert await evaluator.should_retry(ResponseFailure(None), 1) is True


@pytest.mark.asyncio
async def test_unauthorized_refreshes_once_and_keeps_classifier_result(
    navigator, refresh, online_probe
) -> None:
    evaluator = RetryEvaluator(
        navigator=navigator,
        refresh_token=refresh,
        classifier=_always(False),
        probe=online_probe,
    )

    assert await evaluator.should_retry(ResponseFailure(401), 1) is False
    assert refresh.calls == 1
    assert not evaluator.flights.in_flight(REFRESH_KEY)


@pytest.mark.asyncio
async def test_unauthorized_without_refresh_function_has_no_side_effect(
    navigator, online_probe
) -> None:
    evaluator = RetryEvaluator(
        navigator=navigator,
        classifier=_always(False),
        probe=online_probe,
        refresh_grace_seconds=60,
    )

    result = await asyncio.wait_for(evaluator.should_retry(ResponseFailure(401), 1), timeout=1)

    assert result is False
    assert online_probe.calls == 0


@pytest.mark.asyncio
async def test_concurrent_unauthorized_waits_grace_instead_of_refreshing(
    navigator, refresh, online_probe
) -> None:
    refresh.hold()
    evaluator = RetryEvaluator(
        navigator=navigator,
        refresh_token=refresh,
        classifier=_always(True),
        probe=online_probe,
        refresh_grace_seconds=0.05,
    )
    loop = asyncio.get_running_loop()

    leader = asyncio.create_task(evaluator.should_retry(ResponseFailure(401), 1))
    await asyncio.sleep(0)
    assert evaluator.flights.in_flight(REFRESH_KEY)

    started = loop.time()
    joined = await evaluator.should_retry(ResponseFailure(401), 1)
    elapsed = loop.time() - started

    assert joined is True
    assert elapsed >= 0.04
    assert refresh.calls == 1
    assert not leader.done()

    refresh.release.set()
    assert await leader is True
    assert refresh.calls == 1


@pytest.mark.asyncio
async def test_joiner_resumes_when_refresh_finishes_early(navigator, refresh, online_probe) -> None:
    refresh.hold()
    evaluator = RetryEvaluator(
        navigator=navigator,
        refresh_token=refresh,
        classifier=_always(True),
        probe=online_probe,
        refresh_grace_seconds=30,
    )

    leader = asyncio.create_task(evaluator.should_retry(ResponseFailure(401), 1))
    await asyncio.sleep(0)
    joiner = asyncio.create_task(evaluator.should_retry(ResponseFailure(401), 2))
    await asyncio.sleep(0)
    refresh.release.set()

    results = await asyncio.wait_for(asyncio.gather(leader, joiner), timeout=1)

    assert results == [True, True]
    assert refresh.calls == 1


@pytest.mark.asyncio
async def test_refresh_failure_propagates(navigator, failing_refresh, online_probe) -> None:
    evaluator = RetryEvaluator(navigator=navigator, refresh_token=failing_refresh, probe=online_probe)

    with pytest.raises(RuntimeError, match="token endpoint down"):
        await evaluator.should_retry(ResponseFailure(401), 1)
    await asyncio.sleep(0)
    assert not evaluator.flights.in_flight(REFRESH_KEY)


@pytest.mark.asyncio
async def test_transport_failure_online_retries_without_navigation(navigator, online_probe) -> None:
    evaluator = RetryEvaluator(navigator=navigator, probe=online_probe)

    assert await evaluator.should_retry(TransportFailure(_CONNECT_ERROR), 1) is True
    assert online_probe.calls == 1
    assert navigator.calls == 0


@pytest.mark.asyncio
async def test_racing_offline_failures_navigate_once(navigator, offline_probe) -> None:
    navigator.hold()
    evaluator = RetryEvaluator(navigator=navigator, probe=offline_probe)

    first = asyncio.create_task(evaluator.should_retry(TransportFailure(_CONNECT_ERROR), 1))
    second = asyncio.create_task(evaluator.should_retry(TransportFailure(_CONNECT_ERROR), 1))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert second.done()
    assert evaluator.flights.in_flight(NOTIFY_KEY)

    navigator.release.set()
    results = await asyncio.wait_for(asyncio.gather(first, second), timeout=1)

    assert results == [True, True]
    assert navigator.calls == 1


@pytest.mark.asyncio
async def test_navigation_runs_again_after_previous_one_finished(navigator, offline_probe) -> None:
    evaluator = RetryEvaluator(navigator=navigator, probe=offline_probe)

    await evaluator.should_retry(TransportFailure(_CONNECT_ERROR), 1)
    await asyncio.sleep(0)
    await evaluator.should_retry(TransportFailure(_CONNECT_ERROR), 1)

    assert navigator.calls == 2


@pytest.mark.asyncio
async def test_cancelled_is_never_retried(navigator, refresh, offline_probe) -> None:
    evaluator = RetryEvaluator(navigator=navigator, refresh_token=refresh, probe=offline_probe)

    failure = Cancelled(RequestCancelledError("caller gave up"))

    assert await evaluator.should_retry(failure, 1) is False
    assert offline_probe.calls == 0
    assert navigator.calls == 0
    assert refresh.calls == 0


def test_negative_grace_is_rejected(navigator) -> None:
    with pytest.raises(ValueError):
        RetryEvaluator(navigator=navigator, refresh_grace_seconds=-1)
