from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from retryguard.connectivity import ConnectivityResult


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class StaticProbe:
    def __init__(self, result: ConnectivityResult) -> None:
        self.result = result
        self.calls = 0

    async def __call__(self) -> ConnectivityResult:
        self.calls += 1
        return self.result


class CountingCallback:
    """Async collaborator that counts calls and can be held open."""

    def __init__(self, *, error: Exception | None = None) -> None:
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()
        self._error = error

    def hold(self) -> None:
        self.release.clear()

    async def __call__(self) -> None:
        self.calls += 1
        await self.release.wait()
        if self._error is not None:
            raise self._error


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def online_probe() -> StaticProbe:
    return StaticProbe(ConnectivityResult.WIFI)


@pytest.fixture
def offline_probe() -> StaticProbe:
    return StaticProbe(ConnectivityResult.NONE)


@pytest.fixture
def navigator() -> CountingCallback:
    return CountingCallback()


@pytest.fixture
def refresh() -> CountingCallback:
    return CountingCallback()


@pytest.fixture
def failing_refresh() -> CountingCallback:
    return CountingCallback(error=RuntimeError("token endpoint down"))


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
