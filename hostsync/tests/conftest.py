from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from hostsync.config import settings


@pytest.fixture(autouse=True)
def _fast_settings(monkeypatch):
    """Keep every cadence short and the steady-state refresh off by default.

    Tests that exercise the refresh loop pass their own intervals.
    """
    monkeypatch.setattr(settings, "refresh_interval", None)
    monkeypatch.setattr(settings, "retry_delay", 0.01)
    monkeypatch.setattr(settings, "status_poll_interval", 0.01)
    monkeypatch.setattr(settings, "fetch_timeout", None)
    yield


class FakeFetcher:
    """Scripted stand-in for a transport list call.

    Each call consumes the next outcome; the last one repeats once the
    script runs out. An outcome is either a list (returned) or an
    exception instance (raised). Tracks how many calls are outstanding at
    once so tests can assert fetches never overlap.
    """

    def __init__(self, *outcomes, delay: float = 0.0):
        self.outcomes = list(outcomes) or [[]]
        self.delay = delay
        self.calls = 0
        self.outstanding = 0
        self.max_outstanding = 0
        self.started = asyncio.Event()
        self.gate: asyncio.Event | None = None

    def hold(self) -> asyncio.Event:
        """Block every call until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    async def __call__(self):
        self.calls += 1
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delay)
            outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
            if isinstance(outcome, BaseException):
                raise outcome
            return list(outcome)
        finally:
            self.outstanding -= 1


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def wait_until():
    return _wait_until
