import itertools
from typing import Callable, Dict

import pytest

from vault_sync.domain.models import LedgerSnapshot, PollerStatus


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakePoller:
    """Stands in for ConfirmedStatePoller: snapshots are published by hand."""

    def __init__(self, interval_seconds: float = 10.0):
        self.interval_seconds = interval_seconds
        self.status = PollerStatus(snapshot=LedgerSnapshot.empty())
        self._listeners: Dict[int, Callable] = {}
        self._handles = itertools.count(1)

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self.status.snapshot

    def subscribe(self, listener):
        handle = next(self._handles)
        self._listeners[handle] = listener
        return lambda: self._listeners.pop(handle, None)

    def publish(self, snapshot: LedgerSnapshot):
        self.status = PollerStatus(snapshot=snapshot)
        for listener in list(self._listeners.values()):
            listener(self.status)

    def fail(self, exc: Exception, at: float):
        self.status = PollerStatus(snapshot=self.status.snapshot, last_error=exc, last_error_at=at, is_stale=True)
        for listener in list(self._listeners.values()):
            listener(self.status)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock(0.0)


@pytest.fixture
def fake_poller():
    return FakePoller()
