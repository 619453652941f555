"""
Pytest configuration and shared fixtures for eventual_submit tests.
"""

import asyncio
import heapq
import itertools
from datetime import UTC, datetime, timedelta

import pytest

from eventual_submit.config import SubmissionConfig


class ManualClock:
    """Virtual time for scheduler-driven code.

    Pass ``clock.sleep`` to a TaskScheduler and ``clock.now`` to a ledger;
    nothing sleeping on this clock wakes up until ``advance()`` moves time
    past its deadline.

    Attributes:
        elapsed: Virtual seconds since the start
        sleeps: Every delay requested, in request order
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.start = start or datetime(2026, 1, 1, tzinfo=UTC)
        self.elapsed = 0.0
        self.sleeps: list[float] = []
        self._waiters: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._waiters, (self.elapsed + delay, next(self._seq), future))
        await future

    async def settle(self, rounds: int = 50) -> None:
        """Let every runnable task proceed until it blocks again."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, waking sleepers in deadline order."""
        target = self.elapsed + seconds
        await self.settle()
        while self._waiters and self._waiters[0][0] <= target:
            deadline, _, future = heapq.heappop(self._waiters)
            self.elapsed = max(self.elapsed, deadline)
            if not future.done():
                future.set_result(None)
            await self.settle()
        self.elapsed = target
        await self.settle()


@pytest.fixture
def manual_clock() -> ManualClock:
    """Provide a fresh virtual clock."""
    return ManualClock()


@pytest.fixture
def config() -> SubmissionConfig:
    """Provide the default configuration."""
    return SubmissionConfig()


@pytest.fixture
def sample_email() -> str:
    return "alice@example.com"


@pytest.fixture
def sample_request_id() -> str:
    return "alice@example.com-1767225600000-a1b2c3d4e"
