"""Keyed, cancellable delayed tasks on the asyncio loop.

Both sides of the protocol need timers that are tied to a request id:

- the controller waits out backoff delays and poll intervals
- the ledger completes delayed-success records after their delay

TaskScheduler runs each timer as an asyncio Task registered under a key.
Scheduling a key again replaces the previous timer, and cancel() drops it.
Cancellation is best effort: callers that must not act on a stale timer
still compare the key against their current state when the callback runs.

The sleep function is injectable so tests can drive timers with a manual
clock instead of real time.

Examples:
    Schedule a retry::

        scheduler = TaskScheduler()
        scheduler.schedule(request_id, 2.0, lambda: dispatch(request_id))

    Shut down::

        await scheduler.close()
"""

import asyncio
from collections.abc import Awaitable, Callable

from eventual_submit.observability.logging import get_logger

logger = get_logger(__name__)

SleepFunction = Callable[[float], Awaitable[None]]


class TaskScheduler:
    """Runs callbacks after a delay, one live timer per key.

    Attributes:
        name: Label used in log events.
    """

    def __init__(self, sleep: SleepFunction = asyncio.sleep, name: str = "scheduler") -> None:
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self.name = name

    def schedule(
        self,
        key: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> asyncio.Task[None]:
        """Run ``callback`` after ``delay_seconds``, replacing any timer for ``key``.

        Must be called from inside a running event loop.

        Args:
            key: Timer key (a request id)
            delay_seconds: Wait before the callback runs; 0 runs it on the
                next loop iteration
            callback: Coroutine function to run

        Returns:
            The asyncio Task running the timer
        """
        self.cancel(key)
        task = asyncio.create_task(self._run(key, delay_seconds, callback))
        self._tasks[key] = task
        task.add_done_callback(lambda done: self._discard(key, done))
        return task

    async def _run(
        self,
        key: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        if delay_seconds > 0:
            await self._sleep(delay_seconds)
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "scheduler.callback_failed",
                scheduler=self.name,
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _discard(self, key: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def cancel(self, key: str) -> bool:
        """Cancel the timer registered under ``key``.

        A task cancelling its own key is only unregistered, never cancelled,
        so a callback may safely schedule its successor under the same key.

        Returns:
            True if a timer was registered under the key.
        """
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
        return True

    def is_scheduled(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Cancel every timer and wait for the tasks to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        pending = [task for task in tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("scheduler.closed", scheduler=self.name, cancelled=len(pending))
