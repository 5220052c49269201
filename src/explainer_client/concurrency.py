"""
Async concurrency helpers.

The client is async-first: timers are tasks on the running loop, and the few
blocking operations (session file I/O) run on a small shared thread pool.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, TypeVar

from .logging import get_logger

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]

_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="explainer-io")
_IO_CHECK_INTERVAL = 0.001

logger = get_logger("explainer_client.concurrency")


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """
    Run ``func(*args, **kwargs)`` on the session I/O pool.

    Used for session-file reads and writes and for reading upload sources,
    so a slow disk never stalls push or poll delivery. Cancelling the caller
    drops the call if the pool has not started it yet.
    """
    pending = _EXECUTOR.submit(partial(func, *args, **kwargs))
    # Checked from the loop side; the worker thread never touches the loop.
    try:
        while not pending.done():
            await asyncio.sleep(_IO_CHECK_INTERVAL)
    except asyncio.CancelledError:
        pending.cancel()
        raise
    return pending.result()


class ScheduledCall:
    """
    One-shot timer that awaits ``callback()`` after ``delay`` seconds.

    The timer starts immediately on the running loop. ``cancel()`` is
    synchronous and idempotent; a cancelled call never runs its callback.
    Exceptions raised by the callback are logged, not propagated.

    Args:
        delay: Seconds to wait; negative values are clamped to zero
        callback: Zero-argument coroutine function
        sleep: Awaitable sleep used for the wait (injectable for tests)
        name: Task name for debugging
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[Any]],
        *,
        sleep: SleepFunc = asyncio.sleep,
        name: str | None = None,
    ) -> None:
        self.delay = max(0.0, delay)
        self._callback = callback
        self._sleep = sleep
        self._fired = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=name)
        self._task.add_done_callback(self._report)

    async def _run(self) -> None:
        await self._sleep(self.delay)
        self._fired = True
        await self._callback()

    @staticmethod
    def _report(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.log_error(exc, f"Scheduled call {task.get_name()} failed")

    @property
    def fired(self) -> bool:
        """True once the delay elapsed and the callback started."""
        return self._fired

    @property
    def pending(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the call to finish (or be cancelled)."""
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


__all__ = ["run_sync", "ScheduledCall", "SleepFunc"]
