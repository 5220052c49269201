"""
Per-job progress channel.

A ``JobChannel`` owns one job subscription: it tries the push transport
first, falls back to polling, and funnels every update through a
``JobStateMachine`` before listeners see it. Transports deliver into the
channel's inbox queue; a single pump task drains it, so updates are applied
in delivery order.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from typing import Any

from ..errors import TransportError
from ..logging import get_logger
from ..transports import PollTransport, PushTransport
from ..types import ChannelMessage, JobHandle, JobState, JobUpdate, TransportFailure, TransportMode
from .machine import JobStateMachine

logger = get_logger("explainer_client.jobs")

JobListener = Callable[[JobState], Any]


class JobChannel:
    """
    Converging stream of ``JobState`` for one job id.

    Exactly one transport serves the job at a time. Push failures (connect
    budget exhausted, credential rejected) switch to polling silently; a poll
    failure ends the job in the error state. Polling never hands back to
    push.

    Example:
        ```python
        channel = JobChannel("abc123", poll=poll, push=push)
        channel.add_listener(lambda state: print(state.status))
        await channel.open()
        final = await channel.wait()
        ```
    """

    def __init__(
        self,
        job_id: str,
        *,
        poll: PollTransport,
        push: PushTransport | None = None,
        clock: Callable[[], float] = time.time,
        log_transitions: bool = True,
    ) -> None:
        self.job_id = job_id
        self.machine = JobStateMachine(job_id, clock=clock, log_transitions=log_transitions)
        self._poll = poll
        self._push = push

        self._inbox: asyncio.Queue[ChannelMessage] = asyncio.Queue()
        self._listeners: list[JobListener] = []
        self._mode: TransportMode | None = None
        self._connect_task: asyncio.Task | None = None
        self._pump: asyncio.Task | None = None
        self._opened = False
        self._closed = asyncio.Event()

    @property
    def state(self) -> JobState:
        return self.machine.state

    @property
    def mode(self) -> TransportMode | None:
        return self._mode

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def handle(self) -> JobHandle | None:
        """The open subscription, or None once the channel has closed."""
        if self._mode is None or self.closed:
            return None
        return JobHandle(job_id=self.job_id, mode=self._mode)

    def add_listener(self, listener: JobListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        state = self.machine.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.log_error(e, "Job listener failed", job_id=self.job_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> JobHandle:
        """Start delivery, push first when a push transport is available."""
        if self._opened:
            raise RuntimeError(f"Channel for job {self.job_id} already opened")
        self._opened = True

        loop = asyncio.get_running_loop()
        self._pump = loop.create_task(self._drain(), name=f"explainer-channel-{self.job_id}")

        if self._push is not None:
            self._mode = TransportMode.PUSH
            await self._push.subscribe(self.job_id, self._inbox.put_nowait)
            self._connect_task = loop.create_task(
                self._connect_push(), name=f"explainer-push-connect-{self.job_id}"
            )
        else:
            self._start_polling()

        logger.info("Watching job", job_id=self.job_id, transport=self._mode.value)
        return JobHandle(job_id=self.job_id, mode=self._mode)

    async def _connect_push(self) -> None:
        try:
            await self._push.connect()
        except TransportError as e:
            self._inbox.put_nowait(TransportFailure(TransportMode.PUSH, e))

    def _start_polling(self) -> None:
        self._mode = TransportMode.POLL
        self._poll.start(self.job_id, self._inbox.put_nowait)

    async def _drain(self) -> None:
        while True:
            message = await self._inbox.get()
            if isinstance(message, TransportFailure):
                await self._on_failure(message)
            elif self.machine.apply(message, self._mode):
                self._notify()

            if self.machine.is_terminal:
                logger.info("Job finished", job_id=self.job_id, status=self.state.status.value)
                await self.close()
                return

    async def _on_failure(self, failure: TransportFailure) -> None:
        if failure.mode is not self._mode:
            logger.debug("Failure from inactive transport ignored", job_id=self.job_id, mode=failure.mode.value)
            return

        if failure.mode is TransportMode.PUSH:
            logger.log_error(failure.error, "Push unavailable; falling back to polling", job_id=self.job_id)
            await self._push.unsubscribe(self.job_id)
            await self._push.disconnect()
            self._start_polling()
            return

        if self.machine.fail(failure.error.message, TransportMode.POLL):
            self._notify()

    async def close(self) -> None:
        """
        Stop delivery and release the active transport.

        Pending tasks are cancelled before the transports are closed; updates
        already queued are applied before the channel reports closed. Safe to
        call repeatedly and from a listener's task.
        """
        if self.closed:
            return

        current = asyncio.current_task()
        tasks = [t for t in (self._connect_task, self._pump) if t is not None and not t.done() and t is not current]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._poll.stop()
        if self._push is not None:
            await self._push.unsubscribe(self.job_id)
            await self._push.aclose()

        # Updates the pump never reached still count toward the final state.
        while not self._inbox.empty():
            message = self._inbox.get_nowait()
            if isinstance(message, JobUpdate) and self.machine.apply(message, self._mode):
                self._notify()

        self._closed.set()
        logger.debug("Channel closed", job_id=self.job_id)

    async def wait(self) -> JobState:
        """Wait until the channel closes and return the final state."""
        await self._closed.wait()
        return self.machine.state


__all__ = ["JobChannel", "JobListener"]
