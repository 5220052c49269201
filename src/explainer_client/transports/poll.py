"""
Status polling transport.

Requests the job status immediately, then once per interval until the job
reaches a terminal status or ``stop()`` is called. The first failure ends
polling and is delivered to the sink as a ``PollError``.
"""

from __future__ import annotations

import asyncio
import contextlib

from ..api import ApiClient
from ..concurrency import SleepFunc
from ..config import PollConfig
from ..errors import ApiError, ErrorContext, PollError
from ..logging import get_logger
from ..types import JobUpdate, TransportFailure, TransportMode
from .base import Sink

logger = get_logger("explainer_client.transports.poll")


class PollTransport:
    """Polls ``GET /video-job/status/{jobId}`` for one job at a time."""

    def __init__(
        self,
        api: ApiClient,
        config: PollConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._api = api
        self.config = config or PollConfig()
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.job_id: str | None = None
        self.requests = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, job_id: str, sink: Sink) -> asyncio.Task:
        if self.active:
            raise RuntimeError(f"Poll transport already running for job {self.job_id}")
        self.job_id = job_id
        self._task = asyncio.get_running_loop().create_task(
            self._run(job_id, sink), name=f"explainer-poll-{job_id}"
        )
        logger.info("Polling started", job_id=job_id, interval=self.config.interval)
        return self._task

    async def _run(self, job_id: str, sink: Sink) -> None:
        ctx = ErrorContext(job_id=job_id, transport=TransportMode.POLL.value)
        while True:
            self.requests += 1
            try:
                body = await self._api.get_job_status(job_id)
                update = JobUpdate.from_payload({"jobId": job_id, **body})
            except ApiError as e:
                logger.log_error(e, "Status poll failed", job_id=job_id)
                sink(TransportFailure(TransportMode.POLL, PollError(e.message, context=ctx, cause=e)))
                return
            except ValueError as e:
                logger.log_error(e, "Undecodable status response", job_id=job_id)
                sink(TransportFailure(TransportMode.POLL, PollError(context=ctx, cause=e)))
                return

            sink(update)
            if update.status.is_terminal:
                logger.info("Polling finished", job_id=job_id, status=update.status.value)
                return
            await self._sleep(self.config.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Polling stopped", job_id=self.job_id)


__all__ = ["PollTransport"]
