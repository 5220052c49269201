"""
Job state reconciliation.

``JobStateMachine`` folds raw transport updates into one canonical,
monotonic ``JobState``. Stale, foreign and post-terminal updates are dropped.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from ..logging import TransitionLog, get_logger
from ..types import (
    GENERIC_JOB_ERROR,
    VALID_TRANSITIONS,
    JobState,
    JobStatus,
    JobUpdate,
    TransportMode,
)

logger = get_logger("explainer_client.jobs")


class JobStateMachine:
    """
    Canonical state for one job id.

    Transitions follow ``VALID_TRANSITIONS``: queued may move to any state,
    processing only forward, and done/error are terminal. Progress values are
    taken verbatim from each accepted update, so a lower percentage from the
    server is shown as-is.
    """

    def __init__(
        self,
        job_id: str,
        *,
        clock: Callable[[], float] = time.time,
        log_transitions: bool = True,
    ) -> None:
        self.job_id = job_id
        self._clock = clock
        self._log_transitions = log_transitions
        self._state = JobState(job_id=job_id, updated_at=clock())

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def apply(self, update: JobUpdate, transport: TransportMode | None = None) -> bool:
        """
        Apply one update.

        Returns:
            True if the visible state changed
        """
        current = self._state
        if update.job_id != self.job_id:
            logger.debug("Update for another job ignored", job_id=self.job_id, other=update.job_id)
            return False
        if current.is_terminal:
            return False
        if update.status not in VALID_TRANSITIONS[current.status]:
            logger.debug(
                "Stale update ignored",
                job_id=self.job_id,
                current=current.status.value,
                received=update.status.value,
            )
            return False

        error_detail = None
        if update.status is JobStatus.ERROR:
            error_detail = update.error or GENERIC_JOB_ERROR

        self._state = current.evolve(
            status=update.status,
            progress_fraction=update.progress_fraction,
            stage_label=update.stage_label,
            result_uri=update.result_uri if update.status is JobStatus.DONE else None,
            error_detail=error_detail,
            updated_at=self._clock(),
        )
        self._record(current, transport)
        return True

    def fail(self, detail: str | None = None, transport: TransportMode | None = None) -> bool:
        """Force the error state, e.g. when no transport is left to serve the job."""
        current = self._state
        if current.is_terminal:
            return False
        self._state = current.evolve(
            status=JobStatus.ERROR,
            error_detail=detail or GENERIC_JOB_ERROR,
            updated_at=self._clock(),
        )
        self._record(current, transport)
        return True

    def _record(self, previous: JobState, transport: TransportMode | None) -> None:
        if not self._log_transitions or previous.status is self._state.status:
            return
        logger.log_transition(
            TransitionLog(
                job_id=self.job_id,
                previous=previous.status.value,
                current=self._state.status.value,
                transport=transport.value if transport else None,
                progress_fraction=self._state.progress_fraction,
                stage_label=self._state.stage_label,
            )
        )


__all__ = ["JobStateMachine"]
