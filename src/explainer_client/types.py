"""
Job types shared by transports, the state machine and the client.

This module defines the JobStatus enum, the normalized JobUpdate that every
transport produces, and the JobState snapshot the state machine exposes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

GENERIC_JOB_ERROR = "Video generation failed"


class TransportMode(str, Enum):
    PUSH = "push"
    POLL = "poll"


class JobStatus(str, Enum):
    """Job lifecycle states.

    State transitions:
    - QUEUED -> PROCESSING (work started)
    - QUEUED | PROCESSING -> DONE (video available)
    - QUEUED | PROCESSING -> ERROR (generation failed)
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)

    @classmethod
    def parse(cls, value: Any) -> JobStatus:
        """Parse a wire status, accepting the legacy push aliases."""
        if isinstance(value, JobStatus):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid job status: {value!r}")
        normalized = value.strip().lower()
        normalized = _STATUS_ALIASES.get(normalized, normalized)
        return cls(normalized)


_STATUS_ALIASES = {
    "pending": "queued",
    "completed": "done",
    "failed": "error",
}


# Same-status transitions are allowed so progress can advance within a state.
VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.DONE, JobStatus.ERROR},
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.DONE, JobStatus.ERROR},
    JobStatus.DONE: set(),
    JobStatus.ERROR: set(),
}


@dataclass(frozen=True)
class JobUpdate:
    """One status report for a job, as delivered by either transport."""

    job_id: str
    status: JobStatus
    progress_fraction: float | None = None
    stage_label: str | None = None
    result_uri: str | None = None
    error: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> JobUpdate:
        """
        Build an update from a ``jobProgress`` event or a status response.

        Accepts ``progress`` either as ``{step|currentStep, percentage}`` or as
        a bare percentage number with a sibling ``stage`` field.

        Raises:
            ValueError: If jobId or status is missing or invalid
        """
        job_id = data.get("jobId")
        if not isinstance(job_id, str) or not job_id:
            raise ValueError("payload has no jobId")
        status = JobStatus.parse(data.get("status"))

        fraction: float | None = None
        stage = data.get("stage")
        progress = data.get("progress")
        if isinstance(progress, dict):
            percentage = progress.get("percentage")
            stage = progress.get("step") or progress.get("currentStep") or stage
        else:
            percentage = progress
        if isinstance(percentage, (int, float)) and not isinstance(percentage, bool):
            fraction = float(percentage) / 100.0

        return cls(
            job_id=job_id,
            status=status,
            progress_fraction=fraction,
            stage_label=stage if isinstance(stage, str) else None,
            result_uri=data.get("videoUrl") or None,
            error=data.get("error") or None,
        )


@dataclass(frozen=True)
class TransportFailure:
    """A transport gave up; the channel decides whether to fail over."""

    mode: TransportMode
    error: Exception


ChannelMessage = Union[JobUpdate, TransportFailure]


@dataclass(frozen=True)
class JobState:
    """Canonical, externally visible state of one job."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    progress_fraction: float | None = None
    stage_label: str | None = None
    result_uri: str | None = None
    error_detail: str | None = None
    updated_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def evolve(self, **changes: Any) -> JobState:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "progress_fraction": self.progress_fraction,
            "stage_label": self.stage_label,
            "result_uri": self.result_uri,
            "error_detail": self.error_detail,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class JobHandle:
    """Identifies an open subscription and the transport currently serving it."""

    job_id: str
    mode: TransportMode


__all__ = [
    "GENERIC_JOB_ERROR",
    "TransportMode",
    "JobStatus",
    "VALID_TRANSITIONS",
    "JobUpdate",
    "TransportFailure",
    "ChannelMessage",
    "JobState",
    "JobHandle",
]
