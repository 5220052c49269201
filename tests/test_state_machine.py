"""Tests for job state reconciliation."""

from __future__ import annotations

import pytest

from conftest import FakeClock
from explainer_client.jobs import JobStateMachine
from explainer_client.types import GENERIC_JOB_ERROR, JobStatus, JobUpdate


def update(status: str, job_id: str = "abc123", **fields) -> JobUpdate:
    return JobUpdate(job_id=job_id, status=JobStatus(status), **fields)


class TestJobStateMachine:
    """Test monotonic state transitions."""

    def test_initial_state_is_queued(self):
        machine = JobStateMachine("abc123")
        assert machine.state.status is JobStatus.QUEUED
        assert machine.state.progress_fraction is None
        assert not machine.is_terminal

    def test_forward_progression(self):
        machine = JobStateMachine("abc123")

        assert machine.apply(update("processing", progress_fraction=0.4, stage_label="script"))
        assert machine.state.status is JobStatus.PROCESSING
        assert machine.state.stage_label == "script"

        assert machine.apply(update("done", result_uri="https://x/y.mp4"))
        assert machine.state.status is JobStatus.DONE
        assert machine.state.result_uri == "https://x/y.mp4"
        assert machine.is_terminal

    def test_queued_may_jump_to_terminal(self):
        machine = JobStateMachine("abc123")
        assert machine.apply(update("error", error="Source unreachable"))
        assert machine.state.error_detail == "Source unreachable"

    def test_nothing_changes_after_terminal(self):
        machine = JobStateMachine("abc123")
        machine.apply(update("done", result_uri="https://x/y.mp4"))
        final = machine.state

        assert not machine.apply(update("processing", progress_fraction=0.9))
        assert not machine.apply(update("error", error="late"))
        assert not machine.fail("late")
        assert machine.state is final

    def test_status_regression_is_ignored(self):
        machine = JobStateMachine("abc123")
        machine.apply(update("processing", progress_fraction=0.5))

        assert not machine.apply(update("queued"))
        assert machine.state.status is JobStatus.PROCESSING
        assert machine.state.progress_fraction == 0.5

    def test_progress_regression_passes_through(self):
        machine = JobStateMachine("abc123")
        machine.apply(update("processing", progress_fraction=0.6))

        assert machine.apply(update("processing", progress_fraction=0.3))
        assert machine.state.progress_fraction == 0.3

    def test_other_job_is_ignored(self):
        machine = JobStateMachine("abc123")
        assert not machine.apply(update("done", job_id="zzz"))
        assert machine.state.status is JobStatus.QUEUED

    def test_error_without_detail_uses_generic_message(self):
        machine = JobStateMachine("abc123")
        machine.apply(update("error"))
        assert machine.state.error_detail == GENERIC_JOB_ERROR == "Video generation failed"

    def test_fail_forces_error(self):
        machine = JobStateMachine("abc123")
        machine.apply(update("processing"))

        assert machine.fail("Failed to check job status")
        assert machine.state.status is JobStatus.ERROR
        assert machine.state.error_detail == "Failed to check job status"

    def test_fail_without_detail(self):
        machine = JobStateMachine("abc123")
        machine.fail()
        assert machine.state.error_detail == GENERIC_JOB_ERROR

    def test_updated_at_follows_clock(self):
        clock = FakeClock(100.0)
        machine = JobStateMachine("abc123", clock=clock)
        assert machine.state.updated_at == 100.0

        clock.now = 105.0
        machine.apply(update("processing"))
        assert machine.state.updated_at == 105.0

    @pytest.mark.parametrize("log_transitions", [True, False])
    def test_logging_flag_does_not_change_behavior(self, log_transitions):
        machine = JobStateMachine("abc123", log_transitions=log_transitions)
        assert machine.apply(update("processing"))
        assert machine.apply(update("done"))
        assert machine.state.to_dict()["status"] == "done"
