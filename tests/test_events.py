"""
Tests for push wire events and job update parsing.
"""

import json

import pytest

from explainer_client.errors import ProtocolError
from explainer_client.events import (
    AuthErrorEvent,
    ClientEvent,
    JobProgressEvent,
    ServerErrorEvent,
    decode_push_event,
    encode_client_event,
)
from explainer_client.types import JobState, JobStatus, JobUpdate


def envelope(event, data):
    return json.dumps({"event": event, "data": data})


class TestDecode:
    """Test inbound envelope decoding."""

    def test_job_progress(self):
        event = decode_push_event(
            envelope(
                "jobProgress",
                {
                    "jobId": "abc123",
                    "status": "processing",
                    "progress": {"step": "Rendering scenes", "percentage": 40},
                },
            )
        )

        assert isinstance(event, JobProgressEvent)
        assert event.job_id == "abc123"
        assert event.update.status is JobStatus.PROCESSING
        assert event.update.progress_fraction == pytest.approx(0.4)
        assert event.update.stage_label == "Rendering scenes"

    def test_accepts_bytes_and_dicts(self):
        raw = {"event": "jobProgress", "data": {"jobId": "abc123", "status": "queued"}}

        assert isinstance(decode_push_event(json.dumps(raw).encode()), JobProgressEvent)
        assert isinstance(decode_push_event(raw), JobProgressEvent)

    def test_auth_error(self):
        event = decode_push_event(envelope("authError", {"message": "Token expired"}))
        assert event == AuthErrorEvent(message="Token expired")

        assert decode_push_event(envelope("authError", None)) == AuthErrorEvent(message="Authentication failed")

    def test_server_error(self):
        assert decode_push_event(envelope("error", "Room full")) == ServerErrorEvent(message="Room full")
        assert decode_push_event(envelope("error", {})) == ServerErrorEvent(message="Socket error")

    @pytest.mark.parametrize(
        "raw,match",
        [
            ("{not json", "Invalid JSON"),
            ("[1, 2]", "must be a JSON object"),
            (envelope("jobCancelled", {}), "Unknown push event"),
            (json.dumps({"data": {}}), "Unknown push event"),
            (envelope("jobProgress", "abc123"), "must be an object"),
            (envelope("jobProgress", {"status": "done"}), "Malformed jobProgress"),
            (envelope("jobProgress", {"jobId": "abc123", "status": "exploded"}), "Malformed jobProgress"),
        ],
    )
    def test_protocol_errors(self, raw, match):
        with pytest.raises(ProtocolError, match=match):
            decode_push_event(raw)

    def test_malformed_progress_keeps_job_id(self):
        with pytest.raises(ProtocolError) as exc_info:
            decode_push_event(envelope("jobProgress", {"jobId": "abc123", "status": 7}))
        assert exc_info.value.context.job_id == "abc123"


class TestEncode:
    """Test outbound envelopes."""

    def test_join_and_leave(self):
        assert encode_client_event(ClientEvent.JOIN_JOB, "abc123") == {
            "event": "joinJob",
            "data": {"jobId": "abc123"},
        }
        assert encode_client_event(ClientEvent.LEAVE_JOB, "abc123")["event"] == "leaveJob"


class TestJobStatus:
    """Test wire status parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("queued", JobStatus.QUEUED),
            ("PROCESSING", JobStatus.PROCESSING),
            (" done ", JobStatus.DONE),
            ("pending", JobStatus.QUEUED),
            ("completed", JobStatus.DONE),
            ("failed", JobStatus.ERROR),
            (JobStatus.ERROR, JobStatus.ERROR),
        ],
    )
    def test_parse(self, raw, expected):
        assert JobStatus.parse(raw) is expected

    @pytest.mark.parametrize("raw", [None, 3, "cancelled"])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValueError):
            JobStatus.parse(raw)

    def test_terminal(self):
        assert JobStatus.DONE.is_terminal
        assert JobStatus.ERROR.is_terminal
        assert not JobStatus.QUEUED.is_terminal


class TestJobUpdate:
    """Test payload normalization."""

    def test_bare_percentage_with_stage(self):
        update = JobUpdate.from_payload(
            {"jobId": "abc123", "status": "processing", "progress": 75, "stage": "Narrating"}
        )

        assert update.progress_fraction == pytest.approx(0.75)
        assert update.stage_label == "Narrating"

    def test_current_step_alias(self):
        update = JobUpdate.from_payload(
            {"jobId": "abc123", "status": "processing", "progress": {"currentStep": "Scripting"}}
        )

        assert update.stage_label == "Scripting"
        assert update.progress_fraction is None

    def test_boolean_percentage_ignored(self):
        update = JobUpdate.from_payload({"jobId": "abc123", "status": "processing", "progress": True})
        assert update.progress_fraction is None

    def test_result_and_error(self):
        done = JobUpdate.from_payload({"jobId": "abc123", "status": "done", "videoUrl": "https://x/y.mp4"})
        failed = JobUpdate.from_payload({"jobId": "abc123", "status": "error", "error": ""})

        assert done.result_uri == "https://x/y.mp4"
        assert failed.error is None

    def test_missing_job_id(self):
        with pytest.raises(ValueError, match="jobId"):
            JobUpdate.from_payload({"status": "done"})


class TestJobState:
    """Test the state snapshot."""

    def test_defaults_and_dict(self):
        state = JobState(job_id="abc123", updated_at=10.0)

        assert state.status is JobStatus.QUEUED
        assert not state.is_terminal
        assert state.to_dict()["status"] == "queued"
        assert state.evolve(status=JobStatus.DONE).is_terminal
