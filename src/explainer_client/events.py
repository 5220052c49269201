"""
Push channel wire protocol.

Messages are JSON envelopes ``{"event": <tag>, "data": {...}}``. Inbound
envelopes decode into a closed set of event types; an unknown tag or a
malformed payload raises ``ProtocolError`` at this boundary.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .errors import ErrorContext, ProtocolError
from .types import JobUpdate


class ServerEvent(str, Enum):
    JOB_PROGRESS = "jobProgress"
    AUTH_ERROR = "authError"
    ERROR = "error"


class ClientEvent(str, Enum):
    JOIN_JOB = "joinJob"
    LEAVE_JOB = "leaveJob"


@dataclass(frozen=True)
class JobProgressEvent:
    update: JobUpdate

    @property
    def job_id(self) -> str:
        return self.update.job_id


@dataclass(frozen=True)
class AuthErrorEvent:
    message: str


@dataclass(frozen=True)
class ServerErrorEvent:
    message: str


PushEvent = Union[JobProgressEvent, AuthErrorEvent, ServerErrorEvent]


def _message_of(data: Any, default: str) -> str:
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    if isinstance(data, str) and data:
        return data
    return default


def decode_push_event(raw: str | bytes | dict[str, Any]) -> PushEvent:
    """
    Decode one inbound envelope.

    Raises:
        ProtocolError: On invalid JSON, a missing or unknown tag, or a
            payload that does not fit the tag
    """
    if isinstance(raw, (str, bytes)):
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Invalid JSON from push channel: {e.msg}", cause=e) from e
    else:
        envelope = raw

    if not isinstance(envelope, dict):
        raise ProtocolError("Push envelope must be a JSON object")

    tag = envelope.get("event")
    try:
        event = ServerEvent(tag)
    except ValueError:
        raise ProtocolError(f"Unknown push event: {tag!r}") from None

    data = envelope.get("data")

    if event is ServerEvent.JOB_PROGRESS:
        if not isinstance(data, dict):
            raise ProtocolError("jobProgress payload must be an object")
        try:
            update = JobUpdate.from_payload(data)
        except ValueError as e:
            raise ProtocolError(
                f"Malformed jobProgress payload: {e}",
                context=ErrorContext(job_id=data.get("jobId") if isinstance(data.get("jobId"), str) else None),
                cause=e,
            ) from e
        return JobProgressEvent(update=update)

    if event is ServerEvent.AUTH_ERROR:
        return AuthErrorEvent(message=_message_of(data, "Authentication failed"))

    return ServerErrorEvent(message=_message_of(data, "Socket error"))


def encode_client_event(event: ClientEvent, job_id: str) -> dict[str, Any]:
    return {"event": event.value, "data": {"jobId": job_id}}


__all__ = [
    "ServerEvent",
    "ClientEvent",
    "JobProgressEvent",
    "AuthErrorEvent",
    "ServerErrorEvent",
    "PushEvent",
    "decode_push_event",
    "encode_client_event",
]
