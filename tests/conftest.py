"""
Shared test fixtures and fakes for explainer-client tests.

This module provides:
- JWT and auth payload factories
- A controllable clock and a recording sleep
- Fake websocket and websocket session for the push transport
- A fake REST client for the session manager and poll transport
"""

from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from explainer_client.api import AuthPayload
from explainer_client.config import PollConfig, PushConfig
from explainer_client.session import TokenLifecycleManager
from explainer_client.storage import InMemorySessionStorage

NOW = 1_700_000_000.0

USER = {"id": "user-1", "email": "ada@example.com", "name": "Ada"}


# =============================================================================
# Token Factories
# =============================================================================


def _segment(obj: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()


def make_jwt(exp: float | None = None, sub: str = "user-1") -> str:
    """Create an unsigned JWT with the given expiry."""
    claims: dict[str, Any] = {"sub": sub}
    if exp is not None:
        claims["exp"] = exp
    return f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment(claims)}.signature"


def make_auth_payload(
    token: str | None = None,
    refresh_token: str = "refresh-1",
    user: dict[str, Any] | None = None,
) -> AuthPayload:
    """Create an AuthPayload as returned by login/register/refresh."""
    return AuthPayload(
        user=user or dict(USER),
        token=token or make_jwt(exp=NOW + 3600),
        refresh_token=refresh_token,
    )


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Wall clock pinned to a settable instant."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    """
    Sleep replacement that records requested delays.

    With ``block=True`` every call waits until ``release()``, which keeps
    timers pending for inspection.
    """

    def __init__(self, block: bool = False):
        self.delays: list[float] = []
        self.block = block
        self._gate = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.block:
            await self._gate.wait()
        else:
            await asyncio.sleep(0)

    def release(self) -> None:
        self._gate.set()


async def settle(rounds: int = 20) -> None:
    """Let pending tasks run for a few loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate, rounds: int = 500) -> None:
    """Spin the loop until ``predicate()`` holds."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


# =============================================================================
# Fake Websocket
# =============================================================================


@dataclass
class FakeMessage:
    type: aiohttp.WSMsgType
    data: Any = None


class FakeWebSocket:
    """In-memory stand-in for ``aiohttp.ClientWebSocketResponse``."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._incoming: asyncio.Queue[FakeMessage] = asyncio.Queue()

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(data)

    def emit(self, event: str, data: Any) -> None:
        """Queue a server message."""
        self.emit_raw(json.dumps({"event": event, "data": data}))

    def emit_raw(self, text: str) -> None:
        self._incoming.put_nowait(FakeMessage(aiohttp.WSMsgType.TEXT, text))

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._incoming.put_nowait(FakeMessage(aiohttp.WSMsgType.CLOSED))

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> FakeMessage:
        msg = await self._incoming.get()
        if msg.type is aiohttp.WSMsgType.CLOSED:
            raise StopAsyncIteration
        return msg


class FakeWsSession:
    """
    Stand-in for the ``ws_connect`` part of ``aiohttp.ClientSession``.

    ``outcomes`` are consumed in order: a FakeWebSocket is returned, an
    exception is raised. Once exhausted, ``fallback`` decides: None opens a
    fresh socket, an exception is raised for every further attempt.
    """

    def __init__(self, outcomes: list[Any] | None = None, fallback: Exception | None = None):
        self.outcomes = list(outcomes or [])
        self.closed = False
        self.fallback = fallback
        self.calls: list[dict[str, Any]] = []
        self.sockets: list[FakeWebSocket] = []

    async def ws_connect(self, url: str, *, headers: dict[str, str] | None = None, heartbeat=None):
        self.calls.append({"url": url, "headers": dict(headers or {})})
        outcome = self.outcomes.pop(0) if self.outcomes else self.fallback
        if outcome is None:
            outcome = FakeWebSocket()
        if isinstance(outcome, BaseException):
            raise outcome
        self.sockets.append(outcome)
        return outcome


def connection_refused() -> aiohttp.ClientConnectionError:
    return aiohttp.ClientConnectionError("Connection refused")


def handshake_rejected(status: int = 401) -> aiohttp.WSServerHandshakeError:
    return aiohttp.WSServerHandshakeError(
        request_info=MagicMock(), history=(), status=status, message="Unauthorized"
    )


# =============================================================================
# Fake REST Client
# =============================================================================


class FakeApi:
    """
    REST client double.

    Auth endpoints are AsyncMocks; job status responses are scripted through
    ``status_responses`` (the last entry repeats).
    """

    def __init__(self, status_responses: list[Any] | None = None):
        self.login = AsyncMock(return_value=make_auth_payload())
        self.register = AsyncMock(return_value=make_auth_payload())
        self.refresh = AsyncMock(return_value=make_auth_payload(token=make_jwt(), refresh_token="refresh-2"))
        self.logout = AsyncMock(return_value=None)
        self.verify = AsyncMock(return_value=dict(USER))
        self.status_responses = list(status_responses or [])
        self.status_calls: list[str] = []

    async def get_job_status(self, job_id: str) -> dict[str, Any]:
        self.status_calls.append(job_id)
        if len(self.status_responses) > 1:
            outcome = self.status_responses.pop(0)
        else:
            outcome = self.status_responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemorySessionStorage:
    return InMemorySessionStorage()


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def push_config() -> PushConfig:
    return PushConfig(url="ws://test/ws", heartbeat=None)


@pytest.fixture
def poll_config() -> PollConfig:
    return PollConfig(interval=2.0)


def make_session(
    api: Any,
    storage: InMemorySessionStorage | None = None,
    *,
    clock: FakeClock | None = None,
    sleep: RecordingSleep | None = None,
) -> TokenLifecycleManager:
    """Build a session manager wired to test doubles."""
    return TokenLifecycleManager(
        api,
        storage or InMemorySessionStorage(),
        clock=clock or FakeClock(),
        sleep=sleep or RecordingSleep(block=True),
    )


def stored_session(token: str, refresh_token: str = "refresh-1") -> InMemorySessionStorage:
    """Storage pre-populated with a persisted session."""
    return InMemorySessionStorage(
        {
            "explainer_auth_token": token,
            "explainer_refresh_token": refresh_token,
            "explainer_user": json.dumps(USER),
        }
    )
