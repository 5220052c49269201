"""
Websocket push transport.

A persistent JSON-over-websocket connection carrying ``jobProgress`` events
for every job joined through ``subscribe()``. The connection is established
with bounded, linearly backed-off retries; authentication rejections are
never retried.

State machine:
    disconnected -> connecting -> connected -> disconnected
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum

import aiohttp

from ..concurrency import SleepFunc
from ..config import PushConfig
from ..errors import (
    ErrorContext,
    ProtocolError,
    PushAuthError,
    PushConnectError,
    TransportError,
)
from ..events import (
    AuthErrorEvent,
    ClientEvent,
    JobProgressEvent,
    decode_push_event,
    encode_client_event,
)
from ..logging import get_logger
from ..session import Credential, TokenLifecycleManager
from ..types import TransportFailure, TransportMode
from .base import Sink

logger = get_logger("explainer_client.transports.push")

AUTH_REJECTED_STATUSES = (401, 403)


class PushState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PushTransport:
    """
    Push subscription channel.

    The bearer token is read from ``credentials`` when a connection is opened
    and stays fixed for that connection. A credential change while connected
    tears the connection down and reconnects with the new token.

    Args:
        config: Push settings (url, reconnect budget, timeouts)
        credentials: Session manager supplying the bearer token
        http: aiohttp session used to open the websocket
        sleep: Awaitable sleep used for reconnect backoff
        log_events: Log every inbound message at debug level
    """

    def __init__(
        self,
        config: PushConfig,
        credentials: TokenLifecycleManager,
        http: aiohttp.ClientSession,
        *,
        sleep: SleepFunc = asyncio.sleep,
        log_events: bool = True,
    ) -> None:
        self.config = config
        self._credentials = credentials
        self._http = http
        self._sleep = sleep
        self._log_events = log_events

        self.state = PushState.DISCONNECTED
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._connected_token: str | None = None
        self._reader: asyncio.Task | None = None
        self._restart: asyncio.Task | None = None
        self._subscriptions: dict[str, Sink] = {}
        self._lock = asyncio.Lock()
        self._closing = False
        self._auth_rejected = False

        self._remove_listener = credentials.add_listener(self._on_credential_change)

    @property
    def connected(self) -> bool:
        return self.state is PushState.CONNECTED

    @property
    def subscriptions(self) -> list[str]:
        return list(self._subscriptions)

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the connection, retrying within the configured budget.

        Raises:
            PushAuthError: No credential, or the server rejected it
            PushConnectError: Every attempt failed
        """
        async with self._lock:
            if self.connected:
                return
            self._closing = False
            self._auth_rejected = False
            await self._establish()

    async def _establish(self) -> None:
        total = self.config.max_reconnect_attempts + 1
        last_error: Exception | None = None

        for attempt in range(1, total + 1):
            token = self._credentials.access_token
            if not token:
                self.state = PushState.DISCONNECTED
                raise PushAuthError("No credential available", context=self._context(attempt))

            self.state = PushState.CONNECTING
            try:
                ws = await asyncio.wait_for(self._open(token), timeout=self.config.connect_timeout)
            except aiohttp.ClientResponseError as e:
                if e.status in AUTH_REJECTED_STATUSES:
                    self.state = PushState.DISCONNECTED
                    raise PushAuthError(context=self._context(attempt), cause=e) from e
                last_error = e
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                last_error = e
            else:
                await self._on_connected(ws, token)
                return

            logger.warning(
                "Push connect attempt failed",
                attempt=attempt,
                attempts=total,
                error=str(last_error) or type(last_error).__name__,
            )
            if attempt < total:
                await self._sleep(self.config.reconnect_delay * attempt)

        self.state = PushState.DISCONNECTED
        raise PushConnectError(attempts=total, context=self._context(total), cause=last_error)

    async def _open(self, token: str) -> aiohttp.ClientWebSocketResponse:
        return await self._http.ws_connect(
            self.config.url,
            headers={"Authorization": f"Bearer {token}"},
            heartbeat=self.config.heartbeat,
        )

    async def _on_connected(self, ws: aiohttp.ClientWebSocketResponse, token: str) -> None:
        self._ws = ws
        self._connected_token = token
        self.state = PushState.CONNECTED
        logger.info("Push connected", url=self.config.url, jobs=len(self._subscriptions))

        for job_id in list(self._subscriptions):
            await ws.send_json(encode_client_event(ClientEvent.JOIN_JOB, job_id))

        self._reader = asyncio.get_running_loop().create_task(self._read(ws), name="explainer-push-reader")

    def _context(self, attempt: int) -> ErrorContext:
        return ErrorContext(transport=TransportMode.PUSH.value, endpoint=self.config.url, attempt=attempt)

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                self._dispatch(msg.data)
                if self._auth_rejected:
                    break
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

        if self._ws is not ws:
            return
        self._ws = None
        self.state = PushState.DISCONNECTED
        await ws.close()

        if self._closing or self._auth_rejected:
            return
        logger.warning("Push connection lost; reconnecting", jobs=len(self._subscriptions))
        try:
            await self._establish()
        except TransportError as e:
            logger.log_error(e, "Push reconnection failed")
            self._broadcast(e)

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            event = decode_push_event(raw)
        except ProtocolError as e:
            logger.log_error(e, "Rejected push message", level=logging.WARNING)
            return

        if self._log_events:
            logger.debug("Push event", event_type=type(event).__name__)

        if isinstance(event, JobProgressEvent):
            sink = self._subscriptions.get(event.job_id)
            if sink is None:
                logger.debug("Update for unsubscribed job dropped", job_id=event.job_id)
                return
            sink(event.update)
        elif isinstance(event, AuthErrorEvent):
            self._auth_rejected = True
            self._broadcast(PushAuthError(event.message, context=self._context(1)))
        else:
            logger.warning("Push server error", server_message=event.message)

    def _broadcast(self, error: TransportError) -> None:
        failure = TransportFailure(TransportMode.PUSH, error)
        for sink in list(self._subscriptions.values()):
            sink(failure)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(self, job_id: str, sink: Sink) -> None:
        """Route updates for ``job_id`` to ``sink``; joins now if connected."""
        self._subscriptions[job_id] = sink
        if self.connected and self._ws is not None:
            await self._ws.send_json(encode_client_event(ClientEvent.JOIN_JOB, job_id))

    async def unsubscribe(self, job_id: str) -> None:
        if self._subscriptions.pop(job_id, None) is None:
            return
        if self.connected and self._ws is not None:
            try:
                await self._ws.send_json(encode_client_event(ClientEvent.LEAVE_JOB, job_id))
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.debug("leaveJob not sent", job_id=job_id, error=str(e))

    # -------------------------------------------------------------------------
    # Credential changes
    # -------------------------------------------------------------------------

    def _on_credential_change(self, credential: Credential | None) -> None:
        if self._closing or not self.connected:
            return
        if credential is not None and credential.access_token == self._connected_token:
            return
        if self._restart is not None and not self._restart.done():
            self._restart.cancel()
        self._restart = asyncio.get_running_loop().create_task(
            self._reconnect_with(credential), name="explainer-push-restart"
        )

    async def _reconnect_with(self, credential: Credential | None) -> None:
        await self._drop_connection()
        if credential is None:
            self._broadcast(PushAuthError("Session cleared", context=self._context(1)))
            return

        logger.info("Credential changed; reconnecting push channel")
        try:
            await self._establish()
        except TransportError as e:
            logger.log_error(e, "Push reconnection failed")
            self._broadcast(e)

    async def _drop_connection(self) -> None:
        reader, self._reader = self._reader, None
        ws, self._ws = self._ws, None
        self.state = PushState.DISCONNECTED
        self._connected_token = None

        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if ws is not None and not ws.closed:
            await ws.close()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def disconnect(self) -> None:
        """Close the connection deliberately. Never triggers reconnection."""
        self._closing = True
        restart, self._restart = self._restart, None
        if restart is not None and not restart.done() and restart is not asyncio.current_task():
            restart.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await restart
        await self._drop_connection()
        logger.debug("Push disconnected")

    async def aclose(self) -> None:
        await self.disconnect()
        self._subscriptions.clear()
        self._remove_listener()


__all__ = ["PushState", "PushTransport", "AUTH_REJECTED_STATUSES"]
