"""
Session credential lifecycle.

``TokenLifecycleManager`` owns the single bearer credential used by every
outgoing request. It loads the persisted session, predicts expiry from the
JWT ``exp`` claim, refreshes ahead of expiry, and fails closed: any refresh
failure clears the session instead of retrying.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from .api import ApiClient, AuthPayload
from .concurrency import ScheduledCall, SleepFunc
from .errors import (
    ApiAuthError,
    ApiError,
    AuthError,
    InvalidCredentialsError,
    RefreshError,
    SessionExpiredError,
)
from .logging import get_logger
from .storage import REFRESH_TOKEN_KEY, TOKEN_KEY, USER_KEY, SessionStorage
from .validation import validate_login, validate_registration

REFRESH_MARGIN = 5 * 60.0

logger = get_logger("explainer_client.session")


def decode_token_claims(token: str) -> dict[str, Any] | None:
    """Decode the (unverified) payload segment of a JWT."""
    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")))
    except (ValueError, UnicodeError):
        return None
    return claims if isinstance(claims, dict) else None


@dataclass
class User:
    id: str
    email: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(id=str(data["id"]), email=str(data.get("email", "")), name=str(data.get("name", "")))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Credential:
    """Access/refresh token pair with its derived expiry."""

    access_token: str
    refresh_token: str
    user: User
    subject: str | None = None
    expires_at: float | None = None

    @classmethod
    def create(cls, access_token: str, refresh_token: str, user: User) -> Credential:
        claims = decode_token_claims(access_token) or {}
        exp = claims.get("exp")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            user=user,
            subject=str(claims.get("sub") or user.id),
            expires_at=float(exp) if isinstance(exp, (int, float)) else None,
        )

    @classmethod
    def from_auth(cls, payload: AuthPayload) -> Credential:
        return cls.create(payload.token, payload.refresh_token, User.from_dict(payload.user))

    def update_from(self, other: Credential) -> None:
        self.access_token = other.access_token
        self.refresh_token = other.refresh_token
        self.user = other.user
        self.subject = other.subject
        self.expires_at = other.expires_at

    def is_expired(self, now: float) -> bool:
        # Tokens without a readable exp claim are treated as expired.
        return self.expires_at is None or self.expires_at < now


CredentialListener = Callable[["Credential | None"], Any]


class TokenLifecycleManager:
    """
    Process-wide session context.

    Create one per client, call ``initialize()`` before dependent requests and
    ``aclose()`` on teardown. Transports receive the manager explicitly and
    read ``access_token`` at send time.

    Args:
        api: REST client used for the auth endpoints
        storage: Durable storage for the three session entries
        refresh_margin: Seconds before expiry at which refresh fires
        clock: Wall-clock source in epoch seconds
        sleep: Awaitable sleep used by the refresh timer
    """

    def __init__(
        self,
        api: ApiClient,
        storage: SessionStorage,
        *,
        refresh_margin: float = REFRESH_MARGIN,
        clock: Callable[[], float] = time.time,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._api = api
        self._storage = storage
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._sleep = sleep

        self._credential: Credential | None = None
        self._init_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._refresh_timer: ScheduledCall | None = None
        self._listeners: list[CredentialListener] = []

        # Bumped by every clear; work started under an older value is discarded.
        self._generation = 0
        self._storage_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def access_token(self) -> str | None:
        return self._credential.access_token if self._credential else None

    @property
    def user(self) -> User | None:
        return self._credential.user if self._credential else None

    @property
    def is_authenticated(self) -> bool:
        return self._credential is not None

    @property
    def initialized(self) -> bool:
        return self._init_task is not None and self._init_task.done()

    @property
    def refresh_timer(self) -> ScheduledCall | None:
        return self._refresh_timer

    def add_listener(self, listener: CredentialListener) -> Callable[[], None]:
        """Register a callback for credential changes. Returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._credential)
            except Exception as e:
                logger.log_error(e, "Credential listener failed")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the persisted session once; later callers await the same run."""
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(
                self._initialize(), name="explainer-session-init"
            )
        await asyncio.shield(self._init_task)

    async def _initialize(self) -> None:
        token = await self._storage.get(TOKEN_KEY)
        stored_user = await self._storage.get(USER_KEY)

        if not token or not stored_user:
            logger.debug("No stored session")
            return

        try:
            user = User.from_dict(json.loads(stored_user))
        except (ValueError, TypeError, KeyError) as e:
            logger.log_error(e, "Stored session is unreadable; clearing")
            await self._clear()
            return

        refresh_token = await self._storage.get(REFRESH_TOKEN_KEY) or ""
        credential = Credential.create(token, refresh_token, user)

        if credential.is_expired(self._clock()):
            logger.info("Stored token expired; refreshing")
            try:
                await self.refresh()
            except AuthError:
                logger.warning("Session could not be restored")
            return

        self._credential = credential
        self._notify()
        self.schedule_refresh(credential)
        logger.info("Session restored", user_id=user.id)

    async def aclose(self) -> None:
        """Cancel timers and in-flight work. Stored entries are left intact."""
        if self._refresh_timer is not None:
            self._refresh_timer.cancel()
            self._refresh_timer = None
        for task in (self._init_task, self._refresh_task):
            if task is not None and not task.done():
                task.cancel()
        self._listeners.clear()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def login(self, email: str, password: str) -> Credential:
        """
        Exchange user credentials for a session.

        Raises:
            ValidationError: Empty or malformed fields
            InvalidCredentialsError: Backend rejected the credentials
            AuthError: Network or backend failure
        """
        validate_login(email, password)
        try:
            payload = await self._api.login(email, password)
        except ApiError as e:
            raise self._auth_error(e, "Login failed") from e
        return await self._establish(payload)

    async def register(self, email: str, password: str, name: str) -> Credential:
        validate_registration(email, password, name)
        try:
            payload = await self._api.register(email, password, name)
        except ApiError as e:
            raise self._auth_error(e, "Registration failed") from e
        return await self._establish(payload)

    @staticmethod
    def _auth_error(error: ApiError, fallback: str) -> AuthError:
        if isinstance(error, ApiAuthError) or (error.http_status is not None and 400 <= error.http_status < 500):
            return InvalidCredentialsError(error.message or fallback, cause=error)
        return AuthError(error.message or fallback, cause=error)

    async def _establish(self, payload: AuthPayload) -> Credential:
        credential = Credential.from_auth(payload)
        if not await self._store(credential):
            raise AuthError("Session was cleared while signing in")
        self.schedule_refresh(credential)
        logger.info("Authenticated", user_id=credential.user.id)
        return credential

    async def refresh(self) -> Credential:
        """
        Exchange the refresh token for a new credential.

        Concurrent callers share one in-flight request.

        Raises:
            RefreshError: Missing or rejected refresh token; the session is cleared
        """
        if self._refresh_task is None:
            self._refresh_task = asyncio.get_running_loop().create_task(
                self._refresh(), name="explainer-token-refresh"
            )
            self._refresh_task.add_done_callback(self._refresh_finished)
        return await asyncio.shield(self._refresh_task)

    def _refresh_finished(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> Credential:
        generation = self._generation
        if self._credential is not None:
            refresh_token = self._credential.refresh_token
        else:
            refresh_token = await self._storage.get(REFRESH_TOKEN_KEY)

        if not refresh_token:
            await self._clear()
            raise RefreshError("No refresh token available")

        try:
            payload = await self._api.refresh(refresh_token)
        except ApiError as e:
            logger.log_error(e, "Token refresh failed; clearing session")
            await self._clear()
            raise RefreshError(cause=e) from e

        credential = Credential.from_auth(payload)
        if not await self._store(credential, generation):
            logger.info("Session cleared during refresh; new token discarded")
            raise RefreshError("Session was cleared while refreshing")
        self.schedule_refresh(credential)
        logger.log_token("Token refreshed", credential.access_token, expires_at=credential.expires_at)
        return self._credential

    def schedule_refresh(self, credential: Credential) -> ScheduledCall | None:
        """
        Arm the refresh timer for ``expires_at - refresh_margin``.

        Inside the margin the refresh fires with zero delay. Any previously
        armed timer is cancelled first.
        """
        self._cancel_refresh_timer()
        if credential.expires_at is None:
            logger.warning("Token has no expiry claim; refresh not scheduled")
            return None

        delay = credential.expires_at - self._refresh_margin - self._clock()
        self._refresh_timer = ScheduledCall(
            delay, self._scheduled_refresh, sleep=self._sleep, name="explainer-refresh-timer"
        )
        logger.debug("Refresh scheduled", delay=self._refresh_timer.delay)
        return self._refresh_timer

    def _cancel_refresh_timer(self) -> None:
        # A timer that already fired is running refresh() and must finish.
        if self._refresh_timer is not None and not self._refresh_timer.fired:
            self._refresh_timer.cancel()
        self._refresh_timer = None

    async def _scheduled_refresh(self) -> None:
        try:
            await self.refresh()
        except AuthError:
            logger.warning("Scheduled refresh failed; session cleared")

    async def logout(self) -> None:
        """Notify the backend (best effort) and clear the local session."""
        token = self.access_token or await self._storage.get(TOKEN_KEY)
        try:
            if token:
                await self._api.logout(token)
        except ApiError as e:
            logger.log_error(e, "Logout notification failed", level=logging.WARNING)
        finally:
            await self._clear()
        logger.info("Logged out")

    async def verify(self) -> bool:
        """
        Confirm the current session with the backend.

        Returns:
            True if the session is valid (possibly after a refresh)
        """
        if self._credential is None:
            return False
        try:
            await self.ensure_valid()
        except AuthError as e:
            logger.log_error(e, "Session verification failed", level=logging.WARNING)
            return False
        return True

    async def ensure_valid(self) -> Credential:
        """
        Like ``verify()``, but raises instead of returning False.

        Raises:
            SessionExpiredError: No session, or the backend rejected the token;
                the session is cleared
            RefreshError: The token had expired and could not be refreshed
        """
        credential = self._credential
        if credential is None:
            raise SessionExpiredError("No active session")

        if credential.is_expired(self._clock()):
            return await self.refresh()

        try:
            await self._api.verify(credential.access_token)
        except ApiError as e:
            await self._clear()
            raise SessionExpiredError(cause=e) from e

        self.schedule_refresh(credential)
        return credential

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def _store(self, credential: Credential, generation: int | None = None) -> bool:
        """
        Persist and install ``credential``.

        Returns:
            False if the session was cleared since ``generation`` (or during
            the write); nothing is installed in that case
        """
        expected = self._generation if generation is None else generation
        async with self._storage_lock:
            if expected != self._generation:
                return False
            await self._storage.set(TOKEN_KEY, credential.access_token)
            await self._storage.set(REFRESH_TOKEN_KEY, credential.refresh_token)
            await self._storage.set(USER_KEY, json.dumps(credential.user.to_dict()))
            # A clear that arrived mid-write wipes storage once it gets the lock.
            if expected != self._generation:
                return False
            if self._credential is None:
                self._credential = credential
            else:
                self._credential.update_from(credential)
        self._notify()
        return True

    async def _clear(self) -> None:
        self._generation += 1
        self._cancel_refresh_timer()
        had_credential = self._credential is not None
        self._credential = None
        async with self._storage_lock:
            await self._storage.clear()
        if had_credential:
            self._notify()


__all__ = [
    "REFRESH_MARGIN",
    "User",
    "Credential",
    "CredentialListener",
    "TokenLifecycleManager",
    "decode_token_claims",
]
