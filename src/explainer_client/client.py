"""
High-level client for the explainer backend.

``ExplainerClient`` wires the session manager, REST client and job
channels together and is the surface UI collaborators use: authenticate,
submit a generation request, then observe its ``JobState`` until done.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path

import aiohttp

from .api import ApiClient
from .concurrency import SleepFunc
from .config import SessionConfig, Settings, get_settings
from .jobs import JobChannel, JobListener
from .logging import configure_logging, get_logger
from .session import Credential, TokenLifecycleManager, User
from .storage import FileSessionStorage, InMemorySessionStorage, SessionStorage
from .transports import PollTransport, PushTransport
from .types import JobHandle, JobState
from .validation import validate_job_id, validate_source_url, validate_text, validate_upload

logger = get_logger("explainer_client.client")


def create_storage(config: SessionConfig) -> SessionStorage:
    """Build the session storage backend named in the config."""
    if config.storage == "memory":
        return InMemorySessionStorage()
    return FileSessionStorage(config.storage_path)


class ExplainerClient:
    """
    Explainer video client.

    One job is tracked at a time; starting a new one resets the previous
    channel first.

    Example:
        ```python
        async with ExplainerClient() as client:
            await client.login("me@example.com", "secret")
            await client.generate_video("https://example.com/article")
            state = await client.wait_for_job()
            print(state.result_uri)
        ```

    Args:
        settings: Client settings (defaults to ``get_settings()``)
        storage: Session storage override
        http_session: Externally owned aiohttp session
        sleep: Awaitable sleep for timers, polling and backoff
        clock: Wall-clock source in epoch seconds
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        storage: SessionStorage | None = None,
        http_session: aiohttp.ClientSession | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self._sleep = sleep
        self._clock = clock

        log_config = self.settings.logging
        configure_logging(
            level=log_config.level,
            json_output=log_config.format == "json",
            log_file=log_config.log_file,
            include_timestamp=log_config.include_timestamp,
            redact_tokens=log_config.redact_tokens,
        )

        self.api = ApiClient(self.settings.api, session=http_session)
        self.session = TokenLifecycleManager(
            self.api,
            storage or create_storage(self.settings.session),
            refresh_margin=self.settings.session.refresh_margin,
            clock=clock,
            sleep=sleep,
        )
        self.api.token_provider = lambda: self.session.access_token

        self._channel: JobChannel | None = None
        self._job_listeners: list[JobListener] = []

    async def __aenter__(self) -> ExplainerClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def start(self) -> None:
        """Restore the persisted session."""
        await self.session.initialize()

    async def aclose(self) -> None:
        await self.reset()
        await self.session.aclose()
        await self.api.close()

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    @property
    def user(self) -> User | None:
        return self.session.user

    @property
    def channel(self) -> JobChannel | None:
        return self._channel

    @property
    def job_id(self) -> str | None:
        return self._channel.job_id if self._channel else None

    @property
    def job_state(self) -> JobState | None:
        return self._channel.state if self._channel else None

    def add_job_listener(self, listener: JobListener) -> Callable[[], None]:
        """Observe ``JobState`` changes for the current and all later jobs."""
        self._job_listeners.append(listener)
        remove_current = self._channel.add_listener(listener) if self._channel else None

        def remove() -> None:
            if listener in self._job_listeners:
                self._job_listeners.remove(listener)
            if remove_current is not None:
                remove_current()

        return remove

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self, email: str, password: str) -> Credential:
        await self.session.initialize()
        return await self.session.login(email, password)

    async def register(self, email: str, password: str, name: str) -> Credential:
        await self.session.initialize()
        return await self.session.register(email, password, name)

    async def logout(self) -> None:
        # The job belongs to the outgoing user; stop tracking it first.
        await self.reset()
        await self.session.logout()

    async def verify(self) -> bool:
        await self.session.initialize()
        return await self.session.verify()

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def generate_video(self, url: str, voice: str | None = None, style: str | None = None) -> JobHandle:
        url = validate_source_url(url)
        await self.session.initialize()
        job_id = await self.api.generate_video(url, voice, style)
        return await self.watch_job(job_id)

    async def generate_video_from_text(
        self, text: str, voice: str | None = None, style: str | None = None
    ) -> JobHandle:
        text = validate_text(text)
        await self.session.initialize()
        job_id = await self.api.generate_video_from_text(text, voice, style)
        return await self.watch_job(job_id)

    async def generate_video_from_file(
        self,
        file: Path | str | bytes,
        filename: str | None = None,
        voice: str | None = None,
        style: str | None = None,
    ) -> JobHandle:
        source, name = validate_upload(file, filename)
        await self.session.initialize()
        job_id = await self.api.generate_video_from_file(source, name, voice, style)
        return await self.watch_job(job_id)

    # -------------------------------------------------------------------------
    # Job tracking
    # -------------------------------------------------------------------------

    async def watch_job(self, job_id: str) -> JobHandle:
        """Track an already-accepted job, replacing any current subscription."""
        validate_job_id(job_id)
        await self.reset()

        channel = self._build_channel(job_id)
        for listener in self._job_listeners:
            channel.add_listener(listener)
        self._channel = channel
        return await channel.open()

    def _build_channel(self, job_id: str) -> JobChannel:
        poll = PollTransport(self.api, self.settings.poll, sleep=self._sleep)
        push = None
        if self.settings.push.enabled and self.session.is_authenticated:
            push = PushTransport(
                self.settings.push,
                self.session,
                self.api.http,
                sleep=self._sleep,
                log_events=self.settings.logging.log_transport_events,
            )
        return JobChannel(
            job_id,
            poll=poll,
            push=push,
            clock=self._clock,
            log_transitions=self.settings.logging.log_transitions,
        )

    async def wait_for_job(self) -> JobState:
        """Wait for the current job's channel to close and return its final state."""
        if self._channel is None:
            raise RuntimeError("No job is being tracked")
        return await self._channel.wait()

    async def reset(self) -> None:
        """Stop tracking the current job and forget its state."""
        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.close()
            logger.debug("Job reset", job_id=channel.job_id)


__all__ = ["ExplainerClient", "create_storage"]
