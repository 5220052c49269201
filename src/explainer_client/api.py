"""
REST client for the explainer backend.

Every request reads the bearer token from ``token_provider`` at send time,
so a refresh that lands mid-flight is honored by the next request.
"""

from __future__ import annotations

import asyncio
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiohttp

from .concurrency import run_sync
from .config import ApiConfig
from .errors import ApiError, ErrorContext, NetworkError, error_from_status
from .logging import get_logger

TokenProvider = Callable[[], str | None]

logger = get_logger("explainer_client.api")


@dataclass(frozen=True)
class AuthPayload:
    """Body of a successful login, register or refresh response."""

    user: dict[str, Any]
    token: str
    refresh_token: str

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> AuthPayload:
        user = data.get("user")
        token = data.get("token")
        refresh_token = data.get("refreshToken")
        if not isinstance(user, dict) or not isinstance(token, str) or not isinstance(refresh_token, str):
            raise ApiError("Malformed auth response", http_status=200)
        return cls(user=user, token=token, refresh_token=refresh_token)


class ApiClient:
    """
    Thin async wrapper over the backend endpoints.

    Use as an async context manager, or call ``close()`` when done. An
    externally owned ``aiohttp.ClientSession`` may be passed in; it is then
    left open on close.
    """

    def __init__(
        self,
        config: ApiConfig | None = None,
        *,
        token_provider: TokenProvider | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config or ApiConfig()
        self.token_provider = token_provider
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ApiClient:
        _ = self.http
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()

    @property
    def http(self) -> aiohttp.ClientSession:
        """The underlying session, created lazily on the running loop."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    def _headers(self, authenticated: bool, bearer: str | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        token = bearer
        if token is None and authenticated and self.token_provider is not None:
            token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        data: aiohttp.FormData | None = None,
        authenticated: bool = True,
        bearer: str | None = None,
    ) -> dict[str, Any]:
        """
        Send one request and decode the JSON body.

        Raises:
            ApiError: Non-2xx response (subclass chosen by status), or a JSON
                body that does not parse
            NetworkError: Connection failure or timeout
        """
        headers = self._headers(authenticated, bearer)
        ctx = ErrorContext(endpoint=path, operation=method)
        logger.debug("API request", method=method, path=path, authenticated="Authorization" in headers)

        try:
            async with self.http.request(method, self._url(path), json=json, data=data, headers=headers) as response:
                if response.status >= 400:
                    message = await self._error_message(response)
                    raise error_from_status(response.status, message, context=ctx)
                if response.content_type == "application/json":
                    try:
                        body = await response.json()
                    except ValueError as e:
                        raise ApiError(
                            "Malformed response", http_status=response.status, context=ctx, cause=e
                        ) from e
                    return body if isinstance(body, dict) else {"data": body}
                return {}
        except aiohttp.ClientError as e:
            raise NetworkError(context=ctx, cause=e) from e
        except asyncio.TimeoutError as e:
            raise NetworkError("Request timed out", context=ctx, cause=e) from e

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        fallback = f"HTTP {response.status}: {response.reason}"
        if response.content_type == "application/json":
            try:
                body = await response.json()
            except (aiohttp.ContentTypeError, ValueError):
                return fallback
            if isinstance(body, dict) and isinstance(body.get("message"), str):
                return body["message"]
            return fallback
        text = await response.text()
        return text or fallback

    # -------------------------------------------------------------------------
    # Auth endpoints
    # -------------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthPayload:
        body = await self.request(
            "POST", "/auth/login", json={"email": email, "password": password}, authenticated=False
        )
        return AuthPayload.from_response(body)

    async def register(self, email: str, password: str, name: str) -> AuthPayload:
        body = await self.request(
            "POST",
            "/auth/register",
            json={"email": email, "password": password, "name": name},
            authenticated=False,
        )
        return AuthPayload.from_response(body)

    async def refresh(self, refresh_token: str) -> AuthPayload:
        body = await self.request(
            "POST", "/auth/refresh", json={"refreshToken": refresh_token}, authenticated=False
        )
        return AuthPayload.from_response(body)

    async def logout(self, token: str) -> None:
        await self.request("POST", "/auth/logout", bearer=token)

    async def verify(self, token: str) -> dict[str, Any]:
        body = await self.request("GET", "/auth/verify", bearer=token)
        return body.get("user") or {}

    # -------------------------------------------------------------------------
    # Video job endpoints
    # -------------------------------------------------------------------------

    @staticmethod
    def _job_id_of(body: dict[str, Any]) -> str:
        job_id = body.get("jobId")
        if not isinstance(job_id, str) or not job_id:
            raise ApiError("Response has no jobId", http_status=200)
        return job_id

    @staticmethod
    def _options(voice: str | None, style: str | None) -> dict[str, str]:
        options = {}
        if voice:
            options["voice"] = voice
        if style:
            options["style"] = style
        return options

    async def generate_video(self, url: str, voice: str | None = None, style: str | None = None) -> str:
        body = await self.request(
            "POST", "/video-job/generate-video", json={"url": url, **self._options(voice, style)}
        )
        return self._job_id_of(body)

    async def generate_video_from_text(
        self, text: str, voice: str | None = None, style: str | None = None
    ) -> str:
        body = await self.request(
            "POST", "/video-job/generate-video/text", json={"text": text, **self._options(voice, style)}
        )
        return self._job_id_of(body)

    async def generate_video_from_file(
        self,
        source: Path | bytes,
        filename: str,
        voice: str | None = None,
        style: str | None = None,
    ) -> str:
        content = await run_sync(source.read_bytes) if isinstance(source, Path) else source
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        form = aiohttp.FormData()
        form.add_field("file", content, filename=filename, content_type=content_type)
        for key, value in self._options(voice, style).items():
            form.add_field(key, value)

        body = await self.request("POST", "/video-job/generate-video/file", data=form)
        return self._job_id_of(body)

    async def get_job_status(self, job_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/video-job/status/{job_id}")


__all__ = ["ApiClient", "AuthPayload", "TokenProvider"]
