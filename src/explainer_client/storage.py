"""
Durable client-side storage for session credentials.

The session is persisted as three independent string entries (access token,
refresh token, serialized user) under fixed keys.
"""

from __future__ import annotations

import json
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from .concurrency import run_sync

TOKEN_KEY = "explainer_auth_token"
REFRESH_TOKEN_KEY = "explainer_refresh_token"
USER_KEY = "explainer_user"

SESSION_KEYS = (TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class SessionStorage(ABC):
    """Key/value string storage for session entries."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    async def clear(self) -> None:
        for key in SESSION_KEYS:
            await self.remove(key)


class InMemorySessionStorage(SessionStorage):
    """Process-local storage. Nothing survives a restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class FileSessionStorage(SessionStorage):
    """JSON file storage with atomic replace on every write."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _update(self, key: str, value: str | None) -> None:
        data = self._read_all()
        if value is None:
            if key not in data:
                return
            data.pop(key)
        else:
            data[key] = value
        self._write_all(data)

    async def get(self, key: str) -> str | None:
        data = await run_sync(self._read_all)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        await run_sync(self._update, key, value)

    async def remove(self, key: str) -> None:
        await run_sync(self._update, key, None)


__all__ = [
    "TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "USER_KEY",
    "SESSION_KEYS",
    "SessionStorage",
    "InMemorySessionStorage",
    "FileSessionStorage",
]
