"""
Backend API and session configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .base import StorageBackendType


@dataclass
class ApiConfig:
    """Configuration for the REST backend."""

    base_url: str = "http://localhost:3001/api"
    timeout: float = 30.0

    def __post_init__(self):
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP(S) URL")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        self.base_url = self.base_url.rstrip("/")


@dataclass
class SessionConfig:
    """Configuration for credential persistence and refresh."""

    storage: StorageBackendType = "file"
    storage_path: Path = Path.home() / ".explainer" / "session.json"

    # Refresh fires this many seconds before the access token expires
    refresh_margin: float = 300.0

    def __post_init__(self):
        if self.storage not in ("memory", "file"):
            raise ValueError(f"Invalid storage backend: {self.storage}")
        if isinstance(self.storage_path, str):
            self.storage_path = Path(self.storage_path)
        if self.refresh_margin < 0:
            raise ValueError("refresh_margin cannot be negative")


__all__ = ["ApiConfig", "SessionConfig"]
