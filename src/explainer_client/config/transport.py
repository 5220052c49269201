"""
Push and poll transport configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PushConfig:
    """Configuration for the websocket push transport."""

    enabled: bool = True
    url: str = "ws://localhost:3001/ws"

    # Reconnection: wait reconnect_delay * attempt between tries
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 1.0

    connect_timeout: float = 10.0
    heartbeat: float | None = 30.0

    def __post_init__(self):
        if not self.url.startswith(("ws://", "wss://")):
            raise ValueError("push url must be a ws:// or wss:// URL")
        if self.max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts cannot be negative")
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay cannot be negative")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")


@dataclass
class PollConfig:
    """Configuration for the status polling transport."""

    interval: float = 2.0

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError("interval must be positive")


__all__ = ["PushConfig", "PollConfig"]
