"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import ConfigError
from .api import ApiConfig, SessionConfig
from .logging import LoggingConfig
from .transport import PollConfig, PushConfig


@dataclass
class Settings:
    """
    Master configuration for the client.

    This aggregates all configuration sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    api: ApiConfig = field(default_factory=ApiConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    push: PushConfig = field(default_factory=PushConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "EXPLAINER_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            EXPLAINER_API_URL=https://api.explainer.ai
            EXPLAINER_WS_URL=wss://api.explainer.ai/ws
            EXPLAINER_POLL_INTERVAL=2
        """
        settings = cls()

        if url := os.getenv(f"{prefix}API_URL"):
            settings.api = ApiConfig(base_url=url, timeout=settings.api.timeout)
        if timeout := os.getenv(f"{prefix}API_TIMEOUT"):
            settings.api.timeout = float(timeout)

        if storage := os.getenv(f"{prefix}SESSION_STORAGE"):
            settings.session.storage = storage.lower()  # type: ignore
        if storage_path := os.getenv(f"{prefix}SESSION_PATH"):
            settings.session.storage_path = Path(storage_path)
        if margin := os.getenv(f"{prefix}REFRESH_MARGIN"):
            settings.session.refresh_margin = float(margin)

        if enabled := os.getenv(f"{prefix}PUSH_ENABLED"):
            settings.push.enabled = enabled.lower() == "true"
        if ws_url := os.getenv(f"{prefix}WS_URL"):
            settings.push.url = ws_url
        if attempts := os.getenv(f"{prefix}PUSH_MAX_RECONNECT_ATTEMPTS"):
            settings.push.max_reconnect_attempts = int(attempts)
        if delay := os.getenv(f"{prefix}PUSH_RECONNECT_DELAY"):
            settings.push.reconnect_delay = float(delay)

        if interval := os.getenv(f"{prefix}POLL_INTERVAL"):
            settings.poll.interval = float(interval)

        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging.level = level.upper()  # type: ignore
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging.format = log_format.lower()  # type: ignore

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml

            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ConfigError(f"Unsupported config file format: {suffix}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema
        before any section is built.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        try:
            return cls(
                api=ApiConfig(**data.get("api", {})),
                session=SessionConfig(**data.get("session", {})),
                push=PushConfig(**data.get("push", {})),
                poll=PollConfig(**data.get("poll", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except ValueError as e:
            raise ConfigError(str(e), cause=e) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""

        def convert(obj):
            if isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            if isinstance(obj, Path):
                return str(obj)
            return obj

        return convert(dataclasses.asdict(self))


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "load_env"]
