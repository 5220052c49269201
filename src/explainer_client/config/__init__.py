"""
Configuration system for explainer-client.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Sensible defaults with override capability
"""

from .api import ApiConfig, SessionConfig
from .base import LogFormat, LogLevel, StorageBackendType
from .logging import LoggingConfig
from .settings import Settings, configure, get_settings, load_env
from .transport import PollConfig, PushConfig

__all__ = [
    # Types
    "LogLevel",
    "LogFormat",
    "StorageBackendType",
    # Sections
    "ApiConfig",
    "SessionConfig",
    "PushConfig",
    "PollConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "load_env",
]
