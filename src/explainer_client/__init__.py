"""
Top-level package for the explainer client.

Environment variables are loaded from the nearest `.env` so settings such as
EXPLAINER_API_URL apply on import.
"""
from dotenv import find_dotenv, load_dotenv

# Keep side effect so EXPLAINER_* settings are loaded on import.
_ = load_dotenv(find_dotenv(usecwd=True))

from .api import ApiClient, AuthPayload
from .client import ExplainerClient, create_storage
from .config import (
    ApiConfig,
    LoggingConfig,
    PollConfig,
    PushConfig,
    SessionConfig,
    Settings,
    configure,
    get_settings,
    load_env,
)
from .errors import (
    ApiAuthError,
    ApiError,
    AuthError,
    ConfigError,
    ExplainerClientError,
    InvalidCredentialsError,
    InvalidJobIdError,
    MissingContentError,
    NetworkError,
    PollError,
    ProtocolError,
    PushAuthError,
    PushConnectError,
    RefreshError,
    TransportError,
    ValidationError,
)
from .jobs import JobChannel, JobStateMachine
from .session import Credential, TokenLifecycleManager, User
from .storage import FileSessionStorage, InMemorySessionStorage, SessionStorage
from .transports import PollTransport, PushState, PushTransport
from .types import GENERIC_JOB_ERROR, JobHandle, JobState, JobStatus, JobUpdate, TransportMode

__version__ = "0.1.0"

__all__ = [
    # Client
    "ExplainerClient",
    "ApiClient",
    "AuthPayload",
    "create_storage",
    # Session
    "TokenLifecycleManager",
    "Credential",
    "User",
    "SessionStorage",
    "FileSessionStorage",
    "InMemorySessionStorage",
    # Jobs
    "JobChannel",
    "JobStateMachine",
    "PushTransport",
    "PushState",
    "PollTransport",
    "JobHandle",
    "JobState",
    "JobStatus",
    "JobUpdate",
    "TransportMode",
    "GENERIC_JOB_ERROR",
    # Config
    "Settings",
    "ApiConfig",
    "SessionConfig",
    "PushConfig",
    "PollConfig",
    "LoggingConfig",
    "get_settings",
    "configure",
    "load_env",
    # Errors
    "ExplainerClientError",
    "AuthError",
    "InvalidCredentialsError",
    "RefreshError",
    "TransportError",
    "PushConnectError",
    "PushAuthError",
    "PollError",
    "ProtocolError",
    "ValidationError",
    "InvalidJobIdError",
    "MissingContentError",
    "ApiError",
    "ApiAuthError",
    "NetworkError",
    "ConfigError",
]
