"""
Error taxonomy for explainer-client.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Recoverable vs fatal classification
- Structured context for debugging
- HTTP status mapping for backend responses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the client."""

    # Auth errors (1xxx)
    AUTH_ERROR = "ERR_1000"
    INVALID_CREDENTIALS = "ERR_1001"
    REFRESH_FAILED = "ERR_1002"
    SESSION_EXPIRED = "ERR_1003"

    # Transport errors (2xxx)
    TRANSPORT_ERROR = "ERR_2000"
    PUSH_CONNECT_FAILED = "ERR_2001"
    PUSH_AUTH_REJECTED = "ERR_2002"
    POLL_FAILED = "ERR_2003"
    PROTOCOL_ERROR = "ERR_2004"

    # Validation errors (3xxx)
    VALIDATION_ERROR = "ERR_3000"
    INVALID_JOB_ID = "ERR_3001"
    MISSING_CONTENT = "ERR_3002"

    # Backend API errors (4xxx)
    API_ERROR = "ERR_4000"
    API_AUTH = "ERR_4001"
    API_NOT_FOUND = "ERR_4002"
    API_UNAVAILABLE = "ERR_4003"
    NETWORK_ERROR = "ERR_4004"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    job_id: str | None = None
    transport: str | None = None
    endpoint: str | None = None
    attempt: int = 1
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "transport": self.transport,
            "endpoint": self.endpoint,
            "attempt": self.attempt,
            "operation": self.operation,
            **self.extra,
        }


class ExplainerClientError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the operation may succeed if re-initiated
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.job_id:
            parts.append(f"(job_id={self.context.job_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Auth Errors
# =============================================================================


class AuthError(ExplainerClientError):
    """Authentication failed. The session is cleared and never retried automatically."""

    code = ErrorCode.AUTH_ERROR
    retryable = False


class InvalidCredentialsError(AuthError):
    """Login or registration was rejected."""

    code = ErrorCode.INVALID_CREDENTIALS

    def __init__(self, message: str = "Invalid email or password", **kwargs):
        super().__init__(message, **kwargs)


class RefreshError(AuthError):
    """Refresh token is missing or was rejected."""

    code = ErrorCode.REFRESH_FAILED

    def __init__(self, message: str = "Failed to refresh token", **kwargs):
        super().__init__(message, **kwargs)


class SessionExpiredError(AuthError):
    """Token verification failed."""

    code = ErrorCode.SESSION_EXPIRED

    def __init__(self, message: str = "Token verification failed", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(ExplainerClientError):
    """Base class for push/poll transport failures."""

    code = ErrorCode.TRANSPORT_ERROR
    retryable = True


class PushConnectError(TransportError):
    """Push channel could not be (re-)established within its attempt budget."""

    code = ErrorCode.PUSH_CONNECT_FAILED

    def __init__(
        self,
        message: str = "Failed to connect after multiple attempts",
        *,
        attempts: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class PushAuthError(TransportError):
    """Push server rejected the credential. Not retried by the transport."""

    code = ErrorCode.PUSH_AUTH_REJECTED
    retryable = False

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, **kwargs)


class PollError(TransportError):
    """A status poll failed; polling stops for the job."""

    code = ErrorCode.POLL_FAILED

    def __init__(self, message: str = "Failed to check job status", **kwargs):
        super().__init__(message, **kwargs)


class ProtocolError(TransportError):
    """Inbound message has an unknown tag or a malformed payload."""

    code = ErrorCode.PROTOCOL_ERROR
    retryable = False


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(ExplainerClientError):
    """Request precondition failed. Raised before any network call."""

    code = ErrorCode.VALIDATION_ERROR
    retryable = False


class InvalidJobIdError(ValidationError):
    """Job id is empty or malformed."""

    code = ErrorCode.INVALID_JOB_ID

    def __init__(self, message: str = "Job ID is required and must be a string", **kwargs):
        super().__init__(message, **kwargs)


class MissingContentError(ValidationError):
    """Generation request has no usable source content."""

    code = ErrorCode.MISSING_CONTENT


# =============================================================================
# Backend API Errors
# =============================================================================


class ApiError(ExplainerClientError):
    """Backend returned an error response."""

    code = ErrorCode.API_ERROR
    retryable = False
    http_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


class ApiAuthError(ApiError):
    """Backend rejected the bearer token or the submitted credentials."""

    code = ErrorCode.API_AUTH


class ApiNotFoundError(ApiError):
    """Requested resource does not exist."""

    code = ErrorCode.API_NOT_FOUND


class ApiUnavailableError(ApiError):
    """Backend is temporarily unavailable."""

    code = ErrorCode.API_UNAVAILABLE
    retryable = True


class NetworkError(ApiError):
    """Unable to reach the backend."""

    code = ErrorCode.NETWORK_ERROR
    retryable = True

    def __init__(self, message: str = "Network error: Unable to connect to server", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(ExplainerClientError):
    """Configuration is invalid."""

    code = ErrorCode.CONFIG_ERROR


# =============================================================================
# Error Mapping from HTTP Status Codes
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    endpoint: str | None = None,
    context: ErrorContext | None = None,
) -> ApiError:
    """
    Create an appropriate ApiError from an HTTP status code.

    Args:
        status: HTTP status code
        message: Error message from the backend
        endpoint: Endpoint path for context
        context: Additional error context

    Returns:
        Appropriate ApiError subclass
    """
    ctx = context or ErrorContext(endpoint=endpoint)

    error_map: dict[int, type[ApiError]] = {
        401: ApiAuthError,
        403: ApiAuthError,
        404: ApiNotFoundError,
        502: ApiUnavailableError,
        503: ApiUnavailableError,
        504: ApiUnavailableError,
    }

    error_class = error_map.get(status, ApiError)
    return error_class(message, http_status=status, context=ctx)


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "ExplainerClientError",
    # Auth errors
    "AuthError",
    "InvalidCredentialsError",
    "RefreshError",
    "SessionExpiredError",
    # Transport errors
    "TransportError",
    "PushConnectError",
    "PushAuthError",
    "PollError",
    "ProtocolError",
    # Validation errors
    "ValidationError",
    "InvalidJobIdError",
    "MissingContentError",
    # API errors
    "ApiError",
    "ApiAuthError",
    "ApiNotFoundError",
    "ApiUnavailableError",
    "NetworkError",
    # Config errors
    "ConfigError",
    # Utilities
    "error_from_status",
]
