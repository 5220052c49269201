"""
Structured Logging for explainer-client.

This module provides:
- Structured JSON logging with consistent fields
- Job and transport correlation through a context stack
- State transition and error records
- Log level filtering and formatting options
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT_LOGGER = "explainer_client"

# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    trace_id: str | None = None
    job_id: str | None = None
    transport: str | None = None
    operation: str | None = None
    user_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            trace_id=kwargs.get("trace_id", self.trace_id),
            job_id=kwargs.get("job_id", self.job_id),
            transport=kwargs.get("transport", self.transport),
            operation=kwargs.get("operation", self.operation),
            user_id=kwargs.get("user_id", self.user_id),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class TransitionLog:
    """Log record for a job state change."""

    job_id: str
    previous: str
    current: str
    transport: str | None = None
    progress_fraction: float | None = None
    stage_label: str | None = None

    timestamp: str = field(default_factory=lambda: _utcnow().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("explainer_client")

        with logger.job_context("abc123", transport="push"):
            logger.info("Subscribed")
        ```
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER,
        level: str | None = None,
        json_output: bool = False,
        redact_tokens: bool = True,
    ):
        self.name = name
        self.json_output = json_output
        self.redact_tokens = redact_tokens

        # Module loggers inherit level and handlers from the package logger.
        is_child = name.startswith(f"{ROOT_LOGGER}.")
        self._logger = logging.getLogger(name)
        if level is not None or not is_child:
            self._logger.setLevel(getattr(logging, (level or "INFO").upper()))

        self._context: LogContext = LogContext()

        if not is_child and not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return self._context

    def set_context(self, **kwargs) -> None:
        """Update the current log context."""
        self._context = self._context.with_update(**kwargs)

    @contextmanager
    def trace_context(
        self,
        trace_id: str | None = None,
        **kwargs,
    ) -> Iterator[str]:
        """
        Context manager for trace correlation.

        Args:
            trace_id: Trace ID (auto-generated if not provided)
            **kwargs: Additional context fields

        Yields:
            The trace ID
        """
        trace_id = trace_id or generate_trace_id()
        old_context = self._context

        try:
            self._context = old_context.with_update(trace_id=trace_id, **kwargs)
            yield trace_id
        finally:
            self._context = old_context

    @contextmanager
    def job_context(self, job_id: str, transport: str | None = None) -> Iterator[str]:
        """Context manager scoping log records to one job."""
        with self.trace_context(job_id=job_id, transport=transport) as trace_id:
            yield trace_id

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        record_data = {
            "message": message,
            **self._context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}".rstrip())

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    def log_transition(self, transition: TransitionLog) -> None:
        """Log a job status change."""
        self._log(
            logging.INFO,
            f"Job {transition.job_id}: {transition.previous} -> {transition.current}",
            event_type="transition",
            data=transition.to_dict(),
        )

    def log_token(self, message: str, token: str | None, **kwargs) -> None:
        """Log a message that references a bearer token."""
        shown = redact_token(token) if self.redact_tokens else token
        self._log(logging.DEBUG, message, event_type="token", data={"token": shown, **kwargs})

    def log_error(
        self,
        error: Exception,
        message: str | None = None,
        level: int = logging.ERROR,
        **kwargs,
    ) -> None:
        """Log an error with context."""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **kwargs,
        }

        if hasattr(error, "code") and hasattr(error.code, "value"):
            error_data["error_code"] = str(error.code.value)
        if hasattr(error, "retryable"):
            error_data["retryable"] = error.retryable
        if hasattr(error, "context") and hasattr(error.context, "to_dict"):
            error_data["error_context"] = error.context.to_dict()

        self._log(
            level,
            message or f"Error: {error}",
            event_type="error",
            data=error_data,
        )


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _utcnow().strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        line = f"{color}{record.levelname:8}{reset} {record.getMessage()}"
        return f"{timestamp} {line}" if self.include_timestamp else line


# =============================================================================
# Utilities
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return f"trace_{uuid.uuid4().hex[:16]}"


def redact_token(token: str | None) -> str:
    """Redact a bearer or refresh token for safe logging."""
    if not token:
        return "<not set>"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


# =============================================================================
# Global Logger
# =============================================================================

_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str = ROOT_LOGGER) -> StructuredLogger:
    """Get or create a structured logger."""
    if name not in _loggers:
        if name == ROOT_LOGGER:
            _loggers[name] = StructuredLogger(name)
        else:
            root = get_logger(ROOT_LOGGER)
            _loggers[name] = StructuredLogger(
                name, json_output=root.json_output, redact_tokens=root.redact_tokens
            )
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    name: str = ROOT_LOGGER,
    log_file: Path | None = None,
    include_timestamp: bool = True,
    **kwargs: Any,
) -> StructuredLogger:
    """Configure the package logger, optionally mirroring records to a file."""
    logger = StructuredLogger(name, level=level, json_output=json_output, **kwargs)
    formatter: logging.Formatter = JSONFormatter() if json_output else TextFormatter(include_timestamp)
    for handler in logger._logger.handlers:
        handler.setFormatter(formatter)
    if log_file is not None:
        path = Path(log_file)
        already = any(
            isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path.resolve()
            for h in logger._logger.handlers
        )
        if not already:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger._logger.addHandler(file_handler)
    for other_name, other in _loggers.items():
        if other_name.startswith(f"{name}."):
            other.json_output = logger.json_output
            other.redact_tokens = logger.redact_tokens
    _loggers[name] = logger
    return logger


__all__ = [
    "ROOT_LOGGER",
    "LogContext",
    "TransitionLog",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "generate_trace_id",
    "redact_token",
    "get_logger",
    "configure_logging",
]
