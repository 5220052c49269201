"""
Request preconditions.

Every check here runs synchronously before any network call and raises a
``ValidationError`` subclass on failure.
"""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from .errors import ErrorContext, InvalidJobIdError, MissingContentError, ValidationError

JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


def validate_job_id(job_id: object) -> str:
    if not isinstance(job_id, str) or not job_id:
        raise InvalidJobIdError()
    if not JOB_ID_PATTERN.match(job_id):
        raise InvalidJobIdError(
            f"Malformed job id: {job_id!r}",
            context=ErrorContext(job_id=job_id[:128]),
        )
    return job_id


def validate_source_url(url: object) -> str:
    if not isinstance(url, str) or not url.strip():
        raise MissingContentError("URL is required and must be a string")
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid URL format")
    return url.strip()


def validate_text(text: object) -> str:
    if not isinstance(text, str) or not text.strip():
        raise MissingContentError("Text content is required")
    return text


def validate_upload(file: Path | str | bytes, filename: str | None = None) -> tuple[Path | bytes, str]:
    """
    Check an upload source and resolve the filename sent in the multipart body.

    Returns:
        (source, filename) where source is a Path to read or raw bytes
    """
    if isinstance(file, (bytes, bytearray)):
        if not file:
            raise MissingContentError("File is empty")
        if not filename:
            raise MissingContentError("filename is required when uploading raw bytes")
        return bytes(file), filename

    if isinstance(file, (str, Path)) and str(file):
        path = Path(file)
        if not path.is_file():
            raise MissingContentError(f"File not found: {path}")
        return path, filename or path.name

    raise MissingContentError("File is required")


def validate_login(email: object, password: object) -> None:
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email address is required")
    if not isinstance(password, str) or not password:
        raise ValidationError("Password is required")


def validate_registration(email: object, password: object, name: object) -> None:
    validate_login(email, password)
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required")


__all__ = [
    "JOB_ID_PATTERN",
    "validate_job_id",
    "validate_source_url",
    "validate_text",
    "validate_upload",
    "validate_login",
    "validate_registration",
]
