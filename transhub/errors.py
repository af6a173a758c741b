"""Error taxonomy shared by the client, the core services and the HTTP surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class TransHubError(Exception):
    """Base class for every error raised by transhub."""

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigError(TransHubError):
    """Raised when settings or project configuration cannot be loaded."""


class InvalidInputError(TransHubError):
    """Client-supplied input failed validation; never retried."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InvalidFilenameError(InvalidInputError):
    code = "INVALID_FILENAME"


class AuthenticationRequired(TransHubError):
    """No usable credential was supplied ("log in")."""

    code = "UNAUTHORIZED"
    http_status = 401


class PermissionDenied(TransHubError):
    """The caller is authenticated but lacks permission."""

    code = "FORBIDDEN"
    http_status = 403


class NotFoundError(TransHubError):
    code = "NOT_FOUND"
    http_status = 404


class ConflictError(TransHubError):
    """A write lost an optimistic-concurrency race; reload and retry."""

    code = "CONFLICT"
    http_status = 409


class QuotaExceededError(TransHubError):
    """A rate limit or usage quota is exhausted until ``reset_at``."""

    code = "RATE_LIMIT_EXCEEDED"
    http_status = 429

    def __init__(
        self,
        message: str,
        *,
        reset_at: Optional[datetime] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details=details)
        self.reset_at = reset_at


class TranslationError(TransHubError):
    """The machine translation service failed or is not configured."""

    code = "TRANSLATION_ERROR"
    http_status = 502


class ErrorKind(str, Enum):
    """Closed classification of hosting platform failures."""

    TRANSIENT = "transient"
    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"
    QUOTA = "quota"


_KIND_HTTP_STATUS = {
    ErrorKind.TRANSIENT: 502,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID: 400,
    ErrorKind.QUOTA: 429,
}

_KIND_CODES = {
    ErrorKind.TRANSIENT: "SERVICE_UNAVAILABLE",
    ErrorKind.AUTHENTICATION: "UNAUTHORIZED",
    ErrorKind.FORBIDDEN: "FORBIDDEN",
    ErrorKind.NOT_FOUND: "NOT_FOUND",
    ErrorKind.CONFLICT: "CONFLICT",
    ErrorKind.INVALID: "VALIDATION_ERROR",
    ErrorKind.QUOTA: "RATE_LIMIT_EXCEEDED",
}

USER_HINTS: Dict[int, str] = {
    401: "Your session expired. Please log in again.",
    403: "API rate limit exceeded or access denied. Please try again in a few minutes.",
    404: "File or repository not found. Please sync your fork.",
    409: "This file was updated by someone else. Please refresh.",
    422: "Invalid file content. Please check your changes.",
    500: "GitHub is experiencing issues. Your work is saved locally.",
}
_DEFAULT_HINT = "An error occurred. Please try again."


def classify_status(status: int, *, rate_limited: bool = False) -> ErrorKind:
    """Map an HTTP status (0 for transport failures) onto an :class:`ErrorKind`."""
    if is_retryable_status(status):
        return ErrorKind.TRANSIENT
    if status == 429 or (status == 403 and rate_limited):
        return ErrorKind.QUOTA
    if status == 401:
        return ErrorKind.AUTHENTICATION
    if status == 403:
        return ErrorKind.FORBIDDEN
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 409:
        return ErrorKind.CONFLICT
    return ErrorKind.INVALID


def is_retryable_status(status: int) -> bool:
    """Transport failures (status 0) and the 5xx family are retried."""
    return status == 0 or 500 <= status < 600


@dataclass(frozen=True)
class ErrorBody:
    """Structured error payload returned by the hosting platform."""

    message: str
    documentation_url: Optional[str] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: object) -> "ErrorBody":
        if not isinstance(payload, Mapping):
            return cls(message="Unknown error")
        message = payload.get("message")
        doc_url = payload.get("documentation_url")
        raw_errors = payload.get("errors")
        errors: List[Dict[str, Any]] = []
        if isinstance(raw_errors, list):
            for item in raw_errors:
                if isinstance(item, Mapping):
                    errors.append(dict(item))
                else:
                    errors.append({"message": str(item)})
        return cls(
            message=str(message) if message else "Unknown error",
            documentation_url=str(doc_url) if doc_url else None,
            errors=errors,
        )

    def describe(self) -> str:
        """Return the message with any field-level validation details appended."""
        if not self.errors:
            return self.message
        parts = []
        for err in self.errors:
            if "field" in err or "resource" in err:
                parts.append(
                    f"{err.get('resource', 'unknown')}.{err.get('field', 'unknown')}: "
                    f"{err.get('code', 'unknown')}"
                )
            else:
                parts.append(str(err.get("message", err)))
        return f"{self.message} ({', '.join(parts)})"


class GitHubError(TransHubError):
    """A failed hosting platform call: status code plus structured body."""

    code = "GITHUB_ERROR"

    def __init__(
        self,
        status: int,
        body: ErrorBody,
        hint: Optional[str] = None,
        *,
        rate_limited: bool = False,
        reset_at: Optional[datetime] = None,
    ) -> None:
        self.status = status
        self.body = body
        self.kind = classify_status(status, rate_limited=rate_limited)
        self.reset_at = reset_at
        if hint is None:
            hint = USER_HINTS.get(status) or (
                USER_HINTS[500] if self.kind is ErrorKind.TRANSIENT else _DEFAULT_HINT
            )
        self.hint = hint
        super().__init__(hint, details={"status": status, "message": body.describe()})
        self.http_status = _KIND_HTTP_STATUS[self.kind]
        self.code = _KIND_CODES[self.kind]

    def __str__(self) -> str:
        return f"GitHub API error {self.status}: {self.body.describe()}"


__all__ = [
    "AuthenticationRequired",
    "ConfigError",
    "ConflictError",
    "ErrorBody",
    "ErrorKind",
    "GitHubError",
    "InvalidFilenameError",
    "InvalidInputError",
    "NotFoundError",
    "PermissionDenied",
    "QuotaExceededError",
    "TransHubError",
    "TranslationError",
    "USER_HINTS",
    "classify_status",
    "is_retryable_status",
]
