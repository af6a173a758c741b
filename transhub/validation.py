"""Input validation: filename/path sanitisation and request payload models."""

from __future__ import annotations

import posixpath
import re
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidFilenameError, InvalidInputError

MAX_CONTENT_LENGTH = 10_000_000
LANGUAGE_CODE_PATTERN = r"^[a-z]{2}-[A-Z]{2}$"
PROJECT_SLUG_PATTERN = r"^[a-z0-9-]{1,100}$"
FILENAME_PATTERN = r"^[A-Za-z0-9_.-]+$"

_LANGUAGE_CODE = re.compile(LANGUAGE_CODE_PATTERN)
_PROJECT_SLUG = re.compile(PROJECT_SLUG_PATTERN)


def sanitize_filename(filename: str) -> str:
    """Return ``filename`` unchanged if it is a bare file name, else raise.

    Anything carrying directory components is rejected outright rather than
    reduced to its last component.
    """
    normalized = posixpath.basename(filename.replace("\\", "/"))
    if normalized != filename:
        raise InvalidFilenameError("Invalid filename: path traversal detected")
    if ".." in normalized or "/" in normalized or "\\" in normalized:
        raise InvalidFilenameError("Invalid filename: contains prohibited characters")
    if not normalized.strip():
        raise InvalidFilenameError("Invalid filename: cannot be empty")
    return normalized


def sanitize_path(path: str, allowed_bases: Iterable[str]) -> str:
    """Normalise ``path`` and require it to stay inside one of ``allowed_bases``."""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    for base in allowed_bases:
        normalized_base = posixpath.normpath(base.replace("\\", "/"))
        if normalized == normalized_base or normalized.startswith(normalized_base.rstrip("/") + "/"):
            return normalized
    raise InvalidInputError("Invalid path: outside allowed directories")


def validate_language_code(code: str) -> str:
    if not _LANGUAGE_CODE.match(code):
        raise InvalidInputError("Invalid language code format (expected: xx-XX)")
    return code


def validate_project_slug(slug: str) -> str:
    if not _PROJECT_SLUG.match(slug):
        raise InvalidInputError(
            "Invalid project slug (only lowercase letters, numbers, and hyphens allowed)"
        )
    return slug


# ----------------------------------------------------------------------
# Request payloads


class SaveDraftRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filename: str = Field(min_length=1, max_length=255, pattern=FILENAME_PATTERN)
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)


class SubmitRequest(SaveDraftRequest):
    message: Optional[str] = Field(default=None, min_length=3, max_length=500)


class InitLanguageRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_commit: Optional[str] = Field(
        default=None, alias="sourceCommit", pattern=r"^[0-9a-fA-F]{7,40}$"
    )
    force: bool = False


__all__ = [
    "FILENAME_PATTERN",
    "InitLanguageRequest",
    "LANGUAGE_CODE_PATTERN",
    "MAX_CONTENT_LENGTH",
    "PROJECT_SLUG_PATTERN",
    "SaveDraftRequest",
    "SubmitRequest",
    "sanitize_filename",
    "sanitize_path",
    "validate_language_code",
    "validate_project_slug",
]
