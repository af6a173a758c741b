"""Metadata store for the per-language translation.json document.

The document lives inside the translation branch and is only ever rewritten as
a whole. ``stats`` is always recomputed from ``files`` and never edited on its
own. Writes go through :meth:`MetadataStore.update` which retries the full
load/modify/save cycle when the document's sha changed underneath it.
"""

from __future__ import annotations

import json
import re
from dataclasses import fields, replace
from datetime import UTC, datetime, timedelta
from fractions import Fraction
from math import floor
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .errors import ConflictError, ErrorKind, GitHubError, NotFoundError, TransHubError
from .files import get_file_sha
from .github.client import GitHubClient, decode_file_content
from .logging import get_logger
from .models import (
    COMPLETE,
    FILE_STATUSES,
    IN_PROGRESS,
    FileMetadata,
    ProjectConfig,
    TextDirection,
    TranslationMeta,
    TranslationMetadata,
    TranslationStats,
)
from .registry import metadata_path, parse_repo

logger = get_logger("metadata")

_AUTO_SHA = object()
_FILE_FIELDS = frozenset(f.name for f in fields(FileMetadata))
_FENCED_CODE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`]+`")
_MARKDOWN_SYNTAX = re.compile(r"[#*_\[\]()]")


def _now_ms() -> datetime:
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_timestamp() -> str:
    """Return the current time as an ISO-8601 string with millisecond precision."""
    return _format_timestamp(_now_ms())


def next_timestamp(*previous: Optional[str]) -> str:
    """Return a timestamp strictly later than every non-empty value in ``previous``."""
    now = _now_ms()
    for value in previous:
        parsed = _parse_timestamp(value)
        if parsed is not None and parsed >= now:
            now = parsed + timedelta(milliseconds=1)
    return _format_timestamp(now)


def create_initial_metadata(
    project_slug: str,
    language_code: str,
    language_name: str,
    direction: TextDirection,
    coordinator: str,
    filenames: Sequence[str],
    source_commit_sha: str,
    *,
    service_name: str = "DeepL",
    word_counts: Mapping[str, int] | None = None,
) -> TranslationMetadata:
    """Build the document written at the end of language initialization."""
    now = utc_timestamp()
    counts = word_counts or {}
    files = {
        name: FileMetadata(
            word_count=int(counts.get(name, 0)),
            machine_translated=True,
            human_reviewed=False,
        )
        for name in filenames
    }
    return TranslationMetadata(
        language=language_code,
        language_name=language_name,
        direction=direction,
        project=project_slug,
        coordinator=coordinator,
        initialized=now,
        last_updated=now,
        files=files,
        stats=calculate_stats(files),
        meta=TranslationMeta(
            machine_translation_service=service_name,
            machine_translation_date=now,
            source_commit_sha=source_commit_sha,
            notes="Initialized with machine translation",
        ),
    )


def calculate_stats(files: Mapping[str, FileMetadata]) -> TranslationStats:
    """Aggregate per-file entries into :class:`TranslationStats`."""
    entries = list(files.values())
    total = len(entries)
    completed = sum(1 for entry in entries if entry.status == COMPLETE)
    in_progress = sum(1 for entry in entries if entry.status == IN_PROGRESS)
    not_started = total - completed - in_progress

    percent = 0
    if total > 0:
        percent = floor(Fraction(completed * 100, total) + Fraction(1, 2))

    contributors: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        contributor = entry.last_contributor
        if contributor and contributor not in seen:
            seen.add(contributor)
            contributors.append(contributor)

    return TranslationStats(
        total_files=total,
        completed=completed,
        in_progress=in_progress,
        not_started=not_started,
        percent_complete=int(percent),
        total_words=sum(entry.word_count for entry in entries),
        translated_words=sum(entry.word_count for entry in entries if entry.status == COMPLETE),
        contributors=contributors,
    )


def update_file(
    metadata: TranslationMetadata, filename: str, updates: Mapping[str, Any]
) -> TranslationMetadata:
    """Return a copy of ``metadata`` with ``updates`` merged into one file entry.

    A missing entry is synthesised with ``not-started`` defaults first. Both the
    entry's and the document's ``last_updated`` are stamped and ``stats`` is
    recomputed from the complete file mapping.
    """
    unknown = set(updates) - _FILE_FIELDS
    if unknown:
        raise ValueError(f"Unknown file metadata fields: {', '.join(sorted(unknown))}")
    status = updates.get("status")
    if status is not None and status not in FILE_STATUSES:
        raise ValueError(f"Invalid file status: {status}")

    current = metadata.files.get(filename) or FileMetadata()
    stamp = next_timestamp(current.last_updated, metadata.last_updated)
    merged = replace(current, **{**dict(updates), "last_updated": stamp})

    files: Dict[str, FileMetadata] = dict(metadata.files)
    files[filename] = merged
    return replace(
        metadata,
        files=files,
        stats=calculate_stats(files),
        last_updated=stamp,
    )


def count_words(content: str) -> int:
    """Count prose words in markdown, ignoring code and markdown punctuation."""
    text = _FENCED_CODE.sub("", content)
    text = _INLINE_CODE.sub("", text)
    text = _MARKDOWN_SYNTAX.sub(" ", text)
    return len(text.split())


def serialize_metadata(metadata: TranslationMetadata) -> str:
    return json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False)


def parse_metadata(text: str) -> TranslationMetadata:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TransHubError(f"translation.json is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise TransHubError("translation.json must contain a JSON object")
    return TranslationMetadata.from_dict(payload)


class MetadataStore:
    """Reads and writes translation.json for one project + language on a branch."""

    def __init__(
        self,
        client: GitHubClient,
        project: ProjectConfig,
        language_code: str,
        branch: str,
        *,
        owner: str | None = None,
        repo: str | None = None,
    ) -> None:
        upstream_owner, upstream_repo = parse_repo(project.github_repo)
        self.client = client
        self.project = project
        self.language_code = language_code
        self.branch = branch
        self.owner = owner or upstream_owner
        self.repo = repo or upstream_repo
        self.path = metadata_path(project, language_code)

    def load(self) -> Optional[TranslationMetadata]:
        """Return the document, or None when the language is not initialized yet."""
        metadata, _ = self.load_with_sha()
        return metadata

    def load_with_sha(self) -> Tuple[Optional[TranslationMetadata], Optional[str]]:
        try:
            response = self.client.get_file_content(self.owner, self.repo, self.path, self.branch)
        except GitHubError as exc:
            if exc.status == 404:
                return None, None
            raise
        text = decode_file_content(response.data)
        if text is None:
            return None, None
        sha = response.data.get("sha") if isinstance(response.data, dict) else None
        return parse_metadata(text), sha

    def save(
        self,
        metadata: TranslationMetadata,
        commit_message: str,
        *,
        expected_sha: Any = _AUTO_SHA,
    ) -> str:
        """Write the full document as one commit and return the commit sha.

        Without ``expected_sha`` the current sha is looked up first, so the
        write replaces whatever is there. Passing the sha returned by
        :meth:`load_with_sha` makes the write fail with a 409 if another
        writer got in between.
        """
        if expected_sha is _AUTO_SHA:
            sha = get_file_sha(self.client, self.owner, self.repo, self.path, self.branch)
        else:
            sha = expected_sha
        response = self.client.create_or_update_file(
            self.owner,
            self.repo,
            self.path,
            serialize_metadata(metadata),
            commit_message,
            self.branch,
            sha,
        )
        data = response.data if isinstance(response.data, dict) else {}
        commit = data.get("commit") if isinstance(data.get("commit"), dict) else {}
        return str(commit.get("sha") or "")

    def update(
        self,
        filename: str,
        updates: Mapping[str, Any],
        commit_message: str,
        *,
        attempts: int = 3,
    ) -> TranslationMetadata:
        """Apply ``updates`` to one file entry with compare-and-swap on the document."""
        attempts = max(1, attempts)
        for attempt in range(1, attempts + 1):
            metadata, sha = self.load_with_sha()
            if metadata is None:
                raise NotFoundError("Translation metadata not found")
            updated = update_file(metadata, filename, updates)
            try:
                self.save(updated, commit_message, expected_sha=sha)
            except GitHubError as exc:
                if exc.kind is not ErrorKind.CONFLICT:
                    raise
                if attempt < attempts:
                    logger.info(
                        "translation.json changed while updating %s (attempt %d/%d); reloading",
                        filename,
                        attempt,
                        attempts,
                    )
                    continue
                raise ConflictError(
                    f"translation.json kept changing while updating {filename}; gave up after {attempts} attempts"
                ) from exc
            return updated
        raise ConflictError("translation.json update did not complete")  # pragma: no cover

    def mark_file_in_progress(
        self, filename: str, contributor: str, commit_sha: str, *, attempts: int = 3
    ) -> TranslationMetadata:
        return self.update(
            filename,
            {
                "status": IN_PROGRESS,
                "last_contributor": contributor,
                "last_commit_sha": commit_sha,
            },
            f"[{self.language_code}] Mark {filename} as in progress",
            attempts=attempts,
        )

    def mark_file_complete(
        self,
        filename: str,
        contributor: str,
        commit_sha: str,
        pr_number: int,
        pr_url: str,
        *,
        attempts: int = 3,
    ) -> TranslationMetadata:
        return self.update(
            filename,
            {
                "status": COMPLETE,
                "last_contributor": contributor,
                "last_commit_sha": commit_sha,
                "pr_number": pr_number,
                "pr_url": pr_url,
                "human_reviewed": True,
            },
            f"[{self.language_code}] Mark {filename} as complete (PR #{pr_number})",
            attempts=attempts,
        )


def contributor_stats(
    files: Iterable[Tuple[str, FileMetadata]], username: str
) -> Dict[str, Any]:
    """Completed file count and latest update for one contributor."""
    completed = [
        entry
        for _, entry in files
        if entry.last_contributor == username and entry.status == COMPLETE
    ]
    stamps = [entry.last_updated for entry in completed if entry.last_updated]
    return {
        "completedFiles": len(completed),
        "lastSession": max(stamps) if stamps else None,
    }


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


__all__ = [
    "MetadataStore",
    "calculate_stats",
    "contributor_stats",
    "count_words",
    "create_initial_metadata",
    "next_timestamp",
    "parse_metadata",
    "serialize_metadata",
    "update_file",
    "utc_timestamp",
]
