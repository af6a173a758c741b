"""Contributor-facing operations on a project + language translation branch.

Content is always written to the contributor's fork with their own token.
Canonical metadata lives upstream and is updated with the admin client; that
bookkeeping is best-effort, so a failed metadata write is logged and reported
through ``metadata_updated`` but never fails the save itself.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import GitHubError, InvalidFilenameError, NotFoundError
from .files import get_file_content_as_text, save_file_to_fork
from .forks import (
    DEFAULT_SETTLE_DELAY,
    DEFAULT_WEB_URL,
    check_fork_sync_status,
    create_pull_request,
    ensure_fork,
    get_existing_pr,
    get_fork_status,
    sync_fork_with_upstream,
)
from .github.client import GitHubClient
from .logging import get_logger
from .metadata import MetadataStore, contributor_stats, utc_timestamp
from .models import (
    FileMetadata,
    ForkStatus,
    LanguageConfig,
    ProjectConfig,
    SyncResult,
    SyncStatusResponse,
    TranslationStats,
)
from .registry import (
    is_priority_file,
    machine_translation_file_path,
    matches_file_pattern,
    parse_repo,
    source_file_path,
    translation_branch_name,
    translation_file_path,
)
from .validation import sanitize_filename

logger = get_logger("workflow")


@dataclass(frozen=True)
class DraftResult:
    commit_sha: str
    timestamp: str
    metadata_updated: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.commit_sha,
            "timestamp": self.timestamp,
            "metadataUpdated": self.metadata_updated,
        }


@dataclass(frozen=True)
class SubmitResult:
    pr_number: int
    pr_url: str
    existing: bool
    commit_sha: str
    metadata_updated: bool

    @property
    def message(self) -> str:
        if self.existing:
            return "Changes added to existing pull request"
        return "Pull request created successfully"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prNumber": self.pr_number,
            "prUrl": self.pr_url,
            "existing": self.existing,
            "sha": self.commit_sha,
            "metadataUpdated": self.metadata_updated,
        }


@dataclass(frozen=True)
class FileListItem:
    filename: str
    entry: FileMetadata
    is_priority: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "status": self.entry.status,
            "lastUpdated": self.entry.last_updated,
            "lastContributor": self.entry.last_contributor,
            "prNumber": self.entry.pr_number,
            "prUrl": self.entry.pr_url,
            "wordCount": self.entry.word_count,
            "isPriority": self.is_priority,
        }


@dataclass
class Dashboard:
    project: ProjectConfig
    language: LanguageConfig
    language_code: str
    files: List[FileListItem]
    stats: TranslationStats
    user_stats: Dict[str, Any]
    fork_status: ForkStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.project.to_dict(),
            "language": self.language.to_dict(),
            "languageCode": self.language_code,
            "files": [item.to_dict() for item in self.files],
            "stats": self.stats.to_dict(),
            "userStats": dict(self.user_stats),
            "forkStatus": self.fork_status.to_dict(),
        }


@dataclass
class FileView:
    """The three versions of one document plus its metadata entry."""

    filename: str
    english_content: str
    translation_content: str
    machine_content: str
    metadata: FileMetadata
    language_code: str
    language: LanguageConfig = field(default_factory=lambda: LanguageConfig(name=""))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "englishContent": self.english_content,
            "translationContent": self.translation_content,
            "machineContent": self.machine_content,
            "metadata": self.metadata.to_dict(),
            "language": {
                "code": self.language_code,
                "name": self.language.name,
                "direction": self.language.direction,
            },
        }


class ContributionWorkflow:
    """Operations one contributor performs on one project + language."""

    def __init__(
        self,
        user_client: GitHubClient,
        user: str,
        project: ProjectConfig,
        language_code: str,
        *,
        admin_client: GitHubClient | None = None,
        metadata_attempts: int = 3,
        web_url: str = DEFAULT_WEB_URL,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        language = project.languages.get(language_code)
        if language is None:
            raise NotFoundError(f"Language not found: {language_code} for project {project.slug}")
        self.client = user_client
        self.user = user
        self.project = project
        self.language = language
        self.language_code = language_code
        self.admin_client = admin_client
        self.metadata_attempts = metadata_attempts
        self.web_url = web_url.rstrip("/")
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.owner, self.repo = parse_repo(project.github_repo)
        self.branch = translation_branch_name(language_code)

    # ------------------------------------------------------------------
    # Writes

    def save_draft(self, filename: str, content: str) -> DraftResult:
        """Commit work in progress to the fork and mark the file ``in-progress``."""
        name = self._check_filename(filename)
        sha = self._save_to_fork(
            name, content, f"[Draft] Update {self.language_code} translation for {name}"
        )
        logger.info("Draft saved for %s by %s (%s)", name, self.user, sha[:7])

        updated = self._bookkeep(
            name,
            lambda store: store.mark_file_in_progress(
                name, self.user, sha, attempts=self.metadata_attempts
            ),
        )
        return DraftResult(commit_sha=sha, timestamp=utc_timestamp(), metadata_updated=updated)

    def submit(self, filename: str, content: str, message: str | None = None) -> SubmitResult:
        """Commit the final text, open (or reuse) a pull request, mark ``complete``."""
        name = self._check_filename(filename)
        sha = self._save_to_fork(
            name, content, message or f"[{self.language_code}] Complete translation for {name}"
        )

        pr = get_existing_pr(self.client, self.owner, self.repo, self.user, self.branch)
        existing = pr is not None
        if pr is None:
            pr = create_pull_request(
                self.client,
                self.user,
                self.owner,
                self.repo,
                self.branch,
                f"[{self.language_code}] {self.language.name} translation for {name}",
                self._pr_body(name, message),
            )
            logger.info("Created pull request #%d for %s", pr.number, name)
        else:
            logger.info("Updated existing pull request #%d for %s", pr.number, name)

        updated = self._bookkeep(
            name,
            lambda store: store.mark_file_complete(
                name, self.user, sha, pr.number, pr.url, attempts=self.metadata_attempts
            ),
        )
        return SubmitResult(
            pr_number=pr.number,
            pr_url=pr.url,
            existing=existing,
            commit_sha=sha,
            metadata_updated=updated,
        )

    # ------------------------------------------------------------------
    # Reads

    def dashboard(self) -> Dashboard:
        self._ensure_fork()
        metadata = MetadataStore(self.client, self.project, self.language_code, self.branch).load()
        if metadata is None:
            raise NotFoundError(
                "Translation metadata not found - This language has not been initialized yet"
            )

        files = [
            FileListItem(filename=name, entry=entry, is_priority=is_priority_file(self.project, name))
            for name, entry in metadata.files.items()
        ]
        fork_status = get_fork_status(
            self.client, self.user, self.owner, self.repo, self.language_code, web_url=self.web_url
        )
        user_stats = contributor_stats(metadata.files.items(), self.user)
        logger.debug(
            "Dashboard for %s/%s: %d files, %d completed by %s",
            self.project.slug,
            self.language_code,
            len(files),
            user_stats["completedFiles"],
            self.user,
        )
        return Dashboard(
            project=self.project,
            language=self.language,
            language_code=self.language_code,
            files=files,
            stats=metadata.stats,
            user_stats=user_stats,
            fork_status=fork_status,
        )

    def file_view(self, filename: str) -> FileView:
        name = sanitize_filename(filename)
        self._ensure_fork()

        english = get_file_content_as_text(
            self.client,
            self.owner,
            self.repo,
            source_file_path(self.project, name),
            self.project.source_branch,
        )
        translation = self._optional_text(
            self.user, translation_file_path(self.project, self.language_code, name)
        )
        machine = self._optional_text(
            self.owner, machine_translation_file_path(self.project, self.language_code, name)
        )
        metadata = MetadataStore(self.client, self.project, self.language_code, self.branch).load()
        entry = metadata.files.get(name) if metadata else None

        return FileView(
            filename=name,
            english_content=english,
            translation_content=translation,
            machine_content=machine,
            metadata=entry or FileMetadata(),
            language_code=self.language_code,
            language=self.language,
        )

    def sync_status(self) -> SyncStatusResponse:
        return check_fork_sync_status(self.client, self.user, self.owner, self.repo, self.branch)

    def sync(self) -> SyncResult:
        result = sync_fork_with_upstream(
            self.client, self.user, self.repo, self.branch, web_url=self.web_url
        )
        if result.success:
            logger.info("Fork of %s synced for %s", self.repo, self.user)
        return result

    # ------------------------------------------------------------------
    # Helpers

    def _check_filename(self, filename: str) -> str:
        name = sanitize_filename(filename)
        if not matches_file_pattern(self.project, name):
            raise InvalidFilenameError(
                f"Invalid filename: {name} does not match {self.project.file_pattern}"
            )
        return name

    def _save_to_fork(self, name: str, content: str, message: str) -> str:
        return save_file_to_fork(
            self.client,
            self.user,
            self.repo,
            translation_file_path(self.project, self.language_code, name),
            content,
            message,
            self.branch,
        )

    def _ensure_fork(self) -> None:
        ensure_fork(
            self.client,
            self.user,
            self.owner,
            self.repo,
            self.language_code,
            settle_delay=self.settle_delay,
            sleep=self.sleep,
            web_url=self.web_url,
        )

    def _optional_text(self, owner: str, path: str) -> str:
        try:
            return get_file_content_as_text(self.client, owner, self.repo, path, self.branch)
        except NotFoundError:
            return ""
        except GitHubError as exc:
            if exc.status == 404:
                return ""
            raise

    def _bookkeep(self, name: str, apply: Callable[[MetadataStore], Any]) -> bool:
        if self.admin_client is None:
            logger.warning("Admin token not configured, skipping metadata update for %s", name)
            return False
        store = MetadataStore(self.admin_client, self.project, self.language_code, self.branch)
        try:
            apply(store)
        except Exception:
            logger.error("Failed to update metadata for %s", name, exc_info=True)
            return False
        return True

    def _pr_body(self, name: str, message: Optional[str]) -> str:
        lines = [
            "## Summary",
            f"- Translated {name} to {self.language.name}",
            f"- Updated by: @{self.user}",
        ]
        if message:
            lines.extend(["", "## Notes", message])
        return "\n".join(lines) + "\n"


__all__ = [
    "ContributionWorkflow",
    "Dashboard",
    "DraftResult",
    "FileListItem",
    "FileView",
    "SubmitResult",
]
