"""Core data models shared across transhub components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

FileStatus = Literal["not-started", "in-progress", "complete"]
SyncState = Literal["behind", "ahead", "diverged", "identical"]
TextDirection = Literal["ltr", "rtl"]
LanguageStatus = Literal["active", "inactive", "archived"]
ProgressState = Literal["pending", "translating", "complete", "error"]

NOT_STARTED: FileStatus = "not-started"
IN_PROGRESS: FileStatus = "in-progress"
COMPLETE: FileStatus = "complete"
FILE_STATUSES: Tuple[str, ...] = (NOT_STARTED, IN_PROGRESS, COMPLETE)

METADATA_VERSION = "1.0"


@dataclass(frozen=True)
class LanguageConfig:
    """Per-language settings from the project registry."""

    name: str
    direction: TextDirection = "ltr"
    status: LanguageStatus = "active"
    initialized: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "direction": self.direction,
            "status": self.status,
            "initialized": self.initialized,
        }


@dataclass(frozen=True)
class ProjectConfig:
    """Repository coordinates and folder layout for a translatable project."""

    slug: str
    name: str
    github_repo: str
    source_branch: str
    source_folder: str
    translation_folder: str
    tmp_folder: str
    file_pattern: str
    priority_files: Tuple[str, ...] = ()
    languages: Mapping[str, LanguageConfig] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "githubRepo": self.github_repo,
            "sourceBranch": self.source_branch,
            "sourceFolder": self.source_folder,
            "translationFolder": self.translation_folder,
            "tmpFolder": self.tmp_folder,
            "filePattern": self.file_pattern,
            "priorityFiles": list(self.priority_files),
            "languages": {code: lang.to_dict() for code, lang in self.languages.items()},
        }


@dataclass
class FileMetadata:
    """Per-file translation state stored inside translation.json."""

    status: FileStatus = NOT_STARTED
    last_updated: Optional[str] = None
    last_contributor: Optional[str] = None
    last_commit_sha: Optional[str] = None
    pr_number: Optional[int] = None
    pr_url: Optional[str] = None
    word_count: int = 0
    machine_translated: bool = False
    human_reviewed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "lastUpdated": self.last_updated,
            "lastContributor": self.last_contributor,
            "lastCommitSha": self.last_commit_sha,
            "prNumber": self.pr_number,
            "prUrl": self.pr_url,
            "wordCount": self.word_count,
            "machineTranslated": self.machine_translated,
            "humanReviewed": self.human_reviewed,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FileMetadata":
        status = payload.get("status")
        return cls(
            status=status if status in FILE_STATUSES else NOT_STARTED,
            last_updated=_opt_str(payload.get("lastUpdated")),
            last_contributor=_opt_str(payload.get("lastContributor")),
            last_commit_sha=_opt_str(payload.get("lastCommitSha")),
            pr_number=_opt_int(payload.get("prNumber")),
            pr_url=_opt_str(payload.get("prUrl")),
            word_count=_opt_int(payload.get("wordCount")) or 0,
            machine_translated=bool(payload.get("machineTranslated", False)),
            human_reviewed=bool(payload.get("humanReviewed", False)),
        )


@dataclass
class TranslationStats:
    """Aggregate view derived from the per-file entries."""

    total_files: int = 0
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    percent_complete: int = 0
    total_words: int = 0
    translated_words: int = 0
    contributors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "notStarted": self.not_started,
            "percentComplete": self.percent_complete,
            "totalWords": self.total_words,
            "translatedWords": self.translated_words,
            "contributors": list(self.contributors),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TranslationStats":
        contributors = payload.get("contributors")
        return cls(
            total_files=_opt_int(payload.get("totalFiles")) or 0,
            completed=_opt_int(payload.get("completed")) or 0,
            in_progress=_opt_int(payload.get("inProgress")) or 0,
            not_started=_opt_int(payload.get("notStarted")) or 0,
            percent_complete=_opt_int(payload.get("percentComplete")) or 0,
            total_words=_opt_int(payload.get("totalWords")) or 0,
            translated_words=_opt_int(payload.get("translatedWords")) or 0,
            contributors=[str(c) for c in contributors] if isinstance(contributors, list) else [],
        )


@dataclass
class TranslationMeta:
    """Provenance of the machine translation seeding the branch."""

    machine_translation_service: str = ""
    machine_translation_date: str = ""
    source_commit_sha: str = ""
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machineTranslationService": self.machine_translation_service,
            "machineTranslationDate": self.machine_translation_date,
            "sourceCommitSha": self.source_commit_sha,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TranslationMeta":
        return cls(
            machine_translation_service=str(payload.get("machineTranslationService") or ""),
            machine_translation_date=str(payload.get("machineTranslationDate") or ""),
            source_commit_sha=str(payload.get("sourceCommitSha") or ""),
            notes=str(payload.get("notes") or ""),
        )


@dataclass
class TranslationMetadata:
    """The translation.json document for one project + language."""

    language: str
    language_name: str
    direction: TextDirection
    project: str
    coordinator: str
    initialized: str
    last_updated: str
    files: Dict[str, FileMetadata] = field(default_factory=dict)
    stats: TranslationStats = field(default_factory=TranslationStats)
    meta: TranslationMeta = field(default_factory=TranslationMeta)
    version: str = METADATA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "language": self.language,
            "languageName": self.language_name,
            "direction": self.direction,
            "project": self.project,
            "coordinator": self.coordinator,
            "initialized": self.initialized,
            "lastUpdated": self.last_updated,
            "files": {name: entry.to_dict() for name, entry in self.files.items()},
            "stats": self.stats.to_dict(),
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TranslationMetadata":
        raw_files = payload.get("files")
        files: Dict[str, FileMetadata] = {}
        if isinstance(raw_files, Mapping):
            for name, entry in raw_files.items():
                if isinstance(entry, Mapping):
                    files[str(name)] = FileMetadata.from_dict(entry)
        stats = payload.get("stats")
        meta = payload.get("meta")
        direction = payload.get("direction")
        return cls(
            version=str(payload.get("version") or METADATA_VERSION),
            language=str(payload.get("language") or ""),
            language_name=str(payload.get("languageName") or ""),
            direction="rtl" if direction == "rtl" else "ltr",
            project=str(payload.get("project") or ""),
            coordinator=str(payload.get("coordinator") or ""),
            initialized=str(payload.get("initialized") or ""),
            last_updated=str(payload.get("lastUpdated") or ""),
            files=files,
            stats=TranslationStats.from_dict(stats) if isinstance(stats, Mapping) else TranslationStats(),
            meta=TranslationMeta.from_dict(meta) if isinstance(meta, Mapping) else TranslationMeta(),
        )


@dataclass(frozen=True)
class CommitSummary:
    sha: str
    message: str
    author: str
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return {"sha": self.sha, "message": self.message, "author": self.author, "date": self.date}


@dataclass(frozen=True)
class SyncStatusResponse:
    """Divergence between a fork's translation branch and upstream."""

    status: SyncState
    behind_by: int
    ahead_by: int
    commits: List[CommitSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "behindBy": self.behind_by,
            "aheadBy": self.ahead_by,
            "commits": [commit.to_dict() for commit in self.commits],
        }


@dataclass(frozen=True)
class ForkInfo:
    exists: bool
    has_branch: bool
    owner: str
    repo: str
    branch_name: str
    fork_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exists": self.exists,
            "hasBranch": self.has_branch,
            "owner": self.owner,
            "repo": self.repo,
            "branchName": self.branch_name,
            "forkUrl": self.fork_url,
        }


@dataclass(frozen=True)
class SyncResult:
    """Outcome of merging upstream into a fork branch."""

    success: bool
    conflicts: bool
    conflict_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "conflicts": self.conflicts,
            "conflictUrl": self.conflict_url,
        }


@dataclass(frozen=True)
class ForkStatus:
    has_fork: bool
    sync_status: Optional[SyncStatusResponse]
    needs_sync: bool
    fork_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasFork": self.has_fork,
            "syncStatus": self.sync_status.to_dict() if self.sync_status else None,
            "needsSync": self.needs_sync,
            "forkUrl": self.fork_url,
        }


@dataclass(frozen=True)
class PullRequestRef:
    number: int
    url: str


@dataclass(frozen=True)
class InitProgress:
    """Single per-file progress event emitted during initialization."""

    filename: str
    status: ProgressState
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"filename": self.filename, "status": self.status}
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class InitResult:
    """Outcome of a language initialization run."""

    success: bool
    files_processed: int
    errors: List[str]
    branch_url: str
    source_commit_sha: Optional[str] = None


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _opt_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None
