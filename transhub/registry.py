"""Project/language registry backed by JSON project files."""

from __future__ import annotations

import json
import re
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from .errors import ConfigError, NotFoundError
from .logging import get_logger
from .models import LanguageConfig, ProjectConfig

_REQUIRED_FIELDS = (
    "slug",
    "name",
    "githubRepo",
    "sourceBranch",
    "sourceFolder",
    "translationFolder",
    "tmpFolder",
    "filePattern",
)
_REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")
_LANGUAGE_STATUSES = ("active", "inactive", "archived")

logger = get_logger("registry")


class ProjectRegistry:
    """Loads project definitions from ``<projects_dir>/<slug>.json``."""

    def __init__(self, projects_dir: Path) -> None:
        self.projects_dir = Path(projects_dir)
        self._cache: Dict[str, ProjectConfig] = {}

    def slugs(self) -> List[str]:
        try:
            entries = sorted(self.projects_dir.iterdir())
        except OSError as exc:
            logger.error("Error reading project configs in %s: %s", self.projects_dir, exc)
            return []
        return [entry.stem for entry in entries if entry.suffix == ".json" and entry.is_file()]

    def get_project(self, slug: str) -> ProjectConfig:
        cached = self._cache.get(slug)
        if cached is not None:
            return cached
        config_path = self.projects_dir / f"{slug}.json"
        if not config_path.is_file():
            raise NotFoundError(f"Project configuration not found: {slug}")
        try:
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to load project config: {exc}") from exc
        project = parse_project_config(payload)
        self._cache[slug] = project
        return project

    def all_projects(self) -> List[ProjectConfig]:
        return [self.get_project(slug) for slug in self.slugs()]

    def get_language(self, slug: str, language_code: str) -> Tuple[ProjectConfig, LanguageConfig, str]:
        project = self.get_project(slug)
        language = project.languages.get(language_code)
        if language is None:
            raise NotFoundError(f"Language not found: {language_code} for project {slug}")
        return project, language, language_code


def parse_project_config(payload: Any) -> ProjectConfig:
    """Validate a decoded project JSON document and build a :class:`ProjectConfig`."""
    if not isinstance(payload, Mapping):
        raise ConfigError("Project config must be a JSON object")
    for name in _REQUIRED_FIELDS:
        if not payload.get(name):
            raise ConfigError(f"Missing required field in project config: {name}")
    raw_languages = payload.get("languages")
    if not isinstance(raw_languages, Mapping):
        raise ConfigError("Project config must have a languages object")
    github_repo = str(payload["githubRepo"])
    if not _REPO_PATTERN.match(github_repo):
        raise ConfigError(
            f"Invalid GitHub repo format: {github_repo}. Expected format: owner/repo"
        )

    languages: Dict[str, LanguageConfig] = {}
    for code, raw in raw_languages.items():
        if not isinstance(raw, Mapping) or not raw.get("name"):
            raise ConfigError(f"Language {code} must define a name")
        direction = raw.get("direction", "ltr")
        if direction not in ("ltr", "rtl"):
            raise ConfigError(f"Language {code} has invalid direction: {direction}")
        status = raw.get("status", "active")
        if status not in _LANGUAGE_STATUSES:
            raise ConfigError(f"Language {code} has invalid status: {status}")
        initialized = raw.get("initialized")
        languages[str(code)] = LanguageConfig(
            name=str(raw["name"]),
            direction=direction,
            status=status,
            initialized=str(initialized) if initialized else None,
        )

    priority = payload.get("priorityFiles") or []
    if not isinstance(priority, list):
        raise ConfigError("priorityFiles must be a list")

    return ProjectConfig(
        slug=str(payload["slug"]),
        name=str(payload["name"]),
        github_repo=github_repo,
        source_branch=str(payload["sourceBranch"]),
        source_folder=str(payload["sourceFolder"]),
        translation_folder=str(payload["translationFolder"]),
        tmp_folder=str(payload["tmpFolder"]),
        file_pattern=str(payload["filePattern"]),
        priority_files=tuple(str(item) for item in priority),
        languages=languages,
    )


# ----------------------------------------------------------------------
# Repository coordinates and paths


def parse_repo(github_repo: str) -> Tuple[str, str]:
    owner, _, repo = github_repo.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigError(f"Invalid GitHub repo format: {github_repo}")
    return owner, repo


def translation_branch_name(language_code: str) -> str:
    return f"translations/{language_code}"


def tmp_folder_path(project: ProjectConfig, language_code: str) -> str:
    return project.tmp_folder.replace("{language}", language_code)


def source_file_path(project: ProjectConfig, filename: str) -> str:
    return _join(project.source_folder, filename)


def translation_file_path(project: ProjectConfig, language_code: str, filename: str) -> str:
    return _join(project.translation_folder, language_code, filename)


def machine_translation_file_path(
    project: ProjectConfig, language_code: str, filename: str
) -> str:
    return _join(tmp_folder_path(project, language_code), filename)


def metadata_path(project: ProjectConfig, language_code: str) -> str:
    return _join(project.translation_folder, language_code, "translation.json")


def matches_file_pattern(project: ProjectConfig, filename: str) -> bool:
    return fnmatchcase(filename, project.file_pattern)


def is_priority_file(project: ProjectConfig, filename: str) -> bool:
    return filename in project.priority_files


def language_display_name(project: ProjectConfig, language_code: str) -> str:
    language = project.languages.get(language_code)
    return language.name if language else language_code


def active_languages(project: ProjectConfig) -> List[Tuple[str, LanguageConfig]]:
    return [
        (code, config) for code, config in project.languages.items() if config.status == "active"
    ]


def _join(*parts: str) -> str:
    cleaned = [part.strip("/") for part in parts if part and part.strip("/")]
    return "/".join(cleaned)


__all__ = [
    "ProjectRegistry",
    "active_languages",
    "is_priority_file",
    "language_display_name",
    "machine_translation_file_path",
    "matches_file_pattern",
    "metadata_path",
    "parse_project_config",
    "parse_repo",
    "source_file_path",
    "tmp_folder_path",
    "translation_branch_name",
    "translation_file_path",
]
