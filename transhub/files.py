"""Helpers for reading and writing repository files through the GitHub client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import GitHubError, InvalidInputError, NotFoundError
from .github.client import GitHubClient, decode_file_content
from .models import ProjectConfig
from .registry import is_priority_file, matches_file_pattern


@dataclass(frozen=True)
class SourceFile:
    name: str
    path: str


def get_file_content_as_text(
    client: GitHubClient, owner: str, repo: str, path: str, ref: str | None = None
) -> str:
    """Return the decoded text of ``path``; raises :class:`NotFoundError` for non-files."""
    response = client.get_file_content(owner, repo, path, ref)
    text = decode_file_content(response.data)
    if text is None:
        raise NotFoundError(f"File not found or not a file: {path}")
    return text


def get_file_sha(
    client: GitHubClient, owner: str, repo: str, path: str, ref: str | None = None
) -> Optional[str]:
    """Return the current blob sha of ``path`` or None when it does not exist."""
    try:
        response = client.get_file_content(owner, repo, path, ref)
    except GitHubError as exc:
        if exc.status == 404:
            return None
        raise
    data = response.data
    if isinstance(data, dict) and isinstance(data.get("sha"), str):
        return data["sha"]
    return None


def save_file_to_fork(
    client: GitHubClient,
    username: str,
    repo: str,
    path: str,
    content: str,
    message: str,
    branch: str,
) -> str:
    """Write ``content`` to the user's fork and return the resulting commit sha.

    The current blob sha is fetched first and sent as the expected sha, so a
    concurrent write to the same file surfaces as a 409 conflict instead of
    being overwritten.
    """
    sha = get_file_sha(client, username, repo, path, branch)
    response = client.create_or_update_file(username, repo, path, content, message, branch, sha)
    data = response.data if isinstance(response.data, dict) else {}
    commit = data.get("commit") if isinstance(data.get("commit"), dict) else {}
    return str(commit.get("sha") or "")


def list_source_files(
    client: GitHubClient, owner: str, repo: str, project: ProjectConfig, branch: str
) -> List[SourceFile]:
    """Enumerate translatable files, priority files first, then by name."""
    response = client.get_directory_contents(owner, repo, project.source_folder, branch)
    if not isinstance(response.data, list):
        raise InvalidInputError(f"Expected directory contents at {project.source_folder}")

    files: List[SourceFile] = []
    for item in response.data:
        if not isinstance(item, dict) or item.get("type") != "file":
            continue
        name = str(item.get("name") or "")
        if name and matches_file_pattern(project, name):
            files.append(SourceFile(name=name, path=str(item.get("path") or name)))

    files.sort(key=lambda f: (not is_priority_file(project, f.name), f.name))
    return files


__all__ = [
    "SourceFile",
    "get_file_content_as_text",
    "get_file_sha",
    "list_source_files",
    "save_file_to_fork",
]
