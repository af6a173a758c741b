"""Fork and branch management between upstream and per-user forks."""

from __future__ import annotations

import time
from typing import Callable, List, Optional

from .errors import ErrorKind, GitHubError
from .github.client import GitHubClient
from .logging import get_logger
from .models import (
    CommitSummary,
    ForkInfo,
    ForkStatus,
    PullRequestRef,
    SyncResult,
    SyncState,
    SyncStatusResponse,
)
from .registry import translation_branch_name

logger = get_logger("forks")

DEFAULT_WEB_URL = "https://github.com"
DEFAULT_SETTLE_DELAY = 2.0


def classify_sync_status(behind_by: int, ahead_by: int) -> SyncState:
    """Four-way divergence classification of a fork branch against upstream."""
    if behind_by > 0 and ahead_by > 0:
        return "diverged"
    if behind_by > 0:
        return "behind"
    if ahead_by > 0:
        return "ahead"
    return "identical"


def ensure_fork(
    client: GitHubClient,
    username: str,
    upstream_owner: str,
    upstream_repo: str,
    language_code: str,
    *,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    web_url: str = DEFAULT_WEB_URL,
) -> ForkInfo:
    """Make sure ``username`` has a fork with the language's translation branch.

    Forks are provisioned asynchronously, so a freshly created fork is given
    ``settle_delay`` seconds before its branches are inspected. A missing
    upstream branch is not an error: ``has_branch`` is reported as False and
    initialization is expected to create it.
    """
    branch = translation_branch_name(language_code)

    fork = client.get_fork(upstream_owner, upstream_repo, username)
    if fork is None:
        logger.info("Creating fork of %s/%s for %s", upstream_owner, upstream_repo, username)
        client.create_fork(upstream_owner, upstream_repo)
        if settle_delay > 0:
            sleep(settle_delay)

    has_branch = False
    try:
        client.get_branch(username, upstream_repo, branch)
        has_branch = True
    except GitHubError as exc:
        if exc.status != 404:
            raise
        try:
            upstream_branch = client.get_branch(upstream_owner, upstream_repo, branch)
            client.create_branch(
                username, upstream_repo, branch, upstream_branch.data["commit"]["sha"]
            )
            has_branch = True
        except GitHubError as branch_error:
            logger.warning(
                "Could not create %s in %s/%s: %s", branch, username, upstream_repo, branch_error
            )

    return ForkInfo(
        exists=True,
        has_branch=has_branch,
        owner=username,
        repo=upstream_repo,
        branch_name=branch,
        fork_url=f"{web_url}/{username}/{upstream_repo}",
    )


def check_fork_sync_status(
    client: GitHubClient, username: str, upstream_owner: str, repo: str, branch: str
) -> SyncStatusResponse:
    """Compare ``username:branch`` (base) against ``upstream_owner:branch`` (head)."""
    comparison = client.compare_commits(
        upstream_owner, repo, f"{username}:{branch}", f"{upstream_owner}:{branch}"
    )
    data = comparison.data if isinstance(comparison.data, dict) else {}
    behind_by = int(data.get("behind_by") or 0)
    ahead_by = int(data.get("ahead_by") or 0)
    return SyncStatusResponse(
        status=classify_sync_status(behind_by, ahead_by),
        behind_by=behind_by,
        ahead_by=ahead_by,
        commits=_commit_summaries(data.get("commits")),
    )


def sync_fork_with_upstream(
    client: GitHubClient,
    username: str,
    repo: str,
    branch: str,
    *,
    web_url: str = DEFAULT_WEB_URL,
) -> SyncResult:
    """Merge upstream into the fork branch; a merge conflict is a result, not an error."""
    try:
        client.merge_upstream(username, repo, branch)
    except GitHubError as exc:
        if exc.kind is ErrorKind.CONFLICT:
            logger.warning("Merge upstream into %s/%s:%s conflicted", username, repo, branch)
            return SyncResult(
                success=False,
                conflicts=True,
                conflict_url=f"{web_url}/{username}/{repo}/compare/{branch}",
            )
        raise
    return SyncResult(success=True, conflicts=False)


def get_fork_status(
    client: GitHubClient,
    username: str,
    upstream_owner: str,
    repo: str,
    language_code: str,
    *,
    web_url: str = DEFAULT_WEB_URL,
) -> ForkStatus:
    """Summarise fork existence and divergence for display."""
    fork = client.get_fork(upstream_owner, repo, username)
    if fork is None:
        return ForkStatus(
            has_fork=False,
            sync_status=None,
            needs_sync=False,
            fork_url=f"{web_url}/{upstream_owner}/{repo}",
        )
    sync_status = check_fork_sync_status(
        client, username, upstream_owner, repo, translation_branch_name(language_code)
    )
    return ForkStatus(
        has_fork=True,
        sync_status=sync_status,
        needs_sync=sync_status.behind_by > 0,
        fork_url=f"{web_url}/{username}/{repo}",
    )


def create_pull_request(
    client: GitHubClient,
    username: str,
    upstream_owner: str,
    repo: str,
    branch: str,
    title: str,
    body: str | None = None,
) -> PullRequestRef:
    response = client.create_pull_request(
        upstream_owner, repo, title, f"{username}:{branch}", branch, body
    )
    return PullRequestRef(number=int(response.data["number"]), url=str(response.data["html_url"]))


def get_existing_pr(
    client: GitHubClient, upstream_owner: str, repo: str, username: str, branch: str
) -> Optional[PullRequestRef]:
    """Return the open PR from ``username:branch`` if one exists."""
    response = client.list_pull_requests(upstream_owner, repo, "open")
    pulls = response.data if isinstance(response.data, list) else []
    for pr in pulls:
        head = pr.get("head") or {}
        user = head.get("user") or {}
        if head.get("ref") == branch and user.get("login") == username:
            return PullRequestRef(number=int(pr["number"]), url=str(pr["html_url"]))
    return None


def _commit_summaries(raw: object) -> List[CommitSummary]:
    if not isinstance(raw, list):
        return []
    summaries: List[CommitSummary] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        commit = item.get("commit") or {}
        author = commit.get("author") or {}
        summaries.append(
            CommitSummary(
                sha=str(item.get("sha") or ""),
                message=str(commit.get("message") or ""),
                author=str(author.get("name") or "Unknown"),
                date=str(author.get("date") or ""),
            )
        )
    return summaries


__all__ = [
    "check_fork_sync_status",
    "classify_sync_status",
    "create_pull_request",
    "ensure_fork",
    "get_existing_pr",
    "get_fork_status",
    "sync_fork_with_upstream",
]
