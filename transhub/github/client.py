"""Thin GitHub REST client with retry/backoff and rate-limit awareness."""

from __future__ import annotations

import base64
import http.client
import json
import socket
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from ..errors import AuthenticationRequired, ErrorBody, ErrorKind, GitHubError, is_retryable_status
from ..logging import get_logger

logger = get_logger("github")

DEFAULT_API_URL = "https://api.github.com"
_USER_AGENT = "transhub"


class TransportError(Exception):
    """Raised by a transport when no HTTP response was received (timeout, refused...)."""


@dataclass
class HttpRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[bytes] = None
    timeout: float = 30.0


@dataclass
class HttpResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class GitHubResponse:
    """Decoded API response."""

    status: int
    headers: Dict[str, str]
    data: Any


Transport = Callable[[HttpRequest], HttpResponse]


def urllib_transport(request: HttpRequest) -> HttpResponse:
    """Default transport built on ``urllib``; HTTP errors come back as responses."""
    http_request = Request(
        request.url, data=request.body, headers=request.headers, method=request.method
    )
    try:
        with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
            return HttpResponse(
                status=response.status,
                headers={key.lower(): value for key, value in response.headers.items()},
                body=response.read(),
            )
    except HTTPError as exc:
        headers = {key.lower(): value for key, value in (exc.headers or {}).items()}
        try:
            body = exc.read() if hasattr(exc, "read") else b""
        except (http.client.HTTPException, OSError):
            body = b""
        return HttpResponse(status=exc.code, headers=headers, body=body or b"")
    except (socket.timeout, TimeoutError) as exc:
        raise TransportError(f"Request timed out after {request.timeout}s") from exc
    except URLError as exc:
        raise TransportError(f"Connection failed: {exc.reason}") from exc
    except ConnectionError as exc:
        raise TransportError(f"Connection failed: {exc}") from exc
    except http.client.HTTPException as exc:
        raise TransportError(f"Malformed response: {exc!r}") from exc
    except OSError as exc:
        raise TransportError(f"Connection failed: {exc}") from exc


class GitHubClient:
    """Wraps the GitHub endpoints transhub needs behind a retry policy."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        warning_threshold: int = 100,
        transport: Transport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        warning_callback: Callable[[str], None] | None = None,
    ) -> None:
        if not token:
            raise AuthenticationRequired("GitHub token is required")
        self._token = token
        self.api_url = api_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.warning_threshold = warning_threshold
        self._transport = transport or urllib_transport
        self._sleep = sleep
        self._warning_callback = warning_callback

    # ------------------------------------------------------------------
    # Repository operations

    def get_repository(self, owner: str, repo: str) -> GitHubResponse:
        return self.request("GET", f"/repos/{_seg(owner)}/{_seg(repo)}")

    def create_fork(self, owner: str, repo: str) -> GitHubResponse:
        return self.request("POST", f"/repos/{_seg(owner)}/{_seg(repo)}/forks", json_body={})

    def get_fork(self, owner: str, repo: str, username: str) -> Optional[GitHubResponse]:
        """Return the user's copy of ``repo`` or None when it does not exist."""
        try:
            return self.request("GET", f"/repos/{_seg(username)}/{_seg(repo)}")
        except GitHubError as exc:
            if exc.status == 404:
                return None
            raise

    # ------------------------------------------------------------------
    # Branch and commit operations

    def get_branch(self, owner: str, repo: str, branch: str) -> GitHubResponse:
        return self.request(
            "GET", f"/repos/{_seg(owner)}/{_seg(repo)}/branches/{quote(branch, safe='/')}"
        )

    def create_branch(self, owner: str, repo: str, branch: str, sha: str) -> GitHubResponse:
        return self.request(
            "POST",
            f"/repos/{_seg(owner)}/{_seg(repo)}/git/refs",
            json_body={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    def list_branches(self, owner: str, repo: str) -> GitHubResponse:
        return self.request(
            "GET", f"/repos/{_seg(owner)}/{_seg(repo)}/branches", params={"per_page": 100}
        )

    def get_commit(self, owner: str, repo: str, ref: str) -> GitHubResponse:
        return self.request(
            "GET", f"/repos/{_seg(owner)}/{_seg(repo)}/commits/{quote(ref, safe='/')}"
        )

    def compare_commits(self, owner: str, repo: str, base: str, head: str) -> GitHubResponse:
        basehead = f"{quote(base, safe=':/')}...{quote(head, safe=':/')}"
        return self.request("GET", f"/repos/{_seg(owner)}/{_seg(repo)}/compare/{basehead}")

    def merge_upstream(self, owner: str, repo: str, branch: str) -> GitHubResponse:
        return self.request(
            "POST",
            f"/repos/{_seg(owner)}/{_seg(repo)}/merge-upstream",
            json_body={"branch": branch},
        )

    # ------------------------------------------------------------------
    # File operations

    def get_file_content(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> GitHubResponse:
        params = {"ref": ref} if ref else None
        return self.request("GET", _contents_path(owner, repo, path), params=params)

    def get_directory_contents(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> GitHubResponse:
        return self.get_file_content(owner, repo, path, ref)

    def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> GitHubResponse:
        """Write ``content`` as one commit; ``sha`` is the expected current blob sha."""
        payload: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha
        return self.request("PUT", _contents_path(owner, repo, path), json_body=payload)

    def delete_file(
        self, owner: str, repo: str, path: str, message: str, sha: str, branch: str
    ) -> GitHubResponse:
        return self.request(
            "DELETE",
            _contents_path(owner, repo, path),
            json_body={"message": message, "sha": sha, "branch": branch},
        )

    # ------------------------------------------------------------------
    # Pull requests

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str | None = None,
    ) -> GitHubResponse:
        payload: Dict[str, Any] = {"title": title, "head": head, "base": base}
        if body is not None:
            payload["body"] = body
        return self.request("POST", f"/repos/{_seg(owner)}/{_seg(repo)}/pulls", json_body=payload)

    def list_pull_requests(self, owner: str, repo: str, state: str = "all") -> GitHubResponse:
        return self.request(
            "GET",
            f"/repos/{_seg(owner)}/{_seg(repo)}/pulls",
            params={"state": state, "per_page": 100},
        )

    # ------------------------------------------------------------------
    # Users and quota

    def get_authenticated_user(self) -> GitHubResponse:
        return self.request("GET", "/user")

    def get_user(self, username: str) -> GitHubResponse:
        return self.request("GET", f"/users/{_seg(username)}")

    def get_rate_limit(self) -> GitHubResponse:
        return self.request("GET", "/rate_limit")

    # ------------------------------------------------------------------
    # Request pipeline

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> GitHubResponse:
        """Issue one API call under the retry policy."""
        url = f"{self.api_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        body = None
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        http_request = HttpRequest(
            method=method, url=url, headers=headers, body=body, timeout=self.timeout
        )

        attempts = max(1, self.max_retries + 1)
        for attempt in range(attempts):
            try:
                response = self._transport(http_request)
            except TransportError as exc:
                error = GitHubError(0, ErrorBody(message=str(exc)))
            else:
                if response.status < 400:
                    self._check_rate_limits(response.headers)
                    return GitHubResponse(
                        status=response.status,
                        headers=response.headers,
                        data=_decode_json(response.body),
                    )
                error = self._build_error(response)

            if is_retryable_status(error.status) and attempt < attempts - 1:
                delay = self.retry_delay * (2**attempt)
                logger.info(
                    "Retry attempt %d for %s %s after %.1fs (status %d)",
                    attempt + 1,
                    method,
                    path,
                    delay,
                    error.status,
                )
                self._sleep(delay)
                continue
            raise error

        raise RuntimeError("Unexpected exit from GitHub retry loop")  # pragma: no cover

    def _build_error(self, response: HttpResponse) -> GitHubError:
        body = ErrorBody.from_payload(_decode_json(response.body))
        remaining = _header_int(response.headers, "x-ratelimit-remaining")
        reset_at = _reset_time(response.headers)
        error = GitHubError(
            response.status,
            body,
            rate_limited=remaining == 0,
            reset_at=reset_at,
        )
        if error.kind is ErrorKind.QUOTA and reset_at is not None:
            self._warn(f"Rate limit exceeded. Resets at {reset_at.strftime('%H:%M:%S')} UTC")
        return error

    def _check_rate_limits(self, headers: Mapping[str, str]) -> None:
        remaining = _header_int(headers, "x-ratelimit-remaining")
        if remaining is None:
            return
        if remaining < self.warning_threshold:
            self._warn(f"Low API quota: {remaining} requests remaining")
        reset_at = _reset_time(headers)
        if remaining == 0 and reset_at is not None:
            self._warn(f"Rate limit exceeded. Resets at {reset_at.strftime('%H:%M:%S')} UTC")

    def _warn(self, message: str) -> None:
        if self._warning_callback is not None:
            self._warning_callback(message)
        else:
            logger.warning(message)


def create_github_client(token: str | None, settings: Any = None, **overrides: Any) -> GitHubClient:
    """Build a client from ``GitHubSettings``-like attributes plus keyword overrides."""
    if not token:
        raise AuthenticationRequired("GitHub token is required")
    options: Dict[str, Any] = {}
    if settings is not None:
        options = {
            "api_url": settings.api_url,
            "max_retries": settings.max_retries,
            "retry_delay": settings.retry_delay,
            "timeout": settings.timeout,
            "warning_threshold": settings.rate_limit_warning_threshold,
        }
    options.update(overrides)
    return GitHubClient(token, **options)


def decode_file_content(data: Any) -> Optional[str]:
    """Return the UTF-8 text of a contents-API file payload, or None for non-files."""
    if not isinstance(data, Mapping) or data.get("type") != "file":
        return None
    content = data.get("content")
    if not isinstance(content, str):
        return None
    encoding = data.get("encoding", "base64")
    if encoding != "base64":
        return content
    return base64.b64decode(content).decode("utf-8")


def _contents_path(owner: str, repo: str, path: str) -> str:
    return f"/repos/{_seg(owner)}/{_seg(repo)}/contents/{quote(path.lstrip('/'), safe='/')}"


def _seg(value: str) -> str:
    return quote(value, safe="")


def _decode_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _reset_time(headers: Mapping[str, str]) -> Optional[datetime]:
    reset = _header_int(headers, "x-ratelimit-reset")
    if reset is None:
        return None
    return datetime.fromtimestamp(reset, UTC)


__all__ = [
    "DEFAULT_API_URL",
    "GitHubClient",
    "GitHubResponse",
    "HttpRequest",
    "HttpResponse",
    "Transport",
    "TransportError",
    "create_github_client",
    "decode_file_content",
    "urllib_transport",
]
