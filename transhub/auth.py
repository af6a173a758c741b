"""Caller identity and admin authorization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import AuthenticationRequired, PermissionDenied
from .github.client import GitHubClient


@dataclass(frozen=True)
class SessionUser:
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: str = ""


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        raise AuthenticationRequired("Authentication required")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationRequired("Authentication required: expected a bearer token")
    return token.strip()


def resolve_user(client: GitHubClient) -> SessionUser:
    """Look up the account that owns the client's token."""
    data = client.get_authenticated_user().data
    if not isinstance(data, dict) or not data.get("login"):
        raise AuthenticationRequired("Authentication required: token has no user")
    return SessionUser(
        username=str(data["login"]),
        name=data.get("name") or None,
        email=data.get("email") or None,
        avatar=str(data.get("avatar_url") or ""),
    )


def is_admin(username: str, admin_users: Iterable[str]) -> bool:
    return username in {user.strip() for user in admin_users if user.strip()}


def require_admin(username: str, admin_users: Iterable[str]) -> None:
    if not is_admin(username, admin_users):
        raise PermissionDenied("Unauthorized: Admin access required")


__all__ = ["SessionUser", "is_admin", "parse_bearer_token", "require_admin", "resolve_user"]
