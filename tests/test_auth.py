from __future__ import annotations

import pytest

from tests._fixtures.fake_github import FakeGitHub
from transhub.auth import is_admin, parse_bearer_token, require_admin, resolve_user
from transhub.errors import AuthenticationRequired, PermissionDenied


def test_parse_bearer_token() -> None:
    assert parse_bearer_token("Bearer ghp_abc") == "ghp_abc"
    assert parse_bearer_token("bearer  ghp_abc ") == "ghp_abc"


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer   "])
def test_missing_or_malformed_tokens(header: str | None) -> None:
    with pytest.raises(AuthenticationRequired):
        parse_bearer_token(header)


def test_resolve_user_reads_login() -> None:
    user = resolve_user(FakeGitHub(login="bob"))  # type: ignore[arg-type]

    assert user.username == "bob"
    assert user.name == "Bob"
    assert user.email is None


def test_admin_membership() -> None:
    admins = ["alice", " carol ", ""]

    assert is_admin("alice", admins)
    assert is_admin("carol", admins)
    assert not is_admin("", admins)
    require_admin("alice", admins)
    with pytest.raises(PermissionDenied, match="Admin access required"):
        require_admin("bob", admins)
