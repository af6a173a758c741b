"""GitHub REST API access."""

from .client import (
    GitHubClient,
    GitHubResponse,
    HttpRequest,
    HttpResponse,
    TransportError,
    create_github_client,
    decode_file_content,
)

__all__ = [
    "GitHubClient",
    "GitHubResponse",
    "HttpRequest",
    "HttpResponse",
    "TransportError",
    "create_github_client",
    "decode_file_content",
]
