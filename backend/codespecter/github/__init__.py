"""GitHub access: REST client and credential lookup."""

from .client import GitHubClient
from .credentials import get_repository_token, get_user_token

__all__ = [
    "GitHubClient",
    "get_repository_token",
    "get_user_token",
]
