"""Access-token lookup for workflow runs."""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from ..db.models import Account, Repository
from ..errors import CredentialNotFoundError, RepositoryNotConnectedError

GITHUB_PROVIDER = "github"


def _token_for_user(db: Session, user_id: str) -> str:
    account = (
        db.query(Account)
        .filter(Account.user_id == str(user_id), Account.provider_id == GITHUB_PROVIDER)
        .first()
    )
    if account is None or not account.access_token:
        raise CredentialNotFoundError(f"No GitHub access token found for user {user_id}")
    return account.access_token


def get_user_token(session_factory: Callable[[], Session], user_id: str) -> str:
    """Token of the user's GitHub account (first-time indexing)."""
    with session_factory() as db:
        return _token_for_user(db, user_id)


def get_repository_token(session_factory: Callable[[], Session], github_id: int) -> str:
    """Token of the account that connected the repository."""
    with session_factory() as db:
        repository = db.query(Repository).filter(Repository.github_id == int(github_id)).first()
        if repository is None:
            raise RepositoryNotConnectedError(f"Repository {github_id} is not connected")
        return _token_for_user(db, repository.user_id)
