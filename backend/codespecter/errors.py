"""Exception hierarchy shared by the workflows and their collaborators."""

from __future__ import annotations

from typing import Optional


class CodeSpecterError(Exception):
    """Base class for errors raised by codespecter."""


class NonRetriableError(CodeSpecterError):
    """Fails a workflow run immediately, without further attempts."""


class CredentialNotFoundError(NonRetriableError):
    """No GitHub access token is stored for the account."""


class RepositoryNotConnectedError(NonRetriableError):
    """The repository has no connection record."""


class RestartRunError(CodeSpecterError):
    """Retryable error whose next attempt starts the run from the top.

    Memoized step results of the run are discarded before retrying.
    """


class DeletionTimeoutError(RestartRunError):
    """The vector store never confirmed a namespace deletion."""

    def __init__(self, namespace: str, remaining: int, polls: int):
        self.namespace = namespace
        self.remaining = remaining
        self.polls = polls
        super().__init__(
            f"Deletion timed out after {polls} polls. "
            f"{remaining} vectors still exist in {namespace}."
        )


class LeaseUnavailableError(CodeSpecterError):
    """A lease could not be acquired within the allowed wait."""


class GitHubError(CodeSpecterError):
    """Error response from the GitHub API."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        super().__init__(f"GitHub API error {status}: {message}")

    @property
    def not_found(self) -> bool:
        return self.status == 404
