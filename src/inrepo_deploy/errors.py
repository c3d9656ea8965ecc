"""Exception taxonomy for the deploy engine.

Failures raised before the commit phase are total and non-destructive:
nothing has been written remotely and nothing has been persisted locally.
Failures during the commit phase are reported per file in ``CommitResult``
objects instead of being raised; ``PartialCommitFailure`` exists for callers
that prefer to turn a mixed result into an exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .deploy.models import CommitResult


class DeployError(Exception):
    """Base class for all deploy engine errors."""


class NotAuthenticated(DeployError):
    """No credential is available for the remote API."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class InvalidToken(DeployError):
    """A credential exists but the remote rejected it (HTTP 401)."""


class NetworkError(DeployError):
    """Transport-level failure talking to the remote API."""


class RateLimitExceeded(DeployError):
    """The remote reported zero remaining requests.

    Treated as a hard stop, never as a retryable error.

    Attributes:
        reset_at: Unix epoch when the limit resets, if reported.
    """

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded. Please try again later.",
        reset_at: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class RemoteApiError(DeployError):
    """Non-success HTTP response from the remote API.

    Attributes:
        status_code: HTTP status code of the failed response.
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class PreconditionFailed(RemoteApiError):
    """Optimistic-concurrency precondition rejected (HTTP 409/422)."""


class ContentValidationFailure(DeployError):
    """Content failed shape or schema checks and cannot be trusted."""


class StaleRemoteState(DeployError):
    """A remote file changed since it was last seen (manifest precondition)."""


class DeployCancelled(DeployError):
    """Conflict resolution was declined or left incomplete."""

    def __init__(self, message: str = "Deploy cancelled.") -> None:
        super().__init__(message)


class PartialCommitFailure(DeployError):
    """Some files in a commit batch failed.

    Attributes:
        results: Full per-file result list (successes and failures).
    """

    def __init__(self, message: str, results: list[CommitResult]) -> None:
        super().__init__(message)
        self.results = results

    @property
    def failed(self) -> list[CommitResult]:
        return [r for r in self.results if not r.success]

    @property
    def succeeded(self) -> list[CommitResult]:
        return [r for r in self.results if r.success]
