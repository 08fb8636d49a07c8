"""Error taxonomy for GitHub API calls."""

from collections.abc import Mapping
from enum import Enum

import httpx


class ErrorKind(str, Enum):
    """How a failed request should be handled."""

    RATE_LIMITED = "rate_limited"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class GitHubAPIError(Exception):
    """A GitHub API request failed with an HTTP status (or GraphQL errors)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.headers: dict[str, str] = {
            k.lower(): v for k, v in (headers or {}).items()
        }

    @property
    def rate_limit_remaining(self) -> str | None:
        return self.headers.get("x-ratelimit-remaining")

    @property
    def rate_limit_reset(self) -> str | None:
        return self.headers.get("x-ratelimit-reset")

    @property
    def retry_after(self) -> str | None:
        return self.headers.get("retry-after")


class GraphQLQueryError(GitHubAPIError):
    """GraphQL response carried errors that retrying will not fix."""

    def __init__(
        self,
        errors: list[dict],
        status: int | None = 200,
        headers: Mapping[str, str] | None = None,
    ):
        messages = ", ".join(str(err.get("message")) for err in errors) or "unknown"
        super().__init__(f"GraphQL error: {messages}", status=status, headers=headers)
        self.errors = errors


class RateLimitExceededError(GitHubAPIError):
    """GraphQL reported RATE_LIMITED in its error list."""


class OrganizationNotFoundError(GitHubAPIError):
    """The organization does not exist or is not visible to the token."""

    def __init__(self, org: str):
        super().__init__(f"Organization '{org}' not found", status=404)
        self.org = org


class RepositoryNotAccessibleError(GitHubAPIError):
    """The repository (or its issues) is missing, private, or disabled."""

    def __init__(self, org: str, repo: str, status: int | None = 404):
        super().__init__(f"Repository {org}/{repo} not accessible", status=status)
        self.org = org
        self.repo = repo


def classify_error(error: BaseException) -> ErrorKind:
    """Classify a failure as rate-limited, retryable, or fatal.

    - Rate-limited: 403/429 with ``x-ratelimit-remaining: 0``, or with a
      ``retry-after`` header (GitHub's secondary rate limit).
    - Retryable: 5xx, 429 without the quota header, or a transport-level
      failure that never produced an HTTP status.
    - Fatal: everything else (401, 404, 422, malformed GraphQL, ...).
    """
    if isinstance(error, httpx.TransportError):
        return ErrorKind.RETRYABLE
    if not isinstance(error, GitHubAPIError):
        return ErrorKind.FATAL

    if isinstance(error, RateLimitExceededError):
        return ErrorKind.RATE_LIMITED
    status = error.status
    if status in (403, 429) and (
        error.rate_limit_remaining == "0" or error.retry_after is not None
    ):
        return ErrorKind.RATE_LIMITED
    if isinstance(error, GraphQLQueryError):
        return ErrorKind.FATAL
    if status is None or status >= 500 or status == 429:
        return ErrorKind.RETRYABLE
    return ErrorKind.FATAL
