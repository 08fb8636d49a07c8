"""GitHub client package for API interaction."""

from .client import APIResponse, GitHubAPIClient, GraphQLRequest, RestRequest
from .errors import (
    ErrorKind,
    GitHubAPIError,
    GraphQLQueryError,
    OrganizationNotFoundError,
    RateLimitExceededError,
    RepositoryNotAccessibleError,
    classify_error,
)
from .fetcher import GitHubFetcher
from .models import (
    IssueDocument,
    Page,
    RateLimitInfo,
    RepositoryDocument,
    RepositoryStats,
    RepositorySummary,
)

__all__ = [
    "APIResponse",
    "ErrorKind",
    "GitHubAPIClient",
    "GitHubAPIError",
    "GitHubFetcher",
    "GraphQLQueryError",
    "GraphQLRequest",
    "IssueDocument",
    "OrganizationNotFoundError",
    "Page",
    "RateLimitExceededError",
    "RateLimitInfo",
    "RepositoryDocument",
    "RepositoryNotAccessibleError",
    "RepositoryStats",
    "RepositorySummary",
    "RestRequest",
    "classify_error",
]
