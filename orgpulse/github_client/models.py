"""Pydantic models for GitHub data fetched and stored by OrgPulse.

Documents map GitHub's GraphQL v4 objects onto the flat records kept in
MongoDB. API Reference: https://docs.github.com/en/graphql/reference/objects
"""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class RateLimitInfo(BaseModel):
    """Quota snapshot taken from response headers or the GraphQL rateLimit field."""

    limit: int | None = Field(None, description="Requests allowed per window")
    remaining: int | None = Field(None, description="Requests left in this window")
    reset_at: datetime | None = Field(None, description="When the window resets")

    @classmethod
    def from_headers(cls, headers: Any) -> "RateLimitInfo | None":
        """Build from ``x-ratelimit-*`` headers; None when they are absent."""
        remaining = headers.get("x-ratelimit-remaining")
        if remaining is None:
            return None
        limit = headers.get("x-ratelimit-limit")
        reset = headers.get("x-ratelimit-reset")
        return cls(
            limit=int(limit) if limit and limit.isdigit() else None,
            remaining=int(remaining) if remaining.isdigit() else None,
            reset_at=(
                datetime.fromtimestamp(int(reset), tz=timezone.utc)
                if reset and reset.isdigit()
                else None
            ),
        )


class Page(BaseModel, Generic[T]):
    """One fetched page of an entity stream."""

    items: list[T] = Field(default_factory=list)
    end_cursor: str | None = Field(
        None, description="Continuation token; None when the stream is exhausted"
    )
    has_more: bool = False
    rate_limit: RateLimitInfo | None = None


class RepositoryDocument(BaseModel):
    """Repository record stored in the ``repos`` collection (key: org + name)."""

    org: str
    name: str
    description: str | None = None
    topics: list[str] = Field(default_factory=list)
    language: str | None = None
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    license: str | None = None
    pushed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_private: bool = False
    is_archived: bool = False
    is_fork: bool = False
    default_branch: str | None = None

    @property
    def key(self) -> str:
        return f"{self.org}/{self.name}"

    @classmethod
    def from_graphql(cls, org: str, node: dict[str, Any]) -> "RepositoryDocument":
        """Convert a GraphQL ``Repository`` node to our model."""
        topics = (node.get("repositoryTopics") or {}).get("nodes") or []
        return cls(
            org=org,
            name=node["name"],
            description=node.get("description"),
            topics=[t["topic"]["name"] for t in topics if t.get("topic")],
            language=(node.get("primaryLanguage") or {}).get("name"),
            stars=node.get("stargazerCount") or 0,
            forks=node.get("forkCount") or 0,
            open_issues=(node.get("issues") or {}).get("totalCount") or 0,
            license=(node.get("licenseInfo") or {}).get("name"),
            pushed_at=node.get("pushedAt"),
            created_at=node.get("createdAt"),
            updated_at=node.get("updatedAt"),
            is_private=bool(node.get("isPrivate")),
            is_archived=bool(node.get("isArchived")),
            is_fork=bool(node.get("isFork")),
            default_branch=(node.get("defaultBranchRef") or {}).get("name"),
        )


class IssueDocument(BaseModel):
    """Issue record stored in the ``issues`` collection (key: repo + number)."""

    repo: str = Field(..., description="Owning repository as 'org/name'")
    number: int
    title: str
    state: str = Field(..., description="'open' or 'closed'")
    created_at: datetime
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    author: str | None = None
    labels: list[str] = Field(default_factory=list)

    @classmethod
    def from_graphql(cls, repo_key: str, node: dict[str, Any]) -> "IssueDocument":
        """Convert a GraphQL ``Issue`` node to our model."""
        labels = (node.get("labels") or {}).get("nodes") or []
        return cls(
            repo=repo_key,
            number=node["number"],
            title=node["title"],
            state=node["state"].lower(),
            created_at=node["createdAt"],
            updated_at=node.get("updatedAt"),
            closed_at=node.get("closedAt"),
            author=(node.get("author") or {}).get("login"),
            labels=[label["name"] for label in labels],
        )


class RepositorySummary(BaseModel):
    """Minimal projection of a stored repository used to drive issue fetching."""

    org: str
    name: str
    stars: int = 0
    forks: int = 0

    @property
    def key(self) -> str:
        return f"{self.org}/{self.name}"


class RepositoryStats(BaseModel):
    """Live counters refreshed by ``sync-stars``."""

    stars: int
    forks: int
    open_issues: int
    pushed_at: datetime | None = None
