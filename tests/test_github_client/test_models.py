"""Tests for GitHub document models."""

from datetime import datetime, timezone

import httpx
import pytest
from pydantic import ValidationError

from orgpulse.github_client.models import (
    IssueDocument,
    Page,
    RateLimitInfo,
    RepositoryDocument,
    RepositorySummary,
)


class TestRateLimitInfo:
    """Test RateLimitInfo model."""

    def test_from_headers(self) -> None:
        headers = httpx.Headers(
            {
                "X-RateLimit-Limit": "5000",
                "X-RateLimit-Remaining": "10",
                "X-RateLimit-Reset": "1700000000",
            }
        )
        info = RateLimitInfo.from_headers(headers)

        assert info is not None
        assert info.limit == 5000
        assert info.remaining == 10
        assert info.reset_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_from_headers_without_quota(self) -> None:
        """Responses without quota headers give None."""
        assert RateLimitInfo.from_headers(httpx.Headers({})) is None


class TestRepositoryDocument:
    """Test RepositoryDocument model."""

    def test_from_graphql(self, repo_node) -> None:
        """GraphQL nodes flatten into stored repository records."""
        doc = RepositoryDocument.from_graphql("acme", repo_node("widgets", stars=42))

        assert doc.org == "acme"
        assert doc.name == "widgets"
        assert doc.key == "acme/widgets"
        assert doc.stars == 42
        assert doc.forks == 1
        assert doc.open_issues == 2
        assert doc.topics == ["cli"]
        assert doc.language == "Python"
        assert doc.license == "MIT License"
        assert doc.default_branch == "main"
        assert doc.pushed_at == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_from_graphql_with_nulls(self, repo_node) -> None:
        """Optional GraphQL objects may be null."""
        node = repo_node(
            "bare",
            primaryLanguage=None,
            licenseInfo=None,
            defaultBranchRef=None,
            repositoryTopics={"nodes": []},
        )
        doc = RepositoryDocument.from_graphql("acme", node)

        assert doc.language is None
        assert doc.license is None
        assert doc.default_branch is None
        assert doc.topics == []


class TestIssueDocument:
    """Test IssueDocument model."""

    def test_from_graphql(self, issue_node) -> None:
        doc = IssueDocument.from_graphql(
            "acme/widgets", issue_node(7, state="CLOSED", closedAt="2024-06-02T00:00:00Z")
        )

        assert doc.repo == "acme/widgets"
        assert doc.number == 7
        assert doc.state == "closed"
        assert doc.author == "octocat"
        assert doc.labels == ["bug"]
        assert doc.closed_at == datetime(2024, 6, 2, tzinfo=timezone.utc)

    def test_ghost_author(self, issue_node) -> None:
        """Deleted users come back as a null author."""
        doc = IssueDocument.from_graphql("acme/widgets", issue_node(1, author=None))
        assert doc.author is None

    def test_missing_required_fields(self) -> None:
        with pytest.raises(ValidationError):
            IssueDocument(repo="acme/widgets", number=1)  # type: ignore[call-arg]


class TestPage:
    """Test the generic Page model."""

    def test_defaults(self) -> None:
        page = Page[RepositorySummary]()
        assert page.items == []
        assert page.end_cursor is None
        assert page.has_more is False

    def test_summary_key(self) -> None:
        summary = RepositorySummary(org="acme", name="widgets", stars=3)
        assert summary.key == "acme/widgets"
