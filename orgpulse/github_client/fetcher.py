"""Paged GitHub source: one page of repositories or issues per call."""

import logging

from .client import GitHubAPIClient
from .errors import (
    GitHubAPIError,
    OrganizationNotFoundError,
    RepositoryNotAccessibleError,
)
from .models import IssueDocument, Page, RateLimitInfo, RepositoryDocument
from .queries import ORGANIZATION_REPOSITORIES_QUERY, REPOSITORY_ISSUES_QUERY

logger = logging.getLogger(__name__)


class GitHubFetcher:
    """Fetches single pages of organization repositories and repository issues."""

    def __init__(self, client: GitHubAPIClient):
        self.client = client

    async def fetch_repository_page(
        self, org: str, cursor: str | None, page_size: int = 100
    ) -> Page[RepositoryDocument]:
        """Fetch one page of an organization's repositories, most recently pushed first.

        Raises:
            OrganizationNotFoundError: If the organization does not exist
        """
        try:
            response = await self.client.graphql(
                ORGANIZATION_REPOSITORIES_QUERY,
                {"org": org, "cursor": cursor, "pageSize": page_size},
            )
        except GitHubAPIError as e:
            if e.status == 404:
                raise OrganizationNotFoundError(org) from e
            raise

        organization = response.data.get("organization")
        if not organization:
            raise OrganizationNotFoundError(org)

        connection = organization["repositories"]
        page_info = connection["pageInfo"]
        return Page[RepositoryDocument](
            items=[
                RepositoryDocument.from_graphql(org, node)
                for node in connection["nodes"]
                if node
            ],
            end_cursor=page_info.get("endCursor"),
            has_more=bool(page_info.get("hasNextPage")),
            rate_limit=response.rate_limit,
        )

    async def fetch_issue_page(
        self, org: str, repo: str, cursor: str | None, page_size: int = 30
    ) -> Page[IssueDocument]:
        """Fetch one page of a repository's issues, newest first.

        Raises:
            RepositoryNotAccessibleError: If the repository is missing or not
                visible to the token
        """
        try:
            response = await self.client.graphql(
                REPOSITORY_ISSUES_QUERY,
                {"owner": org, "name": repo, "cursor": cursor, "pageSize": page_size},
            )
        except GitHubAPIError as e:
            if e.status == 404:
                raise RepositoryNotAccessibleError(org, repo, status=e.status) from e
            raise

        repository = response.data.get("repository")
        if not repository:
            raise RepositoryNotAccessibleError(org, repo)

        repo_key = f"{org}/{repo}"
        connection = repository["issues"]
        page_info = connection["pageInfo"]
        return Page[IssueDocument](
            items=[
                IssueDocument.from_graphql(repo_key, node)
                for node in connection["nodes"]
                if node
            ],
            end_cursor=page_info.get("endCursor"),
            has_more=bool(page_info.get("hasNextPage")),
            rate_limit=response.rate_limit,
        )

    async def rate_limit_status(self) -> RateLimitInfo | None:
        """Current core quota from ``GET /rate_limit``."""
        response = await self.client.get("/rate_limit")
        core = (response.data or {}).get("resources", {}).get("core")
        if not core:
            return response.rate_limit
        return RateLimitInfo.model_validate(
            {
                "limit": core.get("limit"),
                "remaining": core.get("remaining"),
                "reset_at": core.get("reset"),
            }
        )
