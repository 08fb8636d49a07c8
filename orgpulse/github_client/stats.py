"""Repository counter lookups using PyGitHub."""

import logging

from github import Auth, Github
from github.GithubException import GithubException, UnknownObjectException
from github.Repository import Repository

from .errors import GitHubAPIError, RepositoryNotAccessibleError
from .models import RepositoryStats

logger = logging.getLogger(__name__)


class RepositoryStatsClient:
    """Lightweight client that refreshes stars/forks for known repositories."""

    def __init__(self, token: str | None = None):
        """Initialize the PyGitHub client.

        Args:
            token: GitHub personal access token. Unauthenticated when None,
                which GitHub limits to 60 requests per hour.
        """
        self.token = token
        self.github = Github(auth=Auth.Token(token)) if token else Github()

    def _convert_repository(self, repository: Repository) -> RepositoryStats:
        """Convert a PyGitHub repository to our model."""
        return RepositoryStats(
            stars=repository.stargazers_count,
            forks=repository.forks_count,
            open_issues=repository.open_issues_count,
            pushed_at=repository.pushed_at,
        )

    def get_stats(self, org: str, repo: str) -> RepositoryStats:
        """Fetch current counters for ``org/repo``.

        Raises:
            RepositoryNotAccessibleError: If the repository is not visible
            GitHubAPIError: For any other API failure
        """
        try:
            repository = self.github.get_repo(f"{org}/{repo}")
            return self._convert_repository(repository)
        except UnknownObjectException as e:
            raise RepositoryNotAccessibleError(org, repo) from e
        except GithubException as e:
            raise GitHubAPIError(
                f"Failed to fetch stats for {org}/{repo}: {e.data}",
                status=e.status,
                headers=e.headers,
            ) from e

    def close(self) -> None:
        self.github.close()
