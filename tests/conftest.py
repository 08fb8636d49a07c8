"""Test configuration and fixtures."""

from collections.abc import Callable, Generator
from typing import Any

import mongomock
import pytest

from orgpulse.storage.mongo import DocumentStore


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeper() -> RecordingSleep:
    """Injectable sleep that never waits."""
    return RecordingSleep()


@pytest.fixture
def document_store() -> Generator[DocumentStore]:
    """DocumentStore backed by an in-memory mongomock client."""
    store = DocumentStore(
        "mongodb://localhost:27017",
        database="orgpulse_test",
        client_factory=mongomock.MongoClient,
    )
    with store:
        yield store


@pytest.fixture
def repo_node() -> Callable[..., dict[str, Any]]:
    """Factory for GraphQL Repository nodes."""

    def make(name: str, stars: int = 0, **overrides: Any) -> dict[str, Any]:
        node: dict[str, Any] = {
            "name": name,
            "description": f"{name} description",
            "createdAt": "2020-01-01T00:00:00Z",
            "updatedAt": "2024-01-01T00:00:00Z",
            "pushedAt": "2024-06-01T12:00:00Z",
            "stargazerCount": stars,
            "forkCount": 1,
            "issues": {"totalCount": 2},
            "isPrivate": False,
            "isArchived": False,
            "isFork": False,
            "defaultBranchRef": {"name": "main"},
            "primaryLanguage": {"name": "Python"},
            "repositoryTopics": {"nodes": [{"topic": {"name": "cli"}}]},
            "licenseInfo": {"name": "MIT License"},
        }
        node.update(overrides)
        return node

    return make


@pytest.fixture
def issue_node() -> Callable[..., dict[str, Any]]:
    """Factory for GraphQL Issue nodes."""

    def make(number: int, created_at: str = "2024-06-01T00:00:00Z", **overrides: Any) -> dict[str, Any]:
        node: dict[str, Any] = {
            "number": number,
            "title": f"Issue {number}",
            "state": "OPEN",
            "createdAt": created_at,
            "updatedAt": created_at,
            "closedAt": None,
            "author": {"login": "octocat"},
            "labels": {"nodes": [{"name": "bug"}]},
        }
        node.update(overrides)
        return node

    return make
