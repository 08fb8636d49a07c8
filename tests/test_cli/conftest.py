"""CLI test fixtures."""

import os
from collections.abc import Callable, Generator
from unittest.mock import patch

import mongomock
import pytest

from orgpulse.storage.mongo import DocumentStore


@pytest.fixture(autouse=True)
def cli_env(tmp_path) -> Generator[None]:
    """Point every command at a throwaway database and checkpoint file."""
    env = {
        "MONGO_URI": "mongodb://localhost:27017",
        "MONGO_DATABASE": "orgpulse_cli_test",
        "ORGPULSE_CHECKPOINT_FILE": str(tmp_path / "checkpoint.json"),
        "GITHUB_TOKEN": "test_token",
    }
    with patch.dict(os.environ, env, clear=False):
        os.environ.pop("MONGO_OPTIONS", None)
        yield


@pytest.fixture
def mongo_client() -> mongomock.MongoClient:
    return mongomock.MongoClient()


@pytest.fixture
def store_factory(mongo_client: mongomock.MongoClient) -> Callable[..., DocumentStore]:
    """Builds stores sharing one in-memory server, so data outlives a command."""

    def make(*args, **kwargs) -> DocumentStore:
        return DocumentStore(
            "mongodb://localhost:27017",
            database="orgpulse_cli_test",
            client_factory=lambda *a, **k: mongo_client,
        )

    return make
