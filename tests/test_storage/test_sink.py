"""Tests for the async persistence sink."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from pymongo.errors import AutoReconnect

from orgpulse.github_client.models import IssueDocument, RepositoryDocument
from orgpulse.storage.mongo import DocumentStore
from orgpulse.storage.sink import PersistenceError, PersistenceSink


class TestPersistenceSink:
    """Test PersistenceSink class."""

    @pytest.mark.asyncio
    async def test_upsert_repositories(self, document_store: DocumentStore) -> None:
        sink = PersistenceSink(document_store)
        docs = [
            RepositoryDocument(org="acme", name="a", stars=3),
            RepositoryDocument(org="acme", name="b", stars=1),
        ]

        result = await sink.upsert_repositories(docs)
        await sink.upsert_repositories(docs)

        assert result.upserted == 2
        assert [s.name for s in document_store.repository_summaries("acme")] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_upsert_issues_keyed_by_repo_and_number(
        self, document_store: DocumentStore
    ) -> None:
        sink = PersistenceSink(document_store)
        created = datetime(2024, 6, 1, tzinfo=timezone.utc)
        issue = IssueDocument(
            repo="acme/a", number=1, title="Bug", state="open", created_at=created
        )

        await sink.upsert_issues([issue])
        await sink.upsert_issues([issue.model_copy(update={"state": "closed"})])

        assert document_store.count_issues("acme/a") == 1
        stored = document_store.db["issues"].find_one({"repo": "acme/a", "number": 1})
        assert stored["state"] == "closed"

    @pytest.mark.asyncio
    async def test_empty_page_skips_write(self) -> None:
        store = Mock(spec=DocumentStore)
        result = await PersistenceSink(store).upsert_issues([])

        assert result.upserted == 0
        store.upsert_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_raises_persistence_error(self) -> None:
        """Database errors surface as PersistenceError."""
        store = Mock(spec=DocumentStore)
        store.upsert_many.side_effect = AutoReconnect("connection lost")

        with pytest.raises(PersistenceError, match="connection lost"):
            await PersistenceSink(store).upsert_repositories(
                [RepositoryDocument(org="acme", name="a")]
            )
