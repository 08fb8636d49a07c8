"""Async persistence adapter between the paginator and the document store."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel
from pymongo.errors import PyMongoError

from ..github_client.models import IssueDocument, RepositoryDocument
from .mongo import (
    ISSUE_KEY_FIELDS,
    ISSUES_COLLECTION,
    REPO_KEY_FIELDS,
    REPOS_COLLECTION,
    DocumentStore,
    UpsertResult,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A page could not be written; its cursor must not advance."""


class PersistenceSink:
    """Upserts fetched pages keyed by natural identity.

    Writes run in a worker thread so the event loop keeps serving other
    repositories while MongoDB acknowledges.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def upsert_repositories(
        self, repositories: Sequence[RepositoryDocument]
    ) -> UpsertResult:
        return await self._upsert(REPOS_COLLECTION, repositories, REPO_KEY_FIELDS)

    async def upsert_issues(self, issues: Sequence[IssueDocument]) -> UpsertResult:
        return await self._upsert(ISSUES_COLLECTION, issues, ISSUE_KEY_FIELDS)

    async def _upsert(
        self,
        collection: str,
        items: Sequence[BaseModel],
        key_fields: Sequence[str],
    ) -> UpsertResult:
        if not items:
            return UpsertResult()

        documents: list[dict[str, Any]] = [item.model_dump() for item in items]
        try:
            result = await asyncio.to_thread(
                self.store.upsert_many, collection, documents, key_fields
            )
        except PyMongoError as e:
            raise PersistenceError(
                f"Failed to upsert {len(documents)} documents into {collection}: {e}"
            ) from e

        logger.debug(
            "Upserted %d into %s (%d new, %d modified)",
            len(documents),
            collection,
            result.upserted,
            result.modified,
        )
        return result
