"""MongoDB document store for repositories and issues."""

import logging
import re
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient, UpdateOne
from pymongo.database import Database

from ..github_client.models import RepositorySummary

logger = logging.getLogger(__name__)

REPOS_COLLECTION = "repos"
ISSUES_COLLECTION = "issues"

REPO_KEY_FIELDS = ("org", "name")
ISSUE_KEY_FIELDS = ("repo", "number")

DEFAULT_CLIENT_OPTIONS: dict[str, Any] = {
    "maxPoolSize": 10,
    "connectTimeoutMS": 5000,
    "serverSelectionTimeoutMS": 5000,
    "retryWrites": True,
    "retryReads": True,
}

REPO_INDEXES = [
    IndexModel([("org", ASCENDING), ("name", ASCENDING)], name="org_name_unique", unique=True),
    IndexModel([("org", ASCENDING), ("stars", DESCENDING)], name="org_stars_desc"),
    IndexModel([("pushed_at", DESCENDING)], name="pushed_at_desc"),
    IndexModel([("topics", ASCENDING)], name="topics_search", sparse=True),
]

ISSUE_INDEXES = [
    IndexModel([("repo", ASCENDING), ("number", ASCENDING)], name="repo_number_unique", unique=True),
    IndexModel([("repo", ASCENDING), ("state", ASCENDING)], name="repo_state"),
    IndexModel([("created_at", DESCENDING)], name="created_at_desc"),
    IndexModel([("labels", ASCENDING)], name="labels_search", sparse=True),
]

TOP_METRIC_FIELDS = {"stars": "stars", "issues": "open_issues", "forks": "forks"}
REPORT_SORT_FIELDS = ("stars", "forks")


class UpsertResult(BaseModel):
    """Outcome of a keyed bulk upsert."""

    upserted: int = 0
    modified: int = 0
    matched: int = 0


class RepositoryQuery(BaseModel):
    """Filters, ordering and limit for a repository report.

    Unset (or zero) thresholds do not filter. With ``match_any`` a repository
    passes when any set filter matches; otherwise every set filter must.
    """

    min_stars: int | None = None
    min_forks: int | None = None
    language: str | None = None
    match_any: bool = False
    sort: list[str] = Field(default_factory=lambda: ["stars"])
    limit: int | None = Field(None, ge=1)

    def to_filter(self, org: str) -> dict[str, Any]:
        conditions: list[dict[str, Any]] = []
        if self.min_stars:
            conditions.append({"stars": {"$gte": self.min_stars}})
        if self.min_forks:
            conditions.append({"forks": {"$gte": self.min_forks}})
        if self.language:
            pattern = f"^{re.escape(self.language)}$"
            conditions.append({"language": {"$regex": pattern, "$options": "i"}})

        if not conditions:
            return {"org": org}
        return {"org": org, "$or" if self.match_any else "$and": conditions}

    def sort_keys(self) -> list[tuple[str, int]]:
        """Descending sort keys, validated against REPORT_SORT_FIELDS.

        Raises:
            ValueError: If a sort field is not supported
        """
        unknown = [field for field in self.sort if field not in REPORT_SORT_FIELDS]
        if unknown:
            raise ValueError(
                f"Unsupported sort field '{unknown[0]}'. "
                f"Use one of: {', '.join(REPORT_SORT_FIELDS)}"
            )
        keys = [(field, DESCENDING) for field in dict.fromkeys(self.sort)]
        return keys + [("name", ASCENDING)]


class DocumentStore:
    """Single shared MongoDB handle with an explicit open/close lifecycle.

    Use as a context manager so the connection is always released::

        with DocumentStore(uri) as store:
            store.upsert_many("repos", docs, ("org", "name"))
    """

    def __init__(
        self,
        uri: str,
        database: str = "orgpulse",
        client_factory: Callable[..., MongoClient] = MongoClient,
        **client_options: Any,
    ):
        """Initialize the store without connecting.

        Args:
            uri: MongoDB connection string
            database: Database name
            client_factory: MongoClient-compatible constructor
            **client_options: Overrides for DEFAULT_CLIENT_OPTIONS
        """
        self.uri = uri
        self.database_name = database
        self._client_factory = client_factory
        self._client_options = {**DEFAULT_CLIENT_OPTIONS, **client_options}
        self._client: MongoClient | None = None
        self._db: Database | None = None

    def open(self) -> "DocumentStore":
        if self._client is None:
            self._client = self._client_factory(self.uri, **self._client_options)
            self._db = self._client[self.database_name]
            logger.info("MongoDB connected (database %s)", self.database_name)
        return self

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB connection closed")

    def __enter__(self) -> "DocumentStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def db(self) -> Database:
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    def ping(self) -> None:
        self.db.command("ping")

    def create_indexes(self) -> list[str]:
        """Create the repo and issue indexes; safe to re-run."""
        names = self.db[REPOS_COLLECTION].create_indexes(REPO_INDEXES)
        names += self.db[ISSUES_COLLECTION].create_indexes(ISSUE_INDEXES)
        logger.info("Indexes ensured: %s", ", ".join(names))
        return names

    def upsert_many(
        self,
        collection: str,
        documents: Sequence[dict[str, Any]],
        key_fields: Sequence[str],
    ) -> UpsertResult:
        """Insert or update documents matched on ``key_fields``.

        Re-applying the same documents leaves the collection unchanged.
        """
        if not documents:
            return UpsertResult()

        operations = [
            UpdateOne(
                {field: doc[field] for field in key_fields},
                {"$set": doc},
                upsert=True,
            )
            for doc in documents
        ]
        result = self.db[collection].bulk_write(operations, ordered=False)
        return UpsertResult(
            upserted=result.upserted_count,
            modified=result.modified_count,
            matched=result.matched_count,
        )

    def repository_summaries(self, org: str) -> list[RepositorySummary]:
        """Stored repositories of ``org``, most starred (then forked) first."""
        cursor = (
            self.db[REPOS_COLLECTION]
            .find({"org": org}, {"_id": 0, "org": 1, "name": 1, "stars": 1, "forks": 1})
            .sort([("stars", DESCENDING), ("forks", DESCENDING)])
        )
        return [RepositorySummary.model_validate(doc) for doc in cursor]

    def repositories(self, org: str) -> list[dict[str, Any]]:
        """All stored repositories of ``org`` sorted by stars."""
        cursor = (
            self.db[REPOS_COLLECTION]
            .find({"org": org}, {"_id": 0})
            .sort("stars", DESCENDING)
        )
        return list(cursor)

    def find_repositories(self, org: str, query: RepositoryQuery) -> list[dict[str, Any]]:
        """Stored repositories of ``org`` matching ``query``, in its order.

        Raises:
            ValueError: If ``query`` sorts by an unsupported field
        """
        cursor = (
            self.db[REPOS_COLLECTION]
            .find(query.to_filter(org), {"_id": 0})
            .sort(query.sort_keys())
        )
        if query.limit:
            cursor = cursor.limit(query.limit)
        return list(cursor)

    def top_repositories(
        self, org: str, metric: str = "stars", limit: int = 10
    ) -> list[dict[str, Any]]:
        """Top ``limit`` repositories of ``org`` by ``metric``.

        Raises:
            ValueError: If ``metric`` is not one of TOP_METRIC_FIELDS
        """
        if metric not in TOP_METRIC_FIELDS:
            raise ValueError(
                f"Unsupported metric '{metric}'. "
                f"Use one of: {', '.join(TOP_METRIC_FIELDS)}"
            )
        cursor = (
            self.db[REPOS_COLLECTION]
            .find({"org": org}, {"_id": 0})
            .sort(TOP_METRIC_FIELDS[metric], DESCENDING)
            .limit(limit)
        )
        return list(cursor)

    def update_repository_stats(
        self, org: str, name: str, fields: dict[str, Any]
    ) -> bool:
        """Update counters of one stored repository; True if it existed."""
        result = self.db[REPOS_COLLECTION].update_one(
            {"org": org, "name": name}, {"$set": fields}
        )
        return result.matched_count > 0

    def count_issues(self, repo: str | None = None) -> int:
        query = {"repo": repo} if repo else {}
        return self.db[ISSUES_COLLECTION].count_documents(query)
