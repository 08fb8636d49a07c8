"""Storage package: checkpoints and the MongoDB document store."""

from .analysis import OrgAnalysis, analyze_repositories
from .checkpoint import BatchProgress, CheckpointStore, CursorProgress, FetchCheckpoint
from .mongo import DocumentStore, RepositoryQuery, UpsertResult
from .sink import PersistenceError, PersistenceSink

__all__ = [
    "BatchProgress",
    "CheckpointStore",
    "CursorProgress",
    "DocumentStore",
    "FetchCheckpoint",
    "OrgAnalysis",
    "PersistenceError",
    "PersistenceSink",
    "RepositoryQuery",
    "UpsertResult",
    "analyze_repositories",
]
