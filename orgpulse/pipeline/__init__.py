"""Fetch pipeline: pagination, bounded concurrency, and batch scheduling."""

from .batch import BatchResult, BatchScheduler, BatchSummary
from .fetch import FetchAbortedError, FetchPipeline, FetchReport, RepositoryFailure
from .limiter import ConcurrencyLimiter
from .paginator import Paginator, PaginatorState

__all__ = [
    "BatchResult",
    "BatchScheduler",
    "BatchSummary",
    "ConcurrencyLimiter",
    "FetchAbortedError",
    "FetchPipeline",
    "FetchReport",
    "Paginator",
    "PaginatorState",
    "RepositoryFailure",
]
