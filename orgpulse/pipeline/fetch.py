"""Fetch orchestration: repositories first, then issues per repository."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from ..config import FetchSettings
from ..github_client.errors import GitHubAPIError, RepositoryNotAccessibleError
from ..github_client.fetcher import GitHubFetcher
from ..github_client.models import IssueDocument, RepositoryDocument, RepositorySummary
from ..storage.checkpoint import BatchProgress, CheckpointStore, FetchCheckpoint
from ..storage.mongo import DocumentStore
from ..storage.sink import PersistenceError, PersistenceSink
from .batch import BatchProgressEvent, BatchResult, BatchScheduler
from .limiter import ConcurrencyLimiter
from .paginator import Paginator

logger = logging.getLogger(__name__)


class RepositoryFailure(BaseModel):
    """A repository whose issues could not be fetched."""

    name: str
    error: str


class FetchReport(BaseModel):
    """Outcome of one fetch run."""

    org: str
    repositories_fetched: int = 0
    issues_fetched: int = 0
    repositories_processed: int = 0
    repositories_skipped: int = 0
    failures: list[RepositoryFailure] = Field(default_factory=list)
    resumed: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failures


class FetchAbortedError(Exception):
    """The run stopped early; the checkpoint is left for a resumed run."""

    def __init__(self, message: str, report: FetchReport):
        super().__init__(message)
        self.report = report


class FetchPipeline:
    """Fetches an organization's repositories and issues into MongoDB.

    Progress is checkpointed after every persisted page, so a run that is
    interrupted (or that loses some repositories to errors) can be resumed
    by running it again within the checkpoint's freshness window.
    """

    def __init__(
        self,
        fetcher: GitHubFetcher,
        sink: PersistenceSink,
        store: DocumentStore,
        checkpoints: CheckpointStore,
        settings: FetchSettings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.sink = sink
        self.store = store
        self.checkpoints = checkpoints
        self.settings = settings or FetchSettings()
        self._sleep = sleep

    async def run(self, org: str, since: datetime | None = None) -> FetchReport:
        """Fetch everything for ``org``, resuming a fresh checkpoint if present.

        Args:
            org: Organization login
            since: Only keep repositories pushed and issues created at or after this

        Returns:
            Report of the run; ``succeeded`` is False when some repositories failed

        Raises:
            FetchAbortedError: If the repository phase fails or a write fails
        """
        checkpoint, resumed = self.checkpoints.resume_or_start(org)
        report = FetchReport(org=org, resumed=resumed)

        try:
            report.repositories_fetched = await self.fetch_repositories(
                org, checkpoint, since
            )
        except (GitHubAPIError, httpx.TransportError, PersistenceError) as e:
            logger.error("Repository fetch for %s failed: %s", org, e)
            report.repositories_fetched = checkpoint.repos.count
            raise FetchAbortedError(f"Repository fetch failed: {e}", report) from e

        try:
            await self.fetch_issues(org, checkpoint, report, since)
        except PersistenceError as e:
            logger.error("Issue fetch for %s aborted: %s", org, e)
            raise FetchAbortedError(f"Issue fetch aborted: {e}", report) from e

        if report.succeeded:
            self.checkpoints.clear()
        else:
            logger.warning(
                "%d repositories failed; checkpoint kept for the next run",
                len(report.failures),
            )

        logger.info(
            "Fetch completed: %d repos, %d issues",
            report.repositories_fetched,
            report.issues_fetched,
        )
        return report

    async def fetch_repositories(
        self,
        org: str,
        checkpoint: FetchCheckpoint,
        since: datetime | None = None,
    ) -> int:
        """Page through the organization's repositories; returns the stored count."""
        logger.info("Fetching repositories for %s", org)
        first_page = checkpoint.last_page

        async def fetch_page(cursor: str | None):
            return await self.fetcher.fetch_repository_page(
                org, cursor, self.settings.repo_page_size
            )

        def on_checkpoint(page_number: int) -> None:
            checkpoint.last_page = first_page + page_number
            self.checkpoints.save(checkpoint)

        paginator: Paginator[RepositoryDocument] = Paginator(
            fetch_page,
            self.sink.upsert_repositories,
            checkpoint.repos,
            on_checkpoint,
            since=since,
            activity_time=lambda repo: repo.pushed_at,
            page_size=self.settings.repo_page_size,
            page_delay=self.settings.repo_page_delay,
            sleep=self._sleep,
            label=f"{org} repositories",
        )
        count = await paginator.run()
        logger.info("Total repositories stored: %d", count)
        return count

    async def fetch_issues(
        self,
        org: str,
        checkpoint: FetchCheckpoint,
        report: FetchReport,
        since: datetime | None = None,
    ) -> FetchReport:
        """Fetch issues for every stored repository of ``org``, in batches."""
        try:
            summaries = await asyncio.to_thread(self.store.repository_summaries, org)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to read repositories for {org}: {e}") from e
        if not summaries:
            logger.warning("No repositories stored for %s", org)
            return report

        pending: list[RepositorySummary] = []
        for summary in summaries:
            progress = checkpoint.issues.get(summary.name)
            if progress is not None and progress.complete:
                report.repositories_skipped += 1
                report.issues_fetched += progress.count
            else:
                pending.append(summary)

        logger.info(
            "Found %d repositories (%d to process, %d already complete)",
            len(summaries),
            len(pending),
            report.repositories_skipped,
        )
        if not pending:
            return report

        def on_progress(result: BatchResult[RepositorySummary]) -> None:
            report.repositories_processed += 1
            if result.succeeded:
                report.issues_fetched += result.value or 0
            else:
                report.failures.append(
                    RepositoryFailure(name=result.item.name, error=str(result.error))
                )

        def on_batch_complete(event: BatchProgressEvent) -> None:
            logger.info(
                "Progress: %d%%",
                round(event.batch_number / event.total_batches * 100),
            )
            checkpoint.progress = BatchProgress(
                batches_completed=event.batch_number,
                total_batches=event.total_batches,
            )
            self.checkpoints.save(checkpoint)

        scheduler = BatchScheduler(
            ConcurrencyLimiter(self.settings.concurrency),
            batch_size=min(self.settings.batch_size, len(pending)),
            sleep=self._sleep,
        )
        summary = await scheduler.process(
            pending,
            lambda repo, _index: self.fetch_repository_issues(org, repo, checkpoint, since),
            item_delay=self.settings.item_delay,
            batch_delay=self.settings.batch_delay,
            on_progress=on_progress,
            on_batch_complete=on_batch_complete,
            abort_on=(PersistenceError,),
        )

        logger.info(
            "Issue fetching complete: %d repos OK, %d failed, %d issues",
            summary.success_count,
            summary.error_count,
            report.issues_fetched,
        )
        return report

    async def fetch_repository_issues(
        self,
        org: str,
        repo: RepositorySummary,
        checkpoint: FetchCheckpoint,
        since: datetime | None = None,
    ) -> int:
        """Fetch one repository's issues; returns its accumulated issue count.

        An inaccessible repository counts as zero further issues rather than
        a failure.
        """
        logger.info("[%d stars] Fetching issues for %s", repo.stars, repo.key)
        progress = checkpoint.issue_progress(repo.name)

        async def fetch_page(cursor: str | None):
            return await self.fetcher.fetch_issue_page(
                org, repo.name, cursor, self.settings.issue_page_size
            )

        paginator: Paginator[IssueDocument] = Paginator(
            fetch_page,
            self.sink.upsert_issues,
            progress,
            lambda _page: self.checkpoints.save(checkpoint),
            since=since,
            activity_time=lambda issue: issue.created_at,
            page_size=self.settings.issue_page_size,
            max_pages=self.settings.issue_max_pages,
            checkpoint_every=self.settings.issue_checkpoint_every,
            stop_on_sparse_page=True,
            page_delay=self.settings.issue_page_delay,
            sleep=self._sleep,
            label=f"{repo.key} issues",
        )
        try:
            count = await paginator.run()
        except RepositoryNotAccessibleError:
            logger.warning("%s not accessible, recording no further issues", repo.key)
            progress.complete = True
            self.checkpoints.save(checkpoint)
            return progress.count

        logger.info("%d issues fetched for %s", count, repo.key)
        return count
