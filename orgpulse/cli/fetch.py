"""CLI commands for fetching an organization and inspecting fetch progress."""

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path

import httpx
import typer
from pymongo.errors import PyMongoError
from rich.console import Console
from rich.table import Table

from ..config import FetchSettings, OrgPulseConfig
from ..github_client.client import GitHubAPIClient
from ..github_client.errors import GitHubAPIError
from ..github_client.fetcher import GitHubFetcher
from ..pipeline.fetch import FetchAbortedError, FetchPipeline, FetchReport
from ..storage.checkpoint import CheckpointStore, FetchCheckpoint
from ..storage.mongo import DocumentStore
from ..storage.sink import PersistenceSink
from ..utils.date_parser import parse_since
from .db import connect_store, load_config
from .options import (
    CHECKPOINT_FILE_OPTION,
    CONCURRENCY_OPTION,
    ORG_ARGUMENT,
    SINCE_OPTION,
    TOKEN_OPTION,
)

logger = logging.getLogger(__name__)
console = Console()


async def run_fetch(
    org: str,
    since: datetime | None,
    token: str | None,
    store: DocumentStore,
    checkpoints: CheckpointStore,
    settings: FetchSettings,
) -> FetchReport:
    """Run the fetch pipeline with a client scoped to this run."""
    async with GitHubAPIClient(
        token, max_retries=settings.max_retries, timeout=settings.request_timeout
    ) as client:
        fetcher = GitHubFetcher(client)
        await log_rate_limit(fetcher)
        pipeline = FetchPipeline(
            fetcher, PersistenceSink(store), store, checkpoints, settings
        )
        return await pipeline.run(org, since)


async def log_rate_limit(fetcher: GitHubFetcher) -> None:
    """Log the remaining quota; a failed lookup only costs the log line."""
    try:
        info = await fetcher.rate_limit_status()
    except (GitHubAPIError, httpx.TransportError) as e:
        logger.warning("Could not read rate limit status: %s", e)
        return
    if info is None or info.remaining is None:
        return
    reset = info.reset_at.strftime("%H:%M:%S") if info.reset_at else "?"
    logger.info(
        "Rate limit: %d/%s requests remaining (resets at %s)",
        info.remaining,
        info.limit if info.limit is not None else "?",
        reset,
    )


def fetch(
    org: str = ORG_ARGUMENT,
    since: str | None = SINCE_OPTION,
    concurrency: int = CONCURRENCY_OPTION,
    checkpoint_file: Path | None = CHECKPOINT_FILE_OPTION,
    token: str | None = TOKEN_OPTION,
) -> None:
    """Fetch repositories and issues for an organization into MongoDB.

    Progress is checkpointed after every stored page. If a run is
    interrupted or some repositories fail, re-run the same command within
    an hour to resume where it stopped.

    Examples:
        orgpulse fetch myorg
        orgpulse fetch myorg --since 2024-01-01
        orgpulse fetch myorg --since 30d --concurrency 2
    """
    try:
        since_dt = parse_since(since)
    except ValueError as e:
        console.print(f"❌ Date validation error: {e}")
        raise typer.Exit(1)

    config = load_config()
    token = token or config.github_token
    if not token:
        console.print("⚠️  No GITHUB_TOKEN set, GitHub allows only 60 requests per hour")

    settings = FetchSettings(concurrency=concurrency)
    checkpoints = CheckpointStore(
        checkpoint_file or config.checkpoint_path,
        max_age=settings.checkpoint_max_age,
    )

    params_table = Table(title="Fetch Parameters")
    params_table.add_column("Parameter", style="cyan")
    params_table.add_column("Value", style="green")
    params_table.add_row("Organization", org)
    params_table.add_row("Since", since_dt.strftime("%Y-%m-%d") if since_dt else "All time")
    params_table.add_row("Concurrency", str(settings.concurrency))
    params_table.add_row("Checkpoint", str(checkpoints.path))
    console.print(params_table)

    console.print(f"👉 Fetching {org}...")
    try:
        with connect_store(config) as store:
            report = asyncio.run(
                run_fetch(org, since_dt, token, store, checkpoints, settings)
            )
    except FetchAbortedError as e:
        print_report(e.report)
        console.print(f"❌ Fetch failed: {e}")
        console.print("💾 Checkpoint saved, re-run the same command to resume")
        raise typer.Exit(1)
    except PyMongoError as e:
        console.print(f"❌ Database error: {e}")
        console.print("💾 Checkpoint saved, re-run the same command to resume")
        raise typer.Exit(1)

    print_report(report)
    if not report.succeeded:
        failures_table = Table(title="Failed Repositories")
        failures_table.add_column("Repository", style="cyan")
        failures_table.add_column("Error", style="red")
        for failure in report.failures:
            failures_table.add_row(failure.name, failure.error[:100])
        console.print(failures_table)
        console.print(
            f"⚠️  {len(report.failures)} repositories failed; "
            "re-run the same command to resume"
        )
        raise typer.Exit(1)

    console.print(
        f"🎉 Fetch completed: {report.repositories_fetched} repos, "
        f"{report.issues_fetched} issues"
    )


def print_report(report: FetchReport) -> None:
    table = Table(title=f"Fetch Summary: {report.org}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Resumed", "yes" if report.resumed else "no")
    table.add_row("Repositories stored", str(report.repositories_fetched))
    table.add_row("Repositories processed", str(report.repositories_processed))
    table.add_row("Repositories skipped", str(report.repositories_skipped))
    table.add_row("Issues stored", str(report.issues_fetched))
    table.add_row("Failures", str(len(report.failures)))
    console.print(table)


def status(checkpoint_file: Path | None = CHECKPOINT_FILE_OPTION) -> None:
    """Show the current fetch checkpoint, if any."""
    config = OrgPulseConfig()
    store = CheckpointStore(checkpoint_file or config.checkpoint_path)
    checkpoint = store.load()

    if checkpoint is None:
        console.print(f"No fetch in progress (no checkpoint at {store.path})")
        return

    console.print(checkpoint_table(checkpoint, store))


def checkpoint_table(checkpoint: FetchCheckpoint, store: CheckpointStore) -> Table:
    table = Table(title="Fetch Checkpoint")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Organization", checkpoint.org)
    table.add_row(
        "Repositories",
        f"{checkpoint.repos.count}"
        + (" (complete)" if checkpoint.repos.complete else ""),
    )
    table.add_row("Last page", str(checkpoint.last_page))

    complete = sum(1 for p in checkpoint.issues.values() if p.complete)
    issues = sum(p.count for p in checkpoint.issues.values())
    table.add_row(
        "Issue streams", f"{complete}/{len(checkpoint.issues)} complete, {issues} issues"
    )
    if checkpoint.progress is not None:
        table.add_row(
            "Batches",
            f"{checkpoint.progress.batches_completed}/{checkpoint.progress.total_batches}",
        )
    table.add_row("Last updated", checkpoint.last_updated or "-")

    age = checkpoint.age_seconds(time.time())
    if age is not None:
        resumable = "resumable" if age < store.max_age else "stale, will restart"
        table.add_row("Age", f"{age / 60:.0f} min ({resumable})")
    return table
