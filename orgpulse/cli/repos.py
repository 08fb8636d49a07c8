"""CLI commands that read or refresh stored repositories."""

import csv
import io
import json
from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from pymongo.errors import PyMongoError
from rich.console import Console
from rich.table import Table

from ..github_client.errors import GitHubAPIError, RepositoryNotAccessibleError
from ..github_client.stats import RepositoryStatsClient
from ..utils.date_parser import format_datetime
from .db import connect_store, load_config
from .options import (
    FORMAT_OPTION,
    LIMIT_OPTION,
    METRIC_OPTION,
    ORG_OPTION,
    OUT_OPTION,
    TOKEN_OPTION,
)

console = Console()

EXPORT_FIELDS = ["name", "stars", "forks", "open_issues", "pushed_at", "language"]


def top(
    org: str = ORG_OPTION,
    metric: str = METRIC_OPTION,
    limit: int = LIMIT_OPTION,
) -> None:
    """Show the top stored repositories of an organization.

    Examples:
        orgpulse top --org myorg
        orgpulse top --org myorg --metric issues --limit 20
    """
    config = load_config()
    try:
        with connect_store(config) as store:
            repos = store.top_repositories(org, metric, limit)
    except ValueError as e:
        console.print(f"❌ Error: {e}")
        raise typer.Exit(1)
    except PyMongoError as e:
        console.print(f"❌ Error fetching top repos: {e}")
        raise typer.Exit(1)

    if not repos:
        console.print(f"⚠️  No repositories found for org {org}")
        return

    table = Table(title=f"Top {len(repos)} {org} repositories by {metric}")
    table.add_column("Name", style="cyan")
    table.add_column("Stars", justify="right", style="yellow")
    table.add_column("Forks", justify="right", style="green")
    table.add_column("Open Issues", justify="right", style="magenta")
    table.add_column("Language", style="white")
    table.add_column("Last Push", style="white")
    for repo in repos:
        table.add_row(
            repo["name"],
            str(repo.get("stars", 0)),
            str(repo.get("forks", 0)),
            str(repo.get("open_issues", 0)),
            repo.get("language") or "-",
            format_datetime(repo.get("pushed_at")),
        )
    console.print(table)


def export(
    org: str = ORG_OPTION,
    out: Path = OUT_OPTION,
    format: str = FORMAT_OPTION,
) -> None:
    """Export stored repositories, most starred first.

    Supported formats:
    - csv: name, stars, forks, open_issues, pushed_at, language
    - json: every stored field

    Examples:
        orgpulse export --org myorg --out repos.csv
        orgpulse export --org myorg --out repos.json --format json
    """
    if format not in ["csv", "json"]:
        console.print(f"❌ Error: Unsupported format '{format}'. Use 'csv' or 'json'.")
        raise typer.Exit(1)

    config = load_config()
    console.print(f"🔍 Exporting {org} repos to {out}...")
    try:
        with connect_store(config) as store:
            repos = store.repositories(org)
    except PyMongoError as e:
        console.print(f"❌ Export failed: {e}")
        raise typer.Exit(1)

    if not repos:
        console.print(f"⚠️  No repositories found for org {org}")
        return

    content = export_csv(repos) if format == "csv" else export_json(org, repos)
    try:
        with out.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        console.print(f"❌ Could not write {out}: {e}")
        raise typer.Exit(1)
    console.print(f"✅ Exported {len(repos)} repositories to {out}")


def export_csv(repos: list[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_FIELDS)
    for repo in repos:
        pushed_at = repo.get("pushed_at")
        writer.writerow(
            [
                (repo.get("name") or "").strip(),
                repo.get("stars") or 0,
                repo.get("forks") or 0,
                repo.get("open_issues") or 0,
                pushed_at.isoformat() if isinstance(pushed_at, datetime) else "",
                (repo.get("language") or "").strip(),
            ]
        )
    return buffer.getvalue()


def export_json(org: str, repos: list[dict[str, Any]]) -> str:
    """Pretty JSON with an export header; datetimes become ISO strings."""
    export_data = {
        "export_info": {
            "organization": org,
            "total_repositories": len(repos),
            "export_timestamp": datetime.now().isoformat(),
        },
        "repositories": repos,
    }
    return json.dumps(export_data, indent=2, ensure_ascii=False, default=_json_default)


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def sync_stars(
    org: str = ORG_OPTION,
    token: str | None = TOKEN_OPTION,
) -> None:
    """Refresh stars, forks, and open issues for already stored repositories."""
    config = load_config()
    stats_client = RepositoryStatsClient(token or config.github_token)

    changes = Table(title=f"{org} repositories refreshed")
    changes.add_column("Name", style="cyan")
    changes.add_column("Stars", justify="right", style="yellow")
    changes.add_column("Forks", justify="right", style="green")

    updated = 0
    failed: list[str] = []
    try:
        with connect_store(config) as store:
            repos = store.repositories(org)
            if not repos:
                console.print(f"⚠️  No repositories found for org {org}")
                return

            console.print(f"🔄 Refreshing stars/forks for {len(repos)} {org} repos...")
            for repo in repos:
                name = repo["name"]
                try:
                    stats = stats_client.get_stats(org, name)
                except RepositoryNotAccessibleError as e:
                    console.print(f"⚠️  {e}, skipping")
                    failed.append(name)
                    continue
                except GitHubAPIError as e:
                    console.print(f"❌ {name}: {e}")
                    failed.append(name)
                    continue

                store.update_repository_stats(
                    org, name, stats.model_dump(exclude_none=True)
                )
                updated += 1
                changes.add_row(
                    name,
                    f"{repo.get('stars', 0)} → {stats.stars}",
                    f"{repo.get('forks', 0)} → {stats.forks}",
                )
    except PyMongoError as e:
        console.print(f"❌ Error syncing stars/forks: {e}")
        raise typer.Exit(1)
    finally:
        stats_client.close()

    console.print(changes)
    console.print(f"✅ Updated {updated} repositories")
    if failed:
        console.print(f"⚠️  {len(failed)} repositories could not be refreshed")
        raise typer.Exit(1)
