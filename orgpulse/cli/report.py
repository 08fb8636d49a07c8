"""CLI commands for organization analysis and filtered repository reports."""

import csv
import io
import json
from pathlib import Path
from typing import Any

import typer
from pymongo.errors import PyMongoError
from rich.console import Console
from rich.table import Table

from ..storage.analysis import (
    UNKNOWN_LANGUAGE,
    OrgAnalysis,
    RepositoryHighlight,
    analyze_repositories,
)
from ..storage.mongo import RepositoryQuery
from .db import connect_store, load_config
from .options import (
    FILTER_FORKS_OPTION,
    FILTER_STARS_OPTION,
    LANG_OPTION,
    MATCH_ANY_OPTION,
    ORG_ARGUMENT,
    OUTPUT_OPTION,
    REPORT_FORMAT_OPTION,
    SORT_OPTION,
    TOP_OPTION,
)

console = Console()

REPORT_FORMATS = ["console", "json", "csv"]
GITHUB_URL = "https://github.com"


def resolve_output(format: str, output: Path | None) -> Path | None:
    """Validate ``format`` and return the file to write, if any.

    The format's extension is appended when ``output`` lacks it.
    """
    if format not in REPORT_FORMATS:
        console.print(
            f"❌ Error: Unsupported format '{format}'. "
            f"Use one of: {', '.join(REPORT_FORMATS)}."
        )
        raise typer.Exit(1)
    if format == "console":
        return None
    if output is None:
        console.print("❌ Error: --output is required when exporting")
        raise typer.Exit(1)
    if output.suffix != f".{format}":
        output = output.with_name(f"{output.name}.{format}")
    return output


def write_output(path: Path, content: str) -> None:
    try:
        with path.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        console.print(f"❌ Could not write {path}: {e}")
        raise typer.Exit(1)


def analyze(
    org: str = ORG_ARGUMENT,
    format: str = REPORT_FORMAT_OPTION,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Summarize an organization's stored repositories.

    Shows totals, average stars and forks, the language breakdown, and the
    most starred and most forked repositories.

    Examples:
        orgpulse analyze myorg
        orgpulse analyze myorg --format json --output analysis.json
    """
    path = resolve_output(format, output)
    config = load_config()
    console.print(f"🔍 Analyzing organization: {org}")
    try:
        with connect_store(config) as store:
            repos = store.repositories(org)
    except PyMongoError as e:
        console.print(f"❌ Analysis failed: {e}")
        raise typer.Exit(1)

    if not repos:
        console.print(f"⚠️  No repositories found for org {org}")
        return

    analysis = analyze_repositories(org, repos)
    if path is None:
        print_analysis(analysis)
        return

    if format == "json":
        content = analysis.model_dump_json(by_alias=True, indent=2)
    else:
        content = highlights_csv([_highlight_row(repo) for repo in repos])
    write_output(path, content)
    console.print(f"✅ Analysis exported to {path}")


def _highlight_row(repo: dict[str, Any]) -> list[Any]:
    return [
        repo["name"],
        repo.get("stars") or 0,
        repo.get("forks") or 0,
        repo.get("language") or UNKNOWN_LANGUAGE,
    ]


def highlights_csv(rows: list[list[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Repo", "Stars", "Forks", "Language"])
    writer.writerows(rows)
    return buffer.getvalue()


def print_analysis(analysis: OrgAnalysis) -> None:
    summary = analysis.summary
    summary_table = Table(title=f"Summary: {analysis.org}")
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", justify="right", style="green")
    summary_table.add_row("Total Repos", str(summary.total_repos))
    summary_table.add_row("Total Stars", str(summary.total_stars))
    summary_table.add_row("Total Forks", str(summary.total_forks))
    summary_table.add_row("Avg Stars per Repo", str(summary.avg_stars))
    summary_table.add_row("Avg Forks per Repo", str(summary.avg_forks))
    console.print(summary_table)

    language_table = Table(title="Language Breakdown")
    language_table.add_column("Language", style="cyan")
    language_table.add_column("Repo Count", justify="right", style="green")
    for language, count in analysis.language_breakdown.items():
        language_table.add_row(language, str(count))
    console.print(language_table)

    top_table = Table(title="Top Repos")
    top_table.add_column("", style="white")
    top_table.add_column("Repo", style="cyan")
    top_table.add_column("Stars", justify="right", style="yellow")
    top_table.add_column("Forks", justify="right", style="green")
    top_table.add_column("Language", style="white")
    tops: list[tuple[str, RepositoryHighlight | None]] = [
        ("Most stars", analysis.top_repos.by_stars),
        ("Most forks", analysis.top_repos.by_forks),
    ]
    for label, repo in tops:
        if repo is not None:
            top_table.add_row(
                label, repo.name, str(repo.stars), str(repo.forks), repo.language
            )
    console.print(top_table)


def report(
    org: str = ORG_ARGUMENT,
    top: int | None = TOP_OPTION,
    filter_stars: int | None = FILTER_STARS_OPTION,
    filter_forks: int | None = FILTER_FORKS_OPTION,
    lang: str | None = LANG_OPTION,
    match_any: bool = MATCH_ANY_OPTION,
    sort: list[str] | None = SORT_OPTION,
    format: str = REPORT_FORMAT_OPTION,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Report stored repositories with filters, ordering and a limit.

    Filters combine with AND unless --or is given.

    Examples:
        orgpulse report myorg --top 10
        orgpulse report myorg --filter-stars 100 --lang python
        orgpulse report myorg --filter-stars 100 --filter-forks 50 --or
        orgpulse report myorg --sort forks --sort stars --format csv --output repos
    """
    path = resolve_output(format, output)
    query_args: dict[str, Any] = {
        "min_stars": filter_stars,
        "min_forks": filter_forks,
        "language": lang,
        "match_any": match_any,
        "limit": top,
    }
    if sort:
        query_args["sort"] = sort
    query = RepositoryQuery(**query_args)

    config = load_config()
    console.print(f"📊 Generating report for: {org}")
    try:
        with connect_store(config) as store:
            repos = store.find_repositories(org, query)
    except ValueError as e:
        console.print(f"❌ Error: {e}")
        raise typer.Exit(1)
    except PyMongoError as e:
        console.print(f"❌ Report failed: {e}")
        raise typer.Exit(1)

    if not repos:
        console.print(f"⚠️  No repositories of {org} match the filters")
        return

    rows = [report_row(org, repo) for repo in repos]
    if path is None:
        table = Table(title=f"{org} repositories ({len(rows)})")
        table.add_column("Repo", style="cyan")
        table.add_column("Stars", justify="right", style="yellow")
        table.add_column("Forks", justify="right", style="green")
        table.add_column("Language", style="white")
        for row in rows:
            table.add_row(row["name"], str(row["stars"]), str(row["forks"]), row["language"])
        console.print(table)
        return

    if format == "json":
        content = json.dumps(rows, indent=2, ensure_ascii=False)
    else:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(["Repo", "Stars", "Forks", "Language", "URL"])
        for row in rows:
            writer.writerow(
                [row["name"], row["stars"], row["forks"], row["language"], row["url"]]
            )
        content = buffer.getvalue()
    write_output(path, content)
    console.print(f"✅ Report exported to {path}")


def report_row(org: str, repo: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": repo["name"],
        "stars": repo.get("stars") or 0,
        "forks": repo.get("forks") or 0,
        "language": repo.get("language") or UNKNOWN_LANGUAGE,
        "url": f"{GITHUB_URL}/{org}/{repo['name']}",
    }
