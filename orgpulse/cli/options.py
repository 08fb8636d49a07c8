"""Standardized CLI option definitions for consistent shorthand mappings.

Shared options live here so every command spells them the same way.
"""

import typer

# Core options
ORG_ARGUMENT = typer.Argument(..., help="GitHub organization name")
ORG_OPTION = typer.Option(..., "--org", "-o", help="GitHub organization name")

TOKEN_OPTION = typer.Option(
    None, "--token", "-t", help="GitHub API token (defaults to GITHUB_TOKEN env var)"
)

# Fetch options
SINCE_OPTION = typer.Option(
    None,
    "--since",
    "-s",
    help="Only repos pushed / issues created since this date (YYYY-MM-DD or 30d, 2w, 3m)",
)

CONCURRENCY_OPTION = typer.Option(
    3, "--concurrency", "-c", min=1, help="Repositories fetched concurrently"
)

CHECKPOINT_FILE_OPTION = typer.Option(
    None,
    "--checkpoint-file",
    help="Checkpoint location (defaults to ORGPULSE_CHECKPOINT_FILE or ./checkpoint.json)",
)

# Read-side options
METRIC_OPTION = typer.Option(
    "stars", "--metric", "-m", help="Metric to sort by: stars, issues, or forks"
)

LIMIT_OPTION = typer.Option(10, "--limit", "-l", min=1, help="Number of repos to display")

OUT_OPTION = typer.Option(..., "--out", help="Output file path")

FORMAT_OPTION = typer.Option("csv", "--format", "-f", help="Export format: csv or json")

# Report options
REPORT_FORMAT_OPTION = typer.Option(
    "console", "--format", "-f", help="Output format: console, json, or csv"
)

OUTPUT_OPTION = typer.Option(
    None, "--output", help="File to write (required unless --format console)"
)

TOP_OPTION = typer.Option(None, "--top", min=1, help="Limit the number of repos")

FILTER_STARS_OPTION = typer.Option(
    None, "--filter-stars", min=0, help="Only repos with at least this many stars"
)

FILTER_FORKS_OPTION = typer.Option(
    None, "--filter-forks", min=0, help="Only repos with at least this many forks"
)

LANG_OPTION = typer.Option(
    None, "--lang", help="Only repos with this primary language (case-insensitive)"
)

MATCH_ANY_OPTION = typer.Option(
    False, "--or", help="Keep repos matching any filter instead of all of them"
)

SORT_OPTION = typer.Option(
    None,
    "--sort",
    help="Sort descending by stars or forks; repeat for tie-breakers (default: stars)",
)
