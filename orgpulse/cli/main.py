"""Main CLI entry point."""

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .db import init
from .fetch import fetch, status
from .report import analyze, report
from .repos import export, sync_stars, top

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="orgpulse",
    help="Fetch GitHub organization repositories and issues into MongoDB",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich; DEBUG with --verbose, else INFO."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
) -> None:
    """OrgPulse: GitHub organization analytics."""
    setup_logging(verbose)


# All commands support -h shorthand via context_settings
app.command(name="init", context_settings={"help_option_names": ["-h", "--help"]})(
    init
)
app.command(name="fetch", context_settings={"help_option_names": ["-h", "--help"]})(
    fetch
)
app.command(name="status", context_settings={"help_option_names": ["-h", "--help"]})(
    status
)
app.command(name="top", context_settings={"help_option_names": ["-h", "--help"]})(top)
app.command(name="export", context_settings={"help_option_names": ["-h", "--help"]})(
    export
)
app.command(name="analyze", context_settings={"help_option_names": ["-h", "--help"]})(
    analyze
)
app.command(name="report", context_settings={"help_option_names": ["-h", "--help"]})(
    report
)
app.command(
    name="sync-stars", context_settings={"help_option_names": ["-h", "--help"]}
)(sync_stars)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from orgpulse import __version__

    console.print(f"OrgPulse v{__version__}")


if __name__ == "__main__":
    app()
