"""Date parsing for the --since option."""

import re
from datetime import datetime, timedelta, timezone

import typer

RELATIVE_PATTERN = re.compile(r"^(\d+)([dwm])$")


def parse_date_input(date_str: str) -> datetime:
    """Parse various date formats into UTC datetimes.

    Supports:
    - ISO dates: 2024-01-01, 2024-01-01T10:00:00Z
    - Common formats: January 1, 2024, Jan 1 2024

    Naive inputs are taken as UTC, since GitHub reports every timestamp
    in UTC.

    Args:
        date_str: Date string to parse

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If date format is not recognized
    """
    formats = [
        "%Y-%m-%d",  # 2024-01-01
        "%Y-%m-%dT%H:%M:%SZ",  # 2024-01-01T10:00:00Z
        "%Y-%m-%dT%H:%M:%S",  # 2024-01-01T10:00:00
        "%B %d, %Y",  # January 1, 2024
        "%b %d, %Y",  # Jan 1, 2024
        "%B %d %Y",  # January 1 2024
        "%b %d %Y",  # Jan 1 2024
        "%Y/%m/%d",  # 2024/01/01
        "%m/%d/%Y",  # 01/31/2024
    ]

    value = date_str.strip()
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise ValueError(
        f"Unable to parse date '{date_str}'. "
        f"Supported formats include: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SSZ, "
        f"'January 1, 2024', 'Jan 1 2024', MM/DD/YYYY, or 7d/2w/3m"
    )


def relative_date_to_absolute(amount: int, unit: str, now: datetime | None = None) -> datetime:
    """Convert "N days/weeks/months ago" to an absolute UTC datetime.

    Months are approximated as 30 days.
    """
    if amount <= 0:
        raise ValueError("Relative dates must be a positive number")
    now = now or datetime.now(timezone.utc)
    days = {"d": 1, "w": 7, "m": 30}[unit]
    return now - timedelta(days=amount * days)


def parse_since(value: str | None, now: datetime | None = None) -> datetime | None:
    """Parse a --since value, absolute (2024-01-01) or relative (30d).

    Raises:
        ValueError: If the value is not a recognized date
    """
    if value is None or not value.strip():
        return None

    match = RELATIVE_PATTERN.match(value.strip().lower())
    if match:
        return relative_date_to_absolute(int(match.group(1)), match.group(2), now)

    since = parse_date_input(value)
    if since > (now or datetime.now(timezone.utc)):
        typer.echo(
            f"Warning: --since date {since.strftime('%Y-%m-%d')} is in the future",
            err=True,
        )
    return since


def format_datetime(dt: datetime | None) -> str:
    """Short human-readable UTC timestamp, or "-" when missing."""
    if dt is None:
        return "-"
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M")
