"""Date string helpers shared by the normalizer, projector and archival policy.

Notion dates arrive as ISO strings that are either date-only
(`2024-10-15`) or carry a time of day (`2024-10-15T10:00:00.000+02:00`).
Once parsed the two are ambiguous, so time presence is always decided on the
raw string.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Optional

TIME_PATTERN = re.compile(r'\d{2}:\d{2}(?::\d{2})?')


def has_time(value: Optional[str]) -> bool:
    """Return True if the raw date string carries a time of day (HH:MM[:SS])."""
    return bool(value) and TIME_PATTERN.search(value) is not None


def parse_date(value: str) -> date:
    """Parse the calendar date part of a Notion date string."""
    return date.fromisoformat(value[:10])


def parse_instant(value: str) -> datetime:
    """Parse a Notion or Google date string into an aware UTC datetime.

    Date-only values resolve to midnight UTC; naive timestamps are taken as UTC.
    """
    if not has_time(value):
        return datetime.combine(parse_date(value), time.min, tzinfo=timezone.utc)
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_utc(dt: datetime) -> str:
    """Format an aware datetime as an RFC3339 UTC timestamp with a Z suffix."""
    return dt.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')
