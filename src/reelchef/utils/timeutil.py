"""UTC timestamps stored as sortable text."""

from __future__ import annotations

from datetime import datetime, timezone

# Fixed width so that string order equals time order in SQL comparisons
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(dt: datetime) -> str:
    """Render an aware datetime as a fixed-width UTC string."""
    return dt.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
