"""Timestamp helpers shared by the store and the smart-group engine."""

from __future__ import annotations

from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Naive UTC ``datetime``, comparable with SQLite's ``datetime('now')``."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp(value: datetime | None = None) -> str:
    return (value or utc_now()).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp, returning ``None`` when it is missing or malformed."""
    if not value:
        return None
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return None
