"""UTC timestamp helpers shared by the database layer and the scorers."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """Format a datetime the way SQLite's CURRENT_TIMESTAMP does (UTC, no offset)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(DB_TIMESTAMP_FORMAT)


def parse_timestamp(value: str | date | datetime) -> datetime:
    """Parse a stored or ISO-8601 timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC, matching CURRENT_TIMESTAMP. A bare
    date (as YAML loads ``2026-03-14``) means midnight UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_date(value: str | date | datetime) -> date:
    """Calendar day of a date, datetime, or date/timestamp string (UTC)."""
    if isinstance(value, datetime):
        return parse_timestamp(value).date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_timestamp(text).date()


def hours_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 3600.0


def hours_ago(hours: float, now: datetime | None = None) -> str:
    """DB-formatted cutoff timestamp ``hours`` before ``now``."""
    return to_db_timestamp((now or utc_now()) - timedelta(hours=hours))
