"""Metrics aggregation — reduce raw activity rows into counters and daily series."""

from __future__ import annotations

import json
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping

from bookmark_insights.analytics.models import TimeSeriesPoint
from bookmark_insights.db import Database
from bookmark_insights.monetization.models import CreatorMetrics
from bookmark_insights.utils.logger import get_logger
from bookmark_insights.utils.timeutil import hours_ago, parse_date, parse_timestamp, utc_now

logger = get_logger()


def bucket_by_day(
    rows: Iterable[Mapping[str, Any]],
    value_key: str | None = None,
    timestamp_key: str = "created_at",
) -> list[TimeSeriesPoint]:
    """Group rows by the UTC day of ``timestamp_key``.

    Without ``value_key`` each row counts as 1; otherwise its ``value_key``
    field is summed (missing or null counts as 0). Only days that have at
    least one row appear in the output, sorted ascending.
    """
    totals: dict[date, float] = {}
    for row in rows:
        day = parse_date(row[timestamp_key])
        amount = 1.0 if value_key is None else float(row.get(value_key) or 0)
        totals[day] = totals.get(day, 0.0) + amount
    return [TimeSeriesPoint(date=day, value=value) for day, value in sorted(totals.items())]


def pad_daily_series(
    points: list[TimeSeriesPoint],
    start: date | None = None,
    end: date | None = None,
) -> list[TimeSeriesPoint]:
    """Fill missing days between ``start`` and ``end`` with zero values."""
    if not points and (start is None or end is None):
        return []
    by_day = OrderedDict((p.date, p.value) for p in sorted(points, key=lambda p: p.date))
    first = start or next(iter(by_day))
    last = end or next(reversed(by_day))

    padded = []
    day = first
    while day <= last:
        padded.append(TimeSeriesPoint(date=day, value=by_day.get(day, 0.0)))
        day += timedelta(days=1)
    return padded


def _event_earnings(row) -> float:
    raw = row["metadata"]
    if not raw:
        return 0.0
    try:
        metadata = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Skipping event with unreadable metadata: %r", raw)
        return 0.0
    return float(metadata.get("estimated_earnings") or 0)


class MetricsAggregator:
    """Build creator counters and daily series from the database."""

    def __init__(self, db: Database):
        self.db = db

    def creator_metrics(self, user_id: str, now: datetime | None = None) -> CreatorMetrics:
        """Snapshot of a creator's counters, always computed fresh."""
        now = now or utc_now()
        bookmarks = self.db.get_user_bookmarks(user_id)
        profile = self.db.get_profile(user_id)

        account_age_days = 0
        if profile is not None and profile["created_at"]:
            account_age_days = max(0, (now - parse_timestamp(profile["created_at"])).days)

        return CreatorMetrics(
            total_followers=self.db.count_followers(user_id),
            total_bookmarks=len(bookmarks),
            total_collections=self.db.count("collections", "user_id = ?", (user_id,)),
            total_views=sum(b["click_count"] or 0 for b in bookmarks),
            total_likes=sum(b["like_count"] or 0 for b in bookmarks),
            total_comments=self.db.count("comments", "user_id = ?", (user_id,)),
            account_age_days=account_age_days,
        )

    def daily_bookmark_counts(self, user_id: str) -> list[TimeSeriesPoint]:
        return bucket_by_day(dict(row) for row in self.db.get_user_bookmarks(user_id))

    def daily_affiliate_earnings(
        self, user_id: str, days: int = 90, now: datetime | None = None
    ) -> list[TimeSeriesPoint]:
        events = self.db.get_events(user_id, "affiliate_click", since=hours_ago(days * 24, now))
        rows = [{"created_at": e["created_at"], "earnings": _event_earnings(e)} for e in events]
        return bucket_by_day(rows, value_key="earnings")

    def daily_views(self, user_id: str, days: int = 30, now: datetime | None = None) -> list[TimeSeriesPoint]:
        events = self.db.get_bookmark_views_for_owner(user_id, since=hours_ago(days * 24, now))
        return bucket_by_day(dict(row) for row in events)
