"""Tests for timestamp helpers."""

from datetime import date, datetime, timedelta, timezone

from bookmark_insights.utils.timeutil import hours_ago, parse_date, parse_timestamp, to_db_timestamp

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def test_parse_timestamp_formats():
    expected = datetime(2026, 3, 14, 6, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2026-03-14 06:00:00") == expected
    assert parse_timestamp("2026-03-14T06:00:00Z") == expected
    assert parse_timestamp("2026-03-14T08:00:00+02:00") == expected
    assert parse_timestamp(datetime(2026, 3, 14, 6, 0)) == expected


def test_parse_timestamp_bare_date_is_midnight_utc():
    parsed = parse_timestamp(date(2026, 3, 14))
    assert parsed == datetime(2026, 3, 14, tzinfo=timezone.utc)
    assert to_db_timestamp(parsed) == "2026-03-14 00:00:00"


def test_parse_date():
    assert parse_date("2026-03-14") == date(2026, 3, 14)
    assert parse_date("2026-03-14T23:30:00-02:00") == date(2026, 3, 15)
    assert parse_date(date(2026, 3, 14)) == date(2026, 3, 14)


def test_hours_ago():
    assert hours_ago(24, NOW) == "2026-03-14 12:00:00"
    assert hours_ago(0.5, NOW + timedelta(minutes=30)) == "2026-03-15 12:00:00"
