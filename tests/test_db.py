"""Tests for database module."""

import json
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from bookmark_insights.db import Database
from bookmark_insights.utils.retry import is_lock_contention, with_retry


@pytest.fixture
def db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield Database(db_path)


@pytest.fixture
def users(db):
    for user_id in ("alice", "bob", "carol"):
        db.insert("profiles", {"id": user_id, "username": user_id, "created_at": "2026-01-01 00:00:00"})
    return db


def test_schema_creation(db):
    """Database creates all tables on init."""
    tables = db.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    table_names = {row["name"] for row in tables}
    expected = {
        "profiles", "bookmarks", "bookmark_tags", "posts", "collections", "collection_bookmarks",
        "follows", "likes", "comments", "analytics_events", "trending_topics",
        "creator_monetization", "notifications", "run_log", "schema_version",
    }
    assert expected.issubset(table_names)


def test_schema_version_recorded_once(db):
    Database(db.db_path)
    rows = db.execute("SELECT version FROM schema_version")
    assert [row["version"] for row in rows] == [1]


def test_insert_bookmark_with_tags(users):
    """Tags keep the order they were written in."""
    users.insert_bookmark(
        {"id": "b1", "user_id": "alice", "url": "https://a.example", "created_at": "2026-03-01 10:00:00"},
        ["python", "sqlite", "python"],
    )
    assert users.get_tags_for_bookmarks(["b1"]) == {"b1": ["python", "sqlite"]}
    assert users.get_tags_for_bookmarks([]) == {}


def test_user_bookmarks_newest_first(users):
    users.insert_bookmark({"id": "old", "user_id": "alice", "url": "u", "created_at": "2026-03-01 10:00:00"})
    users.insert_bookmark({"id": "new", "user_id": "alice", "url": "u", "created_at": "2026-03-02 10:00:00"})
    users.insert_bookmark({"id": "other", "user_id": "bob", "url": "u", "created_at": "2026-03-03 10:00:00"})

    assert [b["id"] for b in users.get_user_bookmarks("alice")] == ["new", "old"]
    assert [b["id"] for b in users.get_user_bookmarks("alice", limit=1)] == ["new"]


def test_bookmark_requires_profile(db):
    with pytest.raises(sqlite3.IntegrityError):
        db.insert_bookmark({"id": "b1", "user_id": "ghost", "url": "u"})


def test_following_and_followers(db):
    db.insert("follows", {"follower_id": "alice", "following_id": "bob"})
    db.insert("follows", {"follower_id": "alice", "following_id": "carol"})
    db.insert("follows", {"follower_id": "carol", "following_id": "bob"})

    assert db.get_following_ids("alice") == ["bob", "carol"]
    assert db.get_following_ids("bob") == []
    assert db.count_followers("bob") == 2


def test_feed_candidates_filters(users):
    users.insert_bookmark({"id": "own", "user_id": "alice", "url": "u", "created_at": "2026-03-01 10:00:00"})
    users.insert_bookmark({"id": "pub", "user_id": "bob", "url": "u", "created_at": "2026-03-01 11:00:00"})
    users.insert_bookmark(
        {"id": "priv", "user_id": "bob", "url": "u", "is_public": 0, "created_at": "2026-03-01 12:00:00"}
    )
    users.insert_bookmark({"id": "carols", "user_id": "carol", "url": "u", "created_at": "2026-03-01 13:00:00"})

    public = users.get_feed_candidates("bookmark", exclude_user_id="alice", public_only=True)
    assert [r["id"] for r in public] == ["carols", "pub"]
    assert public[0]["username"] == "carol"

    followed = users.get_feed_candidates("bookmark", exclude_user_id="alice", author_ids=["bob"])
    assert [r["id"] for r in followed] == ["priv", "pub"]


def test_post_candidates_use_visibility(users):
    users.insert("posts", {"id": "p1", "user_id": "bob", "title": "Hi", "visibility": "public"})
    users.insert("posts", {"id": "p2", "user_id": "bob", "title": "Secret", "visibility": "subscribers"})

    rows = users.get_feed_candidates("post", exclude_user_id="alice", public_only=True)
    assert [r["id"] for r in rows] == ["p1"]


def test_count_by_content(db):
    db.insert("likes", {"user_id": "alice", "content_type": "bookmark", "content_id": "b1"})
    db.insert("likes", {"user_id": "bob", "content_type": "bookmark", "content_id": "b1"})
    db.insert("likes", {"user_id": "bob", "content_type": "collection", "content_id": "b1"})
    db.insert_event({"event_type": "bookmark_view", "content_id": "b2"})

    assert db.count_likes("bookmark", ["b1", "b2"]) == {"b1": 2}
    assert db.count_events("bookmark_view", ["b1", "b2"]) == {"b2": 1}
    assert db.count_comments("bookmark", []) == {}


def test_public_collections_bookmark_count(users):
    users.insert("collections", {"id": "c1", "user_id": "bob", "name": "Reading"})
    users.insert("collections", {"id": "c2", "user_id": "bob", "name": "Hidden", "is_public": 0})
    users.insert_bookmark({"id": "b1", "user_id": "bob", "url": "u"})
    users.insert_bookmark({"id": "b2", "user_id": "bob", "url": "u"})
    users.insert("collection_bookmarks", {"collection_id": "c1", "bookmark_id": "b1"})
    users.insert("collection_bookmarks", {"collection_id": "c1", "bookmark_id": "b2"})

    rows = users.get_public_collections()
    assert len(rows) == 1
    assert rows[0]["bookmark_count"] == 2


def test_public_bookmarks_since_tag_overlap(users):
    users.insert_bookmark({"id": "b1", "user_id": "bob", "url": "u", "created_at": "2026-03-10 00:00:00"}, ["ml"])
    users.insert_bookmark({"id": "b2", "user_id": "bob", "url": "u", "created_at": "2026-03-11 00:00:00"}, ["cooking"])
    users.insert_bookmark({"id": "b3", "user_id": "alice", "url": "u", "created_at": "2026-03-11 00:00:00"}, ["ml"])
    users.insert_bookmark({"id": "b4", "user_id": "bob", "url": "u", "created_at": "2026-02-01 00:00:00"}, ["ml"])

    rows = users.get_public_bookmarks_since("2026-03-01 00:00:00", tags=["ml"], exclude_user_id="alice")
    assert [r["id"] for r in rows] == ["b1"]

    rows = users.get_public_bookmarks_since("2026-03-01 00:00:00")
    assert {r["id"] for r in rows} == {"b1", "b2", "b3"}


def test_event_metadata_serialized(db):
    db.insert_event({
        "user_id": "alice",
        "event_type": "affiliate_click",
        "metadata": {"estimated_earnings": 1.5},
        "created_at": "2026-03-01 10:00:00",
    })
    events = db.get_events("alice", "affiliate_click", since="2026-03-01 00:00:00")
    assert len(events) == 1
    assert json.loads(events[0]["metadata"]) == {"estimated_earnings": 1.5}
    assert db.get_events("alice", "affiliate_click", since="2026-03-02 00:00:00") == []


def test_timestamps_stored_in_sqlite_format(users):
    """ISO-8601 and datetime inputs are stored as UTC 'YYYY-MM-DD HH:MM:SS'."""
    users.insert_bookmark({"id": "b1", "user_id": "alice", "url": "u", "created_at": "2026-03-14T06:00:00Z"})
    users.insert_event({"event_type": "bookmark_view", "content_id": "b1", "created_at": "2026-03-14T08:30:00+02:00"})
    users.insert("collections", {
        "id": "c1", "user_id": "bob", "name": "Reads",
        "created_at": datetime(2026, 3, 14, 6, 0, tzinfo=timezone.utc),
    })
    users.update("profiles", {"created_at": "2026-02-01T00:00:00Z"}, "id = ?", ("carol",))

    assert users.execute_one("SELECT created_at FROM bookmarks WHERE id = 'b1'")["created_at"] == "2026-03-14 06:00:00"
    assert users.execute_one("SELECT created_at FROM analytics_events")["created_at"] == "2026-03-14 06:30:00"
    assert users.execute_one("SELECT created_at FROM collections WHERE id = 'c1'")["created_at"] == "2026-03-14 06:00:00"
    assert users.get_profile("carol")["created_at"] == "2026-02-01 00:00:00"
    assert users.get_public_bookmarks_since("2026-03-14 12:00:00") == []


def test_upsert_trending_topic_shifts_counts(db):
    topic = {
        "topic": "python",
        "mention_count": 4,
        "bookmark_count": 4,
        "user_count": 2,
        "last_24h_count": 4,
        "last_seen_at": "2026-03-01 10:00:00",
    }
    db.upsert_trending_topic(topic)
    db.upsert_trending_topic({**topic, "mention_count": 7, "last_24h_count": 7, "last_seen_at": "2026-03-02 10:00:00"})

    row = db.get_trending_topic("python")
    assert row["previous_24h_count"] == 4
    assert row["last_24h_count"] == 7
    assert row["mention_count"] == 7


def test_trending_topics_order_and_cutoff(db):
    for name, score, seen in [("a", 5, "2026-03-02"), ("b", 9, "2026-03-02"), ("c", 50, "2026-02-01")]:
        db.insert("trending_topics", {"topic": name, "trend_score": score, "last_seen_at": f"{seen} 00:00:00"})

    rows = db.get_trending_topics(limit=10, seen_since="2026-03-01 00:00:00")
    assert [r["topic"] for r in rows] == ["b", "a"]
    assert [r["topic"] for r in db.get_trending_topics(limit=1)] == ["c"]


def test_application_and_notification(db):
    db.insert_application({"user_id": "alice", "status": "pending", "quality_score": 70})
    db.update_application("alice", {"status": "rejected"})
    assert db.get_application("alice")["status"] == "rejected"

    db.insert_notification({"user_id": "alice", "type": "monetization_application", "data": {"quality_score": 70}})
    row = db.execute_one("SELECT * FROM notifications WHERE user_id = ?", ("alice",))
    assert json.loads(row["data"]) == {"quality_score": 70}
    assert row["is_read"] == 0


def test_run_log(db):
    """Start and complete a run."""
    run_id = db.start_run("refresh_topics")
    db.complete_run(run_id, "success", {"topics": 3})
    runs = db.get_recent_runs(5)
    assert len(runs) == 1
    assert runs[0]["status"] == "success"
    assert json.loads(runs[0]["summary"]) == {"topics": 3}


def test_connection_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with db.connection() as conn:
            conn.execute("INSERT INTO run_log (run_type) VALUES ('doomed')")
            raise RuntimeError("boom")
    assert db.get_recent_runs() == []


def test_is_lock_contention():
    assert is_lock_contention(sqlite3.OperationalError("database is locked"))
    assert not is_lock_contention(sqlite3.OperationalError("no such table: foo"))
    assert not is_lock_contention(ValueError("locked"))


def test_with_retry_retries_lock_errors():
    calls = []

    @with_retry(max_attempts=3, min_wait=0, max_wait=0)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_with_retry_does_not_retry_other_errors():
    calls = []

    @with_retry(max_attempts=3, min_wait=0, max_wait=0)
    def broken():
        calls.append(1)
        raise sqlite3.OperationalError("no such table: nope")

    with pytest.raises(sqlite3.OperationalError):
        broken()
    assert len(calls) == 1


def test_upsert_retries_when_locked(db):
    real = db.connection
    attempts = []

    def flaky_connection():
        attempts.append(1)
        if len(attempts) == 1:
            raise sqlite3.OperationalError("database is locked")
        return real()

    with patch.object(db, "connection", side_effect=flaky_connection), patch("time.sleep"):
        db.upsert_trending_topic({
            "topic": "retry",
            "mention_count": 1,
            "bookmark_count": 1,
            "user_count": 1,
            "last_24h_count": 1,
            "last_seen_at": "2026-03-01 00:00:00",
        })
    assert len(attempts) == 2
    assert db.get_trending_topic("retry") is not None
