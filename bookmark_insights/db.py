"""SQLite database manager — schema creation and query helpers."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable

from bookmark_insights.utils.logger import get_logger
from bookmark_insights.utils.retry import with_retry
from bookmark_insights.utils.timeutil import parse_timestamp, to_db_timestamp

logger = get_logger()

SCHEMA_VERSION = 1

TIMESTAMP_COLUMNS = ("created_at", "last_seen_at", "application_date", "reviewed_at", "started_at", "completed_at")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    display_name TEXT,
    avatar_url TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS bookmarks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id),
    url TEXT NOT NULL,
    title TEXT,
    description TEXT,
    is_public INTEGER NOT NULL DEFAULT 1,
    click_count INTEGER DEFAULT 0,
    like_count INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- One row per (bookmark, tag); rowid keeps the order tags were written in
CREATE TABLE IF NOT EXISTS bookmark_tags (
    bookmark_id TEXT NOT NULL REFERENCES bookmarks(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    UNIQUE(bookmark_id, tag)
);

CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id),
    title TEXT,
    content TEXT,
    visibility TEXT NOT NULL DEFAULT 'public',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS collections (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id),
    name TEXT NOT NULL,
    description TEXT,
    is_public INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS collection_bookmarks (
    collection_id TEXT NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
    bookmark_id TEXT NOT NULL REFERENCES bookmarks(id) ON DELETE CASCADE,
    UNIQUE(collection_id, bookmark_id)
);

-- follower_id follows following_id
CREATE TABLE IF NOT EXISTS follows (
    follower_id TEXT NOT NULL,
    following_id TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(follower_id, following_id)
);

CREATE TABLE IF NOT EXISTS likes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    content_type TEXT NOT NULL,
    content_id TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(user_id, content_type, content_id)
);

CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    content_type TEXT NOT NULL,
    content_id TEXT NOT NULL,
    body TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS analytics_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    event_type TEXT NOT NULL,
    content_type TEXT,
    content_id TEXT,
    metadata TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Trending topic cache, rebuilt by the refresh job
CREATE TABLE IF NOT EXISTS trending_topics (
    topic TEXT PRIMARY KEY,
    mention_count INTEGER DEFAULT 0,
    bookmark_count INTEGER DEFAULT 0,
    user_count INTEGER DEFAULT 0,
    last_24h_count INTEGER DEFAULT 0,
    previous_24h_count INTEGER DEFAULT 0,
    velocity REAL DEFAULT 0,
    trend_score REAL DEFAULT 0,
    category TEXT,
    last_seen_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS creator_monetization (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL UNIQUE,
    status TEXT NOT NULL DEFAULT 'pending',
    application_date TIMESTAMP,
    total_followers INTEGER,
    total_bookmarks INTEGER,
    total_collections INTEGER,
    total_views INTEGER,
    total_engagements INTEGER,
    engagement_rate REAL,
    quality_score INTEGER,
    revenue_share_percentage INTEGER,
    reviewed_at TIMESTAMP,
    reviewer_notes TEXT
);

CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    title TEXT,
    message TEXT,
    data TEXT,
    is_read INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Job run log for auditing
CREATE TABLE IF NOT EXISTS run_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_type TEXT NOT NULL,
    started_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    completed_at TIMESTAMP,
    status TEXT,
    summary TEXT,
    error TEXT
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE INDEX IF NOT EXISTS idx_bookmarks_user ON bookmarks(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_bookmarks_created ON bookmarks(created_at);
CREATE INDEX IF NOT EXISTS idx_bookmark_tags_tag ON bookmark_tags(tag);
CREATE INDEX IF NOT EXISTS idx_likes_content ON likes(content_type, content_id);
CREATE INDEX IF NOT EXISTS idx_events_type_content ON analytics_events(event_type, content_id);
"""

# Candidate tables for the feed: (table, public filter, selected columns)
CONTENT_TABLES = {
    "bookmark": ("bookmarks", "c.is_public = 1", "c.url, c.title, c.description"),
    "post": ("posts", "c.visibility = 'public'", "c.title, c.content"),
    "collection": ("collections", "c.is_public = 1", "c.name, c.description"),
}


def _placeholders(values: list) -> str:
    return ", ".join(["?"] * len(values))


def _normalize_timestamps(data: dict[str, Any]) -> dict[str, Any]:
    """Rewrite timestamp columns in CURRENT_TIMESTAMP form (UTC, space separated)."""
    if not any(data.get(key) is not None for key in TIMESTAMP_COLUMNS):
        return data
    normalized = dict(data)
    for key in TIMESTAMP_COLUMNS:
        if normalized.get(key) is not None:
            normalized[key] = to_db_timestamp(parse_timestamp(normalized[key]))
    return normalized


class Database:
    """SQLite database manager for bookmark-insights state."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)
            cur = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            row = cur.fetchone()
            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            logger.debug("Database initialized at %s", self.db_path)

    # --- Generic helpers ---

    def execute(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self.connection() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchall()

    def execute_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        rows = self.execute(sql, params)
        return rows[0] if rows else None

    def insert(self, table: str, data: dict[str, Any]) -> int:
        data = _normalize_timestamps(data)
        cols = ", ".join(data.keys())
        placeholders = ", ".join(["?"] * len(data))
        sql = f"INSERT INTO {table} ({cols}) VALUES ({placeholders})"
        with self.connection() as conn:
            cur = conn.execute(sql, tuple(data.values()))
            return cur.lastrowid

    def update(self, table: str, data: dict[str, Any], where: str, params: tuple = ()) -> int:
        data = _normalize_timestamps(data)
        set_clause = ", ".join(f"{k} = ?" for k in data.keys())
        sql = f"UPDATE {table} SET {set_clause} WHERE {where}"
        with self.connection() as conn:
            cur = conn.execute(sql, tuple(data.values()) + params)
            return cur.rowcount

    def count(self, table: str, where: str, params: tuple = ()) -> int:
        row = self.execute_one(f"SELECT COUNT(*) AS cnt FROM {table} WHERE {where}", params)
        return row["cnt"] if row else 0

    # --- Profiles & follows ---

    def get_profile(self, user_id: str) -> sqlite3.Row | None:
        return self.execute_one("SELECT * FROM profiles WHERE id = ?", (user_id,))

    def get_following_ids(self, user_id: str) -> list[str]:
        rows = self.execute(
            "SELECT following_id FROM follows WHERE follower_id = ? ORDER BY rowid", (user_id,)
        )
        return [row["following_id"] for row in rows]

    def count_followers(self, user_id: str) -> int:
        return self.count("follows", "following_id = ?", (user_id,))

    # --- Bookmarks & tags ---

    def insert_bookmark(self, bookmark: dict, tags: Iterable[str] = ()) -> str:
        bookmark = _normalize_timestamps(bookmark)
        with self.connection() as conn:
            cols = ", ".join(bookmark.keys())
            conn.execute(
                f"INSERT INTO bookmarks ({cols}) VALUES ({_placeholders(list(bookmark))})",
                tuple(bookmark.values()),
            )
            conn.executemany(
                "INSERT OR IGNORE INTO bookmark_tags (bookmark_id, tag) VALUES (?, ?)",
                [(bookmark["id"], tag) for tag in tags],
            )
        return bookmark["id"]

    def get_user_bookmarks(self, user_id: str, limit: int | None = None) -> list[sqlite3.Row]:
        sql = "SELECT * FROM bookmarks WHERE user_id = ? ORDER BY created_at DESC"
        params: list = [user_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return self.execute(sql, tuple(params))

    def get_tags_for_bookmarks(self, bookmark_ids: list[str]) -> dict[str, list[str]]:
        """Map bookmark id -> tags in the order they were written."""
        if not bookmark_ids:
            return {}
        rows = self.execute(
            f"SELECT bookmark_id, tag FROM bookmark_tags WHERE bookmark_id IN ({_placeholders(bookmark_ids)}) "
            "ORDER BY rowid",
            tuple(bookmark_ids),
        )
        tags: dict[str, list[str]] = {}
        for row in rows:
            tags.setdefault(row["bookmark_id"], []).append(row["tag"])
        return tags

    def get_tag_mentions_since(self, since: str) -> list[sqlite3.Row]:
        """(bookmark_id, user_id, tag) for every tag on bookmarks created at or after ``since``."""
        return self.execute(
            "SELECT b.id AS bookmark_id, b.user_id, t.tag FROM bookmarks b "
            "JOIN bookmark_tags t ON t.bookmark_id = b.id "
            "WHERE b.created_at >= ? ORDER BY t.rowid",
            (since,),
        )

    def get_public_bookmarks_since(
        self,
        since: str,
        limit: int = 100,
        tags: list[str] | None = None,
        exclude_user_id: str | None = None,
    ) -> list[sqlite3.Row]:
        """Newest public bookmarks created at or after ``since``, optionally sharing a tag."""
        sql = "SELECT b.id, b.user_id, b.title, b.created_at FROM bookmarks b WHERE b.is_public = 1 AND b.created_at >= ?"
        params: list = [since]
        if tags:
            sql += (
                " AND EXISTS (SELECT 1 FROM bookmark_tags t WHERE t.bookmark_id = b.id "
                f"AND t.tag IN ({_placeholders(tags)}))"
            )
            params.extend(tags)
        if exclude_user_id:
            sql += " AND b.user_id != ?"
            params.append(exclude_user_id)
        sql += " ORDER BY b.created_at DESC LIMIT ?"
        params.append(limit)
        return self.execute(sql, tuple(params))

    # --- Feed candidates ---

    def get_feed_candidates(
        self,
        content_type: str,
        exclude_user_id: str,
        author_ids: list[str] | None = None,
        public_only: bool = False,
        limit: int = 50,
    ) -> list[sqlite3.Row]:
        """Newest content of one type with author profile fields, excluding the viewer's own."""
        table, public_clause, columns = CONTENT_TABLES[content_type]
        sql = (
            f"SELECT c.id, c.user_id, c.created_at, {columns}, p.username, p.avatar_url "
            f"FROM {table} c JOIN profiles p ON p.id = c.user_id "
            "WHERE c.user_id != ?"
        )
        params: list = [exclude_user_id]
        if author_ids:
            sql += f" AND c.user_id IN ({_placeholders(author_ids)})"
            params.extend(author_ids)
        elif public_only:
            sql += f" AND {public_clause}"
        sql += " ORDER BY c.created_at DESC LIMIT ?"
        params.append(limit)
        return self.execute(sql, tuple(params))

    # --- Engagement ---

    def count_likes(self, content_type: str, content_ids: list[str]) -> dict[str, int]:
        return self._count_by_content("likes", "content_type = ?", content_type, content_ids)

    def count_comments(self, content_type: str, content_ids: list[str]) -> dict[str, int]:
        return self._count_by_content("comments", "content_type = ?", content_type, content_ids)

    def count_events(self, event_type: str, content_ids: list[str]) -> dict[str, int]:
        return self._count_by_content("analytics_events", "event_type = ?", event_type, content_ids)

    def _count_by_content(self, table: str, where: str, value: str, content_ids: list[str]) -> dict[str, int]:
        if not content_ids:
            return {}
        rows = self.execute(
            f"SELECT content_id, COUNT(*) AS cnt FROM {table} WHERE {where} "
            f"AND content_id IN ({_placeholders(content_ids)}) GROUP BY content_id",
            (value, *content_ids),
        )
        return {row["content_id"]: row["cnt"] for row in rows}

    # --- Collections ---

    def get_public_collections(self, limit: int = 50) -> list[sqlite3.Row]:
        return self.execute(
            "SELECT c.id, c.name, c.created_at, "
            "(SELECT COUNT(*) FROM collection_bookmarks cb WHERE cb.collection_id = c.id) AS bookmark_count "
            "FROM collections c WHERE c.is_public = 1 ORDER BY c.created_at DESC LIMIT ?",
            (limit,),
        )

    # --- Analytics events ---

    def insert_event(self, event: dict) -> int:
        data = dict(event)
        if isinstance(data.get("metadata"), dict):
            data["metadata"] = json.dumps(data["metadata"])
        return self.insert("analytics_events", data)

    def get_events(self, user_id: str, event_type: str, since: str | None = None) -> list[sqlite3.Row]:
        sql = "SELECT * FROM analytics_events WHERE user_id = ? AND event_type = ?"
        params: list = [user_id, event_type]
        if since:
            sql += " AND created_at >= ?"
            params.append(since)
        sql += " ORDER BY created_at ASC"
        return self.execute(sql, tuple(params))

    def get_bookmark_views_for_owner(self, user_id: str, since: str | None = None) -> list[sqlite3.Row]:
        """View events on bookmarks owned by ``user_id``."""
        sql = (
            "SELECT e.created_at FROM analytics_events e JOIN bookmarks b ON b.id = e.content_id "
            "WHERE e.event_type = 'bookmark_view' AND b.user_id = ?"
        )
        params: list = [user_id]
        if since:
            sql += " AND e.created_at >= ?"
            params.append(since)
        sql += " ORDER BY e.created_at ASC"
        return self.execute(sql, tuple(params))

    # --- Trending topics ---

    @with_retry()
    def upsert_trending_topic(self, topic: dict) -> None:
        """Insert or refresh a cached topic; the old 24h count becomes the previous one."""
        with self.connection() as conn:
            conn.execute(
                """INSERT INTO trending_topics
                    (topic, mention_count, bookmark_count, user_count, last_24h_count, previous_24h_count, last_seen_at)
                VALUES (:topic, :mention_count, :bookmark_count, :user_count, :last_24h_count, 0, :last_seen_at)
                ON CONFLICT(topic) DO UPDATE SET
                    previous_24h_count = trending_topics.last_24h_count,
                    mention_count = excluded.mention_count,
                    bookmark_count = excluded.bookmark_count,
                    user_count = excluded.user_count,
                    last_24h_count = excluded.last_24h_count,
                    last_seen_at = excluded.last_seen_at""",
                _normalize_timestamps(topic),
            )

    def get_trending_topic(self, topic: str) -> sqlite3.Row | None:
        return self.execute_one("SELECT * FROM trending_topics WHERE topic = ?", (topic,))

    @with_retry()
    def update_trending_topic(self, topic: str, data: dict) -> int:
        return self.update("trending_topics", data, "topic = ?", (topic,))

    def get_trending_topics(self, limit: int = 10, seen_since: str | None = None) -> list[sqlite3.Row]:
        sql = "SELECT * FROM trending_topics"
        params: list = []
        if seen_since:
            sql += " WHERE last_seen_at >= ?"
            params.append(seen_since)
        sql += " ORDER BY trend_score DESC, topic ASC LIMIT ?"
        params.append(limit)
        return self.execute(sql, tuple(params))

    # --- Creator monetization ---

    def get_application(self, user_id: str) -> sqlite3.Row | None:
        return self.execute_one("SELECT * FROM creator_monetization WHERE user_id = ?", (user_id,))

    def insert_application(self, data: dict) -> int:
        return self.insert("creator_monetization", data)

    def update_application(self, user_id: str, data: dict) -> int:
        return self.update("creator_monetization", data, "user_id = ?", (user_id,))

    def insert_notification(self, notification: dict) -> int:
        data = dict(notification)
        if isinstance(data.get("data"), dict):
            data["data"] = json.dumps(data["data"])
        return self.insert("notifications", data)

    # --- Run Log ---

    def start_run(self, run_type: str) -> int:
        return self.insert("run_log", {"run_type": run_type})

    def complete_run(self, run_id: int, status: str, summary: dict | None = None, error: str | None = None) -> None:
        with self.connection() as conn:
            conn.execute(
                "UPDATE run_log SET completed_at = CURRENT_TIMESTAMP, status = ?, summary = ?, error = ? WHERE id = ?",
                (status, json.dumps(summary) if summary else None, error, run_id),
            )

    def get_recent_runs(self, limit: int = 10) -> list[sqlite3.Row]:
        return self.execute("SELECT * FROM run_log ORDER BY started_at DESC, id DESC LIMIT ?", (limit,))
