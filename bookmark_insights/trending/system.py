"""Trending topics and content discovery."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from bookmark_insights.db import Database
from bookmark_insights.trending.models import Engagement, TimeWindow, TrendingContent, TrendingTopic
from bookmark_insights.utils.logger import get_logger
from bookmark_insights.utils.timeutil import hours_ago, hours_between, parse_timestamp, to_db_timestamp, utc_now

logger = get_logger()

TOPIC_WINDOW_HOURS = 24
BOOKMARK_CANDIDATES = 100
COLLECTION_CANDIDATES = 50
PERSONAL_TAG_BOOKMARKS = 50

LIKE_WEIGHT = 10
VIEW_WEIGHT = 1
RECENCY_WEIGHT = 50
COLLECTION_BOOKMARK_WEIGHT = 3
COLLECTION_LIKE_WEIGHT = 10


def recency_factor(created_at: str | datetime, window: TimeWindow, now: datetime) -> float:
    """1.0 for brand new content, decaying linearly to 0 at the window edge."""
    age_hours = hours_between(parse_timestamp(created_at), now)
    return max(0.0, 1 - age_hours / window.hours)


def trending_bookmark_score(engagement: Engagement, factor: float) -> float:
    return engagement.likes * LIKE_WEIGHT + engagement.views * VIEW_WEIGHT + factor * RECENCY_WEIGHT


def compute_trend_score(topic: TrendingTopic) -> tuple[float, float]:
    """(velocity, trend_score) for a cached topic.

    Velocity is the change in 24h mentions since the previous refresh; only
    growth adds to the score.
    """
    velocity = topic.last_24h_count - topic.previous_24h_count
    score = topic.mention_count + 2 * topic.user_count + 5 * max(0, velocity)
    return float(velocity), float(score)


class TrendingSystem:
    """Ranked "what's hot" lists for topics, bookmarks and collections."""

    def __init__(self, db: Database, topic_ttl_hours: int = 72):
        self.db = db
        self.topic_ttl_hours = topic_ttl_hours

    # --- Topics ---

    def update_trending_topics(self, now: datetime | None = None) -> list[TrendingTopic]:
        """Aggregate tag mentions from the last 24 hours into the topic cache."""
        now = now or utc_now()
        try:
            mentions = self.db.get_tag_mentions_since(hours_ago(TOPIC_WINDOW_HOURS, now))
        except sqlite3.Error as e:
            logger.error("Failed to read recent tag mentions: %s", e)
            return []

        stats: dict[str, dict] = {}
        for row in mentions:
            entry = stats.setdefault(row["tag"], {"count": 0, "users": set(), "bookmarks": set()})
            entry["count"] += 1
            entry["users"].add(row["user_id"])
            entry["bookmarks"].add(row["bookmark_id"])

        updated = []
        seen_at = to_db_timestamp(now)
        for topic, entry in stats.items():
            try:
                self.db.upsert_trending_topic({
                    "topic": topic,
                    "mention_count": entry["count"],
                    "bookmark_count": len(entry["bookmarks"]),
                    "user_count": len(entry["users"]),
                    "last_24h_count": entry["count"],
                    "last_seen_at": seen_at,
                })
            except sqlite3.Error as e:
                logger.error("Error updating trending topic %s: %s", topic, e)
                continue
            scored = self.update_trend_score(topic)
            if scored is not None:
                updated.append(scored)

        logger.info("Refreshed %d trending topics from %d tag mentions", len(updated), len(mentions))
        return updated

    def update_trend_score(self, topic: str) -> TrendingTopic | None:
        """Recompute velocity and trend score for one cached topic."""
        try:
            row = self.db.get_trending_topic(topic)
            if row is None:
                logger.warning("Trending topic %s not found", topic)
                return None
            cached = TrendingTopic.from_db_row(row)
            cached.velocity, cached.trend_score = compute_trend_score(cached)
            self.db.update_trending_topic(topic, {"velocity": cached.velocity, "trend_score": cached.trend_score})
        except sqlite3.Error as e:
            logger.error("Error scoring trending topic %s: %s", topic, e)
            return None
        return cached

    def get_trending_topics(self, limit: int = 10, now: datetime | None = None) -> list[TrendingTopic]:
        try:
            rows = self.db.get_trending_topics(limit, seen_since=hours_ago(self.topic_ttl_hours, now))
        except sqlite3.Error as e:
            logger.error("Error getting trending topics: %s", e)
            return []
        return [TrendingTopic.from_db_row(row) for row in rows]

    # --- Content ---

    def get_trending_bookmarks(
        self, window: TimeWindow | str = TimeWindow.WEEK, limit: int = 20, now: datetime | None = None
    ) -> list[TrendingContent]:
        window = TimeWindow(window)
        now = now or utc_now()
        try:
            rows = self.db.get_public_bookmarks_since(hours_ago(window.hours, now), limit=BOOKMARK_CANDIDATES)
            ranked = self._score_bookmarks(rows, window, now)
        except sqlite3.Error as e:
            logger.error("Error getting trending bookmarks: %s", e)
            return []
        return ranked[:limit]

    def get_trending_collections(self, limit: int = 10) -> list[TrendingContent]:
        try:
            rows = self.db.get_public_collections(limit=COLLECTION_CANDIDATES)
            likes = self.db.count_likes("collection", [row["id"] for row in rows])
        except sqlite3.Error as e:
            logger.error("Error getting trending collections: %s", e)
            return []

        collections = []
        for row in rows:
            like_count = likes.get(row["id"], 0)
            collections.append(TrendingContent(
                id=row["id"],
                type="collection",
                title=row["name"],
                created_at=row["created_at"],
                score=row["bookmark_count"] * COLLECTION_BOOKMARK_WEIGHT + like_count * COLLECTION_LIKE_WEIGHT,
                engagement=Engagement(likes=like_count),
            ))
        collections.sort(key=lambda c: c.score, reverse=True)
        return collections[:limit]

    def get_personalized_trending(
        self, user_id: str, limit: int = 20, now: datetime | None = None
    ) -> list[TrendingContent]:
        """Recent public bookmarks sharing a tag with the user's own bookmarks.

        Scored like general trending over the 7 day window. Users without any
        tags get general trending instead.
        """
        now = now or utc_now()
        try:
            bookmarks = self.db.get_user_bookmarks(user_id, limit=PERSONAL_TAG_BOOKMARKS)
            tags_by_bookmark = self.db.get_tags_for_bookmarks([b["id"] for b in bookmarks])
        except sqlite3.Error as e:
            logger.error("Error loading interests for %s: %s", user_id, e)
            return []

        user_tags = list(dict.fromkeys(tag for b in bookmarks for tag in tags_by_bookmark.get(b["id"], [])))
        if not user_tags:
            return self.get_trending_bookmarks(TimeWindow.WEEK, limit, now)

        window = TimeWindow.WEEK
        try:
            rows = self.db.get_public_bookmarks_since(
                hours_ago(window.hours, now),
                limit=BOOKMARK_CANDIDATES,
                tags=user_tags,
                exclude_user_id=user_id,
            )
            ranked = self._score_bookmarks(rows, window, now)
        except sqlite3.Error as e:
            logger.error("Error getting personalized trending for %s: %s", user_id, e)
            return []
        return ranked[:limit]

    def _score_bookmarks(self, rows, window: TimeWindow, now: datetime) -> list[TrendingContent]:
        ids = [row["id"] for row in rows]
        likes = self.db.count_likes("bookmark", ids)
        views = self.db.count_events("bookmark_view", ids)
        comments = self.db.count_comments("bookmark", ids)

        ranked = []
        for row in rows:
            engagement = Engagement(
                views=views.get(row["id"], 0),
                likes=likes.get(row["id"], 0),
                comments=comments.get(row["id"], 0),
            )
            ranked.append(TrendingContent(
                id=row["id"],
                type="bookmark",
                title=row["title"],
                created_at=row["created_at"],
                score=trending_bookmark_score(engagement, recency_factor(row["created_at"], window, now)),
                engagement=engagement,
            ))
        ranked.sort(key=lambda c: c.score, reverse=True)
        return ranked
