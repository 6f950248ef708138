"""Personalized feed: merge followed/public content and rank it.

Score = engagement * 0.4 + recency * 0.3 + relevance * 0.3, each factor on a 0-100 scale.
"""

from __future__ import annotations

import sqlite3
from collections import Counter
from datetime import datetime
from typing import Callable

from bookmark_insights.db import Database
from bookmark_insights.feed.models import (
    CANDIDATE_LIMITS,
    ContentType,
    EngagementCounts,
    FeedItem,
    FeedOptions,
    UserPreferences,
)
from bookmark_insights.utils.logger import get_logger
from bookmark_insights.utils.timeutil import hours_between, parse_timestamp, utc_now

logger = get_logger()

ENGAGEMENT_WEIGHT = 0.4
RECENCY_WEIGHT = 0.3
RELEVANCE_WEIGHT = 0.3

FOLLOWING_BONUS = 50
TAG_MATCH_POINTS = 10
TAG_MATCH_CAP = 50
TOP_TAGS = 10
PREFERENCE_BOOKMARKS = 100

EngagementScorer = Callable[[EngagementCounts], float]


def count_engagement_score(counts: EngagementCounts) -> float:
    """Engagement on a 0-100 scale from likes, comments and views."""
    return float(min(100, counts.likes * 10 + counts.comments * 5 + counts.views))


def recency_score(created_at: str | datetime, now: datetime) -> float:
    """100 for brand new content, losing 10 points per day, 0 from ten days on."""
    age_hours = hours_between(parse_timestamp(created_at), now)
    return max(0.0, 100 - (age_hours / 24) * 10)


def relevance_score(item: FeedItem, preferences: UserPreferences, following_ids: set[str]) -> float:
    score = 0.0
    if item.user_id in following_ids:
        score += FOLLOWING_BONUS
    # Tag affinity only applies to bookmarks
    if item.type == ContentType.BOOKMARK and item.tags:
        matching = [tag for tag in item.tags if tag in preferences.tags]
        score += min(TAG_MATCH_CAP, len(matching) * TAG_MATCH_POINTS)
    return score


class PersonalizedFeedGenerator:
    """Build a ranked, paginated feed for one viewer."""

    def __init__(self, db: Database, engagement_scorer: EngagementScorer = count_engagement_score):
        self.db = db
        self.engagement_scorer = engagement_scorer

    def generate_feed(self, options: FeedOptions, now: datetime | None = None) -> list[FeedItem]:
        now = now or utc_now()
        preferences = self.get_user_preferences(options.user_id)
        following_ids = self.get_following_ids(options.user_id) if options.include_following else []

        items: list[FeedItem] = []
        for content_type in ContentType:
            if content_type in options.content_types:
                items.extend(self.fetch_candidates(content_type, options.user_id, following_ids, options.include_public))

        following = set(following_ids)
        for item in items:
            self.score_item(item, preferences, following, now)

        items.sort(key=lambda i: i.score, reverse=True)
        page = items[options.offset:options.offset + options.limit]
        logger.debug("Feed for %s: %d candidates, returning %d", options.user_id, len(items), len(page))
        return page

    def get_user_preferences(self, user_id: str) -> UserPreferences:
        """Top tags from the viewer's recent bookmarks; ties keep first-seen order."""
        try:
            bookmarks = self.db.get_user_bookmarks(user_id, limit=PREFERENCE_BOOKMARKS)
            tags_by_bookmark = self.db.get_tags_for_bookmarks([b["id"] for b in bookmarks])
        except sqlite3.Error as e:
            logger.warning("Failed to load tag preferences for %s: %s", user_id, e)
            return UserPreferences()

        counts: Counter[str] = Counter()
        for bookmark in bookmarks:
            counts.update(tags_by_bookmark.get(bookmark["id"], []))
        # Counter.most_common is a stable sort over insertion order
        return UserPreferences(tags=[tag for tag, _ in counts.most_common(TOP_TAGS)])

    def get_following_ids(self, user_id: str) -> list[str]:
        try:
            return self.db.get_following_ids(user_id)
        except sqlite3.Error as e:
            logger.warning("Failed to load following list for %s: %s", user_id, e)
            return []

    def fetch_candidates(
        self,
        content_type: ContentType,
        user_id: str,
        following_ids: list[str],
        include_public: bool,
    ) -> list[FeedItem]:
        """Newest candidates of one type, restricted to followed authors when there are any."""
        if not following_ids and not include_public:
            return []

        try:
            rows = self.db.get_feed_candidates(
                content_type.value,
                exclude_user_id=user_id,
                author_ids=following_ids or None,
                public_only=not following_ids,
                limit=CANDIDATE_LIMITS[content_type],
            )
            items = [FeedItem.from_db_row(row, content_type) for row in rows]
            self._attach_engagement(content_type, items)
        except sqlite3.Error as e:
            logger.warning("Failed to fetch %s candidates for %s: %s", content_type.value, user_id, e)
            return []
        return items

    def _attach_engagement(self, content_type: ContentType, items: list[FeedItem]) -> None:
        ids = [item.id for item in items]
        if not ids:
            return
        likes = self.db.count_likes(content_type.value, ids)
        comments = self.db.count_comments(content_type.value, ids)
        views = self.db.count_events(f"{content_type.value}_view", ids)
        tags = self.db.get_tags_for_bookmarks(ids) if content_type == ContentType.BOOKMARK else {}

        for item in items:
            item.engagement = EngagementCounts(
                likes=likes.get(item.id, 0),
                comments=comments.get(item.id, 0),
                views=views.get(item.id, 0),
            )
            if content_type == ContentType.BOOKMARK:
                item.content["tags"] = tags.get(item.id, [])

    def score_item(
        self,
        item: FeedItem,
        preferences: UserPreferences,
        following_ids: set[str],
        now: datetime,
    ) -> FeedItem:
        item.engagement_score = self.engagement_scorer(item.engagement)
        item.recency_score = recency_score(item.created_at, now)
        item.relevance_score = relevance_score(item, preferences, following_ids)
        item.score = (
            item.engagement_score * ENGAGEMENT_WEIGHT
            + item.recency_score * RECENCY_WEIGHT
            + item.relevance_score * RELEVANCE_WEIGHT
        )
        return item
