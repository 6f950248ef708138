"""Trending data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


class TimeWindow(str, Enum):
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"

    @property
    def hours(self) -> int:
        return {"24h": 24, "7d": 168, "30d": 720}[self.value]


@dataclass
class Engagement:
    views: int = 0
    likes: int = 0
    comments: int = 0


@dataclass
class TrendingTopic:
    """A cached tag with its mention counters and computed trend score."""

    topic: str
    trend_score: float = 0.0
    mention_count: int = 0
    bookmark_count: int = 0
    user_count: int = 0
    last_24h_count: int = 0
    previous_24h_count: int = 0
    velocity: float = 0.0
    category: str | None = None
    last_seen_at: str | None = None

    @classmethod
    def from_db_row(cls, row) -> TrendingTopic:
        data = dict(row)
        return cls(
            topic=data["topic"],
            trend_score=data.get("trend_score") or 0.0,
            mention_count=data.get("mention_count") or 0,
            bookmark_count=data.get("bookmark_count") or 0,
            user_count=data.get("user_count") or 0,
            last_24h_count=data.get("last_24h_count") or 0,
            previous_24h_count=data.get("previous_24h_count") or 0,
            velocity=data.get("velocity") or 0.0,
            category=data.get("category"),
            last_seen_at=data.get("last_seen_at"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TrendingContent:
    """A ranked bookmark or collection."""

    id: str
    type: str  # 'bookmark' or 'collection'
    title: str | None
    created_at: str
    score: float = 0.0
    engagement: Engagement = field(default_factory=Engagement)

    def to_dict(self) -> dict:
        return asdict(self)
