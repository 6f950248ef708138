"""Feed data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ContentType(str, Enum):
    BOOKMARK = "bookmark"
    POST = "post"
    COLLECTION = "collection"


# Per-type candidate cap when building a feed
CANDIDATE_LIMITS = {
    ContentType.BOOKMARK: 50,
    ContentType.POST: 50,
    ContentType.COLLECTION: 30,
}


@dataclass
class FeedOptions:
    user_id: str
    limit: int = 20
    offset: int = 0
    include_following: bool = True
    include_public: bool = True
    content_types: tuple[ContentType, ...] = (ContentType.BOOKMARK, ContentType.POST, ContentType.COLLECTION)


@dataclass
class UserPreferences:
    """Tags the viewer uses most, most frequent first."""

    tags: list[str] = field(default_factory=list)


@dataclass
class EngagementCounts:
    likes: int = 0
    comments: int = 0
    views: int = 0


@dataclass
class FeedItem:
    """One ranked entry of a personalized feed."""

    id: str
    type: ContentType
    user_id: str
    created_at: str
    username: str = "Unknown"
    avatar_url: str | None = None
    content: dict[str, Any] = field(default_factory=dict)
    engagement: EngagementCounts = field(default_factory=EngagementCounts)
    score: float = 0.0
    engagement_score: float = 0.0
    recency_score: float = 0.0
    relevance_score: float = 0.0

    @property
    def tags(self) -> list[str]:
        return self.content.get("tags") or []

    @classmethod
    def from_db_row(cls, row, content_type: ContentType) -> FeedItem:
        """Create an unscored item from a candidate row (content columns + author profile)."""
        data = dict(row)
        if content_type == ContentType.BOOKMARK:
            content = {"url": data.get("url"), "title": data.get("title"), "description": data.get("description")}
        elif content_type == ContentType.POST:
            content = {"title": data.get("title"), "content": data.get("content")}
        else:
            content = {"name": data.get("name"), "description": data.get("description")}
        return cls(
            id=data["id"],
            type=content_type,
            user_id=data["user_id"],
            created_at=data["created_at"],
            username=data.get("username") or "Unknown",
            avatar_url=data.get("avatar_url"),
            content=content,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "user_id": self.user_id,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at,
            "content": self.content,
            "score": self.score,
            "engagement_score": self.engagement_score,
            "recency_score": self.recency_score,
            "relevance_score": self.relevance_score,
        }
