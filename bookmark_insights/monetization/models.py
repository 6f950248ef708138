"""Creator monetization data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class CreatorMetrics:
    """A creator's counters at evaluation time."""

    total_followers: int = 0
    total_bookmarks: int = 0
    total_collections: int = 0
    total_views: int = 0
    total_likes: int = 0
    total_comments: int = 0
    account_age_days: int = 0

    @property
    def total_engagements(self) -> int:
        return self.total_likes + self.total_comments

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EligibilityResult:
    is_eligible: bool
    quality_score: int
    reasons: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RequirementProgress:
    current: float
    required: float
    percentage: float


@dataclass
class MonetizationApplication:
    """A row of the creator_monetization table."""

    user_id: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    id: int | None = None
    application_date: datetime | str | None = None
    total_followers: int = 0
    total_bookmarks: int = 0
    total_collections: int = 0
    total_views: int = 0
    total_engagements: int = 0
    engagement_rate: float = 0.0
    quality_score: int = 0
    revenue_share_percentage: int = 0
    reviewed_at: datetime | str | None = None
    reviewer_notes: str | None = None

    def to_db_dict(self) -> dict:
        """Convert to a dict suitable for SQLite insertion (without the row id)."""
        return {
            "user_id": self.user_id,
            "status": self.status.value if isinstance(self.status, ApplicationStatus) else self.status,
            "application_date": str(self.application_date) if self.application_date else None,
            "total_followers": self.total_followers,
            "total_bookmarks": self.total_bookmarks,
            "total_collections": self.total_collections,
            "total_views": self.total_views,
            "total_engagements": self.total_engagements,
            "engagement_rate": self.engagement_rate,
            "quality_score": self.quality_score,
            "revenue_share_percentage": self.revenue_share_percentage,
        }

    @classmethod
    def from_db_row(cls, row) -> MonetizationApplication:
        data = dict(row)
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            status=ApplicationStatus(data["status"]),
            application_date=data.get("application_date"),
            total_followers=data.get("total_followers") or 0,
            total_bookmarks=data.get("total_bookmarks") or 0,
            total_collections=data.get("total_collections") or 0,
            total_views=data.get("total_views") or 0,
            total_engagements=data.get("total_engagements") or 0,
            engagement_rate=data.get("engagement_rate") or 0.0,
            quality_score=data.get("quality_score") or 0,
            revenue_share_percentage=data.get("revenue_share_percentage") or 0,
            reviewed_at=data.get("reviewed_at"),
            reviewer_notes=data.get("reviewer_notes"),
        )

