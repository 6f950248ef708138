"""Creator monetization applications via SQLite with status checks."""

from __future__ import annotations

from bookmark_insights.analytics.aggregator import MetricsAggregator
from bookmark_insights.db import Database
from bookmark_insights.monetization.eligibility import (
    calculate_engagement_rate,
    calculate_revenue_share,
    check_eligibility,
    get_requirements_progress,
)
from bookmark_insights.monetization.models import (
    ApplicationStatus,
    EligibilityResult,
    MonetizationApplication,
)
from bookmark_insights.utils.logger import get_logger
from bookmark_insights.utils.timeutil import to_db_timestamp, utc_now

logger = get_logger()


class ApplicationRejected(Exception):
    """An application could not be submitted."""

    def __init__(self, message: str, eligibility: EligibilityResult | None = None):
        super().__init__(message)
        self.eligibility = eligibility


class ApplicationManager:
    """Submit and inspect creator monetization applications."""

    def __init__(self, db: Database, aggregator: MetricsAggregator):
        self.db = db
        self.aggregator = aggregator

    def get(self, user_id: str) -> MonetizationApplication | None:
        row = self.db.get_application(user_id)
        if row is None:
            return None
        return MonetizationApplication.from_db_row(row)

    def apply(self, user_id: str) -> tuple[MonetizationApplication, EligibilityResult]:
        """Submit (or re-submit after a rejection) an application.

        Raises ApplicationRejected for duplicate pending/approved applications
        and for creators who do not meet the requirements.
        """
        existing = self.get(user_id)
        if existing is not None and existing.status == ApplicationStatus.PENDING:
            raise ApplicationRejected("You already have a pending application")
        if existing is not None and existing.status == ApplicationStatus.APPROVED:
            raise ApplicationRejected("You are already approved for monetization")

        metrics = self.aggregator.creator_metrics(user_id)
        eligibility = check_eligibility(metrics)
        if not eligibility.is_eligible:
            logger.info("Creator %s not eligible (quality score %d)", user_id, eligibility.quality_score)
            raise ApplicationRejected("You do not meet the minimum requirements", eligibility)

        revenue_share = calculate_revenue_share(eligibility.quality_score)
        application = MonetizationApplication(
            user_id=user_id,
            status=ApplicationStatus.PENDING,
            application_date=to_db_timestamp(utc_now()),
            total_followers=metrics.total_followers,
            total_bookmarks=metrics.total_bookmarks,
            total_collections=metrics.total_collections,
            total_views=metrics.total_views,
            total_engagements=metrics.total_engagements,
            engagement_rate=calculate_engagement_rate(metrics) * 100,
            quality_score=eligibility.quality_score,
            revenue_share_percentage=revenue_share,
        )

        if existing is not None:
            # Re-submission after a rejection clears the previous review
            self.db.update_application(
                user_id, {**application.to_db_dict(), "reviewed_at": None, "reviewer_notes": None}
            )
        else:
            self.db.insert_application(application.to_db_dict())
        application = self.get(user_id)

        self.db.insert_notification({
            "user_id": user_id,
            "type": "monetization_application",
            "title": "Monetization Application Submitted",
            "message": "Your creator monetization application has been submitted and is pending review.",
            "data": {
                "application_id": application.id,
                "quality_score": eligibility.quality_score,
                "revenue_share": revenue_share,
            },
        })
        logger.info("Submitted monetization application for %s (revenue share %d%%)", user_id, revenue_share)
        return application, eligibility

    def status(self, user_id: str) -> dict:
        """Current application (if any) with fresh metrics, eligibility and progress."""
        metrics = self.aggregator.creator_metrics(user_id)
        eligibility = check_eligibility(metrics)
        return {
            "application": self.get(user_id),
            "eligibility": eligibility,
            "progress": get_requirements_progress(metrics),
            "metrics": metrics,
            "revenue_share": calculate_revenue_share(eligibility.quality_score),
        }
