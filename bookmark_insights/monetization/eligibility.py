"""Creator eligibility and quality score for monetization."""

from __future__ import annotations

from bookmark_insights.monetization.models import CreatorMetrics, EligibilityResult, RequirementProgress
from bookmark_insights.utils.numbers import round_half_up

MINIMUM_REQUIREMENTS = {
    "followers": 100,
    "bookmarks": 20,
    "total_views": 1000,
    "total_engagements": 100,
    "account_age_days": 30,
    "quality_score": 60,
}

# Quality score components: (max points, value that earns the max)
ENGAGEMENT_POINTS = 40
ENGAGEMENT_RATE_MULTIPLIER = 400  # 10% engagement earns the full 40
CONTENT_POINTS, BOOKMARKS_FOR_MAX = 20, 100
FOLLOWER_POINTS, FOLLOWERS_FOR_MAX = 20, 500
VIEW_POINTS, VIEWS_FOR_MAX = 20, 5000

BASE_REVENUE_SHARE = 60
MAX_REVENUE_BONUS = 20


def calculate_engagement_rate(metrics: CreatorMetrics) -> float:
    """(likes + comments) / views, or 0 without views."""
    if metrics.total_views == 0:
        return 0.0
    return metrics.total_engagements / metrics.total_views


def calculate_quality_score(metrics: CreatorMetrics) -> int:
    """Quality score 0-100.

    Each component is capped on its own before summing:
    engagement rate (40), bookmarks (20), followers (20), views (20).
    """
    engagement = min(ENGAGEMENT_POINTS, calculate_engagement_rate(metrics) * ENGAGEMENT_RATE_MULTIPLIER)
    content = min(CONTENT_POINTS, metrics.total_bookmarks / BOOKMARKS_FOR_MAX * CONTENT_POINTS)
    followers = min(FOLLOWER_POINTS, metrics.total_followers / FOLLOWERS_FOR_MAX * FOLLOWER_POINTS)
    views = min(VIEW_POINTS, metrics.total_views / VIEWS_FOR_MAX * VIEW_POINTS)

    score = round_half_up(engagement + content + followers + views)
    return max(0, min(100, score))


def check_eligibility(metrics: CreatorMetrics) -> EligibilityResult:
    """Evaluate every requirement; all unmet ones are reported, not just the first."""
    quality_score = calculate_quality_score(metrics)
    reasons: list[str] = []
    recommendations: list[str] = []

    checks = [
        (
            metrics.total_followers >= MINIMUM_REQUIREMENTS["followers"],
            f"Need at least {MINIMUM_REQUIREMENTS['followers']} followers (currently {metrics.total_followers})",
            "Share quality content consistently to grow your follower base",
        ),
        (
            metrics.total_bookmarks >= MINIMUM_REQUIREMENTS["bookmarks"],
            f"Need at least {MINIMUM_REQUIREMENTS['bookmarks']} bookmarks (currently {metrics.total_bookmarks})",
            "Create more high-quality bookmarks with detailed descriptions",
        ),
        (
            metrics.total_views >= MINIMUM_REQUIREMENTS["total_views"],
            f"Need at least {MINIMUM_REQUIREMENTS['total_views']} total views (currently {metrics.total_views})",
            "Promote your content on social media to increase visibility",
        ),
        (
            metrics.total_engagements >= MINIMUM_REQUIREMENTS["total_engagements"],
            f"Need at least {MINIMUM_REQUIREMENTS['total_engagements']} total engagements "
            f"(currently {metrics.total_engagements})",
            "Engage with your community and create interactive content",
        ),
        (
            metrics.account_age_days >= MINIMUM_REQUIREMENTS["account_age_days"],
            f"Account must be at least {MINIMUM_REQUIREMENTS['account_age_days']} days old "
            f"(currently {metrics.account_age_days} days)",
            "Continue building your presence - time is required for trust",
        ),
        (
            quality_score >= MINIMUM_REQUIREMENTS["quality_score"],
            f"Quality score must be at least {MINIMUM_REQUIREMENTS['quality_score']} (currently {quality_score})",
            "Focus on content quality and community engagement",
        ),
    ]

    for passed, reason, recommendation in checks:
        if not passed:
            reasons.append(reason)
            recommendations.append(recommendation)

    is_eligible = not reasons
    if is_eligible:
        reasons.append("Congratulations! You meet all requirements for creator monetization")

    return EligibilityResult(
        is_eligible=is_eligible,
        quality_score=quality_score,
        reasons=reasons,
        recommendations=recommendations,
    )


def calculate_revenue_share(quality_score: float) -> int:
    """Creator revenue share in percent: 60 at score 0 up to 80 at score 100."""
    return round_half_up(BASE_REVENUE_SHARE + quality_score / 100 * MAX_REVENUE_BONUS)


def get_requirements_progress(metrics: CreatorMetrics) -> dict[str, RequirementProgress]:
    """Progress towards each minimum, capped at 100%."""
    current = {
        "followers": metrics.total_followers,
        "bookmarks": metrics.total_bookmarks,
        "views": metrics.total_views,
        "engagements": metrics.total_engagements,
        "account_age": metrics.account_age_days,
    }
    required = {
        "followers": MINIMUM_REQUIREMENTS["followers"],
        "bookmarks": MINIMUM_REQUIREMENTS["bookmarks"],
        "views": MINIMUM_REQUIREMENTS["total_views"],
        "engagements": MINIMUM_REQUIREMENTS["total_engagements"],
        "account_age": MINIMUM_REQUIREMENTS["account_age_days"],
    }
    return {
        key: RequirementProgress(
            current=current[key],
            required=required[key],
            percentage=min(100.0, current[key] / required[key] * 100),
        )
        for key in current
    }
