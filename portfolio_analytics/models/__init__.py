from portfolio_analytics.models.engagement import (
    Comment,
    CommentStatus,
    EngagementSnapshot,
    ItemEngagement,
    RatingEntry,
    RatingSummary,
)
from portfolio_analytics.models.insight import Alert, Impact, Insight, Priority, Recommendation, Severity
from portfolio_analytics.models.report import Report, ReportType
from portfolio_analytics.models.session import Session

__all__ = [
    "Alert",
    "Comment",
    "CommentStatus",
    "EngagementSnapshot",
    "Impact",
    "Insight",
    "ItemEngagement",
    "Priority",
    "RatingEntry",
    "RatingSummary",
    "Recommendation",
    "Report",
    "ReportType",
    "Session",
    "Severity",
]
