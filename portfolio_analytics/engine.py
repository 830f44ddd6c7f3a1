"""
Engagement Engine

Process-wide context object owning one instance of each component. Routes
reach it through ``request.app.state.engine``; nothing else holds domain
state.

Every interaction follows the same path: validate, apply to the ledger,
tally it in the metrics aggregator, then touch the visitor session.
"""

import logging
from datetime import timedelta
from typing import Any

from fastapi import Request

from portfolio_analytics.config import Settings
from portfolio_analytics.exceptions import InvalidSessionReferenceError
from portfolio_analytics.models.engagement import Comment, CommentStatus, EngagementSnapshot, RatingSummary
from portfolio_analytics.models.report import ReportType
from portfolio_analytics.models.session import Session
from portfolio_analytics.services.export_service import AnalyticsExporter, ExportFormat, ExportType
from portfolio_analytics.services.insight_engine import InsightEngine
from portfolio_analytics.services.interaction_ledger import InteractionLedger
from portfolio_analytics.services.metrics_aggregator import MetricsAggregator
from portfolio_analytics.services.report_generator import ReportGenerator
from portfolio_analytics.services.session_registry import SessionRegistry
from portfolio_analytics.utils.clock import Clock, day_key, utc_now

logger = logging.getLogger(__name__)


def _require_session_id(session_id: Any) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise InvalidSessionReferenceError(session_id)
    return session_id


class EngagementEngine:
    def __init__(
        self,
        sessions: SessionRegistry,
        ledger: InteractionLedger,
        metrics: MetricsAggregator,
        insights: InsightEngine,
        reports: ReportGenerator,
        exporter: AnalyticsExporter,
        clock: Clock | None = None,
    ):
        self.sessions = sessions
        self.ledger = ledger
        self.metrics = metrics
        self.insights = insights
        self.reports = reports
        self.exporter = exporter
        self._clock = clock or utc_now

    # ── Sessions ─────────────────────────────────────────────────────────────

    async def create_session(self, metadata: dict[str, Any] | None = None) -> Session:
        return await self.sessions.create_session(metadata)

    async def update_session(self, session_id: str, updates: dict[str, Any]) -> Session | None:
        return await self.sessions.update_session(session_id, updates)

    async def get_session(self, session_id: str) -> Session | None:
        return await self.sessions.get_session(session_id)

    # ── Interactions ─────────────────────────────────────────────────────────

    async def _after_interaction(self, interaction_type: str, session_id: str, **data: Any) -> None:
        await self.metrics.track_engagement(interaction_type, {"session_id": session_id, **data})
        await self.sessions.touch(session_id)

    async def toggle_like(self, item_id: str, session_id: str) -> dict[str, Any]:
        _require_session_id(session_id)
        result = await self.ledger.toggle_like(item_id, session_id)
        await self._after_interaction("like", session_id, item_id=item_id, liked=result["liked"])
        return result

    async def toggle_favorite(self, item_id: str, session_id: str) -> dict[str, Any]:
        _require_session_id(session_id)
        result = await self.ledger.toggle_favorite(item_id, session_id)
        await self._after_interaction("favorite", session_id, item_id=item_id, favorited=result["favorited"])
        return result

    async def track_view(self, item_id: str, session_id: str, duration_ms: int = 0) -> dict[str, Any]:
        _require_session_id(session_id)
        result = await self.ledger.track_view(item_id, session_id, duration_ms)
        await self.metrics.track_engagement("view", {"session_id": session_id, "item_id": item_id})
        await self.sessions.touch(session_id, time_spent_ms=duration_ms)
        return result

    async def add_comment(
        self,
        item_id: str,
        session_id: str,
        content: str,
        author: str | None = None,
        email: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Comment:
        _require_session_id(session_id)
        comment = await self.ledger.add_comment(item_id, session_id, content, author, email, metadata)
        await self._after_interaction("comment", session_id, item_id=item_id)
        return comment

    async def get_comments(self, item_id: str, status: CommentStatus | str = CommentStatus.APPROVED) -> list[Comment]:
        return await self.ledger.get_comments(item_id, status)

    async def moderate_comment(self, item_id: str, comment_id: str, status: CommentStatus | str) -> Comment | None:
        return await self.ledger.moderate_comment(item_id, comment_id, status)

    async def add_rating(
        self, item_id: str, session_id: str, rating: int, review: str | None = None
    ) -> RatingSummary:
        _require_session_id(session_id)
        summary = await self.ledger.add_rating(item_id, session_id, rating, review)
        await self._after_interaction("rating", session_id, item_id=item_id, rating=rating)
        return summary

    async def track_share(self, item_id: str, session_id: str, platform: str = "unknown") -> dict[str, Any]:
        _require_session_id(session_id)
        result = await self.ledger.track_share(item_id, session_id, platform)
        await self._after_interaction("share", session_id, item_id=item_id, platform=platform)
        return result

    async def get_engagement(self, item_id: str) -> EngagementSnapshot | None:
        return await self.ledger.get_engagement(item_id)

    async def get_top_items(self, limit: int = 10) -> list[EngagementSnapshot]:
        return await self.ledger.get_top_items(limit)

    async def get_favorites(self, session_id: str) -> list[str]:
        _require_session_id(session_id)
        return await self.ledger.get_favorites(session_id)

    # ── Metrics ──────────────────────────────────────────────────────────────

    async def track_visitor(
        self,
        session_id: str,
        user_agent: str | None = None,
        country: str | None = None,
        referrer: str | None = None,
        is_returning: bool = False,
    ) -> str:
        _require_session_id(session_id)
        return await self.metrics.track_visitor(session_id, user_agent, country, referrer, is_returning)

    async def track_page_view(
        self, page: str, session_id: str | None = None, time_spent_ms: int | None = None
    ) -> None:
        await self.metrics.track_page_view(page, time_spent_ms)
        if session_id:
            await self.sessions.touch(session_id, page=page, time_spent_ms=time_spent_ms or 0)

    async def track_performance(self, endpoint: str, response_time_ms: float, success: bool = True) -> None:
        await self.metrics.track_performance(endpoint, response_time_ms, success)

    async def track_event(self, event: str, session_id: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Record a custom engagement event, e.g. ``contact`` for the conversion funnel."""
        _require_session_id(session_id)
        await self.metrics.track_engagement(event, {**(data or {}), "session_id": session_id})
        await self.sessions.touch(session_id)
        return {"event": event, "timestamp": self._clock().isoformat()}

    async def get_metrics(self) -> dict[str, Any]:
        return await self.metrics.get_metrics()

    async def get_metrics_section(self, section: str) -> Any | None:
        """One top-level section of the metrics snapshot, or None if there is no such section."""
        return (await self.metrics.get_metrics()).get(section)

    # ── Insights & reports ───────────────────────────────────────────────────

    async def get_insights(self) -> dict[str, Any]:
        return await self.insights.get_insights()

    async def generate_report(self, report_type: ReportType | str) -> dict[str, Any]:
        return await self.reports.generate_report(report_type)

    async def get_reports(self, report_type: ReportType | str | None = None, limit: int | None = None) -> list[dict]:
        return await self.reports.get_reports(report_type, limit)

    async def get_report(self, report_id: str) -> dict[str, Any] | None:
        return await self.reports.get_report(report_id)

    async def export_data(
        self, export_type: ExportType | str = ExportType.ALL, export_format: ExportFormat | str = ExportFormat.JSON
    ) -> tuple[str, str, str]:
        """Render an export file. Returns (body, media type, filename)."""
        return await self.exporter.export(export_type, export_format)

    # ── Housekeeping ─────────────────────────────────────────────────────────

    async def cleanup(self) -> dict[str, int]:
        """Sweep expired sessions."""
        cleaned = await self.sessions.sweep_expired()
        logger.info("Cleaned up %d old sessions", cleaned)
        return {"cleaned_sessions": cleaned}

    async def get_dashboard(self) -> dict[str, Any]:
        """Quick stats plus the full metrics, insights and ranking for an admin view."""
        metrics = await self.metrics.get_metrics()
        insights = await self.insights.get_insights()
        top_items = await self.ledger.get_top_items(5)
        top_pages = await self.metrics.top_pages(1)

        quick_stats = {
            "total_visitors": metrics["visitors"]["total"],
            "unique_visitors": self.sessions.unique_visitors,
            "today_visitors": metrics["visitors"]["daily"].get(day_key(self._clock()), 0),
            "engagement_rate": metrics["engagement"]["rate"],
            "avg_response_time_ms": metrics["performance"]["avg_response_time_ms"],
            "active_sessions": await self.sessions.active_count(),
            "top_page": top_pages[0]["page"] if top_pages else None,
        }

        return {
            "quick_stats": quick_stats,
            "metrics": metrics,
            "insights": insights,
            "top_items": [snapshot.to_dict() for snapshot in top_items],
            "engagement": await self.ledger.get_engagement_stats(),
            "alerts": [alert for alert in insights["alerts"] if alert["severity"] == "critical"],
            "last_updated": self._clock().isoformat(),
        }


def create_engine(settings: Settings, clock: Clock | None = None) -> EngagementEngine:
    """Build an engine with every component wired to the same clock."""
    clock = clock or utc_now
    sessions = SessionRegistry(ttl=timedelta(hours=settings.session_ttl_hours), clock=clock)
    ledger = InteractionLedger(clock=clock)
    metrics = MetricsAggregator(
        sample_capacity=settings.response_sample_capacity,
        bounce_threshold_ms=settings.bounce_threshold_ms,
        clock=clock,
    )
    insights = InsightEngine(
        metrics,
        ledger,
        refresh_interval=timedelta(seconds=settings.insight_refresh_seconds),
        max_alerts=settings.insight_max_alerts,
        clock=clock,
    )
    reports = ReportGenerator(metrics, insights, ledger, clock=clock)
    exporter = AnalyticsExporter(metrics, insights, reports, clock=clock)
    return EngagementEngine(sessions, ledger, metrics, insights, reports, exporter, clock=clock)


def get_engine(request: Request) -> EngagementEngine:
    """FastAPI dependency returning the engine built at startup."""
    return request.app.state.engine
