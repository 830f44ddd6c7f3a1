"""
Report Generator

Compiles daily, weekly, monthly and performance reports from the metrics
aggregator, the insight engine and the interaction ledger, and keeps every
generated report for the lifetime of the process.
"""

import asyncio
import copy
import logging
from datetime import timedelta
from typing import Any

from portfolio_analytics.exceptions import InvalidReportTypeError
from portfolio_analytics.models.report import Report, ReportType
from portfolio_analytics.services.insight_engine import InsightEngine
from portfolio_analytics.services.interaction_ledger import InteractionLedger
from portfolio_analytics.services.metrics_aggregator import MetricsAggregator, growth_rate
from portfolio_analytics.utils.clock import Clock, day_key, utc_now
from portfolio_analytics.utils.metrics import record_report

logger = logging.getLogger(__name__)

SLOW_AVERAGE_RESPONSE_MS = 500
ERROR_RATE_THRESHOLD = 0.01


class ReportGenerator:
    """Builds reports and stores them by id."""

    def __init__(
        self,
        metrics: MetricsAggregator,
        insights: InsightEngine,
        ledger: InteractionLedger,
        clock: Clock | None = None,
    ):
        self._metrics = metrics
        self._insights = insights
        self._ledger = ledger
        self._clock = clock or utc_now
        self._reports: dict[str, Report] = {}
        self._lock = asyncio.Lock()

    async def generate_report(self, report_type: ReportType | str) -> dict[str, Any]:
        """
        Generate and store a report.

        Args:
            report_type: daily, weekly, monthly or performance

        Returns:
            A copy of the stored report

        Raises:
            InvalidReportTypeError: If the type is not one of the above
        """
        try:
            kind = ReportType(report_type)
        except ValueError as e:
            raise InvalidReportTypeError(str(report_type), ReportType.values()) from e

        now = self._clock()
        builders = {
            ReportType.DAILY: self._daily,
            ReportType.WEEKLY: self._weekly,
            ReportType.MONTHLY: self._monthly,
            ReportType.PERFORMANCE: self._performance,
        }
        period, data = await builders[kind](now)

        async with self._lock:
            report_id = f"{kind.value}_{int(now.timestamp() * 1000)}"
            suffix = 1
            while report_id in self._reports:
                report_id = f"{kind.value}_{int(now.timestamp() * 1000)}_{suffix}"
                suffix += 1

            report = Report(id=report_id, type=kind, generated_at=now, period=period, data=copy.deepcopy(data))
            self._reports[report_id] = report

        record_report(kind.value)
        logger.info("Generated %s report %s", kind.value, report_id)
        return report.to_dict()

    async def get_report(self, report_id: str) -> dict[str, Any] | None:
        async with self._lock:
            report = self._reports.get(report_id)
        return report.to_dict() if report else None

    async def get_reports(self, report_type: ReportType | str | None = None, limit: int | None = None) -> list[dict]:
        """Stored reports, newest first, optionally filtered by type."""
        kind = None
        if report_type is not None:
            try:
                kind = ReportType(report_type)
            except ValueError as e:
                raise InvalidReportTypeError(str(report_type), ReportType.values()) from e

        async with self._lock:
            reports = [report for report in self._reports.values() if kind is None or report.type == kind]

        # Insertion order is generation order
        reports.reverse()
        if limit is not None:
            reports = reports[: max(limit, 0)]
        return [report.to_dict() for report in reports]

    # ── Builders ─────────────────────────────────────────────────────────────

    async def _daily(self, now):
        today = await self._metrics.today()
        insights = await self._insights.get_insights()

        period = {"start": day_key(now), "end": day_key(now)}
        data = {
            "visitors": today["visitors"],
            "page_views": today["page_views"],
            "top_pages": await self._metrics.top_pages(5),
            "interactions": today["interactions"],
            "insights": insights["automated"][-5:],
        }
        return period, data

    async def _weekly(self, now):
        series = await self._metrics.last_n_days(7)
        engagement = await self._metrics.engagement_summary()
        top_items = await self._ledger.get_top_items(5)
        insights = await self._insights.get_insights()

        period = {"start": day_key(now - timedelta(days=6)), "end": day_key(now)}
        data = {
            "visitors": {
                "total": sum(point["count"] for point in series),
                "daily": series,
                "growth": growth_rate(series),
            },
            "engagement": {
                "total": engagement["total"],
                "rate": engagement["rate"],
                "top_interactions": await self._metrics.top_interaction_types(5),
            },
            "content": {
                "top_pages": await self._metrics.top_pages(10),
                "avg_time_spent_ms": await self._metrics.average_time_spent(),
                "top_items": [snapshot.to_dict() for snapshot in top_items],
            },
            "demographics": await self._metrics.demographics(),
            "insights": insights["automated"],
            "recommendations": insights["recommendations"],
        }
        return period, data

    async def _monthly(self, now):
        series = await self._metrics.last_n_days(30)
        visitors = await self._metrics.visitor_counts()
        engagement = await self._metrics.engagement_summary()
        performance = await self._metrics.performance_summary()
        insights = await self._insights.get_insights()

        period = {"start": day_key(now - timedelta(days=29)), "end": day_key(now)}
        data = {
            "visitors": {
                "total": sum(point["count"] for point in series),
                "unique": visitors["unique"],
                "returning": visitors["returning"],
                "growth": growth_rate(series),
            },
            "engagement": {
                "total": engagement["total"],
                "conversion_funnel": engagement["conversion_funnel"],
            },
            "performance": {
                "avg_response_time_ms": performance["avg_response_time_ms"],
                "error_rate": performance["error_rate"],
                "uptime_seconds": performance["uptime_seconds"],
            },
            "predictions": insights["predictions"],
            "insights": insights["automated"],
            "recommendations": insights["recommendations"],
        }
        return period, data

    async def _performance(self, now):
        performance = await self._metrics.performance_summary()

        recommendations = []
        if performance["avg_response_time_ms"] > SLOW_AVERAGE_RESPONSE_MS:
            recommendations.append(
                {
                    "type": "response_time",
                    "priority": "high",
                    "message": "Average response time is high, consider caching or query optimization",
                }
            )
        if performance["error_rate"] > ERROR_RATE_THRESHOLD:
            recommendations.append(
                {
                    "type": "error_handling",
                    "priority": "medium",
                    "message": "Error rate is above 1%, review error handling",
                }
            )

        period = {"start": None, "end": None}
        data = {
            "response_time": {
                "average_ms": performance["avg_response_time_ms"],
                "p95_ms": performance["p95_response_time_ms"],
                "slowest_endpoints": performance["slowest_endpoints"],
            },
            "errors": {"rate": performance["error_rate"], "total": performance["errors"]},
            "api_usage": performance["api_calls"],
            "uptime_seconds": performance["uptime_seconds"],
            "recommendations": recommendations,
        }
        return period, data
