"""
Insight Engine

Periodically analyses the metrics and the interaction ledger and produces
automated insights, recommendations, alerts and simple predictions.

Analysis is lazy: a read triggers a recompute only when the last one is older
than the refresh interval (or has never happened). Insights and
recommendations are rebuilt on every recompute; alerts accumulate up to the
configured retention.
"""

import asyncio
import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from portfolio_analytics.exceptions import InternalError
from portfolio_analytics.models.insight import Alert, Impact, Insight, Priority, Recommendation, Severity
from portfolio_analytics.services.interaction_ledger import InteractionLedger
from portfolio_analytics.services.metrics_aggregator import MetricsAggregator, growth_rate
from portfolio_analytics.utils.clock import Clock, utc_now
from portfolio_analytics.utils.metrics import INSIGHT_RECOMPUTES_TOTAL, record_alert

logger = logging.getLogger(__name__)

TRAFFIC_SURGE_THRESHOLD = 20.0
TRAFFIC_DECLINE_THRESHOLD = -10.0
HIGH_ENGAGEMENT_RATE = 0.15
LOW_ENGAGEMENT_RATE = 0.05
SLOW_RESPONSE_MS = 1000
HIGH_ERROR_RATE = 0.05
TRENDING_ITEMS = 5


@dataclass
class AnalysisBatch:
    """Results of one analysis pass, collected before anything is published."""

    timestamp: datetime
    insights: list[Insight] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    predictions: dict[str, Any] = field(default_factory=lambda: {"next_week_visitors": 0, "trending_items": []})

    def insight(self, kind: str, title: str, description: str, impact: Impact, data: Any = None) -> None:
        self.insights.append(Insight(kind, title, description, impact, self.timestamp, data))

    def recommend(self, kind: str, title: str, description: str, priority: Priority, data: Any = None) -> None:
        self.recommendations.append(Recommendation(kind, title, description, priority, self.timestamp, data))

    def alert(self, kind: str, title: str, description: str, severity: Severity) -> None:
        self.alerts.append(Alert(kind, title, description, severity, self.timestamp))


class InsightEngine:
    """Lazily refreshed analysis over the metrics aggregator and ledger."""

    def __init__(
        self,
        metrics: MetricsAggregator,
        ledger: InteractionLedger,
        refresh_interval: timedelta = timedelta(hours=1),
        max_alerts: int = 500,
        clock: Clock | None = None,
    ):
        self._metrics = metrics
        self._ledger = ledger
        self._refresh_interval = refresh_interval
        self._clock = clock or utc_now
        self._lock = asyncio.Lock()

        self._automated: list[Insight] = []
        self._recommendations: list[Recommendation] = []
        self._alerts: deque[Alert] = deque(maxlen=max_alerts or None)
        self._predictions: dict[str, Any] = {"next_week_visitors": 0, "trending_items": []}
        self.last_analysis: datetime | None = None

    def is_stale(self) -> bool:
        if self.last_analysis is None:
            return True
        return self._clock() - self.last_analysis >= self._refresh_interval

    async def refresh(self, force: bool = False) -> bool:
        """
        Recompute insights if stale.

        The watermark is re-checked under the lock, so concurrent callers in
        the same stale window trigger a single recompute.

        Returns:
            True if a recompute ran
        """
        async with self._lock:
            if not force and not self.is_stale():
                return False
            await self._recompute()
            return True

    async def get_insights(self) -> dict[str, Any]:
        """Current insights, refreshing them first when stale."""
        await self.refresh()
        async with self._lock:
            return {
                "automated": [insight.to_dict() for insight in self._automated],
                "recommendations": [rec.to_dict() for rec in self._recommendations],
                "alerts": [alert.to_dict() for alert in self._alerts],
                "predictions": {
                    "next_week_visitors": self._predictions["next_week_visitors"],
                    "trending_items": copy.deepcopy(self._predictions["trending_items"]),
                },
                "last_updated": self.last_analysis.isoformat() if self.last_analysis else None,
            }

    async def clear_alerts(self) -> int:
        """Drop every retained alert. Returns how many were removed."""
        async with self._lock:
            removed = len(self._alerts)
            self._alerts.clear()
        logger.info("Cleared %d alerts", removed)
        return removed

    # ── Pipeline ─────────────────────────────────────────────────────────────

    async def _recompute(self) -> None:
        batch = AnalysisBatch(timestamp=self._clock())
        try:
            await self._analyze_traffic(batch)
            await self._analyze_engagement(batch)
            await self._analyze_performance(batch)
            await self._analyze_content(batch)
            await self._predict(batch)
        except (ArithmeticError, KeyError, ValueError) as e:
            logger.error("Insight analysis failed: %s", e, exc_info=True)
            raise InternalError("Insight analysis failed", operation="insights") from e

        # Published only once the whole pass succeeded
        self._automated = batch.insights
        self._recommendations = batch.recommendations
        self._predictions = batch.predictions
        for alert in batch.alerts:
            self._alerts.append(alert)
            record_alert(alert.severity.value)
            logger.warning("Alert raised: %s (%s)", alert.title, alert.description)

        self.last_analysis = batch.timestamp
        INSIGHT_RECOMPUTES_TOTAL.inc()
        logger.info(
            "Insight analysis produced %d insights, %d recommendations (%d alerts retained)",
            len(self._automated),
            len(self._recommendations),
            len(self._alerts),
        )

    async def _analyze_traffic(self, batch: AnalysisBatch) -> None:
        growth = growth_rate(await self._metrics.last_n_days(7))

        if growth > TRAFFIC_SURGE_THRESHOLD:
            batch.insight(
                "traffic_surge",
                "Traffic surge detected",
                f"Traffic grew {growth:.1f}% over the last 7 days",
                Impact.HIGH,
            )
        elif growth < TRAFFIC_DECLINE_THRESHOLD:
            batch.insight(
                "traffic_decline",
                "Traffic decline",
                f"Traffic fell {abs(growth):.1f}% over the last 7 days",
                Impact.MEDIUM,
            )
            batch.recommend(
                "content_strategy",
                "Improve content strategy",
                "Consider publishing new content or promoting existing items",
                Priority.HIGH,
            )

    async def _analyze_engagement(self, batch: AnalysisBatch) -> None:
        rate = await self._metrics.engagement_rate()

        if rate > HIGH_ENGAGEMENT_RATE:
            batch.insight(
                "high_engagement", "Excellent engagement", f"Engagement rate of {rate * 100:.1f}%", Impact.POSITIVE
            )
        elif rate < LOW_ENGAGEMENT_RATE:
            batch.recommend(
                "improve_engagement",
                "Improve engagement",
                "Add more interactive elements or improve existing content",
                Priority.MEDIUM,
            )

        top_types = await self._metrics.top_interaction_types(1)
        if top_types:
            top = top_types[0]
            batch.insight(
                "popular_interaction",
                f"{top['type']} is the most popular interaction",
                f"{top['count']} interactions recorded",
                Impact.INFO,
            )

    async def _analyze_performance(self, batch: AnalysisBatch) -> None:
        avg_response = await self._metrics.average_response_time()
        if avg_response > SLOW_RESPONSE_MS:
            batch.alert(
                "performance_warning",
                "High response time",
                f"Average response time: {avg_response:.0f}ms",
                Severity.WARNING,
            )
            batch.recommend(
                "optimize_performance",
                "Optimize performance",
                "Consider caching or optimizing slow queries",
                Priority.HIGH,
            )

        error_rate = await self._metrics.error_rate()
        if error_rate > HIGH_ERROR_RATE:
            batch.alert(
                "error_rate_high", "High error rate", f"{error_rate * 100:.2f}% of requests failed", Severity.CRITICAL
            )

    async def _analyze_content(self, batch: AnalysisBatch) -> None:
        top_pages = await self._metrics.top_pages(5)
        if top_pages:
            leader = top_pages[0]
            batch.insight(
                "top_content",
                "Most popular content",
                f"{leader['page']} leads with {leader['views']} views",
                Impact.POSITIVE,
                data=top_pages,
            )

        underperforming = await self._metrics.underperforming_pages()
        if underperforming:
            batch.recommend(
                "improve_content",
                "Improve underperforming content",
                f"{len(underperforming)} pages need attention",
                Priority.MEDIUM,
                data=underperforming,
            )

    async def _predict(self, batch: AnalysisBatch) -> None:
        last_week = await self._metrics.last_n_days(7)
        mean_daily = sum(point["count"] for point in last_week) / len(last_week)
        trending = await self._ledger.get_top_items(TRENDING_ITEMS)

        batch.predictions = {
            "next_week_visitors": round(mean_daily * 7),
            "trending_items": [snapshot.to_dict() for snapshot in trending],
        }
