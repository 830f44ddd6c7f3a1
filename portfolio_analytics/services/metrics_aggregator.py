"""
Metrics Aggregator

Time-bucketed visitor and page-view counters, demographic tallies, a bounded
response-time sample buffer and API-call counters.

All state sits behind one lock. Public coroutines take the lock once and
delegate to private helpers that assume it is held, so a single query never
sees a half-applied update.
"""

import asyncio
import logging
import math
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from portfolio_analytics.utils.clock import Clock, day_key, month_key, utc_now, week_key
from portfolio_analytics.utils.user_agent import classify_browser, classify_device

logger = logging.getLogger(__name__)

FUNNEL_STEPS = ("view", "like", "favorite", "contact")
UNDERPERFORMING_RATIO = 0.3


@dataclass(frozen=True)
class ResponseSample:
    endpoint: str
    time_ms: float
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"endpoint": self.endpoint, "time_ms": self.time_ms, "timestamp": self.timestamp.isoformat()}


def growth_rate(series: list[dict[str, Any]]) -> float:
    """
    Percent change between the mean of the first and second half of a series.

    Returns 0 when there is nothing to compare against.
    """
    if len(series) < 2:
        return 0.0

    middle = len(series) // 2
    first_half = series[:middle]
    second_half = series[middle:]

    first_avg = sum(point["count"] for point in first_half) / len(first_half)
    second_avg = sum(point["count"] for point in second_half) / len(second_half)

    if first_avg == 0:
        return 0.0
    return (second_avg - first_avg) / first_avg * 100


class MetricsAggregator:
    """In-memory traffic, engagement and performance metrics."""

    def __init__(
        self,
        sample_capacity: int = 1000,
        bounce_threshold_ms: int = 30000,
        clock: Clock | None = None,
    ):
        self._lock = asyncio.Lock()
        self._clock = clock or utc_now
        self.bounce_threshold_ms = bounce_threshold_ms
        self.started_at = self._clock()

        # Visitors
        self._daily: Counter = Counter()
        self._weekly: Counter = Counter()
        self._monthly: Counter = Counter()
        self._new_visitors: set[str] = set()
        self._returning_visitors: set[str] = set()

        # Page views
        self._page_views_total = 0
        self._page_views: Counter = Counter()
        self._page_time_ms: Counter = Counter()
        self._page_bounces: Counter = Counter()
        self._page_views_by_day: Counter = Counter()

        # Engagement
        self._interactions_total = 0
        self._interaction_types: Counter = Counter()
        self._interactions_by_day: Counter = Counter()
        self._funnel: dict[str, int] = {step: 0 for step in FUNNEL_STEPS}

        # Performance
        self._samples: deque[ResponseSample] = deque(maxlen=sample_capacity)
        self._api_calls: Counter = Counter()
        self._errors = 0

        # Demographics
        self._countries: Counter = Counter()
        self._devices: Counter = Counter()
        self._browsers: Counter = Counter()
        self._referrers: Counter = Counter()

    # ── Tracking ─────────────────────────────────────────────────────────────

    async def track_visitor(
        self,
        session_id: str,
        user_agent: str | None = None,
        country: str | None = None,
        referrer: str | None = None,
        is_returning: bool = False,
    ) -> str:
        """
        Count a visit and classify the visitor.

        First sight is ``new``; any later sight moves the id to ``returning``.
        A returning visitor is never reclassified as new.

        Returns:
            The visitor classification after this visit
        """
        now = self._clock()
        async with self._lock:
            self._daily[day_key(now)] += 1
            self._weekly[week_key(now)] += 1
            self._monthly[month_key(now)] += 1

            if session_id in self._returning_visitors:
                classification = "returning"
            elif is_returning or session_id in self._new_visitors:
                self._new_visitors.discard(session_id)
                self._returning_visitors.add(session_id)
                classification = "returning"
            else:
                self._new_visitors.add(session_id)
                classification = "new"

            if country:
                self._countries[country] += 1
            if referrer:
                self._referrers[referrer] += 1
            if user_agent:
                self._devices[classify_device(user_agent)] += 1
                self._browsers[classify_browser(user_agent)] += 1

        logger.debug("Visitor %s tracked as %s", session_id, classification)
        return classification

    async def track_page_view(self, page: str, time_spent_ms: int | None = None) -> None:
        """
        Count a page view.

        A bounce is only recorded when a duration was supplied and it falls
        under the threshold; a missing duration is not a bounce.
        """
        now = self._clock()
        async with self._lock:
            self._page_views_total += 1
            self._page_views[page] += 1
            self._page_views_by_day[day_key(now)] += 1

            if time_spent_ms is not None:
                if time_spent_ms > 0:
                    self._page_time_ms[page] += time_spent_ms
                if time_spent_ms < self.bounce_threshold_ms:
                    self._page_bounces[page] += 1

    async def track_performance(self, endpoint: str, response_time_ms: float, success: bool = True) -> None:
        """Record a response-time sample; the buffer drops its oldest entry when full."""
        sample = ResponseSample(endpoint=endpoint, time_ms=response_time_ms, timestamp=self._clock())
        async with self._lock:
            self._samples.append(sample)
            self._api_calls[endpoint] += 1
            if not success:
                self._errors += 1

    async def track_engagement(self, interaction_type: str, data: dict[str, Any] | None = None) -> None:
        """Tally an interaction and advance the conversion funnel."""
        now = self._clock()
        async with self._lock:
            self._interactions_total += 1
            self._interaction_types[interaction_type] += 1
            self._interactions_by_day[day_key(now)] += 1
            if interaction_type in self._funnel:
                self._funnel[interaction_type] += 1

        if data:
            logger.debug("Engagement %s tracked with %s", interaction_type, data)

    # ── Private helpers (lock held) ──────────────────────────────────────────

    def _average_response_time(self) -> float:
        if not self._samples:
            return 0.0
        return sum(sample.time_ms for sample in self._samples) / len(self._samples)

    def _percentile(self, percentile: float) -> float:
        times = sorted(sample.time_ms for sample in self._samples)
        if not times:
            return 0.0
        rank = math.ceil(percentile * len(times) / 100)
        return times[min(max(rank, 1), len(times)) - 1]

    def _slowest_endpoints(self, limit: int) -> list[dict[str, Any]]:
        grouped: dict[str, list[float]] = {}
        for sample in self._samples:
            grouped.setdefault(sample.endpoint, []).append(sample.time_ms)

        ranked = [{"endpoint": endpoint, "avg_time_ms": sum(times) / len(times)} for endpoint, times in grouped.items()]
        ranked.sort(key=lambda entry: entry["avg_time_ms"], reverse=True)
        return ranked[:limit]

    def _top_pages(self, limit: int) -> list[dict[str, Any]]:
        return [{"page": page, "views": views} for page, views in self._page_views.most_common(limit)]

    def _underperforming_pages(self) -> list[dict[str, Any]]:
        if not self._page_views:
            return []
        mean_views = sum(self._page_views.values()) / len(self._page_views)
        return [
            {"page": page, "views": views}
            for page, views in self._page_views.items()
            if views < mean_views * UNDERPERFORMING_RATIO
        ]

    def _error_rate(self) -> float:
        total_calls = sum(self._api_calls.values())
        return self._errors / total_calls if total_calls else 0.0

    def _engagement_rate(self) -> float:
        visitors = len(self._new_visitors) + len(self._returning_visitors)
        return self._interactions_total / visitors if visitors else 0.0

    def _top_interaction_types(self, limit: int) -> list[dict[str, Any]]:
        return [{"type": kind, "count": count} for kind, count in self._interaction_types.most_common(limit)]

    def _average_time_spent(self) -> float:
        if not self._page_views_total:
            return 0.0
        return sum(self._page_time_ms.values()) / self._page_views_total

    def _last_n_days(self, days: int) -> list[dict[str, Any]]:
        today = self._clock().date()
        series = []
        for offset in range(days - 1, -1, -1):
            key = day_key(today - timedelta(days=offset))
            series.append({"date": key, "count": self._daily.get(key, 0)})
        return series

    def _demographics(self) -> dict[str, dict[str, int]]:
        return {
            "countries": dict(self._countries),
            "devices": dict(self._devices),
            "browsers": dict(self._browsers),
            "referrers": dict(self._referrers),
        }

    def _uptime_seconds(self) -> float:
        return round((self._clock() - self.started_at).total_seconds(), 2)

    # ── Queries ──────────────────────────────────────────────────────────────

    async def average_response_time(self) -> float:
        async with self._lock:
            return self._average_response_time()

    async def percentile(self, percentile: float) -> float:
        """Nearest-rank percentile over the buffered response times."""
        async with self._lock:
            return self._percentile(percentile)

    async def slowest_endpoints(self, limit: int = 5) -> list[dict[str, Any]]:
        async with self._lock:
            return self._slowest_endpoints(limit)

    async def top_pages(self, limit: int = 10) -> list[dict[str, Any]]:
        async with self._lock:
            return self._top_pages(limit)

    async def underperforming_pages(self) -> list[dict[str, Any]]:
        """Pages with fewer than 30% of the mean views per page."""
        async with self._lock:
            return self._underperforming_pages()

    async def error_rate(self) -> float:
        async with self._lock:
            return self._error_rate()

    async def engagement_rate(self) -> float:
        async with self._lock:
            return self._engagement_rate()

    async def top_interaction_types(self, limit: int = 5) -> list[dict[str, Any]]:
        async with self._lock:
            return self._top_interaction_types(limit)

    async def average_time_spent(self) -> float:
        async with self._lock:
            return self._average_time_spent()

    async def last_n_days(self, days: int) -> list[dict[str, Any]]:
        """Daily visitor counts for the last ``days`` days, oldest first."""
        async with self._lock:
            return self._last_n_days(days)

    async def samples(self) -> list[ResponseSample]:
        async with self._lock:
            return list(self._samples)

    async def page_bounces(self, page: str) -> int:
        async with self._lock:
            return self._page_bounces.get(page, 0)

    async def visitor_counts(self) -> dict[str, int]:
        async with self._lock:
            return {
                "total": len(self._new_visitors) + len(self._returning_visitors),
                "unique": len(self._new_visitors),
                "returning": len(self._returning_visitors),
            }

    async def today(self) -> dict[str, int]:
        """Visitor, page-view and interaction counts for the current day."""
        key = day_key(self._clock())
        async with self._lock:
            return {
                "visitors": self._daily.get(key, 0),
                "page_views": self._page_views_by_day.get(key, 0),
                "interactions": self._interactions_by_day.get(key, 0),
            }

    async def engagement_summary(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "total": self._interactions_total,
                "rate": self._engagement_rate(),
                "types": dict(self._interaction_types),
                "conversion_funnel": dict(self._funnel),
            }

    async def performance_summary(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "avg_response_time_ms": self._average_response_time(),
                "p95_response_time_ms": self._percentile(95),
                "slowest_endpoints": self._slowest_endpoints(5),
                "error_rate": self._error_rate(),
                "errors": self._errors,
                "api_calls": dict(self._api_calls),
                "uptime_seconds": self._uptime_seconds(),
            }

    async def demographics(self) -> dict[str, dict[str, int]]:
        async with self._lock:
            return self._demographics()

    async def get_metrics(self) -> dict[str, Any]:
        """Full snapshot of every tracked metric."""
        async with self._lock:
            page_bounce_total = sum(self._page_bounces.values())
            return {
                "visitors": {
                    "total": len(self._new_visitors) + len(self._returning_visitors),
                    "unique": len(self._new_visitors),
                    "returning": len(self._returning_visitors),
                    "daily": dict(self._daily),
                    "weekly": dict(self._weekly),
                    "monthly": dict(self._monthly),
                },
                "page_views": {
                    "total": self._page_views_total,
                    "pages": dict(self._page_views),
                    "time_spent_ms": dict(self._page_time_ms),
                    "bounces": dict(self._page_bounces),
                    "bounce_rate": page_bounce_total / self._page_views_total if self._page_views_total else 0.0,
                },
                "engagement": {
                    "total": self._interactions_total,
                    "rate": self._engagement_rate(),
                    "types": dict(self._interaction_types),
                    "conversion_funnel": dict(self._funnel),
                },
                "performance": {
                    "avg_response_time_ms": self._average_response_time(),
                    "p95_response_time_ms": self._percentile(95),
                    "error_rate": self._error_rate(),
                    "errors": self._errors,
                    "api_calls": dict(self._api_calls),
                    "samples": len(self._samples),
                    "uptime_seconds": self._uptime_seconds(),
                },
                "demographics": self._demographics(),
            }
