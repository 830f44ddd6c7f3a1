"""
Tests for the Insight Engine

Covers freshness of the cached analysis, each analysis rule, alert retention
and predictions.
"""

import asyncio

import pytest

from portfolio_analytics.exceptions import InternalError
from portfolio_analytics.services.insight_engine import InsightEngine


def types_of(entries):
    return [entry["type"] for entry in entries]


@pytest.fixture
def insights(metrics, ledger, clock):
    return InsightEngine(metrics, ledger, clock=clock)


async def visits_per_day(metrics, clock, counts):
    """Track ``counts[i]`` visits on consecutive days, ending on the current clock day."""
    for day, count in enumerate(counts):
        for n in range(count):
            await metrics.track_visitor(f"day{day}-v{n}")
        if day < len(counts) - 1:
            clock.advance(days=1)


class TestFreshness:
    """Lazy recompute on a watermark"""

    @pytest.mark.asyncio
    async def test_first_read_recomputes(self, insights, clock):
        result = await insights.get_insights()

        assert result["last_updated"] == clock().isoformat()

    @pytest.mark.asyncio
    async def test_cached_within_interval(self, insights, metrics, clock):
        first = await insights.get_insights()
        assert "top_content" not in types_of(first["automated"])

        await metrics.track_page_view("/projects")
        clock.advance(minutes=30)
        second = await insights.get_insights()

        assert second["last_updated"] == first["last_updated"]
        assert second["automated"] == first["automated"]

    @pytest.mark.asyncio
    async def test_recomputes_after_interval(self, insights, metrics, clock):
        await insights.get_insights()
        await metrics.track_page_view("/projects")
        clock.advance(minutes=61)

        result = await insights.get_insights()

        assert result["last_updated"] == clock().isoformat()
        assert "top_content" in types_of(result["automated"])

    @pytest.mark.asyncio
    async def test_concurrent_readers_recompute_once(self, insights):
        results = await asyncio.gather(*(insights.refresh() for _ in range(10)))

        assert sum(results) == 1

    @pytest.mark.asyncio
    async def test_failed_analysis_keeps_previous_results(self, insights, metrics, clock, monkeypatch):
        await metrics.track_page_view("/projects")
        before = await insights.get_insights()

        async def broken_rate():
            raise ZeroDivisionError("boom")

        monkeypatch.setattr(metrics, "engagement_rate", broken_rate)
        clock.advance(hours=2)

        with pytest.raises(InternalError):
            await insights.refresh()

        assert insights.last_analysis.isoformat() == before["last_updated"]
        assert types_of(insights._automated) == types_of(before["automated"])


class TestTrafficAnalysis:
    """Week-over-week traffic trend"""

    @pytest.mark.asyncio
    async def test_traffic_surge(self, insights, metrics, clock):
        await visits_per_day(metrics, clock, [1, 1, 1, 2, 2, 2, 2])

        result = await insights.get_insights()

        surge = [i for i in result["automated"] if i["type"] == "traffic_surge"]
        assert len(surge) == 1
        assert surge[0]["impact"] == "high"
        assert "100.0%" in surge[0]["description"]

    @pytest.mark.asyncio
    async def test_traffic_decline(self, insights, metrics, clock):
        await visits_per_day(metrics, clock, [10, 10, 10, 1, 1, 1, 1])

        result = await insights.get_insights()

        assert "traffic_decline" in types_of(result["automated"])
        strategy = [r for r in result["recommendations"] if r["type"] == "content_strategy"]
        assert strategy[0]["priority"] == "high"

    @pytest.mark.asyncio
    async def test_flat_traffic_has_no_trend_insight(self, insights, metrics, clock):
        await visits_per_day(metrics, clock, [3, 3, 3, 3, 3, 3, 3])

        result = await insights.get_insights()

        assert "traffic_surge" not in types_of(result["automated"])
        assert "traffic_decline" not in types_of(result["automated"])


class TestEngagementAnalysis:
    """Engagement rate and interaction mix"""

    @pytest.mark.asyncio
    async def test_high_engagement(self, insights, metrics):
        await metrics.track_visitor("v1")
        await metrics.track_engagement("like")
        await metrics.track_engagement("like")
        await metrics.track_engagement("share")

        result = await insights.get_insights()

        assert "high_engagement" in types_of(result["automated"])
        popular = [i for i in result["automated"] if i["type"] == "popular_interaction"]
        assert popular[0]["title"] == "like is the most popular interaction"
        assert popular[0]["impact"] == "info"

    @pytest.mark.asyncio
    async def test_low_engagement_recommendation(self, insights, metrics):
        for n in range(30):
            await metrics.track_visitor(f"v{n}")
        await metrics.track_engagement("view")

        result = await insights.get_insights()

        assert "improve_engagement" in types_of(result["recommendations"])
        assert "high_engagement" not in types_of(result["automated"])


class TestPerformanceAnalysis:
    """Slow responses and error rate alerts"""

    @pytest.mark.asyncio
    async def test_slow_responses_raise_warning(self, insights, metrics):
        await metrics.track_performance("/api/slow", 1500)
        await metrics.track_performance("/api/slow", 1200)

        result = await insights.get_insights()

        assert types_of(result["alerts"]) == ["performance_warning"]
        assert result["alerts"][0]["severity"] == "warning"
        assert "optimize_performance" in types_of(result["recommendations"])

    @pytest.mark.asyncio
    async def test_high_error_rate_is_critical(self, insights, metrics):
        for n in range(10):
            await metrics.track_performance("/api/items", 50, success=n != 0)

        result = await insights.get_insights()

        assert types_of(result["alerts"]) == ["error_rate_high"]
        assert result["alerts"][0]["severity"] == "critical"

    @pytest.mark.asyncio
    async def test_alerts_accumulate_up_to_retention(self, metrics, ledger, clock):
        insights = InsightEngine(metrics, ledger, max_alerts=2, clock=clock)
        await metrics.track_performance("/api/slow", 2000)

        for _ in range(3):
            await insights.refresh(force=True)
            clock.advance(seconds=1)

        result = await insights.get_insights()
        assert len(result["alerts"]) == 2

        assert await insights.clear_alerts() == 2
        assert (await insights.get_insights())["alerts"] == []


class TestContentAnalysis:
    """Top and underperforming pages"""

    @pytest.mark.asyncio
    async def test_top_content_and_underperformers(self, insights, metrics):
        for _ in range(20):
            await metrics.track_page_view("/projects")
        for _ in range(10):
            await metrics.track_page_view("/about")
        await metrics.track_page_view("/legal")

        result = await insights.get_insights()

        top = [i for i in result["automated"] if i["type"] == "top_content"][0]
        assert top["impact"] == "positive"
        assert top["data"][0] == {"page": "/projects", "views": 20}

        improve = [r for r in result["recommendations"] if r["type"] == "improve_content"][0]
        assert improve["data"] == [{"page": "/legal", "views": 1}]


class TestPredictions:
    """Visitor forecast and trending items"""

    @pytest.mark.asyncio
    async def test_next_week_visitors(self, insights, metrics, clock):
        await visits_per_day(metrics, clock, [1, 2, 3, 4, 5, 6, 7])

        result = await insights.get_insights()

        assert result["predictions"]["next_week_visitors"] == 28

    @pytest.mark.asyncio
    async def test_trending_items_come_from_ledger(self, insights, ledger):
        for item in ("a", "b", "c", "d", "e", "f"):
            await ledger.track_view(item, "s1")
        await ledger.toggle_like("f", "s1")

        result = await insights.get_insights()

        trending = result["predictions"]["trending_items"]
        assert len(trending) == 5
        assert trending[0]["item_id"] == "f"


class TestReadIsolation:
    """Results handed to callers are copies of the cached analysis"""

    @pytest.mark.asyncio
    async def test_mutating_result_does_not_change_cached_insights(self, insights, metrics, ledger):
        await metrics.track_page_view("/home")
        await ledger.track_view("project-1", "s1")
        result = await insights.get_insights()

        top = [i for i in result["automated"] if i["type"] == "top_content"][0]
        top["data"].append({"page": "/injected", "views": 999})
        result["predictions"]["trending_items"][0]["views"] = 999

        again = await insights.get_insights()
        top_again = [i for i in again["automated"] if i["type"] == "top_content"][0]
        assert top_again["data"] == [{"page": "/home", "views": 1}]
        assert again["predictions"]["trending_items"][0]["views"] == 1
