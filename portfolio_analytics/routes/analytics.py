"""
Analytics Routes

API endpoints for traffic tracking, metrics, insights and reports.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from portfolio_analytics.engine import EngagementEngine, get_engine
from portfolio_analytics.exceptions import ReportNotFoundError, ResourceNotFoundError
from portfolio_analytics.services.export_service import ExportFormat, ExportType
from portfolio_analytics.schemas.analytics import (
    EventTrack,
    PageViewTrack,
    PerformanceTrack,
    ReportRequest,
    VisitorTrack,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analytics"])


# ============== Tracking ==============


@router.post("/visitor")
async def track_visitor(data: VisitorTrack, engine: EngagementEngine = Depends(get_engine)):
    """Count a visit and classify the visitor as new or returning."""
    classification = await engine.track_visitor(
        data.session_id, data.user_agent, data.country, data.referrer, data.is_returning
    )
    return {"session_id": data.session_id, "visitor_type": classification}


@router.post("/pageview", status_code=status.HTTP_202_ACCEPTED)
async def track_page_view(data: PageViewTrack, engine: EngagementEngine = Depends(get_engine)):
    await engine.track_page_view(data.page, data.session_id, data.time_spent_ms)
    return {"page": data.page, "tracked": True}


@router.post("/track")
async def track_event(data: EventTrack, engine: EngagementEngine = Depends(get_engine)):
    """
    Record a custom event.

    Use ``contact`` to complete the conversion funnel after view, like and
    favorite.
    """
    return await engine.track_event(data.event, data.session_id, data.data)


@router.post("/performance", status_code=status.HTTP_202_ACCEPTED)
async def track_performance(data: PerformanceTrack, engine: EngagementEngine = Depends(get_engine)):
    """Record a client-measured response time."""
    await engine.track_performance(data.endpoint, data.response_time_ms, data.success)
    return {"endpoint": data.endpoint, "tracked": True}


# ============== Metrics & Insights ==============


@router.get("/metrics")
async def get_metrics(engine: EngagementEngine = Depends(get_engine)):
    """
    Full metrics snapshot.

    **Returns**:
    - Visitors (daily, weekly and monthly buckets, new vs returning)
    - Page views, time spent and bounces per page
    - Engagement totals, types and conversion funnel
    - Performance (average and p95 response time, error rate, uptime)
    - Demographics (countries, devices, browsers, referrers)
    """
    return await engine.get_metrics()


@router.get("/metrics/{section}")
async def get_metrics_section(section: str, engine: EngagementEngine = Depends(get_engine)):
    """One section of the metrics snapshot: visitors, page_views, engagement, performance or demographics."""
    data = await engine.get_metrics_section(section)
    if data is None:
        raise ResourceNotFoundError("Metrics section", section)
    return {"type": section, "data": data}


@router.get("/insights")
async def get_insights(engine: EngagementEngine = Depends(get_engine)):
    """Automated insights, recommendations, alerts and predictions. Refreshed at most hourly."""
    return await engine.get_insights()


@router.delete("/insights/alerts")
async def clear_alerts(engine: EngagementEngine = Depends(get_engine)):
    removed = await engine.insights.clear_alerts()
    return {"cleared": removed}


@router.get("/dashboard")
async def get_dashboard(engine: EngagementEngine = Depends(get_engine)):
    """Quick stats, metrics, insights, top items and critical alerts in one call."""
    return await engine.get_dashboard()


@router.post("/cleanup")
async def cleanup(engine: EngagementEngine = Depends(get_engine)):
    """Sweep expired sessions now instead of waiting for the scheduler."""
    return await engine.cleanup()


# ============== Reports ==============


@router.post("/reports", status_code=status.HTTP_201_CREATED)
async def generate_report(data: ReportRequest, engine: EngagementEngine = Depends(get_engine)):
    report = await engine.generate_report(data.type)
    logger.info("Report %s requested via API", report["id"])
    return report


@router.get("/reports")
async def get_reports(
    report_type: str | None = Query(None, alias="type"),
    limit: int = Query(10, ge=1, le=100),
    engine: EngagementEngine = Depends(get_engine),
):
    """Stored reports, newest first."""
    reports = await engine.get_reports(report_type, limit)
    return {"reports": reports, "total": len(reports)}


@router.get("/reports/{report_id}")
async def get_report(report_id: str, engine: EngagementEngine = Depends(get_engine)):
    report = await engine.get_report(report_id)
    if report is None:
        raise ReportNotFoundError(report_id)
    return report


# ============== Export ==============


@router.get("/export")
async def export_analytics(
    export_type: ExportType = Query(ExportType.ALL, alias="type"),
    export_format: ExportFormat = Query(ExportFormat.JSON, alias="format"),
    engine: EngagementEngine = Depends(get_engine),
):
    """
    Download analytics as a file.

    **Parameters**:
    - type: metrics, insights, reports or all
    - format: json or csv (one Field,Value row per value)

    **Returns**: JSON or CSV attachment
    """
    body, media_type, filename = await engine.export_data(export_type, export_format)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
