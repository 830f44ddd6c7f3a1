"""
Monitoring Routes

Health check endpoint and Prometheus metrics for observability.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from portfolio_analytics.config import settings
from portfolio_analytics.engine import EngagementEngine, get_engine
from portfolio_analytics.utils.metrics import set_app_info, update_uptime

router = APIRouter(tags=["Monitoring"])

# Application start time for uptime calculation
APP_START_TIME = time.time()

set_app_info(version=settings.app_version, environment=settings.environment)


class HealthStatus(BaseModel):
    """Health check response model."""

    status: str
    timestamp: str
    version: str
    uptime_seconds: float
    active_sessions: int


@router.get("/health", response_model=HealthStatus)
async def health_check(engine: EngagementEngine = Depends(get_engine)) -> HealthStatus:
    """
    Liveness check endpoint.

    Everything lives in memory, so being able to answer is the whole check.
    """
    return HealthStatus(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
        active_sessions=await engine.sessions.active_count(),
    )


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    update_uptime(APP_START_TIME)
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
