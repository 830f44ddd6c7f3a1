"""
Prometheus Metrics Module

Provides process-level counters for the engagement engine using the
prometheus_client library. Metrics are exposed at /metrics endpoint for
Prometheus scraping.
"""

import time
from collections.abc import Callable

from prometheus_client import Counter, Gauge, Histogram, Info
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("portfolio_analytics_app", "Portfolio analytics application information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# HTTP Request Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "portfolio_analytics_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "portfolio_analytics_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# =============================================================================
# Engagement Metrics
# =============================================================================

INTERACTIONS_TOTAL = Counter(
    "portfolio_analytics_interactions_total",
    "Total tracked interactions",
    ["type"],  # view, like, favorite, comment, rating, share
)

ACTIVE_SESSIONS = Gauge(
    "portfolio_analytics_active_sessions",
    "Number of sessions held in the registry",
)

SESSIONS_SWEPT_TOTAL = Counter(
    "portfolio_analytics_sessions_swept_total",
    "Total sessions removed by the expiry sweep",
)

# =============================================================================
# Insight & Report Metrics
# =============================================================================

INSIGHT_RECOMPUTES_TOTAL = Counter(
    "portfolio_analytics_insight_recomputes_total",
    "Total insight analysis passes",
)

ALERTS_RAISED_TOTAL = Counter(
    "portfolio_analytics_alerts_raised_total",
    "Total alerts raised by the insight engine",
    ["severity"],  # warning, critical
)

REPORTS_GENERATED_TOTAL = Counter(
    "portfolio_analytics_reports_generated_total",
    "Total reports generated",
    ["type"],  # daily, weekly, monthly, performance
)

APP_UPTIME_SECONDS = Gauge(
    "portfolio_analytics_uptime_seconds",
    "Application uptime in seconds",
)


# =============================================================================
# Prometheus Metrics Middleware
# =============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus.

    Tracks:
    - Request count by method, endpoint, and status code
    - Request duration by method and endpoint
    """

    # Endpoints to exclude from metrics (to avoid noise)
    EXCLUDED_PATHS = {"/metrics", "/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        endpoint = normalize_path(path)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()

        return response


def normalize_path(path: str) -> str:
    """
    Normalize URL path for metrics by replacing dynamic segments.

    Examples:
        /api/interactions/items/123/like -> /api/interactions/items/{id}/like
        /api/interactions/sessions/<uuid> -> /api/interactions/sessions/{uuid}
    """
    parts = path.split("/")
    normalized = []

    for part in parts:
        if part.isdigit():
            normalized.append("{id}")
        elif part and len(part) == 36 and "-" in part:
            normalized.append("{uuid}")
        else:
            normalized.append(part)

    return "/".join(normalized)


# =============================================================================
# Helper Functions
# =============================================================================


def record_interaction(interaction_type: str) -> None:
    """Record an interaction (view/like/favorite/comment/rating/share)."""
    INTERACTIONS_TOTAL.labels(type=interaction_type).inc()


def record_alert(severity: str) -> None:
    """Record an alert raised by the insight engine."""
    ALERTS_RAISED_TOTAL.labels(severity=severity).inc()


def record_report(report_type: str) -> None:
    """Record a generated report."""
    REPORTS_GENERATED_TOTAL.labels(type=report_type).inc()


def update_uptime(start_time: float) -> None:
    """Update application uptime."""
    APP_UPTIME_SECONDS.set(time.time() - start_time)
