"""
Performance Tracking Middleware

Feeds the latency and outcome of every API request into the engine's
metrics aggregator, which backs the performance insights and reports.
"""

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from portfolio_analytics.utils.metrics import normalize_path


class PerformanceTrackingMiddleware(BaseHTTPMiddleware):
    """
    Record response time per normalized endpoint.

    Server errors (status >= 500 or an exception escaping the app) count as
    failed calls. Client errors do not.
    """

    EXCLUDED_PATHS = {"/metrics", "/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        engine = getattr(request.app.state, "engine", None)
        if engine is None or path in self.EXCLUDED_PATHS:
            return await call_next(request)

        endpoint = f"{request.method} {normalize_path(path)}"
        start_time = time.perf_counter()
        success = False

        try:
            response = await call_next(request)
            success = response.status_code < 500
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            await engine.track_performance(endpoint, round(duration_ms, 2), success)

        return response
