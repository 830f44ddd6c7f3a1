"""
Structured Logging Middleware

Every request gets a request id, and the visitor session and item it concerns
are read from the ``X-Session-ID`` header or the URL. All three live in
context variables while the request is served, so ledger and engine log lines
emitted underneath are tagged with the same visitor and item as the access
line.
"""

import json
import logging
import re
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from portfolio_analytics.utils.metrics import normalize_path

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")
item_id_var: ContextVar[str] = ContextVar("item_id", default="")

REQUEST_CONTEXT = {"request_id": request_id_var, "session_id": session_id_var, "item_id": item_id_var}

# Record attributes copied into JSON lines when a caller passes them as ``extra``
EXTRA_FIELDS = (
    "method",
    "endpoint",
    "status_code",
    "duration_ms",
    "client_ip",
    "error_code",
    "resource_type",
    "resource_id",
    "field",
    "operation",
)

SESSION_IN_PATH = re.compile(r"/sessions/([^/]+)")
ITEM_IN_PATH = re.compile(r"/items/([^/]+)")
QUIET_PATHS = {"/health", "/metrics"}

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] session=%(session_id)s %(message)s"
LIBRARY_LEVELS = {"apscheduler": logging.WARNING, "uvicorn": logging.WARNING, "uvicorn.access": logging.WARNING}


class RequestContextFilter(logging.Filter):
    """Tag records with the request, session and item being served.

    Values passed explicitly through ``extra`` win over the request context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in REQUEST_CONTEXT.items():
            if not getattr(record, name, ""):
                setattr(record, name, var.get())
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; empty context values are left out."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in (*REQUEST_CONTEXT, *EXTRA_FIELDS):
            value = getattr(record, key, None)
            if value not in (None, ""):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _path_value(pattern: re.Pattern, path: str) -> str:
    match = pattern.search(path)
    return match.group(1) if match else ""


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access logging with request scoped visitor context.

    An incoming ``X-Request-ID`` is reused (or one is generated) and echoed on
    the response. The context variables are reset once the access line is
    written.
    """

    def __init__(self, app: ASGIApp, logger_name: str = "portfolio_analytics.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        context = {
            "request_id": request.headers.get("X-Request-ID") or str(uuid.uuid4()),
            "session_id": request.headers.get("X-Session-ID") or _path_value(SESSION_IN_PATH, path),
            "item_id": _path_value(ITEM_IN_PATH, path),
        }
        tokens = [(REQUEST_CONTEXT[name], REQUEST_CONTEXT[name].set(value)) for name, value in context.items()]

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = context["request_id"]
            return response
        finally:
            self._log_access(request, status_code, (time.perf_counter() - start) * 1000)
            for var, token in tokens:
                var.reset(token)

    def _log_access(self, request: Request, status_code: int, duration_ms: float) -> None:
        path = request.url.path
        if path in QUIET_PATHS:
            return

        level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
        self.logger.log(
            level,
            f"{request.method} {path} -> {status_code}",
            extra={
                "method": request.method,
                "endpoint": normalize_path(path),
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True, log_file: str | None = None) -> None:
    """
    Route all logging through a single handler that knows the request context.

    Args:
        log_level: Level for the root and ``portfolio_analytics`` loggers
        json_format: JSON lines when True, plain text otherwise
        log_file: Write to this file instead of stderr
    """
    level = getattr(logging, log_level.upper())

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    logging.getLogger("portfolio_analytics").setLevel(level)
    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
