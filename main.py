import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio_analytics.config import Settings, settings
from portfolio_analytics.engine import create_engine
from portfolio_analytics.exception_handlers import register_exception_handlers
from portfolio_analytics.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from portfolio_analytics.middleware.performance import PerformanceTrackingMiddleware
from portfolio_analytics.routes import analytics, interactions, monitoring
from portfolio_analytics.scheduler import create_scheduler
from portfolio_analytics.utils.clock import Clock
from portfolio_analytics.utils.metrics import PrometheusMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the session sweep with the app and stop it on shutdown."""
    app_settings: Settings = app.state.settings
    scheduler = create_scheduler(app.state.engine, app_settings.session_sweep_interval_minutes)
    scheduler.start()
    logger.info("Starting up %s in %s mode", app_settings.app_name, app_settings.environment)

    yield

    scheduler.shutdown(wait=False)
    logger.info("Shutting down the application...")


def create_app(app_settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """Create the FastAPI application with a fresh engagement engine."""
    app_settings = app_settings or settings
    setup_structured_logging(log_level=app_settings.log_level, json_format=app_settings.log_json)

    app = FastAPI(
        title=app_settings.app_name,
        description="Engagement tracking and analytics for a portfolio site",
        debug=app_settings.debug,
        version=app_settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.engine = create_engine(app_settings, clock=clock)

    register_exception_handlers(app)

    app.add_middleware(PerformanceTrackingMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(interactions.router, prefix="/api/interactions")
    app.include_router(analytics.router, prefix="/api/analytics")
    app.include_router(monitoring.router)

    @app.get("/", tags=["Root"])
    async def root():
        return {"message": f"Welcome to the {app_settings.app_name} API"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
