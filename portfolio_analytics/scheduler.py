from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging

from portfolio_analytics.engine import EngagementEngine

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "session_sweep"


async def sweep_sessions(engine: EngagementEngine):
    result = await engine.cleanup()
    logger.info(f"[Scheduler] Session sweep removed {result['cleaned_sessions']} sessions")


def create_scheduler(engine: EngagementEngine, interval_minutes: int) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_sessions,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[engine],
        id=SWEEP_JOB_ID,
        replace_existing=True,
    )
    logger.info(f"[Scheduler] Session sweep scheduled every {interval_minutes} minutes")
    return scheduler
