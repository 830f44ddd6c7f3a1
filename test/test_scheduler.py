"""
Tests for the background session sweep
"""

from datetime import timedelta

import pytest

from portfolio_analytics.scheduler import SWEEP_JOB_ID, create_scheduler, sweep_sessions


class TestCreateScheduler:
    def test_sweep_job_registered(self, engine):
        scheduler = create_scheduler(engine, interval_minutes=15)

        job = scheduler.get_job(SWEEP_JOB_ID)

        assert job is not None
        assert job.trigger.interval == timedelta(minutes=15)
        assert job.args == (engine,)
        assert scheduler.running is False


class TestSweepSessions:
    @pytest.mark.asyncio
    async def test_removes_expired_sessions(self, engine, clock):
        expired = await engine.create_session()
        clock.advance(hours=25)
        fresh = await engine.create_session()

        await sweep_sessions(engine)

        assert await engine.get_session(expired.id) is None
        assert await engine.get_session(fresh.id) is not None
