"""
Tests for the Session Registry
"""

import asyncio
from datetime import timedelta

import pytest

from portfolio_analytics.services.session_registry import SessionRegistry


class TestCreateSession:
    """Session creation"""

    @pytest.mark.asyncio
    async def test_defaults_when_metadata_missing(self, registry):
        session = await registry.create_session()

        assert session.user_agent == "unknown"
        assert session.ip == "unknown"
        assert session.country == "unknown"
        assert session.referrer == "direct"
        assert session.interactions == 0
        assert session.pages_viewed == []

    @pytest.mark.asyncio
    async def test_metadata_is_stored(self, registry):
        session = await registry.create_session({"country": "ES", "referrer": "google", "user_agent": "UA"})

        stored = await registry.get_session(session.id)
        assert stored.country == "ES"
        assert stored.referrer == "google"
        assert stored.user_agent == "UA"

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, registry):
        sessions = await asyncio.gather(*(registry.create_session() for _ in range(50)))

        assert len({s.id for s in sessions}) == 50
        assert registry.unique_visitors == 50
        assert await registry.active_count() == 50

    @pytest.mark.asyncio
    async def test_returned_session_is_a_copy(self, registry):
        session = await registry.create_session()
        session.pages_viewed.append("/hacked")
        session.country = "XX"

        stored = await registry.get_session(session.id)
        assert stored.pages_viewed == []
        assert stored.country == "unknown"


class TestUpdateSession:
    """Partial updates"""

    @pytest.mark.asyncio
    async def test_unknown_session_returns_none(self, registry):
        assert await registry.update_session("missing", {"country": "ES"}) is None

    @pytest.mark.asyncio
    async def test_merges_fields_and_refreshes_activity(self, registry, clock):
        session = await registry.create_session()
        clock.advance(minutes=5)

        updated = await registry.update_session(session.id, {"country": "FR", "pages_viewed": ["/home"]})

        assert updated.country == "FR"
        assert updated.pages_viewed == ["/home"]
        assert updated.last_activity == clock()
        assert updated.created_at == session.created_at

    @pytest.mark.asyncio
    async def test_identity_fields_are_not_overwritten(self, registry):
        session = await registry.create_session()

        updated = await registry.update_session(session.id, {"id": "other", "created_at": None, "bogus": 1})

        assert updated.id == session.id
        assert updated.created_at == session.created_at
        assert not hasattr(updated, "bogus")


class TestTouch:
    """Activity tracking"""

    @pytest.mark.asyncio
    async def test_touch_counts_interactions(self, registry, clock):
        session = await registry.create_session()
        clock.advance(seconds=30)

        await registry.touch(session.id)
        await registry.touch(session.id, page="/projects", time_spent_ms=1200)

        stored = await registry.get_session(session.id)
        assert stored.interactions == 2
        assert stored.pages_viewed == ["/projects"]
        assert stored.time_spent_ms == 1200
        assert stored.last_activity == clock()

    @pytest.mark.asyncio
    async def test_touch_unknown_session_is_ignored(self, registry):
        await registry.touch("missing")

        assert await registry.active_count() == 0


class TestSweepExpired:
    """Expiry sweep"""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_old_sessions(self, registry, clock):
        old = await registry.create_session()
        clock.advance(hours=24)
        recent = await registry.create_session()
        clock.advance(hours=1)

        removed = await registry.sweep_expired()

        assert removed == 1
        assert await registry.get_session(old.id) is None
        assert await registry.get_session(recent.id) is not None

    @pytest.mark.asyncio
    async def test_sweep_with_custom_max_age(self, registry, clock):
        await registry.create_session()
        clock.advance(minutes=10)

        assert await registry.sweep_expired(max_age=timedelta(minutes=30)) == 0
        assert await registry.sweep_expired(max_age=timedelta(minutes=5)) == 1

    @pytest.mark.asyncio
    async def test_sweep_keeps_unique_visitor_count(self, registry, clock):
        await registry.create_session()
        clock.advance(hours=25)

        await registry.sweep_expired()

        assert registry.unique_visitors == 1
        assert await registry.active_count() == 0

    @pytest.mark.asyncio
    async def test_sweep_uses_configured_ttl(self, clock):
        registry = SessionRegistry(ttl=timedelta(hours=1), clock=clock)
        await registry.create_session()
        clock.advance(hours=2)

        assert await registry.sweep_expired() == 1
