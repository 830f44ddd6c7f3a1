"""
Session Registry

Creates, updates and expires ephemeral visitor sessions.
Sessions live in memory for the lifetime of the process; the expiry sweep
is the only thing that removes them.
"""

import asyncio
import dataclasses
import logging
import uuid
from datetime import timedelta
from typing import Any

from portfolio_analytics.models.session import Session
from portfolio_analytics.utils.clock import Clock, utc_now
from portfolio_analytics.utils.metrics import ACTIVE_SESSIONS, SESSIONS_SWEPT_TOTAL

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    In-memory session store.

    Every mutation goes through a single lock so a sweep running alongside
    updates can never observe or leave a half-written session.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24), clock: Clock | None = None):
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._ttl = ttl
        self._clock = clock or utc_now
        self.unique_visitors = 0

    async def create_session(self, metadata: dict[str, Any] | None = None) -> Session:
        """
        Register a new session.

        Args:
            metadata: Optional user_agent, ip, country and referrer

        Returns:
            A copy of the stored session
        """
        metadata = metadata or {}
        now = self._clock()
        session = Session(
            id=str(uuid.uuid4()),
            created_at=now,
            last_activity=now,
            user_agent=metadata.get("user_agent") or "unknown",
            ip=metadata.get("ip") or "unknown",
            country=metadata.get("country") or "unknown",
            referrer=metadata.get("referrer") or "direct",
        )

        async with self._lock:
            self._sessions[session.id] = session
            self.unique_visitors += 1
            ACTIVE_SESSIONS.set(len(self._sessions))

        logger.info("Created session %s (country=%s, referrer=%s)", session.id, session.country, session.referrer)
        return self._copy(session)

    async def update_session(self, session_id: str, updates: dict[str, Any]) -> Session | None:
        """Merge known fields into a session. Returns None for unknown ids."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            for key, value in updates.items():
                if key in Session.UPDATABLE_FIELDS:
                    setattr(session, key, list(value) if key == "pages_viewed" else value)
            session.last_activity = self._clock()
            return self._copy(session)

    async def touch(self, session_id: str, page: str | None = None, time_spent_ms: int = 0) -> None:
        """Record activity for a session. Unknown ids are ignored."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return
            session.interactions += 1
            session.last_activity = self._clock()
            if page:
                session.pages_viewed.append(page)
            if time_spent_ms > 0:
                session.time_spent_ms += time_spent_ms

    async def get_session(self, session_id: str) -> Session | None:
        async with self._lock:
            session = self._sessions.get(session_id)
            return self._copy(session) if session else None

    async def exists(self, session_id: str) -> bool:
        async with self._lock:
            return session_id in self._sessions

    async def sweep_expired(self, max_age: timedelta | None = None) -> int:
        """
        Remove every session older than ``max_age`` (defaults to the registry TTL).

        Returns:
            Number of sessions removed
        """
        max_age = max_age if max_age is not None else self._ttl

        async with self._lock:
            now = self._clock()
            expired = [sid for sid, session in self._sessions.items() if now - session.created_at > max_age]
            for sid in expired:
                del self._sessions[sid]
            ACTIVE_SESSIONS.set(len(self._sessions))

        if expired:
            SESSIONS_SWEPT_TOTAL.inc(len(expired))
            logger.info("Swept %d expired sessions (%d active)", len(expired), len(self._sessions))
        return len(expired)

    async def active_count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    @staticmethod
    def _copy(session: Session) -> Session:
        return dataclasses.replace(session, pages_viewed=list(session.pages_viewed))
