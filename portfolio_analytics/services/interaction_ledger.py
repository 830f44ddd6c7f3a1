"""
Interaction Ledger

Records per-item likes, views, favorites, comments, ratings and shares,
and derives the popularity ranking from them.

Each item record carries its own lock. The ledger-level index lock only
guards creation of records and the per-session favorites index, so
interactions on different items never contend.
"""

import asyncio
import dataclasses
import logging
import uuid
from collections import Counter
from typing import Any

from portfolio_analytics.exceptions import EmptyCommentError, InvalidRatingError, ValidationError
from portfolio_analytics.models.engagement import (
    Comment,
    CommentStatus,
    EngagementSnapshot,
    ItemEngagement,
    RatingEntry,
    RatingSummary,
)
from portfolio_analytics.utils.clock import Clock, utc_now
from portfolio_analytics.utils.metrics import record_interaction

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def popularity_score(views: int, likes: int, shares: int, rating_average: float, rating_count: int) -> float:
    """Weighted engagement score used for ranking."""
    return views * 1 + likes * 3 + shares * 5 + rating_average * rating_count * 2


def _parse_status(status: CommentStatus | str) -> CommentStatus:
    try:
        return CommentStatus(status)
    except ValueError as e:
        raise ValidationError(
            f"Invalid comment status '{status}'",
            field="status",
            details={"allowed": [s.value for s in CommentStatus]},
        ) from e


class InteractionLedger:
    """Per-item engagement state for the whole catalog."""

    def __init__(self, clock: Clock | None = None):
        self._items: dict[str, ItemEngagement] = {}
        self._favorites: dict[str, set[str]] = {}  # session id -> favorited item ids
        self._index_lock = asyncio.Lock()
        self._stats_lock = asyncio.Lock()
        self._interaction_counts: Counter = Counter()
        self._clock = clock or utc_now

    async def _record(self, item_id: str) -> ItemEngagement:
        async with self._index_lock:
            record = self._items.get(item_id)
            if record is None:
                record = ItemEngagement(item_id=item_id)
                self._items[item_id] = record
            return record

    async def _count(self, interaction_type: str, item_id: str, session_id: str, **metadata: Any) -> None:
        async with self._stats_lock:
            self._interaction_counts[interaction_type] += 1
        record_interaction(interaction_type)
        logger.info("Interaction %s on item %s by session %s %s", interaction_type, item_id, session_id, metadata or "")

    # ── Likes ────────────────────────────────────────────────────────────────

    async def toggle_like(self, item_id: str, session_id: str) -> dict[str, Any]:
        """Flip the session's like on an item and return the new state."""
        record = await self._record(item_id)
        async with record.lock:
            if session_id in record.likes:
                record.likes.discard(session_id)
                liked = False
            else:
                record.likes.add(session_id)
                liked = True
            total = len(record.likes)

        await self._count("like", item_id, session_id, liked=liked)
        return {"item_id": item_id, "liked": liked, "total_likes": total}

    async def get_likes(self, item_id: str) -> int:
        record = self._items.get(item_id)
        if record is None:
            return 0
        async with record.lock:
            return len(record.likes)

    async def has_liked(self, item_id: str, session_id: str) -> bool:
        record = self._items.get(item_id)
        if record is None:
            return False
        async with record.lock:
            return session_id in record.likes

    # ── Views ────────────────────────────────────────────────────────────────

    async def track_view(self, item_id: str, session_id: str, duration_ms: int = 0) -> dict[str, Any]:
        """Count an impression. Views are cumulative, not unique per visitor."""
        record = await self._record(item_id)
        async with record.lock:
            record.views += 1
            total = record.views

        await self._count("view", item_id, session_id, duration_ms=duration_ms)
        return {"item_id": item_id, "total_views": total, "duration_ms": duration_ms}

    async def get_views(self, item_id: str) -> int:
        record = self._items.get(item_id)
        if record is None:
            return 0
        async with record.lock:
            return record.views

    # ── Favorites ────────────────────────────────────────────────────────────

    async def toggle_favorite(self, item_id: str, session_id: str) -> dict[str, Any]:
        """
        Flip the item in the session's favorites.

        The session-owned set is the source of truth; the item keeps an
        inverted index so per-item counts stay cheap. Lock order is always
        index lock, then item lock.
        """
        record = await self._record(item_id)
        async with self._index_lock:
            favorites = self._favorites.setdefault(session_id, set())
            async with record.lock:
                if item_id in favorites:
                    favorites.discard(item_id)
                    record.favorited_by.discard(session_id)
                    favorited = False
                else:
                    favorites.add(item_id)
                    record.favorited_by.add(session_id)
                    favorited = True
                total = len(record.favorited_by)

        await self._count("favorite", item_id, session_id, favorited=favorited)
        return {"item_id": item_id, "favorited": favorited, "total_favorites": total}

    async def is_favorited(self, item_id: str, session_id: str) -> bool:
        async with self._index_lock:
            return item_id in self._favorites.get(session_id, ())

    async def get_favorites(self, session_id: str) -> list[str]:
        async with self._index_lock:
            return sorted(self._favorites.get(session_id, ()))

    # ── Comments ─────────────────────────────────────────────────────────────

    async def add_comment(
        self,
        item_id: str,
        session_id: str,
        content: str,
        author: str | None = None,
        email: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Comment:
        """Append a pending comment. Length limits are the caller's concern."""
        if content is None or not content.strip():
            raise EmptyCommentError()

        comment = Comment(
            id=str(uuid.uuid4()),
            item_id=item_id,
            session_id=session_id,
            content=content,
            created_at=self._clock(),
            author=author or "Anonymous",
            email=email,
            metadata=dict(metadata or {}),
        )
        record = await self._record(item_id)
        async with record.lock:
            record.comments.append(comment)

        await self._count("comment", item_id, session_id)
        return dataclasses.replace(comment)

    async def get_comments(self, item_id: str, status: CommentStatus | str = CommentStatus.APPROVED) -> list[Comment]:
        """Comments for an item with the given status, newest first."""
        wanted = _parse_status(status)
        record = self._items.get(item_id)
        if record is None:
            return []
        async with record.lock:
            # Append-only, so reverse insertion order is newest first
            return [dataclasses.replace(c) for c in reversed(record.comments) if c.status == wanted]

    async def moderate_comment(self, item_id: str, comment_id: str, status: CommentStatus | str) -> Comment | None:
        """Re-tag a comment's moderation status. Returns None if it does not exist."""
        new_status = _parse_status(status)
        record = self._items.get(item_id)
        if record is None:
            return None
        async with record.lock:
            for comment in record.comments:
                if comment.id == comment_id:
                    comment.status = new_status
                    logger.info("Comment %s on item %s marked %s", comment_id, item_id, new_status.value)
                    return dataclasses.replace(comment)
        return None

    # ── Ratings ──────────────────────────────────────────────────────────────

    async def add_rating(
        self, item_id: str, session_id: str, rating: int, review: str | None = None
    ) -> RatingSummary:
        """
        Store the session's rating for an item, replacing any earlier one.

        Raises:
            InvalidRatingError: If rating is not an integer in 1..5
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRatingError(rating, item_id=item_id)

        entry = RatingEntry(session_id=session_id, rating=rating, created_at=self._clock(), review=review)
        record = await self._record(item_id)
        async with record.lock:
            record.ratings.pop(session_id, None)
            record.ratings[session_id] = entry
            summary = record.rating_summary()

        await self._count("rating", item_id, session_id, rating=rating)
        return summary

    async def get_rating_summary(self, item_id: str) -> RatingSummary:
        record = self._items.get(item_id)
        if record is None:
            return RatingSummary()
        async with record.lock:
            return record.rating_summary()

    # ── Shares ───────────────────────────────────────────────────────────────

    async def track_share(self, item_id: str, session_id: str, platform: str = "unknown") -> dict[str, Any]:
        record = await self._record(item_id)
        async with record.lock:
            record.shares[platform or "unknown"] += 1
            total = record.total_shares

        await self._count("share", item_id, session_id, platform=platform)
        return {"item_id": item_id, "total_shares": total, "platform": platform}

    async def get_shares(self, item_id: str) -> int:
        record = self._items.get(item_id)
        if record is None:
            return 0
        async with record.lock:
            return record.total_shares

    # ── Derived views ────────────────────────────────────────────────────────

    @staticmethod
    def _snapshot(record: ItemEngagement) -> EngagementSnapshot:
        ratings = record.rating_summary()
        likes = len(record.likes)
        shares = record.total_shares
        return EngagementSnapshot(
            item_id=record.item_id,
            views=record.views,
            likes=likes,
            shares=shares,
            comments=record.approved_comment_count(),
            ratings=ratings,
            popularity_score=popularity_score(record.views, likes, shares, ratings.average, ratings.total),
        )

    async def get_engagement(self, item_id: str) -> EngagementSnapshot | None:
        """Consolidated snapshot for an item, or None if nothing was ever recorded."""
        record = self._items.get(item_id)
        if record is None:
            return None
        async with record.lock:
            return self._snapshot(record)

    async def get_top_items(self, limit: int = 10) -> list[EngagementSnapshot]:
        """Items ranked by popularity; ties go to more views, then lower item id."""
        async with self._index_lock:
            records = list(self._items.values())

        snapshots = []
        for record in records:
            async with record.lock:
                snapshots.append(self._snapshot(record))

        snapshots.sort(key=lambda s: (-s.popularity_score, -s.views, s.item_id))
        return snapshots[: max(limit, 0)]

    async def get_engagement_stats(self) -> dict[str, Any]:
        """Interaction totals across every item."""
        async with self._index_lock:
            records = list(self._items.values())
            favorites = sum(len(items) for items in self._favorites.values())

        totals = {"views": 0, "likes": 0, "favorites": favorites, "comments": 0, "ratings": 0, "shares": 0}
        for record in records:
            async with record.lock:
                totals["views"] += record.views
                totals["likes"] += len(record.likes)
                totals["comments"] += len(record.comments)
                totals["ratings"] += len(record.ratings)
                totals["shares"] += record.total_shares

        async with self._stats_lock:
            tracked = sum(self._interaction_counts.values())
            by_type = dict(self._interaction_counts)

        return {
            "total_interactions": tracked,
            "interactions_by_type": by_type,
            "tracked_items": len(records),
            "totals": totals,
        }
