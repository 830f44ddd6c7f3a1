"""
Engagement records kept per content item.

Likes and favorites are genuine sets keyed by session id so membership
checks stay O(1) in both directions. Ratings are keyed by session so a
session holds at most one active rating per item.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class CommentStatus(str, Enum):
    """Moderation status of a comment."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class Comment:
    """A visitor comment. Never deleted, only re-tagged by moderation."""

    id: str
    item_id: str
    session_id: str
    content: str
    created_at: datetime
    author: str = "Anonymous"
    email: str | None = None
    status: CommentStatus = CommentStatus.PENDING
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "session_id": self.session_id,
            "author": self.author,
            "email": self.email,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class RatingEntry:
    session_id: str
    rating: int
    created_at: datetime
    review: str | None = None


@dataclass(frozen=True)
class RatingSummary:
    """Aggregate view over an item's active ratings."""

    average: float = 0.0
    total: int = 0
    distribution: dict[int, int] = field(default_factory=lambda: {star: 0 for star in range(1, 6)})
    reviews: int = 0

    @classmethod
    def from_entries(cls, entries: list[RatingEntry]) -> "RatingSummary":
        if not entries:
            return cls()

        distribution = {star: 0 for star in range(1, 6)}
        for entry in entries:
            distribution[entry.rating] += 1

        total = len(entries)
        return cls(
            average=round(sum(entry.rating for entry in entries) / total, 1),
            total=total,
            distribution=distribution,
            reviews=sum(1 for entry in entries if entry.review),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "average": self.average,
            "total": self.total,
            "distribution": {str(star): count for star, count in self.distribution.items()},
            "reviews": self.reviews,
        }


@dataclass
class ItemEngagement:
    """Mutable interaction state for one content item, guarded by its own lock."""

    item_id: str
    likes: set[str] = field(default_factory=set)
    views: int = 0
    favorited_by: set[str] = field(default_factory=set)
    comments: list[Comment] = field(default_factory=list)
    ratings: dict[str, RatingEntry] = field(default_factory=dict)
    shares: Counter = field(default_factory=Counter)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def total_shares(self) -> int:
        return sum(self.shares.values())

    def rating_summary(self) -> RatingSummary:
        return RatingSummary.from_entries(list(self.ratings.values()))

    def approved_comment_count(self) -> int:
        return sum(1 for comment in self.comments if comment.status == CommentStatus.APPROVED)


@dataclass(frozen=True)
class EngagementSnapshot:
    """Point-in-time engagement view of one item."""

    item_id: str
    views: int
    likes: int
    shares: int
    comments: int
    ratings: RatingSummary
    popularity_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "views": self.views,
            "likes": self.likes,
            "shares": self.shares,
            "comments": self.comments,
            "ratings": self.ratings.to_dict(),
            "popularity_score": self.popularity_score,
        }
