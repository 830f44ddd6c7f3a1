"""Visitor session record."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar


@dataclass
class Session:
    """An ephemeral, anonymous visitor identity scoped to one browsing period."""

    id: str
    created_at: datetime
    last_activity: datetime
    user_agent: str = "unknown"
    ip: str = "unknown"
    country: str = "unknown"
    referrer: str = "direct"
    interactions: int = 0
    time_spent_ms: int = 0
    pages_viewed: list[str] = field(default_factory=list)

    # Identity and timestamps are owned by the registry
    UPDATABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"user_agent", "ip", "country", "referrer", "interactions", "time_spent_ms", "pages_viewed"}
    )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["last_activity"] = self.last_activity.isoformat()
        return data
