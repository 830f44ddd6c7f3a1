"""Wall-clock helpers shared by the engine components."""

from collections.abc import Callable
from datetime import date, datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def day_key(moment: datetime | date) -> str:
    """Calendar day bucket, e.g. ``2024-11-22``."""
    return moment.strftime("%Y-%m-%d")


def week_key(moment: datetime | date) -> str:
    """ISO week bucket, e.g. ``2024-W47``."""
    year, week, _ = moment.isocalendar()
    return f"{year}-W{week:02d}"


def month_key(moment: datetime | date) -> str:
    """Calendar month bucket, e.g. ``2024-11``."""
    return moment.strftime("%Y-%m")
