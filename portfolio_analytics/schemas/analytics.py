from typing import Any

from pydantic import BaseModel, Field


class VisitorTrack(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=128)
    user_agent: str | None = Field(None, max_length=512)
    country: str | None = Field(None, max_length=64)
    referrer: str | None = Field(None, max_length=512)
    is_returning: bool = False


class PageViewTrack(BaseModel):
    """A page view; ``time_spent_ms`` is optional and only then counts toward bounces."""

    page: str = Field(..., min_length=1, max_length=200)
    session_id: str | None = Field(None, max_length=128)
    time_spent_ms: int | None = Field(None, ge=0)


class EventTrack(BaseModel):
    event: str = Field(..., min_length=1, max_length=50)
    session_id: str = Field(..., min_length=1, max_length=128)
    data: dict[str, Any] | None = None


class PerformanceTrack(BaseModel):
    endpoint: str = Field(..., min_length=1, max_length=200)
    response_time_ms: float = Field(..., ge=0)
    success: bool = True


class ReportRequest(BaseModel):
    type: str = Field(..., description="daily, weekly, monthly or performance")
