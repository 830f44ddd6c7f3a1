from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from portfolio_analytics.models.engagement import CommentStatus


class SessionCreate(BaseModel):
    """Optional visitor metadata captured when a session starts."""

    user_agent: str | None = Field(None, max_length=512)
    ip: str | None = Field(None, max_length=64)
    country: str | None = Field(None, max_length=64)
    referrer: str | None = Field(None, max_length=512)


class SessionUpdate(BaseModel):
    """Partial session update; only the fields sent are applied."""

    user_agent: str | None = Field(None, max_length=512)
    ip: str | None = Field(None, max_length=64)
    country: str | None = Field(None, max_length=64)
    referrer: str | None = Field(None, max_length=512)
    pages_viewed: list[str] | None = None
    time_spent_ms: int | None = Field(None, ge=0)


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    last_activity: datetime
    user_agent: str
    ip: str
    country: str
    referrer: str
    interactions: int
    time_spent_ms: int
    pages_viewed: list[str]


class SessionReference(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=128)


class ViewRequest(SessionReference):
    duration_ms: int = Field(0, ge=0)


class ShareRequest(SessionReference):
    platform: str = Field("unknown", min_length=1, max_length=50)


class RatingRequest(SessionReference):
    """Rating bounds are enforced by the ledger so out-of-range values surface as a 400."""

    rating: int
    review: str | None = Field(None, max_length=1000)


class CommentCreate(SessionReference):
    """Schema for posting a comment."""

    content: str = Field(..., min_length=5, max_length=500)
    author: str | None = Field(None, max_length=100)
    email: EmailStr | None = Field(None, description="A valid email address.")
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "session_id": "0b6f0a52-6a0e-4d1c-9a43-6c2f5d1e9b11",
                "content": "Great project, love the design!",
                "author": "Jane",
            }
        }
    )


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    item_id: str
    author: str
    content: str
    created_at: datetime
    status: CommentStatus


class ModerateRequest(BaseModel):
    status: CommentStatus
