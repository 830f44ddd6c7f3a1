from .analytics import EventTrack, PageViewTrack, PerformanceTrack, ReportRequest, VisitorTrack
from .interactions import (
    CommentCreate,
    CommentResponse,
    ModerateRequest,
    RatingRequest,
    SessionCreate,
    SessionReference,
    SessionResponse,
    SessionUpdate,
    ShareRequest,
    ViewRequest,
)

# Define the public API of this module
__all__ = [
    "CommentCreate",
    "CommentResponse",
    "EventTrack",
    "ModerateRequest",
    "PageViewTrack",
    "PerformanceTrack",
    "RatingRequest",
    "ReportRequest",
    "SessionCreate",
    "SessionReference",
    "SessionResponse",
    "SessionUpdate",
    "ShareRequest",
    "VisitorTrack",
]
