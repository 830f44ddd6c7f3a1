"""
Interaction Routes

API endpoints for visitor sessions and per-item engagement: likes, views,
favorites, comments, ratings and shares.
"""

from fastapi import APIRouter, Depends, Query, status

from portfolio_analytics.engine import EngagementEngine, get_engine
from portfolio_analytics.exceptions import ItemNotFoundError, ResourceNotFoundError, SessionNotFoundError
from portfolio_analytics.models.engagement import CommentStatus
from portfolio_analytics.schemas.interactions import (
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

router = APIRouter(tags=["Interactions"])


# ============== Sessions ==============


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(data: SessionCreate, engine: EngagementEngine = Depends(get_engine)):
    """Start a new anonymous visitor session."""
    return await engine.create_session(data.model_dump(exclude_none=True))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, engine: EngagementEngine = Depends(get_engine)):
    session = await engine.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


@router.patch("/sessions/{session_id}", response_model=SessionResponse)
async def update_session(session_id: str, data: SessionUpdate, engine: EngagementEngine = Depends(get_engine)):
    """Merge the supplied fields into an existing session."""
    session = await engine.update_session(session_id, data.model_dump(exclude_unset=True))
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


@router.get("/sessions/{session_id}/favorites")
async def get_favorites(session_id: str, engine: EngagementEngine = Depends(get_engine)):
    favorites = await engine.get_favorites(session_id)
    return {"session_id": session_id, "favorites": favorites, "total": len(favorites)}


# ============== Item Engagement ==============


@router.post("/items/{item_id}/like")
async def toggle_like(item_id: str, data: SessionReference, engine: EngagementEngine = Depends(get_engine)):
    """Like the item, or remove the like if the session already liked it."""
    return await engine.toggle_like(item_id, data.session_id)


@router.post("/items/{item_id}/view")
async def track_view(item_id: str, data: ViewRequest, engine: EngagementEngine = Depends(get_engine)):
    return await engine.track_view(item_id, data.session_id, data.duration_ms)


@router.post("/items/{item_id}/favorite")
async def toggle_favorite(item_id: str, data: SessionReference, engine: EngagementEngine = Depends(get_engine)):
    return await engine.toggle_favorite(item_id, data.session_id)


@router.post("/items/{item_id}/share")
async def track_share(item_id: str, data: ShareRequest, engine: EngagementEngine = Depends(get_engine)):
    return await engine.track_share(item_id, data.session_id, data.platform)


@router.post("/items/{item_id}/rating")
async def add_rating(item_id: str, data: RatingRequest, engine: EngagementEngine = Depends(get_engine)):
    """
    Rate an item from 1 to 5.

    A session holds one rating per item; rating again replaces it.
    """
    summary = await engine.add_rating(item_id, data.session_id, data.rating, data.review)
    return {"item_id": item_id, "rating": data.rating, "summary": summary.to_dict()}


@router.get("/items/{item_id}")
async def get_engagement(item_id: str, engine: EngagementEngine = Depends(get_engine)):
    """
    Consolidated engagement for one item.

    **Returns**: views, likes, shares, approved comments, rating summary and
    popularity score. 404 when nothing was ever recorded for the item.
    """
    snapshot = await engine.get_engagement(item_id)
    if snapshot is None:
        raise ItemNotFoundError(item_id)
    return snapshot.to_dict()


@router.get("/top")
async def get_top_items(limit: int = Query(10, ge=1, le=100), engine: EngagementEngine = Depends(get_engine)):
    """Items ranked by popularity score."""
    items = await engine.get_top_items(limit)
    return {"items": [snapshot.to_dict() for snapshot in items], "total": len(items)}


# ============== Comments ==============


@router.post("/items/{item_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(item_id: str, data: CommentCreate, engine: EngagementEngine = Depends(get_engine)):
    """
    Post a comment on an item.

    New comments start as pending and only show up in listings once approved.
    """
    return await engine.add_comment(item_id, data.session_id, data.content, data.author, data.email, data.metadata)


@router.get("/items/{item_id}/comments", response_model=list[CommentResponse])
async def get_comments(
    item_id: str,
    comment_status: CommentStatus = Query(CommentStatus.APPROVED, alias="status"),
    engine: EngagementEngine = Depends(get_engine),
):
    """Comments with the given status, newest first."""
    return await engine.get_comments(item_id, comment_status)


@router.patch("/items/{item_id}/comments/{comment_id}", response_model=CommentResponse)
async def moderate_comment(
    item_id: str, comment_id: str, data: ModerateRequest, engine: EngagementEngine = Depends(get_engine)
):
    comment = await engine.moderate_comment(item_id, comment_id, data.status)
    if comment is None:
        raise ResourceNotFoundError("Comment", comment_id)
    return comment
