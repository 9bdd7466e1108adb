# crave/app/routers/feed.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from crave.app.config import settings
from crave.app.deps import CurrentUser, get_current_user, get_post_repository
from crave.app.domain.errors import PostNotFoundError, PostRemovedError
from crave.app.domain.models import FeedContext, Post
from crave.app.infra.db.base import PostRepository
from crave.app.schemas.feed import FeedResponse, PostResponse
from crave.services.feed_source import FeedSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feed", tags=["feed"])


def _post_from_domain(post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        videoUrl=post.video_url,
        thumbnailUrl=post.thumbnail_url,
        description=post.description,
        userId=post.user_id,
        restaurantId=post.restaurant_id,
        status=post.status.value,
        createdAt=post.created_at.isoformat() if post.created_at else None,
    )


@router.get("", response_model=FeedResponse)
async def get_feed(
    context: FeedContext = Query(default=FeedContext.DEFAULT),
    contextId: Optional[str] = Query(default=None),
    postId: Optional[str] = Query(default=None),
    offset: int = Query(default=0, ge=0),
    seed: Optional[float] = Query(default=None, ge=0, le=1),
    user: CurrentUser = Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repository),
) -> FeedResponse:
    """
    First page when offset is 0, ranked continuation otherwise.

    Clients keep the returned seed and send it back with every later page of
    the same feed session.
    """
    source = FeedSource(
        posts,
        context=context,
        viewer_id=user.id,
        context_id=contextId,
        initial_post_id=postId if offset == 0 else None,
        seed=seed,
        page_size=settings.FEED_PAGE_SIZE,
        context_limit=settings.CONTEXT_FEED_LIMIT,
    )
    if offset == 0:
        page = await source.fetch_initial()
    else:
        # The clicked post led the first page.
        if postId:
            source.exclude([postId])
        page = await source.fetch_more(offset)

    if isinstance(page.error, PostRemovedError):
        raise HTTPException(status_code=410, detail=str(page.error))
    if isinstance(page.error, PostNotFoundError):
        raise HTTPException(status_code=404, detail=str(page.error))
    if page.error is not None:
        raise HTTPException(status_code=502, detail="Unable to load the feed")

    has_more = not context.is_fully_loaded and not page.is_empty
    return FeedResponse(
        context=context.value,
        items=[_post_from_domain(post) for post in page.items],
        nextOffset=page.next_offset,
        seed=source.seed,
        hasMore=has_more,
    )
