# crave/app/routers/posts.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from crave.app.config import settings
from crave.app.deps import CurrentUser, get_current_user, get_interaction_repository, get_post_repository
from crave.app.infra.db.base import InteractionRepository, PostRepository
from crave.app.domain.models import Post
from crave.app.routers.feed import _post_from_domain
from crave.app.schemas.feed import InteractionsResponse, PostResponse, ShareResponse
from crave.services.links import share_message, share_url

router = APIRouter(prefix="/posts", tags=["posts"])


async def _visible_post(posts: PostRepository, post_id: str) -> Post:
    post = await run_in_threadpool(posts.get_post, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    if not post.is_visible:
        raise HTTPException(status_code=410, detail="Post has been removed")
    return post


async def _interactions(repo: InteractionRepository, post_id: str, user_id: str) -> InteractionsResponse:
    status = await run_in_threadpool(repo.get_post_interactions, post_id, user_id)
    return InteractionsResponse(
        isLiked=status.is_liked,
        likeCount=status.like_count,
        isSaved=status.is_saved,
        saveCount=status.save_count,
    )


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repository),
) -> PostResponse:
    return _post_from_domain(await _visible_post(posts, post_id))


@router.get("/{post_id}/interactions", response_model=InteractionsResponse)
async def get_interactions(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: InteractionRepository = Depends(get_interaction_repository),
) -> InteractionsResponse:
    return await _interactions(repo, post_id, user.id)


@router.put("/{post_id}/like", response_model=InteractionsResponse)
async def like_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repository),
    repo: InteractionRepository = Depends(get_interaction_repository),
) -> InteractionsResponse:
    await _visible_post(posts, post_id)
    await run_in_threadpool(repo.set_post_like, post_id, user.id, True)
    return await _interactions(repo, post_id, user.id)


@router.delete("/{post_id}/like", response_model=InteractionsResponse)
async def unlike_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: InteractionRepository = Depends(get_interaction_repository),
) -> InteractionsResponse:
    await run_in_threadpool(repo.set_post_like, post_id, user.id, False)
    return await _interactions(repo, post_id, user.id)


@router.put("/{post_id}/save", response_model=InteractionsResponse)
async def save_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repository),
    repo: InteractionRepository = Depends(get_interaction_repository),
) -> InteractionsResponse:
    await _visible_post(posts, post_id)
    await run_in_threadpool(repo.set_post_save, post_id, user.id, True)
    return await _interactions(repo, post_id, user.id)


@router.delete("/{post_id}/save", response_model=InteractionsResponse)
async def unsave_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: InteractionRepository = Depends(get_interaction_repository),
) -> InteractionsResponse:
    await run_in_threadpool(repo.set_post_save, post_id, user.id, False)
    return await _interactions(repo, post_id, user.id)


@router.get("/{post_id}/share", response_model=ShareResponse)
async def share_post(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repository),
) -> ShareResponse:
    post = await _visible_post(posts, post_id)
    return ShareResponse(
        url=share_url(post, settings.SHARE_BASE_URL),
        message=share_message(post, settings.SHARE_BASE_URL),
    )
