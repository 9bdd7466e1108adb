# crave/app/routers/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from crave.app.config import settings
from crave.app.deps import (
    CurrentUser,
    get_current_user,
    get_follow_service,
    get_profile_service,
    get_social_repository,
)
from crave.app.domain.models import Profile
from crave.app.infra.db.base import SocialRepository
from crave.app.routers.feed import _post_from_domain
from crave.app.schemas.feed import PostResponse
from crave.app.schemas.social import (
    FollowerResponse,
    FollowListResponse,
    FollowResponse,
    ProfileResponse,
    UsernameUpdate,
)
from crave.services.profiles import ProfileService
from crave.services.social import FollowDirection, FollowListPager, FollowService

router = APIRouter(prefix="/users", tags=["users"])


def _profile_from_domain(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        userId=profile.user_id,
        username=profile.username,
        displayname=profile.displayname,
        avatarUrl=profile.avatar_url,
        bio=profile.bio,
        location=profile.location,
        instagramHandle=profile.instagram_handle,
        followersCount=profile.followers_count,
        followingCount=profile.following_count,
        likesCount=profile.likes_count,
    )


async def _follow_list(
    social: SocialRepository,
    profiles: ProfileService,
    user_id: str,
    direction: FollowDirection,
    limit: int,
    offset: int,
) -> FollowListResponse:
    pager = FollowListPager(social, user_id, direction=direction, page_size=limit)
    page = await pager.load_at(offset)
    if pager.error:
        raise HTTPException(status_code=502, detail=pager.error)
    return FollowListResponse(
        items=[
            FollowerResponse(
                userId=row.user_id,
                username=row.username,
                displayname=row.displayname,
                avatarUrl=profiles.avatar_url(row.avatar_url),
            )
            for row in page
        ],
        nextOffset=pager.offset,
        hasMore=pager.has_more,
    )


@router.patch("/me/username", response_model=ProfileResponse)
async def update_username(
    payload: UsernameUpdate,
    user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    return _profile_from_domain(await profiles.update_username(user.id, payload.username))


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    profile = await profiles.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return _profile_from_domain(profile)


@router.get("/{user_id}/posts", response_model=list[PostResponse])
async def get_profile_posts(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> list[PostResponse]:
    return [_post_from_domain(post) for post in await profiles.list_grid(user_id)]


@router.get("/{user_id}/followers", response_model=FollowListResponse)
async def list_followers(
    user_id: str,
    limit: int = Query(default=settings.FOLLOW_LIST_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    social: SocialRepository = Depends(get_social_repository),
    profiles: ProfileService = Depends(get_profile_service),
) -> FollowListResponse:
    return await _follow_list(social, profiles, user_id, "followers", limit, offset)


@router.get("/{user_id}/following", response_model=FollowListResponse)
async def list_following(
    user_id: str,
    limit: int = Query(default=settings.FOLLOW_LIST_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    social: SocialRepository = Depends(get_social_repository),
    profiles: ProfileService = Depends(get_profile_service),
) -> FollowListResponse:
    return await _follow_list(social, profiles, user_id, "following", limit, offset)


@router.get("/{user_id}/follow", response_model=FollowResponse)
async def get_follow_status(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
) -> FollowResponse:
    return FollowResponse(userId=user_id, following=await follows.is_following(user.id, user_id))


@router.put("/{user_id}/follow", response_model=FollowResponse)
async def follow_user(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
) -> FollowResponse:
    if user_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")
    await follows.set_following(user.id, user_id, True)
    return FollowResponse(userId=user_id, following=True)


@router.delete("/{user_id}/follow", response_model=FollowResponse)
async def unfollow_user(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
) -> FollowResponse:
    await follows.set_following(user.id, user_id, False)
    return FollowResponse(userId=user_id, following=False)
