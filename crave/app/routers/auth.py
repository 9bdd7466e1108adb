from __future__ import annotations

from fastapi import APIRouter, Depends

from crave.app.deps import CurrentUser, get_current_user, get_profile_service
from crave.app.schemas.social import MeResponse
from crave.services.profiles import ProfileService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=MeResponse)
async def me(
    user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> MeResponse:
    """The signed-in user with their profile handle, if one exists yet."""
    profile = await profiles.get_profile(user.id)
    return MeResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        username=profile.username if profile else None,
        avatarUrl=profile.avatar_url if profile else None,
        isModerator=await profiles.is_moderator(user.id),
    )
