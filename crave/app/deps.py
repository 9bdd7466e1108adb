# crave/app/deps.py (singletons exposed as FastAPI dependencies)

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client, create_client

from crave.app.config import settings
from crave.app.domain.errors import StorageError
from crave.app.infra.db.base import (
    CommentRepository,
    InteractionRepository,
    PostRepository,
    ProfileRepository,
    SocialRepository,
)
from crave.app.infra.db.supabase_repo import (
    SupabaseCommentRepository,
    SupabaseInteractionRepository,
    SupabasePostRepository,
    SupabaseProfileRepository,
    SupabaseSocialRepository,
)
from crave.app.infra.storage.base import StorageProvider
from crave.app.infra.storage.r2_provider import R2StorageProvider
from crave.app.infra.storage.supabase_provider import SupabaseStorageProvider
from crave.services.comments import CommentService
from crave.services.moderation import ModerationService
from crave.services.profiles import ProfileService
from crave.services.social import FollowService
from crave.services.upload import VideoUploadService

logger = logging.getLogger(__name__)

_client: Client | None = None
_storage: StorageProvider | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        _client = create_client(str(settings.SUPABASE_URL),
                                settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


def get_storage(supa: Client = Depends(get_supabase)) -> StorageProvider:
    global _storage
    if _storage is None:
        if settings.STORAGE_BACKEND == "r2":
            try:
                _storage = R2StorageProvider()
            except StorageError as e:
                logger.error("Failed to initialize storage: %s", e)
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Storage service unavailable",
                )
        else:
            _storage = SupabaseStorageProvider(supa)
    return _storage


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    """
    Takes `Authorization: Bearer <access_token>` issued by Supabase,
    validates it against GoTrue and returns the minimal user data.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    token = cred.credentials
    try:
        res = supa.auth.get_user(token)
        user = res.user
        if not user:
            raise HTTPException(status_code=401, detail="Invalid token")

        name = None
        meta = getattr(user, "user_metadata", None) or {}
        if isinstance(meta, dict):
            name = meta.get("name") or meta.get("username")

        return CurrentUser(id=str(user.id), email=user.email, name=name)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid/expired token")


# Repositories

def get_post_repository(supa: Client = Depends(get_supabase)) -> PostRepository:
    return SupabasePostRepository(supa)


def get_profile_repository(supa: Client = Depends(get_supabase)) -> ProfileRepository:
    return SupabaseProfileRepository(supa)


def get_interaction_repository(supa: Client = Depends(get_supabase)) -> InteractionRepository:
    return SupabaseInteractionRepository(supa)


def get_comment_repository(supa: Client = Depends(get_supabase)) -> CommentRepository:
    return SupabaseCommentRepository(supa)


def get_social_repository(supa: Client = Depends(get_supabase)) -> SocialRepository:
    return SupabaseSocialRepository(supa)


# Services

def get_comment_service(
    comments: CommentRepository = Depends(get_comment_repository),
    interactions: InteractionRepository = Depends(get_interaction_repository),
    social: SocialRepository = Depends(get_social_repository),
) -> CommentService:
    return CommentService(comments, interactions, social)


def get_follow_service(social: SocialRepository = Depends(get_social_repository)) -> FollowService:
    return FollowService(social)


def get_profile_service(
    profiles: ProfileRepository = Depends(get_profile_repository),
    storage: StorageProvider = Depends(get_storage),
) -> ProfileService:
    return ProfileService(profiles, storage, avatar_bucket=settings.AVATAR_BUCKET)


def get_moderation_service(
    posts: PostRepository = Depends(get_post_repository),
    profiles: ProfileRepository = Depends(get_profile_repository),
    storage: StorageProvider = Depends(get_storage),
) -> ModerationService:
    return ModerationService(
        posts,
        profiles,
        storage,
        private_bucket=settings.PRIVATE_VIDEO_BUCKET,
        public_bucket=settings.PUBLIC_VIDEO_BUCKET,
    )


def get_upload_service(
    posts: PostRepository = Depends(get_post_repository),
    storage: StorageProvider = Depends(get_storage),
) -> VideoUploadService:
    return VideoUploadService(posts, storage, private_bucket=settings.PRIVATE_VIDEO_BUCKET)


async def require_moderator(
    user: CurrentUser = Depends(get_current_user),
    moderation: ModerationService = Depends(get_moderation_service),
) -> CurrentUser:
    await moderation.ensure_moderator(user.id)
    return user
