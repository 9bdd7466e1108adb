from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Optional

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import InvalidUsernameError
from crave.app.domain.models import Post, Profile, Restaurant
from crave.app.infra.db.base import ProfileRepository
from crave.app.infra.storage.base import StorageProvider, is_absolute_locator

logger = logging.getLogger(__name__)

PROFILE_GRID_LIMIT = 50

_USERNAME_RE = re.compile(r"^[a-z0-9_.]{3,30}$")


def normalize_username(username: str) -> str:
    """
    Lowercase and check a username. Uniqueness is left to the backend.

    Raises:
        InvalidUsernameError: outside 3-30 characters of [a-z0-9_.]
    """
    candidate = (username or "").strip().lower()
    if len(candidate) < 3:
        raise InvalidUsernameError(candidate, "Username must be at least 3 characters long")
    if not _USERNAME_RE.match(candidate):
        raise InvalidUsernameError(candidate, "Username may only contain letters, numbers, '_' and '.'")
    return candidate


class ProfileService:
    def __init__(
        self,
        profiles: ProfileRepository,
        storage: Optional[StorageProvider] = None,
        avatar_bucket: str = "avatars",
    ):
        self._profiles = profiles
        self._storage = storage
        self.avatar_bucket = avatar_bucket

    def avatar_url(self, locator: Optional[str]) -> Optional[str]:
        """Avatars are stored as keys in the public avatar bucket or as full URLs."""
        if not locator:
            return None
        if is_absolute_locator(locator) or self._storage is None:
            return locator
        return self._storage.get_public_url(self.avatar_bucket, locator)

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        profile = await run_in_threadpool(self._profiles.get_profile, user_id)
        if profile is None:
            return None
        return replace(profile, avatar_url=self.avatar_url(profile.avatar_url))

    async def get_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        return await run_in_threadpool(self._profiles.get_restaurant, restaurant_id)

    async def list_grid(self, user_id: str, limit: int = PROFILE_GRID_LIMIT) -> list[Post]:
        """Approved posts of a user, newest first."""
        posts = await run_in_threadpool(self._profiles.list_profile_grid, user_id, limit)
        return [post for post in posts if post.is_visible]

    async def update_username(self, user_id: str, username: str) -> Profile:
        """
        Raises:
            InvalidUsernameError: for a malformed username
            UsernameTakenError: when another profile already uses it
        """
        normalized = normalize_username(username)
        profile = await run_in_threadpool(self._profiles.update_profile, user_id, {"username": normalized})
        logger.info("Username updated for %s: %s", user_id, normalized)
        return replace(profile, avatar_url=self.avatar_url(profile.avatar_url))

    async def is_moderator(self, user_id: str) -> bool:
        return await run_in_threadpool(self._profiles.is_moderator, user_id)
