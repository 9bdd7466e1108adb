from __future__ import annotations

import logging
from typing import Literal, Optional

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CraveError
from crave.app.domain.models import Follower, Profile
from crave.app.infra.db.base import SocialRepository
from crave.services.interactions import OptimisticToggle, ToggleState

logger = logging.getLogger(__name__)

FollowDirection = Literal["followers", "following"]

DEFAULT_FOLLOW_PAGE_SIZE = 20
LOAD_ERROR_MESSAGE = "Unable to load the list. Please try again later."


class FollowListPager:
    """
    Offset pager over the followers/following RPCs.

    Unlike the video feed, a failed load is kept in `error` so the screen can
    offer a retry.
    """

    def __init__(
        self,
        repository: SocialRepository,
        user_id: str,
        direction: FollowDirection = "followers",
        page_size: int = DEFAULT_FOLLOW_PAGE_SIZE,
    ):
        self._repo = repository
        self.user_id = user_id
        self.direction = direction
        self.page_size = page_size
        self.items: list[Follower] = []
        self.offset = 0
        self.has_more = True
        self.loading = False
        self.error: Optional[str] = None

    async def load_first(self) -> list[Follower]:
        self.items = []
        self.offset = 0
        self.has_more = True
        return await self._load(0)

    async def load_more(self) -> list[Follower]:
        if self.loading or not self.has_more or self.error:
            return []
        return await self._load(self.offset)

    async def load_at(self, offset: int) -> list[Follower]:
        """Load one page starting at an offset the caller tracks itself."""
        self.offset = offset
        return await self._load(offset)

    async def retry(self) -> list[Follower]:
        self.error = None
        if not self.items:
            return await self.load_first()
        return await self._load(self.offset)

    async def _load(self, offset: int) -> list[Follower]:
        fetch = self._repo.list_followers if self.direction == "followers" else self._repo.list_following
        self.loading = True
        try:
            page = await run_in_threadpool(fetch, self.user_id, self.page_size, offset)
        except CraveError as error:
            logger.error("Failed to load %s for %s: %s", self.direction, self.user_id, error)
            self.error = LOAD_ERROR_MESSAGE
            return []
        finally:
            self.loading = False

        self.items.extend(page)
        self.offset = offset + len(page)
        self.has_more = len(page) == self.page_size
        self.error = None
        return page


class FollowService:
    def __init__(self, social: SocialRepository):
        self._social = social

    async def follow_toggle(self, viewer_id: str, profile: Profile) -> OptimisticToggle:
        """Toggle seeded with the current follow state and follower count."""
        following = False
        if viewer_id != profile.user_id:
            try:
                following = await run_in_threadpool(self._social.is_following, viewer_id, profile.user_id)
            except CraveError as error:
                logger.warning("Follow status check failed: %s", error)

        async def mutate(value: bool) -> None:
            await run_in_threadpool(self._social.set_following, viewer_id, profile.user_id, value)

        state = ToggleState(following, profile.followers_count)
        return OptimisticToggle(state, mutate, name=f"follow:{profile.user_id}")

    async def set_following(self, viewer_id: str, user_id: str, following: bool) -> None:
        if viewer_id == user_id:
            return
        await run_in_threadpool(self._social.set_following, viewer_id, user_id, following)
        logger.info("%s %s %s", viewer_id, "followed" if following else "unfollowed", user_id)

    async def is_following(self, viewer_id: str, user_id: str) -> bool:
        if viewer_id == user_id:
            return False
        return await run_in_threadpool(self._social.is_following, viewer_id, user_id)
