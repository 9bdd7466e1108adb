# crave/services/feed_source.py
"""
Paginated post sources behind the feed screens.

One FeedSource backs one opened feed. Profile and restaurant feeds load
their whole collection at once; the default and search feeds page through
the server-ranked feed with a seed picked when the feed is opened.
"""
from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CraveError, PostNotFoundError, PostRemovedError
from crave.app.domain.models import FeedContext, FeedPage, Post
from crave.app.infra.db.base import PostRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
DEFAULT_CONTEXT_LIMIT = 100


def visible_only(posts: Iterable[Post]) -> list[Post]:
    return [post for post in posts if post.is_visible]


class FeedSource:
    def __init__(
        self,
        repository: PostRepository,
        context: FeedContext = FeedContext.DEFAULT,
        viewer_id: Optional[str] = None,
        context_id: Optional[str] = None,
        initial_post_id: Optional[str] = None,
        seed: Optional[float] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
    ):
        self._repo = repository
        self.context = context
        self.viewer_id = viewer_id
        self.context_id = context_id
        self.initial_post_id = initial_post_id
        self.seed = random.random() if seed is None else seed
        self.page_size = page_size
        self.context_limit = context_limit
        self.initial_post: Optional[Post] = None
        self._seen: set[str] = set()

    @property
    def seen_ids(self) -> frozenset[str]:
        return frozenset(self._seen)

    def exclude(self, post_ids: Iterable[str]) -> None:
        """Never return these ids from later pages."""
        self._seen.update(post_ids)

    def restart(self, seed: Optional[float] = None) -> None:
        """Forget shown posts and reshuffle, for looping back to the start."""
        self._seen.clear()
        self.initial_post = None
        self.seed = random.random() if seed is None else seed

    async def fetch_initial(self) -> FeedPage:
        try:
            if self.initial_post_id:
                self.initial_post = await self._load_initial_post(self.initial_post_id)

            if self.context.is_fully_loaded:
                items = await self._fetch_context_collection()
                next_offset = len(items)
            else:
                ranked = await self._fetch_ranked(0)
                items = [self.initial_post] if self.initial_post else []
                items.extend(ranked)
                next_offset = self.page_size
        except CraveError as error:
            logger.warning("Initial %s feed fetch failed: %s", self.context.value, error)
            return FeedPage(items=[], error=error, next_offset=0)

        items = self._take_new(items)
        logger.info("Initial %s feed loaded: %d posts", self.context.value, len(items))
        return FeedPage(items=items, next_offset=next_offset)

    async def fetch_more(self, offset: int) -> FeedPage:
        """
        Next ranked page. Profile and restaurant feeds are already complete.

        A page whose rows were all shown before comes back empty, which ends
        pagination for the caller.
        """
        if self.context.is_fully_loaded:
            return FeedPage(items=[], next_offset=offset)

        try:
            ranked = await self._fetch_ranked(offset)
        except CraveError as error:
            logger.warning("Feed page at offset %d failed: %s", offset, error)
            return FeedPage(items=[], error=error, next_offset=offset)

        items = self._take_new(ranked)
        if ranked and not items:
            logger.info("Feed page at offset %d had no new posts", offset)
        return FeedPage(items=items, next_offset=offset + self.page_size)

    async def _load_initial_post(self, post_id: str) -> Post:
        post = await run_in_threadpool(self._repo.get_post, post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        if not post.is_visible:
            logger.info("Post %s is removed, refusing to open it", post_id)
            raise PostRemovedError(post_id)
        return post

    async def _fetch_context_collection(self) -> list[Post]:
        if self.context == FeedContext.PROFILE:
            owner_id = self.context_id or (self.initial_post.user_id if self.initial_post else None)
            if not owner_id:
                return []
            return await run_in_threadpool(self._repo.list_posts_by_owner, owner_id, self.context_limit)

        restaurant_id = self.context_id or (self.initial_post.restaurant_id if self.initial_post else None)
        if not restaurant_id:
            return []
        return await run_in_threadpool(self._repo.list_posts_by_restaurant, restaurant_id, self.context_limit)

    async def _fetch_ranked(self, offset: int) -> list[Post]:
        if not self.viewer_id:
            logger.info("No authenticated viewer, ranked feed unavailable")
            return []
        return await run_in_threadpool(
            self._repo.get_ranked_feed,
            self.viewer_id,
            self.page_size,
            offset,
            self.seed,
        )

    def _take_new(self, posts: Iterable[Post]) -> list[Post]:
        fresh: list[Post] = []
        for post in visible_only(posts):
            if post.id in self._seen:
                continue
            self._seen.add(post.id)
            fresh.append(post)
        return fresh
