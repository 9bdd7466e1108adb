# crave/playback/feed_controller.py
"""
Controller behind a vertically paged video list.

It owns the loaded posts, decides which one is active from the renderer's
visibility callbacks, pages through the FeedSource when the user nears the
end, and keeps players mounted only around the active item.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from crave.app.domain.errors import PostRemovedError
from crave.app.domain.models import FeedContext, NavigationIntent, Post
from crave.playback.active_post import ActivePostSignal, ActivePostWriter
from crave.playback.player import VideoItemPlayer
from crave.services.feed_source import FeedSource

logger = logging.getLogger(__name__)

VIEWABILITY_THRESHOLD = 50
MAIN_FEED_END_THRESHOLD = 1.0
DETAIL_END_THRESHOLD = 0.5
SWIPE_VELOCITY_THRESHOLD = 500
PLAYER_WINDOW = 1

PlayerFactory = Callable[[Post], VideoItemPlayer]


class FeedStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    LOADING_MORE = "loading_more"
    UNMOUNTED = "unmounted"


class EndOfFeed:
    """Row marker rendered after the last post, with a loop-back action."""

    def __repr__(self) -> str:
        return "END_OF_FEED"


END_OF_FEED = EndOfFeed()

Row = Union[Post, EndOfFeed]


@dataclass
class ViewToken:
    post_id: str
    index: int
    visible_percent: float


class FeedListController:
    def __init__(
        self,
        source: FeedSource,
        signal: ActivePostSignal,
        player_factory: Optional[PlayerFactory] = None,
        end_reached_threshold: float = MAIN_FEED_END_THRESHOLD,
        viewability_threshold: float = VIEWABILITY_THRESHOLD,
        owner: str = "feed",
    ):
        self.source = source
        self.signal = signal
        self.player_factory = player_factory
        self.end_reached_threshold = end_reached_threshold
        self.viewability_threshold = viewability_threshold
        self.owner = owner

        self.status = FeedStatus.LOADING
        self.items: list[Post] = []
        self.offset = 0
        self.initial_index = 0
        self.pagination_enabled = True
        self.end_reached = False
        self.exit_requested = False
        self.focused = True
        self.players: dict[str, VideoItemPlayer] = {}
        self._writer: Optional[ActivePostWriter] = None

    @property
    def active_post_id(self) -> Optional[str]:
        return self.signal.get_active()

    @property
    def is_empty(self) -> bool:
        return self.status != FeedStatus.LOADING and not self.items

    async def load(self) -> None:
        if self.status == FeedStatus.UNMOUNTED:
            return
        if self._writer is None:
            self._writer = self.signal.acquire_writer(self.owner)

        self.status = FeedStatus.LOADING
        page = await self.source.fetch_initial()
        if self.status == FeedStatus.UNMOUNTED:
            return

        if isinstance(page.error, PostRemovedError):
            logger.info("Clicked post %s was removed, leaving the feed", page.error.post_id)
            self.exit_requested = True

        self.items = list(page.items)
        self.offset = page.next_offset
        self.initial_index = self._find_initial_index()
        if not self.items or page.error is not None:
            self.pagination_enabled = False

        self.status = FeedStatus.READY
        if self.items:
            self._writer.set_active(self.items[self.initial_index].id)
        logger.info("Feed ready: %d posts, starting at %d", len(self.items), self.initial_index)
        await self._sync_players()

    async def on_viewable_items_changed(self, tokens: list[ViewToken]) -> None:
        """The first sufficiently visible item becomes the active one."""
        if self.status == FeedStatus.UNMOUNTED or self._writer is None:
            return
        for token in tokens:
            if token.visible_percent >= self.viewability_threshold:
                self._writer.set_active(token.post_id)
                break
        await self._sync_players()

    async def on_scroll(self, offset: float, content_length: float, viewport_length: float) -> list[Post]:
        remaining = content_length - (offset + viewport_length)
        if remaining < self.end_reached_threshold * viewport_length:
            return await self.on_end_reached()
        return []

    async def on_end_reached(self) -> list[Post]:
        if self.status != FeedStatus.READY or not self.pagination_enabled or not self.items:
            return []

        self.status = FeedStatus.LOADING_MORE
        page = await self.source.fetch_more(self.offset)
        if self.status == FeedStatus.UNMOUNTED:
            return []
        self.status = FeedStatus.READY

        if page.error is not None or page.is_empty:
            logger.info("Pagination finished at offset %d", self.offset)
            self.pagination_enabled = False
            self.end_reached = True
            return []

        self.items.extend(page.items)
        self.offset = page.next_offset
        logger.debug("Appended %d posts, next offset %d", len(page.items), self.offset)
        await self._sync_players()
        return page.items

    def rows(self) -> list[Row]:
        rows: list[Row] = list(self.items)
        if self.end_reached and self.items:
            rows.append(END_OF_FEED)
        return rows

    async def rewatch(self) -> None:
        """Loop back to the start of the feed with a fresh shuffle."""
        if self.status == FeedStatus.UNMOUNTED:
            return
        self._unmount_players(set(self.players))
        self.source.restart()
        self.items = []
        self.offset = 0
        self.pagination_enabled = True
        self.end_reached = False
        await self.load()

    def on_swipe(self, velocity_x: float) -> Optional[NavigationIntent]:
        if self.source.context != FeedContext.DEFAULT:
            return None
        if velocity_x <= SWIPE_VELOCITY_THRESHOLD or self.active_post_id is None:
            return None
        return NavigationIntent("recipe", post_id=self.active_post_id)

    def open_post(self, post: Post) -> Optional[NavigationIntent]:
        if not post.is_visible:
            logger.info("Refusing to open removed post %s", post.id)
            return None
        return NavigationIntent(
            "post",
            post_id=post.id,
            context=self.source.context,
            context_id=self.source.context_id,
        )

    def set_focused(self, focused: bool) -> None:
        """Screen focus gates playback of every mounted player."""
        if focused == self.focused:
            return
        self.focused = focused
        for player in self.players.values():
            player.set_play_allowed(focused)

    def unmount(self) -> None:
        self.status = FeedStatus.UNMOUNTED
        self._unmount_players(set(self.players))
        if self._writer is not None:
            self._writer.release()
            self._writer = None

    def _find_initial_index(self) -> int:
        if not self.source.context.is_fully_loaded or not self.source.initial_post_id:
            return 0
        for index, post in enumerate(self.items):
            if post.id == self.source.initial_post_id:
                return index
        return 0

    def _active_index(self) -> int:
        active = self.active_post_id
        for index, post in enumerate(self.items):
            if post.id == active:
                return index
        return self.initial_index

    async def _sync_players(self) -> None:
        if self.player_factory is None or self.status == FeedStatus.UNMOUNTED:
            return

        center = self._active_index()
        window = self.items[max(0, center - PLAYER_WINDOW): center + PLAYER_WINDOW + 1]
        wanted = {post.id for post in window}
        self._unmount_players(set(self.players) - wanted)

        fresh = []
        for post in window:
            if post.id in self.players:
                continue
            player = self.player_factory(post)
            if not self.focused:
                player.set_play_allowed(False)
            self.players[post.id] = player
            fresh.append(player)

        if fresh:
            await asyncio.gather(*(self._mount(player) for player in fresh))

    async def _mount(self, player: VideoItemPlayer) -> None:
        # A later sync may already have dropped this player.
        if self.players.get(player.post.id) is not player:
            return
        await player.mount()

    def _unmount_players(self, post_ids: set[str]) -> None:
        for post_id in post_ids:
            player = self.players.pop(post_id, None)
            if player is not None:
                player.unmount()
