from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CraveError
from crave.app.domain.models import Comment, InteractionStatus
from crave.app.infra.db.base import InteractionRepository

logger = logging.getLogger(__name__)

Mutation = Callable[[bool], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ToggleState:
    active: bool
    count: int

    def flipped(self) -> "ToggleState":
        return self.moved_to(not self.active)

    def moved_to(self, active: bool) -> "ToggleState":
        if active == self.active:
            return self
        delta = 1 if active else -1
        return ToggleState(active=active, count=max(0, self.count + delta))


class OptimisticToggle:
    """
    A boolean + counter pair updated locally before the backend confirms it.

    Mutations for one entity run one at a time in the order they were
    requested. Each toggle bumps a version; a failed mutation only rolls the
    local state back when no newer toggle has happened since, and it rolls
    back to the last state the backend accepted.
    """

    def __init__(self, state: ToggleState, mutate: Mutation, name: str = "toggle"):
        self.state = state
        self._confirmed = state
        self._mutate = mutate
        self._name = name
        self._version = 0
        self._lock = asyncio.Lock()

    @property
    def version(self) -> int:
        return self._version

    async def toggle(self) -> ToggleState:
        return await self.set(not self.state.active)

    async def set(self, active: bool) -> ToggleState:
        if active == self.state.active:
            return self.state

        self.state = self.state.moved_to(active)
        self._version += 1
        await self._commit(active, self._version)
        return self.state

    def reset(self, state: ToggleState) -> None:
        """Replace local and confirmed state with fresh backend values."""
        self.state = state
        self._confirmed = state
        self._version += 1

    async def _commit(self, active: bool, version: int) -> None:
        async with self._lock:
            try:
                await self._mutate(active)
            except CraveError as error:
                if version == self._version:
                    logger.warning("%s failed, reverting: %s", self._name, error)
                    self.state = self._confirmed
                else:
                    logger.info("%s failed but a newer toggle is pending: %s", self._name, error)
                return
            self._confirmed = self._confirmed.moved_to(active)


class PostInteractions:
    """Like/save mirrors for one post as seen by one viewer."""

    def __init__(
        self,
        post_id: str,
        viewer_id: Optional[str],
        repository: InteractionRepository,
    ):
        self.post_id = post_id
        self.viewer_id = viewer_id
        self._repo = repository
        self.like = OptimisticToggle(ToggleState(False, 0), self._set_like, name=f"like:{post_id}")
        self.save = OptimisticToggle(ToggleState(False, 0), self._set_save, name=f"save:{post_id}")

    @property
    def status(self) -> InteractionStatus:
        return InteractionStatus(
            is_liked=self.like.state.active,
            like_count=self.like.state.count,
            is_saved=self.save.state.active,
            save_count=self.save.state.count,
        )

    async def probe(self) -> InteractionStatus:
        """Load the viewer's like/save state. Failures leave the defaults in place."""
        if not self.viewer_id:
            return self.status
        try:
            status = await run_in_threadpool(self._repo.get_post_interactions, self.post_id, self.viewer_id)
        except CraveError as error:
            logger.warning("Interaction probe failed for post %s: %s", self.post_id, error)
            return self.status
        self.like.reset(ToggleState(status.is_liked, status.like_count))
        self.save.reset(ToggleState(status.is_saved, status.save_count))
        return self.status

    async def toggle_like(self) -> ToggleState:
        if not self.viewer_id:
            return self.like.state
        return await self.like.toggle()

    async def set_liked(self) -> ToggleState:
        """Like without ever unliking (double tap)."""
        if not self.viewer_id:
            return self.like.state
        return await self.like.set(True)

    async def toggle_save(self) -> ToggleState:
        if not self.viewer_id:
            return self.save.state
        return await self.save.toggle()

    async def _set_like(self, liked: bool) -> None:
        await run_in_threadpool(self._repo.set_post_like, self.post_id, self.viewer_id, liked)

    async def _set_save(self, saved: bool) -> None:
        await run_in_threadpool(self._repo.set_post_save, self.post_id, self.viewer_id, saved)


def comment_like_toggle(
    comment: Comment,
    viewer_id: str,
    repository: InteractionRepository,
) -> OptimisticToggle:
    async def mutate(liked: bool) -> None:
        await run_in_threadpool(repository.set_comment_like, comment.id, viewer_id, liked)

    state = ToggleState(comment.is_liked_by_user, comment.likes_count)
    return OptimisticToggle(state, mutate, name=f"comment-like:{comment.id}")


def apply_toggle(comment: Comment, state: ToggleState) -> Comment:
    return replace(comment, is_liked_by_user=state.active, likes_count=state.count)
