# crave/services/moderation.py
"""
Moderation of uploaded posts.

Pending videos live in the private bucket under a storage key. Approval
copies the video into the public bucket, rewrites the post's locator to the
public URL and flips its status; removal hides the post for good.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CraveError, PermissionDeniedError, PostNotFoundError
from crave.app.domain.models import BatchModerationResult, ModerationResult, Post, PostStatus
from crave.app.infra.db.base import PostRepository, ProfileRepository
from crave.app.infra.storage.base import StorageProvider, is_absolute_locator

logger = logging.getLogger(__name__)

BATCH_DELAY_SECONDS = 0.1


class ModerationService:
    def __init__(
        self,
        posts: PostRepository,
        profiles: ProfileRepository,
        storage: StorageProvider,
        private_bucket: str = "videos",
        public_bucket: str = "posts-videos",
    ):
        self._posts = posts
        self._profiles = profiles
        self._storage = storage
        self.private_bucket = private_bucket
        self.public_bucket = public_bucket

    async def ensure_moderator(self, user_id: str) -> None:
        if not await run_in_threadpool(self._profiles.is_moderator, user_id):
            raise PermissionDeniedError(user_id, "moderate posts")

    async def list_pending(self, limit: int = 50) -> list[Post]:
        return await run_in_threadpool(self._posts.list_pending_posts, limit)

    async def approve(self, post_id: str) -> ModerationResult:
        post = await self._get(post_id)
        if post.status == PostStatus.APPROVED:
            return ModerationResult(post_id, True, "Post is already approved")
        if post.status == PostStatus.REMOVED:
            logger.warning("Refusing to approve removed post %s", post_id)
            return ModerationResult(post_id, False, "Post has been removed and cannot be approved")

        if is_absolute_locator(post.video_url):
            await run_in_threadpool(self._posts.update_post, post_id, {"status": PostStatus.APPROVED.value})
            return ModerationResult(post_id, True, "Post approved (video already in public bucket)")

        old_key = post.video_url
        new_key = old_key.rsplit("/", 1)[-1] or f"video_{post_id}.mp4"
        try:
            data = await run_in_threadpool(self._storage.download, self.private_bucket, old_key)
            await run_in_threadpool(self._storage.upload, self.public_bucket, new_key, data, "video/mp4")
        except CraveError as error:
            logger.error("Failed to transfer video for post %s: %s", post_id, error)
            return ModerationResult(post_id, False, f"Failed to transfer video: {error}")

        public_url = self._storage.get_public_url(self.public_bucket, new_key)
        try:
            await run_in_threadpool(
                self._posts.update_post,
                post_id,
                {"video_url": public_url, "status": PostStatus.APPROVED.value},
            )
        except CraveError as error:
            await run_in_threadpool(self._storage.delete_objects, self.public_bucket, [new_key])
            return ModerationResult(post_id, False, f"Failed to update post: {error}")

        if not await run_in_threadpool(self._storage.delete_objects, self.private_bucket, [old_key]):
            logger.warning("Approved post %s but could not clean up %s", post_id, old_key)

        logger.info("Post %s approved, video moved to %s", post_id, self.public_bucket)
        return ModerationResult(post_id, True, "Post approved successfully! Video moved to public bucket.")

    async def approve_batch(self, post_ids: list[str]) -> BatchModerationResult:
        result = BatchModerationResult()
        for post_id in post_ids:
            try:
                outcome = await self.approve(post_id)
            except CraveError as error:
                outcome = ModerationResult(post_id, False, str(error))

            if outcome.success:
                result.successful.append(post_id)
            else:
                result.failed.append((post_id, outcome.message))
            await asyncio.sleep(BATCH_DELAY_SECONDS)

        logger.info("Batch complete: %d approved, %d failed", len(result.successful), len(result.failed))
        return result

    async def remove(self, post_id: str, reason: str) -> ModerationResult:
        post = await self._get(post_id)
        changes = {
            "status": PostStatus.REMOVED.value,
            "removed_at": datetime.now(timezone.utc).isoformat(),
            "removed_reason": reason,
        }
        await run_in_threadpool(self._posts.update_post, post_id, changes)

        if not is_absolute_locator(post.video_url):
            await run_in_threadpool(self._storage.delete_objects, self.private_bucket, [post.video_url])

        logger.info("Post %s removed: %s", post_id, reason)
        return ModerationResult(post_id, True, f"Post removed successfully. Reason: {reason}")

    async def _get(self, post_id: str) -> Post:
        post = await run_in_threadpool(self._posts.get_post, post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return post
