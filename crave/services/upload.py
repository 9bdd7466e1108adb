from __future__ import annotations

import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CraveError, UnsupportedMediaError, UploadValidationError
from crave.app.domain.models import Post
from crave.app.infra.db.base import PostRepository
from crave.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)

ALLOWED_VIDEO_TYPES = frozenset({"video/mp4", "video/quicktime", "video/mov", "video/m4v", "video/webm"})
MAX_VIDEO_BYTES = 100 * 1024 * 1024


class VideoUploadService:
    """Stores a video in the private bucket and creates its post in `pending` status."""

    def __init__(
        self,
        posts: PostRepository,
        storage: StorageProvider,
        private_bucket: str = "videos",
    ):
        self._posts = posts
        self._storage = storage
        self.private_bucket = private_bucket

    async def upload_video(
        self,
        user_id: str,
        filename: str,
        data: bytes,
        content_type: str,
        description: str = "",
        restaurant_id: Optional[str] = None,
    ) -> Post:
        if content_type not in ALLOWED_VIDEO_TYPES:
            raise UnsupportedMediaError(content_type)
        if not data:
            raise UploadValidationError(filename, "empty file")
        if len(data) > MAX_VIDEO_BYTES:
            raise UploadValidationError(filename, f"file exceeds {MAX_VIDEO_BYTES // (1024 * 1024)}MB")

        object_key = self._storage.generate_object_key(user_id, filename)
        await run_in_threadpool(self._storage.upload, self.private_bucket, object_key, data, content_type)

        try:
            post = await run_in_threadpool(
                self._posts.create_post,
                user_id,
                object_key,
                description.strip(),
                restaurant_id,
            )
        except CraveError:
            logger.error("Post creation failed, removing uploaded video %s", object_key)
            await run_in_threadpool(self._storage.delete_objects, self.private_bucket, [object_key])
            raise

        logger.info("Video uploaded for moderation: post=%s, key=%s", post.id, object_key)
        return post
