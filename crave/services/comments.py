# crave/services/comments.py
"""
Comment threads attached to a post.
Threads are one level deep: every reply points at the top-level comment.
"""
from __future__ import annotations

import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CommentNotFoundError, CraveError, SelfBlockError
from crave.app.domain.models import Comment, ReportReason, ReportTarget
from crave.app.infra.db.base import CommentRepository, InteractionRepository, SocialRepository
from crave.services.comment_policy import validate_comment_text
from crave.services.interactions import OptimisticToggle, comment_like_toggle

logger = logging.getLogger(__name__)


def resolve_reply_parent(reply_to: Optional[Comment]) -> Optional[str]:
    """Replying to a reply attaches to that reply's top-level comment."""
    if reply_to is None:
        return None
    return reply_to.thread_root_id


class CommentService:
    def __init__(
        self,
        comments: CommentRepository,
        interactions: InteractionRepository,
        social: SocialRepository,
    ):
        self._comments = comments
        self._interactions = interactions
        self._social = social

    async def list_comments(self, post_id: str, viewer_id: Optional[str]) -> list[Comment]:
        """Top-level comments only; an empty list when the backend fails."""
        try:
            rows = await run_in_threadpool(self._comments.list_comments, post_id, viewer_id)
        except CraveError as error:
            logger.warning("Failed to fetch comments for post %s: %s", post_id, error)
            return []
        return [comment for comment in rows if not comment.is_reply]

    async def list_replies(self, comment_id: str) -> list[Comment]:
        try:
            return await run_in_threadpool(self._comments.list_replies, comment_id)
        except CraveError as error:
            logger.warning("Failed to fetch replies for comment %s: %s", comment_id, error)
            return []

    async def post_comment(
        self,
        post_id: str,
        author_id: str,
        text: str,
        reply_to: Optional[Comment] = None,
    ) -> Comment:
        """
        Validate and insert a comment or reply.

        Raises:
            CommentValidationError: before any network call, for rejected text
            RepositoryError: when the insert fails
        """
        body = validate_comment_text(text)
        parent_id = resolve_reply_parent(reply_to)
        comment = await run_in_threadpool(
            self._comments.insert_comment,
            post_id,
            author_id,
            body,
            parent_id,
        )
        logger.info("Comment posted: id=%s, post=%s, parent=%s", comment.id, post_id, parent_id)
        return comment

    async def get_comment(self, comment_id: str) -> Comment:
        comment = await run_in_threadpool(self._comments.get_comment, comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id)
        return comment

    def like_toggle(self, comment: Comment, viewer_id: str) -> OptimisticToggle:
        return comment_like_toggle(comment, viewer_id, self._interactions)

    async def set_comment_like(self, comment_id: str, viewer_id: str, liked: bool) -> None:
        await run_in_threadpool(self._interactions.set_comment_like, comment_id, viewer_id, liked)

    async def report(
        self,
        reporter_id: str,
        target_type: ReportTarget,
        target_id: str,
        reason: ReportReason,
        description: Optional[str] = None,
    ) -> None:
        details = (description or "").strip() or None
        await run_in_threadpool(
            self._comments.insert_report,
            reporter_id,
            target_type.value,
            target_id,
            reason.value,
            details,
        )
        logger.info("Report submitted: %s %s by %s (%s)", target_type.value, target_id, reporter_id, reason.value)

    async def block_user(self, blocker_id: str, blocked_id: str) -> None:
        if blocker_id == blocked_id:
            raise SelfBlockError()
        await run_in_threadpool(self._social.insert_block, blocker_id, blocked_id)

    async def unblock_user(self, blocker_id: str, blocked_id: str) -> None:
        await run_in_threadpool(self._social.delete_block, blocker_id, blocked_id)

    async def is_blocked(self, blocker_id: str, blocked_id: str) -> bool:
        return await run_in_threadpool(self._social.is_blocked, blocker_id, blocked_id)
