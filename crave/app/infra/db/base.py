# crave/app/infra/db/base.py
"""
Abstract repositories over the managed backend.
The feed engine only talks to these interfaces, so tests can swap in stubs.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from crave.app.domain.models import (
    Comment,
    Follower,
    InteractionStatus,
    Post,
    Profile,
    Restaurant,
)


class PostRepository(ABC):
    """
    Read and write access to the posts collection and the ranked feed RPC.

    Implementations:
    - SupabasePostRepository: PostgREST tables plus `get_ranked_feed_offset`
    """

    @abstractmethod
    def get_post(self, post_id: str) -> Optional[Post]:
        """
        Fetch a single post regardless of its moderation status.

        Args:
            post_id: The post ID

        Returns:
            The post, or None if it does not exist
        """
        pass

    @abstractmethod
    def list_posts_by_owner(self, user_id: str, limit: int = 100) -> list[Post]:
        """
        Approved posts of one user, newest first.

        Args:
            user_id: Owner of the posts
            limit: Max posts to return

        Returns:
            List of posts
        """
        pass

    @abstractmethod
    def list_posts_by_restaurant(self, restaurant_id: str, limit: int = 100) -> list[Post]:
        """Approved posts linked to one restaurant, newest first."""
        pass

    @abstractmethod
    def get_ranked_feed(
        self,
        viewer_id: str,
        limit: int,
        offset: int,
        seed: float,
    ) -> list[Post]:
        """
        One page of the server-ranked feed.

        Args:
            viewer_id: The user the ranking is computed for
            limit: Page size
            offset: Rows to skip
            seed: Random seed that keeps ordering stable across pages of one session

        Returns:
            Ordered list of posts
        """
        pass

    @abstractmethod
    def list_pending_posts(self, limit: int = 50) -> list[Post]:
        """Posts awaiting moderation, oldest first."""
        pass

    @abstractmethod
    def create_post(
        self,
        user_id: str,
        video_url: str,
        description: str,
        restaurant_id: Optional[str] = None,
    ) -> Post:
        """Insert a new post in `pending` status."""
        pass

    @abstractmethod
    def update_post(self, post_id: str, changes: dict[str, Any]) -> bool:
        """
        Apply a partial update to a post row.

        Returns:
            True if a row was updated
        """
        pass


class ProfileRepository(ABC):
    """Profiles, restaurants and moderator membership."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    def list_profile_grid(self, user_id: str, limit: int = 50) -> list[Post]:
        pass

    @abstractmethod
    def update_profile(self, user_id: str, changes: dict[str, Any]) -> Profile:
        """
        Apply a partial update to a profile.

        Raises:
            UsernameTakenError: If the backend rejects a duplicate username
        """
        pass

    @abstractmethod
    def get_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        pass

    @abstractmethod
    def is_moderator(self, user_id: str) -> bool:
        pass


class InteractionRepository(ABC):
    """Likes and saves. Mutations take the target state, so retries are idempotent."""

    @abstractmethod
    def get_post_interactions(self, post_id: str, user_id: str) -> InteractionStatus:
        pass

    @abstractmethod
    def set_post_like(self, post_id: str, user_id: str, liked: bool) -> None:
        pass

    @abstractmethod
    def set_post_save(self, post_id: str, user_id: str, saved: bool) -> None:
        pass

    @abstractmethod
    def set_comment_like(self, comment_id: str, user_id: str, liked: bool) -> None:
        pass


class CommentRepository(ABC):
    """Comment threads and content reports."""

    @abstractmethod
    def list_comments(self, post_id: str, viewer_id: Optional[str]) -> list[Comment]:
        """
        Moderation-aware comment listing (authors blocked by the viewer are hidden).

        Args:
            post_id: The post
            viewer_id: Current user, or None when signed out

        Returns:
            Comments and replies, as returned by the backend
        """
        pass

    @abstractmethod
    def list_replies(self, comment_id: str) -> list[Comment]:
        pass

    @abstractmethod
    def get_comment(self, comment_id: str) -> Optional[Comment]:
        pass

    @abstractmethod
    def insert_comment(
        self,
        post_id: str,
        user_id: str,
        text: str,
        parent_comment_id: Optional[str] = None,
    ) -> Comment:
        pass

    @abstractmethod
    def insert_report(
        self,
        reporter_id: str,
        target_type: str,
        target_id: str,
        reason: str,
        description: Optional[str] = None,
    ) -> None:
        """
        Raises:
            AlreadyReportedError: If this reporter already reported the target
        """
        pass


class SocialRepository(ABC):
    """Follow graph and user blocks."""

    @abstractmethod
    def list_followers(self, user_id: str, limit: int, offset: int) -> list[Follower]:
        pass

    @abstractmethod
    def list_following(self, user_id: str, limit: int, offset: int) -> list[Follower]:
        pass

    @abstractmethod
    def is_following(self, follower_id: str, following_id: str) -> bool:
        pass

    @abstractmethod
    def set_following(self, follower_id: str, following_id: str, following: bool) -> None:
        pass

    @abstractmethod
    def insert_block(self, blocker_id: str, blocked_id: str) -> None:
        """
        Raises:
            AlreadyBlockedError: If the block already exists
        """
        pass

    @abstractmethod
    def delete_block(self, blocker_id: str, blocked_id: str) -> None:
        pass

    @abstractmethod
    def is_blocked(self, blocker_id: str, blocked_id: str) -> bool:
        pass
