# crave/app/domain/models.py
"""
Domain models for the video feed.
These are transient copies of backend rows with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


ABSOLUTE_URL_PREFIX = "http"


class PostStatus(str, Enum):
    """Moderation lifecycle of a post."""
    PENDING = "pending"
    APPROVED = "approved"
    REMOVED = "removed"


class FeedContext(str, Enum):
    """Which scoped query backs a feed screen."""
    DEFAULT = "default"
    PROFILE = "profile"
    RESTAURANT = "restaurant"
    SEARCH = "search"

    @property
    def is_fully_loaded(self) -> bool:
        """Profile and restaurant feeds load their whole collection up front."""
        return self in (FeedContext.PROFILE, FeedContext.RESTAURANT)


class ReportReason(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    HATE_SPEECH = "hate_speech"
    VIOLENCE = "violence"
    SEXUAL_CONTENT = "sexual_content"
    MISINFORMATION = "misinformation"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ReportTarget(str, Enum):
    POST = "post"
    COMMENT = "comment"
    USER = "user"


@dataclass
class Post:
    """A short video post as returned by the posts table or the ranked feed RPC."""
    id: str
    video_url: str
    description: str = ""
    user_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    status: PostStatus = PostStatus.APPROVED
    created_at: Optional[datetime] = None

    @property
    def is_visible(self) -> bool:
        """Removed posts must never be rendered or opened."""
        return self.status != PostStatus.REMOVED

    @property
    def has_absolute_video_url(self) -> bool:
        """Absolute URLs play as-is; anything else is a private storage key."""
        return self.video_url.startswith(ABSOLUTE_URL_PREFIX)


@dataclass
class Profile:
    user_id: str
    username: str
    displayname: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    instagram_handle: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0
    likes_count: int = 0

    @property
    def display_name(self) -> str:
        return self.displayname or self.username


@dataclass
class Restaurant:
    id: str
    name: str
    cuisine: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None


@dataclass
class Comment:
    """A comment row flattened with its author's profile fields."""
    id: str
    post_id: str
    user_id: str
    text: str
    parent_comment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    username: str = ""
    displayname: Optional[str] = None
    avatar_url: Optional[str] = None
    likes_count: int = 0
    replies_count: int = 0
    is_liked_by_user: bool = False

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None

    @property
    def thread_root_id(self) -> str:
        """Replies always hang off the top-level comment."""
        return self.parent_comment_id or self.id


@dataclass
class Follower:
    user_id: str
    username: str
    displayname: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class InteractionStatus:
    """Like/save state of one post for one viewer."""
    is_liked: bool = False
    like_count: int = 0
    is_saved: bool = False
    save_count: int = 0


@dataclass
class FeedPage:
    """Result of one feed fetch. A failed fetch carries the error and no items."""
    items: list[Post] = field(default_factory=list)
    error: Optional[Exception] = None
    next_offset: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass
class NavigationIntent:
    """A request to move to another screen, returned to the renderer."""
    route: str
    post_id: Optional[str] = None
    context: Optional[FeedContext] = None
    context_id: Optional[str] = None


@dataclass
class ModerationResult:
    post_id: str
    success: bool
    message: str


@dataclass
class BatchModerationResult:
    successful: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
