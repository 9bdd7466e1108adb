from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from crave.app.domain.models import ReportReason, ReportTarget


class CommentResponse(BaseModel):
    id: str
    postId: str
    userId: str
    text: str
    parentCommentId: Optional[str] = None
    createdAt: Optional[str] = None
    username: str = ""
    displayname: Optional[str] = None
    avatarUrl: Optional[str] = None
    likesCount: int = 0
    repliesCount: int = 0
    isLikedByUser: bool = False


class CommentCreate(BaseModel):
    text: str
    replyTo: Optional[str] = Field(default=None, description="Comment being replied to")


class CommentLikeResponse(BaseModel):
    commentId: str
    isLiked: bool


class ReportCreate(BaseModel):
    targetType: ReportTarget
    targetId: str = Field(..., min_length=1)
    reason: ReportReason
    description: Optional[str] = Field(default=None, max_length=500)


class BlockCreate(BaseModel):
    userId: str = Field(..., min_length=1)


class FollowerResponse(BaseModel):
    userId: str
    username: str
    displayname: Optional[str] = None
    avatarUrl: Optional[str] = None


class FollowListResponse(BaseModel):
    items: list[FollowerResponse] = Field(default_factory=list)
    nextOffset: int = 0
    hasMore: bool = False


class FollowResponse(BaseModel):
    userId: str
    following: bool


class ProfileResponse(BaseModel):
    userId: str
    username: str
    displayname: Optional[str] = None
    avatarUrl: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    instagramHandle: Optional[str] = None
    followersCount: int = 0
    followingCount: int = 0
    likesCount: int = 0


class UsernameUpdate(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)


class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None
    avatarUrl: Optional[str] = None
    isModerator: bool = False
