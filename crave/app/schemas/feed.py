from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

PostStatusName = Literal["pending", "approved", "removed"]
FeedContextName = Literal["default", "profile", "restaurant", "search"]


class PostResponse(BaseModel):
    id: str
    videoUrl: str
    thumbnailUrl: Optional[str] = None
    description: str = ""
    userId: Optional[str] = None
    restaurantId: Optional[str] = None
    status: PostStatusName = "approved"
    createdAt: Optional[str] = None


class FeedResponse(BaseModel):
    context: FeedContextName
    items: list[PostResponse] = Field(default_factory=list)
    nextOffset: int = 0
    seed: float
    hasMore: bool = False


class InteractionsResponse(BaseModel):
    isLiked: bool = False
    likeCount: int = 0
    isSaved: bool = False
    saveCount: int = 0


class ShareResponse(BaseModel):
    url: str
    message: str


class UploadResponse(BaseModel):
    post: PostResponse
    message: str = "Video submitted for review"
