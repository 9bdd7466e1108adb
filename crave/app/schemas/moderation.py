from __future__ import annotations

from pydantic import BaseModel, Field


class ModerationResultResponse(BaseModel):
    postId: str
    success: bool
    message: str


class RemoveRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class BatchApproveRequest(BaseModel):
    postIds: list[str] = Field(..., min_length=1, max_length=100)


class BatchFailure(BaseModel):
    postId: str
    message: str


class BatchApproveResponse(BaseModel):
    successful: list[str] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)
