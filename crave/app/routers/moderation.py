# crave/app/routers/moderation.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from crave.app.deps import CurrentUser, get_moderation_service, require_moderator
from crave.app.domain.models import ModerationResult
from crave.app.routers.feed import _post_from_domain
from crave.app.schemas.feed import PostResponse
from crave.app.schemas.moderation import (
    BatchApproveRequest,
    BatchApproveResponse,
    BatchFailure,
    ModerationResultResponse,
    RemoveRequest,
)
from crave.services.moderation import ModerationService

router = APIRouter(prefix="/moderation", tags=["moderation"])


def _result(result: ModerationResult) -> ModerationResultResponse:
    return ModerationResultResponse(postId=result.post_id, success=result.success, message=result.message)


@router.get("/pending", response_model=list[PostResponse])
async def list_pending(
    limit: int = Query(default=50, ge=1, le=200),
    moderator: CurrentUser = Depends(require_moderator),
    moderation: ModerationService = Depends(get_moderation_service),
) -> list[PostResponse]:
    return [_post_from_domain(post) for post in await moderation.list_pending(limit)]


@router.post("/posts/approve-batch", response_model=BatchApproveResponse)
async def approve_batch(
    payload: BatchApproveRequest,
    moderator: CurrentUser = Depends(require_moderator),
    moderation: ModerationService = Depends(get_moderation_service),
) -> BatchApproveResponse:
    result = await moderation.approve_batch(payload.postIds)
    return BatchApproveResponse(
        successful=result.successful,
        failed=[BatchFailure(postId=post_id, message=message) for post_id, message in result.failed],
    )


@router.post("/posts/{post_id}/approve", response_model=ModerationResultResponse)
async def approve_post(
    post_id: str,
    moderator: CurrentUser = Depends(require_moderator),
    moderation: ModerationService = Depends(get_moderation_service),
) -> ModerationResultResponse:
    return _result(await moderation.approve(post_id))


@router.post("/posts/{post_id}/remove", response_model=ModerationResultResponse)
async def remove_post(
    post_id: str,
    payload: RemoveRequest,
    moderator: CurrentUser = Depends(require_moderator),
    moderation: ModerationService = Depends(get_moderation_service),
) -> ModerationResultResponse:
    return _result(await moderation.remove(post_id, payload.reason))
