# crave/app/routers/comments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from crave.app.deps import CurrentUser, get_comment_service, get_current_user
from crave.app.domain.models import Comment
from crave.app.schemas.social import (
    BlockCreate,
    CommentCreate,
    CommentLikeResponse,
    CommentResponse,
    ReportCreate,
)
from crave.services.comments import CommentService

router = APIRouter(tags=["comments"])


def _comment_from_domain(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        postId=comment.post_id,
        userId=comment.user_id,
        text=comment.text,
        parentCommentId=comment.parent_comment_id,
        createdAt=comment.created_at.isoformat() if comment.created_at else None,
        username=comment.username,
        displayname=comment.displayname,
        avatarUrl=comment.avatar_url,
        likesCount=comment.likes_count,
        repliesCount=comment.replies_count,
        isLikedByUser=comment.is_liked_by_user,
    )


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> list[CommentResponse]:
    rows = await comments.list_comments(post_id, user.id)
    return [_comment_from_domain(comment) for comment in rows]


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    payload: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    reply_to = await comments.get_comment(payload.replyTo) if payload.replyTo else None
    comment = await comments.post_comment(post_id, user.id, payload.text, reply_to=reply_to)
    return _comment_from_domain(comment)


@router.get("/comments/{comment_id}/replies", response_model=list[CommentResponse])
async def list_replies(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> list[CommentResponse]:
    rows = await comments.list_replies(comment_id)
    return [_comment_from_domain(comment) for comment in rows]


@router.post("/comments/{comment_id}/like", response_model=CommentLikeResponse)
async def like_comment(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> CommentLikeResponse:
    await comments.set_comment_like(comment_id, user.id, True)
    return CommentLikeResponse(commentId=comment_id, isLiked=True)


@router.delete("/comments/{comment_id}/like", response_model=CommentLikeResponse)
async def unlike_comment(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> CommentLikeResponse:
    await comments.set_comment_like(comment_id, user.id, False)
    return CommentLikeResponse(commentId=comment_id, isLiked=False)


@router.post("/reports", status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportCreate,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> dict:
    await comments.report(user.id, payload.targetType, payload.targetId, payload.reason, payload.description)
    return {"ok": True}


@router.post("/blocks", status_code=status.HTTP_201_CREATED)
async def block_user(
    payload: BlockCreate,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> dict:
    await comments.block_user(user.id, payload.userId)
    return {"ok": True}


@router.delete("/blocks/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_user(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
) -> Response:
    await comments.unblock_user(user.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
