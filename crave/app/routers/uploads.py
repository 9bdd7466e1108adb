# crave/app/routers/uploads.py
"""
Video upload route. Uploaded videos stay private until a moderator approves them.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from crave.app.deps import CurrentUser, get_current_user, get_upload_service
from crave.app.routers.feed import _post_from_domain
from crave.app.schemas.feed import UploadResponse
from crave.services.upload import VideoUploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/videos", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    file: UploadFile = File(...),
    description: str = Form(default="", max_length=2200),
    restaurantId: Optional[str] = Form(default=None),
    user: CurrentUser = Depends(get_current_user),
    uploads: VideoUploadService = Depends(get_upload_service),
) -> UploadResponse:
    data = await file.read()
    logger.info("Upload received: user=%s, file=%s, size=%d bytes", user.id, file.filename, len(data))
    post = await uploads.upload_video(
        user.id,
        file.filename or "video.mp4",
        data,
        file.content_type or "application/octet-stream",
        description=description,
        restaurant_id=restaurantId,
    )
    return UploadResponse(post=_post_from_domain(post))
