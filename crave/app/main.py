# crave/app/main.py
from __future__ import annotations
import logging
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crave.app.config import settings
from crave.app.domain.errors import (
    AlreadyBlockedError,
    AlreadyReportedError,
    CommentNotFoundError,
    CommentValidationError,
    CraveError,
    InvalidUsernameError,
    ModerationError,
    PermissionDeniedError,
    PlaybackError,
    PostNotFoundError,
    PostRemovedError,
    RepositoryError,
    SelfBlockError,
    StorageError,
    UnsupportedMediaError,
    UploadValidationError,
    UsernameTakenError,
)
from crave.app.routers.auth import router as auth_router
from crave.app.routers.comments import router as comments_router
from crave.app.routers.feed import router as feed_router
from crave.app.routers.moderation import router as moderation_router
from crave.app.routers.posts import router as posts_router
from crave.app.routers.uploads import router as uploads_router
from crave.app.routers.users import router as users_router

# Plain stdout logging (works for dev and containers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

# First match wins, so subclasses go before their bases.
ERROR_STATUS: list[tuple[type[CraveError], int]] = [
    (CommentValidationError, 400),
    (InvalidUsernameError, 400),
    (SelfBlockError, 400),
    (UnsupportedMediaError, 400),
    (UploadValidationError, 400),
    (PermissionDeniedError, 403),
    (PostNotFoundError, 404),
    (CommentNotFoundError, 404),
    (AlreadyReportedError, 409),
    (AlreadyBlockedError, 409),
    (UsernameTakenError, 409),
    (PostRemovedError, 410),
    (RepositoryError, 502),
    (StorageError, 502),
    (ModerationError, 502),
    (PlaybackError, 502),
]


def status_for(error: CraveError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


app = FastAPI(title="Crave API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(feed_router)
app.include_router(posts_router)
app.include_router(comments_router)
app.include_router(users_router)
app.include_router(moderation_router)
app.include_router(uploads_router)


@app.exception_handler(CraveError)
async def crave_error_handler(request: Request, exc: CraveError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body = {"detail": str(exc)}
    code = getattr(exc, "code", None)
    if code:
        body["code"] = code
    return JSONResponse(status_code=status_code, content=body)


@app.get("/health")
def health():
    return {"ok": True}
