from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from crave.app.config import settings
from crave.app.domain.errors import (
    AlreadyBlockedError,
    AlreadyReportedError,
    RepositoryError,
    UsernameTakenError,
)
from crave.app.domain.models import (
    Comment,
    Follower,
    InteractionStatus,
    Post,
    PostStatus,
    Profile,
    Restaurant,
)
from crave.app.infra.db.base import (
    CommentRepository,
    InteractionRepository,
    PostRepository,
    ProfileRepository,
    SocialRepository,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
POST_COLUMNS = "id, video_url, thumbnail_url, description, user, restaurant, status, created_at"

_BACKEND_ERRORS = (APIError, httpx.HTTPError, ConnectionError, TimeoutError)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_int(value: object, default: int = 0) -> int:
    return int(value) if value else default


def _safe_str(value: object) -> str | None:
    return str(value) if value is not None and value != "" else None


def _coerce_id(value: str) -> int | str:
    """Numeric ids go over the wire as integers, anything else as text."""
    return int(value) if str(value).isdigit() else value


def _is_unique_violation(error: APIError) -> bool:
    return str(getattr(error, "code", "") or "") == UNIQUE_VIOLATION


def _row_to_post(row: dict[str, Any]) -> Post:
    owner = row.get("user") if row.get("user") is not None else row.get("user_id")
    restaurant = row.get("restaurant") if row.get("restaurant") is not None else row.get("restaurant_id")
    status_value = row.get("status") or PostStatus.APPROVED.value
    return Post(
        id=str(row["id"]),
        video_url=str(row.get("video_url") or ""),
        description=str(row.get("description") or ""),
        user_id=_safe_str(owner),
        restaurant_id=_safe_str(restaurant),
        thumbnail_url=_safe_str(row.get("thumbnail_url")),
        status=PostStatus(str(status_value)),
        created_at=_parse_datetime(row.get("created_at")),
    )


def _row_to_profile(row: dict[str, Any]) -> Profile:
    return Profile(
        user_id=str(row["user_id"]),
        username=str(row.get("username") or ""),
        displayname=_safe_str(row.get("displayname")),
        avatar_url=_safe_str(row.get("avatar_url")),
        bio=_safe_str(row.get("bio")),
        location=_safe_str(row.get("location")),
        instagram_handle=_safe_str(row.get("instagram_handle")),
        followers_count=_safe_int(row.get("followers_count")),
        following_count=_safe_int(row.get("following_count")),
        likes_count=_safe_int(row.get("likes_count")),
    )


def _row_to_restaurant(row: dict[str, Any]) -> Restaurant:
    return Restaurant(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        cuisine=_safe_str(row.get("cuisine")),
        address=_safe_str(row.get("address")),
        phone=_safe_str(row.get("phone")),
        website=_safe_str(row.get("website")),
    )


def _row_to_comment(row: dict[str, Any]) -> Comment:
    # Replies come back with the author nested under `profiles`.
    author = row.get("profiles") or {}
    return Comment(
        id=str(row["id"]),
        post_id=str(row.get("post_id") or ""),
        user_id=str(row.get("user_id") or ""),
        text=str(row.get("text") or ""),
        parent_comment_id=_safe_str(row.get("parent_comment_id")),
        created_at=_parse_datetime(row.get("created_at")),
        username=str(row.get("username") or author.get("username") or ""),
        displayname=_safe_str(row.get("displayname") or author.get("displayname")),
        avatar_url=_safe_str(row.get("avatar_url") or author.get("avatar_url")),
        likes_count=_safe_int(row.get("likes_count")),
        replies_count=_safe_int(row.get("replies_count")),
        is_liked_by_user=bool(row.get("is_liked_by_user")),
    )


def _row_to_follower(row: dict[str, Any]) -> Follower:
    return Follower(
        user_id=str(row["user_id"]),
        username=str(row.get("username") or ""),
        displayname=_safe_str(row.get("displayname")),
        avatar_url=_safe_str(row.get("avatar_url")),
    )


def _create_supabase_client() -> Client:
    url = str(settings.SUPABASE_URL)
    key = settings.SUPABASE_SERVICE_ROLE_KEY
    if not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


@contextmanager
def _backend_call(operation: str) -> Iterator[None]:
    try:
        yield
    except _BACKEND_ERRORS as error:
        logger.error("Backend error during %s: %s", operation, error)
        raise RepositoryError(operation, str(error)) from error


class _SupabaseRepository:
    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()
        logger.debug("%s initialized", type(self).__name__)


class SupabasePostRepository(_SupabaseRepository, PostRepository):
    TABLE_NAME = "posts"
    RANKED_FEED_RPC = "get_ranked_feed_offset"

    def get_post(self, post_id: str) -> Post | None:
        with _backend_call("get_post"):
            result = (
                self._client.table(self.TABLE_NAME)
                .select(POST_COLUMNS)
                .eq("id", _coerce_id(post_id))
                .limit(1)
                .execute()
            )
        return _row_to_post(result.data[0]) if result.data else None

    def list_posts_by_owner(self, user_id: str, limit: int = 100) -> list[Post]:
        return self._list_approved("user", user_id, limit)

    def list_posts_by_restaurant(self, restaurant_id: str, limit: int = 100) -> list[Post]:
        return self._list_approved("restaurant", _coerce_id(restaurant_id), limit)

    def _list_approved(self, column: str, value: object, limit: int) -> list[Post]:
        with _backend_call(f"list_posts_by_{column}"):
            result = (
                self._client.table(self.TABLE_NAME)
                .select(POST_COLUMNS)
                .eq(column, value)
                .eq("status", PostStatus.APPROVED.value)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        return [_row_to_post(row) for row in result.data or []]

    def get_ranked_feed(
        self,
        viewer_id: str,
        limit: int,
        offset: int,
        seed: float,
    ) -> list[Post]:
        with _backend_call("get_ranked_feed"):
            result = self._client.rpc(
                self.RANKED_FEED_RPC,
                {"p_user_id": viewer_id, "p_limit": limit, "p_offset": offset, "p_seed": seed},
            ).execute()
        rows = result.data or []
        logger.debug("Ranked feed page: offset=%d, seed=%.6f, rows=%d", offset, seed, len(rows))
        return [_row_to_post(row) for row in rows]

    def list_pending_posts(self, limit: int = 50) -> list[Post]:
        with _backend_call("list_pending_posts"):
            result = (
                self._client.table(self.TABLE_NAME)
                .select(POST_COLUMNS)
                .eq("status", PostStatus.PENDING.value)
                .order("created_at", desc=False)
                .limit(limit)
                .execute()
            )
        return [_row_to_post(row) for row in result.data or []]

    def create_post(
        self,
        user_id: str,
        video_url: str,
        description: str,
        restaurant_id: str | None = None,
    ) -> Post:
        payload = {
            "user": user_id,
            "video_url": video_url,
            "description": description,
            "restaurant": _coerce_id(restaurant_id) if restaurant_id else None,
            "status": PostStatus.PENDING.value,
            "created_at": _now_utc().isoformat(),
        }
        with _backend_call("create_post"):
            result = self._client.table(self.TABLE_NAME).insert(payload).execute()
        if not result.data:
            raise RepositoryError("create_post", "insert returned no rows")
        post = _row_to_post(result.data[0])
        logger.info("Created post: id=%s, user=%s", post.id, user_id)
        return post

    def update_post(self, post_id: str, changes: dict[str, Any]) -> bool:
        with _backend_call("update_post"):
            result = (
                self._client.table(self.TABLE_NAME)
                .update(changes)
                .eq("id", _coerce_id(post_id))
                .execute()
            )
        return bool(result.data)


class SupabaseProfileRepository(_SupabaseRepository, ProfileRepository):
    def get_profile(self, user_id: str) -> Profile | None:
        with _backend_call("get_profile"):
            result = self._client.table("profiles").select("*").eq("user_id", user_id).limit(1).execute()
        return _row_to_profile(result.data[0]) if result.data else None

    def list_profile_grid(self, user_id: str, limit: int = 50) -> list[Post]:
        with _backend_call("list_profile_grid"):
            result = (
                self._client.table("posts")
                .select(POST_COLUMNS)
                .eq("user", user_id)
                .eq("status", PostStatus.APPROVED.value)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        return [_row_to_post(row) for row in result.data or []]

    def update_profile(self, user_id: str, changes: dict[str, Any]) -> Profile:
        try:
            result = self._client.table("profiles").update(changes).eq("user_id", user_id).execute()
        except APIError as error:
            if _is_unique_violation(error):
                raise UsernameTakenError(str(changes.get("username", ""))) from error
            logger.error("Backend error updating profile: %s", error)
            raise RepositoryError("update_profile", str(error)) from error
        except (httpx.HTTPError, ConnectionError, TimeoutError) as error:
            logger.error("Network error updating profile: %s", error)
            raise RepositoryError("update_profile", str(error)) from error

        if not result.data:
            raise RepositoryError("update_profile", f"profile not found: {user_id}")
        return _row_to_profile(result.data[0])

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        with _backend_call("get_restaurant"):
            result = (
                self._client.table("restaurants")
                .select("*")
                .eq("id", _coerce_id(restaurant_id))
                .limit(1)
                .execute()
            )
        return _row_to_restaurant(result.data[0]) if result.data else None

    def is_moderator(self, user_id: str) -> bool:
        with _backend_call("is_moderator"):
            result = self._client.table("moderators").select("user_id").eq("user_id", user_id).limit(1).execute()
        return bool(result.data)


class SupabaseInteractionRepository(_SupabaseRepository, InteractionRepository):
    def get_post_interactions(self, post_id: str, user_id: str) -> InteractionStatus:
        pid = _coerce_id(post_id)
        with _backend_call("get_post_interactions"):
            like_count = self._count("likes", pid)
            save_count = self._count("saves", pid)
            is_liked = self._exists("likes", "post_id", pid, user_id)
            is_saved = self._exists("saves", "post_id", pid, user_id)
        return InteractionStatus(
            is_liked=is_liked,
            like_count=like_count,
            is_saved=is_saved,
            save_count=save_count,
        )

    def _count(self, table: str, post_id: object) -> int:
        response = (
            self._client.table(table)
            .select("post_id", count="exact")
            .eq("post_id", post_id)
            .limit(1)
            .execute()
        )
        return getattr(response, "count", 0) or 0

    def _exists(self, table: str, column: str, value: object, user_id: str) -> bool:
        response = (
            self._client.table(table)
            .select(column)
            .eq(column, value)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    def set_post_like(self, post_id: str, user_id: str, liked: bool) -> None:
        self._set_membership("likes", "post_id", _coerce_id(post_id), user_id, liked)

    def set_post_save(self, post_id: str, user_id: str, saved: bool) -> None:
        self._set_membership("saves", "post_id", _coerce_id(post_id), user_id, saved)

    def set_comment_like(self, comment_id: str, user_id: str, liked: bool) -> None:
        self._set_membership("comment_likes", "comment_id", _coerce_id(comment_id), user_id, liked)

    def _set_membership(self, table: str, column: str, value: object, user_id: str, present: bool) -> None:
        with _backend_call(f"set_{table}"):
            if present:
                self._client.table(table).upsert(
                    {column: value, "user_id": user_id},
                    on_conflict=f"{column},user_id",
                ).execute()
            else:
                self._client.table(table).delete().eq(column, value).eq("user_id", user_id).execute()
        logger.info("%s %s: %s=%s, user=%s", "Added" if present else "Removed", table, column, value, user_id)


class SupabaseCommentRepository(_SupabaseRepository, CommentRepository):
    TABLE_NAME = "comments"
    REPLY_COLUMNS = (
        "id, post_id, user_id, parent_comment_id, text, created_at, "
        "profiles!inner(username, displayname, avatar_url)"
    )

    def list_comments(self, post_id: str, viewer_id: str | None) -> list[Comment]:
        with _backend_call("list_comments"):
            result = self._client.rpc(
                "get_comments_with_moderation",
                {"p_post_id": _coerce_id(post_id), "p_user_id": viewer_id},
            ).execute()
        return [_row_to_comment(row) for row in result.data or []]

    def list_replies(self, comment_id: str) -> list[Comment]:
        with _backend_call("list_replies"):
            result = (
                self._client.table(self.TABLE_NAME)
                .select(self.REPLY_COLUMNS)
                .eq("parent_comment_id", _coerce_id(comment_id))
                .order("created_at", desc=False)
                .execute()
            )
        return [_row_to_comment(row) for row in result.data or []]

    def get_comment(self, comment_id: str) -> Comment | None:
        with _backend_call("get_comment"):
            result = (
                self._client.table(self.TABLE_NAME)
                .select(self.REPLY_COLUMNS)
                .eq("id", _coerce_id(comment_id))
                .limit(1)
                .execute()
            )
        return _row_to_comment(result.data[0]) if result.data else None

    def insert_comment(
        self,
        post_id: str,
        user_id: str,
        text: str,
        parent_comment_id: str | None = None,
    ) -> Comment:
        payload = {
            "post_id": _coerce_id(post_id),
            "user_id": user_id,
            "text": text,
            "parent_comment_id": _coerce_id(parent_comment_id) if parent_comment_id else None,
            "status": "visible",
        }
        with _backend_call("insert_comment"):
            result = self._client.table(self.TABLE_NAME).insert(payload).execute()
        if not result.data:
            raise RepositoryError("insert_comment", "insert returned no rows")
        return _row_to_comment(result.data[0])

    def insert_report(
        self,
        reporter_id: str,
        target_type: str,
        target_id: str,
        reason: str,
        description: str | None = None,
    ) -> None:
        payload = {
            "reporter_id": reporter_id,
            "target_type": target_type,
            "target_id": _coerce_id(target_id),
            "reason": reason,
            "description": description,
            "status": "pending",
        }
        try:
            self._client.table("reports").insert(payload).execute()
        except APIError as error:
            if _is_unique_violation(error):
                raise AlreadyReportedError(target_type, target_id) from error
            raise RepositoryError("insert_report", str(error)) from error
        except (httpx.HTTPError, ConnectionError, TimeoutError) as error:
            raise RepositoryError("insert_report", str(error)) from error


class SupabaseSocialRepository(_SupabaseRepository, SocialRepository):
    def list_followers(self, user_id: str, limit: int, offset: int) -> list[Follower]:
        return self._list_graph("get_followers", user_id, limit, offset)

    def list_following(self, user_id: str, limit: int, offset: int) -> list[Follower]:
        return self._list_graph("get_following", user_id, limit, offset)

    def _list_graph(self, rpc_name: str, user_id: str, limit: int, offset: int) -> list[Follower]:
        with _backend_call(rpc_name):
            result = self._client.rpc(
                rpc_name,
                {"p_user_id": user_id, "p_limit": limit, "p_offset": offset},
            ).execute()
        return [_row_to_follower(row) for row in result.data or []]

    def is_following(self, follower_id: str, following_id: str) -> bool:
        with _backend_call("is_following"):
            result = self._client.rpc(
                "is_following",
                {"p_follower_id": follower_id, "p_following_id": following_id},
            ).execute()
        return bool(result.data)

    def set_following(self, follower_id: str, following_id: str, following: bool) -> None:
        table = self._client.table("followers")
        try:
            if following:
                table.insert({"follower_id": follower_id, "following_id": following_id}).execute()
            else:
                table.delete().eq("follower_id", follower_id).eq("following_id", following_id).execute()
        except APIError as error:
            if following and _is_unique_violation(error):
                logger.debug("Already following: %s -> %s", follower_id, following_id)
                return
            raise RepositoryError("set_following", str(error)) from error
        except (httpx.HTTPError, ConnectionError, TimeoutError) as error:
            raise RepositoryError("set_following", str(error)) from error

    def insert_block(self, blocker_id: str, blocked_id: str) -> None:
        try:
            self._client.table("user_blocks").insert(
                {"blocker_id": blocker_id, "blocked_id": blocked_id}
            ).execute()
        except APIError as error:
            if _is_unique_violation(error):
                raise AlreadyBlockedError(blocked_id) from error
            raise RepositoryError("insert_block", str(error)) from error
        except (httpx.HTTPError, ConnectionError, TimeoutError) as error:
            raise RepositoryError("insert_block", str(error)) from error
        logger.info("User blocked: blocker=%s, blocked=%s", blocker_id, blocked_id)

    def delete_block(self, blocker_id: str, blocked_id: str) -> None:
        with _backend_call("delete_block"):
            (
                self._client.table("user_blocks")
                .delete()
                .eq("blocker_id", blocker_id)
                .eq("blocked_id", blocked_id)
                .execute()
            )

    def is_blocked(self, blocker_id: str, blocked_id: str) -> bool:
        with _backend_call("is_blocked"):
            result = (
                self._client.table("user_blocks")
                .select("id")
                .eq("blocker_id", blocker_id)
                .eq("blocked_id", blocked_id)
                .limit(1)
                .execute()
            )
        return bool(result.data)
