from __future__ import annotations

from types import SimpleNamespace
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from crave.app.deps import (
    CurrentUser,
    get_comment_repository,
    get_current_user,
    get_interaction_repository,
    get_post_repository,
    get_profile_repository,
    get_social_repository,
    get_storage,
)
from crave.app.domain.errors import (
    CraveError,
    PostRemovedError,
    RepositoryError,
    UnsupportedMediaError,
    UsernameTakenError,
)
from crave.app.domain.models import Comment, Follower, PostStatus, Profile
from crave.app.main import app, status_for
from tests.unit.stubs import (
    CommentRepositoryStub,
    InteractionRepositoryStub,
    PostRepositoryStub,
    ProfileRepositoryStub,
    SocialRepositoryStub,
    StorageProviderStub,
    make_post,
)

VIEWER = CurrentUser(id="viewer", email="viewer@example.com")


@pytest.fixture
def backend() -> SimpleNamespace:
    return SimpleNamespace(
        posts=PostRepositoryStub(),
        profiles=ProfileRepositoryStub(),
        interactions=InteractionRepositoryStub(),
        comments=CommentRepositoryStub(),
        social=SocialRepositoryStub(),
        storage=StorageProviderStub(),
    )


@pytest.fixture
def client(backend: SimpleNamespace) -> Iterator[TestClient]:
    app.dependency_overrides = {
        get_current_user: lambda: VIEWER,
        get_post_repository: lambda: backend.posts,
        get_profile_repository: lambda: backend.profiles,
        get_interaction_repository: lambda: backend.interactions,
        get_comment_repository: lambda: backend.comments,
        get_social_repository: lambda: backend.social,
        get_storage: lambda: backend.storage,
    }
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (UnsupportedMediaError("image/png"), 400),
            (UsernameTakenError("chef"), 409),
            (PostRemovedError("1"), 410),
            (RepositoryError("get_post", "timeout"), 502),
            (CraveError("unexpected"), 500),
        ],
    )
    def test_status_for(self, error: CraveError, expected: int) -> None:
        assert status_for(error) == expected


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"ok": True}


class TestAuthRoutes:
    def test_me_without_profile(self, client: TestClient) -> None:
        body = client.get("/auth/me").json()

        assert body["id"] == "viewer"
        assert body["username"] is None
        assert body["isModerator"] is False

    def test_me_with_profile(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.profiles.profiles["viewer"] = Profile(user_id="viewer", username="ana")
        backend.profiles.moderators.add("viewer")

        body = client.get("/auth/me").json()

        assert body["username"] == "ana"
        assert body["isModerator"] is True


class TestFeedRoutes:
    def test_first_page(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.ranked = [make_post(str(i)) for i in range(12)]

        response = client.get("/feed", params={"seed": 0.5})

        body = response.json()
        assert response.status_code == 200
        assert [item["id"] for item in body["items"]] == [str(i) for i in range(10)]
        assert body["nextOffset"] == 10
        assert body["seed"] == 0.5
        assert body["hasMore"] is True

    def test_next_page_reuses_seed(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.ranked = [make_post(str(i)) for i in range(12)]

        body = client.get("/feed", params={"offset": 10, "seed": 0.25}).json()

        assert [item["id"] for item in body["items"]] == ["10", "11"]
        assert backend.posts.ranked_calls[-1] == ("viewer", 10, 10, 0.25)

    def test_clicked_post_not_repeated_on_next_page(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.ranked = [make_post(str(i)) for i in range(20)]
        for post in backend.posts.ranked:
            backend.posts.posts[post.id] = post

        first = client.get("/feed", params={"postId": "15", "seed": 0.5}).json()
        second = client.get("/feed", params={"postId": "15", "offset": 10, "seed": 0.5}).json()

        assert first["items"][0]["id"] == "15"
        assert [item["id"] for item in second["items"]] == ["10", "11", "12", "13", "14", "16", "17", "18", "19"]

    def test_removed_initial_post(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.posts["9"] = make_post("9", PostStatus.REMOVED)

        response = client.get("/feed", params={"postId": "9"})

        assert response.status_code == 410

    def test_profile_feed_is_complete(self, client: TestClient, backend: SimpleNamespace) -> None:
        for post in (make_post("1", minutes=1), make_post("2", minutes=2), make_post("3", user_id="other")):
            backend.posts.posts[post.id] = post

        body = client.get("/feed", params={"context": "profile", "contextId": "owner-1"}).json()

        assert [item["id"] for item in body["items"]] == ["2", "1"]
        assert body["hasMore"] is False

    def test_backend_failure(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.fail_ranked = True
        assert client.get("/feed").status_code == 502


class TestPostRoutes:
    def test_like_returns_counts(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.posts["1"] = make_post("1")

        response = client.put("/posts/1/like")

        assert response.status_code == 200
        assert backend.interactions.like_calls == [("1", "viewer", True)]
        assert response.json()["likeCount"] == 5

    def test_like_removed_post(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.posts["1"] = make_post("1", PostStatus.REMOVED)

        assert client.put("/posts/1/like").status_code == 410
        assert backend.interactions.like_calls == []

    def test_missing_post(self, client: TestClient) -> None:
        assert client.get("/posts/404").status_code == 404

    def test_share(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.posts["7"] = make_post("7")

        body = client.get("/posts/7/share").json()

        assert body["url"] == "https://crave.app/post/7"
        assert body["message"] == "Post 7\nhttps://crave.app/post/7"

    def test_backend_error_maps_to_502(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.posts.posts["1"] = make_post("1")
        backend.interactions.fail_mutations = True

        response = client.put("/posts/1/save")

        assert response.status_code == 502
        assert "set_post_save" in response.json()["detail"]


class TestCommentRoutes:
    def test_create_comment(self, client: TestClient, backend: SimpleNamespace) -> None:
        response = client.post("/posts/p1/comments", json={"text": "  So good  "})

        assert response.status_code == 201
        assert response.json()["text"] == "So good"

    def test_reply_is_attached_to_thread_root(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.comments.comments = [
            Comment(id="c1", post_id="p1", user_id="a", text="root"),
            Comment(id="c2", post_id="p1", user_id="b", text="reply", parent_comment_id="c1"),
        ]

        body = client.post("/posts/p1/comments", json={"text": "agreed", "replyTo": "c2"}).json()

        assert body["parentCommentId"] == "c1"

    def test_invalid_comment(self, client: TestClient) -> None:
        response = client.post("/posts/p1/comments", json={"text": "   "})

        assert response.status_code == 400
        assert response.json()["code"] == "empty"

    def test_reply_to_missing_comment(self, client: TestClient) -> None:
        response = client.post("/posts/p1/comments", json={"text": "hi", "replyTo": "nope"})
        assert response.status_code == 404

    def test_duplicate_report(self, client: TestClient) -> None:
        payload = {"targetType": "post", "targetId": "p1", "reason": "spam"}

        assert client.post("/reports", json=payload).status_code == 201
        assert client.post("/reports", json=payload).status_code == 409

    def test_self_block(self, client: TestClient) -> None:
        assert client.post("/blocks", json={"userId": "viewer"}).status_code == 400

    def test_unblock(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.social.blocks.add(("viewer", "troll"))

        assert client.delete("/blocks/troll").status_code == 204
        assert backend.social.blocks == set()


class TestUserRoutes:
    def test_profile(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.profiles.profiles["chef"] = Profile(user_id="chef", username="chef", avatar_url="chef/a.jpg")

        body = client.get("/users/chef").json()

        assert body["avatarUrl"] == "https://storage.example.com/public/avatars/chef/a.jpg"

    def test_missing_profile(self, client: TestClient) -> None:
        assert client.get("/users/ghost").status_code == 404

    def test_followers_page(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.social.followers = [Follower(user_id=f"u{i}", username=f"user{i}") for i in range(25)]

        body = client.get("/users/chef/followers", params={"offset": 20}).json()

        assert len(body["items"]) == 5
        assert body["nextOffset"] == 25
        assert body["hasMore"] is False

    def test_followers_failure(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.social.fail_list = True
        assert client.get("/users/chef/followers").status_code == 502

    def test_follow(self, client: TestClient, backend: SimpleNamespace) -> None:
        assert client.put("/users/chef/follow").json() == {"userId": "chef", "following": True}
        assert ("viewer", "chef") in backend.social.following

    def test_cannot_follow_self(self, client: TestClient) -> None:
        assert client.put("/users/viewer/follow").status_code == 400

    def test_invalid_username(self, client: TestClient) -> None:
        assert client.patch("/users/me/username", json={"username": "a b"}).status_code == 400

    def test_username_taken(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.profiles.taken_usernames.add("chef")
        assert client.patch("/users/me/username", json={"username": "Chef"}).status_code == 409


class TestModerationRoutes:
    def test_requires_moderator(self, client: TestClient) -> None:
        assert client.get("/moderation/pending").status_code == 403

    def test_approve(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.profiles.moderators.add("viewer")
        backend.posts.posts["1"] = make_post("1", PostStatus.PENDING)

        body = client.post("/moderation/posts/1/approve").json()

        assert body["success"] is True
        assert backend.posts.posts["1"].status == PostStatus.APPROVED

    def test_remove_missing_post(self, client: TestClient, backend: SimpleNamespace) -> None:
        backend.profiles.moderators.add("viewer")

        response = client.post("/moderation/posts/404/remove", json={"reason": "Spam"})

        assert response.status_code == 404


class TestUploadRoutes:
    def test_upload_video(self, client: TestClient, backend: SimpleNamespace) -> None:
        response = client.post(
            "/uploads/videos",
            files={"file": ("dinner.mp4", b"\x00" * 32, "video/mp4")},
            data={"description": "Pho"},
        )

        assert response.status_code == 201
        assert response.json()["post"]["status"] == "pending"
        assert len(backend.storage.objects) == 1

    def test_upload_rejects_images(self, client: TestClient, backend: SimpleNamespace) -> None:
        response = client.post("/uploads/videos", files={"file": ("a.png", b"png", "image/png")})

        assert response.status_code == 400
        assert backend.storage.objects == {}
