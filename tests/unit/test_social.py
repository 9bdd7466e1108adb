from __future__ import annotations

import pytest

from crave.app.domain.errors import InvalidUsernameError, UsernameTakenError
from crave.app.domain.models import Follower, Post, Profile, PostStatus
from crave.services.interactions import ToggleState
from crave.services.profiles import ProfileService, normalize_username
from crave.services.social import LOAD_ERROR_MESSAGE, FollowListPager, FollowService
from tests.unit.stubs import ProfileRepositoryStub, SocialRepositoryStub, StorageProviderStub


def followers(count: int) -> list[Follower]:
    return [Follower(user_id=f"u{i}", username=f"user{i}") for i in range(count)]


class TestFollowListPager:
    async def test_pages_until_short_page(self) -> None:
        repo = SocialRepositoryStub()
        repo.followers = followers(45)
        pager = FollowListPager(repo, "owner")

        await pager.load_first()
        assert len(pager.items) == 20
        assert pager.has_more is True

        await pager.load_more()
        await pager.load_more()

        assert len(pager.items) == 45
        assert pager.has_more is False
        assert await pager.load_more() == []
        assert [call[3] for call in repo.list_calls] == [0, 20, 40]

    async def test_following_direction(self) -> None:
        repo = SocialRepositoryStub()
        repo.followers = followers(3)
        pager = FollowListPager(repo, "owner", direction="following")

        await pager.load_first()

        assert repo.list_calls[0][0] == "following"

    async def test_error_is_surfaced_and_retryable(self) -> None:
        repo = SocialRepositoryStub()
        repo.followers = followers(25)
        repo.fail_list = True
        pager = FollowListPager(repo, "owner")

        assert await pager.load_first() == []
        assert pager.error == LOAD_ERROR_MESSAGE
        assert pager.loading is False
        assert await pager.load_more() == []

        repo.fail_list = False
        page = await pager.retry()

        assert len(page) == 20
        assert pager.error is None

    async def test_retry_after_failed_second_page(self) -> None:
        repo = SocialRepositoryStub()
        repo.followers = followers(25)
        pager = FollowListPager(repo, "owner")
        await pager.load_first()

        repo.fail_list = True
        await pager.load_more()
        repo.fail_list = False
        await pager.retry()

        assert len(pager.items) == 25

    async def test_load_at_offset(self) -> None:
        repo = SocialRepositoryStub()
        repo.followers = followers(30)
        pager = FollowListPager(repo, "owner", page_size=10)

        page = await pager.load_at(10)

        assert [f.user_id for f in page] == [f"u{i}" for i in range(10, 20)]
        assert pager.offset == 20


class TestFollowService:
    async def test_follow_toggle_updates_count(self) -> None:
        repo = SocialRepositoryStub()
        service = FollowService(repo)
        profile = Profile(user_id="chef", username="chef", followers_count=10)

        toggle = await service.follow_toggle("viewer", profile)
        state = await toggle.toggle()

        assert state == ToggleState(True, 11)
        assert ("viewer", "chef") in repo.following

    async def test_toggle_seeded_with_existing_follow(self) -> None:
        repo = SocialRepositoryStub()
        repo.following.add(("viewer", "chef"))
        service = FollowService(repo)

        toggle = await service.follow_toggle("viewer", Profile(user_id="chef", username="chef", followers_count=3))

        assert toggle.state == ToggleState(True, 3)

    async def test_self_follow_is_ignored(self) -> None:
        repo = SocialRepositoryStub()
        service = FollowService(repo)

        await service.set_following("viewer", "viewer", True)

        assert repo.following == set()
        assert await service.is_following("viewer", "viewer") is False

    async def test_set_following(self) -> None:
        repo = SocialRepositoryStub()
        service = FollowService(repo)

        await service.set_following("viewer", "chef", True)
        assert await service.is_following("viewer", "chef")
        await service.set_following("viewer", "chef", False)
        assert not await service.is_following("viewer", "chef")


class TestNormalizeUsername:
    def test_lowercases(self) -> None:
        assert normalize_username("  Chef.Ana_01 ") == "chef.ana_01"

    @pytest.mark.parametrize("username", ["ab", "", "has space", "émile", "x" * 31])
    def test_rejects_invalid(self, username: str) -> None:
        with pytest.raises(InvalidUsernameError):
            normalize_username(username)


class TestProfileService:
    async def test_avatar_key_resolved_to_public_url(self) -> None:
        profiles = ProfileRepositoryStub()
        profiles.profiles["u1"] = Profile(user_id="u1", username="chef", avatar_url="u1/avatar.jpg")
        service = ProfileService(profiles, StorageProviderStub())

        profile = await service.get_profile("u1")

        assert profile is not None
        assert profile.avatar_url == "https://storage.example.com/public/avatars/u1/avatar.jpg"

    async def test_absolute_avatar_kept(self) -> None:
        profiles = ProfileRepositoryStub()
        profiles.profiles["u1"] = Profile(user_id="u1", username="chef", avatar_url="https://img/a.jpg")
        service = ProfileService(profiles, StorageProviderStub())

        profile = await service.get_profile("u1")

        assert profile is not None and profile.avatar_url == "https://img/a.jpg"

    async def test_missing_profile(self) -> None:
        service = ProfileService(ProfileRepositoryStub())
        assert await service.get_profile("ghost") is None

    async def test_grid_hides_removed(self) -> None:
        profiles = ProfileRepositoryStub()
        profiles.grid = [
            Post(id="1", video_url="https://v/1.mp4"),
            Post(id="2", video_url="https://v/2.mp4", status=PostStatus.REMOVED),
        ]
        service = ProfileService(profiles)

        assert [p.id for p in await service.list_grid("u1")] == ["1"]

    async def test_update_username(self) -> None:
        profiles = ProfileRepositoryStub()
        service = ProfileService(profiles)

        profile = await service.update_username("u1", "NewChef")

        assert profile.username == "newchef"

    async def test_update_username_taken(self) -> None:
        profiles = ProfileRepositoryStub()
        profiles.taken_usernames.add("chef")
        service = ProfileService(profiles)

        with pytest.raises(UsernameTakenError):
            await service.update_username("u1", "Chef")
