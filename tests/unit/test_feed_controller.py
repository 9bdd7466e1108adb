from __future__ import annotations

import asyncio
from typing import Optional

from crave.app.domain.models import FeedContext, Post, PostStatus
from crave.playback.active_post import ActivePostSignal
from crave.playback.feed_controller import (
    DETAIL_END_THRESHOLD,
    END_OF_FEED,
    FeedListController,
    FeedStatus,
    ViewToken,
)
from crave.playback.lifecycle import AppLifecycle
from crave.playback.player import VideoItemPlayer
from crave.services.feed_source import FeedSource
from tests.unit.stubs import PlaybackEngineStub, PostRepositoryStub, make_post


class PlayerFactoryStub:
    def __init__(self, signal: ActivePostSignal, lifecycle: Optional[AppLifecycle] = None) -> None:
        self.signal = signal
        self.lifecycle = lifecycle or AppLifecycle()
        self.engines: dict[str, PlaybackEngineStub] = {}
        self.players: dict[str, VideoItemPlayer] = {}

    def __call__(self, post: Post) -> VideoItemPlayer:
        engine = PlaybackEngineStub()
        player = VideoItemPlayer(post, engine, self.signal, self.lifecycle, load_timeout=60)
        self.engines[post.id] = engine
        self.players[post.id] = player
        return player


def ranked_repo(count: int) -> PostRepositoryStub:
    repo = PostRepositoryStub()
    repo.ranked = [make_post(str(i), minutes=i) for i in range(count)]
    for post in repo.ranked:
        repo.posts[post.id] = post
    return repo


def build(
    repo: PostRepositoryStub,
    context: FeedContext = FeedContext.DEFAULT,
    with_players: bool = False,
    **source_kwargs,
) -> tuple[FeedListController, ActivePostSignal, Optional[PlayerFactoryStub]]:
    signal = ActivePostSignal()
    factory = PlayerFactoryStub(signal) if with_players else None
    source = FeedSource(repo, context, viewer_id="viewer", **source_kwargs)
    return FeedListController(source, signal, player_factory=factory), signal, factory


class TestLoad:
    async def test_load_sets_first_post_active(self) -> None:
        controller, signal, _ = build(ranked_repo(15))

        await controller.load()

        assert controller.status == FeedStatus.READY
        assert len(controller.items) == 10
        assert signal.get_active() == "0"
        assert controller.initial_index == 0

    async def test_zero_posts_never_paginates(self) -> None:
        repo = ranked_repo(0)
        controller, signal, _ = build(repo)

        await controller.load()
        added = await controller.on_end_reached()

        assert controller.is_empty
        assert added == []
        assert controller.pagination_enabled is False
        assert len(repo.ranked_calls) == 1
        assert signal.get_active() is None

    async def test_profile_feed_starts_at_clicked_post(self) -> None:
        repo = PostRepositoryStub([make_post(str(i), minutes=i) for i in range(5)])
        controller, signal, _ = build(repo, FeedContext.PROFILE, context_id="owner-1", initial_post_id="2")

        await controller.load()

        assert [p.id for p in controller.items] == ["4", "3", "2", "1", "0"]
        assert controller.initial_index == 2
        assert signal.get_active() == "2"

    async def test_removed_clicked_post_requests_exit(self) -> None:
        repo = ranked_repo(5)
        repo.posts["gone"] = make_post("gone", PostStatus.REMOVED)
        controller, _, _ = build(repo, initial_post_id="gone")

        await controller.load()

        assert controller.exit_requested is True
        assert controller.items == []

    async def test_initial_error_disables_pagination(self) -> None:
        repo = ranked_repo(5)
        repo.fail_ranked = True
        controller, _, _ = build(repo)

        await controller.load()

        assert controller.is_empty
        assert controller.pagination_enabled is False


class TestViewability:
    async def test_first_token_over_threshold_wins(self) -> None:
        controller, signal, _ = build(ranked_repo(10))
        await controller.load()

        await controller.on_viewable_items_changed([
            ViewToken("1", 1, 30),
            ViewToken("2", 2, 60),
            ViewToken("3", 3, 90),
        ])

        assert signal.get_active() == "2"

    async def test_nothing_visible_enough_keeps_current(self) -> None:
        controller, signal, _ = build(ranked_repo(10))
        await controller.load()

        await controller.on_viewable_items_changed([ViewToken("4", 4, 49.9)])

        assert signal.get_active() == "0"

    async def test_exactly_half_visible_counts(self) -> None:
        controller, signal, _ = build(ranked_repo(10))
        await controller.load()

        await controller.on_viewable_items_changed([ViewToken("4", 4, 50)])

        assert signal.get_active() == "4"


class TestPagination:
    async def test_end_reached_appends_next_page(self) -> None:
        repo = ranked_repo(25)
        controller, _, _ = build(repo)
        await controller.load()

        added = await controller.on_end_reached()

        assert [p.id for p in added] == [str(i) for i in range(10, 20)]
        assert len(controller.items) == 20
        assert controller.offset == 20

    async def test_empty_page_ends_feed(self) -> None:
        repo = ranked_repo(10)
        controller, _, _ = build(repo)
        await controller.load()

        await controller.on_end_reached()
        await controller.on_end_reached()

        assert controller.end_reached is True
        assert controller.rows()[-1] is END_OF_FEED
        assert len(repo.ranked_calls) == 2

    async def test_error_ends_feed(self) -> None:
        repo = ranked_repo(25)
        controller, _, _ = build(repo)
        await controller.load()
        repo.fail_ranked = True

        await controller.on_end_reached()
        repo.fail_ranked = False
        await controller.on_end_reached()

        assert controller.pagination_enabled is False
        assert len(controller.items) == 10
        assert len(repo.ranked_calls) == 2

    async def test_profile_feed_reaches_end_immediately(self) -> None:
        repo = PostRepositoryStub([make_post("a"), make_post("b")])
        controller, _, _ = build(repo, FeedContext.PROFILE, context_id="owner-1")
        await controller.load()

        added = await controller.on_end_reached()

        assert added == []
        assert controller.rows()[-1] is END_OF_FEED

    async def test_concurrent_end_reached_fetches_once(self) -> None:
        repo = ranked_repo(25)
        controller, _, _ = build(repo)
        await controller.load()

        await asyncio.gather(controller.on_end_reached(), controller.on_end_reached())

        assert len(repo.ranked_calls) == 2
        assert len(controller.items) == 20

    async def test_scroll_threshold_main_feed(self) -> None:
        repo = ranked_repo(25)
        controller, _, _ = build(repo)
        await controller.load()

        assert await controller.on_scroll(offset=0, content_length=10_000, viewport_length=800) == []
        added = await controller.on_scroll(offset=8500, content_length=10_000, viewport_length=800)

        assert len(added) == 10

    async def test_scroll_threshold_detail_screen(self) -> None:
        repo = ranked_repo(25)
        signal = ActivePostSignal()
        source = FeedSource(repo, viewer_id="viewer")
        controller = FeedListController(source, signal, end_reached_threshold=DETAIL_END_THRESHOLD)
        await controller.load()

        # 500 px left: enough for the main feed threshold, not for the detail screen
        assert await controller.on_scroll(offset=8700, content_length=10_000, viewport_length=800) == []
        added = await controller.on_scroll(offset=8900, content_length=10_000, viewport_length=800)

        assert len(added) == 10

    async def test_rows_without_end_marker(self) -> None:
        controller, _, _ = build(ranked_repo(25))
        await controller.load()
        assert END_OF_FEED not in controller.rows()


class TestRewatch:
    async def test_rewatch_reloads_with_new_seed(self) -> None:
        repo = ranked_repo(10)
        controller, signal, _ = build(repo, seed=0.5)
        await controller.load()
        await controller.on_end_reached()
        old_seed = controller.source.seed

        await controller.rewatch()

        assert controller.end_reached is False
        assert controller.pagination_enabled is True
        assert len(controller.items) == 10
        assert controller.source.seed != old_seed
        assert signal.get_active() == "0"


class TestNavigation:
    async def test_fast_right_swipe_opens_recipe(self) -> None:
        controller, _, _ = build(ranked_repo(5))
        await controller.load()

        intent = controller.on_swipe(650)

        assert intent is not None
        assert intent.route == "recipe"
        assert intent.post_id == "0"

    async def test_slow_swipe_is_ignored(self) -> None:
        controller, _, _ = build(ranked_repo(5))
        await controller.load()
        assert controller.on_swipe(500) is None
        assert controller.on_swipe(-900) is None

    async def test_swipe_only_on_default_feed(self) -> None:
        repo = PostRepositoryStub([make_post("a")])
        controller, _, _ = build(repo, FeedContext.PROFILE, context_id="owner-1")
        await controller.load()
        assert controller.on_swipe(900) is None

    def test_open_post_refuses_removed(self) -> None:
        controller, _, _ = build(ranked_repo(0), FeedContext.PROFILE, context_id="owner-1")
        assert controller.open_post(make_post("x", PostStatus.REMOVED)) is None

        intent = controller.open_post(make_post("y"))
        assert intent is not None
        assert intent.context == FeedContext.PROFILE
        assert intent.context_id == "owner-1"


class TestPlayers:
    async def test_players_mounted_around_active_item(self) -> None:
        controller, _, factory = build(ranked_repo(10), with_players=True)
        await controller.load()

        assert set(controller.players) == {"0", "1"}

        await controller.on_viewable_items_changed([ViewToken("5", 5, 100)])

        assert set(controller.players) == {"4", "5", "6"}
        assert factory.engines["0"].count("unload") == 1

    async def test_only_active_player_plays(self) -> None:
        controller, _, factory = build(ranked_repo(10), with_players=True)
        await controller.load()
        for player in controller.players.values():
            player.on_ready()

        await controller.on_viewable_items_changed([ViewToken("1", 1, 80)])
        for player in controller.players.values():
            player.on_ready()

        playing = [post_id for post_id, player in controller.players.items() if player.is_playing]
        assert playing == ["1"]

    async def test_focus_gates_playback(self) -> None:
        controller, _, _ = build(ranked_repo(3), with_players=True)
        await controller.load()
        active = controller.players["0"]
        active.on_ready()
        assert active.is_playing

        controller.set_focused(False)
        assert not active.is_playing

        controller.set_focused(True)
        assert active.is_playing

    async def test_overlapping_visibility_changes_leave_no_stray_players(self) -> None:
        controller, signal, factory = build(ranked_repo(10), with_players=True)
        await controller.load()

        await asyncio.gather(
            controller.on_viewable_items_changed([ViewToken("5", 5, 100)]),
            controller.on_viewable_items_changed([ViewToken("8", 8, 100)]),
        )

        mounted = sorted(post_id for post_id, player in factory.players.items() if player.mounted)
        assert mounted == ["7", "8", "9"]
        assert set(controller.players) == {"7", "8", "9"}
        assert all(factory.engines[post_id].calls == [] for post_id in ("4", "5", "6"))

        factory.players["8"].on_ready()
        signal.set_active("5")
        signal.set_active("8")
        playing = [post_id for post_id, player in factory.players.items() if player.is_playing]
        assert playing == ["8"]

    async def test_unmount_releases_everything(self) -> None:
        controller, signal, factory = build(ranked_repo(5), with_players=True)
        await controller.load()

        controller.unmount()

        assert controller.status == FeedStatus.UNMOUNTED
        assert controller.players == {}
        assert signal.get_active() is None
        assert all(engine.count("unload") == 1 for engine in factory.engines.values())
        assert await controller.on_end_reached() == []
