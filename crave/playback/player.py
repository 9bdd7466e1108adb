# crave/playback/player.py
"""
VideoItemPlayer: one feed item bound to one playback engine.

The player owns no playback rules of its own. It turns signal, lifecycle,
engine and timer callbacks into events for `player_state.reduce` and carries
out the effects that come back.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Optional, Protocol

from starlette.concurrency import run_in_threadpool

from crave.app.domain.errors import CraveError, PlaybackError
from crave.app.domain.models import Post, Profile, Restaurant
from crave.app.infra.db.base import ProfileRepository
from crave.app.infra.storage.base import StorageProvider, is_absolute_locator
from crave.playback.active_post import ActivePostSignal
from crave.playback.lifecycle import AppLifecycle
from crave.playback.player_state import (
    DEFAULT_MAX_RECOVERY_ATTEMPTS,
    Effect,
    EventKind,
    Phase,
    PlayerEvent,
    PlayerState,
    reduce,
)
from crave.services.interactions import PostInteractions, ToggleState
from crave.services.links import DEFAULT_SHARE_BASE_URL, share_message

logger = logging.getLogger(__name__)

DEFAULT_LOAD_TIMEOUT_SECONDS = 10.0
DEFAULT_RECOVERY_DELAY_SECONDS = 2.0


class PlaybackEngine(Protocol):
    """
    Native video surface. Calls must be safe to repeat.

    Failures are raised as PlaybackError; readiness and asynchronous errors
    are reported back through `VideoItemPlayer.on_ready` / `on_error`.
    """

    def load(self, url: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def unload(self) -> None: ...


class VideoItemPlayer:
    def __init__(
        self,
        post: Post,
        engine: PlaybackEngine,
        signal: ActivePostSignal,
        lifecycle: AppLifecycle,
        storage: Optional[StorageProvider] = None,
        interactions: Optional[PostInteractions] = None,
        profiles: Optional[ProfileRepository] = None,
        private_bucket: str = "videos",
        signed_url_ttl: int = 3600,
        load_timeout: float = DEFAULT_LOAD_TIMEOUT_SECONDS,
        recovery_delay: float = DEFAULT_RECOVERY_DELAY_SECONDS,
        max_recovery_attempts: int = DEFAULT_MAX_RECOVERY_ATTEMPTS,
        play_allowed: bool = True,
        share_base_url: str = DEFAULT_SHARE_BASE_URL,
    ):
        self.post = post
        self.engine = engine
        self.signal = signal
        self.lifecycle = lifecycle
        self.storage = storage
        self.interactions = interactions
        self.profiles = profiles
        self.private_bucket = private_bucket
        self.signed_url_ttl = signed_url_ttl
        self.load_timeout = load_timeout
        self.recovery_delay = recovery_delay
        self.share_base_url = share_base_url

        self.state = PlayerState(
            is_active=signal.get_active() == post.id,
            play_allowed=play_allowed,
            foreground=lifecycle.foreground,
            max_recovery_attempts=max_recovery_attempts,
        )
        self.video_url: Optional[str] = None
        self.owner: Optional[Profile] = None
        self.restaurant: Optional[Restaurant] = None
        self.mounted = False
        self._disposed = False

        self._events: deque[PlayerEvent] = deque()
        self._draining = False
        self._load_timer: Optional[asyncio.TimerHandle] = None
        self._recovery_timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    async def mount(self) -> None:
        """Start loading the video and fetch the decorative owner/restaurant rows."""
        if self.mounted or self._disposed:
            return
        self.mounted = True
        self._unsubscribers = [
            self.signal.subscribe(self._on_active_changed),
            self.lifecycle.subscribe(self._on_app_state),
        ]
        self.dispatch(EventKind.MOUNTED)
        await self._load()
        if self.mounted:
            await self._side_load()

    def unmount(self) -> None:
        """Release the engine. A player is single-use; a later mount() is ignored."""
        self._disposed = True
        if not self.mounted:
            return
        self.dispatch(EventKind.UNMOUNT)
        self.mounted = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._cancel_load_timer()
        if self._recovery_timer is not None:
            self._recovery_timer.cancel()
            self._recovery_timer = None
        self._call_engine(self.engine.unload, "unload", report=False)

    # Engine callbacks

    def on_ready(self) -> None:
        self.dispatch(EventKind.READY)

    def on_error(self, reason: str = "") -> None:
        logger.warning("Player error for post %s: %s", self.post.id, reason or "unknown")
        self.dispatch(EventKind.PLAYER_ERROR)

    # Inputs

    def set_play_allowed(self, allowed: bool) -> None:
        self.dispatch(EventKind.PLAY_ALLOWED, allowed)

    def tap(self) -> None:
        """Pause or resume on a single tap."""
        self.dispatch(EventKind.TAP)

    async def double_tap(self) -> Optional[ToggleState]:
        if self.interactions is None:
            return None
        return await self.interactions.set_liked()

    async def toggle_like(self) -> Optional[ToggleState]:
        if self.interactions is None:
            return None
        return await self.interactions.toggle_like()

    async def toggle_save(self) -> Optional[ToggleState]:
        if self.interactions is None:
            return None
        return await self.interactions.toggle_save()

    def share(self) -> str:
        return share_message(self.post, self.share_base_url)

    def dispatch(self, kind: EventKind, value: bool = True) -> None:
        """Queue an event; effects of one event run before the next event is reduced."""
        self._events.append(PlayerEvent(kind, value))
        if self._draining:
            return
        self._draining = True
        try:
            while self._events:
                event = self._events.popleft()
                previous = self.state.phase
                self.state, effects = reduce(self.state, event)
                if self.state.phase != previous:
                    logger.debug(
                        "Post %s: %s -> %s on %s",
                        self.post.id,
                        previous.value,
                        self.state.phase.value,
                        event.kind.value,
                    )
                for effect in effects:
                    self._run_effect(effect)
        finally:
            self._draining = False

    def _run_effect(self, effect: Effect) -> None:
        if effect == Effect.PLAY:
            self._call_engine(self.engine.play, "play")
        elif effect == Effect.PAUSE:
            self._call_engine(self.engine.pause, "pause")
        elif effect == Effect.START_LOAD_TIMER:
            self._cancel_load_timer()
            loop = asyncio.get_running_loop()
            self._load_timer = loop.call_later(self.load_timeout, self._on_load_timeout)
        elif effect == Effect.CANCEL_LOAD_TIMER:
            self._cancel_load_timer()
        elif effect == Effect.SCHEDULE_RECOVERY:
            logger.info(
                "Scheduling recovery %d/%d for post %s",
                self.state.recovery_attempts,
                self.state.max_recovery_attempts,
                self.post.id,
            )
            loop = asyncio.get_running_loop()
            self._recovery_timer = loop.call_later(self.recovery_delay, self._on_recovery_due)
        elif effect == Effect.RELOAD:
            task = asyncio.get_running_loop().create_task(self._load())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _call_engine(self, call: Callable[[], None], name: str, report: bool = True) -> None:
        try:
            call()
        except PlaybackError as error:
            logger.warning("Engine %s failed for post %s: %s", name, self.post.id, error)
            if report:
                self.dispatch(EventKind.PLAY_CALL_FAILED)

    async def _load(self) -> None:
        try:
            url = await self._resolve_url()
        except CraveError as error:
            logger.warning("Could not resolve video for post %s: %s", self.post.id, error)
            if self.mounted:
                self.dispatch(EventKind.PLAYER_ERROR)
            return

        if not self.mounted:
            return
        try:
            self.engine.load(url)
        except PlaybackError as error:
            logger.warning("Engine load failed for post %s: %s", self.post.id, error)
            self.dispatch(EventKind.PLAYER_ERROR)

    async def _resolve_url(self) -> str:
        if self.video_url is not None:
            return self.video_url
        locator = self.post.video_url
        if is_absolute_locator(locator):
            self.video_url = locator
        elif self.storage is None:
            raise PlaybackError(self.post.id, "no storage provider to sign a private video")
        else:
            self.video_url = await run_in_threadpool(
                self.storage.resolve_video_url,
                locator,
                self.private_bucket,
                self.signed_url_ttl,
            )
        return self.video_url

    async def _side_load(self) -> None:
        if self.interactions is not None:
            await self.interactions.probe()

        if self.profiles is None:
            return
        if self.post.user_id:
            try:
                owner = await run_in_threadpool(self.profiles.get_profile, self.post.user_id)
                if self.mounted:
                    self.owner = owner
            except CraveError as error:
                logger.warning("Failed to load owner of post %s: %s", self.post.id, error)
        if self.post.restaurant_id:
            try:
                restaurant = await run_in_threadpool(self.profiles.get_restaurant, self.post.restaurant_id)
                if self.mounted:
                    self.restaurant = restaurant
            except CraveError as error:
                logger.warning("Failed to load restaurant of post %s: %s", self.post.id, error)

    def _on_active_changed(self, post_id: Optional[str]) -> None:
        self.dispatch(EventKind.ACTIVE_CHANGED, post_id == self.post.id)

    def _on_app_state(self, foreground: bool) -> None:
        self.dispatch(EventKind.APP_STATE, foreground)

    def _on_load_timeout(self) -> None:
        self._load_timer = None
        logger.warning("Video load timed out for post %s after %.0fs", self.post.id, self.load_timeout)
        self.dispatch(EventKind.LOAD_TIMEOUT)

    def _on_recovery_due(self) -> None:
        self._recovery_timer = None
        self.dispatch(EventKind.RECOVERY_DUE)

    def _cancel_load_timer(self) -> None:
        if self._load_timer is not None:
            self._load_timer.cancel()
            self._load_timer = None
