# crave/playback/factory.py
"""
Builds the players a FeedListController mounts, configured from settings.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from crave.app.config import Settings, settings
from crave.app.domain.models import Post
from crave.app.infra.db.base import InteractionRepository, ProfileRepository
from crave.app.infra.storage.base import StorageProvider
from crave.playback.active_post import ActivePostSignal
from crave.playback.lifecycle import AppLifecycle
from crave.playback.player import PlaybackEngine, VideoItemPlayer
from crave.services.interactions import PostInteractions

logger = logging.getLogger(__name__)

EngineFactory = Callable[[Post], PlaybackEngine]


class VideoPlayerFactory:
    """
    Callable handed to FeedListController as its `player_factory`.

    Each call creates a fresh engine and player for one post. Signed URL
    lifetime, load timeout and recovery policy come from `Settings`.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        signal: ActivePostSignal,
        lifecycle: AppLifecycle,
        storage: Optional[StorageProvider] = None,
        interactions: Optional[InteractionRepository] = None,
        profiles: Optional[ProfileRepository] = None,
        viewer_id: Optional[str] = None,
        config: Settings = settings,
    ):
        self.engine_factory = engine_factory
        self.signal = signal
        self.lifecycle = lifecycle
        self.storage = storage
        self.interactions = interactions
        self.profiles = profiles
        self.viewer_id = viewer_id
        self.config = config

    def __call__(self, post: Post) -> VideoItemPlayer:
        interactions = None
        if self.interactions is not None and self.viewer_id:
            interactions = PostInteractions(post.id, self.viewer_id, self.interactions)

        logger.debug("Creating player for post %s", post.id)
        return VideoItemPlayer(
            post,
            self.engine_factory(post),
            self.signal,
            self.lifecycle,
            storage=self.storage,
            interactions=interactions,
            profiles=self.profiles,
            private_bucket=self.config.PRIVATE_VIDEO_BUCKET,
            signed_url_ttl=self.config.SIGNED_URL_TTL_SECONDS,
            load_timeout=self.config.VIDEO_LOAD_TIMEOUT_SECONDS,
            recovery_delay=self.config.PLAYBACK_RECOVERY_DELAY_SECONDS,
            max_recovery_attempts=self.config.PLAYBACK_MAX_RECOVERY_ATTEMPTS,
            share_base_url=self.config.SHARE_BASE_URL,
        )
