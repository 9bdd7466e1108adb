from __future__ import annotations

from typing import Literal

from pydantic import AnyUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: AnyUrl = Field(default="http://localhost:54321", validate_default=True)
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    APP_ENV: str = "local"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:8081", "http://localhost:19006"],
    )

    # Object storage
    STORAGE_BACKEND: Literal["supabase", "r2"] = "supabase"
    PRIVATE_VIDEO_BUCKET: str = "videos"
    PUBLIC_VIDEO_BUCKET: str = "posts-videos"
    AVATAR_BUCKET: str = "avatars"
    SIGNED_URL_TTL_SECONDS: int = 3600
    R2_ACCOUNT_ID: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_PUBLIC_URL: str = ""

    # Feed
    FEED_PAGE_SIZE: int = 10
    CONTEXT_FEED_LIMIT: int = 100
    FOLLOW_LIST_PAGE_SIZE: int = 20

    # Playback
    VIDEO_LOAD_TIMEOUT_SECONDS: float = 10.0
    PLAYBACK_RECOVERY_DELAY_SECONDS: float = 2.0
    PLAYBACK_MAX_RECOVERY_ATTEMPTS: int = 3

    SHARE_BASE_URL: str = "https://crave.app"


settings = Settings()
