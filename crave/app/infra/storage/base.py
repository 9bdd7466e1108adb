# crave/app/infra/storage/base.py
"""
Abstract base class for storage providers.
Videos are uploaded to a private bucket and moved to a public bucket once approved.
"""
from __future__ import annotations

import re
import secrets
import time
from abc import ABC, abstractmethod

from crave.app.domain.models import ABSOLUTE_URL_PREFIX

_UNSAFE_EXTENSION = re.compile(r"[^a-z0-9]")


def is_absolute_locator(locator: str) -> bool:
    """A locator starting with `http` is already playable; anything else is a storage key."""
    return locator.startswith(ABSOLUTE_URL_PREFIX)


class StorageProvider(ABC):
    """
    Abstract interface for object storage operations.

    Implementations:
    - SupabaseStorageProvider: Supabase Storage buckets
    - R2StorageProvider: Cloudflare R2 (S3-compatible)
    """

    @abstractmethod
    def upload(
        self,
        bucket: str,
        object_key: str,
        data: bytes,
        content_type: str,
    ) -> str:
        """
        Store bytes under a key.

        Args:
            bucket: Target bucket
            object_key: The key/path where the object will be stored
            data: Raw payload, passed through unmodified
            content_type: MIME type of the content (e.g., "video/mp4")

        Returns:
            The storage key of the uploaded object
        """
        pass

    @abstractmethod
    def download(self, bucket: str, object_key: str) -> bytes:
        pass

    @abstractmethod
    def get_public_url(self, bucket: str, object_key: str) -> str:
        """Public URL of an object in a public bucket."""
        pass

    @abstractmethod
    def generate_signed_get_url(
        self,
        bucket: str,
        object_key: str,
        expires_seconds: int = 3600,
    ) -> str:
        """
        Generate a time-limited URL for reading an object in a private bucket.

        Args:
            bucket: The private bucket
            object_key: The key/path of the object
            expires_seconds: URL validity in seconds

        Returns:
            The signed URL
        """
        pass

    @abstractmethod
    def delete_objects(self, bucket: str, object_keys: list[str]) -> bool:
        pass

    def resolve_video_url(
        self,
        locator: str,
        private_bucket: str,
        expires_seconds: int = 3600,
    ) -> str:
        """Turn a post's video locator into a playable URL."""
        if is_absolute_locator(locator):
            return locator
        return self.generate_signed_get_url(private_bucket, locator, expires_seconds)

    def generate_object_key(self, user_id: str, filename: str) -> str:
        """
        Generate the key for a freshly uploaded video.

        Format: {user_id}/{unix_millis}_{random}.{extension}
        """
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "mp4"
        extension = _UNSAFE_EXTENSION.sub("", extension) or "mp4"
        timestamp = int(time.time() * 1000)
        return f"{user_id}/{timestamp}_{secrets.token_hex(4)}.{extension}"
