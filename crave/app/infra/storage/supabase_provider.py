# crave/app/infra/storage/supabase_provider.py
"""
Supabase Storage provider.
Private buckets are read through signed URLs, public buckets through their public URL.
"""
from __future__ import annotations

import logging

import httpx
from storage3.exceptions import StorageApiError
from supabase import Client

from crave.app.domain.errors import StorageError, UploadError
from crave.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (StorageApiError, httpx.HTTPError)


class SupabaseStorageProvider(StorageProvider):
    def __init__(self, client: Client):
        self._client = client
        logger.info("SupabaseStorageProvider initialized")

    def upload(
        self,
        bucket: str,
        object_key: str,
        data: bytes,
        content_type: str,
    ) -> str:
        try:
            self._client.storage.from_(bucket).upload(
                object_key,
                data,
                file_options={"content-type": content_type, "upsert": "false"},
            )
        except _STORAGE_ERRORS as e:
            logger.error("Failed to upload to %s: %s", bucket, e)
            raise UploadError(object_key, str(e)) from e

        logger.info("Uploaded object: bucket=%s, key=%s, size=%d bytes", bucket, object_key, len(data))
        return object_key

    def download(self, bucket: str, object_key: str) -> bytes:
        try:
            return self._client.storage.from_(bucket).download(object_key)
        except _STORAGE_ERRORS as e:
            logger.error("Failed to download from %s: %s", bucket, e)
            raise StorageError(f"Failed to download {object_key}: {e}") from e

    def get_public_url(self, bucket: str, object_key: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(object_key)

    def generate_signed_get_url(
        self,
        bucket: str,
        object_key: str,
        expires_seconds: int = 3600,
    ) -> str:
        try:
            response = self._client.storage.from_(bucket).create_signed_url(object_key, expires_seconds)
        except _STORAGE_ERRORS as e:
            logger.error("Failed to generate signed URL: %s", e)
            raise StorageError(f"Failed to generate signed URL: {e}") from e

        url = response.get("signedURL") or response.get("signedUrl")
        if not url:
            raise StorageError(f"No signed URL returned for {object_key}")
        logger.debug("Generated signed URL for key=%s", object_key)
        return url

    def delete_objects(self, bucket: str, object_keys: list[str]) -> bool:
        try:
            self._client.storage.from_(bucket).remove(object_keys)
            logger.info("Deleted %d object(s) from %s", len(object_keys), bucket)
            return True
        except _STORAGE_ERRORS as e:
            logger.warning("Failed to delete from %s: %s", bucket, e)
            return False
