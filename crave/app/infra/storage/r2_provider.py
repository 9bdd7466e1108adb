# crave/app/infra/storage/r2_provider.py
"""
Cloudflare R2 storage provider implementation.
R2 is S3-compatible, so we use boto3 with custom endpoint.
"""
from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from crave.app.config import settings
from crave.app.domain.errors import StorageError, UploadError
from crave.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)


class R2StorageProvider(StorageProvider):
    """
    Cloudflare R2 storage provider using boto3 (S3-compatible).

    Each logical bucket (private videos, public videos, avatars) maps to an R2
    bucket of the same name. Public URLs are served from R2_PUBLIC_URL.
    """

    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        public_url: Optional[str] = None,
        client=None,
    ):
        self.account_id = account_id or settings.R2_ACCOUNT_ID
        self.public_url = (public_url or settings.R2_PUBLIC_URL).rstrip("/")
        access_key_id = access_key_id or settings.R2_ACCESS_KEY_ID
        secret_access_key = secret_access_key or settings.R2_SECRET_ACCESS_KEY

        if client is None and not all([self.account_id, access_key_id, secret_access_key]):
            raise StorageError(
                "Missing R2 configuration. Required: R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY"
            )

        self.endpoint_url = f"https://{self.account_id}.r2.cloudflarestorage.com"
        self._client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            ),
            region_name="auto",  # R2 uses 'auto' as region
        )

        logger.info("R2StorageProvider initialized: endpoint=%s", self.endpoint_url)

    def upload(
        self,
        bucket: str,
        object_key: str,
        data: bytes,
        content_type: str,
    ) -> str:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error("Failed to upload to R2: %s", e)
            raise UploadError(object_key, str(e)) from e

        logger.info("Uploaded to R2: bucket=%s, key=%s, size=%d bytes", bucket, object_key, len(data))
        return object_key

    def download(self, bucket: str, object_key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            return response["Body"].read()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "404" or error_code == "NoSuchKey":
                raise StorageError(f"Object not found: {object_key}") from e
            logger.error("Failed to download from R2: %s", e)
            raise StorageError(f"Failed to download file: {e}") from e

    def get_public_url(self, bucket: str, object_key: str) -> str:
        if not self.public_url:
            raise StorageError("R2_PUBLIC_URL is required for public objects")
        return f"{self.public_url}/{bucket}/{object_key}"

    def generate_signed_get_url(
        self,
        bucket: str,
        object_key: str,
        expires_seconds: int = 3600,
    ) -> str:
        """Generate a pre-signed GET URL for reading from R2."""
        try:
            url = self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": bucket, "Key": object_key},
                ExpiresIn=expires_seconds,
            )
        except ClientError as e:
            logger.error("Failed to generate signed GET URL: %s", e)
            raise StorageError(f"Failed to generate download URL: {e}") from e

        logger.debug("Generated signed GET URL for key=%s", object_key)
        return url

    def delete_objects(self, bucket: str, object_keys: list[str]) -> bool:
        try:
            self._client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in object_keys]},
            )
            logger.info("Deleted %d object(s) from R2 bucket %s", len(object_keys), bucket)
            return True
        except ClientError as e:
            logger.error("Failed to delete objects from R2: %s", e)
            return False
