from __future__ import annotations

import io
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from crave.app.domain.errors import StorageError, UploadError
from crave.app.infra.storage.base import is_absolute_locator
from crave.app.infra.storage.r2_provider import R2StorageProvider
from crave.app.infra.storage.supabase_provider import SupabaseStorageProvider
from tests.unit.stubs import StorageProviderStub


def client_error(code: str, operation: str = "GetObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "failed"}}, operation)


class TestLocators:
    def test_absolute(self) -> None:
        assert is_absolute_locator("https://cdn.example.com/a.mp4")
        assert is_absolute_locator("http://localhost/a.mp4")
        assert not is_absolute_locator("user-1/a.mp4")

    def test_resolve_absolute_skips_signing(self) -> None:
        storage = StorageProviderStub()
        assert storage.resolve_video_url("https://cdn.example.com/a.mp4", "videos") == "https://cdn.example.com/a.mp4"
        assert storage.signed == []

    def test_resolve_key_is_signed(self) -> None:
        storage = StorageProviderStub()
        url = storage.resolve_video_url("user-1/a.mp4", "videos")
        assert url == "https://storage.example.com/signed/videos/user-1/a.mp4?token=abc"

    def test_object_key_format(self) -> None:
        key = StorageProviderStub().generate_object_key("user-1", "clip.MP4")
        prefix, name = key.split("/")
        assert prefix == "user-1"
        assert name.endswith(".mp4")

    def test_object_key_without_extension(self) -> None:
        assert StorageProviderStub().generate_object_key("u", "clip").endswith(".mp4")


class TestR2StorageProvider:
    def build(self) -> tuple[R2StorageProvider, MagicMock]:
        client = MagicMock()
        provider = R2StorageProvider(account_id="acct", public_url="https://media.example.com/", client=client)
        return provider, client

    def test_upload(self) -> None:
        provider, client = self.build()

        key = provider.upload("videos", "u/a.mp4", b"data", "video/mp4")

        assert key == "u/a.mp4"
        client.put_object.assert_called_once_with(
            Bucket="videos", Key="u/a.mp4", Body=b"data", ContentType="video/mp4"
        )

    def test_upload_failure(self) -> None:
        provider, client = self.build()
        client.put_object.side_effect = client_error("500", "PutObject")

        with pytest.raises(UploadError):
            provider.upload("videos", "u/a.mp4", b"data", "video/mp4")

    def test_download(self) -> None:
        provider, client = self.build()
        client.get_object.return_value = {"Body": io.BytesIO(b"video")}

        assert provider.download("videos", "u/a.mp4") == b"video"

    def test_download_missing(self) -> None:
        provider, client = self.build()
        client.get_object.side_effect = client_error("NoSuchKey")

        with pytest.raises(StorageError, match="not found"):
            provider.download("videos", "u/a.mp4")

    def test_public_url(self) -> None:
        provider, _ = self.build()
        assert provider.get_public_url("posts-videos", "a.mp4") == "https://media.example.com/posts-videos/a.mp4"

    def test_signed_url(self) -> None:
        provider, client = self.build()
        client.generate_presigned_url.return_value = "https://signed"

        assert provider.generate_signed_get_url("videos", "u/a.mp4", 60) == "https://signed"
        client.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "videos", "Key": "u/a.mp4"},
            ExpiresIn=60,
        )

    def test_delete_failure_returns_false(self) -> None:
        provider, client = self.build()
        client.delete_objects.side_effect = client_error("500", "DeleteObjects")

        assert provider.delete_objects("videos", ["u/a.mp4"]) is False


class TestSupabaseStorageProvider:
    def build(self) -> tuple[SupabaseStorageProvider, MagicMock]:
        client = MagicMock()
        return SupabaseStorageProvider(client), client.storage.from_.return_value

    def test_upload(self) -> None:
        provider, bucket = self.build()

        assert provider.upload("videos", "u/a.mp4", b"data", "video/mp4") == "u/a.mp4"
        bucket.upload.assert_called_once_with(
            "u/a.mp4", b"data", file_options={"content-type": "video/mp4", "upsert": "false"}
        )

    def test_upload_failure(self) -> None:
        provider, bucket = self.build()
        bucket.upload.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(UploadError):
            provider.upload("videos", "u/a.mp4", b"data", "video/mp4")

    def test_signed_url_key_variants(self) -> None:
        provider, bucket = self.build()
        bucket.create_signed_url.return_value = {"signedUrl": "https://signed"}

        assert provider.generate_signed_get_url("videos", "u/a.mp4") == "https://signed"
        bucket.create_signed_url.assert_called_once_with("u/a.mp4", 3600)

    def test_signed_url_missing(self) -> None:
        provider, bucket = self.build()
        bucket.create_signed_url.return_value = {}

        with pytest.raises(StorageError):
            provider.generate_signed_get_url("videos", "u/a.mp4")

    def test_delete_failure_returns_false(self) -> None:
        provider, bucket = self.build()
        bucket.remove.side_effect = httpx.ReadTimeout("timed out")

        assert provider.delete_objects("videos", ["u/a.mp4"]) is False
