"""Tests for local media lookups and render publishing."""

import pytest

from storyreel.config import Settings
from storyreel.services.media_storage import MediaStorage, build_media_storage
from storyreel.services.s3_uploader import S3Uploader
from storyreel.utils.exceptions import S3UploadError


class FakeUploader:
    def __init__(self):
        self.uploaded = []
        self.deleted = []

    async def upload_file(self, local_path, s3_key):
        self.uploaded.append((local_path, s3_key))
        return f"https://bucket.test/{s3_key}"

    async def delete_file(self, s3_key):
        self.deleted.append(s3_key)
        return True


def settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestResolveLocal:

    def test_existing_upload(self, media_storage, storage_root):
        target = storage_root / "uploads" / "voice.mp3"
        target.write_bytes(b"id3")
        assert media_storage.resolve_local("/uploads/voice.mp3") == target.resolve()

    def test_missing_file(self, media_storage):
        assert media_storage.resolve_local("/uploads/nothing.mp3") is None
        assert media_storage.resolve_local("") is None

    def test_escape_is_rejected(self, media_storage, tmp_path):
        (tmp_path / "secret.txt").write_text("nope")
        assert media_storage.resolve_local("/../secret.txt") is None

    @pytest.mark.asyncio
    async def test_read_bytes(self, media_storage, storage_root):
        (storage_root / "uploads" / "a.png").write_bytes(b"png")
        assert await media_storage.read_bytes("/uploads/a.png") == b"png"
        assert await media_storage.read_bytes("/uploads/b.png") is None


class TestPublish:

    @pytest.mark.asyncio
    async def test_local_publish_moves_file(self, media_storage, tmp_path):
        source = tmp_path / "output.mp4"
        source.write_bytes(b"\0" * 1500)

        published = await media_storage.publish(source, "video_x.mp4")

        assert published.url == "/output/video_x.mp4"
        assert published.size == 1500
        assert published.path.exists()
        assert not source.exists()

    @pytest.mark.asyncio
    async def test_s3_publish_and_remove(self, tmp_path, storage_root):
        uploader = FakeUploader()
        storage = MediaStorage(str(storage_root), str(tmp_path / "out"), uploader=uploader)
        source = tmp_path / "output.mp4"
        source.write_bytes(b"\0" * 10)

        published = await storage.publish(source, "video_y.mp4")
        assert published.url == "https://bucket.test/renders/video_y.mp4"
        assert uploader.uploaded[0][1] == "renders/video_y.mp4"

        assert await storage.remove_published(published.url) is True
        assert uploader.deleted == ["renders/video_y.mp4"]
        assert not published.path.exists()

    @pytest.mark.asyncio
    async def test_remove_without_url(self, media_storage):
        assert await media_storage.remove_published(None) is False


class TestS3Settings:

    def test_unconfigured_upload_falls_back_to_local(self, tmp_path):
        storage = build_media_storage(settings(
            upload_to_s3=True,
            aws_access_key_id="",
            output_dir=str(tmp_path / "out"),
            storage_root=str(tmp_path),
        ))
        assert storage.uploader is None

    def test_configured_uploader(self):
        uploader = S3Uploader(settings(
            aws_access_key_id="key",
            aws_secret_access_key="secret",
            s3_bucket_name="renders-bucket",
            aws_region="eu-west-1",
        ))
        assert uploader.configured
        assert uploader.public_url("renders/v.mp4") == "https://renders-bucket.s3.eu-west-1.amazonaws.com/renders/v.mp4"

    @pytest.mark.asyncio
    async def test_upload_without_credentials(self, tmp_path):
        uploader = S3Uploader(settings(aws_access_key_id="", aws_secret_access_key="", s3_bucket_name=""))
        with pytest.raises(S3UploadError):
            await uploader.upload_file(str(tmp_path / "v.mp4"), "renders/v.mp4")
