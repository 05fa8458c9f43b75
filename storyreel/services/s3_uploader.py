"""
S3 Uploader Service
Copies published renders to a bucket and removes them on job deletion.
"""

import asyncio
import mimetypes
import os
from functools import partial
from typing import Optional

from ..config import Settings, get_settings
from ..utils.exceptions import S3UploadError
from ..utils.logger import get_logger

logger = get_logger()

# boto3 switches to multipart above this size
MULTIPART_CHUNK_BYTES = 8 * 1024 * 1024


class S3Uploader:
    """Bucket access for finished renders; the boto3 client is built on first use."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client = None
        self._transfer_config = None

    @property
    def bucket(self) -> str:
        return self.settings.s3_bucket_name

    @property
    def configured(self) -> bool:
        s = self.settings
        return all((s.aws_access_key_id, s.aws_secret_access_key, s.s3_bucket_name))

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self.configured:
            raise S3UploadError("AWS credentials or bucket not configured", bucket=self.bucket)

        import boto3
        from boto3.s3.transfer import TransferConfig
        from botocore.config import Config

        self._client = boto3.client(
            "s3",
            aws_access_key_id=self.settings.aws_access_key_id,
            aws_secret_access_key=self.settings.aws_secret_access_key,
            region_name=self.settings.aws_region,
            config=Config(retries={"max_attempts": 3, "mode": "adaptive"}),
        )
        self._transfer_config = TransferConfig(
            multipart_threshold=MULTIPART_CHUNK_BYTES,
            multipart_chunksize=MULTIPART_CHUNK_BYTES,
            max_concurrency=4,
        )
        logger.info(f"S3 client ready for bucket {self.bucket} ({self.settings.aws_region})")
        return self._client

    def public_url(self, s3_key: str) -> str:
        return f"https://{self.bucket}.s3.{self.settings.aws_region}.amazonaws.com/{s3_key}"

    async def upload_file(self, local_path: str, s3_key: str) -> str:
        """Upload ``local_path`` under ``s3_key`` and return the object's public URL."""
        client = self._get_client()
        if not os.path.isfile(local_path):
            raise S3UploadError(f"File not found: {local_path}", bucket=self.bucket, key=s3_key)

        content_type = mimetypes.guess_type(local_path)[0] or "video/mp4"
        size_mb = os.path.getsize(local_path) / 1024 / 1024
        logger.info(f"Uploading {s3_key} to S3 ({size_mb:.1f} MB)")

        upload = partial(
            client.upload_file,
            local_path,
            self.bucket,
            s3_key,
            ExtraArgs={"ContentType": content_type},
            Config=self._transfer_config,
        )
        try:
            await asyncio.get_running_loop().run_in_executor(None, upload)
        except Exception as e:
            raise S3UploadError(f"S3 upload failed: {e}", bucket=self.bucket, key=s3_key) from e

        return self.public_url(s3_key)

    async def delete_file(self, s3_key: str) -> bool:
        """Remove ``s3_key`` from the bucket. Returns False when S3 rejects the call."""
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        delete = partial(client.delete_object, Bucket=self.bucket, Key=s3_key)
        try:
            await asyncio.get_running_loop().run_in_executor(None, delete)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 delete of {s3_key} failed: {e}")
            return False

        logger.info(f"Deleted s3://{self.bucket}/{s3_key}")
        return True
