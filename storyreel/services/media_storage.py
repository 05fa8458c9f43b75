"""
Media Storage
Local reads under the storage root and publishing of finished renders.
"""

import asyncio
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import Settings, get_settings
from ..utils.logger import get_logger
from .s3_uploader import S3Uploader

logger = get_logger()

OUTPUT_URL_PREFIX = "/output/"
S3_KEY_PREFIX = "renders/"


@dataclass
class PublishedVideo:
    """Where a finished render ended up"""
    url: str
    path: Path
    size: int


class MediaStorage:
    """Byte-addressable storage keyed by '/'-rooted paths."""

    def __init__(
        self,
        storage_root: str,
        output_dir: str,
        uploader: Optional[S3Uploader] = None,
    ):
        self.storage_root = Path(storage_root).resolve()
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.uploader = uploader

    def resolve_local(self, reference: str) -> Optional[Path]:
        """
        Map '/uploads/x.png' style references onto the storage root.

        Returns None when the file is missing or the reference escapes the root.
        """
        if not reference:
            return None

        candidate = (self.storage_root / reference.lstrip("/")).resolve()
        if candidate != self.storage_root and self.storage_root not in candidate.parents:
            logger.warning(f"Rejected path outside storage root: {reference}")
            return None
        if not candidate.is_file():
            return None
        return candidate

    async def read_bytes(self, reference: str) -> Optional[bytes]:
        path = self.resolve_local(reference)
        if path is None:
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, path.read_bytes)

    async def publish(self, local_file: Path, filename: str) -> PublishedVideo:
        """Move a finished render out of its workspace and return its public URL."""
        destination = self.output_dir / filename
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, shutil.move, str(local_file), str(destination))
        size = destination.stat().st_size

        url = f"{OUTPUT_URL_PREFIX}{filename}"
        if self.uploader is not None:
            url = await self.uploader.upload_file(str(destination), f"{S3_KEY_PREFIX}{filename}")

        logger.info(f"Published render: {url} ({size / 1024 / 1024:.2f} MB)")
        return PublishedVideo(url=url, path=destination, size=size)

    async def remove_published(self, video_url: Optional[str]) -> bool:
        """Delete a published render (local copy, and the S3 object if uploaded)."""
        if not video_url:
            return False

        filename = os.path.basename(video_url)
        removed = False
        if self.uploader is not None and not video_url.startswith(OUTPUT_URL_PREFIX):
            removed = await self.uploader.delete_file(f"{S3_KEY_PREFIX}{filename}")

        path = self.output_dir / filename
        try:
            if path.exists():
                path.unlink()
                removed = True
        except OSError as exc:
            logger.warning(f"Failed to remove file {path}: {exc}")
        return removed


_media_storage: Optional[MediaStorage] = None


def build_media_storage(settings: Settings) -> MediaStorage:
    uploader = None
    if settings.upload_to_s3:
        uploader = S3Uploader(settings)
        if not uploader.configured:
            logger.warning("upload_to_s3 is enabled but AWS credentials are missing; publishing locally")
            uploader = None
    return MediaStorage(settings.storage_root, settings.output_dir, uploader)


def get_media_storage() -> MediaStorage:
    """Return singleton media storage."""
    global _media_storage
    if _media_storage is None:
        _media_storage = build_media_storage(get_settings())
    return _media_storage
