"""
Image Normalizer
Loads a scene image from inline data, local storage or HTTP and cover-fits
it to the output canvas.
"""

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urljoin

import aiohttp
from PIL import Image, ImageOps, UnidentifiedImageError

from ..utils.exceptions import ImageSourceError
from ..utils.logger import get_logger
from ..utils.retry import retry_async
from .media_storage import MediaStorage
from .motion import Orientation, detect_orientation

logger = get_logger()

JPEG_QUALITY = 92
DATA_URI_PREFIX = "data:image/"


@dataclass
class NormalizedImage:
    """A scene image resized to exactly fill the output canvas"""
    path: Path
    source_width: int
    source_height: int
    orientation: Orientation


class ImageNormalizer:
    """Resolves scene image references and writes canvas-sized JPEG frames"""

    def __init__(
        self,
        storage: MediaStorage,
        public_base_url: str = "http://localhost:8000",
        fetch_timeout: float = 20,
        fetch_retries: int = 2,
    ):
        self.storage = storage
        self.public_base_url = public_base_url.rstrip("/") + "/"
        self.fetch_timeout = fetch_timeout
        self._fetch_with_retry = retry_async(
            max_retries=fetch_retries,
            base_delay=0.5,
            max_delay=5.0,
            retryable_exceptions=(aiohttp.ClientError, asyncio.TimeoutError),
        )(self._fetch_remote)

    async def normalize(
        self,
        source: str,
        output_path: Path,
        width: int,
        height: int,
        scene_number: Optional[int] = None,
    ) -> NormalizedImage:
        """Load ``source`` and write a ``width`` x ``height`` JPEG to ``output_path``."""
        data = await self.load_image_bytes(source, scene_number)

        loop = asyncio.get_running_loop()
        try:
            source_size = await loop.run_in_executor(
                None, self._fit_to_canvas, data, output_path, (width, height)
            )
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImageSourceError(
                f"Scene {scene_number} image could not be decoded: {exc}",
                source=source,
                scene_number=scene_number,
            ) from exc

        source_width, source_height = source_size
        return NormalizedImage(
            path=output_path,
            source_width=source_width,
            source_height=source_height,
            orientation=detect_orientation(source_width, source_height),
        )

    async def load_image_bytes(self, source: str, scene_number: Optional[int] = None) -> bytes:
        """
        Raw image bytes for a scene reference.

        Inline data URIs are decoded directly, '/'-rooted paths are read from
        local storage when present, anything else is fetched over HTTP.
        """
        if not source:
            raise ImageSourceError("Scene has no image reference", scene_number=scene_number)

        if source.startswith(DATA_URI_PREFIX):
            return self._decode_data_uri(source, scene_number)

        if source.startswith("/"):
            local = await self.storage.read_bytes(source)
            if local is not None:
                return local

        url = source if source.startswith(("http://", "https://")) else urljoin(
            self.public_base_url, source.lstrip("/")
        )
        try:
            return await self._fetch_with_retry(url)
        except ImageSourceError as exc:
            exc.details["scene_number"] = scene_number
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ImageSourceError(
                f"Failed to load image source for scene {scene_number}: {exc or type(exc).__name__}",
                source=source,
                scene_number=scene_number,
            ) from exc

    @staticmethod
    def _decode_data_uri(source: str, scene_number: Optional[int]) -> bytes:
        _, _, payload = source.partition(",")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageSourceError(
                f"Scene {scene_number} has a malformed inline image",
                source=source,
                scene_number=scene_number,
            ) from exc
        if not data:
            raise ImageSourceError(
                f"Scene {scene_number} has an empty inline image",
                source=source,
                scene_number=scene_number,
            )
        return data

    async def _fetch_remote(self, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.fetch_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status >= 500:
                    # server-side errors are worth another attempt
                    response.raise_for_status()
                if response.status != 200:
                    raise ImageSourceError(
                        f"Failed to load image source: {url} (HTTP {response.status})",
                        source=url,
                    )
                return await response.read()

    @staticmethod
    def _fit_to_canvas(data: bytes, output_path: Path, size: Tuple[int, int]) -> Tuple[int, int]:
        """Scale to cover, crop the centred overflow, save as JPEG (blocking)."""
        with Image.open(io.BytesIO(data)) as image:
            image = ImageOps.exif_transpose(image)
            source_size = image.size
            if image.mode != "RGB":
                image = image.convert("RGB")
            fitted = ImageOps.fit(
                image,
                size,
                method=Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fitted.save(output_path, format="JPEG", quality=JPEG_QUALITY)
        return source_size
