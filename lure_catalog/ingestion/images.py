"""
Image Storage Module
====================

Side-channel for color images: after a page is extracted, each color
image is downloaded, converted to WebP at a fixed width and written to
an image store. Failures are logged per image and never fail the entry.

Key layout:
    {manufacturer_slug}/{slug}/{NN}.webp   (NN is the 1-based color index)
"""

from __future__ import annotations

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from lure_catalog.core.errors import FetchError
from lure_catalog.core.schema import ScrapedProduct
from lure_catalog.ingestion.crawler import PageFetcher

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_WIDTH = 500
WEBP_QUALITY = 80


class ImageStorage(ABC):
    """
    Abstract base class for image storage.

    Implementations accept encoded image bytes and a destination key and
    return the public URL the image is served from.
    """

    @abstractmethod
    def store(self, data: bytes, key: str) -> str:
        """
        Store one image.

        Args:
            data: Encoded image bytes
            key: Destination key, e.g. ``megabass/karashi_80/01.webp``

        Returns:
            Public URL of the stored image
        """
        pass


class LocalImageStorage(ImageStorage):
    """
    Local filesystem storage for images.

    Directory structure:
        {base_path}/{manufacturer_slug}/{slug}/{NN}.webp
    """

    def __init__(self, base_path: str | Path, public_base_url: str) -> None:
        """
        Initialize local image storage.

        Args:
            base_path: Base directory for stored images
            public_base_url: URL prefix the base directory is served under
        """
        self.base_path = Path(base_path).expanduser().resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def store(self, data: bytes, key: str) -> str:
        path = (self.base_path / key).resolve()
        if self.base_path not in path.parents:
            raise ValueError(f"Image key escapes storage directory: {key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"{self.public_base_url}/{key}"


def image_key(manufacturer_slug: str, slug: str, index: int) -> str:
    """Storage key for the ``index``-th (0-based) color image."""
    return f"{manufacturer_slug}/{slug}/{index + 1:02d}.webp"


def to_webp(data: bytes, width: int = DEFAULT_IMAGE_WIDTH, quality: int = WEBP_QUALITY) -> bytes:
    """
    Convert image bytes to WebP no wider than ``width``.

    Smaller images are not enlarged.

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
            if image.width > width:
                height = max(1, round(image.height * width / image.width))
                image = image.resize((width, height), Image.Resampling.LANCZOS)
            buffer = io.BytesIO()
            image.save(buffer, format="WEBP", quality=quality)
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unreadable image: {e}") from e
    return buffer.getvalue()


class ImageUploader:
    """Downloads color images, converts them and writes them to storage."""

    def __init__(
        self,
        storage: ImageStorage,
        fetcher: PageFetcher | None = None,
        width: int = DEFAULT_IMAGE_WIDTH,
    ) -> None:
        self.storage = storage
        self.fetcher = fetcher or PageFetcher()
        self.width = width

    async def upload(self, image_url: str, key: str) -> str:
        """
        Download, convert and store one image.

        Raises:
            FetchError: If the download fails
            ValueError: If the download is not an image
        """
        data = await self.fetcher.fetch_bytes(image_url)
        webp = await asyncio.to_thread(to_webp, data, self.width)
        public_url = await asyncio.to_thread(self.storage.store, webp, key)
        logger.debug(f"Stored {image_url} as {public_url} ({len(webp) / 1024:.1f} KB)")
        return public_url

    async def rehost(self, product: ScrapedProduct) -> tuple[ScrapedProduct, int]:
        """
        Replace each color's image URL with its stored copy.

        Colors without an image, or whose image fails, keep their
        original URL.

        Returns:
            (product with stored image URLs, number of images stored)
        """
        colors = []
        stored = 0
        for index, color in enumerate(product.colors):
            if not color.image_url:
                logger.debug(f"Skipping color {index} ({color.name}): no image URL")
                colors.append(color)
                continue
            key = image_key(product.manufacturer_slug, product.slug, index)
            try:
                public_url = await self.upload(color.image_url, key)
            except (FetchError, ValueError) as e:
                logger.warning(f"Failed to process image for color {color.name}: {e}")
                colors.append(color)
                continue
            colors.append(color.model_copy(update={"image_url": public_url}))
            stored += 1

        logger.info(f"Stored {stored} color images for {product.name}")
        return product.model_copy(update={"colors": colors}), stored
