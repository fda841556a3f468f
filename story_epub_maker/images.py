"""Image discovery, download and placement for chapter content."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from yarl import URL

from .ingest import ImageAsset
from .markup import collect_image_urls

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContentClient

LOGGER = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"

# Leading bytes of the formats the platform serves.
SIGNATURES = (
    (b"\xff\xd8\xff", "jpg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"GIF8", "gif"),
)

MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
}

PLACEHOLDER_EPUB_PATH = "images/placeholder.jpg"

# 1x1 greyscale JPEG.
_PLACEHOLDER_JPEG = base64.b64decode(
    "/9j/4AAQSkZJRgABAQEASABIAAD/2wBDAP//////////////////////////////////////////"
    "////////////////////////////////////////////wgALCAABAAEBAREA/8QAFBABAAAAAAAA"
    "AAAAAAAAAAAAAP/aAAgBAQABPxA="
)

PLACEHOLDER = ImageAsset(epub_path=PLACEHOLDER_EPUB_PATH, data=_PLACEHOLDER_JPEG)


def infer_extension(data: bytes) -> Optional[str]:
    """Return the file extension matching the magic bytes of *data*, if known."""

    for signature, extension in SIGNATURES:
        if data.startswith(signature):
            return extension
    return None


def extension_for(data: bytes) -> str:
    return infer_extension(data) or DEFAULT_EXTENSION


def media_type_for(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower()
    return MEDIA_TYPES.get(extension, MEDIA_TYPES[DEFAULT_EXTENSION])


def is_valid_image_url(url: str) -> bool:
    """Return True when *url* is an absolute http(s) URL that can be fetched."""

    try:
        parsed = URL(url.strip())
    except (TypeError, ValueError):
        return False
    if not (parsed.is_absolute() and parsed.scheme in {"http", "https"} and parsed.host):
        return False
    try:
        parsed.host.encode("idna")
    except UnicodeError:
        return False
    return True


def image_path(chapter_index: int, image_number: int, extension: str) -> str:
    return f"images/chapter_{chapter_index}/image_{image_number}.{extension}"


@dataclass
class ImageResolution:
    """Outcome of resolving the images referenced by one chapter.

    ``image_map`` maps every discovered URL to its path inside the book;
    ``assets`` only holds the images that were downloaded, the placeholder is
    packaged separately.
    """

    image_map: Dict[str, str] = field(default_factory=dict)
    assets: List[ImageAsset] = field(default_factory=list)

    @property
    def placeholder_count(self) -> int:
        return sum(1 for path in self.image_map.values() if path == PLACEHOLDER_EPUB_PATH)


class ImagePipeline:
    """Download the images of a chapter with bounded concurrency."""

    def __init__(self, client: "ContentClient", *, concurrency: int = 10) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.client = client
        self.concurrency = concurrency

    async def resolve(self, chapter_index: int, html: str) -> ImageResolution:
        # Repeated URLs are fetched once and share one path.
        urls = list(dict.fromkeys(collect_image_urls(html)))
        resolution = ImageResolution()
        if not urls:
            return resolution

        LOGGER.debug("Chapter %d references %d distinct images", chapter_index, len(urls))
        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch(url: str) -> tuple[str, Optional[bytes]]:
            async with semaphore:
                return url, await self._download(url)

        downloaded: Dict[str, Optional[bytes]] = {}
        for pending in asyncio.as_completed([fetch(url) for url in urls]):
            url, data = await pending
            downloaded[url] = data

        # Numbering follows document order so paths do not depend on timing.
        image_number = 0
        for url in urls:
            data = downloaded[url]
            if data is None:
                resolution.image_map[url] = PLACEHOLDER_EPUB_PATH
                continue
            path = image_path(chapter_index, image_number, extension_for(data))
            resolution.assets.append(ImageAsset(epub_path=path, data=data))
            resolution.image_map[url] = path
            image_number += 1

        if resolution.placeholder_count:
            LOGGER.info(
                "Chapter %d: %d of %d images replaced by the placeholder",
                chapter_index,
                resolution.placeholder_count,
                len(urls),
            )
        return resolution

    async def _download(self, url: str) -> Optional[bytes]:
        if not is_valid_image_url(url):
            LOGGER.warning("Invalid image URL %r; it will be replaced by a placeholder", url)
            return None
        try:
            return await self.client.fetch_bytes(url)
        except Exception as exc:
            LOGGER.warning("Failed to download %s (%r); using a placeholder", url, exc)
            return None


__all__ = [
    "ImagePipeline",
    "ImageResolution",
    "PLACEHOLDER",
    "PLACEHOLDER_EPUB_PATH",
    "extension_for",
    "infer_extension",
    "is_valid_image_url",
    "media_type_for",
]
