"""Per-chapter processing: image resolution followed by markup clean-up."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from .errors import ChapterProcessingFailed
from .images import ImagePipeline
from .ingest import ImageAsset, ProcessedChapter
from .markup import clean_chapter_html

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContentClient

LOGGER = logging.getLogger(__name__)


def chapter_file_name(index: int) -> str:
    return f"{index}.xhtml"


class ChapterProcessor:
    """Turn the raw HTML of one chapter into a :class:`ProcessedChapter`."""

    def __init__(
        self,
        client: Optional["ContentClient"] = None,
        *,
        embed_images: bool = True,
        concurrency: int = 10,
    ) -> None:
        if embed_images and client is None:
            raise ValueError("a content client is required to embed images")
        self.embed_images = embed_images
        self.images = ImagePipeline(client, concurrency=concurrency) if embed_images else None

    async def process(self, index: int, title: str, raw_html: str) -> ProcessedChapter:
        """Process a chapter.

        Every failure, including unexpected ones, surfaces as
        :class:`ChapterProcessingFailed` labelled with *index* and *title*.
        """

        image_map: Dict[str, str] = {}
        assets: Tuple[ImageAsset, ...] = ()
        try:
            if self.images is not None:
                resolution = await self.images.resolve(index, raw_html)
                image_map = resolution.image_map
                assets = tuple(resolution.assets)
            html_content = clean_chapter_html(
                raw_html,
                embed_images=self.embed_images,
                image_map=image_map,
            )
        except ChapterProcessingFailed as exc:
            raise exc.for_chapter(index, title) from exc
        except Exception as exc:
            LOGGER.debug("Unexpected error in chapter %d", index, exc_info=True)
            raise ChapterProcessingFailed(
                f"unexpected error: {exc!r}", index=index, title=title
            ) from exc

        LOGGER.debug("Processed chapter %d (%s) with %d images", index, title, len(assets))
        return ProcessedChapter(
            index=index,
            title=title,
            file_name=chapter_file_name(index),
            html_content=html_content,
            images=assets,
        )


__all__ = ["ChapterProcessor", "chapter_file_name"]
