"""Chapter markup clean-up: a tolerant rewrite followed by a strict re-encode."""

from __future__ import annotations

from typing import Mapping, Optional

from .reencode import reencode_fragment
from .rewriter import HtmlRewriter, RewriteOptions, collect_image_urls


def clean_chapter_html(
    html: str,
    *,
    embed_images: bool = False,
    image_map: Optional[Mapping[str, str]] = None,
) -> str:
    """Rewrite *html* and return it as well-formed XHTML fragment text.

    Raises :class:`~story_epub_maker.errors.ChapterProcessingFailed` when the
    result is still not well-formed.
    """

    rewriter = HtmlRewriter(RewriteOptions(embed_images=embed_images, image_map=image_map or {}))
    return reencode_fragment(rewriter.rewrite(html))


__all__ = [
    "HtmlRewriter",
    "RewriteOptions",
    "clean_chapter_html",
    "collect_image_urls",
    "reencode_fragment",
]
