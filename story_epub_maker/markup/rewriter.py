"""Tolerant clean-up of chapter markup served by the platform."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Mapping

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from ..errors import ChapterProcessingFailed

LOGGER = logging.getLogger(__name__)

PARSER = "html.parser"

# <p data-media-type="image"> wraps every inline image on the platform.
IMAGE_WRAPPER_ATTRIBUTE = "data-media-type"
IMAGE_WRAPPER_VALUE = "image"
TRACKING_ATTRIBUTES = ("data-p-id",)
IMAGE_SIZING_ATTRIBUTES = ("data-original-width", "data-original-height")
# Only the xml: prefix is bound without a declaration.
BOUND_PREFIX = "xml:"


@dataclass
class RewriteOptions:
    """Configuration for a single rewrite pass."""

    embed_images: bool = False
    image_map: Mapping[str, str] = field(default_factory=dict)


class HtmlRewriter:
    """Apply the platform-specific structural fixes to a markup fragment.

    The pass never rejects input that the tokenizer can walk; whatever it
    cannot repair is left for :func:`reencode_fragment` to report.
    """

    def __init__(self, options: RewriteOptions | None = None) -> None:
        self.options = options or RewriteOptions()

    def rewrite(self, html: str) -> str:
        soup = _parse(html)
        self._strip_namespaced_names(soup)
        self._unwrap_image_wrappers(soup)
        self._strip_tracking_attributes(soup)
        self._rewrite_line_breaks(soup)
        self._rewrite_images(soup)
        # Void elements (br, img) are emitted in their self-closing form.
        return soup.decode(formatter="minimal")

    def _strip_namespaced_names(self, soup: BeautifulSoup) -> None:
        for tag in soup.find_all(True):
            for attribute in [name for name in tag.attrs if _is_namespaced(name)]:
                del tag[attribute]
        # Word exports such as <o:p> keep their content.
        for tag in soup.find_all(lambda tag: ":" in tag.name):
            tag.unwrap()

    def _unwrap_image_wrappers(self, soup: BeautifulSoup) -> None:
        for wrapper in soup.find_all("p", attrs={IMAGE_WRAPPER_ATTRIBUTE: IMAGE_WRAPPER_VALUE}):
            wrapper.unwrap()

    def _strip_tracking_attributes(self, soup: BeautifulSoup) -> None:
        for attribute in TRACKING_ATTRIBUTES:
            for tag in soup.find_all(attrs={attribute: True}):
                del tag[attribute]

    def _rewrite_line_breaks(self, soup: BeautifulSoup) -> None:
        for line_break in soup.find_all("br"):
            line_break.attrs = {}

    def _rewrite_images(self, soup: BeautifulSoup) -> None:
        image_map = self.options.image_map
        for image in soup.find_all("img"):
            src = image.get("src")
            if self.options.embed_images and src is not None and src in image_map:
                image["src"] = image_map[src]
            for attribute in IMAGE_SIZING_ATTRIBUTES:
                if attribute in image.attrs:
                    del image[attribute]


def collect_image_urls(html: str) -> List[str]:
    """Return every ``img`` ``src`` in document order, duplicates included."""

    soup = _parse(html)
    return [image["src"] for image in soup.find_all("img", src=True)]


def _is_namespaced(name: str) -> bool:
    if name == "xmlns" or name.startswith("xmlns:"):
        return True
    return ":" in name and not name.startswith(BOUND_PREFIX)


def _parse(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, PARSER)
    except ParserRejectedMarkup as exc:
        LOGGER.debug("Tokenizer rejected markup: %s", exc)
        raise ChapterProcessingFailed(f"markup could not be tokenized: {exc}") from exc


__all__ = ["HtmlRewriter", "RewriteOptions", "collect_image_urls"]
