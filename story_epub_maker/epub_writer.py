"""EPUB packaging on top of ebooklib."""

from __future__ import annotations

from dataclasses import dataclass, field
from html import escape
import io
import logging
import os
from pathlib import Path
import tempfile
from typing import List, Optional, Sequence

from ebooklib import epub

from .errors import EpubGenerationFailed
from .images import media_type_for
from .ingest import ImageAsset
from .lang import LTR

LOGGER = logging.getLogger(__name__)

COVER_FILE_NAME = "cover.jpg"
# Without raise_exceptions ebooklib swallows I/O errors and leaves a truncated archive.
WRITE_OPTIONS = {"raise_exceptions": True}


@dataclass(frozen=True)
class ChapterDocument:
    title: str
    file_name: str
    language: str
    content: str


@dataclass
class EpubPackage:
    """Everything needed to serialize one book."""

    identifier: str
    title: str
    author: str
    description: str = ""
    language: str = "en"
    direction: str = LTR
    assets: Sequence[ImageAsset] = field(default_factory=list)
    chapters: Sequence[ChapterDocument] = field(default_factory=list)
    cover: Optional[bytes] = None


def _chapter_markup(chapter: ChapterDocument) -> str:
    return (
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f"<head><title>{escape(chapter.title)}</title></head>"
        f"<body>{chapter.content}</body>"
        "</html>"
    )


class EpubWriter:
    """Serialize an :class:`EpubPackage` to a file or to bytes."""

    def build(self, package: EpubPackage) -> epub.EpubBook:
        book = epub.EpubBook()
        book.set_identifier(package.identifier)
        book.set_title(package.title)
        book.set_language(package.language)
        book.set_direction(package.direction)
        book.add_author(package.author)
        if package.description:
            book.add_metadata("DC", "description", package.description)

        if package.cover is not None:
            book.set_cover(COVER_FILE_NAME, package.cover, create_page=False)

        seen_paths = set()
        for number, asset in enumerate(package.assets):
            if asset.epub_path in seen_paths:
                continue
            seen_paths.add(asset.epub_path)
            book.add_item(
                epub.EpubImage(
                    uid=f"image_{number}",
                    file_name=asset.epub_path,
                    media_type=media_type_for(asset.epub_path),
                    content=asset.data,
                )
            )

        documents: List[epub.EpubHtml] = []
        for number, chapter in enumerate(package.chapters, start=1):
            document = epub.EpubHtml(
                uid=f"chapter_{number}",
                title=chapter.title,
                file_name=chapter.file_name,
                lang=chapter.language,
            )
            document.content = _chapter_markup(chapter)
            book.add_item(document)
            documents.append(document)

        book.toc = documents
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        book.spine = ["nav", *documents]
        return book

    def write(self, package: EpubPackage, path: Path) -> Path:
        """Write the book to *path*; nothing is left behind on failure."""

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        book = self._build_checked(package)
        handle, temp_name = tempfile.mkstemp(prefix=".", suffix=".epub.part", dir=path.parent)
        os.close(handle)
        try:
            self._serialize(book, temp_name)
            os.replace(temp_name, path)
        finally:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
        LOGGER.info("Wrote %d chapters to %s", len(package.chapters), path)
        return path

    def to_bytes(self, package: EpubPackage) -> bytes:
        book = self._build_checked(package)
        buffer = io.BytesIO()
        self._serialize(book, buffer)
        data = buffer.getvalue()
        LOGGER.info("Generated EPUB in memory (%d bytes)", len(data))
        return data

    def _build_checked(self, package: EpubPackage) -> epub.EpubBook:
        try:
            return self.build(package)
        except Exception as exc:
            raise EpubGenerationFailed(str(exc)) from exc

    def _serialize(self, book: epub.EpubBook, target) -> None:
        try:
            written = epub.write_epub(target, book, WRITE_OPTIONS)
        except OSError:
            raise
        except Exception as exc:
            raise EpubGenerationFailed(str(exc)) from exc
        # Older ebooklib releases report write errors through the return value.
        if written is False:
            raise EpubGenerationFailed("the EPUB archive could not be written")


__all__ = ["ChapterDocument", "EpubPackage", "EpubWriter", "COVER_FILE_NAME"]
