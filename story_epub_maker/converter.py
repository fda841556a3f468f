"""Story to EPUB conversion shared by the CLI and library callers.

The converter fetches a story's metadata and content archive, processes the
chapters concurrently and hands the ordered result to the EPUB writer. Only
metadata and archive failures abort a run; a chapter that cannot be cleaned is
dropped and an image that cannot be fetched is replaced by a placeholder.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import re
import time
import zipfile
from typing import Dict, List, Optional, Sequence, Tuple

from .client import ContentClient
from .epub_writer import ChapterDocument, EpubPackage, EpubWriter
from .errors import ChapterProcessingFailed, DownloadFailed, MetadataFetchFailed
from .images import PLACEHOLDER, is_valid_image_url
from .ingest import ChapterStub, ImageAsset, ProcessedChapter, StoryMetadata
from .ingest.archive import ArchiveExtractor
from .lang import direction_for_language_id, language_code
from .processor import ChapterProcessor

__all__ = [
    "ConversionOptions",
    "ConversionResult",
    "MatchedChapter",
    "PreparedStory",
    "StoryConverter",
    "match_chapters",
    "output_file_name",
    "sanitize_title",
]

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10
CONCURRENCY_ENV = "STORY_EPUB_CONCURRENCY"

STORY_FIELDS = (
    "title",
    "description",
    "cover",
    "language(id)",
    "user(username)",
    "parts(id,title)",
)

DEFAULT_STORY_TITLE = "Untitled Story"
DEFAULT_AUTHOR = "Unknown Author"
DEFAULT_CHAPTER_TITLE = "Untitled Chapter"
DEFAULT_LANGUAGE_ID = 1

_UNSAFE_FILENAME_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]')


def default_concurrency() -> int:
    value = os.getenv(CONCURRENCY_ENV)
    if value is None:
        return DEFAULT_CONCURRENCY
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"${CONCURRENCY_ENV} must be an integer, got {value!r}") from None


@dataclass
class ConversionOptions:
    """Options that control how a story is turned into an EPUB."""

    story_id: int
    embed_images: bool = True
    concurrency: int = field(default_factory=default_concurrency)
    output_dir: Optional[Path] = None
    output_file: Optional[Path] = None
    extra_fields: Sequence[str] = ()

    def __post_init__(self) -> None:
        if self.story_id <= 0:
            raise ValueError("story_id must be positive")
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.output_dir is not None and self.output_file is not None:
            raise ValueError("output_dir and output_file are mutually exclusive")

    @property
    def story_fields(self) -> List[str]:
        return sorted(set(STORY_FIELDS) | set(self.extra_fields))


@dataclass(frozen=True)
class MatchedChapter:
    index: int
    title: str
    html: str


@dataclass
class PreparedStory:
    """A fully processed story, ready to be serialized."""

    package: EpubPackage
    sanitized_title: str
    metadata: StoryMetadata
    chapters: List[ProcessedChapter]
    dropped_chapters: List[int]
    failed_chapters: List[int]


@dataclass
class ConversionResult:
    """Outcome returned after a conversion run."""

    sanitized_title: str
    metadata: StoryMetadata
    chapter_count: int
    dropped_chapters: List[int]
    failed_chapters: List[int]
    elapsed_seconds: float
    output_path: Optional[Path] = None
    epub_bytes: Optional[bytes] = None


def sanitize_title(title: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""

    sanitized = _UNSAFE_FILENAME_CHARS.sub("_", title).rstrip(". ")
    return sanitized[:200] or "_"


def output_file_name(story_id: int, title: str) -> str:
    return f"{story_id}-{sanitize_title(title)}.epub"


def match_chapters(
    parts: Sequence[ChapterStub],
    chapter_html: Dict[int, str],
) -> Tuple[List[MatchedChapter], List[int]]:
    """Pair metadata parts with archive content, in metadata order.

    Entries are removed from *chapter_html* as they are matched. Parts without
    content are returned separately and get no index; indices run from 1 over
    the matched parts only.
    """

    matched: List[MatchedChapter] = []
    dropped: List[int] = []
    for part in parts:
        html = chapter_html.pop(part.id, None)
        if html is None:
            dropped.append(part.id)
            continue
        matched.append(
            MatchedChapter(
                index=len(matched) + 1,
                title=part.title or DEFAULT_CHAPTER_TITLE,
                html=html,
            )
        )
    return matched, dropped


class StoryConverter:
    """High level orchestrator for one story conversion."""

    def __init__(
        self,
        client: ContentClient,
        *,
        extractor: Optional[ArchiveExtractor] = None,
        writer: Optional[EpubWriter] = None,
    ) -> None:
        self.client = client
        self.extractor = extractor or ArchiveExtractor()
        self.writer = writer or EpubWriter()

    # Public API -----------------------------------------------------------------
    async def convert(self, options: ConversionOptions) -> ConversionResult:
        start_time = time.perf_counter()
        logger.debug("Starting conversion with options: %s", options)

        prepared = await self.prepare(options)

        output_path: Optional[Path] = None
        epub_bytes: Optional[bytes] = None
        if options.output_file is not None:
            output_path = self.writer.write(prepared.package, options.output_file)
        elif options.output_dir is not None:
            target = options.output_dir / output_file_name(options.story_id, prepared.package.title)
            output_path = self.writer.write(prepared.package, target)
        else:
            epub_bytes = self.writer.to_bytes(prepared.package)

        elapsed = time.perf_counter() - start_time
        logger.info("Finished conversion in %.2fs", elapsed)

        return ConversionResult(
            sanitized_title=prepared.sanitized_title,
            metadata=prepared.metadata,
            chapter_count=len(prepared.chapters),
            dropped_chapters=prepared.dropped_chapters,
            failed_chapters=prepared.failed_chapters,
            elapsed_seconds=elapsed,
            output_path=output_path,
            epub_bytes=epub_bytes,
        )

    async def prepare(self, options: ConversionOptions) -> PreparedStory:
        story_id = options.story_id
        metadata = await self.client.fetch_metadata(story_id, options.story_fields)
        logger.info("Fetched metadata for %r", metadata.title)
        if metadata.parts is None:
            raise MetadataFetchFailed(story_id, "metadata has no chapter list")

        zip_bytes = await self.client.fetch_content_zip(story_id)
        logger.info("Downloaded content archive (%d bytes)", len(zip_bytes))
        chapter_html = self._extract(story_id, zip_bytes)

        matched, dropped = match_chapters(metadata.parts, chapter_html)
        if dropped:
            logger.warning(
                "%d of %d chapters have no content in the archive and were skipped: %s",
                len(dropped),
                len(metadata.parts),
                dropped,
            )
        logger.info("Processing %d chapters", len(matched))

        chapters, failed = await self._process_chapters(matched, options)
        logger.info(
            "Finished chapter processing: %d of %d succeeded",
            len(chapters),
            len(metadata.parts),
        )

        cover = await self._fetch_cover(metadata.cover)
        title = metadata.title or DEFAULT_STORY_TITLE
        package = self._build_package(story_id, metadata, chapters, cover)
        return PreparedStory(
            package=package,
            sanitized_title=f"{story_id}-{sanitize_title(title)}",
            metadata=metadata,
            chapters=chapters,
            dropped_chapters=dropped,
            failed_chapters=failed,
        )

    # Stages ---------------------------------------------------------------------
    def _extract(self, story_id: int, zip_bytes: bytes) -> Dict[int, str]:
        try:
            return self.extractor.extract(zip_bytes)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, UnicodeDecodeError) as exc:
            raise DownloadFailed(story_id, f"unreadable content archive: {exc}") from exc

    async def _process_chapters(
        self,
        matched: Sequence[MatchedChapter],
        options: ConversionOptions,
    ) -> Tuple[List[ProcessedChapter], List[int]]:
        processor = ChapterProcessor(
            self.client,
            embed_images=options.embed_images,
            concurrency=options.concurrency,
        )
        semaphore = asyncio.Semaphore(options.concurrency)

        async def run(chapter: MatchedChapter) -> ProcessedChapter:
            async with semaphore:
                return await processor.process(chapter.index, chapter.title, chapter.html)

        processed: List[ProcessedChapter] = []
        failed: List[int] = []
        for pending in asyncio.as_completed([run(chapter) for chapter in matched]):
            try:
                processed.append(await pending)
            except ChapterProcessingFailed as exc:
                logger.warning("%s", exc)
                failed.append(exc.index)

        # Completion order is arbitrary.
        processed.sort(key=lambda chapter: chapter.index)
        failed.sort()
        return processed, failed

    async def _fetch_cover(self, url: Optional[str]) -> Optional[bytes]:
        if not url or not is_valid_image_url(url):
            return None
        try:
            data = await self.client.fetch_bytes(url)
        except Exception:
            logger.debug("Cover download raised", exc_info=True)
            data = None
        if data is None:
            logger.debug("Cover %s unavailable; building the book without one", url)
        return data

    def _build_package(
        self,
        story_id: int,
        metadata: StoryMetadata,
        chapters: Sequence[ProcessedChapter],
        cover: Optional[bytes],
    ) -> EpubPackage:
        language_id = metadata.language_id if metadata.language_id is not None else DEFAULT_LANGUAGE_ID
        code = language_code(language_id)

        assets: List[ImageAsset] = [PLACEHOLDER]
        documents: List[ChapterDocument] = []
        for chapter in chapters:
            assets.extend(chapter.images)
            documents.append(
                ChapterDocument(
                    title=chapter.title,
                    file_name=chapter.file_name,
                    language=code,
                    content=chapter.html_content,
                )
            )

        author = metadata.author or DEFAULT_AUTHOR
        title = metadata.title or DEFAULT_STORY_TITLE
        logger.info("Building EPUB %r by %s", title, author)
        return EpubPackage(
            identifier=f"wattpad-{story_id}",
            title=title,
            author=author,
            description=metadata.description or "",
            language=code,
            direction=direction_for_language_id(language_id),
            assets=assets,
            chapters=documents,
            cover=cover,
        )
