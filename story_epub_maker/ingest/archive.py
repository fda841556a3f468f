"""Story content archive ingestion."""

from __future__ import annotations

import io
import logging
import re
import zipfile
from pathlib import PurePosixPath
from typing import Dict, Optional

LOGGER = logging.getLogger(__name__)

_PART_ID = re.compile(r"[+-]?[0-9]+")


class ArchiveExtractor:
    """Read the per-chapter HTML files out of a story content zip.

    Each entry whose file name (ignoring directories) is an integer is a
    chapter, keyed by that integer. Everything else in the archive is ignored.
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def extract(self, data: bytes) -> Dict[int, str]:
        """Return a mapping of chapter id to raw HTML.

        Raises :class:`zipfile.BadZipFile` for a corrupt archive and
        :class:`UnicodeDecodeError` for a chapter that is not valid text.
        A later entry with the same id replaces an earlier one.
        """

        chapters: Dict[int, str] = {}
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                part_id = self._part_id(info.filename)
                if part_id is None:
                    LOGGER.debug("Skipping archive entry %s", info.filename)
                    continue
                with archive.open(info) as handle:
                    text = handle.read().decode(self.encoding)
                if part_id in chapters:
                    LOGGER.debug("Archive entry %s overrides chapter %d", info.filename, part_id)
                chapters[part_id] = text
        LOGGER.debug("Extracted %d chapters from archive", len(chapters))
        return chapters

    def _part_id(self, name: str) -> Optional[int]:
        basename = PurePosixPath(name).name
        if not _PART_ID.fullmatch(basename):
            return None
        return int(basename)


__all__ = ["ArchiveExtractor"]
