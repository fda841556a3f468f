"""Content ingestion types shared across the conversion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ChapterStub:
    """A chapter ("part") as listed in the story metadata."""

    id: int
    title: Optional[str] = None


@dataclass(frozen=True)
class ImageAsset:
    """An image bundled into the book at ``epub_path``."""

    epub_path: str
    data: bytes


@dataclass(frozen=True)
class ProcessedChapter:
    """A chapter whose markup is ready to be packaged.

    ``index`` is the 1-based position among chapters that were found in the
    content archive, not the position in the metadata list.
    """

    index: int
    title: str
    file_name: str
    html_content: str
    images: Tuple[ImageAsset, ...] = ()


@dataclass
class StoryMetadata:
    """Story-level metadata returned by the content platform."""

    id: int
    title: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    language_id: Optional[int] = None
    author: Optional[str] = None
    parts: Optional[List[ChapterStub]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, story_id: int, payload: Mapping[str, Any]) -> "StoryMetadata":
        language = payload.get("language") or {}
        user = payload.get("user") or {}
        parts_payload = payload.get("parts")
        parts: Optional[List[ChapterStub]] = None
        if parts_payload is not None:
            parts = []
            for entry in parts_payload:
                part_id = entry.get("id")
                if part_id is None:
                    continue
                parts.append(ChapterStub(id=int(part_id), title=entry.get("title")))
        language_id = language.get("id") if isinstance(language, Mapping) else None
        return cls(
            id=int(payload.get("id", story_id)),
            title=payload.get("title"),
            description=payload.get("description"),
            cover=payload.get("cover"),
            language_id=int(language_id) if language_id is not None else None,
            author=user.get("username") if isinstance(user, Mapping) else None,
            parts=parts,
            raw=dict(payload),
        )


__all__ = ["ChapterStub", "ImageAsset", "ProcessedChapter", "StoryMetadata"]
