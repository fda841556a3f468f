from __future__ import annotations

import asyncio
import io
import sys
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from story_epub_maker.ingest import ChapterStub, StoryMetadata  # noqa: E402


class FakeClient:
    """In-memory stand-in for the platform client."""

    def __init__(
        self,
        *,
        metadata: Optional[StoryMetadata] = None,
        zip_bytes: bytes = b"",
        images: Optional[Dict[str, Union[bytes, Exception, None]]] = None,
        delays: Optional[Dict[str, float]] = None,
        metadata_error: Optional[Exception] = None,
        zip_error: Optional[Exception] = None,
    ) -> None:
        self.metadata = metadata
        self.zip_bytes = zip_bytes
        self.images = images or {}
        self.delays = delays or {}
        self.metadata_error = metadata_error
        self.zip_error = zip_error
        self.requested: List[str] = []
        self.requested_fields: List[str] = []
        self.zip_requests = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_metadata(self, story_id, fields):
        self.requested_fields = list(fields)
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.metadata

    async def fetch_content_zip(self, story_id):
        self.zip_requests += 1
        if self.zip_error is not None:
            raise self.zip_error
        return self.zip_bytes

    async def fetch_bytes(self, url):
        self.requested.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
        finally:
            self.in_flight -= 1
        result = self.images.get(url)
        if isinstance(result, Exception):
            raise result
        return result


def build_zip(entries: Iterable[Tuple[str, Union[str, bytes]]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries:
            archive.writestr(name, content)
    return buffer.getvalue()


def build_metadata(parts, **overrides) -> StoryMetadata:
    values = dict(
        id=123,
        title="A Story",
        description="Once upon a time",
        cover=None,
        language_id=1,
        author="someone",
        parts=None if parts is None else [ChapterStub(id=part_id, title=title) for part_id, title in parts],
    )
    values.update(overrides)
    return StoryMetadata(**values)


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def make_metadata():
    return build_metadata
