from __future__ import annotations

from story_epub_maker.ingest import ChapterStub, StoryMetadata


def test_metadata_from_api_payload():
    payload = {
        "id": "77",
        "title": "Story",
        "description": "About",
        "cover": "https://img/cover.jpg",
        "language": {"id": 17},
        "user": {"username": "writer"},
        "parts": [{"id": 5, "title": "One"}, {"title": "no id"}, {"id": "6"}],
    }

    metadata = StoryMetadata.from_api(77, payload)

    assert metadata.id == 77
    assert metadata.title == "Story"
    assert metadata.cover == "https://img/cover.jpg"
    assert metadata.language_id == 17
    assert metadata.author == "writer"
    assert metadata.parts == [ChapterStub(5, "One"), ChapterStub(6, None)]
    assert metadata.raw["description"] == "About"


def test_metadata_without_optional_fields():
    metadata = StoryMetadata.from_api(3, {})

    assert metadata.id == 3
    assert metadata.title is None
    assert metadata.language_id is None
    assert metadata.author is None
    assert metadata.parts is None
