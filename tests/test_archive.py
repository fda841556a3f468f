from __future__ import annotations

import zipfile

import pytest

from story_epub_maker.ingest.archive import ArchiveExtractor


def test_extract_keeps_only_integer_named_entries(make_zip):
    data = make_zip([("42", "<p>forty two</p>"), ("abc", "<p>ignored</p>"), ("7", "<p>seven</p>")])

    chapters = ArchiveExtractor().extract(data)

    assert chapters == {42: "<p>forty two</p>", 7: "<p>seven</p>"}


def test_extract_uses_the_last_path_segment(make_zip):
    data = make_zip([("story/parts/13", "<p>nested</p>"), ("story/parts/", ""), ("13.html", "x")])

    chapters = ArchiveExtractor().extract(data)

    assert chapters == {13: "<p>nested</p>"}


def test_duplicate_ids_keep_the_last_entry(make_zip):
    data = make_zip([("a/5", "first"), ("b/5", "second")])

    assert ArchiveExtractor().extract(data) == {5: "second"}


def test_corrupt_archive_raises():
    with pytest.raises(zipfile.BadZipFile):
        ArchiveExtractor().extract(b"definitely not a zip")


def test_non_utf8_chapter_raises(make_zip):
    data = make_zip([("9", b"\xff\xfe\xfa")])

    with pytest.raises(UnicodeDecodeError):
        ArchiveExtractor().extract(data)
