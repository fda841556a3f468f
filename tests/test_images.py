"""Tests for image discovery, sniffing and placement."""

from __future__ import annotations

import asyncio

import pytest

from story_epub_maker import images
from story_epub_maker.images import (
    PLACEHOLDER,
    PLACEHOLDER_EPUB_PATH,
    ImagePipeline,
    extension_for,
    infer_extension,
    is_valid_image_url,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
GIF_BYTES = b"GIF89a" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


@pytest.mark.parametrize(
    "data, expected",
    [
        (PNG_BYTES, "png"),
        (JPEG_BYTES, "jpg"),
        (GIF_BYTES, "gif"),
        (b"RIFF\x00\x00\x00\x00WEBP", None),
        (b"", None),
        (b"\x89PNG", None),
    ],
)
def test_infer_extension(data, expected):
    assert infer_extension(data) == expected


def test_unknown_data_defaults_to_jpg():
    assert extension_for(b"<svg/>") == "jpg"
    assert extension_for(PNG_BYTES) == "png"


def test_placeholder_is_a_jpeg():
    assert PLACEHOLDER.epub_path == PLACEHOLDER_EPUB_PATH
    assert infer_extension(PLACEHOLDER.data) == "jpg"


@pytest.mark.parametrize(
    "url, valid",
    [
        ("https://img.example.com/a.png", True),
        ("http://example.com/a", True),
        ("not a url", False),
        ("/relative/path.png", False),
        ("data:image/png;base64,AAAA", False),
        ("ftp://example.com/a.png", False),
        ("", False),
        ("http://" + "a" * 64 + ".com/a.png", False),
    ],
)
def test_is_valid_image_url(url, valid):
    assert is_valid_image_url(url) is valid


def test_resolve_maps_successes_and_failures(fake_client):
    client = fake_client(
        images={
            "https://x/a.png": PNG_BYTES,
            "https://x/missing.jpg": None,
            "https://x/b.gif": GIF_BYTES,
        }
    )
    html = (
        '<p><img src="https://x/a.png"></p>'
        '<img src="https://x/missing.jpg">'
        '<img src="not a url">'
        '<img src="https://x/b.gif">'
    )

    resolution = asyncio.run(ImagePipeline(client, concurrency=2).resolve(3, html))

    assert resolution.image_map == {
        "https://x/a.png": "images/chapter_3/image_0.png",
        "https://x/missing.jpg": PLACEHOLDER_EPUB_PATH,
        "not a url": PLACEHOLDER_EPUB_PATH,
        "https://x/b.gif": "images/chapter_3/image_1.gif",
    }
    assert [asset.epub_path for asset in resolution.assets] == [
        "images/chapter_3/image_0.png",
        "images/chapter_3/image_1.gif",
    ]
    assert resolution.assets[0].data == PNG_BYTES
    assert resolution.placeholder_count == 2
    assert "not a url" not in client.requested


def test_numbering_follows_document_order_not_completion(fake_client):
    client = fake_client(
        images={"https://x/slow": JPEG_BYTES, "https://x/fast": PNG_BYTES},
        delays={"https://x/slow": 0.05},
    )
    html = '<img src="https://x/slow"><img src="https://x/fast">'

    resolution = asyncio.run(ImagePipeline(client, concurrency=4).resolve(1, html))

    assert resolution.image_map["https://x/slow"] == "images/chapter_1/image_0.jpg"
    assert resolution.image_map["https://x/fast"] == "images/chapter_1/image_1.png"


def test_repeated_urls_are_fetched_once(fake_client):
    client = fake_client(images={"https://x/a.png": PNG_BYTES})
    html = '<img src="https://x/a.png"><img src="https://x/a.png"><img src="https://x/a.png">'

    resolution = asyncio.run(ImagePipeline(client).resolve(2, html))

    assert client.requested == ["https://x/a.png"]
    assert len(resolution.assets) == 1


def test_in_flight_downloads_are_bounded(fake_client):
    urls = [f"https://x/{n}.png" for n in range(8)]
    client = fake_client(
        images={url: PNG_BYTES for url in urls},
        delays={url: 0.01 for url in urls},
    )
    html = "".join(f'<img src="{url}">' for url in urls)

    resolution = asyncio.run(ImagePipeline(client, concurrency=3).resolve(1, html))

    assert client.max_in_flight <= 3
    assert len(resolution.assets) == 8


def test_chapter_without_images_makes_no_requests(fake_client):
    client = fake_client()

    resolution = asyncio.run(ImagePipeline(client).resolve(1, "<p>just text</p>"))

    assert resolution.image_map == {}
    assert resolution.assets == []
    assert client.requested == []


def test_download_errors_become_placeholders(fake_client):
    client = fake_client(
        images={
            "https://x/ok.png": PNG_BYTES,
            "https://x/broken.png": UnicodeError("label empty or too long"),
        }
    )
    html = '<img src="https://x/broken.png"><img src="https://x/ok.png">'

    resolution = asyncio.run(ImagePipeline(client).resolve(1, html))

    assert resolution.image_map == {
        "https://x/broken.png": PLACEHOLDER_EPUB_PATH,
        "https://x/ok.png": "images/chapter_1/image_0.png",
    }
    assert [asset.epub_path for asset in resolution.assets] == ["images/chapter_1/image_0.png"]


def test_concurrency_must_be_positive(fake_client):
    with pytest.raises(ValueError):
        ImagePipeline(fake_client(), concurrency=0)


def test_media_type_for_paths():
    assert images.media_type_for("images/chapter_1/image_0.png") == "image/png"
    assert images.media_type_for("images/placeholder.jpg") == "image/jpeg"
    assert images.media_type_for("images/unknown.bin") == "image/jpeg"
