"""Strict XML re-encoding of rewritten chapter fragments."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape

from ..errors import ChapterProcessingFailed

SYNTHETIC_ROOT = "root"


def reencode_fragment(fragment: str) -> str:
    """Parse *fragment* as strict XML and serialize it again.

    The fragment may have several top-level elements, so it is wrapped in a
    synthetic root that is dropped from the output. Comments and processing
    instructions survive the round trip.
    """

    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        parser.feed(f"<{SYNTHETIC_ROOT}>{fragment}</{SYNTHETIC_ROOT}>")
        root = parser.close()
    except ET.ParseError as exc:
        line, column = exc.position
        raise ChapterProcessingFailed(
            f"XML parsing error: {exc}", position=(line, column)
        ) from exc

    parts = [escape(root.text or "")]
    try:
        # tostring() includes each child's tail text.
        parts.extend(ET.tostring(child, encoding="unicode") for child in root)
    except RecursionError as exc:
        raise ChapterProcessingFailed("markup is nested too deeply to serialize") from exc
    return "".join(parts)


__all__ = ["reencode_fragment", "SYNTHETIC_ROOT"]
