"""Story EPUB Maker package.

Downloads a chaptered story and packages it, images included, as an EPUB.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .converter import ConversionOptions, ConversionResult, StoryConverter

__all__ = [
    "ConversionOptions",
    "ConversionResult",
    "StoryConverter",
    "__version__",
]
