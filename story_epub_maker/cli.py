"""Command line interface for Story EPUB Maker."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

import aiohttp

from .client import DEFAULT_TIMEOUT, WattpadClient
from .converter import (
    CONCURRENCY_ENV,
    DEFAULT_CONCURRENCY,
    ConversionOptions,
    ConversionResult,
    StoryConverter,
    default_concurrency,
)
from .errors import StoryEpubError
from . import __version__

PASSWORD_ENV = "WATTPAD_PASSWORD"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="story-epub",
        description="Download a story and package it as an EPUB book.",
    )
    parser.add_argument("story_id", type=int, help="Numeric id of the story to download")
    destination = parser.add_mutually_exclusive_group()
    destination.add_argument(
        "--out-dir",
        dest="output_dir",
        type=Path,
        default=Path("."),
        help="Directory for the generated '<id>-<title>.epub' (default: current directory)",
    )
    destination.add_argument("--out", dest="output_file", type=Path, help="Exact output file path")
    parser.add_argument(
        "--no-images",
        dest="embed_images",
        action="store_false",
        help="Keep remote image links instead of embedding the images",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help=(
            "Maximum concurrent chapters, and concurrent image downloads per chapter "
            f"(default: ${CONCURRENCY_ENV} or {DEFAULT_CONCURRENCY})"
        ),
    )
    parser.add_argument(
        "--field",
        dest="extra_fields",
        action="append",
        default=[],
        metavar="FIELD",
        help="Extra story metadata field to request (repeatable)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT.total,
        help="Total timeout in seconds for each HTTP request",
    )
    parser.add_argument(
        "--username",
        help=f"Log in before downloading; the password is read from ${PASSWORD_ENV}",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors")
    parser.add_argument("--version", action="version", version=f"story-epub {__version__}")
    return parser


def configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def create_options(namespace: argparse.Namespace) -> ConversionOptions:
    output_dir = None if namespace.output_file is not None else namespace.output_dir
    concurrency = namespace.concurrency
    if concurrency is None:
        concurrency = default_concurrency()
    return ConversionOptions(
        story_id=namespace.story_id,
        embed_images=namespace.embed_images,
        concurrency=concurrency,
        output_dir=output_dir,
        output_file=namespace.output_file,
        extra_fields=tuple(namespace.extra_fields),
    )


async def run(namespace: argparse.Namespace) -> ConversionResult:
    options = create_options(namespace)
    timeout = aiohttp.ClientTimeout(total=namespace.timeout)
    async with WattpadClient(timeout=timeout) as client:
        if namespace.username:
            password = os.getenv(PASSWORD_ENV)
            if not password:
                raise ValueError(f"${PASSWORD_ENV} must be set when --username is given")
            await client.authenticate(namespace.username, password)
        try:
            return await StoryConverter(client).convert(options)
        finally:
            if client.is_authenticated:
                await client.deauthenticate()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    try:
        result = asyncio.run(run(args))
    except (StoryEpubError, OSError, ValueError) as exc:
        logging.getLogger(__name__).error(str(exc))
        return 1

    print(f"Wrote {result.chapter_count} chapters to {result.output_path}")
    if result.dropped_chapters:
        print(f"Skipped {len(result.dropped_chapters)} chapters missing from the download")
    if result.failed_chapters:
        print(f"Skipped {len(result.failed_chapters)} chapters that could not be processed")
    print(f"Elapsed: {result.elapsed_seconds:.2f}s")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
