"""Exception types raised by the story conversion pipeline."""

from __future__ import annotations

from typing import Optional


class StoryEpubError(Exception):
    """Base class for every error raised by Story EPUB Maker."""


class AuthenticationFailed(StoryEpubError):
    def __init__(self, username: str = "") -> None:
        super().__init__("Authentication failed: invalid username or password")
        self.username = username


class NotLoggedIn(StoryEpubError):
    def __init__(self) -> None:
        super().__init__("User is not logged in")


class LogoutFailed(StoryEpubError):
    def __init__(self) -> None:
        super().__init__("Failed to log out")


class MetadataFetchFailed(StoryEpubError):
    def __init__(self, story_id: int, reason: str = "") -> None:
        message = f"Failed to fetch metadata for story {story_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.story_id = story_id


class StoryNotFound(MetadataFetchFailed):
    def __init__(self, story_id: int) -> None:
        super().__init__(story_id, "story could not be found")


class DownloadFailed(StoryEpubError):
    def __init__(self, story_id: int, reason: str = "") -> None:
        message = f"Failed to download content for story {story_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.story_id = story_id


class ChapterProcessingFailed(StoryEpubError):
    """A single chapter could not be rewritten into strict XHTML.

    ``position`` is the ``(line, column)`` reported by the strict parser when
    one is available.
    """

    def __init__(
        self,
        reason: str,
        *,
        index: Optional[int] = None,
        title: Optional[str] = None,
        position: Optional[tuple[int, int]] = None,
    ) -> None:
        where = f" at line {position[0]}, column {position[1]}" if position else ""
        label = f"chapter {index}" if index is not None else "chapter"
        if title:
            label = f"{label} ({title!r})"
        super().__init__(f"Failed to process {label}{where}: {reason}")
        self.reason = reason
        self.index = index
        self.title = title
        self.position = position

    def for_chapter(self, index: int, title: str) -> "ChapterProcessingFailed":
        """Return a copy of this error labelled with the chapter it came from."""

        return ChapterProcessingFailed(
            self.reason, index=index, title=title, position=self.position
        )


class EpubGenerationFailed(StoryEpubError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to generate the EPUB file: {reason}")
        self.reason = reason


__all__ = [
    "AuthenticationFailed",
    "ChapterProcessingFailed",
    "DownloadFailed",
    "EpubGenerationFailed",
    "LogoutFailed",
    "MetadataFetchFailed",
    "NotLoggedIn",
    "StoryEpubError",
    "StoryNotFound",
]
