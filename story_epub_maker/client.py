"""Asynchronous client for the story platform's HTTP API."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence

import aiohttp
from yarl import URL

from .errors import (
    AuthenticationFailed,
    DownloadFailed,
    LogoutFailed,
    MetadataFetchFailed,
    NotLoggedIn,
    StoryNotFound,
)
from .ingest import StoryMetadata

LOGGER = logging.getLogger(__name__)

API_BASE = "https://www.wattpad.com"
DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=60)
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SESSION_COOKIE = "token"


class ContentClient(Protocol):
    """The subset of the platform API the conversion pipeline depends on."""

    async def fetch_metadata(self, story_id: int, fields: Sequence[str]) -> StoryMetadata:
        ...

    async def fetch_content_zip(self, story_id: int) -> bytes:
        ...

    async def fetch_bytes(self, url: str) -> Optional[bytes]:
        """Return the body at *url*, or ``None`` when it could not be fetched."""
        ...


class WattpadClient:
    """:class:`ContentClient` backed by a shared :class:`aiohttp.ClientSession`.

    Either pass an existing session, or use the client as an async context
    manager and it will open and close its own.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        base_url: str = API_BASE,
        timeout: aiohttp.ClientTimeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session
        self._owns_session = False
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def __aenter__(self) -> "WattpadClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("WattpadClient has no open session; use 'async with'")
        return self._session

    # Authentication ----------------------------------------------------------------
    @property
    def is_authenticated(self) -> bool:
        if self._session is None:
            return False
        cookies = self._session.cookie_jar.filter_cookies(URL(self.base_url))
        return SESSION_COOKIE in cookies

    async def authenticate(self, username: str, password: str) -> None:
        LOGGER.info("Logging in as %s", username)
        url = f"{self.base_url}/auth/login"
        try:
            async with self.session.post(
                url,
                data={"username": username, "password": password},
                allow_redirects=False,
            ) as response:
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AuthenticationFailed(username) from exc
        if status >= 400 or not self.is_authenticated:
            LOGGER.debug("Login rejected with HTTP %d", status)
            raise AuthenticationFailed(username)

    async def deauthenticate(self) -> None:
        if not self.is_authenticated:
            raise NotLoggedIn()
        LOGGER.info("Logging out")
        try:
            async with self.session.get(f"{self.base_url}/logout", allow_redirects=False) as response:
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise LogoutFailed() from exc
        if status >= 400:
            raise LogoutFailed()
        self.session.cookie_jar.clear()

    # Content -----------------------------------------------------------------------
    async def fetch_metadata(self, story_id: int, fields: Sequence[str]) -> StoryMetadata:
        url = f"{self.base_url}/api/v3/stories/{story_id}"
        params = {"fields": ",".join(fields)}
        try:
            async with self.session.get(url, params=params) as response:
                if response.status == 404:
                    raise StoryNotFound(story_id)
                if response.status >= 400:
                    raise MetadataFetchFailed(story_id, f"HTTP {response.status}")
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise MetadataFetchFailed(story_id, str(exc)) from exc
        if not isinstance(payload, dict):
            raise MetadataFetchFailed(story_id, "unexpected response payload")
        try:
            return StoryMetadata.from_api(story_id, payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise MetadataFetchFailed(story_id, f"malformed metadata: {exc}") from exc

    async def fetch_content_zip(self, story_id: int) -> bytes:
        url = f"{self.base_url}/apiv2/"
        params = {"m": "storytext", "group_id": str(story_id), "output": "zip"}
        try:
            async with self.session.get(url, params=params) as response:
                if response.status >= 400:
                    raise DownloadFailed(story_id, f"HTTP {response.status}")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DownloadFailed(story_id, str(exc)) from exc

    async def fetch_bytes(self, url: str) -> Optional[bytes]:
        try:
            async with self.session.get(url) as response:
                if not 200 <= response.status < 300:
                    LOGGER.warning(
                        "Failed to download %s (HTTP %d); using a placeholder",
                        url,
                        response.status,
                    )
                    return None
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            # ValueError covers hosts that fail IDNA encoding.
            LOGGER.warning("Failed to download %s (%s); using a placeholder", url, exc)
            return None


__all__ = ["API_BASE", "ContentClient", "WattpadClient"]
