"""Base API client interface."""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod

import aiohttp

from ..core.models import Channel, Livestream, StreamPlatform, TopStreamQuery, VodDetails, VodQuery

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404


class ApiStatusError(Exception):
    """An API responded with an HTTP status the client can't handle."""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(message or f"HTTP {status}")
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == HTTP_NOT_FOUND


async def safe_json(resp: aiohttp.ClientResponse) -> dict | list | None:
    """Safely parse JSON from response, returning None on error.

    This handles HTML error pages (ContentTypeError), malformed JSON
    (JSONDecodeError) and empty responses.
    """
    try:
        return await resp.json()
    except (aiohttp.ContentTypeError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to parse JSON response: {e}")
        return None


class BaseApiClient(ABC):
    """Abstract base class for streaming platform API clients."""

    def __init__(self) -> None:
        self._sessions: dict[asyncio.AbstractEventLoop, aiohttp.ClientSession] = {}
        self._sessions_lock = threading.Lock()

    @property
    @abstractmethod
    def platform(self) -> StreamPlatform:
        """Get the platform this client handles."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the display name for this platform."""
        ...

    @property
    def vod_types(self) -> tuple[str, ...]:
        """VOD type filters understood by get_vods(); empty if VODs are unsupported."""
        return ()

    @property
    def has_vod_support(self) -> bool:
        return bool(self.vod_types)

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session for the running event loop.

        Every AsyncWorker runs its own loop, and an aiohttp session only works
        on the loop it was created on, so sessions are kept per loop.
        """
        loop = asyncio.get_running_loop()
        with self._sessions_lock:
            session = self._sessions.get(loop)
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=30)
                connector = aiohttp.TCPConnector(limit=50)
                session = aiohttp.ClientSession(timeout=timeout, connector=connector)
                self._sessions[loop] = session
        return session

    async def close(self) -> None:
        """Close the HTTP session of the running event loop."""
        with self._sessions_lock:
            session = self._sessions.pop(asyncio.get_running_loop(), None)
        if session and not session.closed:
            await session.close()
            # Let underlying connections finish closing
            await asyncio.sleep(0.1)

    def reset_session(self) -> None:
        """Forget sessions whose event loop has been closed.

        Sessions of loops that are still running belong to other workers and
        are left alone.
        """
        with self._sessions_lock:
            for loop in [loop for loop in self._sessions if loop.is_closed()]:
                del self._sessions[loop]

    @abstractmethod
    async def is_authorized(self) -> bool:
        """Check if the client is authorized."""
        ...

    @abstractmethod
    async def authorize(self) -> bool:
        """Authorize the client. Returns True on success."""
        ...

    @abstractmethod
    async def get_channel_info(self, channel_id: str) -> Channel | None:
        """
        Get information about a channel.
        Returns None if the channel doesn't exist.
        """
        ...

    @abstractmethod
    async def get_livestream(self, channel: Channel) -> Livestream:
        """
        Get the current livestream status for a channel.
        Always returns a Livestream object, with live=False if not streaming.
        """
        ...

    @abstractmethod
    async def get_livestreams(self, channels: list[Channel]) -> list[Livestream]:
        """
        Get livestream status for multiple channels in as few requests as possible.

        Returns one Livestream per channel. A channel whose status could not be
        fetched gets a Livestream with error_message set.
        """
        ...

    async def get_followed_channels(self, user_id: str | None = None) -> list[Channel]:
        """
        Get channels followed by a user.
        Not all platforms support this.
        """
        raise NotImplementedError(f"{self.name} does not support importing followed channels")

    async def get_top_streams(self, query: TopStreamQuery) -> list[Livestream]:
        """
        Get a page of top live streams, optionally filtered by game.
        Not all platforms support this.
        """
        raise NotImplementedError(f"{self.name} does not support top streams discovery")

    async def get_top_games(self, limit: int = 25) -> list[dict[str, str]]:
        """
        Get the most watched games/categories.
        Not all platforms support this.
        """
        raise NotImplementedError(f"{self.name} does not support top games")

    async def search_channels(self, query: str, limit: int = 25) -> list[Channel]:
        """
        Search for channels by name.
        Not all platforms support this.
        """
        raise NotImplementedError(f"{self.name} does not support channel search")

    async def search_games(self, query: str, limit: int = 25) -> list[dict[str, str]]:
        """
        Search for games/categories by name.
        Not all platforms support this.
        """
        raise NotImplementedError(f"{self.name} does not support game search")

    async def get_vods(self, query: VodQuery) -> list[VodDetails]:
        """
        Get one page of VODs for a stream.

        Raises ApiStatusError with a 404 status if the stream doesn't exist.
        Not all platforms support this.
        """
        raise NotImplementedError(f"{self.name} does not support VODs")
