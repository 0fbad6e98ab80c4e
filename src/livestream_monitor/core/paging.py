"""Page-at-a-time fetchers for VOD and top-stream browsing.

Each page request is independent: moving to page N always issues a fresh
request with skip = (N - 1) * page_size, nothing is cached, and the item list
is cleared before the request goes out.
"""

import logging
from collections.abc import Callable
from typing import Generic, Optional, TypeVar

from ..api.base import ApiStatusError, BaseApiClient
from .launcher import is_absolute_url
from .models import Livestream, TopStreamQuery, VodDetails, VodQuery

logger = logging.getLogger(__name__)

VOD_TILES_PER_PAGE = 15
TOP_STREAMS_PER_PAGE = 25

T = TypeVar("T")


class Pager(Generic[T]):
    """Base class for a fixed-size paged list backed by an API call."""

    def __init__(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = page_size
        self._page = 1
        self._items: list[T] = []
        self._loading = False

        self._on_items_changed: list[Callable[[list[T]], None]] = []
        self._on_loading_changed: list[Callable[[bool], None]] = []
        self._on_message: list[Callable[[str, str], None]] = []

    @property
    def page(self) -> int:
        return self._page

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def skip(self) -> int:
        """Number of items before the current page."""
        return (self._page - 1) * self.page_size

    @property
    def can_previous(self) -> bool:
        return self._page > 1 and not self._loading

    @property
    def can_next(self) -> bool:
        # A short page means there is nothing after it
        return not self._loading and len(self._items) == self.page_size

    def on_items_changed(self, callback: Callable[[list[T]], None]) -> None:
        self._on_items_changed.append(callback)

    def on_loading_changed(self, callback: Callable[[bool], None]) -> None:
        self._on_loading_changed.append(callback)

    def on_message(self, callback: Callable[[str, str], None]) -> None:
        """Register a callback for user-facing messages (title, text)."""
        self._on_message.append(callback)

    async def load(self) -> None:
        """Fetch the current page, replacing the item list."""
        if not self._can_load():
            return

        self._set_loading(True)
        self._set_items([])
        try:
            items = await self._fetch(self.skip, self.page_size)
        except Exception as e:
            logger.warning(f"Page {self._page} request failed: {e}")
            self._fire_message("Error", self._error_message(e))
        else:
            self._set_items(list(items))
        finally:
            self._set_loading(False)

    async def go_to_page(self, page: int) -> None:
        if page < 1:
            raise ValueError("page must be at least 1")
        self._page = page
        await self.load()

    async def next_page(self) -> bool:
        """Move to the next page. Returns False if there is no next page."""
        if not self.can_next:
            return False
        await self.go_to_page(self._page + 1)
        return True

    async def previous_page(self) -> bool:
        """Move to the previous page. Returns False if already on page 1."""
        if not self.can_previous:
            return False
        await self.go_to_page(self._page - 1)
        return True

    def _can_load(self) -> bool:
        return True

    async def _fetch(self, skip: int, take: int) -> list[T]:
        raise NotImplementedError

    def _error_message(self, error: Exception) -> str:
        return f"An error occurred while loading page {self._page}.\n\n{error}"

    def _set_items(self, items: list[T]) -> None:
        self._items = items
        for callback in self._on_items_changed:
            try:
                callback(list(items))
            except Exception as e:
                logger.error(f"Items changed callback error: {e}")

    def _set_loading(self, loading: bool) -> None:
        self._loading = loading
        for callback in self._on_loading_changed:
            try:
                callback(loading)
            except Exception as e:
                logger.error(f"Loading changed callback error: {e}")

    def _fire_message(self, title: str, text: str) -> None:
        for callback in self._on_message:
            try:
                callback(title, text)
            except Exception as e:
                logger.error(f"Message callback error: {e}")


class VodPager(Pager[VodDetails]):
    """VOD history of a single stream, VOD_TILES_PER_PAGE at a time."""

    def __init__(self, client: BaseApiClient, page_size: int = VOD_TILES_PER_PAGE) -> None:
        super().__init__(page_size)
        self.client = client
        self._stream_id = ""
        self._vod_type: Optional[str] = client.vod_types[0] if client.vod_types else None
        self._selected: Optional[VodDetails] = None
        self.vod_url = ""

    @property
    def stream_id(self) -> str:
        return self._stream_id

    @property
    def vod_types(self) -> tuple[str, ...]:
        return self.client.vod_types

    @property
    def vod_type(self) -> Optional[str]:
        return self._vod_type

    @property
    def selected(self) -> Optional[VodDetails]:
        return self._selected

    @property
    def can_open_vod(self) -> bool:
        return is_absolute_url(self.vod_url)

    async def set_stream_id(self, stream_id: str) -> None:
        """Switch to another stream's VODs, starting again at page 1."""
        stream_id = stream_id.strip()
        if stream_id == self._stream_id:
            return
        self._stream_id = stream_id
        await self.go_to_page(1)

    async def set_vod_type(self, vod_type: str) -> None:
        """Filter by another VOD type, starting again at page 1."""
        if vod_type == self._vod_type:
            return
        if vod_type not in self.client.vod_types:
            raise ValueError(f"Unsupported VOD type: {vod_type}")
        self._vod_type = vod_type
        await self.go_to_page(1)

    def select(self, vod: Optional[VodDetails]) -> None:
        """Select a VOD; its URL becomes the one "open VOD" launches."""
        self._selected = vod
        if vod is not None:
            self.vod_url = vod.url

    def _can_load(self) -> bool:
        return bool(self._stream_id)

    def build_query(self) -> VodQuery:
        return VodQuery(
            stream_id=self._stream_id,
            vod_types=(self._vod_type,) if self._vod_type else (),
            skip=self.skip,
            take=self.page_size,
        )

    async def _fetch(self, skip: int, take: int) -> list[VodDetails]:
        return await self.client.get_vods(self.build_query())

    def _error_message(self, error: Exception) -> str:
        if isinstance(error, ApiStatusError) and error.not_found:
            return f"Unknown stream name '{self._stream_id}'."
        return f"An error occurred attempting to get VODs for '{self._stream_id}'.\n\n{error}"


class TopStreamsPager(Pager[Livestream]):
    """Most watched live streams, optionally filtered by game."""

    def __init__(self, client: BaseApiClient, page_size: int = TOP_STREAMS_PER_PAGE) -> None:
        super().__init__(page_size)
        self.client = client
        self._game_name: Optional[str] = None

    @property
    def game_name(self) -> Optional[str]:
        return self._game_name

    async def set_game_name(self, game_name: Optional[str]) -> None:
        """Filter by game (None or empty for all games), starting again at page 1."""
        game_name = (game_name or "").strip() or None
        if game_name == self._game_name:
            return
        self._game_name = game_name
        await self.go_to_page(1)

    def build_query(self) -> TopStreamQuery:
        return TopStreamQuery(game_name=self._game_name, skip=self.skip, take=self.page_size)

    async def _fetch(self, skip: int, take: int) -> list[Livestream]:
        return await self.client.get_top_streams(self.build_query())

    def _error_message(self, error: Exception) -> str:
        if isinstance(error, ApiStatusError) and error.not_found:
            return f"Unknown game '{self._game_name}'."
        if isinstance(error, PermissionError):
            return "Log in to Twitch in Preferences to browse top streams."
        return f"An error occurred attempting to get top Twitch streams.\n\n{error}"
