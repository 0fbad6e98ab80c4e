"""Twitch API client (Helix + public GraphQL)."""

import asyncio
import logging
import webbrowser
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlencode

import aiohttp

from ..core.models import (
    Channel,
    Livestream,
    StreamPlatform,
    TopStreamQuery,
    VodDetails,
    VodQuery,
)
from ..core.settings import TwitchSettings
from .base import HTTP_NOT_FOUND, ApiStatusError, BaseApiClient, safe_json
from .oauth_server import OAuthServer

logger = logging.getLogger(__name__)

# Twitch application client ID for OAuth
# Using Streamlink Twitch GUI's registered app (open source, widely used)
# Users can override with their own in settings
DEFAULT_CLIENT_ID = "phiay4sq36lfv9zu7cbqwz2ndnesfd8"

# For GraphQL queries (no auth required)
GQL_CLIENT_ID = "kimne78kx3ncx6brgo4mv6wki5h1ko"

OAUTH_SCOPES = "user:read:follows"
OAUTH_PORT = 65432

# Channels per batched GraphQL status query
STATUS_BATCH_SIZE = 35

# Helix and GraphQL both cap page sizes at 100
MAX_PAGE_SIZE = 100

VOD_TYPES = ("archive", "highlight", "upload")

# Shared GraphQL selection for status queries
USER_STATUS_FRAGMENT = """
    id
    login
    displayName
    roles {
        isPartner
    }
    stream {
        id
        title
        viewersCount
        createdAt
        previewImageURL(width: 320, height: 180)
        game {
            name
        }
    }
    lastBroadcast {
        startedAt
    }
"""

VIDEOS_QUERY = """
query GetVideos($login: String!, $first: Int!, $after: Cursor, $type: BroadcastType) {
    user(login: $login) {
        login
        videos(first: $first, after: $after, type: $type, sort: TIME) {
            edges {
                cursor
                node {
                    id
                    title
                    lengthSeconds
                    viewCount
                    createdAt
                    previewThumbnailURL(width: 320, height: 180)
                }
            }
            pageInfo {
                hasNextPage
            }
        }
    }
}
"""


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse a Twitch ISO-8601 timestamp ("2024-01-01T12:00:00Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class TwitchApiClient(BaseApiClient):
    """Client for the Twitch Helix and GraphQL APIs."""

    BASE_URL = "https://api.twitch.tv/helix"
    AUTH_URL = "https://id.twitch.tv/oauth2"
    GQL_URL = "https://gql.twitch.tv/gql"

    def __init__(self, settings: TwitchSettings) -> None:
        super().__init__()
        self.settings = settings
        self._user_cache: dict[str, dict[str, Any]] = {}
        self._current_user_id: Optional[str] = None

    @property
    def platform(self) -> StreamPlatform:
        return StreamPlatform.TWITCH

    @property
    def name(self) -> str:
        return "Twitch"

    @property
    def vod_types(self) -> tuple[str, ...]:
        return VOD_TYPES

    @property
    def client_id(self) -> str:
        """Get the client ID to use."""
        return self.settings.client_id or DEFAULT_CLIENT_ID

    def _get_headers(self) -> dict[str, str]:
        """Get headers for Helix requests."""
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self.settings.access_token}",
        }

    def _get_gql_headers(self) -> dict[str, str]:
        """Get headers for GraphQL requests (no auth required for public data)."""
        return {
            "Client-ID": GQL_CLIENT_ID,
            "Content-Type": "application/json",
        }

    async def _gql(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Run a GraphQL query and return its "data" object.

        Raises ApiStatusError on a non-200 response.
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        async with self.session.post(
            self.GQL_URL,
            headers=self._get_gql_headers(),
            json=payload,
        ) as resp:
            if resp.status != 200:
                raise ApiStatusError(resp.status, f"GraphQL query failed with status {resp.status}")
            data = await safe_json(resp)

        if not isinstance(data, dict):
            return {}
        if data.get("errors"):
            logger.warning(f"GraphQL errors: {data['errors']}")
        return data.get("data") or {}

    async def _helix_get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """GET a Helix endpoint and return the decoded body.

        Raises PermissionError on 401 and ApiStatusError on any other non-200.
        """
        async with self.session.get(
            f"{self.BASE_URL}/{path}",
            headers=self._get_headers(),
            params=params or {},
        ) as resp:
            if resp.status == 401:
                raise PermissionError("Twitch authorization required")
            if resp.status != 200:
                raise ApiStatusError(resp.status, f"Helix /{path} failed with status {resp.status}")
            data = await safe_json(resp)
        return data if isinstance(data, dict) else {}

    async def _helix_paged(
        self,
        path: str,
        params: dict[str, Any],
        skip: int = 0,
        take: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Collect items from a cursor-paginated Helix endpoint.

        Walks cursors until skip + take items have been seen (or the results
        run out when take is None) and returns items[skip:skip + take].
        """
        wanted = None if take is None else skip + take
        items: list[dict[str, Any]] = []
        cursor: Optional[str] = None

        while wanted is None or len(items) < wanted:
            page_params = dict(params)
            remaining = MAX_PAGE_SIZE if wanted is None else wanted - len(items)
            page_params["first"] = min(remaining, MAX_PAGE_SIZE)
            if cursor:
                page_params["after"] = cursor

            data = await self._helix_get(path, page_params)
            page = data.get("data", [])
            items.extend(page)

            cursor = data.get("pagination", {}).get("cursor")
            if not cursor or not page:
                break

        return items[skip:wanted]

    async def is_authorized(self) -> bool:
        """Check if we have a valid access token."""
        if not self.settings.access_token:
            return False

        try:
            async with self.session.get(
                f"{self.AUTH_URL}/validate",
                headers={"Authorization": f"OAuth {self.settings.access_token}"},
            ) as resp:
                if resp.status == 200:
                    data = await resp.json()
                    self._current_user_id = data.get("user_id")
                    return True
                return False
        except aiohttp.ClientError:
            return False

    async def authorize(self) -> bool:
        """
        Authorize using client credentials flow.
        Requires client_id and client_secret to be set.
        """
        if not self.settings.client_id or not self.settings.client_secret:
            return False

        try:
            async with self.session.post(
                f"{self.AUTH_URL}/token",
                data={
                    "client_id": self.settings.client_id,
                    "client_secret": self.settings.client_secret,
                    "grant_type": "client_credentials",
                },
            ) as resp:
                if resp.status != 200:
                    return False

                data = await resp.json()
                self.settings.access_token = data["access_token"]
                return True
        except (aiohttp.ClientError, KeyError):
            return False

    def get_oauth_url(self, redirect_uri: str, state: Optional[str] = None) -> str:
        """
        Get the OAuth authorization URL for browser-based login.
        Uses Implicit Grant Flow - token is returned in URL fragment.
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "token",
            "scope": OAUTH_SCOPES,
        }
        if state:
            params["state"] = state
        return f"{self.AUTH_URL}/authorize?{urlencode(params)}"

    async def oauth_login(self, timeout: float = 300) -> bool:
        """
        Perform OAuth login flow with local callback server.

        Opens browser to Twitch authorization page and waits for the
        callback with the access token.

        Args:
            timeout: Maximum seconds to wait for authorization.

        Returns:
            True if authorization was successful.
        """
        # Port must match the redirect URI registered for the client ID
        with OAuthServer(port=OAUTH_PORT) as server:
            oauth_url = self.get_oauth_url(server.redirect_uri, state=server.generate_state())
            logger.info("Opening Twitch OAuth page in browser")
            webbrowser.open(oauth_url)

            token = await server.wait_for_token(timeout=timeout)

        if not token:
            logger.error("OAuth login timed out")
            return False

        self.settings.access_token = token
        if not await self.is_authorized():
            logger.error("Token validation failed")
            self.settings.access_token = ""
            return False

        user = await self.get_current_user()
        if user:
            self.settings.login_name = user.get("login", "")
        logger.info("OAuth login successful")
        return True

    async def get_current_user(self) -> Optional[dict[str, Any]]:
        """Get the currently authenticated user."""
        if not await self.is_authorized():
            return None

        try:
            data = await self._helix_get("users")
        except (aiohttp.ClientError, ApiStatusError, PermissionError):
            return None

        users = data.get("data", [])
        if not users:
            return None
        user = users[0]
        self._current_user_id = user["id"]
        return user

    async def _get_user(self, login: str) -> Optional[dict[str, Any]]:
        """Get user info by login name."""
        if login.lower() in self._user_cache:
            return self._user_cache[login.lower()]

        # GraphQL first (no auth required)
        user = await self._get_user_gql(login)
        if user:
            return user

        if not await self.is_authorized():
            return None

        try:
            data = await self._helix_get("users", {"login": login})
        except (aiohttp.ClientError, ApiStatusError, PermissionError):
            return None

        users = data.get("data", [])
        if not users:
            return None
        user = users[0]
        self._user_cache[login.lower()] = user
        return user

    async def _get_user_gql(self, login: str) -> Optional[dict[str, Any]]:
        """Get user info via GraphQL (no auth required)."""
        query = """
        query GetUser($login: String!) {
            user(login: $login) {
                id
                login
                displayName
                broadcasterType
            }
        }
        """

        try:
            data = await self._gql(query, {"login": login})
        except (aiohttp.ClientError, ApiStatusError):
            return None

        user_data = data.get("user")
        if not user_data:
            return None

        # Convert to Helix format
        user = {
            "id": user_data["id"],
            "login": user_data["login"],
            "display_name": user_data["displayName"],
            "broadcaster_type": (user_data.get("broadcasterType") or "").lower(),
        }
        self._user_cache[login.lower()] = user
        return user

    async def _get_streams_gql_batch(self, logins: list[str]) -> dict[str, Optional[dict[str, Any]]]:
        """Get stream info for multiple channels via GraphQL in a single request.

        Returns a mapping of lower-cased login to user data (None for unknown
        users). Raises on request failure.
        """
        if not logins:
            return {}

        # Aliased queries: u0: user(login: "a") { ... } u1: user(login: "b") { ... }
        queries = []
        for i, login in enumerate(logins):
            escaped_login = login.replace("\\", "\\\\").replace('"', '\\"')
            queries.append(f'u{i}: user(login: "{escaped_login}") {{ {USER_STATUS_FRAGMENT} }}')

        query = "query GetStreamsBatch { " + " ".join(queries) + " }"
        result_data = await self._gql(query)

        return {login.lower(): result_data.get(f"u{i}") for i, login in enumerate(logins)}

    @staticmethod
    def _livestream_from_gql(channel: Channel, user_data: dict[str, Any]) -> Livestream:
        """Build a Livestream from a GraphQL user object."""
        roles = user_data.get("roles") or {}
        is_partner = bool(roles.get("isPartner"))

        refreshed = Channel(
            channel_id=channel.channel_id,
            platform=channel.platform,
            display_name=user_data.get("displayName") or channel.display_name,
        )

        stream = user_data.get("stream")
        if stream:
            game = stream.get("game")
            return Livestream(
                channel=refreshed,
                live=True,
                is_partner=is_partner,
                title=stream.get("title"),
                game=game.get("name") if game else None,
                viewers=stream.get("viewersCount") or 0,
                start_time=_parse_time(stream.get("createdAt")),
                thumbnail_url=stream.get("previewImageURL"),
            )

        last_broadcast = user_data.get("lastBroadcast") or {}
        return Livestream(
            channel=refreshed,
            live=False,
            is_partner=is_partner,
            last_live_time=_parse_time(last_broadcast.get("startedAt")),
        )

    async def get_channel_info(self, channel_id: str) -> Optional[Channel]:
        """Get channel info by username."""
        user = await self._get_user(channel_id)
        if not user:
            return None

        return Channel(
            channel_id=user["login"],
            platform=StreamPlatform.TWITCH,
            display_name=user["display_name"],
        )

    async def get_livestream(self, channel: Channel) -> Livestream:
        """Get livestream status for a single channel."""
        streams = await self.get_livestreams([channel])
        if streams:
            return streams[0]
        return Livestream(channel=channel, live=False)

    async def get_livestreams(self, channels: list[Channel]) -> list[Livestream]:
        """Get livestream status for multiple channels using batched GraphQL queries."""
        if not channels:
            return []

        result: list[Livestream] = []

        for i in range(0, len(channels), STATUS_BATCH_SIZE):
            batch = channels[i : i + STATUS_BATCH_SIZE]
            try:
                batch_results = await self._get_streams_gql_batch([c.channel_id for c in batch])
            except (aiohttp.ClientError, ApiStatusError, asyncio.TimeoutError, TimeoutError) as e:
                logger.warning(f"GraphQL batch query error: {e}")
                result.extend(
                    Livestream(channel=c, error_message=f"Status unavailable: {e}") for c in batch
                )
                continue

            for channel in batch:
                user_data = batch_results.get(channel.channel_id.lower())
                if user_data:
                    result.append(self._livestream_from_gql(channel, user_data))
                else:
                    result.append(
                        Livestream(channel=channel, error_message="Channel not found")
                    )

        return result

    async def get_followed_channels(self, user_id: Optional[str] = None) -> list[Channel]:
        """Get channels followed by a user. Uses current user if user_id is None."""
        if not await self.is_authorized():
            raise PermissionError("Twitch authorization required to get followed channels")

        if user_id:
            user = await self._get_user(user_id)
            if not user:
                raise ApiStatusError(HTTP_NOT_FOUND, f"Unknown Twitch user '{user_id}'")
            twitch_user_id = user["id"]
        elif self._current_user_id:
            twitch_user_id = self._current_user_id
        else:
            current_user = await self.get_current_user()
            if not current_user:
                return []
            twitch_user_id = current_user["id"]

        follows = await self._helix_paged("channels/followed", {"user_id": twitch_user_id})

        return [
            Channel(
                channel_id=follow["broadcaster_login"],
                platform=StreamPlatform.TWITCH,
                display_name=follow["broadcaster_name"],
                imported_by=user_id or self.settings.login_name or "self",
            )
            for follow in follows
        ]

    async def _get_game_id(self, game_name: str) -> Optional[str]:
        data = await self._helix_get("games", {"name": game_name})
        games = data.get("data", [])
        return games[0]["id"] if games else None

    async def get_top_streams(self, query: TopStreamQuery) -> list[Livestream]:
        """Get a page of top live streams."""
        if not await self.is_authorized():
            raise PermissionError("Twitch authorization required to browse top streams")

        params: dict[str, Any] = {}
        if query.game_name:
            game_id = await self._get_game_id(query.game_name)
            if not game_id:
                raise ApiStatusError(HTTP_NOT_FOUND, f"Unknown game '{query.game_name}'")
            params["game_id"] = game_id

        streams: list[Livestream] = []
        for stream_data in await self._helix_paged("streams", params, query.skip, query.take):
            thumbnail_url = None
            if stream_data.get("thumbnail_url"):
                thumbnail_url = (
                    stream_data["thumbnail_url"].replace("{width}", "320").replace("{height}", "180")
                )

            channel = Channel(
                channel_id=stream_data["user_login"],
                platform=StreamPlatform.TWITCH,
                display_name=stream_data["user_name"],
            )
            streams.append(
                Livestream(
                    channel=channel,
                    live=True,
                    title=stream_data.get("title"),
                    game=stream_data.get("game_name"),
                    viewers=stream_data.get("viewer_count", 0),
                    start_time=_parse_time(stream_data.get("started_at")),
                    thumbnail_url=thumbnail_url,
                )
            )

        return streams

    async def get_top_games(self, limit: int = 25) -> list[dict[str, str]]:
        """Get the most watched games/categories."""
        if not await self.is_authorized():
            raise PermissionError("Twitch authorization required to browse top games")

        games = await self._helix_paged("games/top", {}, 0, limit)
        return [
            {"id": game["id"], "name": game["name"], "box_art_url": game.get("box_art_url", "")}
            for game in games
        ]

    async def search_channels(self, query: str, limit: int = 25) -> list[Channel]:
        """Search for channels."""
        if not await self.is_authorized():
            raise PermissionError("Twitch authorization required to search channels")

        data = await self._helix_get(
            "search/channels", {"query": query, "first": min(limit, MAX_PAGE_SIZE)}
        )
        return [
            Channel(
                channel_id=ch["broadcaster_login"],
                platform=StreamPlatform.TWITCH,
                display_name=ch["display_name"],
            )
            for ch in data.get("data", [])
        ]

    async def search_games(self, query: str, limit: int = 25) -> list[dict[str, str]]:
        """Search for games/categories."""
        if not await self.is_authorized():
            raise PermissionError("Twitch authorization required to search games")

        data = await self._helix_get(
            "search/categories", {"query": query, "first": min(limit, MAX_PAGE_SIZE)}
        )
        return [
            {"id": game["id"], "name": game["name"], "box_art_url": game.get("box_art_url", "")}
            for game in data.get("data", [])
        ]

    async def get_vods(self, query: VodQuery) -> list[VodDetails]:
        """Get one page of a channel's videos.

        The GraphQL videos connection is cursor based, so skip is honoured by
        walking cursors from the start on every call.
        """
        variables: dict[str, Any] = {"login": query.stream_id}
        if query.vod_types:
            variables["type"] = query.vod_types[0].upper()

        wanted = query.skip + query.take
        nodes: list[dict[str, Any]] = []
        cursor: Optional[str] = None

        while len(nodes) < wanted:
            variables["first"] = min(wanted - len(nodes), MAX_PAGE_SIZE)
            variables["after"] = cursor
            data = await self._gql(VIDEOS_QUERY, variables)

            user = data.get("user")
            if not user:
                raise ApiStatusError(HTTP_NOT_FOUND, f"Unknown stream '{query.stream_id}'")

            videos = user.get("videos") or {}
            edges = videos.get("edges") or []
            nodes.extend(edge["node"] for edge in edges if edge.get("node"))

            has_next = (videos.get("pageInfo") or {}).get("hasNextPage", False)
            if not edges or not has_next:
                break
            cursor = edges[-1].get("cursor")
            if not cursor:
                break

        return [
            VodDetails(
                vod_id=node["id"],
                url=f"https://www.twitch.tv/videos/{node['id']}",
                stream_id=query.stream_id,
                title=node.get("title") or "",
                length_seconds=node.get("lengthSeconds") or 0,
                views=node.get("viewCount") or 0,
                recorded_at=_parse_time(node.get("createdAt")),
                preview_url=node.get("previewThumbnailURL"),
            )
            for node in nodes[query.skip : wanted]
        ]

    def logout(self) -> None:
        """Clear stored credentials."""
        self.settings.access_token = ""
        self.settings.login_name = ""
        self._current_user_id = None
