"""Shared test fixtures for livestream_monitor tests."""

from datetime import datetime, timezone

import pytest

from livestream_monitor.api.base import ApiStatusError, BaseApiClient
from livestream_monitor.core import credential_store
from livestream_monitor.core.models import Channel, Livestream, StreamPlatform
from livestream_monitor.core.settings import SettingsHandler


@pytest.fixture(autouse=True)
def no_keyring(monkeypatch):
    """Keep tests away from the real system keyring."""
    monkeypatch.setattr(credential_store, "_keyring_available", False)


@pytest.fixture
def settings_handler(tmp_path):
    return SettingsHandler(tmp_path / "settings.json")


@pytest.fixture
def twitch_channel():
    return Channel(
        channel_id="testuser",
        platform=StreamPlatform.TWITCH,
        display_name="TestUser",
    )


@pytest.fixture
def twitch_livestream(twitch_channel):
    return Livestream(
        channel=twitch_channel,
        live=True,
        is_partner=True,
        title="Test Stream",
        game="Just Chatting",
        viewers=1234,
        start_time=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
    )


class FakeClient(BaseApiClient):
    """In-memory API client.

    `statuses` maps lower-case channel names to the Livestream the next
    get_livestreams() call reports; `errors` holds names whose status fails.
    """

    def __init__(self):
        super().__init__()
        self.known: dict[str, Channel] = {}
        self.statuses: dict[str, Livestream] = {}
        self.errors: set[str] = set()
        self.batch_error: Exception | None = None
        self.follows: list[Channel] = []
        self.vods: list = []
        self.top_streams: list[Livestream] = []
        self.vod_queries: list = []
        self.top_queries: list = []
        self.fail_with: Exception | None = None
        self.status_calls = 0

    @property
    def platform(self):
        return StreamPlatform.TWITCH

    @property
    def name(self):
        return "Fake"

    @property
    def vod_types(self):
        return ("archive", "highlight", "upload")

    def add_known(self, channel_id, display_name=None):
        channel = Channel(channel_id=channel_id, display_name=display_name or channel_id)
        self.known[channel_id.lower()] = channel
        return channel

    async def is_authorized(self):
        return True

    async def authorize(self):
        return True

    async def get_channel_info(self, channel_id):
        known = self.known.get(channel_id.lower())
        if known is None:
            return None
        return Channel(channel_id=known.channel_id, display_name=known.display_name)

    async def get_livestream(self, channel):
        return (await self.get_livestreams([channel]))[0]

    async def get_livestreams(self, channels):
        self.status_calls += 1
        if self.batch_error:
            raise self.batch_error
        result = []
        for channel in channels:
            key = channel.channel_id.lower()
            if key in self.errors:
                result.append(Livestream(channel=channel, error_message="Status unavailable"))
            elif key in self.statuses:
                status = self.statuses[key]
                result.append(
                    Livestream(
                        channel=Channel(
                            channel_id=channel.channel_id,
                            display_name=status.channel.display_name,
                        ),
                        live=status.live,
                        is_partner=status.is_partner,
                        title=status.title,
                        game=status.game,
                        viewers=status.viewers,
                    )
                )
            else:
                result.append(Livestream(channel=channel))
        return result

    async def get_followed_channels(self, user_id=None):
        return list(self.follows)

    async def get_top_streams(self, query):
        self.top_queries.append(query)
        if self.fail_with:
            raise self.fail_with
        return self.top_streams[query.skip : query.skip + query.take]

    async def get_vods(self, query):
        self.vod_queries.append(query)
        if self.fail_with:
            raise self.fail_with
        return self.vods[query.skip : query.skip + query.take]


def live(channel_id, viewers=100, is_partner=True, game=None, title=None):
    """Status of a live channel for FakeClient.statuses."""
    return Livestream(
        channel=Channel(channel_id=channel_id, display_name=channel_id.title()),
        live=True,
        is_partner=is_partner,
        viewers=viewers,
        game=game,
        title=title,
    )


def not_found():
    return ApiStatusError(404, "not found")


@pytest.fixture
def fake_client():
    return FakeClient()
