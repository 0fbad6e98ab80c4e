"""Tests for Twitch API response handling (network calls are stubbed)."""

import asyncio
import re

import pytest

from livestream_monitor.api.base import ApiStatusError
from livestream_monitor.api.twitch import STATUS_BATCH_SIZE, TwitchApiClient, _parse_time
from livestream_monitor.core.models import Channel, TopStreamQuery, VodQuery
from livestream_monitor.core.settings import TwitchSettings


@pytest.fixture
def client():
    return TwitchApiClient(TwitchSettings(access_token="token"))


def gql_user(login, live=False, partner=False, viewers=0):
    user = {
        "id": "1",
        "login": login,
        "displayName": login.title(),
        "roles": {"isPartner": partner},
        "stream": None,
        "lastBroadcast": {"startedAt": "2024-05-01T10:00:00Z"},
    }
    if live:
        user["stream"] = {
            "id": "s1",
            "title": f"{login} stream",
            "viewersCount": viewers,
            "createdAt": "2024-05-02T10:00:00Z",
            "previewImageURL": "https://example.com/p.jpg",
            "game": {"name": "Chess"},
        }
    return user


def stub_status_gql(monkeypatch, client, users):
    """Answer aliased status queries from a {login: user} mapping."""
    queries = []

    async def fake_gql(query, variables=None):
        queries.append(query)
        aliases = re.findall(r'(u\d+): user\(login: "([^"]+)"\)', query)
        return {alias: users.get(login.lower()) for alias, login in aliases}

    monkeypatch.setattr(client, "_gql", fake_gql)
    return queries


# --- _parse_time ---


def test_parse_time():
    parsed = _parse_time("2024-05-02T10:00:00Z")
    assert parsed.year == 2024
    assert parsed.utcoffset().total_seconds() == 0


def test_parse_time_bad_values():
    assert _parse_time(None) is None
    assert _parse_time("yesterday") is None


# --- status ---


def test_livestreams_live_and_offline(monkeypatch, client):
    stub_status_gql(
        monkeypatch,
        client,
        {"alice": gql_user("alice", live=True, partner=True, viewers=321), "bob": gql_user("bob")},
    )
    alice, bob = asyncio.run(
        client.get_livestreams([Channel(channel_id="alice"), Channel(channel_id="bob")])
    )

    assert alice.live
    assert alice.is_partner
    assert alice.viewers == 321
    assert alice.game == "Chess"
    assert alice.display_name == "Alice"
    assert alice.start_time is not None

    assert not bob.live
    assert not bob.is_partner
    assert bob.last_live_time.month == 5


def test_unknown_channel_gets_error(monkeypatch, client):
    stub_status_gql(monkeypatch, client, {})
    (ghost,) = asyncio.run(client.get_livestreams([Channel(channel_id="ghost")]))
    assert ghost.error_message == "Channel not found"


def test_status_batches(monkeypatch, client):
    names = [f"user{i}" for i in range(STATUS_BATCH_SIZE * 2 + 5)]
    queries = stub_status_gql(monkeypatch, client, {n: gql_user(n) for n in names})
    results = asyncio.run(client.get_livestreams([Channel(channel_id=n) for n in names]))

    assert len(queries) == 3
    assert len(results) == len(names)
    assert all(r.error_message is None for r in results)


def test_failed_batch_marks_only_its_channels(monkeypatch, client):
    names = [f"user{i}" for i in range(STATUS_BATCH_SIZE + 1)]
    calls = []

    async def fake_gql(query, variables=None):
        calls.append(query)
        if len(calls) == 1:
            raise ApiStatusError(503, "unavailable")
        aliases = re.findall(r'(u\d+): user\(login: "([^"]+)"\)', query)
        return {alias: gql_user(login) for alias, login in aliases}

    monkeypatch.setattr(client, "_gql", fake_gql)
    results = asyncio.run(client.get_livestreams([Channel(channel_id=n) for n in names]))

    failed = [r for r in results if r.error_message]
    assert len(failed) == STATUS_BATCH_SIZE
    assert failed[0].error_message.startswith("Status unavailable")
    assert results[-1].error_message is None


def test_login_is_escaped_in_query(monkeypatch, client):
    queries = stub_status_gql(monkeypatch, client, {})
    asyncio.run(client.get_livestreams([Channel(channel_id='bad"name')]))
    assert 'bad\\"name' in queries[0]


# --- VODs ---


def video_edges(start, count):
    return [
        {
            "cursor": f"c{i}",
            "node": {
                "id": str(i),
                "title": f"VOD {i}",
                "lengthSeconds": 60 * i,
                "viewCount": i,
                "createdAt": "2024-05-02T10:00:00Z",
                "previewThumbnailURL": None,
            },
        }
        for i in range(start, start + count)
    ]


def stub_videos(monkeypatch, client, total):
    """Serve `total` videos, honouring first/after like the GraphQL API."""
    requests = []

    async def fake_gql(query, variables=None):
        requests.append(dict(variables))
        start = int(variables["after"][1:]) + 1 if variables.get("after") else 0
        count = max(0, min(variables["first"], total - start))
        return {
            "user": {
                "login": variables["login"],
                "videos": {
                    "edges": video_edges(start, count),
                    "pageInfo": {"hasNextPage": start + count < total},
                },
            }
        }

    monkeypatch.setattr(client, "_gql", fake_gql)
    return requests


def test_vods_first_page(monkeypatch, client):
    requests = stub_videos(monkeypatch, client, 40)
    vods = asyncio.run(client.get_vods(VodQuery("alice", ("archive",), skip=0, take=15)))

    assert [v.vod_id for v in vods] == [str(i) for i in range(15)]
    assert vods[0].url == "https://www.twitch.tv/videos/0"
    assert vods[0].stream_id == "alice"
    assert requests[0]["type"] == "ARCHIVE"
    assert requests[0]["first"] == 15


def test_vods_skip_walks_cursors(monkeypatch, client):
    stub_videos(monkeypatch, client, 40)
    vods = asyncio.run(client.get_vods(VodQuery("alice", ("archive",), skip=30, take=15)))
    assert [v.vod_id for v in vods] == [str(i) for i in range(30, 40)]


def test_vods_past_the_end(monkeypatch, client):
    stub_videos(monkeypatch, client, 10)
    assert asyncio.run(client.get_vods(VodQuery("alice", skip=15, take=15))) == []


def test_vods_unknown_stream(monkeypatch, client):
    async def fake_gql(query, variables=None):
        return {"user": None}

    monkeypatch.setattr(client, "_gql", fake_gql)
    with pytest.raises(ApiStatusError) as excinfo:
        asyncio.run(client.get_vods(VodQuery("ghost", skip=0, take=15)))
    assert excinfo.value.not_found


# --- Helix paging ---


def stub_helix(monkeypatch, client, items, page_size=10):
    async def fake_get(path, params=None):
        start = int(params.get("after", 0))
        first = min(params["first"], page_size)
        page = items[start : start + first]
        end = start + len(page)
        cursor = str(end) if end < len(items) else None
        return {"data": page, "pagination": {"cursor": cursor} if cursor else {}}

    monkeypatch.setattr(client, "_helix_get", fake_get)


def test_helix_paged_skip_take(monkeypatch, client):
    stub_helix(monkeypatch, client, list(range(35)))
    assert asyncio.run(client._helix_paged("streams", {}, 12, 10)) == list(range(12, 22))


def test_helix_paged_all(monkeypatch, client):
    stub_helix(monkeypatch, client, list(range(35)))
    assert asyncio.run(client._helix_paged("channels/followed", {})) == list(range(35))


def test_top_streams_unknown_game(monkeypatch, client):
    async def authorized():
        return True

    async def fake_get(path, params=None):
        return {"data": []}

    monkeypatch.setattr(client, "is_authorized", authorized)
    monkeypatch.setattr(client, "_helix_get", fake_get)
    with pytest.raises(ApiStatusError) as excinfo:
        asyncio.run(client.get_top_streams(TopStreamQuery(game_name="Nope")))
    assert excinfo.value.not_found


def test_top_streams_requires_authorization(monkeypatch):
    client = TwitchApiClient(TwitchSettings())

    async def unauthorized():
        return False

    monkeypatch.setattr(client, "is_authorized", unauthorized)
    with pytest.raises(PermissionError):
        asyncio.run(client.get_top_streams(TopStreamQuery()))


# --- search ---


def test_search_channels(monkeypatch, client):
    seen = {}

    async def authorized():
        return True

    async def fake_get(path, params=None):
        seen["path"] = path
        seen["params"] = params
        return {"data": [{"broadcaster_login": "alice", "display_name": "Alice"}]}

    monkeypatch.setattr(client, "is_authorized", authorized)
    monkeypatch.setattr(client, "_helix_get", fake_get)
    (channel,) = asyncio.run(client.search_channels("ali", limit=500))

    assert channel.channel_id == "alice"
    assert channel.display_name == "Alice"
    assert seen["path"] == "search/channels"
    assert seen["params"] == {"query": "ali", "first": 100}


def test_search_games(monkeypatch, client):
    async def authorized():
        return True

    async def fake_get(path, params=None):
        return {"data": [{"id": "743", "name": "Chess"}]}

    monkeypatch.setattr(client, "is_authorized", authorized)
    monkeypatch.setattr(client, "_helix_get", fake_get)
    assert asyncio.run(client.search_games("che")) == [
        {"id": "743", "name": "Chess", "box_art_url": ""}
    ]
