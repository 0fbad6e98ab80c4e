"""Tests for the stream monitor's refresh cycle and channel management."""

import asyncio
import json

import pytest
from conftest import live

from livestream_monitor.api.base import ApiStatusError
from livestream_monitor.core.models import Channel
from livestream_monitor.core.monitor import StreamMonitor


@pytest.fixture
def monitor(settings_handler, fake_client, tmp_path):
    return StreamMonitor(settings_handler, client=fake_client, channels_path=tmp_path / "channels.json")


def add(monitor, fake_client, *names):
    for name in names:
        fake_client.add_known(name)
        asyncio.run(monitor.add_channel(name))


def collect_events(monitor):
    events = {"online": [], "offline": [], "complete": []}
    monitor.on_stream_online(lambda ls: events["online"].append(ls.channel.channel_id))
    monitor.on_stream_offline(lambda ls: events["offline"].append(ls.channel.channel_id))
    monitor.on_refresh_complete(lambda streams: events["complete"].append(len(streams)))
    return events


# --- add / remove ---


def test_add_channel(monitor, fake_client):
    fake_client.add_known("alice", "Alice")
    channel = asyncio.run(monitor.add_channel("alice"))
    assert channel.display_name == "Alice"
    assert monitor.has_channel("twitch:alice")
    assert len(monitor.livestreams) == 1


def test_add_unknown_channel_returns_none(monitor):
    assert asyncio.run(monitor.add_channel("nobody")) is None
    assert monitor.channels == []


def test_add_channel_twice_keeps_one(monitor, fake_client):
    add(monitor, fake_client, "alice")
    asyncio.run(monitor.add_channel("ALICE"))
    assert len(monitor.channels) == 1


def test_add_channel_fetches_status(monitor, fake_client):
    fake_client.statuses["alice"] = live("alice", viewers=42)
    add(monitor, fake_client, "alice")
    livestream = monitor.get_livestream("twitch:alice")
    assert livestream.live
    assert livestream.viewers == 42


def test_remove_channel(monitor, fake_client):
    add(monitor, fake_client, "alice", "bob")
    monitor.remove_channel(Channel(channel_id="alice"))
    assert [c.channel_id for c in monitor.channels] == ["bob"]
    assert monitor.get_livestream("twitch:alice") is None


# --- refresh ---


def test_refresh_applies_status(monitor, fake_client):
    add(monitor, fake_client, "alice", "bob")
    fake_client.statuses["alice"] = live("alice", viewers=10, game="Chess")
    asyncio.run(monitor.refresh())

    assert [ls.channel.channel_id for ls in monitor.live_streams] == ["alice"]
    assert monitor.get_livestream("twitch:alice").game == "Chess"


def test_refresh_fires_complete_once(monitor, fake_client):
    add(monitor, fake_client, "alice", "bob")
    events = collect_events(monitor)
    asyncio.run(monitor.refresh())
    assert events["complete"] == [2]


def test_refresh_with_no_channels_still_completes(monitor, fake_client):
    events = collect_events(monitor)
    asyncio.run(monitor.refresh())
    assert events["complete"] == [0]
    assert fake_client.status_calls == 0


def test_refresh_failed_item_keeps_previous_state(monitor, fake_client):
    add(monitor, fake_client, "alice", "bob")
    fake_client.statuses["alice"] = live("alice", viewers=10)
    fake_client.statuses["bob"] = live("bob", viewers=20)
    asyncio.run(monitor.refresh())

    fake_client.errors.add("alice")
    fake_client.statuses["bob"] = live("bob", viewers=25)
    asyncio.run(monitor.refresh())

    alice = monitor.get_livestream("twitch:alice")
    assert alice.live
    assert alice.viewers == 10
    assert monitor.get_livestream("twitch:bob").viewers == 25


def test_refresh_whole_batch_failure_keeps_state_and_completes(monitor, fake_client):
    add(monitor, fake_client, "alice")
    fake_client.statuses["alice"] = live("alice", viewers=10)
    asyncio.run(monitor.refresh())

    events = collect_events(monitor)
    fake_client.batch_error = ApiStatusError(500, "server error")
    asyncio.run(monitor.refresh())

    assert monitor.get_livestream("twitch:alice").live
    assert events["complete"] == [1]


def test_online_and_offline_events(monitor, fake_client):
    add(monitor, fake_client, "alice")
    monitor.resume_notifications()
    events = collect_events(monitor)

    fake_client.statuses["alice"] = live("alice")
    asyncio.run(monitor.refresh())
    assert events["online"] == ["alice"]

    # Still live: no second event
    asyncio.run(monitor.refresh())
    assert events["online"] == ["alice"]

    del fake_client.statuses["alice"]
    asyncio.run(monitor.refresh())
    assert events["offline"] == ["alice"]


def test_no_online_events_during_initial_load(monitor, fake_client, tmp_path):
    add(monitor, fake_client, "alice")
    fresh = StreamMonitor(
        monitor.settings, client=fake_client, channels_path=tmp_path / "channels.json"
    )
    events = collect_events(fresh)
    fake_client.statuses["alice"] = live("alice")

    asyncio.run(fresh.initialize())
    assert events["online"] == []
    assert fresh.get_livestream("twitch:alice").live


def test_excluded_channel_gets_no_online_event(monitor, fake_client, settings_handler):
    add(monitor, fake_client, "alice", "bob")
    monitor.resume_notifications()
    monitor.set_notifications_enabled(Channel(channel_id="alice"), False)
    events = collect_events(monitor)

    fake_client.statuses["alice"] = live("alice")
    fake_client.statuses["bob"] = live("bob")
    asyncio.run(monitor.refresh())

    assert events["online"] == ["bob"]
    assert settings_handler.is_excluded_from_notifications("twitch:alice")


def test_callback_error_does_not_stop_refresh(monitor, fake_client):
    add(monitor, fake_client, "alice")
    monitor.resume_notifications()

    def broken(livestream):
        raise RuntimeError("boom")

    monitor.on_stream_online(broken)
    events = collect_events(monitor)
    fake_client.statuses["alice"] = live("alice")
    asyncio.run(monitor.refresh())

    assert events["online"] == ["alice"]
    assert events["complete"] == [1]


# --- import follows ---


def test_import_follows_adds_new_channels_silently(monitor, fake_client):
    add(monitor, fake_client, "alice")
    monitor.resume_notifications()
    events = collect_events(monitor)
    fake_client.follows = [Channel(channel_id="alice"), Channel(channel_id="carol")]
    fake_client.statuses["carol"] = live("carol")

    added = asyncio.run(monitor.import_follows("someone"))

    assert [c.channel_id for c in added] == ["carol"]
    assert monitor.get_livestream("twitch:carol").live
    assert events["online"] == []


# --- persistence ---


def test_channels_round_trip(monitor, fake_client, settings_handler, tmp_path):
    add(monitor, fake_client, "alice", "bob")

    saved = json.loads((tmp_path / "channels.json").read_text(encoding="utf-8"))
    assert sorted(entry["channel_id"] for entry in saved) == ["alice", "bob"]

    reloaded = StreamMonitor(
        settings_handler, client=fake_client, channels_path=tmp_path / "channels.json"
    )
    reloaded.load_channels()
    assert sorted(c.channel_id for c in reloaded.channels) == ["alice", "bob"]


def test_load_corrupt_channels_file(settings_handler, fake_client, tmp_path):
    path = tmp_path / "channels.json"
    path.write_text("{oops", encoding="utf-8")
    monitor = StreamMonitor(settings_handler, client=fake_client, channels_path=path)
    monitor.load_channels()
    assert monitor.channels == []


# --- unexpected failures ---


def test_unexpected_error_still_completes_once(monitor, fake_client):
    add(monitor, fake_client, "alice")
    events = collect_events(monitor)
    fake_client.batch_error = RuntimeError("parser blew up")

    with pytest.raises(RuntimeError):
        asyncio.run(monitor.refresh())
    assert events["complete"] == [1]


def test_timeout_keeps_state_and_completes(monitor, fake_client):
    add(monitor, fake_client, "alice")
    fake_client.statuses["alice"] = live("alice")
    asyncio.run(monitor.refresh())

    events = collect_events(monitor)
    fake_client.batch_error = asyncio.TimeoutError()
    asyncio.run(monitor.refresh())

    assert monitor.get_livestream("twitch:alice").live
    assert events["complete"] == [1]


def test_initial_load_failure_still_enables_notifications(monitor, fake_client):
    add(monitor, fake_client, "alice")
    monitor.suppress_notifications()
    fake_client.batch_error = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        asyncio.run(monitor.initialize())

    events = collect_events(monitor)
    fake_client.batch_error = None
    fake_client.statuses["alice"] = live("alice")
    asyncio.run(monitor.refresh())
    assert events["online"] == ["alice"]
