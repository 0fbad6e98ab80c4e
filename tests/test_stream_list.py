"""Tests for channel list filtering and sorting."""

from conftest import live

from livestream_monitor.core.models import Channel, Livestream, SortMode
from livestream_monitor.gui.stream_list import filter_and_sort


def offline(channel_id):
    return Livestream(channel=Channel(channel_id=channel_id, display_name=channel_id))


def names(streams):
    return [ls.channel.channel_id for ls in streams]


STREAMS = [
    offline("carol"),
    live("bob", viewers=10),
    offline("alice"),
    live("dave", viewers=500),
]


def test_sort_by_name():
    assert names(filter_and_sort(STREAMS, SortMode.NAME)) == ["alice", "bob", "carol", "dave"]


def test_sort_live_first():
    assert names(filter_and_sort(STREAMS, SortMode.LIVE_FIRST)) == [
        "bob",
        "dave",
        "alice",
        "carol",
    ]


def test_sort_by_viewers():
    assert names(filter_and_sort(STREAMS, SortMode.VIEWERS)) == ["dave", "bob", "alice", "carol"]


def test_hide_offline():
    result = filter_and_sort(STREAMS, SortMode.NAME, hide_offline=True)
    assert names(result) == ["bob", "dave"]


def test_name_filter_substring():
    assert names(filter_and_sort(STREAMS, SortMode.NAME, name_filter=" AR ")) == ["carol"]


def test_name_filter_glob():
    assert names(filter_and_sort(STREAMS, SortMode.NAME, name_filter="*a*e*")) == ["alice", "dave"]
