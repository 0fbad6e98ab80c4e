"""Tests for the VOD and top-stream pagers."""

import asyncio

import pytest
from conftest import live, not_found

from livestream_monitor.core.models import VodDetails
from livestream_monitor.core.paging import (
    TOP_STREAMS_PER_PAGE,
    VOD_TILES_PER_PAGE,
    TopStreamsPager,
    VodPager,
)


def make_vods(count):
    return [
        VodDetails(vod_id=str(i), url=f"https://www.twitch.tv/videos/{i}", stream_id="alice")
        for i in range(count)
    ]


def record(pager):
    log = {"items": [], "loading": [], "messages": []}
    pager.on_items_changed(lambda items: log["items"].append(len(items)))
    pager.on_loading_changed(log["loading"].append)
    pager.on_message(lambda title, text: log["messages"].append((title, text)))
    return log


# --- VodPager ---


def test_vod_page_size_default(fake_client):
    assert VodPager(fake_client).page_size == VOD_TILES_PER_PAGE == 15


def test_no_request_without_stream(fake_client):
    pager = VodPager(fake_client)
    asyncio.run(pager.load())
    assert fake_client.vod_queries == []
    assert not pager.can_next


def test_set_stream_loads_first_page(fake_client):
    fake_client.vods = make_vods(40)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))

    query = fake_client.vod_queries[-1]
    assert query.stream_id == "alice"
    assert query.skip == 0
    assert query.take == 15
    assert query.vod_types == ("archive",)
    assert len(pager.items) == 15
    assert pager.can_next
    assert not pager.can_previous


def test_skip_follows_page_number(fake_client):
    fake_client.vods = make_vods(40)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))
    asyncio.run(pager.next_page())
    asyncio.run(pager.next_page())

    assert pager.page == 3
    assert [q.skip for q in fake_client.vod_queries] == [0, 15, 30]
    # 40 items: the third page is short, so there is no fourth
    assert len(pager.items) == 10
    assert not pager.can_next
    assert pager.can_previous


def test_previous_page_refetches(fake_client):
    fake_client.vods = make_vods(40)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))
    asyncio.run(pager.next_page())
    asyncio.run(pager.previous_page())

    assert pager.page == 1
    assert [q.skip for q in fake_client.vod_queries] == [0, 15, 0]


def test_previous_on_first_page_does_nothing(fake_client):
    fake_client.vods = make_vods(5)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))
    assert asyncio.run(pager.previous_page()) is False
    assert len(fake_client.vod_queries) == 1


def test_exact_full_page_allows_next(fake_client):
    fake_client.vods = make_vods(15)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))
    assert pager.can_next

    asyncio.run(pager.next_page())
    assert pager.items == []
    assert not pager.can_next


def test_changing_stream_resets_to_first_page(fake_client):
    fake_client.vods = make_vods(40)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))
    asyncio.run(pager.next_page())
    asyncio.run(pager.set_stream_id("bob"))

    assert pager.page == 1
    assert fake_client.vod_queries[-1].skip == 0
    assert fake_client.vod_queries[-1].stream_id == "bob"


def test_changing_vod_type_resets_to_first_page(fake_client):
    fake_client.vods = make_vods(40)
    pager = VodPager(fake_client)
    asyncio.run(pager.set_stream_id("alice"))
    asyncio.run(pager.next_page())
    asyncio.run(pager.set_vod_type("highlight"))

    assert pager.page == 1
    assert fake_client.vod_queries[-1].vod_types == ("highlight",)


def test_unsupported_vod_type(fake_client):
    pager = VodPager(fake_client)
    with pytest.raises(ValueError):
        asyncio.run(pager.set_vod_type("clips"))


def test_items_cleared_before_request_and_loading_toggles(fake_client):
    fake_client.vods = make_vods(3)
    pager = VodPager(fake_client)
    log = record(pager)
    asyncio.run(pager.set_stream_id("alice"))

    assert log["items"] == [0, 3]
    assert log["loading"] == [True, False]
    assert not pager.loading


def test_unknown_stream_reports_one_message(fake_client):
    fake_client.fail_with = not_found()
    pager = VodPager(fake_client)
    log = record(pager)
    asyncio.run(pager.set_stream_id("ghost"))

    assert log["messages"] == [("Error", "Unknown stream name 'ghost'.")]
    assert pager.items == []
    assert not pager.loading
    assert not pager.can_next


def test_other_errors_report_generic_message(fake_client):
    fake_client.fail_with = RuntimeError("connection reset")
    pager = VodPager(fake_client)
    log = record(pager)
    asyncio.run(pager.set_stream_id("alice"))

    assert len(log["messages"]) == 1
    title, text = log["messages"][0]
    assert "alice" in text
    assert "connection reset" in text


def test_select_sets_vod_url(fake_client):
    pager = VodPager(fake_client)
    assert not pager.can_open_vod
    vod = make_vods(1)[0]
    pager.select(vod)
    assert pager.vod_url == vod.url
    assert pager.can_open_vod


def test_relative_vod_url_cannot_be_opened(fake_client):
    pager = VodPager(fake_client)
    pager.vod_url = "videos/123"
    assert not pager.can_open_vod


# --- TopStreamsPager ---


def test_top_streams_paging(fake_client):
    fake_client.top_streams = [live(f"s{i}", viewers=1000 - i) for i in range(60)]
    pager = TopStreamsPager(fake_client)
    asyncio.run(pager.load())
    assert len(pager.items) == TOP_STREAMS_PER_PAGE
    asyncio.run(pager.next_page())
    asyncio.run(pager.next_page())

    assert [q.skip for q in fake_client.top_queries] == [0, 25, 50]
    assert len(pager.items) == 10
    assert not pager.can_next


def test_top_streams_game_filter_resets_page(fake_client):
    fake_client.top_streams = [live(f"s{i}") for i in range(60)]
    pager = TopStreamsPager(fake_client)
    asyncio.run(pager.load())
    asyncio.run(pager.next_page())
    asyncio.run(pager.set_game_name("Chess"))

    query = fake_client.top_queries[-1]
    assert query.game_name == "Chess"
    assert query.skip == 0


def test_top_streams_blank_game_means_all(fake_client):
    pager = TopStreamsPager(fake_client)
    asyncio.run(pager.set_game_name("Chess"))
    asyncio.run(pager.set_game_name("  "))
    assert fake_client.top_queries[-1].game_name is None


def test_top_streams_unknown_game(fake_client):
    fake_client.fail_with = not_found()
    pager = TopStreamsPager(fake_client)
    log = record(pager)
    asyncio.run(pager.set_game_name("Nope"))
    assert log["messages"] == [("Error", "Unknown game 'Nope'.")]


def test_top_streams_needs_login(fake_client):
    fake_client.fail_with = PermissionError("auth")
    pager = TopStreamsPager(fake_client)
    log = record(pager)
    asyncio.run(pager.load())
    assert "Log in" in log["messages"][0][1]
