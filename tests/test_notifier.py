"""Tests for go-live notification content and filtering."""

import pytest

from livestream_monitor.core.settings import NotificationSettings
from livestream_monitor.notifications.notifier import Notifier


@pytest.fixture
def notifier():
    return Notifier(NotificationSettings(backend="notify-send"))


def test_content_with_game_and_title(notifier, twitch_livestream):
    title, body = notifier.build_content(twitch_livestream)
    assert title == "TestUser is live!"
    assert body == "Playing: Just Chatting\nTest Stream"


def test_content_respects_toggles(notifier, twitch_livestream):
    notifier.settings.show_game = False
    notifier.settings.show_title = False
    assert notifier.build_content(twitch_livestream)[1] == "Stream is now live"


def test_disabled_notifications(notifier, twitch_livestream):
    notifier.settings.enabled = False
    assert not notifier.should_notify(twitch_livestream)


def test_excluded_channel(notifier, twitch_livestream):
    assert notifier.should_notify(twitch_livestream)
    notifier.settings.excluded_channels.append(twitch_livestream.channel.unique_key)
    assert not notifier.should_notify(twitch_livestream)


def test_unknown_backend_falls_back_to_auto():
    settings = NotificationSettings(backend="pigeon")
    Notifier(settings)
    assert settings.backend == "auto"
