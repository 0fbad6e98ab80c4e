"""Tests for settings persistence and the settings handler."""

import json

from livestream_monitor.core.models import SortMode, StreamQuality
from livestream_monitor.core.settings import (
    CHROME_ARGS,
    DEFAULT_CHAT_COMMAND_LINE,
    DEFAULT_STREAMLINK_PATH,
    Settings,
    ThemeMode,
)

# --- Settings.load ---


def test_load_missing_file_gives_defaults(tmp_path):
    settings = Settings.load(tmp_path / "missing.json")
    assert settings.refresh_interval == 60
    assert settings.streamlink.path == DEFAULT_STREAMLINK_PATH
    assert settings.chat.command_line == DEFAULT_CHAT_COMMAND_LINE


def test_load_malformed_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    settings = Settings.load(path)
    assert settings.sort_mode == SortMode.LIVE_FIRST
    assert settings.notifications.enabled is True


def test_load_non_object_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert Settings.load(path).refresh_interval == 60


def test_save_and_load(tmp_path):
    path = tmp_path / "settings.json"
    settings = Settings()
    settings.refresh_interval = 120
    settings.sort_mode = SortMode.VIEWERS
    settings.theme_mode = ThemeMode.DARK
    settings.streamlink.default_quality = StreamQuality.LOW
    settings.notifications.excluded_channels = ["twitch:quiet"]
    settings.twitch.access_token = "tok"
    settings.save(path)

    loaded = Settings.load(path)
    assert loaded.refresh_interval == 120
    assert loaded.sort_mode == SortMode.VIEWERS
    assert loaded.theme_mode == ThemeMode.DARK
    assert loaded.streamlink.default_quality == StreamQuality.LOW
    assert loaded.notifications.excluded_channels == ["twitch:quiet"]
    assert loaded.twitch.access_token == "tok"


def test_refresh_interval_is_clamped(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"refresh_interval": 1}), encoding="utf-8")
    assert Settings.load(path).refresh_interval == 10


def test_unknown_quality_falls_back_to_source(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"streamlink": {"default_quality": "8k"}}), encoding="utf-8")
    assert Settings.load(path).streamlink.default_quality == StreamQuality.SOURCE


def test_migrates_old_browser_path(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"chrome_full_path": "/opt/chrome"}), encoding="utf-8")
    settings = Settings.load(path)
    assert settings.chat.command_line == f'"/opt/chrome" {CHROME_ARGS}'

    # Migrated settings are written back
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["chat"]["command_line"] == settings.chat.command_line


def test_empty_streamlink_path_is_reset(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"streamlink": {"path": "  "}}), encoding="utf-8")
    assert Settings.load(path).streamlink.path == DEFAULT_STREAMLINK_PATH


# --- SettingsHandler ---


def test_handler_writes_defaults_on_first_access(settings_handler):
    assert not settings_handler.path.exists()
    _ = settings_handler.settings
    assert settings_handler.path.exists()


def test_update_saves_immediately(settings_handler):
    changed = settings_handler.update(hide_offline=True)
    assert changed == ["hide_offline"]
    saved = json.loads(settings_handler.path.read_text(encoding="utf-8"))
    assert saved["hide_offline"] is True


def test_update_section(settings_handler):
    changed = settings_handler.update("streamlink", player="mpv", path="streamlink")
    assert changed == ["streamlink.player"]
    saved = json.loads(settings_handler.path.read_text(encoding="utf-8"))
    assert saved["streamlink"]["player"] == "mpv"


def test_update_unchanged_value_reports_nothing(settings_handler):
    events = []
    settings_handler.on_changed(events.append)
    assert settings_handler.update(refresh_interval=60) == []
    assert events == []


def test_update_fires_changed(settings_handler):
    events = []
    settings_handler.on_changed(events.append)
    settings_handler.update(theme_mode=ThemeMode.LIGHT)
    assert events == ["theme_mode"]


def test_update_unknown_setting_raises(settings_handler):
    try:
        settings_handler.update(not_a_setting=1)
    except AttributeError as e:
        assert "not_a_setting" in str(e)
    else:
        raise AssertionError("expected AttributeError")


def test_changed_callback_errors_are_contained(settings_handler):
    def broken(name):
        raise RuntimeError("boom")

    seen = []
    settings_handler.on_changed(broken)
    settings_handler.on_changed(seen.append)
    settings_handler.update(hide_offline=True)
    assert seen == ["hide_offline"]


def test_notification_exclusions(settings_handler):
    settings_handler.exclude_from_notifications("twitch:quiet")
    settings_handler.exclude_from_notifications("twitch:quiet")
    assert settings_handler.settings.notifications.excluded_channels == ["twitch:quiet"]
    assert settings_handler.is_excluded_from_notifications("twitch:quiet")

    settings_handler.include_in_notifications("twitch:quiet")
    assert not settings_handler.is_excluded_from_notifications("twitch:quiet")
    saved = json.loads(settings_handler.path.read_text(encoding="utf-8"))
    assert saved["notifications"]["excluded_channels"] == []


def test_save_failure_is_reported_not_raised(tmp_path):
    from livestream_monitor.core.settings import SettingsHandler

    # The parent "directory" is a file, so the write must fail
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    handler = SettingsHandler(blocker / "settings.json")
    assert handler.save() is False


# --- wrongly typed values ---


def write_settings(tmp_path, data):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_section_of_wrong_type_uses_defaults(tmp_path):
    path = write_settings(
        tmp_path, {"twitch": "oops", "streamlink": [1], "chat": 3, "window": None}
    )
    settings = Settings.load(path)
    assert settings.twitch.access_token == ""
    assert settings.streamlink.path == DEFAULT_STREAMLINK_PATH
    assert settings.chat.command_line == DEFAULT_CHAT_COMMAND_LINE
    assert settings.window.width == 520


def test_fields_of_wrong_type_use_defaults(tmp_path):
    path = write_settings(
        tmp_path,
        {
            "sort_mode": [2],
            "hide_offline": "yes",
            "accent_color": 7,
            "streamlink": {"path": None, "player": 5, "default_quality": {}},
            "notifications": {"enabled": "no", "excluded_channels": "twitch:a"},
            "window": {"x": "10", "maximized": 1},
        },
    )
    settings = Settings.load(path)
    assert settings.sort_mode == SortMode.LIVE_FIRST
    assert settings.hide_offline is False
    assert isinstance(settings.accent_color, str)
    assert settings.streamlink.path == DEFAULT_STREAMLINK_PATH
    assert settings.streamlink.player == ""
    assert settings.streamlink.default_quality == StreamQuality.SOURCE
    assert settings.notifications.enabled is True
    assert settings.notifications.excluded_channels == []
    assert settings.window.x is None
    assert settings.window.maximized is False


def test_non_string_browser_path_is_not_migrated(tmp_path):
    path = write_settings(tmp_path, {"chrome_full_path": 42})
    assert Settings.load(path).chat.command_line == DEFAULT_CHAT_COMMAND_LINE


def test_excluded_channels_keep_only_strings(tmp_path):
    path = write_settings(tmp_path, {"notifications": {"excluded_channels": ["twitch:a", 3]}})
    assert Settings.load(path).notifications.excluded_channels == ["twitch:a"]
