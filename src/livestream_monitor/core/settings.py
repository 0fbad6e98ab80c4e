"""Settings management for Livestream Monitor."""

import json
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from appdirs import user_config_dir, user_data_dir

from .models import SortMode, StreamQuality

logger = logging.getLogger(__name__)

APP_NAME = "livestream-monitor"
APP_AUTHOR = "livestream-monitor"

SETTINGS_FILE_NAME = "settings.json"

# TwitchSettings fields kept in the keyring when it is usable
SECRET_FIELDS = frozenset({"access_token", "client_secret"})

DEFAULT_STREAMLINK_PATH = "streamlink"
CHROME_ARGS = "--app={url} --window-size=350,758"
DEFAULT_CHAT_COMMAND_LINE = f"chromium {CHROME_ARGS}"
DEFAULT_ACCENT_COLOR = "#6441a5"  # Twitch purple


class ThemeMode(str, Enum):
    """Theme base colour options."""

    AUTO = "auto"  # Follow system preference
    LIGHT = "light"
    DARK = "dark"


def get_config_dir() -> Path:
    """Get the configuration directory."""
    path = Path(user_config_dir(APP_NAME, APP_AUTHOR))
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Get the data directory."""
    path = Path(user_data_dir(APP_NAME, APP_AUTHOR))
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class StreamlinkSettings:
    """Stream player (streamlink) settings."""

    path: str = DEFAULT_STREAMLINK_PATH
    player: str = ""  # empty = streamlink's configured player
    player_args: str = ""
    default_quality: StreamQuality = StreamQuality.SOURCE
    additional_args: str = ""


@dataclass
class ChatSettings:
    """Chat launch settings."""

    # {url} is replaced by the chat URL; empty = default browser
    command_line: str = DEFAULT_CHAT_COMMAND_LINE


@dataclass
class NotificationSettings:
    """Notification-related settings."""

    enabled: bool = True
    sound_enabled: bool = False
    show_game: bool = True
    show_title: bool = True
    excluded_channels: list[str] = field(default_factory=list)
    backend: str = "auto"  # auto, dbus, notify-send


@dataclass
class TwitchSettings:
    """Twitch API settings."""

    client_id: str = ""
    client_secret: str = ""
    access_token: str = ""
    login_name: str = ""  # Twitch username of the logged-in account


@dataclass
class WindowSettings:
    """Window state settings."""

    width: int = 520
    height: int = 700
    x: int | None = None
    y: int | None = None
    maximized: bool = False


@dataclass
class Settings:
    """Application settings."""

    # General
    refresh_interval: int = 60  # seconds

    # UI preferences
    sort_mode: SortMode = SortMode.LIVE_FIRST
    hide_offline: bool = False
    theme_mode: ThemeMode = ThemeMode.AUTO
    accent_color: str = DEFAULT_ACCENT_COLOR

    # Sections
    twitch: TwitchSettings = field(default_factory=TwitchSettings)
    streamlink: StreamlinkSettings = field(default_factory=StreamlinkSettings)
    chat: ChatSettings = field(default_factory=ChatSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    window: WindowSettings = field(default_factory=WindowSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from file.

        A missing or malformed file yields default settings; this never raises.
        """
        from .credential_store import load_twitch_secrets

        if path is None:
            path = get_config_dir() / SETTINGS_FILE_NAME

        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            settings = cls._from_dict(data)
            needs_resave = settings._migrate(data)
        except (
            OSError,
            json.JSONDecodeError,
            AttributeError,
            KeyError,
            TypeError,
            ValueError,
        ) as e:
            logger.warning(f"Could not read settings from {path}, using defaults: {e}")
            return cls()

        if load_twitch_secrets(settings.twitch):
            needs_resave = True

        if needs_resave:
            try:
                settings.save(path)
            except OSError as e:
                logger.warning(f"Could not save migrated settings: {e}")

        return settings

    def save(self, path: Path | None = None) -> None:
        """Save settings to file."""
        from .credential_store import restrict_to_owner, store_twitch_secrets

        if path is None:
            path = get_config_dir() / SETTINGS_FILE_NAME

        path.parent.mkdir(parents=True, exist_ok=True)

        in_keyring = store_twitch_secrets(self.twitch)

        # Atomic write: write to temp file then rename to prevent corruption on crash
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix="settings_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._to_dict(exclude=in_keyring), f, indent=2)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        if any(getattr(self.twitch, attr) for attr in SECRET_FIELDS - in_keyring):
            restrict_to_owner(path)

    def _migrate(self, data: dict) -> bool:
        """Upgrade values written by older versions. Returns True if anything changed."""
        changed = False

        # Older versions stored a bare browser path instead of a command line
        chrome_full_path = data.get("chrome_full_path")
        if isinstance(chrome_full_path, str) and chrome_full_path.strip():
            self.chat.command_line = f'"{chrome_full_path}" {CHROME_ARGS}'
            changed = True
        elif "chat" not in data:
            changed = True

        if not self.streamlink.path.strip():
            self.streamlink.path = DEFAULT_STREAMLINK_PATH
            changed = True

        return changed

    @staticmethod
    def _validate_int(value, default: int, min_val: int = 0, max_val: int | None = None) -> int:
        """Validate and constrain an integer value."""
        if not isinstance(value, int) or isinstance(value, bool):
            return default
        if value < min_val:
            return min_val
        if max_val is not None and value > max_val:
            return max_val
        return value

    @staticmethod
    def _validate_str(value, default: str) -> str:
        return value if isinstance(value, str) else default

    @staticmethod
    def _validate_bool(value, default: bool) -> bool:
        return value if isinstance(value, bool) else default

    @staticmethod
    def _section(data: dict, name: str) -> dict | None:
        """Get a nested section, or None if it is missing or not an object."""
        section = data.get(name)
        if section is None:
            return None
        if not isinstance(section, dict):
            logger.warning(f"Ignoring settings section '{name}': expected an object")
            return None
        return section

    @classmethod
    def _from_dict(cls, data: dict) -> "Settings":
        """Create Settings from a dictionary with validation.

        Values of the wrong type fall back to their defaults.
        """
        settings = cls()
        text = cls._validate_str
        flag = cls._validate_bool

        settings.refresh_interval = cls._validate_int(
            data.get("refresh_interval"), 60, min_val=10, max_val=3600
        )

        try:
            settings.sort_mode = SortMode(data.get("sort_mode", settings.sort_mode.value))
        except (TypeError, ValueError):
            settings.sort_mode = SortMode.LIVE_FIRST
        settings.hide_offline = flag(data.get("hide_offline"), settings.hide_offline)
        try:
            settings.theme_mode = ThemeMode(data.get("theme_mode", settings.theme_mode.value))
        except (TypeError, ValueError):
            settings.theme_mode = ThemeMode.AUTO
        settings.accent_color = text(data.get("accent_color"), DEFAULT_ACCENT_COLOR)

        t = cls._section(data, "twitch")
        if t is not None:
            settings.twitch = TwitchSettings(
                client_id=text(t.get("client_id"), ""),
                client_secret=text(t.get("client_secret"), ""),
                access_token=text(t.get("access_token"), ""),
                login_name=text(t.get("login_name"), ""),
            )

        s = cls._section(data, "streamlink")
        if s is not None:
            try:
                quality = StreamQuality(s.get("default_quality", StreamQuality.SOURCE.value))
            except (TypeError, ValueError):
                quality = StreamQuality.SOURCE
            settings.streamlink = StreamlinkSettings(
                path=text(s.get("path"), DEFAULT_STREAMLINK_PATH),
                player=text(s.get("player"), ""),
                player_args=text(s.get("player_args"), ""),
                default_quality=quality,
                additional_args=text(s.get("additional_args"), ""),
            )

        c = cls._section(data, "chat")
        if c is not None:
            settings.chat = ChatSettings(
                command_line=text(c.get("command_line"), DEFAULT_CHAT_COMMAND_LINE),
            )

        n = cls._section(data, "notifications")
        if n is not None:
            excluded = n.get("excluded_channels")
            if not isinstance(excluded, list):
                excluded = []
            settings.notifications = NotificationSettings(
                enabled=flag(n.get("enabled"), True),
                sound_enabled=flag(n.get("sound_enabled"), False),
                show_game=flag(n.get("show_game"), True),
                show_title=flag(n.get("show_title"), True),
                excluded_channels=[key for key in excluded if isinstance(key, str)],
                backend=text(n.get("backend"), "auto"),
            )

        w = cls._section(data, "window")
        if w is not None:
            x, y = w.get("x"), w.get("y")
            settings.window = WindowSettings(
                width=cls._validate_int(w.get("width"), 520, min_val=200, max_val=10000),
                height=cls._validate_int(w.get("height"), 700, min_val=200, max_val=10000),
                x=x if isinstance(x, int) and not isinstance(x, bool) else None,
                y=y if isinstance(y, int) and not isinstance(y, bool) else None,
                maximized=flag(w.get("maximized"), False),
            )

        return settings

    def _to_dict(self, exclude: set[str] | frozenset[str] = frozenset()) -> dict:
        """Convert Settings to a dictionary.

        Twitch secret fields named in exclude are left out; they live in the
        system keyring.
        """
        secrets = {attr: getattr(self.twitch, attr) for attr in SECRET_FIELDS - set(exclude)}
        return {
            "refresh_interval": self.refresh_interval,
            "sort_mode": self.sort_mode.value,
            "hide_offline": self.hide_offline,
            "theme_mode": self.theme_mode.value,
            "accent_color": self.accent_color,
            "twitch": {
                "client_id": self.twitch.client_id,
                "login_name": self.twitch.login_name,
                **secrets,
            },
            "streamlink": {
                "path": self.streamlink.path,
                "player": self.streamlink.player,
                "player_args": self.streamlink.player_args,
                "default_quality": self.streamlink.default_quality.value,
                "additional_args": self.streamlink.additional_args,
            },
            "chat": {
                "command_line": self.chat.command_line,
            },
            "notifications": {
                "enabled": self.notifications.enabled,
                "sound_enabled": self.notifications.sound_enabled,
                "show_game": self.notifications.show_game,
                "show_title": self.notifications.show_title,
                "excluded_channels": self.notifications.excluded_channels,
                "backend": self.notifications.backend,
            },
            "window": {
                "width": self.window.width,
                "height": self.window.height,
                "x": self.window.x,
                "y": self.window.y,
                "maximized": self.window.maximized,
            },
        }


class SettingsHandler:
    """Owns the application's Settings: loads them on first access and saves on
    every change made through it.

    Listeners registered with on_changed() receive the dotted name of each
    changed field (e.g. "theme_mode" or "streamlink.default_quality").
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._settings: Settings | None = None
        self._on_changed: list[Callable[[str], None]] = []

    @property
    def path(self) -> Path:
        if self._path is None:
            self._path = get_config_dir() / SETTINGS_FILE_NAME
        return self._path

    @property
    def settings(self) -> Settings:
        """The current settings, loaded from disk on first access."""
        if self._settings is None:
            self._load()
        return self._settings  # type: ignore[return-value]

    @property
    def is_loaded(self) -> bool:
        return self._settings is not None

    def on_changed(self, callback: Callable[[str], None]) -> None:
        """Register a callback for settings changes."""
        self._on_changed.append(callback)

    def _load(self) -> None:
        existed = self.path.exists()
        self._settings = Settings.load(self.path)
        if not existed:
            # First run: write the defaults so users have a file to edit
            self.save()

    def update(self, section: str | None = None, **changes) -> list[str]:
        """Apply changes to the settings (or one of its sections) and save.

        Returns the dotted names of the fields that actually changed.
        """
        target = self.settings if section is None else getattr(self.settings, section)

        changed: list[str] = []
        for name, value in changes.items():
            if not hasattr(target, name):
                raise AttributeError(f"Unknown setting: {section + '.' if section else ''}{name}")
            if getattr(target, name) != value:
                setattr(target, name, value)
                changed.append(f"{section}.{name}" if section else name)

        if changed:
            self.save()
            self._fire_changed(changed)
        return changed

    def is_excluded_from_notifications(self, channel_key: str) -> bool:
        return channel_key in self.settings.notifications.excluded_channels

    def exclude_from_notifications(self, channel_key: str) -> None:
        """Stop notifying when the given channel goes live."""
        excluded = self.settings.notifications.excluded_channels
        if channel_key in excluded:
            return
        excluded.append(channel_key)
        self.save()
        self._fire_changed(["notifications.excluded_channels"])

    def include_in_notifications(self, channel_key: str) -> None:
        """Resume notifying when the given channel goes live."""
        excluded = self.settings.notifications.excluded_channels
        if channel_key not in excluded:
            return
        excluded.remove(channel_key)
        self.save()
        self._fire_changed(["notifications.excluded_channels"])

    def save(self) -> bool:
        """Write the settings to disk. Failures are logged, never raised."""
        try:
            self.settings.save(self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving settings: {e}")
            return False

    def _fire_changed(self, names: list[str]) -> None:
        for name in names:
            for callback in self._on_changed:
                try:
                    callback(name)
                except Exception as e:
                    logger.error(f"Settings callback error: {e}")
