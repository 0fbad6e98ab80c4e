"""Desktop notification handler."""

import logging
import os
import shutil
import subprocess
from collections.abc import Callable

from ..core.launcher import is_flatpak
from ..core.models import Livestream
from ..core.settings import NotificationSettings

logger = logging.getLogger(__name__)

APP_DISPLAY_NAME = "Livestream Monitor"

DEFAULT_SOUNDS = [
    "/usr/share/sounds/freedesktop/stereo/message-new-instant.oga",
    "/usr/share/sounds/freedesktop/stereo/message.oga",
]


class Notifier:
    """Handles desktop notifications for stream events."""

    def __init__(
        self,
        settings: NotificationSettings,
        on_open_stream: Callable[[Livestream], None] | None = None,
    ) -> None:
        self.settings = settings
        self.on_open_stream = on_open_stream
        self._notifier = None
        self._backend = "none"
        self._pending_streams: dict[str, Livestream] = {}
        self._init_backend()

    def _init_backend(self) -> None:
        """Initialize the notification backend based on settings."""
        backend = self.settings.backend
        self._configured_backend = backend

        if backend in ("auto", "dbus"):
            try:
                from desktop_notifier import DesktopNotifier

                self._notifier = DesktopNotifier(app_name=APP_DISPLAY_NAME)
                self._backend = "desktop-notifier"
                logger.info("Using desktop-notifier backend")
                return
            except Exception as e:
                logger.warning(f"desktop-notifier failed: {e}")
                if backend == "dbus":
                    self._backend = "none"
                    return

        if backend in ("auto", "notify-send"):
            if shutil.which("notify-send") or is_flatpak():
                self._backend = "notify-send"
                logger.info("Using notify-send backend")
            else:
                logger.error("No notification backend available")
                self._backend = "none"
            return

        logger.warning(f"Unknown backend: {backend}, using auto")
        self.settings.backend = "auto"
        self._init_backend()

    def update_settings(self, settings: NotificationSettings) -> None:
        """Update settings and reinitialize backend if needed."""
        self.settings = settings
        if settings.backend != self._configured_backend:
            self._init_backend()

    def should_notify(self, livestream: Livestream) -> bool:
        """Check the enabled flag and the exclusion list."""
        if not self.settings.enabled:
            return False
        return livestream.channel.unique_key not in self.settings.excluded_channels

    def build_content(self, livestream: Livestream) -> tuple[str, str]:
        """Build the (title, body) of a go-live notification."""
        title = f"{livestream.display_name} is live!"

        body_parts = []
        if self.settings.show_game and livestream.game:
            body_parts.append(f"Playing: {livestream.game}")
        if self.settings.show_title and livestream.title:
            body_parts.append(livestream.title)

        body = "\n".join(body_parts) if body_parts else "Stream is now live"
        return title, body

    async def notify_stream_online(self, livestream: Livestream) -> None:
        """Send a notification that a stream is now live."""
        if not self.should_notify(livestream):
            return

        title, body = self.build_content(livestream)
        await self._send_notification(title, body, livestream)

    async def _send_notification(
        self,
        title: str,
        body: str,
        livestream: Livestream | None = None,
    ) -> bool:
        """Send a notification using the configured backend."""
        if self._backend == "none":
            logger.warning("No notification backend available")
            return False

        channel_key = livestream.channel.unique_key if livestream else None
        if channel_key and livestream:
            self._pending_streams[channel_key] = livestream

        if self._backend == "desktop-notifier" and self._notifier:
            try:
                from desktop_notifier import Button, Sound

                buttons = []
                if self.on_open_stream and channel_key:
                    buttons.append(
                        Button(
                            title="Watch",
                            on_pressed=lambda key=channel_key: self._handle_watch(key),
                        )
                    )

                await self._notifier.send(
                    title=title,
                    message=body,
                    buttons=buttons,
                    sound=Sound(name="default") if self.settings.sound_enabled else None,
                )
                return True
            except Exception as e:
                logger.error(f"Failed to send notification: {e}")
                return False

        return self._notify_send(title, body)

    def send_notification_sync(self, livestream: Livestream, is_test: bool = False) -> None:
        """Send a go-live notification with notify-send.

        Safe to call from any thread since it doesn't need an event loop.
        Test notifications skip the enabled flag and the exclusion list.
        """
        if not is_test and not self.should_notify(livestream):
            return

        self._pending_streams[livestream.channel.unique_key] = livestream
        title, body = self.build_content(livestream)
        if self._notify_send(title, body) and (self.settings.sound_enabled or is_test):
            # notify-send sound hints don't work on all desktops
            self._play_sound()

    def _notify_send(self, title: str, body: str) -> bool:
        cmd = ["notify-send", title, body, f"--app-name={APP_DISPLAY_NAME}"]
        if is_flatpak():
            cmd = ["flatpak-spawn", "--host"] + cmd
        elif not shutil.which("notify-send"):
            return False

        try:
            subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Failed to run notify-send: {e}")
            return False
        return True

    def _play_sound(self) -> None:
        """Play the freedesktop message sound."""
        if not shutil.which("paplay"):
            return
        for path in DEFAULT_SOUNDS:
            if os.path.isfile(path):
                try:
                    subprocess.Popen(
                        ["paplay", path],
                        stdout=subprocess.DEVNULL,
                        stderr=subprocess.DEVNULL,
                    )
                except OSError as e:
                    logger.warning(f"Failed to play notification sound: {e}")
                return

    def _handle_watch(self, channel_key: str) -> None:
        """Handle watch button click."""
        if self.on_open_stream and channel_key in self._pending_streams:
            livestream = self._pending_streams[channel_key]
            try:
                self.on_open_stream(livestream)
            except Exception as e:
                logger.error(f"Error handling watch callback: {e}")

    @property
    def backend_name(self) -> str:
        """Get a human-readable name for the current backend."""
        if self._backend == "desktop-notifier":
            return "D-Bus (desktop-notifier)"
        elif self._backend == "notify-send":
            return "notify-send"
        return "None"
