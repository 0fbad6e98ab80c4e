"""Stream monitoring service."""

import asyncio
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import aiohttp

from ..api.base import ApiStatusError, BaseApiClient
from ..api.twitch import TwitchApiClient
from .models import Channel, Livestream, StreamPlatform
from .settings import SettingsHandler, get_data_dir

logger = logging.getLogger(__name__)

CHANNELS_FILE_NAME = "channels.json"


class StreamMonitor:
    """
    Central service for monitoring followed channels.
    Handles channel persistence, periodic refreshing, and event notifications.
    """

    def __init__(
        self,
        settings: SettingsHandler,
        client: BaseApiClient | None = None,
        channels_path: Path | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or TwitchApiClient(settings.settings.twitch)
        self._channels_path = channels_path
        self._channels: dict[str, Channel] = {}
        self._livestreams: dict[str, Livestream] = {}
        self._running = False
        self._refresh_task: asyncio.Task | None = None

        # Event callbacks
        self._on_stream_online: list[Callable[[Livestream], None]] = []
        self._on_stream_offline: list[Callable[[Livestream], None]] = []
        self._on_refresh_complete: list[Callable[[list[Livestream]], None]] = []

        # Track initial load to suppress startup notifications
        self._initial_load_complete = False

        # Protects channel/livestream state; refreshes run on a worker thread
        self._state_lock = threading.RLock()

    @property
    def channels_path(self) -> Path:
        if self._channels_path is None:
            self._channels_path = get_data_dir() / CHANNELS_FILE_NAME
        return self._channels_path

    @property
    def channels(self) -> list[Channel]:
        """Get all monitored channels (thread-safe snapshot)."""
        with self._state_lock:
            return list(self._channels.values())

    @property
    def livestreams(self) -> list[Livestream]:
        """Get all livestreams (live and offline) (thread-safe snapshot)."""
        with self._state_lock:
            return list(self._livestreams.values())

    @property
    def live_streams(self) -> list[Livestream]:
        """Get only live streams (thread-safe snapshot)."""
        with self._state_lock:
            return [s for s in self._livestreams.values() if s.live]

    def get_livestream(self, key: str) -> Livestream | None:
        with self._state_lock:
            return self._livestreams.get(key)

    def on_stream_online(self, callback: Callable[[Livestream], None]) -> None:
        """Register a callback for when a stream goes online."""
        self._on_stream_online.append(callback)

    def on_stream_offline(self, callback: Callable[[Livestream], None]) -> None:
        """Register a callback for when a stream goes offline."""
        self._on_stream_offline.append(callback)

    def on_refresh_complete(self, callback: Callable[[list[Livestream]], None]) -> None:
        """Register a callback for when a refresh cycle completes."""
        self._on_refresh_complete.append(callback)

    async def initialize(self) -> None:
        """Load saved channels and do a first refresh without notifications."""
        self.load_channels()
        try:
            await self.refresh()
        finally:
            self._initial_load_complete = True

    async def start(self) -> None:
        """Start the monitoring loop."""
        if self._running:
            return

        self._running = True
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Stop the monitoring loop."""
        self._running = False

        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        await self.client.close()

    async def _refresh_loop(self) -> None:
        """Main refresh loop."""
        while self._running:
            try:
                await asyncio.sleep(self.settings.settings.refresh_interval)
                await self.refresh()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in refresh loop: {e}")

    async def refresh(self) -> None:
        """Refresh the status of all followed channels.

        Channels whose status could not be fetched keep their previous state.
        Refresh-complete callbacks fire once per call, whatever happened; an
        unexpected error is re-raised after they have run.
        """
        try:
            await self._refresh_statuses()
        finally:
            snapshot = self.livestreams
            for callback in self._on_refresh_complete:
                try:
                    callback(snapshot)
                except Exception as e:
                    logger.error(f"Refresh callback error: {e}")

    async def _refresh_statuses(self) -> None:
        with self._state_lock:
            channels_snapshot = list(self._channels.values())

        results: list[Livestream] = []
        if channels_snapshot:
            try:
                results = await self.client.get_livestreams(channels_snapshot)
            except (
                aiohttp.ClientError,
                ApiStatusError,
                PermissionError,
                asyncio.TimeoutError,
                TimeoutError,
            ) as e:
                logger.error(f"Error querying {self.client.name}: {e}")

        events_to_fire: list[tuple[str, Livestream]] = []

        with self._state_lock:
            for livestream in results:
                if livestream.error_message:
                    logger.debug(
                        f"Keeping previous state for {livestream.channel.channel_id}: "
                        f"{livestream.error_message}"
                    )
                    continue

                existing = self._livestreams.get(livestream.channel.unique_key)
                if existing is None:
                    # Removed while the request was in flight
                    continue

                was_live = existing.live
                if existing.update_from(livestream):
                    events_to_fire.append(("online", existing))
                elif was_live and not existing.live:
                    events_to_fire.append(("offline", existing))

        # Fire events outside the lock to avoid deadlocks
        for event_type, livestream in events_to_fire:
            if event_type == "online":
                self._fire_stream_online(livestream)
            else:
                self._fire_stream_offline(livestream)

    def _fire_stream_online(self, livestream: Livestream) -> None:
        """Fire stream online callbacks."""
        # Suppress notifications during initial startup
        if not self._initial_load_complete:
            return

        if self.settings.is_excluded_from_notifications(livestream.channel.unique_key):
            return

        for callback in self._on_stream_online:
            try:
                callback(livestream)
            except Exception as e:
                logger.error(f"Stream online callback error: {e}")

    def _fire_stream_offline(self, livestream: Livestream) -> None:
        """Fire stream offline callbacks."""
        for callback in self._on_stream_offline:
            try:
                callback(livestream)
            except Exception as e:
                logger.error(f"Stream offline callback error: {e}")

    async def add_channel(self, channel_id: str) -> Channel | None:
        """Add a channel to monitor. Returns None if the channel doesn't exist."""
        channel = await self.client.get_channel_info(channel_id)
        if not channel:
            return None

        with self._state_lock:
            if channel.unique_key in self._channels:
                return self._channels[channel.unique_key]
            self._channels[channel.unique_key] = channel
            self._livestreams[channel.unique_key] = Livestream(channel=channel)

        livestream = await self.client.get_livestream(channel)
        if not livestream.error_message:
            with self._state_lock:
                existing = self._livestreams.get(channel.unique_key)
                if existing:
                    existing.update_from(livestream)

        self.save_channels()
        return channel

    def remove_channel(self, channel: Channel) -> None:
        """Remove a channel from monitoring."""
        self.remove_channels([channel.unique_key])

    def remove_channels(self, keys: list[str]) -> None:
        """Remove multiple channels by their unique keys."""
        with self._state_lock:
            for key in keys:
                self._channels.pop(key, None)
                self._livestreams.pop(key, None)
        self.save_channels()

    def has_channel(self, key: str) -> bool:
        """Check if a channel exists by its unique key."""
        with self._state_lock:
            return key in self._channels

    async def import_follows(self, username: str | None = None) -> list[Channel]:
        """Import the channels a user follows. Returns the newly added ones."""
        channels = await self.client.get_followed_channels(username)

        added: list[Channel] = []
        with self._state_lock:
            for channel in channels:
                if channel.unique_key not in self._channels:
                    self._channels[channel.unique_key] = channel
                    self._livestreams[channel.unique_key] = Livestream(channel=channel)
                    added.append(channel)

        if added:
            self.save_channels()
            # Don't announce every imported channel that happens to be live
            self.suppress_notifications()
            try:
                await self.refresh()
            finally:
                self.resume_notifications()

        return added

    def set_notifications_enabled(self, channel: Channel, enabled: bool) -> None:
        """Include or exclude a channel from go-live notifications."""
        if enabled:
            self.settings.include_in_notifications(channel.unique_key)
        else:
            self.settings.exclude_from_notifications(channel.unique_key)

    def suppress_notifications(self) -> None:
        """Temporarily suppress stream online notifications."""
        self._initial_load_complete = False

    def resume_notifications(self) -> None:
        """Resume stream online notifications after suppression."""
        self._initial_load_complete = True

    def _serialize_channels(self) -> list[dict]:
        """Serialize channels to a list of dicts for JSON persistence."""
        data = []
        with self._state_lock:
            for ch in self._channels.values():
                ch_data = {
                    "channel_id": ch.channel_id,
                    "platform": ch.platform.value,
                    "display_name": ch.display_name,
                    "imported_by": ch.imported_by,
                    "added_at": ch.added_at.isoformat(),
                }
                livestream = self._livestreams.get(ch.unique_key)
                if livestream and livestream.last_live_time:
                    ch_data["last_live_time"] = livestream.last_live_time.isoformat()
                data.append(ch_data)
        return data

    def save_channels(self) -> None:
        """Save channels to disk. Failures are logged."""
        path = self.channels_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix="channels_")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._serialize_channels(), f, indent=2)
                os.replace(tmp_path, path)
            except Exception:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving channels: {e}")

    def load_channels(self) -> None:
        """Load channels from disk."""
        path = self.channels_path
        if not path.exists():
            return

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)

            loaded_channels: dict[str, Channel] = {}
            loaded_streams: dict[str, Livestream] = {}
            for ch_data in data:
                channel = Channel(
                    channel_id=ch_data["channel_id"],
                    platform=StreamPlatform(ch_data.get("platform", StreamPlatform.TWITCH.value)),
                    display_name=ch_data.get("display_name"),
                    imported_by=ch_data.get("imported_by"),
                )

                if "added_at" in ch_data:
                    try:
                        channel.added_at = datetime.fromisoformat(ch_data["added_at"])
                    except ValueError:
                        pass

                livestream = Livestream(channel=channel)
                if "last_live_time" in ch_data:
                    try:
                        livestream.last_live_time = datetime.fromisoformat(
                            ch_data["last_live_time"]
                        )
                    except ValueError:
                        pass

                loaded_channels[channel.unique_key] = channel
                loaded_streams[channel.unique_key] = livestream

        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error loading channels: {e}")
            return

        with self._state_lock:
            self._channels.update(loaded_channels)
            self._livestreams.update(loaded_streams)
