"""Core data models for Livestream Monitor."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class StreamPlatform(str, Enum):
    """Supported streaming platforms."""

    TWITCH = "twitch"


class StreamQuality(str, Enum):
    """Stream quality options passed to the stream player."""

    SOURCE = "source"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MOBILE = "mobile"
    AUDIO_ONLY = "audio_only"


class SortMode(int, Enum):
    """Channel list sort modes."""

    NAME = 0
    LIVE_FIRST = 1
    VIEWERS = 2


@dataclass
class Channel:
    """Represents a followed channel."""

    channel_id: str
    platform: StreamPlatform = StreamPlatform.TWITCH
    display_name: Optional[str] = None
    imported_by: Optional[str] = None
    added_at: datetime = field(default_factory=datetime.now)

    @property
    def unique_key(self) -> str:
        """Get a unique identifier for this channel across all platforms."""
        return f"{self.platform.value}:{self.channel_id.lower()}"

    def __hash__(self) -> int:
        return hash(self.unique_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Channel):
            return False
        return self.unique_key == other.unique_key


@dataclass
class Livestream:
    """Live/offline status of a followed channel.

    One instance per channel is owned by the monitor and updated in place on
    every refresh cycle.
    """

    channel: Channel
    live: bool = False
    is_partner: bool = False
    title: Optional[str] = None
    game: Optional[str] = None
    viewers: int = 0
    start_time: Optional[datetime] = None
    last_live_time: Optional[datetime] = None
    thumbnail_url: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Get the display name for this stream."""
        return self.channel.display_name or self.channel.channel_id

    @property
    def uptime(self) -> timedelta:
        """Get the current uptime if live."""
        if self.live and self.start_time:
            now = datetime.now(timezone.utc) if self.start_time.tzinfo else datetime.now()
            return now - self.start_time
        return timedelta()

    @property
    def uptime_str(self) -> str:
        """Get a formatted uptime string."""
        if not self.live or not self.start_time:
            return ""
        total_seconds = int(self.uptime.total_seconds())
        hours, remainder = divmod(total_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m {seconds}s"

    @property
    def viewers_str(self) -> str:
        """Get a formatted viewer count string."""
        if self.viewers >= 1_000_000:
            return f"{self.viewers / 1_000_000:.1f}M"
        if self.viewers >= 1_000:
            return f"{self.viewers / 1_000:.1f}K"
        return str(self.viewers)

    @property
    def last_seen_str(self) -> str:
        """Get a formatted 'last seen' string for offline streams."""
        if self.live or not self.last_live_time:
            return ""

        now = datetime.now(timezone.utc) if self.last_live_time.tzinfo else datetime.now()
        total_seconds = int((now - self.last_live_time).total_seconds())
        if total_seconds < 60:
            return "just now"

        minutes = total_seconds // 60
        if minutes < 60:
            return f"{minutes}m ago"

        hours = minutes // 60
        if hours < 24:
            return f"{hours}h ago"

        days = hours // 24
        if days < 365:
            return f"{days}d ago"
        return f"{days // 365}y ago"

    @property
    def stream_url(self) -> str:
        """Get the stream URL for this livestream."""
        return f"https://www.twitch.tv/{self.channel.channel_id}/"

    @property
    def chat_url(self) -> str:
        """Get the popout chat URL for this livestream."""
        return f"https://www.twitch.tv/popout/{self.channel.channel_id}/chat"

    def update_from(self, other: "Livestream") -> bool:
        """
        Update this livestream with data from another instance.
        Returns True if the stream went live (was offline, now online).
        """
        went_live = not self.live and other.live

        self.live = other.live
        self.is_partner = other.is_partner
        self.title = other.title
        self.game = other.game
        self.viewers = other.viewers
        self.start_time = other.start_time
        self.thumbnail_url = other.thumbnail_url
        self.error_message = None
        if other.channel.display_name:
            self.channel.display_name = other.channel.display_name

        if other.live:
            self.last_live_time = datetime.now(timezone.utc)
        elif other.last_live_time:
            self.last_live_time = other.last_live_time

        return went_live

    def __hash__(self) -> int:
        return hash(self.channel)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Livestream):
            return False
        return self.channel == other.channel


@dataclass(frozen=True)
class VodDetails:
    """A recorded past broadcast."""

    vod_id: str
    url: str
    stream_id: str
    title: str = ""
    length_seconds: int = 0
    views: int = 0
    recorded_at: Optional[datetime] = None
    preview_url: Optional[str] = None

    @property
    def length_str(self) -> str:
        """Get the VOD length as H:MM:SS."""
        hours, remainder = divmod(self.length_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{hours}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class VodQuery:
    """Parameters for a single page of VODs."""

    stream_id: str
    vod_types: tuple[str, ...] = ()
    skip: int = 0
    take: int = 10


@dataclass(frozen=True)
class TopStreamQuery:
    """Parameters for a single page of top streams."""

    game_name: Optional[str] = None
    skip: int = 0
    take: int = 25
