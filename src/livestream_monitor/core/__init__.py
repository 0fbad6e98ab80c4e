"""Core models and launchers for Livestream Monitor.

StreamMonitor and the pagers live in core.monitor and core.paging; they depend
on the api package, which itself imports core.models, so they are not
re-exported here.
"""

from .chat import ChatLauncher, open_in_browser
from .launcher import StreamLauncher, StreamlinkNotFoundError
from .models import Channel, Livestream, StreamPlatform, StreamQuality, VodDetails
from .settings import Settings, SettingsHandler

__all__ = [
    "Channel",
    "ChatLauncher",
    "Livestream",
    "Settings",
    "SettingsHandler",
    "StreamLauncher",
    "StreamPlatform",
    "StreamQuality",
    "StreamlinkNotFoundError",
    "VodDetails",
    "open_in_browser",
]
