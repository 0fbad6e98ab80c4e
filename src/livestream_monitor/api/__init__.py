"""API clients for streaming platforms."""

from .base import ApiStatusError, BaseApiClient
from .twitch import TwitchApiClient

__all__ = [
    "ApiStatusError",
    "BaseApiClient",
    "TwitchApiClient",
]
