"""Stream list components using QListView + model pattern."""

from .stream_model import PlayingRole, StreamListModel, StreamRole, filter_and_sort

__all__ = [
    "StreamListModel",
    "StreamRole",
    "PlayingRole",
    "filter_and_sort",
]
