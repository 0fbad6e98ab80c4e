"""Stream list model for QListView."""

import fnmatch

from PySide6.QtCore import QAbstractListModel, QModelIndex, Qt
from PySide6.QtGui import QColor

from ...core.models import Livestream, SortMode
from ..theme import get_theme

# Custom data roles
StreamRole = Qt.ItemDataRole.UserRole + 1  # Returns Livestream object
PlayingRole = Qt.ItemDataRole.UserRole + 2  # Returns bool (is stream playing)


def filter_and_sort(
    livestreams: list[Livestream],
    sort_mode: SortMode,
    hide_offline: bool = False,
    name_filter: str = "",
) -> list[Livestream]:
    """Apply the list filters and sort order.

    The name filter is a case-insensitive substring, or a glob if it has a "*".
    """
    pattern = name_filter.strip().lower()

    filtered = []
    for ls in livestreams:
        if hide_offline and not ls.live:
            continue
        if pattern:
            name = ls.display_name.lower()
            if "*" in pattern:
                if not fnmatch.fnmatch(name, pattern):
                    continue
            elif pattern not in name:
                continue
        filtered.append(ls)

    def sort_key(ls: Livestream):
        name = ls.display_name.lower()
        if sort_mode == SortMode.NAME:
            return (0, 0, name)
        live = 0 if ls.live else 1
        if sort_mode == SortMode.VIEWERS:
            return (live, -(ls.viewers or 0), name)
        return (live, 0, name)

    filtered.sort(key=sort_key)
    return filtered


class StreamListModel(QAbstractListModel):
    """Model holding Livestream objects for the channel list."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._streams: list[Livestream] = []
        self._playing_keys: set[str] = set()

    def rowCount(self, parent=QModelIndex()) -> int:  # noqa: N802
        """Return the number of streams in the model."""
        if parent.isValid():
            return 0
        return len(self._streams)

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):
        """Return data for the given index and role."""
        if not index.isValid() or index.row() >= len(self._streams):
            return None

        livestream = self._streams[index.row()]
        playing = livestream.channel.unique_key in self._playing_keys

        if role == Qt.ItemDataRole.DisplayRole:
            return self._row_text(livestream, playing)
        elif role == Qt.ItemDataRole.ToolTipRole:
            return livestream.title or livestream.stream_url
        elif role == Qt.ItemDataRole.ForegroundRole:
            theme = get_theme()
            if livestream.error_message:
                return QColor(theme.status_error)
            return QColor(theme.status_live if livestream.live else theme.status_offline)
        elif role == StreamRole:
            return livestream
        elif role == PlayingRole:
            return playing

        return None

    @staticmethod
    def _row_text(livestream: Livestream, playing: bool) -> str:
        name = livestream.display_name
        if livestream.live:
            marker = "▶" if playing else "●"
            parts = [f"{marker} {name}", f"{livestream.viewers_str} viewers", livestream.uptime_str]
            if livestream.game:
                parts.append(livestream.game)
            return "  ·  ".join(p for p in parts if p)

        text = f"○ {name}"
        if livestream.last_seen_str:
            text += f"  ·  last seen {livestream.last_seen_str}"
        return text

    def set_streams(self, streams: list[Livestream]) -> None:
        """Replace all streams in the model."""
        self.beginResetModel()
        self._streams = list(streams)
        self.endResetModel()

    def update_streams_in_place(self, streams: list[Livestream]) -> bool:
        """Update stream data without resetting the model.

        Returns True if the update was done in-place (same keys in same order),
        False if a full reset is needed (caller should use set_streams instead).
        """
        if len(streams) != len(self._streams):
            return False

        for i, stream in enumerate(streams):
            if stream.channel.unique_key != self._streams[i].channel.unique_key:
                return False

        self._streams = list(streams)
        if self._streams:
            self.dataChanged.emit(self.index(0), self.index(len(self._streams) - 1))
        return True

    def update_playing_keys(self, keys: set[str]) -> None:
        """Update the set of currently playing stream keys."""
        if keys == self._playing_keys:
            return

        changed_keys = keys.symmetric_difference(self._playing_keys)
        self._playing_keys = set(keys)

        for i, stream in enumerate(self._streams):
            if stream.channel.unique_key in changed_keys:
                idx = self.index(i)
                self.dataChanged.emit(idx, idx)

    def get_stream_at(self, index: QModelIndex) -> Livestream | None:
        """Get the livestream at a given index."""
        if not index.isValid() or index.row() >= len(self._streams):
            return None
        return self._streams[index.row()]

    def get_streams(self) -> list[Livestream]:
        """Get all streams in the model."""
        return list(self._streams)
