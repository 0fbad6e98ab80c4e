"""Window for browsing the most watched live streams."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
)

from ..api.twitch import TwitchApiClient
from ..core.models import Livestream
from ..core.paging import TopStreamsPager

if TYPE_CHECKING:
    from .app import Application

logger = logging.getLogger(__name__)

StreamItemRole = Qt.ItemDataRole.UserRole + 1

ALL_GAMES = "All games"


class TopStreamsDialog(QDialog):
    """Pages through top live streams, optionally filtered by game."""

    items_changed = Signal(list)
    loading_changed = Signal(bool)
    message = Signal(str, str)
    games_loaded = Signal(list)

    def __init__(self, parent, app: Application):
        super().__init__(parent)
        self.app = app
        self.client = TwitchApiClient(app.settings.twitch)
        self.pager = TopStreamsPager(self.client)
        self.pager.on_items_changed(self.items_changed.emit)
        self.pager.on_loading_changed(self.loading_changed.emit)
        self.pager.on_message(self.message.emit)

        self.setWindowTitle("Top Streams")
        self.resize(640, 600)

        layout = QVBoxLayout(self)

        filter_layout = QHBoxLayout()
        filter_layout.addWidget(QLabel("Game:"))
        self.game_combo = QComboBox()
        self.game_combo.setEditable(True)
        self.game_combo.setInsertPolicy(QComboBox.InsertPolicy.NoInsert)
        self.game_combo.addItem(ALL_GAMES, None)
        self.game_combo.activated.connect(self._on_game_chosen)
        self.game_combo.lineEdit().returnPressed.connect(self._on_game_chosen)
        filter_layout.addWidget(self.game_combo, 1)
        layout.addLayout(filter_layout)

        self.stream_list = QListWidget()
        self.stream_list.itemDoubleClicked.connect(self._on_watch)
        layout.addWidget(self.stream_list, 1)

        nav_layout = QHBoxLayout()
        self.prev_btn = QPushButton("◀ Previous")
        self.prev_btn.clicked.connect(lambda: self._run(self.pager.previous_page))
        nav_layout.addWidget(self.prev_btn)
        nav_layout.addStretch()
        self.page_label = QLabel("Page 1")
        nav_layout.addWidget(self.page_label)
        nav_layout.addStretch()
        self.next_btn = QPushButton("Next ▶")
        self.next_btn.clicked.connect(lambda: self._run(self.pager.next_page))
        nav_layout.addWidget(self.next_btn)
        layout.addLayout(nav_layout)

        action_layout = QHBoxLayout()
        self.add_btn = QPushButton("Follow")
        self.add_btn.clicked.connect(self._on_follow)
        action_layout.addWidget(self.add_btn)
        self.watch_btn = QPushButton("Watch")
        self.watch_btn.clicked.connect(lambda: self._on_watch(self.stream_list.currentItem()))
        action_layout.addWidget(self.watch_btn)
        layout.addLayout(action_layout)

        self.items_changed.connect(self._on_items_changed)
        self.loading_changed.connect(lambda _: self._update_buttons())
        self.message.connect(lambda title, text: QMessageBox.warning(self, title, text))
        self.games_loaded.connect(self._on_games_loaded)

        self._update_buttons()
        self._run(self.pager.load)
        self._load_games()

    def _run(self, coro_func):
        self.app.run_async(
            coro_func,
            client=self.client,
            on_error=lambda error: QMessageBox.warning(self, "Error", error),
            parent=self,
        )

    def _load_games(self):
        async def load():
            try:
                return await self.client.get_top_games()
            except (PermissionError, NotImplementedError) as e:
                logger.info(f"Top games unavailable: {e}")
                return []

        self.app.run_async(
            load, on_finished=self.games_loaded.emit, parent=self, client=self.client
        )

    def _on_games_loaded(self, games: list):
        for game in games:
            self.game_combo.addItem(game["name"], game["name"])

    def _on_game_chosen(self, *_):
        text = self.game_combo.currentText().strip()
        game_name = None if text in ("", ALL_GAMES) else text
        self._run(lambda: self.pager.set_game_name(game_name))

    def _on_items_changed(self, streams: list):
        self.stream_list.clear()
        for livestream in streams:
            text = f"{livestream.display_name}  ·  {livestream.viewers_str} viewers"
            if livestream.game:
                text += f"  ·  {livestream.game}"
            item = QListWidgetItem(text)
            item.setData(StreamItemRole, livestream)
            item.setToolTip(livestream.title or "")
            self.stream_list.addItem(item)
        self._update_buttons()

    def _selected_stream(self) -> Livestream | None:
        item = self.stream_list.currentItem()
        return item.data(StreamItemRole) if item else None

    def _on_watch(self, item: QListWidgetItem | None):
        livestream = item.data(StreamItemRole) if item else None
        if livestream:
            self.app.launch_stream(livestream)

    def _on_follow(self):
        livestream = self._selected_stream()
        if not livestream:
            return

        channel_id = livestream.channel.channel_id

        def on_added(channel):
            if channel and self.app.main_window:
                self.app.main_window.refresh_stream_list()
                self.app.main_window.set_status(f"Added {channel.display_name or channel_id}")

        self.app.run_async(
            lambda: self.app.monitor.add_channel(channel_id),
            on_finished=on_added,
            on_error=lambda error: QMessageBox.warning(self, "Error", error),
            parent=self,
        )

    def _update_buttons(self):
        self.prev_btn.setEnabled(self.pager.can_previous)
        self.next_btn.setEnabled(self.pager.can_next)
        self.game_combo.setEnabled(not self.pager.loading)
        self.page_label.setText(f"Page {self.pager.page}")
