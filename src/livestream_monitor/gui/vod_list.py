"""Window for browsing a channel's past broadcasts page by page."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
)

from ..api.twitch import TwitchApiClient
from ..core.models import VodDetails
from ..core.paging import VodPager

if TYPE_CHECKING:
    from .app import Application

logger = logging.getLogger(__name__)

VodRole = Qt.ItemDataRole.UserRole + 1


def format_vod(vod: VodDetails) -> str:
    """One-line summary of a VOD for the list."""
    parts = [vod.title or vod.vod_id, vod.length_str, f"{vod.views:,} views"]
    if vod.recorded_at:
        parts.append(vod.recorded_at.astimezone().strftime("%Y-%m-%d %H:%M"))
    return "  ·  ".join(parts)


class VodListDialog(QDialog):
    """Lists VODs for a stream, VOD_TILES_PER_PAGE per page."""

    # Pager callbacks run on worker threads; these carry them to the UI thread
    items_changed = Signal(list)
    loading_changed = Signal(bool)
    message = Signal(str, str)

    def __init__(self, parent, app: Application, stream_id: str = ""):
        super().__init__(parent)
        self.app = app
        # Separate from the monitor's client
        self.client = TwitchApiClient(app.settings.twitch)
        self.pager = VodPager(self.client)
        self.pager.on_items_changed(self.items_changed.emit)
        self.pager.on_loading_changed(self.loading_changed.emit)
        self.pager.on_message(self.message.emit)

        self.setWindowTitle("VODs")
        self.resize(640, 560)

        layout = QVBoxLayout(self)

        form = QFormLayout()

        self.stream_combo = QComboBox()
        self.stream_combo.setEditable(True)
        self.stream_combo.setInsertPolicy(QComboBox.InsertPolicy.NoInsert)
        for channel in sorted(app.monitor.channels, key=lambda c: c.channel_id.lower()):
            self.stream_combo.addItem(channel.display_name or channel.channel_id, channel.channel_id)
        self.stream_combo.setCurrentIndex(-1)
        self.stream_combo.lineEdit().setPlaceholderText("Channel name")
        self.stream_combo.activated.connect(self._on_stream_chosen)
        self.stream_combo.lineEdit().returnPressed.connect(self._on_stream_chosen)
        form.addRow("Stream:", self.stream_combo)

        self.type_combo = QComboBox()
        for vod_type in self.pager.vod_types:
            self.type_combo.addItem(vod_type.title(), vod_type)
        self.type_combo.currentIndexChanged.connect(self._on_type_changed)
        form.addRow("Type:", self.type_combo)

        layout.addLayout(form)

        self.vod_list = QListWidget()
        self.vod_list.currentItemChanged.connect(self._on_vod_selected)
        self.vod_list.itemDoubleClicked.connect(lambda _: self._on_open_vod())
        layout.addWidget(self.vod_list, 1)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: gray;")
        layout.addWidget(self.status_label)

        nav_layout = QHBoxLayout()
        self.prev_btn = QPushButton("◀ Previous")
        self.prev_btn.clicked.connect(self._on_previous)
        nav_layout.addWidget(self.prev_btn)
        nav_layout.addStretch()
        self.page_label = QLabel("Page 1")
        nav_layout.addWidget(self.page_label)
        nav_layout.addStretch()
        self.next_btn = QPushButton("Next ▶")
        self.next_btn.clicked.connect(self._on_next)
        nav_layout.addWidget(self.next_btn)
        layout.addLayout(nav_layout)

        url_layout = QHBoxLayout()
        self.url_edit = QLineEdit()
        self.url_edit.setPlaceholderText("VOD URL")
        self.url_edit.textChanged.connect(self._on_url_changed)
        url_layout.addWidget(self.url_edit, 1)
        self.open_btn = QPushButton("Open VOD")
        self.open_btn.clicked.connect(self._on_open_vod)
        url_layout.addWidget(self.open_btn)
        layout.addLayout(url_layout)

        self.items_changed.connect(self._on_items_changed)
        self.loading_changed.connect(self._on_loading_changed)
        self.message.connect(self._on_message)

        self._update_buttons()

        if stream_id:
            self.stream_combo.setEditText(stream_id)
            self._on_stream_chosen()

    def _run(self, coro_func):
        self.app.run_async(
            coro_func,
            client=self.client,
            on_error=lambda error: self._on_message("Error", error),
            parent=self,
        )

    def _on_stream_chosen(self, *_):
        index = self.stream_combo.currentIndex()
        text = self.stream_combo.currentText().strip()
        stream_id = text
        if index >= 0 and self.stream_combo.itemText(index) == text:
            stream_id = self.stream_combo.itemData(index)
        if not stream_id:
            return
        self._run(lambda: self.pager.set_stream_id(stream_id))

    def _on_type_changed(self, _index: int):
        vod_type = self.type_combo.currentData()
        if vod_type:
            self._run(lambda: self.pager.set_vod_type(vod_type))

    def _on_previous(self):
        self._run(self.pager.previous_page)

    def _on_next(self):
        self._run(self.pager.next_page)

    def _on_items_changed(self, vods: list):
        self.vod_list.clear()
        for vod in vods:
            item = QListWidgetItem(format_vod(vod))
            item.setData(VodRole, vod)
            item.setToolTip(vod.url)
            self.vod_list.addItem(item)
        self._update_buttons()

    def _on_loading_changed(self, loading: bool):
        if loading:
            self.status_label.setText(f"Loading VODs for '{self.pager.stream_id}'...")
        else:
            count = self.vod_list.count()
            self.status_label.setText(f"{count} VODs" if count else "No VODs")
        self._update_buttons()

    def _on_message(self, title: str, text: str):
        QMessageBox.warning(self, title, text)

    def _on_vod_selected(self, current: QListWidgetItem | None, _previous=None):
        vod = current.data(VodRole) if current else None
        self.pager.select(vod)
        if vod:
            self.url_edit.setText(vod.url)

    def _on_url_changed(self, text: str):
        self.pager.vod_url = text
        self._update_buttons()

    def _on_open_vod(self):
        if not self.pager.can_open_vod:
            return
        self.app.launch_vod(self.pager.vod_url)

    def _update_buttons(self):
        self.prev_btn.setEnabled(self.pager.can_previous)
        self.next_btn.setEnabled(self.pager.can_next)
        self.open_btn.setEnabled(self.pager.can_open_vod)
        loading = self.pager.loading
        self.stream_combo.setEnabled(not loading)
        self.type_combo.setEnabled(not loading)
        self.page_label.setText(f"Page {self.pager.page}")
