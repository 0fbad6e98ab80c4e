"""Dialog for adding a Twitch channel by name or URL."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from PySide6.QtCore import QEvent
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
)

if TYPE_CHECKING:
    from ..app import Application

TWITCH_URL_RE = re.compile(r"(?:https?://)?(?:www\.|m\.)?twitch\.tv/([a-zA-Z0-9_]+)", re.IGNORECASE)
CHANNEL_NAME_RE = re.compile(r"^[a-zA-Z0-9_]{1,25}$")

# Paths on twitch.tv that aren't channels
RESERVED_PATHS = {"directory", "videos", "settings", "subscriptions", "inventory", "wallet"}


def parse_channel_input(text: str) -> str | None:
    """Return the channel name from a Twitch URL or bare name, or None."""
    text = text.strip()
    match = TWITCH_URL_RE.match(text)
    if match:
        name = match.group(1)
        return None if name.lower() in RESERVED_PATHS else name
    if CHANNEL_NAME_RE.match(text):
        return text
    return None


class AddChannelDialog(QDialog):
    """Dialog for adding a channel manually."""

    def __init__(self, parent, app: Application):
        super().__init__(parent)
        self.app = app
        self._has_auto_pasted = False

        self.setWindowTitle("Add Channel")
        self.setMinimumWidth(420)

        layout = QVBoxLayout(self)

        form_layout = QFormLayout()
        self.channel_edit = QLineEdit()
        self.channel_edit.setPlaceholderText("Channel name or twitch.tv URL")
        self.channel_edit.textChanged.connect(self._on_text_changed)
        self.channel_edit.returnPressed.connect(self._on_add)
        self.channel_edit.installEventFilter(self)
        form_layout.addRow("Channel:", self.channel_edit)
        layout.addLayout(form_layout)

        self.hint_label = QLabel("")
        self.hint_label.setStyleSheet("color: gray; font-style: italic;")
        layout.addWidget(self.hint_label)

        btn_layout = QHBoxLayout()
        import_btn = QPushButton("Import Follows...")
        import_btn.clicked.connect(self._on_import_follows)
        btn_layout.addWidget(import_btn)
        btn_layout.addStretch()

        self.add_btn = QPushButton("Add Channel")
        self.add_btn.setDefault(True)
        self.add_btn.setEnabled(False)
        self.add_btn.clicked.connect(self._on_add)
        btn_layout.addWidget(self.add_btn)

        close_btn = QPushButton("Close")
        close_btn.clicked.connect(self.reject)
        btn_layout.addWidget(close_btn)
        layout.addLayout(btn_layout)

        self._try_paste_clipboard()

    def eventFilter(self, obj, event):  # noqa: N802
        """Handle focus events for auto-paste."""
        if obj == self.channel_edit and event.type() == QEvent.Type.FocusIn:
            if not self._has_auto_pasted and not self.channel_edit.text():
                self._try_paste_clipboard()
        return super().eventFilter(obj, event)

    def _try_paste_clipboard(self):
        """Paste a Twitch URL from the clipboard, if there is one."""
        text = QApplication.clipboard().text()
        if text and "twitch.tv" in text.lower() and parse_channel_input(text):
            self.channel_edit.setText(text.strip())
            self._has_auto_pasted = True

    def _on_text_changed(self, text: str):
        channel_id = parse_channel_input(text)
        self.add_btn.setEnabled(channel_id is not None)
        if channel_id and channel_id != text.strip():
            self.hint_label.setText(f"Detected: {channel_id}")
        else:
            self.hint_label.setText("")

    def _on_add(self):
        channel_id = parse_channel_input(self.channel_edit.text())
        if not channel_id:
            return

        if self.app.monitor.has_channel(f"twitch:{channel_id.lower()}"):
            QMessageBox.information(self, "Already Added", f"{channel_id} is already in the list.")
            return

        self.add_btn.setEnabled(False)
        self.hint_label.setText(f"Looking up {channel_id}...")

        def on_finished(channel):
            self.add_btn.setEnabled(True)
            if channel is None:
                self.hint_label.setText("")
                QMessageBox.warning(self, "Not Found", f"Channel '{channel_id}' was not found.")
                return
            if self.app.main_window:
                self.app.main_window.refresh_stream_list()
                self.app.main_window.set_status(f"Added {channel.display_name or channel_id}")
            self.accept()

        def on_error(error_msg):
            self.add_btn.setEnabled(True)
            self.hint_label.setText("")
            QMessageBox.warning(self, "Error", f"Could not add channel: {error_msg}")

        self.app.run_async(
            lambda: self.app.monitor.add_channel(channel_id),
            on_finished=on_finished,
            on_error=on_error,
            parent=self,
        )

    def _on_import_follows(self):
        from .import_follows import ImportFollowsDialog

        dialog = ImportFollowsDialog(self, self.app)
        dialog.exec()
