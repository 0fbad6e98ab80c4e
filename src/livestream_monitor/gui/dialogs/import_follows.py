"""Dialog for Twitch login and importing followed channels."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog,
    QFormLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

if TYPE_CHECKING:
    from ..app import Application

logger = logging.getLogger(__name__)

PAGE_LOGIN = 0
PAGE_WAITING = 1
PAGE_READY = 2
PAGE_IMPORTING = 3


class ImportFollowsDialog(QDialog):
    """Dialog for OAuth login and importing followed channels.

    Follows can be imported for the logged-in account, or for any user name
    when an app token is available.
    """

    def __init__(self, parent, app: Application):
        super().__init__(parent)
        self.app = app
        self.added_count = 0

        self.setWindowTitle("Import Twitch Follows")
        self.setMinimumWidth(400)

        layout = QVBoxLayout(self)

        self.stack = QStackedWidget()
        layout.addWidget(self.stack)

        # Login page
        login_page = QWidget()
        login_layout = QVBoxLayout(login_page)
        login_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        login_label = QLabel("Log in to Twitch to import your followed channels.")
        login_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        login_layout.addWidget(login_label)
        login_btn = QPushButton("Login with Twitch")
        login_btn.clicked.connect(self._start_login)
        login_layout.addWidget(login_btn, 0, Qt.AlignmentFlag.AlignCenter)
        by_name_btn = QPushButton("Import by user name")
        by_name_btn.setFlat(True)
        by_name_btn.clicked.connect(self._show_ready)
        login_layout.addWidget(by_name_btn, 0, Qt.AlignmentFlag.AlignCenter)
        self.stack.addWidget(login_page)

        # Waiting page
        waiting_page = QWidget()
        waiting_layout = QVBoxLayout(waiting_page)
        waiting_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        waiting_label = QLabel("Waiting for authorization...\nPlease complete login in your browser.")
        waiting_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        waiting_layout.addWidget(waiting_label)
        self.stack.addWidget(waiting_page)

        # Ready page
        ready_page = QWidget()
        ready_layout = QVBoxLayout(ready_page)
        self.ready_label = QLabel("")
        self.ready_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        ready_layout.addWidget(self.ready_label)
        form = QFormLayout()
        self.username_edit = QLineEdit()
        self.username_edit.setPlaceholderText("Leave empty for your own follows")
        form.addRow("User:", self.username_edit)
        ready_layout.addLayout(form)
        import_btn = QPushButton("Import Followed Channels")
        import_btn.clicked.connect(self._start_import)
        ready_layout.addWidget(import_btn, 0, Qt.AlignmentFlag.AlignCenter)
        self.stack.addWidget(ready_page)

        # Importing page
        importing_page = QWidget()
        importing_layout = QVBoxLayout(importing_page)
        importing_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.import_label = QLabel("Fetching followed channels...")
        self.import_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        importing_layout.addWidget(self.import_label)
        self.import_progress = QProgressBar()
        self.import_progress.setMaximumWidth(300)
        self.import_progress.setRange(0, 0)  # Indeterminate
        importing_layout.addWidget(self.import_progress, 0, Qt.AlignmentFlag.AlignCenter)
        self.stack.addWidget(importing_page)

        self.close_btn = QPushButton("Close")
        self.close_btn.clicked.connect(self.accept)
        layout.addWidget(self.close_btn, 0, Qt.AlignmentFlag.AlignCenter)

        if self.app.settings.twitch.access_token:
            self._show_ready()
        else:
            self.stack.setCurrentIndex(PAGE_LOGIN)

    def _show_ready(self):
        login = self.app.settings.twitch.login_name
        if login:
            self.ready_label.setText(f"Logged in as {login}.")
        elif self.app.settings.twitch.access_token:
            self.ready_label.setText("Logged in to Twitch.")
        else:
            self.ready_label.setText("Enter the Twitch user whose follows to import.")
        self.stack.setCurrentIndex(PAGE_READY)

    def _start_login(self):
        """Start the OAuth login flow."""
        self.stack.setCurrentIndex(PAGE_WAITING)

        async def do_login():
            return await self.app.monitor.client.oauth_login(timeout=120)

        def on_finished(success):
            if success:
                # The client wrote the token into the twitch settings section
                self.app.settings_handler.save()
                self._show_ready()
            else:
                self.stack.setCurrentIndex(PAGE_LOGIN)
                QMessageBox.warning(self, "Login Failed", "Failed to log in. Please try again.")

        def on_error(error_msg):
            logger.error(f"Login error: {error_msg}")
            self.stack.setCurrentIndex(PAGE_LOGIN)
            QMessageBox.warning(self, "Login Failed", error_msg)

        self.app.run_async(do_login, on_finished=on_finished, on_error=on_error, parent=self)

    def _start_import(self):
        """Import followed channels into the monitor."""
        username = self.username_edit.text().strip() or None
        self.stack.setCurrentIndex(PAGE_IMPORTING)
        self.close_btn.setEnabled(False)

        async def do_import():
            return await self.app.monitor.import_follows(username)

        def on_finished(added):
            self.close_btn.setEnabled(True)
            self.added_count = len(added)
            self.import_progress.setRange(0, 1)
            self.import_progress.setValue(1)
            self.import_label.setText(f"Import complete! Added {self.added_count} channels.")
            if self.app.main_window:
                self.app.main_window.refresh_stream_list()

        def on_error(error_msg):
            self.close_btn.setEnabled(True)
            self._show_ready()
            QMessageBox.warning(self, "Import Failed", error_msg)

        self.app.run_async(do_import, on_finished=on_finished, on_error=on_error, parent=self)
