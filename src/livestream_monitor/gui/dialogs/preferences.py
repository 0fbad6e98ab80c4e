"""Preferences dialog with multiple tabs for application settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PySide6.QtCore import Qt
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QCheckBox,
    QColorDialog,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QSpinBox,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from ...core.chat import URL_PLACEHOLDER
from ...core.models import Channel, Livestream, StreamQuality
from ...core.settings import (
    DEFAULT_ACCENT_COLOR,
    DEFAULT_CHAT_COMMAND_LINE,
    DEFAULT_STREAMLINK_PATH,
    ThemeMode,
)
from .import_follows import ImportFollowsDialog

if TYPE_CHECKING:
    from ..app import Application

QUALITY_NAMES = {
    StreamQuality.SOURCE: "Source",
    StreamQuality.HIGH: "High",
    StreamQuality.MEDIUM: "Medium",
    StreamQuality.LOW: "Low",
    StreamQuality.MOBILE: "Mobile",
    StreamQuality.AUDIO_ONLY: "Audio only",
}

TAB_GENERAL = 0
TAB_PLAYBACK = 1
TAB_CHAT = 2
TAB_NOTIFICATIONS = 3
TAB_ACCOUNTS = 4


def _select_data(combo: QComboBox, value) -> None:
    index = combo.findData(value)
    if index >= 0:
        combo.setCurrentIndex(index)


class PreferencesDialog(QDialog):
    """Preferences dialog with multiple tabs.

    Every change is written through the SettingsHandler as soon as it is made.
    """

    def __init__(self, parent, app: Application, initial_tab: int = 0):
        super().__init__(parent)
        self.app = app
        self.handler = app.settings_handler
        self._loading = True  # Prevent cascading updates during init

        self.setWindowTitle("Preferences")
        self.setMinimumSize(480, 460)

        layout = QVBoxLayout(self)

        tabs = QTabWidget()
        layout.addWidget(tabs)
        tabs.addTab(self._create_general_tab(), "General")
        tabs.addTab(self._create_streamlink_tab(), "Playback")
        tabs.addTab(self._create_chat_tab(), "Chat")
        tabs.addTab(self._create_notifications_tab(), "Notifications")
        tabs.addTab(self._create_accounts_tab(), "Accounts")
        if initial_tab:
            tabs.setCurrentIndex(initial_tab)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(self.accept)
        layout.addWidget(buttons)

        self._loading = False

    # --- General ---

    def _create_general_tab(self) -> QWidget:
        """Create the General settings tab."""
        widget = QWidget()
        layout = QVBoxLayout(widget)
        settings = self.app.settings

        refresh_group = QGroupBox("Refresh")
        refresh_layout = QFormLayout(refresh_group)
        self.refresh_spin = QSpinBox()
        self.refresh_spin.setRange(10, 3600)
        self.refresh_spin.setSuffix(" seconds")
        self.refresh_spin.setValue(settings.refresh_interval)
        self.refresh_spin.valueChanged.connect(self._on_refresh_changed)
        refresh_layout.addRow("Refresh interval:", self.refresh_spin)
        layout.addWidget(refresh_group)

        appear_group = QGroupBox("Appearance")
        appear_layout = QFormLayout(appear_group)

        self.theme_combo = QComboBox()
        self.theme_combo.addItem("Follow system", ThemeMode.AUTO)
        self.theme_combo.addItem("Light", ThemeMode.LIGHT)
        self.theme_combo.addItem("Dark", ThemeMode.DARK)
        _select_data(self.theme_combo, settings.theme_mode)
        self.theme_combo.currentIndexChanged.connect(self._on_theme_changed)
        appear_layout.addRow("Theme:", self.theme_combo)

        accent_row = QHBoxLayout()
        self.accent_edit = QLineEdit(settings.accent_color)
        self.accent_edit.setMaximumWidth(100)
        self.accent_edit.editingFinished.connect(self._on_accent_edited)
        accent_row.addWidget(self.accent_edit)
        self.accent_swatch = QPushButton()
        self.accent_swatch.setFixedSize(24, 24)
        self.accent_swatch.clicked.connect(self._pick_accent)
        self._update_swatch(settings.accent_color)
        accent_row.addWidget(self.accent_swatch)
        reset_accent = QPushButton("Reset")
        reset_accent.clicked.connect(lambda: self._set_accent(DEFAULT_ACCENT_COLOR))
        accent_row.addWidget(reset_accent)
        accent_row.addStretch()
        appear_layout.addRow("Accent colour:", accent_row)

        layout.addWidget(appear_group)
        layout.addStretch()
        return widget

    def _on_refresh_changed(self, value: int):
        if not self._loading:
            self.handler.update(refresh_interval=value)

    def _on_theme_changed(self, _index: int):
        if not self._loading:
            self.handler.update(theme_mode=self.theme_combo.currentData())

    def _on_accent_edited(self):
        text = self.accent_edit.text().strip()
        if QColor.isValidColorName(text):
            self._set_accent(QColor(text).name())
        else:
            self.accent_edit.setText(self.app.settings.accent_color)

    def _pick_accent(self):
        color = QColorDialog.getColor(QColor(self.app.settings.accent_color), self, "Accent colour")
        if color.isValid():
            self._set_accent(color.name())

    def _set_accent(self, hex_color: str):
        self.accent_edit.setText(hex_color)
        self._update_swatch(hex_color)
        self.handler.update(accent_color=hex_color)

    def _update_swatch(self, hex_color: str):
        self.accent_swatch.setStyleSheet(
            f"background-color: {hex_color}; border: 1px solid palette(mid);"
        )

    # --- Playback ---

    def _create_streamlink_tab(self) -> QWidget:
        """Create the Streamlink settings tab."""
        widget = QWidget()
        layout = QVBoxLayout(widget)
        streamlink = self.app.settings.streamlink

        sl_group = QGroupBox("Streamlink")
        sl_layout = QFormLayout(sl_group)

        path_row = QHBoxLayout()
        self.sl_path_edit = QLineEdit(streamlink.path)
        self.sl_path_edit.setPlaceholderText(DEFAULT_STREAMLINK_PATH)
        self.sl_path_edit.editingFinished.connect(self._on_streamlink_changed)
        path_row.addWidget(self.sl_path_edit)
        browse_btn = QPushButton("Browse...")
        browse_btn.clicked.connect(self._browse_streamlink)
        path_row.addWidget(browse_btn)
        sl_layout.addRow("Path:", path_row)

        self.sl_args_edit = QLineEdit(streamlink.additional_args)
        self.sl_args_edit.setPlaceholderText("e.g. --twitch-low-latency")
        self.sl_args_edit.editingFinished.connect(self._on_streamlink_changed)
        sl_layout.addRow("Additional arguments:", self.sl_args_edit)

        self.quality_combo = QComboBox()
        for quality, name in QUALITY_NAMES.items():
            self.quality_combo.addItem(name, quality)
        _select_data(self.quality_combo, streamlink.default_quality)
        self.quality_combo.currentIndexChanged.connect(self._on_quality_changed)
        sl_layout.addRow("Default quality:", self.quality_combo)

        self.sl_status = QLabel("")
        sl_layout.addRow(self.sl_status)
        self._update_streamlink_status()

        layout.addWidget(sl_group)

        player_group = QGroupBox("Player")
        player_layout = QFormLayout(player_group)

        self.player_path_edit = QLineEdit(streamlink.player)
        self.player_path_edit.setPlaceholderText("streamlink's configured player")
        self.player_path_edit.editingFinished.connect(self._on_streamlink_changed)
        player_layout.addRow("Player:", self.player_path_edit)

        self.player_args_edit = QLineEdit(streamlink.player_args)
        self.player_args_edit.editingFinished.connect(self._on_streamlink_changed)
        player_layout.addRow("Player arguments:", self.player_args_edit)

        layout.addWidget(player_group)
        layout.addStretch()
        return widget

    def _browse_streamlink(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select streamlink executable")
        if path:
            self.sl_path_edit.setText(path)
            self._on_streamlink_changed()

    def _on_streamlink_changed(self):
        self.handler.update(
            "streamlink",
            path=self.sl_path_edit.text().strip() or DEFAULT_STREAMLINK_PATH,
            additional_args=self.sl_args_edit.text().strip(),
            player=self.player_path_edit.text().strip(),
            player_args=self.player_args_edit.text().strip(),
        )
        self._update_streamlink_status()

    def _on_quality_changed(self, _index: int):
        if not self._loading:
            self.handler.update("streamlink", default_quality=self.quality_combo.currentData())

    def _update_streamlink_status(self):
        if self.app.launcher.is_available():
            self.sl_status.setText("Status: streamlink found")
            self.sl_status.setStyleSheet("color: green;")
        else:
            self.sl_status.setText("Status: streamlink not found")
            self.sl_status.setStyleSheet("color: red;")

    # --- Chat ---

    def _create_chat_tab(self) -> QWidget:
        """Create the Chat settings tab."""
        widget = QWidget()
        layout = QVBoxLayout(widget)

        chat_group = QGroupBox("Chat window")
        chat_layout = QFormLayout(chat_group)

        self.chat_cmd_edit = QLineEdit(self.app.settings.chat.command_line)
        self.chat_cmd_edit.editingFinished.connect(self._on_chat_changed)
        chat_layout.addRow("Command line:", self.chat_cmd_edit)

        hint = QLabel(
            f"{URL_PLACEHOLDER} is replaced by the chat address. "
            "Leave empty to use the default browser."
        )
        hint.setWordWrap(True)
        hint.setStyleSheet("color: gray;")
        chat_layout.addRow(hint)

        reset_btn = QPushButton("Reset to Default")
        reset_btn.clicked.connect(self._reset_chat)
        chat_layout.addRow(reset_btn)

        layout.addWidget(chat_group)
        layout.addStretch()
        return widget

    def _on_chat_changed(self):
        self.handler.update("chat", command_line=self.chat_cmd_edit.text().strip())

    def _reset_chat(self):
        self.chat_cmd_edit.setText(DEFAULT_CHAT_COMMAND_LINE)
        self._on_chat_changed()

    # --- Notifications ---

    def _create_notifications_tab(self) -> QWidget:
        """Create the Notifications settings tab."""
        widget = QWidget()
        layout = QVBoxLayout(widget)
        notifications = self.app.settings.notifications

        notif_group = QGroupBox("Notifications")
        notif_layout = QFormLayout(notif_group)

        self.notif_enabled_cb = QCheckBox("Notify when a channel goes live")
        self.notif_enabled_cb.setChecked(notifications.enabled)
        self.notif_enabled_cb.stateChanged.connect(self._on_notif_changed)
        notif_layout.addRow(self.notif_enabled_cb)

        self.notif_sound_cb = QCheckBox("Play sound")
        self.notif_sound_cb.setChecked(notifications.sound_enabled)
        self.notif_sound_cb.stateChanged.connect(self._on_notif_changed)
        notif_layout.addRow(self.notif_sound_cb)

        self.notif_game_cb = QCheckBox("Show game")
        self.notif_game_cb.setChecked(notifications.show_game)
        self.notif_game_cb.stateChanged.connect(self._on_notif_changed)
        notif_layout.addRow(self.notif_game_cb)

        self.notif_title_cb = QCheckBox("Show stream title")
        self.notif_title_cb.setChecked(notifications.show_title)
        self.notif_title_cb.stateChanged.connect(self._on_notif_changed)
        notif_layout.addRow(self.notif_title_cb)

        self.notif_backend_combo = QComboBox()
        self.notif_backend_combo.addItem("Auto", "auto")
        self.notif_backend_combo.addItem("D-Bus", "dbus")
        self.notif_backend_combo.addItem("notify-send", "notify-send")
        _select_data(self.notif_backend_combo, notifications.backend)
        self.notif_backend_combo.currentIndexChanged.connect(self._on_notif_backend_changed)
        notif_layout.addRow("Backend:", self.notif_backend_combo)

        self.test_notif_btn = QPushButton("Test Notification")
        self.test_notif_btn.clicked.connect(self._on_test_notification)
        notif_layout.addRow(self.test_notif_btn)

        layout.addWidget(notif_group)

        excluded_group = QGroupBox("Muted channels")
        excluded_layout = QVBoxLayout(excluded_group)
        self.excluded_list = QListWidget()
        self.excluded_list.setSelectionMode(QListWidget.SelectionMode.ExtendedSelection)
        excluded_layout.addWidget(self.excluded_list)
        unmute_btn = QPushButton("Unmute Selected")
        unmute_btn.clicked.connect(self._on_unmute)
        excluded_layout.addWidget(unmute_btn, 0, Qt.AlignmentFlag.AlignLeft)
        self._refresh_excluded_list()
        layout.addWidget(excluded_group, 1)

        return widget

    def _on_notif_changed(self):
        if self._loading:
            return
        self.handler.update(
            "notifications",
            enabled=self.notif_enabled_cb.isChecked(),
            sound_enabled=self.notif_sound_cb.isChecked(),
            show_game=self.notif_game_cb.isChecked(),
            show_title=self.notif_title_cb.isChecked(),
        )

    def _on_notif_backend_changed(self, _index: int):
        if not self._loading:
            self.handler.update("notifications", backend=self.notif_backend_combo.currentData())

    def _on_test_notification(self):
        """Send a test notification for a made-up channel."""
        test_livestream = Livestream(
            channel=Channel(channel_id="test_channel", display_name="Test Channel"),
            live=True,
            title="Test Stream - Notification Preview",
            game="Testing",
            viewers=1234,
        )
        self.app.notifier.send_notification_sync(test_livestream, is_test=True)

    def _refresh_excluded_list(self):
        self.excluded_list.clear()
        for key in sorted(self.app.settings.notifications.excluded_channels):
            item = QListWidgetItem(key.split(":", 1)[-1])
            item.setData(Qt.ItemDataRole.UserRole, key)
            self.excluded_list.addItem(item)

    def _on_unmute(self):
        for item in self.excluded_list.selectedItems():
            self.handler.include_in_notifications(item.data(Qt.ItemDataRole.UserRole))
        self._refresh_excluded_list()

    # --- Accounts ---

    def _create_accounts_tab(self) -> QWidget:
        """Create the Accounts settings tab."""
        widget = QWidget()
        layout = QVBoxLayout(widget)
        twitch = self.app.settings.twitch

        twitch_group = QGroupBox("Twitch")
        twitch_layout = QVBoxLayout(twitch_group)

        self.twitch_status = QLabel()
        twitch_layout.addWidget(self.twitch_status)

        btn_layout = QHBoxLayout()
        self.twitch_login_btn = QPushButton("Login")
        self.twitch_login_btn.clicked.connect(self._on_twitch_login)
        btn_layout.addWidget(self.twitch_login_btn)
        self.twitch_import_btn = QPushButton("Import Follows")
        self.twitch_import_btn.clicked.connect(self._on_twitch_login)
        btn_layout.addWidget(self.twitch_import_btn)
        self.twitch_logout_btn = QPushButton("Logout")
        self.twitch_logout_btn.clicked.connect(self._on_twitch_logout)
        btn_layout.addWidget(self.twitch_logout_btn)
        btn_layout.addStretch()
        twitch_layout.addLayout(btn_layout)

        layout.addWidget(twitch_group)

        app_group = QGroupBox("Application credentials")
        app_layout = QFormLayout(app_group)
        self.client_id_edit = QLineEdit(twitch.client_id)
        self.client_id_edit.setPlaceholderText("Built-in client ID")
        self.client_id_edit.editingFinished.connect(self._on_credentials_changed)
        app_layout.addRow("Client ID:", self.client_id_edit)
        self.client_secret_edit = QLineEdit(twitch.client_secret)
        self.client_secret_edit.setEchoMode(QLineEdit.EchoMode.Password)
        self.client_secret_edit.editingFinished.connect(self._on_credentials_changed)
        app_layout.addRow("Client secret:", self.client_secret_edit)
        note = QLabel("Needed only for top streams and imports without logging in.")
        note.setWordWrap(True)
        note.setStyleSheet("color: gray;")
        app_layout.addRow(note)
        layout.addWidget(app_group)

        layout.addStretch()

        self._update_twitch_status()
        return widget

    def _update_twitch_status(self):
        """Update Twitch login status display and buttons."""
        twitch = self.app.settings.twitch
        logged_in = bool(twitch.access_token)
        if logged_in:
            if twitch.login_name:
                self.twitch_status.setText(f"Status: Logged in as {twitch.login_name}")
            else:
                self.twitch_status.setText("Status: Logged in")
            self.twitch_status.setStyleSheet("color: green;")
        else:
            self.twitch_status.setText("Status: Not logged in")
            self.twitch_status.setStyleSheet("color: gray;")
        self.twitch_login_btn.setVisible(not logged_in)
        self.twitch_import_btn.setVisible(logged_in)
        self.twitch_logout_btn.setVisible(logged_in)

    def _on_twitch_login(self):
        dialog = ImportFollowsDialog(self, self.app)
        dialog.exec()
        self._update_twitch_status()

    def _on_twitch_logout(self):
        self.app.monitor.client.logout()
        self.handler.save()
        self._update_twitch_status()

    def _on_credentials_changed(self):
        self.handler.update(
            "twitch",
            client_id=self.client_id_edit.text().strip(),
            client_secret=self.client_secret_edit.text().strip(),
        )
