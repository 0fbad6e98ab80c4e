"""Main window and UI components for the Qt application."""

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import QPoint, Qt, QTimer
from PySide6.QtGui import QGuiApplication, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QLabel,
    QLineEdit,
    QListView,
    QMainWindow,
    QMenu,
    QMessageBox,
    QProgressBar,
    QStackedWidget,
    QStatusBar,
    QToolBar,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ..__version__ import __version__
from ..core.chat import open_in_browser
from ..core.models import Livestream, SortMode, StreamQuality
from ..core.settings import ThemeMode
from .dialogs import AddChannelDialog, ImportFollowsDialog, PreferencesDialog
from .stream_list import StreamListModel, filter_and_sort
from .theme import ThemeManager
from .top_streams import TopStreamsDialog
from .vod_list import VodListDialog

if TYPE_CHECKING:
    from .app import Application

logger = logging.getLogger(__name__)

PAGE_LOADING = 0
PAGE_EMPTY = 1
PAGE_ALL_OFFLINE = 2
PAGE_LIST = 3

QUALITY_LABELS = {
    StreamQuality.SOURCE: "Source",
    StreamQuality.HIGH: "High",
    StreamQuality.MEDIUM: "Medium",
    StreamQuality.LOW: "Low",
    StreamQuality.MOBILE: "Mobile",
    StreamQuality.AUDIO_ONLY: "Audio only",
}

THEME_CYCLE = [ThemeMode.AUTO, ThemeMode.LIGHT, ThemeMode.DARK]


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, app: "Application"):
        super().__init__()
        self.app = app
        self._stream_model: StreamListModel | None = None
        self._stream_keys_order: list[str] = []  # Track order for fast path check
        self._initial_check_complete = False
        self._name_filter = ""

        # Debounce refresh_stream_list to prevent rapid successive calls
        self._refresh_pending = False
        self._refresh_debounce_timer = QTimer(self)
        self._refresh_debounce_timer.setSingleShot(True)
        self._refresh_debounce_timer.setInterval(100)
        self._refresh_debounce_timer.timeout.connect(self._do_refresh_stream_list)

        self._name_filter_timer = QTimer(self)
        self._name_filter_timer.setSingleShot(True)
        self._name_filter_timer.setInterval(150)
        self._name_filter_timer.timeout.connect(self.refresh_stream_list)

        self._setup_ui()
        self._setup_shortcuts()
        self._connect_signals()

    def _setup_ui(self):
        """Set up the main window UI."""
        self.setWindowTitle("Livestream Monitor")
        self.setMinimumWidth(420)
        window = self.app.settings.window
        self.resize(window.width, window.height)
        # Restore window position only if it's still on a screen
        if window.x is not None and window.y is not None:
            for screen in QGuiApplication.screens():
                if screen.availableGeometry().contains(window.x + 50, window.y + 50):
                    self.move(window.x, window.y)
                    break
        if window.maximized:
            self.setWindowState(Qt.WindowState.WindowMaximized)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self._create_menu_bar()
        self._create_toolbar()

        self.stack = QStackedWidget()
        layout.addWidget(self.stack, 1)

        # Loading page
        loading_page = QWidget()
        loading_layout = QVBoxLayout(loading_page)
        loading_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.loading_label = QLabel("Loading channels...")
        self.loading_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        loading_layout.addWidget(self.loading_label)
        self.loading_progress = QProgressBar()
        self.loading_progress.setMaximumWidth(300)
        self.loading_progress.setRange(0, 0)  # Indeterminate
        loading_layout.addWidget(self.loading_progress, 0, Qt.AlignmentFlag.AlignCenter)
        self.stack.addWidget(loading_page)

        # Empty page
        empty_page = QWidget()
        empty_layout = QVBoxLayout(empty_page)
        empty_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.empty_label = QLabel("No channels added yet.\nClick the + button to add a channel.")
        self.empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        empty_layout.addWidget(self.empty_label)
        self.stack.addWidget(empty_page)

        # All offline page
        all_offline_page = QWidget()
        all_offline_layout = QVBoxLayout(all_offline_page)
        all_offline_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.all_offline_label = QLabel("All channels are offline")
        self.all_offline_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        all_offline_layout.addWidget(self.all_offline_label)
        self.stack.addWidget(all_offline_page)

        # Stream list page
        list_page = QWidget()
        list_layout = QVBoxLayout(list_page)
        list_layout.setContentsMargins(0, 0, 0, 0)

        self._stream_model = StreamListModel(parent=self)
        self.stream_list = QListView()
        self.stream_list.setModel(self._stream_model)
        self.stream_list.setVerticalScrollMode(QAbstractItemView.ScrollMode.ScrollPerPixel)
        self.stream_list.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.stream_list.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.stream_list.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.stream_list.customContextMenuRequested.connect(self._show_context_menu)
        self.stream_list.doubleClicked.connect(self._on_item_double_clicked)
        list_layout.addWidget(self.stream_list)
        self.stack.addWidget(list_page)

        # Status bar
        self.status_bar = QStatusBar()
        self.status_bar.setSizeGripEnabled(False)
        self.setStatusBar(self.status_bar)

        self.status_label = QLabel("Ready")
        self.status_bar.addWidget(self.status_label, 1)

        self.live_count_label = QLabel("")
        self.live_count_label.setContentsMargins(0, 0, 6, 0)
        self.status_bar.addPermanentWidget(self.live_count_label)

    def _create_menu_bar(self):
        """Create the menu bar."""
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")

        add_action = file_menu.addAction("&Add Channel")
        add_action.setShortcut("Ctrl+N")
        add_action.triggered.connect(self.show_add_channel_dialog)

        import_action = file_menu.addAction("&Import Follows...")
        import_action.triggered.connect(self.show_import_follows_dialog)

        file_menu.addSeparator()

        quit_action = file_menu.addAction("&Quit")
        quit_action.setShortcut("Ctrl+Q")
        quit_action.triggered.connect(self.close)

        edit_menu = menubar.addMenu("&Edit")

        refresh_action = edit_menu.addAction("&Refresh")
        refresh_action.setShortcut("Ctrl+R")
        refresh_action.triggered.connect(self._on_refresh)

        edit_menu.addSeparator()

        prefs_action = edit_menu.addAction("&Preferences")
        prefs_action.setShortcut("Ctrl+,")
        prefs_action.triggered.connect(self.show_preferences_dialog)

        browse_menu = menubar.addMenu("&Browse")

        top_action = browse_menu.addAction("&Top Streams...")
        top_action.triggered.connect(self.show_top_streams_dialog)

        vods_action = browse_menu.addAction("&VODs...")
        vods_action.triggered.connect(lambda: self.show_vod_dialog())

        help_menu = menubar.addMenu("&Help")

        about_action = help_menu.addAction("&About")
        about_action.triggered.connect(self._show_about)

    def _create_toolbar(self):
        """Create the toolbar."""
        toolbar = QToolBar()
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        add_btn = QToolButton()
        add_btn.setText("+")
        add_btn.setToolTip("Add channel (Ctrl+N)")
        add_btn.clicked.connect(self.show_add_channel_dialog)
        toolbar.addWidget(add_btn)

        refresh_btn = QToolButton()
        refresh_btn.setText("↻")
        refresh_btn.setToolTip("Refresh (Ctrl+R)")
        refresh_btn.clicked.connect(self._on_refresh)
        toolbar.addWidget(refresh_btn)

        self.theme_btn = QToolButton()
        self._update_theme_button()
        self.theme_btn.clicked.connect(self._on_theme_toggle)
        toolbar.addWidget(self.theme_btn)

        toolbar.addSeparator()

        self.hide_offline_btn = QToolButton()
        self.hide_offline_btn.setText("◉")  # "live only"
        self.hide_offline_btn.setToolTip("Hide offline channels")
        self.hide_offline_btn.setCheckable(True)
        self.hide_offline_btn.setChecked(self.app.settings.hide_offline)
        self.hide_offline_btn.clicked.connect(self._on_filter_changed)
        toolbar.addWidget(self.hide_offline_btn)

        toolbar.addSeparator()

        self.name_filter_edit = QLineEdit()
        self.name_filter_edit.setPlaceholderText("Filter by name...")
        self.name_filter_edit.setAccessibleName("Filter channels by name")
        self.name_filter_edit.setMaximumWidth(200)
        self.name_filter_edit.textChanged.connect(self._on_name_filter_changed)
        toolbar.addWidget(self.name_filter_edit)

        self.sort_combo = QComboBox()
        self.sort_combo.setAccessibleName("Sort channels by")
        self.sort_combo.addItem("Name", SortMode.NAME)
        self.sort_combo.addItem("Live first", SortMode.LIVE_FIRST)
        self.sort_combo.addItem("Viewers", SortMode.VIEWERS)
        self.sort_combo.setCurrentIndex(self.sort_combo.findData(self.app.settings.sort_mode))
        self.sort_combo.currentIndexChanged.connect(self._on_sort_changed)
        toolbar.addWidget(self.sort_combo)

    def _setup_shortcuts(self):
        """Set up keyboard shortcuts."""
        QShortcut(QKeySequence("F5"), self, self._on_refresh)
        QShortcut(QKeySequence("Delete"), self, self._on_delete_key)

    def _connect_signals(self):
        """Connect application signals."""
        self.app.stream_online.connect(self._on_stream_online)
        self.app.refresh_complete.connect(self._on_refresh_complete)
        self.app.refresh_error.connect(self._on_refresh_error)
        self.app.settings_handler.on_changed(self._on_setting_changed)

    def set_loading_complete(self):
        """Switch from loading view to appropriate content view."""
        self._initial_check_complete = True
        self._update_view()

    def set_status(self, message: str):
        """Set the status bar message."""
        self.status_label.setText(message)

    def refresh_stream_list(self):
        """Refresh the stream list display, at most once per debounce interval."""
        if self._refresh_debounce_timer.isActive():
            self._refresh_pending = True
            return
        self._update_view()
        self._refresh_debounce_timer.start()

    def _do_refresh_stream_list(self):
        if not self._refresh_pending:
            return
        self._refresh_pending = False
        self._update_view()
        self._refresh_debounce_timer.start()

    def _update_view(self):
        """Update the view based on current state."""
        monitor = self.app.monitor
        if not monitor or not self._initial_check_complete:
            self.stack.setCurrentIndex(PAGE_LOADING)
            return

        self._update_live_count()

        if not monitor.channels:
            self.stack.setCurrentIndex(PAGE_EMPTY)
            return

        livestreams = filter_and_sort(
            monitor.livestreams,
            self.app.settings.sort_mode,
            hide_offline=self.app.settings.hide_offline,
            name_filter=self._name_filter,
        )

        if not livestreams and self.app.settings.hide_offline and not self._name_filter:
            self.stack.setCurrentIndex(PAGE_ALL_OFFLINE)
            return

        self._populate_list(livestreams)
        self.stack.setCurrentIndex(PAGE_LIST)

    def _populate_list(self, livestreams: list[Livestream]):
        """Fill the model, updating rows in place when the order is unchanged."""
        keys = [ls.channel.unique_key for ls in livestreams]
        if keys != self._stream_keys_order or not self._stream_model.update_streams_in_place(
            livestreams
        ):
            self._stream_model.set_streams(livestreams)
            self._stream_keys_order = keys

        playing = {key for key in keys if self.app.launcher.is_playing(key)}
        self._stream_model.update_playing_keys(playing)

    def _update_live_count(self):
        """Update the live count label."""
        monitor = self.app.monitor
        total = len(monitor.channels)
        live = len(monitor.live_streams)
        self.live_count_label.setText(f"{live} live / {total} total")

    def _selected_livestream(self) -> Livestream | None:
        return self._stream_model.get_stream_at(self.stream_list.currentIndex())

    def _on_filter_changed(self):
        self.app.settings_handler.update(hide_offline=self.hide_offline_btn.isChecked())
        self.refresh_stream_list()

    def _on_name_filter_changed(self, text: str):
        self._name_filter = text
        self._name_filter_timer.start()

    def _on_sort_changed(self, index: int):
        self.app.settings_handler.update(sort_mode=self.sort_combo.currentData())
        self.refresh_stream_list()

    def _on_setting_changed(self, name: str):
        if name in ("theme_mode", "accent_color"):
            self._update_theme_button()
            # Row colours come from the theme
            self.stream_list.viewport().update()
        elif name == "notifications.excluded_channels":
            self.stream_list.viewport().update()

    def _on_stream_online(self, livestream: Livestream):
        self.set_status(f"{livestream.display_name} is live!")
        self.refresh_stream_list()

    def _on_refresh_complete(self):
        self.refresh_stream_list()

    def _on_refresh_error(self, error_msg: str):
        self.set_status(f"⚠ {error_msg}")

    def _on_refresh(self):
        self.set_status("Refreshing...")
        self.app.refresh(on_complete=lambda: self.set_status("Ready"))

    def _update_theme_button(self):
        mode = self.app.settings.theme_mode
        if mode == ThemeMode.LIGHT:
            self.theme_btn.setText("☀")
            self.theme_btn.setToolTip("Theme: Light (click to cycle)")
        elif mode == ThemeMode.DARK:
            self.theme_btn.setText("☾")
            self.theme_btn.setToolTip("Theme: Dark (click to cycle)")
        else:
            self.theme_btn.setText("◐")
            self.theme_btn.setToolTip("Theme: Auto (click to cycle)")

    def _on_theme_toggle(self):
        """Cycle through theme modes: Auto -> Light -> Dark -> Auto."""
        mode = self.app.settings.theme_mode
        next_mode = THEME_CYCLE[(THEME_CYCLE.index(mode) + 1) % len(THEME_CYCLE)]
        ThemeManager.set_theme_mode(next_mode)

    def _on_item_double_clicked(self, index):
        livestream = self._stream_model.get_stream_at(index)
        if livestream:
            self.play_stream(livestream)

    def play_stream(self, livestream: Livestream, quality: StreamQuality | None = None):
        """Launch a stream, or explain why it can't be launched."""
        if not livestream.live:
            self.set_status(f"{livestream.display_name} is offline")
            return
        self.set_status(f"Launching {livestream.display_name}...")
        self.app.launch_stream(livestream, quality)
        self.refresh_stream_list()

    def _show_context_menu(self, pos: QPoint):
        index = self.stream_list.indexAt(pos)
        livestream = self._stream_model.get_stream_at(index)
        if not livestream:
            return

        channel = livestream.channel
        menu = QMenu(self)

        play_menu = menu.addMenu("&Play")
        play_menu.setEnabled(livestream.live)
        for quality, label in QUALITY_LABELS.items():
            action = play_menu.addAction(label)
            action.triggered.connect(
                lambda checked=False, q=quality: self.play_stream(livestream, q)
            )

        if self.app.launcher.is_playing(channel.unique_key):
            stop_action = menu.addAction("&Stop")
            stop_action.triggered.connect(lambda: self._on_stop_stream(channel.unique_key))

        chat_action = menu.addAction("Open &Chat")
        chat_action.triggered.connect(lambda: self.app.open_chat(livestream))

        browser_action = menu.addAction("Open in &Browser")
        browser_action.triggered.connect(lambda: open_in_browser(livestream))

        vods_action = menu.addAction("Show &VODs")
        vods_action.triggered.connect(lambda: self.show_vod_dialog(channel.channel_id))

        menu.addSeparator()

        notify_action = menu.addAction("&Notify when live")
        notify_action.setCheckable(True)
        notify_action.setChecked(
            not self.app.settings_handler.is_excluded_from_notifications(channel.unique_key)
        )
        notify_action.toggled.connect(
            lambda enabled: self.app.monitor.set_notifications_enabled(channel, enabled)
        )

        menu.addSeparator()

        remove_action = menu.addAction("&Remove")
        remove_action.triggered.connect(lambda: self._remove_livestream(livestream))

        menu.exec(self.stream_list.viewport().mapToGlobal(pos))

    def _on_stop_stream(self, channel_key: str):
        if self.app.launcher.stop_stream(channel_key):
            self.set_status("Stream stopped")
        self.refresh_stream_list()

    def _on_delete_key(self):
        livestream = self._selected_livestream()
        if livestream:
            self._remove_livestream(livestream)

    def _remove_livestream(self, livestream: Livestream):
        reply = QMessageBox.question(
            self,
            "Remove Channel",
            f"Remove {livestream.display_name} from the list?",
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        self.app.monitor.remove_channel(livestream.channel)
        self.set_status(f"Removed {livestream.display_name}")
        self.refresh_stream_list()

    def _show_about(self):
        QMessageBox.about(
            self,
            "About Livestream Monitor",
            f"<b>Livestream Monitor</b> {__version__}<br><br>"
            "Watches Twitch channels and launches them with streamlink.",
        )

    def show_add_channel_dialog(self):
        dialog = AddChannelDialog(self, self.app)
        dialog.exec()

    def show_import_follows_dialog(self):
        dialog = ImportFollowsDialog(self, self.app)
        dialog.exec()

    def show_preferences_dialog(self, initial_tab: int = 0):
        dialog = PreferencesDialog(self, self.app, initial_tab)
        dialog.exec()

    def show_top_streams_dialog(self):
        dialog = TopStreamsDialog(self, self.app)
        dialog.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        dialog.show()

    def show_vod_dialog(self, stream_id: str = ""):
        dialog = VodListDialog(self, self.app, stream_id)
        dialog.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        dialog.show()

    def closeEvent(self, event):  # noqa: N802
        """Save window geometry before closing."""
        self._save_window_geometry()
        event.accept()

    def _save_window_geometry(self):
        """Save current window position and size to settings."""
        maximized = self.isMaximized()
        if maximized:
            self.app.settings_handler.update("window", maximized=True)
            return
        pos = self.pos()
        self.app.settings_handler.update(
            "window",
            width=self.width(),
            height=self.height(),
            x=pos.x(),
            y=pos.y(),
            maximized=False,
        )
