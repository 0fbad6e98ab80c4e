"""Main Qt application."""

import asyncio
import logging
import sys
import threading
import traceback
import weakref
from pathlib import Path

import aiohttp
from PySide6.QtCore import QObject, QThread, QTimer, Signal
from PySide6.QtWidgets import QApplication, QMessageBox

from ..__version__ import __version__
from ..core.chat import ChatLauncher
from ..core.launcher import StreamLauncher, StreamlinkNotFoundError
from ..core.models import Livestream, StreamQuality
from ..core.monitor import StreamMonitor
from ..core.settings import SettingsHandler
from ..notifications.notifier import Notifier
from .console import LaunchConsole
from .theme import ThemeManager, get_app_stylesheet

logger = logging.getLogger(__name__)

STREAMLINK_INSTALL_URL = "https://streamlink.github.io/install.html"


class AsyncWorker(QThread):
    """Worker thread running one coroutine on its own event loop.

    The given API clients get a fresh session on this loop, which is closed
    before the loop is, whether the coroutine succeeded or not.
    """

    finished = Signal(object)
    error = Signal(str)

    def __init__(self, coro_func, clients=(), parent=None):
        super().__init__(parent)
        self.coro_func = coro_func
        self.clients = list(clients)

    def run(self):
        """Run the async operation in a new event loop."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(self.coro_func())
            self.finished.emit(result)
        except Exception as e:
            logger.error(f"Async worker error: {e}")
            traceback.print_exc()
            self.error.emit(str(e))
        finally:
            for client in self.clients:
                try:
                    loop.run_until_complete(client.close())
                except (aiohttp.ClientError, OSError, RuntimeError) as e:
                    logger.debug(f"Error closing {client.name} session: {e}")
            loop.close()
            for client in self.clients:
                client.reset_session()


class NotificationBridge(QObject):
    """Bridge for handling notifications from background threads.

    Queues notifications from worker threads and hands them to the Notifier
    on the main thread using a timer.
    """

    def __init__(self, notifier: Notifier):
        super().__init__()
        self.notifier = notifier
        self._pending: list[Livestream] = []
        self._lock = threading.Lock()
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._process_pending)
        self._timer.start(100)

    def queue_notification(self, livestream: Livestream) -> None:
        """Queue a notification to be sent (thread-safe)."""
        with self._lock:
            self._pending.append(livestream)

    def _process_pending(self) -> None:
        with self._lock:
            if not self._pending:
                return
            pending = self._pending[:]
            self._pending.clear()

        for livestream in pending:
            try:
                self.notifier.send_notification_sync(livestream)
            except Exception as e:
                logger.error(f"Notification error: {e}")

    def cleanup(self) -> None:
        """Stop the timer - call on application shutdown."""
        self._timer.stop()


class Application(QApplication):
    """Main application class."""

    # Signals for cross-thread communication
    stream_online = Signal(object)  # Livestream
    refresh_complete = Signal()
    refresh_error = Signal(str)
    open_stream_requested = Signal(object)  # Livestream - for notification Watch button

    def __init__(self, argv=None):
        super().__init__(argv or sys.argv)

        self.setApplicationName("Livestream Monitor")
        self.setApplicationDisplayName("Livestream Monitor")
        self.setApplicationVersion(__version__)

        # Core components
        self.settings_handler: SettingsHandler | None = None
        self.monitor: StreamMonitor | None = None
        self.notifier: Notifier | None = None
        self.launcher: StreamLauncher | None = None
        self.chat_launcher: ChatLauncher | None = None
        self.notification_bridge: NotificationBridge | None = None

        # Weakref to avoid a reference cycle with the window
        self._main_window_ref: weakref.ref | None = None

        self._refresh_timer: QTimer | None = None

        # Track active workers and consoles to prevent garbage collection
        self._active_workers: list[AsyncWorker] = []
        self._consoles: list[LaunchConsole] = []

        # Prevent concurrent refreshes (causes aiohttp timeout errors)
        self._refresh_in_progress = False

    @property
    def settings(self):
        """The current Settings (loaded on first access)."""
        return self.settings_handler.settings

    @property
    def main_window(self):
        """Get the main window (may be None if window was destroyed)."""
        if self._main_window_ref is not None:
            return self._main_window_ref()
        return None

    @main_window.setter
    def main_window(self, window):
        if window is not None:
            self._main_window_ref = weakref.ref(window)
        else:
            self._main_window_ref = None

    def initialize(self, settings_handler: SettingsHandler | None = None):
        """Initialize application components."""
        self.settings_handler = settings_handler or SettingsHandler()

        ThemeManager.set_settings(self.settings_handler)
        self.setStyleSheet(get_app_stylesheet())
        self.settings_handler.on_changed(self._on_setting_changed)

        self.open_stream_requested.connect(self.launch_stream)

        self.monitor = StreamMonitor(self.settings_handler)
        self.launcher = StreamLauncher(self.settings.streamlink)
        self.chat_launcher = ChatLauncher(self.settings.chat)
        self.notifier = Notifier(
            self.settings.notifications,
            on_open_stream=self.open_stream_requested.emit,
        )
        self.notification_bridge = NotificationBridge(self.notifier)

        self.monitor.on_stream_online(self._on_stream_online)

    def run_async(
        self, coro_func, on_finished=None, on_error=None, parent=None, client=None
    ) -> AsyncWorker:
        """Run a coroutine function on a worker thread.

        client is the API client the coroutine uses (the monitor's by default).
        Callbacks are invoked on the main thread through the worker's signals.
        """
        worker = AsyncWorker(coro_func, [client or self.monitor.client], parent=parent or self)
        if on_finished:
            worker.finished.connect(on_finished)
        if on_error:
            worker.error.connect(on_error)
        worker.finished.connect(lambda _: self._cleanup_worker(worker))
        worker.error.connect(lambda _: self._cleanup_worker(worker))
        self._active_workers.append(worker)
        worker.start()
        return worker

    def start_async_init(self, on_init_complete=None):
        """Load saved channels and run the first (silent) refresh."""

        async def init():
            self.monitor.suppress_notifications()
            await self.monitor.initialize()
            return len(self.monitor.channels)

        def on_loaded(channel_count):
            self.refresh_complete.emit()
            if on_init_complete:
                on_init_complete(channel_count)

        def on_error(error_msg):
            self.monitor.resume_notifications()
            self.refresh_error.emit(f"Startup failed: {error_msg}")
            if on_init_complete:
                on_init_complete(len(self.monitor.channels))

        self._refresh_in_progress = True

        def done(_=None):
            self._refresh_in_progress = False

        worker = self.run_async(init, on_finished=on_loaded, on_error=on_error)
        worker.finished.connect(done)
        worker.error.connect(done)

    def refresh(self, on_complete=None):
        """Trigger a refresh of all channels."""
        if self._refresh_in_progress:
            logger.info("Refresh already in progress, ignoring request")
            if on_complete:
                on_complete()
            return

        self._refresh_in_progress = True

        async def refresh():
            await self.monitor.refresh()

        def on_finished(_):
            self._refresh_in_progress = False
            self.refresh_complete.emit()
            if on_complete:
                on_complete()

        def on_error(error_msg):
            self._refresh_in_progress = False
            self.refresh_error.emit(f"Refresh failed: {error_msg}")
            if on_complete:
                on_complete()

        self.run_async(refresh, on_finished=on_finished, on_error=on_error)

    def start_refresh_timer(self):
        """Start the automatic refresh timer."""
        if self._refresh_timer:
            self._refresh_timer.stop()

        self._refresh_timer = QTimer(self)
        self._refresh_timer.timeout.connect(self._on_timed_refresh)
        self._refresh_timer.start(self.settings.refresh_interval * 1000)

    def _on_timed_refresh(self):
        logger.info("Timed refresh triggered")
        self.refresh()

    def _on_setting_changed(self, name: str) -> None:
        if name == "refresh_interval" and self._refresh_timer:
            self.start_refresh_timer()
        elif name in ("theme_mode", "accent_color"):
            ThemeManager.invalidate_cache()
            self.setStyleSheet(get_app_stylesheet())
        elif name == "notifications.backend" and self.notifier:
            self.notifier.update_settings(self.settings.notifications)

    def _on_stream_online(self, livestream: Livestream):
        """Handle stream going online (called on a worker thread)."""
        if self.notification_bridge:
            self.notification_bridge.queue_notification(livestream)
        self.stream_online.emit(livestream)

    def launch_stream(self, livestream: Livestream, quality: StreamQuality | None = None):
        """Launch a live stream and show its streamlink output."""
        console = self._open_console(f"Stream '{livestream.display_name}'")
        try:
            process = self.launcher.launch(
                livestream,
                quality,
                on_output=console.output_received.emit,
                on_exit=console.process_exited.emit,
            )
        except StreamlinkNotFoundError as e:
            console.close()
            self.show_streamlink_not_found(e.path)
            return

        if process is None:
            console.close()

    def launch_vod(self, url: str):
        """Launch a VOD and show its streamlink output."""
        console = self._open_console(f"VOD '{url}'")
        try:
            self.launcher.open_vod(
                url,
                on_output=console.output_received.emit,
                on_exit=console.process_exited.emit,
            )
        except StreamlinkNotFoundError as e:
            console.close()
            self.show_streamlink_not_found(e.path)
        except ValueError as e:
            console.close()
            QMessageBox.warning(self.main_window, "Invalid VOD URL", str(e))

    def open_chat(self, livestream: Livestream) -> bool:
        return self.chat_launcher.open_chat(livestream)

    def show_streamlink_not_found(self, path: str):
        QMessageBox.warning(
            self.main_window,
            "Streamlink not found",
            f"Could not find streamlink at '{path}'.\n\n"
            f"Please install streamlink from {STREAMLINK_INSTALL_URL} "
            "or set its location in Preferences.",
        )

    def _open_console(self, title: str) -> LaunchConsole:
        console = LaunchConsole(title, parent=self.main_window)
        console.destroyed.connect(lambda: self._forget_console(console))
        self._consoles.append(console)
        console.show()
        return console

    def _forget_console(self, console: LaunchConsole):
        if console in self._consoles:
            self._consoles.remove(console)

    def _cleanup_worker(self, worker):
        """Remove worker from active list."""
        if worker in self._active_workers:
            self._active_workers.remove(worker)

    def cleanup(self):
        """Clean up resources."""
        if self._refresh_timer:
            self._refresh_timer.stop()
            self._refresh_timer = None

        if self.notification_bridge:
            self.notification_bridge.cleanup()

        # Wait for active workers to finish
        for worker in self._active_workers[:]:
            if worker.isRunning():
                worker.wait(5000)
        self._active_workers.clear()

        if self.monitor:
            self.monitor.save_channels()

        if self.settings_handler and self.settings_handler.is_loaded:
            self.settings_handler.save()

        if self.launcher:
            self.launcher.stop_all_streams()


def run(settings_path: Path | None = None) -> int:
    """Run the application, optionally with a specific settings file."""
    from .main_window import MainWindow

    app = Application()
    app.initialize(SettingsHandler(settings_path))

    main_window = MainWindow(app)
    app.main_window = main_window
    main_window.show()

    app.aboutToQuit.connect(app.cleanup)

    def on_init_complete(channel_count):
        main_window.set_loading_complete()
        main_window.set_status(f"Monitoring {channel_count} channels")
        app.start_refresh_timer()

    app.start_async_init(on_init_complete=on_init_complete)

    return app.exec()
