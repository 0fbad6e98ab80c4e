"""Streamlink integration for launching streams and VODs."""

import logging
import os
import shlex
import shutil
import subprocess
import threading
from collections.abc import Callable
from urllib.parse import urlparse

from .models import Livestream, StreamQuality
from .settings import StreamlinkSettings

logger = logging.getLogger(__name__)

LAUNCHING_MESSAGE = "Launching streamlink..."
NON_PARTNER_NOTE = "[NOTE] Channel is not a Twitch partner so falling back to Source quality"
ERROR_FOOTER = (
    "ERROR occurred in streamlink: "
    "manually close this window when you've finished reading the output."
)

# on_output(line, is_error)
OutputCallback = Callable[[str, bool], None]
# on_exit(exit_code, keep_open)
ExitCallback = Callable[[int, bool], None]


class StreamlinkNotFoundError(FileNotFoundError):
    """The configured streamlink executable could not be found."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Could not find streamlink at '{path}'")
        self.path = path


def is_flatpak() -> bool:
    """Check if running inside a Flatpak sandbox."""
    return os.path.exists("/.flatpak-info") or "FLATPAK_ID" in os.environ


def host_command(cmd: list[str]) -> list[str]:
    """Wrap command to run on host if inside Flatpak."""
    if is_flatpak():
        return ["flatpak-spawn", "--host"] + cmd
    return cmd


def is_absolute_url(url: str | None) -> bool:
    """Check that a URL is absolute (has a scheme and a host)."""
    if not url or not url.strip():
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve_quality(livestream: Livestream, quality: StreamQuality) -> StreamQuality:
    """Pick the quality to request for a stream.

    Non-partner channels don't get transcodes, so they always get SOURCE.
    """
    if not livestream.is_partner:
        return StreamQuality.SOURCE
    return quality


def _validate_additional_args(args_str: str) -> list[str]:
    """Validate and parse additional arguments safely.

    Uses shlex.split for proper parsing and validates that all args
    start with - or -- to prevent command injection.
    """
    if not args_str:
        return []

    try:
        args = shlex.split(args_str)
    except ValueError as e:
        logger.warning(f"Invalid additional_args syntax: {e}")
        return []

    validated = []
    for arg in args:
        # Allow = in the middle of an arg (e.g., --player-args=foo)
        if arg.startswith("-"):
            validated.append(arg)
        elif "=" in arg and not arg.startswith("="):
            validated.append(arg)
        else:
            logger.warning(f"Skipping invalid argument (must start with -): {arg}")
    return validated


class StreamLauncher:
    """Launches streams and VODs with streamlink and relays its output."""

    def __init__(self, settings: StreamlinkSettings) -> None:
        self.settings = settings
        # Track running processes: {key: process}
        self._active_streams: dict[str, subprocess.Popen] = {}
        # Lock to protect _active_streams from concurrent access
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        """Check if streamlink is installed and accessible."""
        path = self.settings.path
        if not path:
            return False
        if is_flatpak():
            try:
                result = subprocess.run(
                    ["flatpak-spawn", "--host", "which", path],
                    capture_output=True,
                    timeout=5,
                )
                return result.returncode == 0
            except (OSError, subprocess.TimeoutExpired):
                return False
        return shutil.which(path) is not None or os.path.isfile(path)

    def build_command(self, url: str, quality: StreamQuality) -> list[str]:
        """Build the streamlink command for a URL."""
        cmd = [self.settings.path]

        if self.settings.player:
            cmd.extend(["--player", self.settings.player])

        if self.settings.player_args:
            cmd.extend(["--player-args", self.settings.player_args])

        # Additional arguments (validated to prevent command injection)
        if self.settings.additional_args:
            cmd.extend(_validate_additional_args(self.settings.additional_args))

        cmd.append(url)
        cmd.append(quality.value)
        return cmd

    def is_playing(self, key: str) -> bool:
        """Check if a stream is currently playing."""
        with self._lock:
            process = self._active_streams.get(key)
            if process is None:
                return False
            if process.poll() is not None:
                del self._active_streams[key]
                return False
            return True

    def stop_stream(self, key: str) -> bool:
        """Stop a playing stream."""
        with self._lock:
            process = self._active_streams.pop(key, None)
        if process is None:
            return False

        try:
            process.terminate()
            try:
                process.wait(timeout=2)
            except subprocess.TimeoutExpired:
                process.kill()
        except OSError as e:
            logger.error(f"Failed to stop stream: {e}")
            return False
        return True

    def stop_all_streams(self) -> None:
        """Stop all playing streams."""
        with self._lock:
            keys = list(self._active_streams.keys())
        for key in keys:
            self.stop_stream(key)

    def launch(
        self,
        livestream: Livestream,
        quality: StreamQuality | None = None,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> subprocess.Popen | None:
        """Launch a live channel.

        Returns None (and launches nothing) for offline channels.
        Raises StreamlinkNotFoundError if streamlink isn't installed.
        """
        if not livestream.live:
            logger.info(f"Not launching {livestream.channel.channel_id}: channel is offline")
            return None

        requested = quality or self.settings.default_quality
        resolved = resolve_quality(livestream, requested)

        messages = [LAUNCHING_MESSAGE]
        if resolved != requested:
            messages.append(NON_PARTNER_NOTE)

        return self._start(
            livestream.channel.unique_key,
            livestream.stream_url,
            resolved,
            messages,
            on_output,
            on_exit,
        )

    def open_vod(
        self,
        url: str,
        quality: StreamQuality | None = None,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> subprocess.Popen | None:
        """Launch a VOD by URL. Raises ValueError for a non-absolute URL."""
        if not is_absolute_url(url):
            raise ValueError(f"Not an absolute URL: {url!r}")

        url = url.strip()
        return self._start(
            f"vod:{url}",
            url,
            quality or self.settings.default_quality,
            [LAUNCHING_MESSAGE],
            on_output,
            on_exit,
        )

    def _start(
        self,
        key: str,
        url: str,
        quality: StreamQuality,
        messages: list[str],
        on_output: OutputCallback | None,
        on_exit: ExitCallback | None,
    ) -> subprocess.Popen | None:
        if not self.is_available():
            logger.error(f"Streamlink is not available at '{self.settings.path}'")
            raise StreamlinkNotFoundError(self.settings.path)

        # Replace any stream already playing under this key
        if self.is_playing(key):
            self.stop_stream(key)

        for message in messages:
            self._emit(on_output, message, False)

        cmd = host_command(self.build_command(url, quality))
        logger.info(f"Launching via streamlink: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                bufsize=1,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to launch stream: {e}")
            self._emit(on_output, str(e), True)
            self._emit(on_output, ERROR_FOOTER, True)
            if on_exit:
                on_exit(-1, True)
            return None

        with self._lock:
            self._active_streams[key] = process

        threading.Thread(
            target=self._watch_process,
            args=(key, process, on_output, on_exit),
            daemon=True,
        ).start()
        return process

    def _watch_process(
        self,
        key: str,
        process: subprocess.Popen,
        on_output: OutputCallback | None,
        on_exit: ExitCallback | None,
    ) -> None:
        """Relay process output and report the exit (runs in daemon thread)."""
        stderr_seen = threading.Event()

        def read(stream, is_error: bool) -> None:
            for line in stream:
                line = line.rstrip("\r\n")
                if is_error:
                    stderr_seen.set()
                self._emit(on_output, line, is_error)
            stream.close()

        readers = [
            threading.Thread(target=read, args=(process.stdout, False), daemon=True),
            threading.Thread(target=read, args=(process.stderr, True), daemon=True),
        ]
        for reader in readers:
            reader.start()
        for reader in readers:
            reader.join()

        exit_code = process.wait()
        with self._lock:
            if self._active_streams.get(key) is process:
                del self._active_streams[key]

        keep_open = stderr_seen.is_set() or exit_code != 0
        if keep_open:
            logger.warning(f"streamlink exited with code {exit_code} for {key}")
            self._emit(on_output, "", False)
            self._emit(on_output, ERROR_FOOTER, True)

        if on_exit:
            try:
                on_exit(exit_code, keep_open)
            except Exception as e:
                logger.error(f"Launch exit callback error: {e}")

    @staticmethod
    def _emit(on_output: OutputCallback | None, line: str, is_error: bool) -> None:
        if on_output is None:
            return
        try:
            on_output(line, is_error)
        except Exception as e:
            logger.error(f"Launch output callback error: {e}")
