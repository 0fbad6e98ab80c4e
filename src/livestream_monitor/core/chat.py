"""Chat launcher for opening stream chat."""

import logging
import shlex
import subprocess
import webbrowser

from .launcher import host_command
from .models import Livestream
from .settings import ChatSettings

logger = logging.getLogger(__name__)

URL_PLACEHOLDER = "{url}"


class ChatLauncher:
    """Opens a channel's popout chat with the configured command line.

    The command line is split like a shell would and "{url}" is replaced by
    the chat URL (appended if the placeholder is missing). An empty command
    line opens chat in the default browser.
    """

    def __init__(self, settings: ChatSettings) -> None:
        self.settings = settings

    def build_command(self, url: str) -> list[str]:
        """Build the chat command for a URL. Empty when using the default browser."""
        command_line = self.settings.command_line.strip()
        if not command_line:
            return []

        try:
            args = shlex.split(command_line)
        except ValueError as e:
            logger.warning(f"Invalid chat command line, using default browser: {e}")
            return []

        if not any(URL_PLACEHOLDER in arg for arg in args):
            args.append(URL_PLACEHOLDER)
        return [arg.replace(URL_PLACEHOLDER, url) for arg in args]

    def open_chat(self, livestream: Livestream) -> bool:
        """Open chat for a channel. Returns True if something was launched."""
        url = livestream.chat_url
        cmd = self.build_command(url)

        if not cmd:
            try:
                webbrowser.open(url)
            except webbrowser.Error as e:
                logger.error(f"Failed to open browser: {e}")
                return False
            logger.info(f"Opened chat for {livestream.channel.channel_id} in default browser")
            return True

        try:
            subprocess.Popen(
                host_command(cmd),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to open chat with '{cmd[0]}': {e}")
            return False

        logger.info(f"Opened chat for {livestream.channel.channel_id} with {cmd[0]}")
        return True


def open_in_browser(livestream: Livestream) -> bool:
    """Open the channel page in the default browser."""
    try:
        webbrowser.open(livestream.stream_url)
        return True
    except webbrowser.Error as e:
        logger.error(f"Failed to open browser: {e}")
        return False
