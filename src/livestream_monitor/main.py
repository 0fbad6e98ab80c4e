#!/usr/bin/env python3
"""Command line entry point for Livestream Monitor."""

import argparse
import logging
import sys
from pathlib import Path

from .__version__ import __version__

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("aiohttp", "asyncio", "desktop_notifier")


def setup_logging(debug: bool = False) -> None:
    """Log to stdout; DEBUG enables this package's debug output only."""
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if debug:
        logging.getLogger("livestream_monitor").setLevel(logging.DEBUG)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="livestream-monitor",
        description="Watch followed Twitch channels and launch streams with streamlink.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="log debug messages")
    parser.add_argument(
        "--settings",
        type=Path,
        metavar="FILE",
        help="settings file to use instead of the one in the user config directory",
    )
    # Leave Qt options such as -platform for QApplication
    args, _ = parser.parse_known_args(argv)
    return args


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.debug)

    try:
        from .gui.app import run
    except ImportError as e:
        logging.error(f"Failed to import GUI: {e}")
        logging.error("Make sure PySide6 is installed:")
        logging.error("  pip install PySide6")
        return 1

    return run(settings_path=args.settings)


if __name__ == "__main__":
    sys.exit(main())
