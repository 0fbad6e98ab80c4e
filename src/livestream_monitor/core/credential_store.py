"""Keyring storage for the Twitch secrets.

The OAuth access token and the client secret are kept in the system keyring
when one is usable. A secret that cannot be written to the keyring stays in
settings.json, and that file is then restricted to its owner.
"""

import logging
import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING

import keyring
from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError, PasswordDeleteError

if TYPE_CHECKING:
    from .settings import TwitchSettings

logger = logging.getLogger(__name__)

SERVICE_NAME = "livestream-monitor"

# TwitchSettings attribute -> keyring entry
SECRET_KEYS = {
    "access_token": "twitch_access_token",
    "client_secret": "twitch_client_secret",
}

_keyring_available: bool | None = None


def keyring_available() -> bool:
    """Probe the keyring once with a write/read/delete round trip."""
    global _keyring_available
    if _keyring_available is not None:
        return _keyring_available

    try:
        backend = keyring.get_keyring()
        if isinstance(backend, FailKeyring):
            logger.info("No keyring backend, secrets stay in settings.json")
            _keyring_available = False
            return False

        keyring.set_password(SERVICE_NAME, "_probe", "test")
        result = keyring.get_password(SERVICE_NAME, "_probe")
        keyring.delete_password(SERVICE_NAME, "_probe")
        _keyring_available = result == "test"
    except Exception as e:
        # Backends surface D-Bus and OS errors of their own types
        logger.info(f"Keyring unavailable: {e}")
        _keyring_available = False

    logger.info(f"Keyring {'available' if _keyring_available else 'probe failed'}")
    return _keyring_available


def _store(key: str, value: str) -> bool:
    try:
        if value:
            keyring.set_password(SERVICE_NAME, key, value)
        else:
            keyring.delete_password(SERVICE_NAME, key)
    except PasswordDeleteError:
        pass
    except KeyringError as e:
        logger.warning(f"Failed to store '{key}' in keyring: {e}")
        return False
    return True


def store_twitch_secrets(twitch: "TwitchSettings") -> set[str]:
    """Write the Twitch secrets to the keyring.

    Returns the attribute names that are now held by the keyring; the caller
    must keep every other secret in the settings file.
    """
    if not keyring_available():
        return set()
    return {attr for attr, key in SECRET_KEYS.items() if _store(key, getattr(twitch, attr))}


def load_twitch_secrets(twitch: "TwitchSettings") -> bool:
    """Fill the Twitch secrets from the keyring, which wins over settings.json.

    Returns True when settings.json still holds a secret the keyring lacks,
    meaning the file should be re-saved to move it.
    """
    if not keyring_available():
        return False

    needs_move = False
    for attr, key in SECRET_KEYS.items():
        try:
            stored = keyring.get_password(SERVICE_NAME, key)
        except KeyringError as e:
            logger.warning(f"Failed to read '{key}' from keyring: {e}")
            continue
        if stored:
            setattr(twitch, attr, stored)
        elif getattr(twitch, attr):
            needs_move = True
    return needs_move


def restrict_to_owner(path: Path) -> None:
    """chmod 600 a settings file that holds plaintext secrets."""
    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError as e:
        logger.debug(f"Could not set permissions on {path}: {e}")
