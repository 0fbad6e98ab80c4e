"""Dialogs opened from the main window."""

from .add_channel import AddChannelDialog
from .import_follows import ImportFollowsDialog
from .preferences import PreferencesDialog

__all__ = [
    "AddChannelDialog",
    "ImportFollowsDialog",
    "PreferencesDialog",
]
