"""Theme management for light and dark mode support."""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QApplication

from ..core.settings import DEFAULT_ACCENT_COLOR, ThemeMode

if TYPE_CHECKING:
    from ..core.settings import SettingsHandler


@dataclass(frozen=True)
class ThemeColors:
    """Color definitions for a theme."""

    # Window and widget backgrounds
    window_bg: str
    widget_bg: str
    input_bg: str
    # Text colors
    text_primary: str
    text_secondary: str
    text_muted: str
    # Accent colors
    accent: str
    accent_hover: str
    # Borders
    border: str
    # Selection
    selection_bg: str
    selection_text: str
    # Status colors
    status_live: str
    status_offline: str
    status_error: str
    # Console output
    console_bg: str
    console_error: str


DARK_THEME = ThemeColors(
    window_bg="#0e1525",
    widget_bg="#1a1a2e",
    input_bg="#16213e",
    text_primary="#eeeeee",
    text_secondary="#cccccc",
    text_muted="#999999",
    accent="#7b5cbf",
    accent_hover="#9171d6",
    border="#444444",
    selection_bg="#7b5cbf",
    selection_text="#ffffff",
    status_live="#4CAF50",
    status_offline="#999999",
    status_error="#f44336",
    console_bg="#0b0f1a",
    console_error="#ff7961",
)

LIGHT_THEME = ThemeColors(
    window_bg="#f5f5f5",
    widget_bg="#ffffff",
    input_bg="#ffffff",
    text_primary="#1a1a1a",
    text_secondary="#444444",
    text_muted="#666666",
    accent="#6441a5",
    accent_hover="#7d5bbe",
    border="#cccccc",
    selection_bg="#6441a5",
    selection_text="#ffffff",
    status_live="#2e7d32",
    status_offline="#555555",
    status_error="#b71c1c",
    console_bg="#fafafa",
    console_error="#b71c1c",
)


# Cache for generated stylesheets (keyed by theme colors)
_stylesheet_cache: dict[ThemeColors, str] = {}


class ThemeManager:
    """Manages theme state and provides current theme colors."""

    _settings: "SettingsHandler | None" = None
    _cached_is_dark: bool | None = None

    @classmethod
    def set_settings(cls, settings: "SettingsHandler") -> None:
        """Set the settings handler used for theme management."""
        cls._settings = settings
        cls._cached_is_dark = None

    @classmethod
    def get_theme_mode(cls) -> ThemeMode:
        """Get the current theme mode setting."""
        if cls._settings is None:
            return ThemeMode.AUTO
        return cls._settings.settings.theme_mode

    @classmethod
    def set_theme_mode(cls, mode: ThemeMode) -> None:
        """Set the theme mode and save settings."""
        if cls._settings is not None:
            cls._settings.update(theme_mode=mode)
        cls._cached_is_dark = None

    @classmethod
    def detect_system_dark_mode(cls) -> bool:
        """Detect if system is using dark mode."""
        app = QApplication.instance()
        if app is None:
            return True

        # Dark themes have a low-luminance window background
        bg_color = app.palette().color(QPalette.ColorRole.Window)
        luminance = 0.299 * bg_color.red() + 0.587 * bg_color.green() + 0.114 * bg_color.blue()
        return luminance < 128

    @classmethod
    def is_dark_mode(cls) -> bool:
        """Check if we should use dark mode based on settings and system."""
        if cls._cached_is_dark is not None:
            return cls._cached_is_dark

        mode = cls.get_theme_mode()
        if mode == ThemeMode.DARK:
            result = True
        elif mode == ThemeMode.LIGHT:
            result = False
        else:
            result = cls.detect_system_dark_mode()

        cls._cached_is_dark = result
        return result

    @classmethod
    def invalidate_cache(cls) -> None:
        """Invalidate the cached theme state (call when system theme changes)."""
        cls._cached_is_dark = None
        _stylesheet_cache.clear()

    @classmethod
    def colors(cls) -> ThemeColors:
        """Get the current theme colors with the configured accent applied."""
        base = DARK_THEME if cls.is_dark_mode() else LIGHT_THEME
        accent = DEFAULT_ACCENT_COLOR
        if cls._settings is not None:
            accent = cls._settings.settings.accent_color
        if accent == DEFAULT_ACCENT_COLOR or not QColor.isValidColorName(accent):
            return base

        hover = QColor(accent).lighter(125).name()
        return replace(base, accent=accent, accent_hover=hover, selection_bg=accent)


def get_theme() -> ThemeColors:
    """Get the current theme colors (convenience function)."""
    return ThemeManager.colors()


def get_app_stylesheet() -> str:
    """Generate the application-wide stylesheet for the current theme.

    Applies to all QWidgets in the application including dialogs.
    """
    theme = get_theme()
    if theme in _stylesheet_cache:
        return _stylesheet_cache[theme]

    stylesheet = f"""
        QWidget {{
            background-color: {theme.window_bg};
            color: {theme.text_primary};
        }}
        QGroupBox {{
            border: 1px solid {theme.border};
            border-radius: 4px;
            margin-top: 8px;
            padding-top: 8px;
        }}
        QGroupBox::title {{
            subcontrol-origin: margin;
            subcontrol-position: top left;
            padding: 0 4px;
        }}
        QTabWidget::pane {{
            border: 1px solid {theme.border};
            background-color: {theme.widget_bg};
        }}
        QTabBar::tab {{
            background-color: {theme.input_bg};
            color: {theme.text_secondary};
            padding: 6px 12px;
            border: 1px solid {theme.border};
            border-bottom: none;
        }}
        QTabBar::tab:selected {{
            background-color: {theme.widget_bg};
            color: {theme.text_primary};
        }}
        QLineEdit, QSpinBox {{
            background-color: {theme.input_bg};
            border: 1px solid {theme.border};
            border-radius: 4px;
            padding: 4px;
        }}
        QLineEdit:focus, QSpinBox:focus {{
            border-color: {theme.accent};
        }}
        QPlainTextEdit {{
            background-color: {theme.console_bg};
            border: 1px solid {theme.border};
        }}
        QComboBox {{
            background-color: {theme.input_bg};
            border: 1px solid {theme.border};
            border-radius: 4px;
            padding: 4px 8px;
        }}
        QComboBox QAbstractItemView {{
            background-color: {theme.widget_bg};
            selection-background-color: {theme.selection_bg};
            selection-color: {theme.selection_text};
        }}
        QPushButton {{
            background-color: {theme.input_bg};
            border: 1px solid {theme.border};
            border-radius: 4px;
            padding: 4px 10px;
        }}
        QPushButton:hover {{
            background-color: {theme.accent_hover};
            color: white;
        }}
        QPushButton:pressed {{
            background-color: {theme.accent};
        }}
        QPushButton:disabled {{
            background-color: {theme.border};
            color: {theme.text_muted};
        }}
        QLabel {{
            background: transparent;
        }}
        QListView, QListWidget {{
            background-color: {theme.widget_bg};
            border: 1px solid {theme.border};
        }}
        QListView::item:selected, QListWidget::item:selected {{
            background-color: {theme.selection_bg};
            color: {theme.selection_text};
        }}
        QProgressBar {{
            background-color: {theme.input_bg};
            border: 1px solid {theme.border};
            border-radius: 4px;
            text-align: center;
        }}
        QProgressBar::chunk {{
            background-color: {theme.accent};
        }}
        QMenu {{
            background-color: {theme.widget_bg};
            border: 1px solid {theme.border};
        }}
        QMenu::item:selected {{
            background-color: {theme.selection_bg};
            color: {theme.selection_text};
        }}
    """
    _stylesheet_cache[theme] = stylesheet
    return stylesheet
