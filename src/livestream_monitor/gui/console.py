"""Window displaying streamlink output for a launch."""

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QFont, QTextCharFormat, QColor
from PySide6.QtWidgets import QDialog, QPlainTextEdit, QPushButton, QVBoxLayout

from .theme import get_theme


class LaunchConsole(QDialog):
    """Shows streamlink's output while a stream starts.

    Closes itself when streamlink exits cleanly; stays open with an error
    footer when streamlink wrote to stderr or exited non-zero.
    """

    # Emitted from the launcher's reader threads
    output_received = Signal(str, bool)  # line, is_error
    process_exited = Signal(int, bool)  # exit code, keep open

    def __init__(self, title: str, parent=None):
        super().__init__(parent)
        self.setWindowTitle(title)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        self.resize(600, 300)

        layout = QVBoxLayout(self)

        self._text = QPlainTextEdit()
        self._text.setReadOnly(True)
        self._text.setFont(QFont("monospace", 9))
        self._text.setMaximumBlockCount(5000)
        layout.addWidget(self._text)

        self.close_btn = QPushButton("Close")
        self.close_btn.clicked.connect(self.close)
        layout.addWidget(self.close_btn, 0, Qt.AlignmentFlag.AlignRight)

        self.exit_code: int | None = None
        self.output_received.connect(self._append_line)
        self.process_exited.connect(self._on_exit)

    @property
    def text(self) -> str:
        return self._text.toPlainText()

    def _append_line(self, line: str, is_error: bool):
        if not is_error:
            self._text.appendPlainText(line)
            return

        fmt = QTextCharFormat()
        fmt.setForeground(QColor(get_theme().console_error))
        cursor = self._text.textCursor()
        cursor.movePosition(cursor.MoveOperation.End)
        if not self._text.document().isEmpty():
            cursor.insertBlock()
        cursor.insertText(line, fmt)
        self._text.setTextCursor(cursor)

    def _on_exit(self, exit_code: int, keep_open: bool):
        self.exit_code = exit_code
        if not keep_open:
            self.close()
