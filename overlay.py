"""Overlay window showing recording status and processed hands."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QProgressBar = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_NORMAL_STYLE = (
    "color: white; font-size: 16px; padding: 12px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_ERROR_STYLE = (
    "color: #FF6B6B; font-size: 16px; padding: 12px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)


def format_elapsed(seconds: float) -> str:
    """Format seconds as MM:SS."""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(_NORMAL_STYLE)

        self._level = QProgressBar()
        self._level.setRange(0, 100)
        self._level.setTextVisible(False)
        self._level.setFixedHeight(6)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        layout.addWidget(self._level)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _center_top(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40
        self.move(x, y)

    def set_text(self, text: str) -> None:
        """Update overlay text and show at screen top center."""
        self._cancel_hide_timer()
        self._label.setStyleSheet(_NORMAL_STYLE)
        self._label.setText(text)
        self._center_top()
        self.show()

    def set_recording(self, elapsed_s: float, queued: int) -> None:
        suffix = f" · {queued} hand(s) processing" if queued else ""
        self.set_text(f"🎙️ Recording {format_elapsed(elapsed_s)}{suffix}")

    def set_level(self, level: float) -> None:
        self._level.setValue(int(max(0.0, min(1.0, level)) * 100))

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        self._level.setValue(0)
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def show_hand(self, formatted_text: str, max_lines: int = 4, hide_after_ms: int = 4000) -> None:
        lines = formatted_text.strip().splitlines()[:max_lines]
        self.set_text("\n".join(lines) or "(empty hand)")
        self.hide_with_delay(hide_after_ms)

    def show_error(self, text: str, hide_after_ms: int = 3000) -> None:
        """Show an error message and auto-hide after given ms."""
        self.set_text(f"⚠️ {text}")
        self._label.setStyleSheet(_ERROR_STYLE)
        self.hide_with_delay(hide_after_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
