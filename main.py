"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading

from capture import SoundDeviceCapture
from clipboard import ClipboardExporter
from config import JsonConfigStore
from errors import ERROR_MESSAGES, PipelineError
from formatter import DashscopeHandFormatter
from hotkey import GlobalHotkeyAdapter
from models import ProcessingArtifact, RecordingMode, SessionState
from overlay import OverlayWindow
from processing_queue import ProcessingQueue
from recognizer import DashscopeTranscriber
from result_sink import ResultSink, SinkRecord
from session_controller import SessionController

try:
    from PySide6.QtCore import QObject, QSize, QTimer, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"
ICON_RECORDING = "#FF4444"
ICON_ERROR = "#FF8800"


class UIBridge(QObject):
    error_signal = Signal(str)
    state_signal = Signal(str, str)
    level_signal = Signal(float)
    result_signal = Signal(object)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        logging.basicConfig(
            level=self.config_store.get_log_level(),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.level_signal.connect(self.overlay.set_level)
        self.ui.result_signal.connect(self._on_result_ui)

        config = self.config_store.pipeline_config()
        self.sink = ResultSink()
        self.sink.subscribe(self.ui.result_signal.emit)
        self.queue = ProcessingQueue(
            transcriber=DashscopeTranscriber(),
            formatter=DashscopeHandFormatter(default_model=self.config_store.get_model()),
            sink=self.sink,
            max_depth=config.max_queue_depth,
            call_timeout_s=config.call_timeout_s,
        )
        self.queue.start()
        self.controller = SessionController(
            capture=SoundDeviceCapture(),
            queue=self.queue,
            config=config,
            on_state_change=self._on_state_change,
            on_error=self._on_error,
            on_level=self.ui.level_signal.emit,
        )
        self.clipboard = ClipboardExporter()
        self.hotkey = GlobalHotkeyAdapter(
            bindings={
                self.config_store.get_record_hotkey(): self._toggle_recording,
                self.config_store.get_mark_hotkey(): self._mark_new_hand,
            }
        )

        self.timer = QTimer()
        self.timer.setInterval(1000)
        self.timer.timeout.connect(self._tick)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Hand Scribe - Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        self.continuous_action = QAction("Continuous mode", menu)
        self.continuous_action.setCheckable(True)
        self.continuous_action.setChecked(self.config_store.get_mode() == RecordingMode.CONTINUOUS)
        self.continuous_action.toggled.connect(self._set_continuous)
        menu.addAction(self.continuous_action)

        for label, handler in (
            ("Start / Stop Recording", self._toggle_recording),
            ("Mark New Hand", self._mark_new_hand),
            ("Cancel Recording", self._cancel_recording),
            ("Retry Microphone Access", self._retry_microphone),
        ):
            action = QAction(label, menu)
            action.triggered.connect(handler)
            menu.addAction(action)

        menu.addSeparator()
        for label, handler in (
            ("Copy Last Hand", self._copy_last_hand),
            ("Copy All Hands", self._copy_all_hands),
            ("Set API Key", self._set_api_key),
        ):
            action = QAction(label, menu)
            action.triggered.connect(handler)
            menu.addAction(action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _run_action(self, action) -> None:  # noqa: ANN001
        try:
            action()
        except PipelineError as exc:
            self._on_error(exc.code, exc.message)

    def _toggle_recording(self) -> None:
        if self.controller.state == SessionState.IDLE:
            self._run_action(self.controller.start)
        else:
            self._run_action(self.controller.stop)

    def _mark_new_hand(self) -> None:
        self._run_action(self.controller.mark_boundary)

    def _cancel_recording(self) -> None:
        self._run_action(lambda: self.controller.cancel("cancelled by user"))

    def _retry_microphone(self) -> None:
        self.controller.grant_permission()
        if self.controller.state == SessionState.IDLE:
            self._run_action(self.controller.start)

    def _set_continuous(self, checked: bool) -> None:
        mode = RecordingMode.CONTINUOUS if checked else RecordingMode.SINGLE
        self.config_store.set_mode(mode)
        self.controller.update_config(self.config_store.pipeline_config())

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.controller.update_config(self.config_store.pipeline_config())
        QMessageBox.information(None, "Saved", "API Key saved. It applies to the next recording.")

    def _copy_last_hand(self) -> None:
        hands = self.sink.artifacts()
        if not hands:
            self.overlay.show_error("No hands yet")
            return
        result = self.clipboard.copy_hand(hands[-1])
        if not result.success:
            self.overlay.show_error(result.reason)

    def _copy_all_hands(self) -> None:
        result = self.clipboard.copy_all(self.sink)
        if not result.success:
            self.overlay.show_error(result.reason)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(ERROR_MESSAGES.get(code, message))

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        queued = len(self.queue.pending()) + (1 if self.queue.in_flight else 0)
        self.overlay.set_recording(self.controller.elapsed, queued)

    def _on_error_ui(self, msg: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.overlay.show_error(msg)

    def _on_result_ui(self, record: SinkRecord) -> None:
        if isinstance(record, ProcessingArtifact):
            self.tray.showMessage("Hand ready", f"{len(self.sink.artifacts())} hand(s) available")
            if self.controller.state == SessionState.IDLE:
                self.overlay.show_hand(record.formatted_text)
        else:
            self.tray.showMessage(
                f"Hand failed ({record.stage.value})",
                ERROR_MESSAGES.get(record.code, record.message),
            )

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == SessionState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Hand Scribe - Recording...")
            self.overlay.set_recording(0, 0)
            self.timer.start()
        elif to_state == SessionState.INITIALIZING.value:
            self.overlay.set_text("Initializing microphone...")
        elif to_state == SessionState.IDLE.value:
            self.timer.stop()
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Hand Scribe - Ready")
            self.overlay.hide_with_delay(400)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start()
        except Exception as exc:
            self.overlay.show_error(f"Hotkeys disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self._run_action(lambda: self.controller.cancel("app quit"))
        threading.Thread(target=self.queue.close, kwargs={"timeout": 1.0}, daemon=True).start()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
