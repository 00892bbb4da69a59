"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import mimetypes
import sys
from pathlib import Path

from batch import DeepgramBatchTranscriber
from clipboard import PyperclipClipboard
from config import SUPPORTED_LANGUAGES, SUPPORTED_MODELS, JsonConfigStore
from encoder import PCMEncoder
from errors import ERROR_MESSAGES
from history import TranscriptHistory
from hotkey import HoldHotkey
from models import HistoryEntry, SessionState
from recorder import SoundDeviceCapture
from session_controller import GestureQueue, RecordingSessionController
from streaming import DeepgramStreamingClient

try:
    from PySide6.QtCore import QObject, QSize, Qt, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

from overlay import OverlayWindow

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


ICON_IDLE = "#888888"      # grey
ICON_ARMING = "#FFCC00"    # yellow
ICON_RECORDING = "#FF4444"  # red


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_state, to_state
    transcript_signal = Signal(str, str, float)  # final, live, confidence
    notice_signal = Signal(object)
    error_signal = Signal(str)
    history_signal = Signal(object)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.clipboard = PyperclipClipboard()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.transcript_signal.connect(self.overlay.set_transcript)
        self.ui.notice_signal.connect(self.overlay.set_notice)
        self.ui.error_signal.connect(self.overlay.show_error)
        self.ui.history_signal.connect(self.overlay.set_history)

        self.controller = RecordingSessionController(
            capture_factory=SoundDeviceCapture,
            encoder_factory=PCMEncoder,
            client_factory=self._new_client,
            params=self.config_store.stream_params(),
            history=TranscriptHistory(),
            on_state_change=self._on_state_change,
            on_transcript=self._on_transcript,
            on_notice=self._on_notice,
            on_error=self._on_error,
            on_history=self._on_history,
        )
        self.gestures = GestureQueue()
        self.hotkey = HoldHotkey(hotkey_name=self.config_store.get_hotkey())

        self.overlay.hold_button.held.connect(self._press)
        self.overlay.hold_button.let_go.connect(self._release)
        self.overlay.focus_lost.connect(self._release)
        self.app.applicationStateChanged.connect(self._on_application_state)
        self.overlay.clear_button.clicked.connect(self.controller.clear)
        self.overlay.copy_button.clicked.connect(self._copy)
        self.overlay.clear_history_button.clicked.connect(self.controller.clear_history)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("PressTalk - Ready")
        self._setup_menu()
        self.tray.show()

    def _new_client(self) -> DeepgramStreamingClient:
        return DeepgramStreamingClient(api_key=self.config_store.get_api_key())

    def _setup_menu(self) -> None:
        menu = QMenu()

        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        model_menu = menu.addMenu("Model")
        self._add_choices(model_menu, SUPPORTED_MODELS, self.config_store.get_model(), self._set_model)
        language_menu = menu.addMenu("Language")
        self._add_choices(
            language_menu, SUPPORTED_LANGUAGES, self.config_store.get_language(), self._set_language
        )

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        show_action = QAction("Show Window", menu)
        show_action.triggered.connect(self.overlay.show)
        menu.addAction(show_action)
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self._menu = menu
        self.tray.setContextMenu(menu)

    def _add_choices(self, menu: QMenu, choices: dict[str, str], current: str, apply) -> None:  # noqa: ANN001
        group = QActionGroup(menu)
        group.setExclusive(True)
        for key, label in choices.items():
            action = QAction(label, menu, checkable=True)
            action.setChecked(key == current)
            action.triggered.connect(lambda _checked=False, k=key: apply(k))
            group.addAction(action)
            menu.addAction(action)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "Deepgram API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved, used from the next recording.")

    def _set_model(self, model: str) -> None:
        self.config_store.set_model(model)
        self.controller.update_settings(model=model)

    def _set_language(self, language: str) -> None:
        self.config_store.set_language(language)
        self.controller.update_settings(language=language)

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.alt_r"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    def _copy(self) -> None:
        if not self.clipboard.copy_text(self.controller.session.final_text):
            self.overlay.show_error("Failed to copy to clipboard")

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_transcript(self, final_text: str, live_text: str, confidence: float) -> None:
        self.ui.transcript_signal.emit(final_text, live_text, confidence)

    def _on_notice(self, text: str | None) -> None:
        self.ui.notice_signal.emit(text)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{ERROR_MESSAGES.get(code, code)} ({message})")

    def _on_history(self, entries: tuple[HistoryEntry, ...]) -> None:
        self.ui.history_signal.emit(entries)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.overlay.set_recording(to_state == SessionState.RECORDING.value)
        if to_state == SessionState.ARMING.value:
            self.tray.setIcon(_create_icon(ICON_ARMING))
        elif to_state == SessionState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("PressTalk - Recording...")
        elif to_state == SessionState.IDLE.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("PressTalk - Ready")

    def _on_application_state(self, state: Qt.ApplicationState) -> None:
        if state != Qt.ApplicationActive:
            self._release()

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def _press(self) -> None:
        self.gestures.submit(self.controller.press)

    def _release(self) -> None:
        self.gestures.submit(self.controller.release)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        if not self.config_store.get_api_key():
            QMessageBox.critical(
                None,
                "Configuration Error",
                "Deepgram API key is not configured. Set DEEPGRAM_API_KEY "
                "or add api_key to the config file.",
            )
            return 1
        self.gestures.start()
        try:
            self.hotkey.start(on_press=self._press, on_release=self._release)
        except Exception as exc:
            logger.warning("hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        self.overlay.show()
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.gestures.stop()
        self.controller.shutdown()
        self.app.quit()


def transcribe_file(path: Path, config_store: JsonConfigStore) -> int:
    """Batch-transcribe one audio file and print the transcript."""
    content_type = mimetypes.guess_type(path.name)[0] or "audio/wav"
    transcriber = DeepgramBatchTranscriber(api_key=config_store.get_api_key())
    try:
        result = transcriber.transcribe(
            path.read_bytes(), config_store.stream_params(), content_type=content_type
        )
    finally:
        transcriber.close()
    if not result.success:
        print(f"error: {result.error}", file=sys.stderr)
        return 1
    print(result.transcript)
    logger.info("confidence %.0f%%", result.confidence * 100)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="presstalk", description="Hold-to-talk dictation.")
    parser.add_argument("--file", type=Path, help="transcribe an audio file and exit")
    parser.add_argument("--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.file is not None:
        return transcribe_file(args.file, JsonConfigStore())
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
