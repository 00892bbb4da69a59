"""Always-on-top window: hold button, live transcript, notice and history."""

from __future__ import annotations

import html
from typing import Optional

from PySide6.QtCore import QEvent, Qt, Signal
from PySide6.QtWidgets import QHBoxLayout, QLabel, QListWidget, QPushButton, QVBoxLayout, QWidget

from models import HistoryEntry

LABEL_STYLE = "color: white; font-size: 18px; padding: 16px;"
NOTICE_STYLE = "color: #FFB347; font-size: 14px; padding: 4px 16px;"
ERROR_STYLE = "color: #FF6B6B; font-size: 14px; padding: 4px 16px;"


class HoldButton(QPushButton):
    """Emits ``held`` on mouse-down and ``let_go`` on mouse-up.

    Qt grabs the mouse on press, so the release arrives here even when the
    pointer has left the button.
    """

    held = Signal()
    let_go = Signal()

    def mousePressEvent(self, event) -> None:  # noqa: ANN001, N802
        if event.button() == Qt.LeftButton:
            self.setDown(True)
            self.held.emit()
        event.accept()

    def mouseReleaseEvent(self, event) -> None:  # noqa: ANN001, N802
        if event.button() == Qt.LeftButton:
            self.setDown(False)
            self.let_go.emit()
        event.accept()


class OverlayWindow(QWidget):
    focus_lost = Signal()

    def __init__(self) -> None:
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.Tool)
        self.setWindowTitle("PressTalk")
        self.setFixedWidth(600)
        self.setStyleSheet("background: rgba(20,20,20,230);")

        self.hold_button = HoldButton("Press & Hold to Record")
        self.clear_button = QPushButton("Clear")
        self.copy_button = QPushButton("Copy")
        self.clear_history_button = QPushButton("Clear history")

        self._transcript = QLabel("")
        self._transcript.setWordWrap(True)
        self._transcript.setTextFormat(Qt.RichText)
        self._transcript.setStyleSheet(LABEL_STYLE)
        self._confidence = QLabel("")
        self._confidence.setStyleSheet("color: #AAAAAA; padding: 0 16px;")
        self._notice = QLabel("")
        self._notice.setStyleSheet(NOTICE_STYLE)
        self._history = QListWidget()
        self._history.setStyleSheet("color: white;")

        buttons = QHBoxLayout()
        buttons.addWidget(self.clear_button)
        buttons.addWidget(self.copy_button)
        buttons.addWidget(self.clear_history_button)

        layout = QVBoxLayout()
        layout.addWidget(self.hold_button)
        layout.addWidget(self._notice)
        layout.addWidget(self._transcript)
        layout.addWidget(self._confidence)
        layout.addLayout(buttons)
        layout.addWidget(QLabel("Recent Transcriptions"))
        layout.addWidget(self._history)
        self.setLayout(layout)

    def set_recording(self, recording: bool) -> None:
        self.hold_button.setText("Recording..." if recording else "Press & Hold to Record")

    def set_transcript(self, final_text: str, live_text: str, confidence: float) -> None:
        parts = [html.escape(final_text)]
        if live_text:
            parts.append(f"<span style='color:#888888'>{html.escape(live_text)}</span>")
        self._transcript.setText(" ".join(p for p in parts if p))
        self._confidence.setText(f"{round(confidence * 100)}%" if final_text else "")

    def set_notice(self, text: Optional[str]) -> None:
        self._notice.setStyleSheet(NOTICE_STYLE)
        self._notice.setText(text or "")

    def show_error(self, text: str) -> None:
        self._notice.setStyleSheet(ERROR_STYLE)
        self._notice.setText(f"⚠️ {text}")

    def set_history(self, entries: tuple[HistoryEntry, ...]) -> None:
        self._history.clear()
        for entry in entries:
            self._history.addItem(
                f"{entry.timestamp:%H:%M:%S}  {round(entry.confidence * 100)}%  {entry.transcript}"
            )

    def changeEvent(self, event) -> None:  # noqa: ANN001, N802
        if event.type() == QEvent.ActivationChange and not self.isActiveWindow():
            self.focus_lost.emit()
        super().changeEvent(event)
