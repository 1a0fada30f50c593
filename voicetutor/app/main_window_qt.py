from __future__ import annotations

from typing import Sequence

from voicetutor.contracts import SessionView
from voicetutor.ui.transcript_view import render_transcript_html

try:
    from PyQt6 import QtCore, QtWidgets

    _PYQT_IMPORT_ERROR: ModuleNotFoundError | None = None
except ModuleNotFoundError as e:  # pragma: no cover - import guard path
    QtCore = None  # type: ignore[assignment]
    QtWidgets = None  # type: ignore[assignment]
    _PYQT_IMPORT_ERROR = e


if QtWidgets is not None:
    class MainWindow(QtWidgets.QMainWindow):
        start_requested = QtCore.pyqtSignal(str, str)
        stop_requested = QtCore.pyqtSignal()
        debug_toggled = QtCore.pyqtSignal(bool)

        def __init__(
            self,
            languages: Sequence[str],
            levels: Sequence[str],
            *,
            language: str,
            level: str,
        ) -> None:
            super().__init__()
            self.setWindowTitle("Voice Tutor")
            self.resize(820, 640)
            self._running = False

            root = QtWidgets.QWidget(self)
            self.setCentralWidget(root)
            lay = QtWidgets.QVBoxLayout(root)
            lay.setContentsMargins(22, 20, 22, 20)
            lay.setSpacing(14)

            title = QtWidgets.QLabel("Voice Tutor", root)
            title.setObjectName("title")
            lay.addWidget(title)

            pick_row = QtWidgets.QHBoxLayout()
            pick_row.setSpacing(10)
            self.combo_language = QtWidgets.QComboBox(root)
            self.combo_language.addItems(list(languages))
            self.combo_language.setCurrentText(language)
            self.combo_level = QtWidgets.QComboBox(root)
            self.combo_level.addItems(list(levels))
            self.combo_level.setCurrentText(level)
            self.btn_run = QtWidgets.QPushButton("Start", root)
            self.btn_run.setObjectName("primary")
            self.btn_debug = QtWidgets.QPushButton("Show debug", root)
            self.btn_debug.setCheckable(True)
            pick_row.addWidget(self.combo_language)
            pick_row.addWidget(self.combo_level)
            pick_row.addWidget(self.btn_run)
            pick_row.addStretch(1)
            pick_row.addWidget(self.btn_debug)
            lay.addLayout(pick_row)

            self.status_label = QtWidgets.QLabel("", root)
            self.status_label.setObjectName("status")
            self.status_label.setWordWrap(True)
            lay.addWidget(self.status_label)

            self.transcript = QtWidgets.QTextBrowser(root)
            self.transcript.setObjectName("card")
            lay.addWidget(self.transcript, 3)

            self.debug_view = QtWidgets.QPlainTextEdit(root)
            self.debug_view.setReadOnly(True)
            self.debug_view.setObjectName("debug")
            self.debug_view.hide()
            lay.addWidget(self.debug_view, 2)

            self.btn_run.clicked.connect(self._on_run_clicked)
            self.btn_debug.toggled.connect(self._on_debug_toggled)

            self.setStyleSheet(
                """
                QMainWindow { background: #121416; color: #e8ecef; }
                QLabel#title { font-size: 30px; font-weight: 700; letter-spacing: 0.3px; }
                QLabel#status { color: #a7b0b8; font-size: 13px; }
                QLabel#status[attention="true"] { color: #ff8a7a; }
                QTextBrowser#card {
                    background: #1a1e22;
                    border: 1px solid #2a3138;
                    border-radius: 14px;
                    color: #e8ecef;
                    font-size: 14px;
                    padding: 8px;
                }
                QPlainTextEdit#debug {
                    background: #0d0f11;
                    border: 1px solid #2a3138;
                    color: #9fb0bd;
                    font-family: monospace;
                    font-size: 11px;
                }
                QPushButton, QComboBox {
                    background: #22272d;
                    border: 1px solid #313840;
                    border-radius: 10px;
                    color: #e7edf3;
                    padding: 8px 14px;
                    font-size: 13px;
                    font-weight: 600;
                }
                QPushButton:hover { background: #2a3037; }
                QPushButton#primary {
                    background: #c8f25f;
                    color: #172005;
                    border-color: #c8f25f;
                }
                QPushButton#primary:hover { background: #d3f67f; border-color: #d3f67f; }
                """
            )
            self.set_running(False)

        def _on_run_clicked(self) -> None:
            if self._running:
                self.stop_requested.emit()
            else:
                self.start_requested.emit(
                    self.combo_language.currentText(), self.combo_level.currentText()
                )

        def _on_debug_toggled(self, shown: bool) -> None:
            self.debug_view.setVisible(shown)
            self.btn_debug.setText("Hide debug" if shown else "Show debug")
            self.debug_toggled.emit(shown)

        @property
        def debug_visible(self) -> bool:
            return self.btn_debug.isChecked()

        def set_debug_visible(self, shown: bool) -> None:
            self.btn_debug.setChecked(bool(shown))

        def set_running(self, running: bool) -> None:
            self._running = running
            self.btn_run.setText("Stop" if running else "Start")
            # Language and level are fixed for the lifetime of a session.
            self.combo_language.setEnabled(not running)
            self.combo_level.setEnabled(not running)

        def set_status_text(self, text: str, attention: bool = False) -> None:
            self.status_label.setText(text)
            self.status_label.setProperty("attention", "true" if attention else "false")
            self.status_label.style().unpolish(self.status_label)
            self.status_label.style().polish(self.status_label)

        def apply_view(self, view: SessionView) -> None:
            self.set_running(view.state in ("starting", "active"))
            self.set_status_text(view.status, view.needs_attention)
            bar = self.transcript.verticalScrollBar()
            at_bottom = bar.value() >= bar.maximum() - 4
            self.transcript.setHtml(
                render_transcript_html(
                    view.entries, view.live_input, view.live_output, view.target_language
                )
            )
            if at_bottom:
                bar.setValue(bar.maximum())

        def set_debug_text(self, text: str) -> None:
            if self.debug_view.toPlainText() == text:
                return
            self.debug_view.setPlainText(text)
            bar = self.debug_view.verticalScrollBar()
            bar.setValue(bar.maximum())
else:
    class MainWindow:
        def __init__(self, *args, **kwargs) -> None:
            raise ModuleNotFoundError(
                "PyQt6 is required for MainWindow. Install with: python -m pip install PyQt6"
            ) from _PYQT_IMPORT_ERROR
