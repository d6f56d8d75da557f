"""Main window: key entry page, encode/decode panels and status widgets."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import QObject, Qt, QTimer, Signal
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import (
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QProgressBar,
    QPushButton,
    QStackedWidget,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from models import (
    HealthReport,
    HealthStatus,
    OperationKind,
    OperationState,
    Outcome,
    Success,
)
from scoring import format_bytes

STATUS_COLORS = {
    HealthStatus.CHECKING: "#f1c40f",
    HealthStatus.ONLINE: "#2ecc71",
    HealthStatus.OFFLINE: "#e74c3c",
}

ENCODE_FILTER = "Images (*.png *.bmp *.tga *.tif *.tiff *.gif);;All files (*)"
DECODE_FILTER = "Fortner archives (*.fortner);;All files (*)"


class OperationBridge(QObject):
    """Marshals workflow callbacks from worker threads onto the UI thread."""

    state_signal = Signal(str, str)
    progress_signal = Signal(str)
    outcome_signal = Signal(object)

    def on_state_change(self, from_state: OperationState, to_state: OperationState) -> None:
        self.state_signal.emit(from_state.value, to_state.value)

    def on_progress(self, message: str) -> None:
        self.progress_signal.emit(message)

    def on_outcome(self, outcome: Outcome) -> None:
        self.outcome_signal.emit(outcome)


class DropZone(QLabel):
    file_selected = Signal(object)

    def __init__(self, text: str, file_filter: str) -> None:
        super().__init__(text)
        self._file_filter = file_filter
        self.setAlignment(Qt.AlignCenter)
        self.setAcceptDrops(True)
        self.setMinimumHeight(160)
        self._set_hover(False)

    def _set_hover(self, hover: bool) -> None:
        border = "#3498db" if hover else "#888888"
        self.setStyleSheet(f"border: 2px dashed {border}; border-radius: 12px; font-size: 16px;")

    def mousePressEvent(self, event) -> None:  # noqa: ANN001, N802
        path, _ = QFileDialog.getOpenFileName(self, "Select file", "", self._file_filter)
        if path:
            self.file_selected.emit(Path(path))

    def dragEnterEvent(self, event) -> None:  # noqa: ANN001, N802
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            self._set_hover(True)

    def dragLeaveEvent(self, event) -> None:  # noqa: ANN001, N802
        self._set_hover(False)

    def dropEvent(self, event) -> None:  # noqa: ANN001, N802
        self._set_hover(False)
        urls = event.mimeData().urls()
        if urls and urls[0].isLocalFile():
            event.acceptProposedAction()
            self.file_selected.emit(Path(urls[0].toLocalFile()))


class OperationPanel(QWidget):
    """One encode or decode surface: drop zone, progress and result views."""

    def __init__(
        self,
        kind: OperationKind,
        on_file: Callable[[OperationKind, Path], None],
        on_reset: Callable[[OperationKind], None],
    ) -> None:
        super().__init__()
        self.kind = kind
        self.bridge = OperationBridge()
        self.bridge.progress_signal.connect(self._on_progress)
        self.bridge.state_signal.connect(self._on_state)
        self.bridge.outcome_signal.connect(self._on_outcome)
        self._on_reset = on_reset
        self._result: Optional[Success] = None

        if kind is OperationKind.ENCODE:
            self._drop = DropZone("Drop an image here or click to browse", ENCODE_FILTER)
        else:
            self._drop = DropZone("Drop a .fortner file here or click to browse", DECODE_FILTER)
        self._drop.file_selected.connect(lambda path: on_file(kind, path))

        self._status = QWidget()
        self._message = QLabel("")
        self._progress = QProgressBar()
        status_layout = QVBoxLayout(self._status)
        status_layout.addWidget(self._message)
        status_layout.addWidget(self._progress)

        self._result_view = QWidget()
        self._stars = QLabel("")
        self._stars.setStyleSheet("font-size: 28px;")
        self._ratio = QLabel("")
        self._sizes = QLabel("")
        self._preview = QLabel("")
        self._preview.setAlignment(Qt.AlignCenter)
        self._download = QPushButton("Download")
        self._download.clicked.connect(self._save_result)
        self._again = QPushButton("Again" if kind is OperationKind.DECODE else "Compress another")
        self._again.clicked.connect(self.reset)
        result_layout = QVBoxLayout(self._result_view)
        for widget in (self._stars, self._ratio, self._sizes, self._preview):
            result_layout.addWidget(widget)
        buttons = QHBoxLayout()
        buttons.addWidget(self._download)
        buttons.addWidget(self._again)
        result_layout.addLayout(buttons)

        layout = QVBoxLayout(self)
        layout.addWidget(self._drop)
        layout.addWidget(self._status)
        layout.addWidget(self._result_view)
        self._show_idle()

    def reset(self) -> None:
        self._result = None
        self._preview.clear()
        self._on_reset(self.kind)
        self._show_idle()

    def _show_idle(self) -> None:
        self._drop.show()
        self._status.hide()
        self._result_view.hide()

    def _on_state(self, from_state: str, to_state: str) -> None:
        if to_state == OperationState.TRANSFERRING.value:
            self._drop.hide()
            self._result_view.hide()
            self._status.show()
            self._progress.setRange(0, 0)  # indeterminate

    def _on_progress(self, message: str) -> None:
        self._message.setText(message)

    def _on_outcome(self, outcome: Outcome) -> None:
        self._progress.setRange(0, 100)
        if not isinstance(outcome, Success):
            self._show_idle()
            return
        self._result = outcome
        self._progress.setValue(100)
        self._status.hide()
        if outcome.score is not None:
            self._stars.setText(outcome.score.stars)
            self._stars.setToolTip(outcome.score.label)
            self._stars.setStyleSheet(f"font-size: 28px; color: {outcome.score.severity.value};")
            self._ratio.setText(f"{outcome.ratio_percent:.1f}% smaller — {outcome.score.label}")
            self._sizes.setText(
                f"{format_bytes(outcome.original_size)} → {format_bytes(outcome.compressed_size)}"
            )
        else:
            pixmap = QPixmap()
            pixmap.loadFromData(outcome.payload)
            if not pixmap.isNull():
                self._preview.setPixmap(
                    pixmap.scaled(480, 320, Qt.KeepAspectRatio, Qt.SmoothTransformation)
                )
            self._sizes.setText(f"{outcome.output_name} ({format_bytes(len(outcome.payload))})")
        self._result_view.show()

    def _save_result(self) -> None:
        if self._result is None:
            return
        path, _ = QFileDialog.getSaveFileName(self, "Save file", self._result.output_name)
        if path:
            Path(path).write_bytes(self._result.payload)


class KeyPage(QWidget):
    key_submitted = Signal(str)
    url_submitted = Signal(str)

    def __init__(self) -> None:
        super().__init__()
        self.key_input = QLineEdit()
        self.key_input.setEchoMode(QLineEdit.Password)
        self.key_input.setPlaceholderText("API key")
        self.key_input.returnPressed.connect(self._submit_key)
        self.connect_button = QPushButton("Connect")
        self.connect_button.clicked.connect(self._submit_key)
        self.error_label = QLabel("")
        self.error_label.setStyleSheet("color: #FF6B6B;")
        self.error_label.hide()

        self.server_box = QGroupBox("Server URL")
        self.server_box.setCheckable(True)
        self.server_box.setChecked(False)
        self.url_input = QLineEdit()
        self.url_input.setPlaceholderText("http://localhost:8080")
        self.url_input.returnPressed.connect(self._submit_url)
        save_url = QPushButton("Save")
        save_url.clicked.connect(self._submit_url)
        self.url_saved = QLabel("Saved")
        self.url_saved.hide()
        url_row = QHBoxLayout(self.server_box)
        url_row.addWidget(self.url_input)
        url_row.addWidget(save_url)
        url_row.addWidget(self.url_saved)

        layout = QVBoxLayout(self)
        layout.addStretch(1)
        layout.addWidget(QLabel("Enter your API key to connect"))
        layout.addWidget(self.key_input)
        layout.addWidget(self.connect_button)
        layout.addWidget(self.error_label)
        layout.addWidget(self.server_box)
        layout.addStretch(1)

    def prepare(self, current_url: str, show_server: bool = False) -> None:
        self.key_input.clear()
        self.url_input.setText(current_url)
        self.server_box.setChecked(show_server)
        self.key_input.setFocus()

    def set_busy(self, busy: bool) -> None:
        self.connect_button.setEnabled(not busy)
        self.connect_button.setText("Checking..." if busy else "Connect")

    def show_error(self, message: str) -> None:
        self.error_label.setText(message)
        self.error_label.show()

    def flash_saved(self) -> None:
        self.url_saved.show()
        QTimer.singleShot(2000, self.url_saved.hide)

    def _submit_key(self) -> None:
        self.error_label.hide()
        self.key_submitted.emit(self.key_input.text())

    def _submit_url(self) -> None:
        self.url_submitted.emit(self.url_input.text())


class MainWindow(QMainWindow):
    def __init__(
        self,
        on_file: Callable[[OperationKind, Path], None],
        on_reset: Callable[[OperationKind], None],
    ) -> None:
        super().__init__()
        self.setWindowTitle("Fortner")
        self.resize(640, 520)

        self.key_page = KeyPage()
        self.encode_panel = OperationPanel(OperationKind.ENCODE, on_file, on_reset)
        self.decode_panel = OperationPanel(OperationKind.DECODE, on_file, on_reset)

        tabs = QTabWidget()
        tabs.addTab(self.encode_panel, "Encode")
        tabs.addTab(self.decode_panel, "Decode")

        self.settings_button = QPushButton("Settings")
        self.change_key_button = QPushButton("Change key")
        self.status_dot = QLabel("●")
        header = QHBoxLayout()
        header.addWidget(self.status_dot)
        header.addStretch(1)
        header.addWidget(self.settings_button)
        header.addWidget(self.change_key_button)

        self.app_page = QWidget()
        app_layout = QVBoxLayout(self.app_page)
        app_layout.addLayout(header)
        app_layout.addWidget(tabs)

        self._stack = QStackedWidget()
        self._stack.addWidget(self.key_page)
        self._stack.addWidget(self.app_page)
        self.setCentralWidget(self._stack)
        self.set_health(HealthReport(HealthStatus.CHECKING, "Checking server..."))

    def panel(self, kind: OperationKind) -> OperationPanel:
        return self.encode_panel if kind is OperationKind.ENCODE else self.decode_panel

    def show_key_page(self, current_url: str, show_server: bool = False) -> None:
        self.key_page.prepare(current_url, show_server)
        self._stack.setCurrentWidget(self.key_page)

    def show_app_page(self) -> None:
        self._stack.setCurrentWidget(self.app_page)

    def set_footer(self, message: str) -> None:
        self.statusBar().showMessage(message)

    def set_health(self, report: HealthReport) -> None:
        self.status_dot.setStyleSheet(f"color: {STATUS_COLORS[report.status]}; font-size: 18px;")
        self.status_dot.setToolTip(report.detail)
