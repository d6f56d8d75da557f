"""Application entrypoint."""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path

from loguru import logger

from config import JsonConfigStore
from health import HealthMonitor
from log_setup import configure_logging
from models import HealthReport, KeyValidation, OperationKind, OperationRequest, SessionState
from service_client import ServiceClient
from session_controller import SessionController

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import QApplication

    from window import MainWindow
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")


class UIBridge(QObject):
    notice_signal = Signal(str)
    session_signal = Signal(str, str)  # from_state, to_state
    health_signal = Signal(object)
    key_result_signal = Signal(object)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        bootstrap = os.getenv("FORTNER_BOOTSTRAP")
        self.store = JsonConfigStore(
            bootstrap_path=Path(bootstrap) if bootstrap else Path.cwd() / "config.json"
        )
        self.client = ServiceClient(self.store)

        self.ui = UIBridge()
        self.ui.notice_signal.connect(self._on_notice_ui)
        self.ui.session_signal.connect(self._on_session_change_ui)
        self.ui.health_signal.connect(self._on_health_ui)
        self.ui.key_result_signal.connect(self._on_key_result_ui)

        self.controller = SessionController(
            client=self.client,
            on_session_change=self._on_session_change,
            on_notice=self.ui.notice_signal.emit,
        )
        self.monitor = HealthMonitor(self.client, on_status=self.ui.health_signal.emit)

        self.window = MainWindow(on_file=self._on_file, on_reset=self.controller.reset)
        self.window.key_page.key_submitted.connect(self._on_key_submitted)
        self.window.key_page.url_submitted.connect(self._on_url_submitted)
        self.window.settings_button.clicked.connect(self._open_settings)
        self.window.change_key_button.clicked.connect(self._change_key)

        if self.controller.state == SessionState.READY:
            self.window.show_app_page()
            self.window.set_footer("Ready")
        else:
            self.window.show_key_page(self.store.custom_endpoint())

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def _on_file(self, kind: OperationKind, path: Path) -> None:
        try:
            request = OperationRequest.from_path(kind, path)
        except OSError as exc:
            self.window.set_footer(f"Could not read {path.name}: {exc}")
            return
        observer = self.window.panel(kind).bridge
        # Network I/O runs off the Qt main thread; callbacks come back via signals.
        threading.Thread(
            target=self.controller.submit,
            args=(request, observer),
            name=f"{kind.value}-worker",
            daemon=True,
        ).start()

    def _on_key_submitted(self, candidate: str) -> None:
        self.window.key_page.set_busy(True)

        def validate() -> None:
            self.ui.key_result_signal.emit(self.controller.submit_key(candidate))

        threading.Thread(target=validate, name="key-check", daemon=True).start()

    def _on_url_submitted(self, url: str) -> None:
        self.controller.set_endpoint(url)
        self.window.key_page.flash_saved()
        threading.Thread(target=self.monitor.check_now, name="health-check", daemon=True).start()

    def _open_settings(self) -> None:
        self.window.show_key_page(self.store.custom_endpoint(), show_server=True)

    def _change_key(self) -> None:
        self.controller.change_key()

    # ------------------------------------------------------------------
    # Callbacks (may run on worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_session_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.session_signal.emit(from_state.value, to_state.value)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_notice_ui(self, message: str) -> None:
        self.window.set_footer(message)

    def _on_session_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == SessionState.KEY_ENTRY.value:
            self.window.show_key_page(self.store.custom_endpoint())
        else:
            self.window.show_app_page()

    def _on_health_ui(self, report: HealthReport) -> None:
        self.window.set_health(report)

    def _on_key_result_ui(self, result: KeyValidation) -> None:
        self.window.key_page.set_busy(False)
        if result.accepted:
            self.window.show_app_page()
        else:
            self.window.key_page.show_error(result.message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.monitor.start()
        self.window.show()
        self.app.aboutToQuit.connect(self.quit)
        return self.app.exec()

    def quit(self) -> None:
        self.monitor.stop()
        self.client.close()


def main() -> int:
    configure_logging()
    logger.info("Starting Fortner client")
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
