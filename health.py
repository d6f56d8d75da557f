"""Periodic liveness probe for the compression service.

The monitor only feeds a passive status indicator. It never gates an
operation: work submitted while the service reports offline simply fails
through the normal network or server error paths.
"""

from __future__ import annotations

import json
import threading
from typing import Callable, Optional

import httpx
from loguru import logger

from models import HealthReport, HealthStatus
from service_client import ServiceClient

StatusCallback = Callable[[HealthReport], None]


class HealthMonitor:
    def __init__(
        self,
        client: ServiceClient,
        interval_s: float = 30.0,
        timeout_s: float = 5.0,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self._client = client
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._on_status = on_status
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._status = HealthStatus.CHECKING

    @property
    def status(self) -> HealthStatus:
        return self._status

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, name="health-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)

    def check_now(self) -> HealthReport:
        """Run one probe synchronously and publish its result."""
        self._publish(HealthReport(HealthStatus.CHECKING, "Checking server..."))
        report = self._probe()
        self._publish(report)
        return report

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        while not self._stop_event.is_set():
            self.check_now()
            if self._stop_event.wait(self._interval_s):
                break

    def _probe(self) -> HealthReport:
        try:
            response = self._client.health(timeout=self._timeout_s)
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.debug(f"Health probe failed: {exc}")
            return HealthReport(HealthStatus.OFFLINE, "Server offline")

        if isinstance(data, dict) and data.get("status") == "healthy":
            return HealthReport(HealthStatus.ONLINE, "Server online")
        return HealthReport(HealthStatus.OFFLINE, f"Server degraded: {json.dumps(data)}")

    def _publish(self, report: HealthReport) -> None:
        if report.status != self._status:
            logger.debug(f"Health: {self._status.value} -> {report.status.value}")
        self._status = report.status
        if self._on_status:
            self._on_status(report)
