"""
Local Server Monitor - Status polling and lifecycle of the bundled MariaDB

The status is polled every STATUS_POLL_INTERVAL_MS. While an install / start /
stop operation is running, the server log is tailed every LOG_POLL_INTERVAL_MS.
After a successful start the local connection profile is created if missing
and made the active connection.
"""
from typing import Optional
import logging

from PySide6.QtCore import QObject, QTimer, Signal

from ..constants import (
    LOCAL_SERVER_PORT,
    LOG_POLL_INTERVAL_MS,
    SERVER_LOG_NAME,
    SERVER_STATUSES,
    STATUS_POLL_INTERVAL_MS,
)
from ..services.commands import CommandBackend
from ..workers.command_workers import (
    ServerCommandWorker,
    ServerLogWorker,
    ServerProbeWorker,
    ServerStatusWorker,
)
from .background import BackgroundTaskMixin
from .connection_registry import ConnectionRegistry
from .database_explorer import DatabaseExplorer

logger = logging.getLogger(__name__)


class LocalServerMonitor(BackgroundTaskMixin, QObject):
    """
    Signals:
        status_changed(str): unknown / stopped / running / error
        availability_changed(bool, bool): platform supported, bundle present
        operation_started(str): install / start / stop
        operation_finished(str, str): operation, backend message
        operation_failed(str, str): operation, error message
        log_updated(str): full log text
        local_connection_ready(str): id of the local connection profile
    """

    status_changed = Signal(str)
    availability_changed = Signal(bool, bool)
    operation_started = Signal(str)
    operation_finished = Signal(str, str)
    operation_failed = Signal(str, str)
    log_updated = Signal(str)
    local_connection_ready = Signal(str)

    def __init__(self, backend: CommandBackend, registry: ConnectionRegistry,
                 explorer: Optional[DatabaseExplorer] = None,
                 port: int = LOCAL_SERVER_PORT, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._init_workers()
        self.backend = backend
        self.registry = registry
        self.explorer = explorer
        self.port = port

        self._status = "unknown"
        self._platform_supported: Optional[bool] = None
        self._bundle_present: Optional[bool] = None
        self._operation: Optional[str] = None
        self._log_text = ""
        self._status_polling = False
        self._log_polling = False

        self._status_timer = QTimer(self)
        self._status_timer.setInterval(STATUS_POLL_INTERVAL_MS)
        self._status_timer.timeout.connect(self.refresh_status)

        self._log_timer = QTimer(self)
        self._log_timer.setInterval(LOG_POLL_INTERVAL_MS)
        self._log_timer.timeout.connect(self.refresh_log)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == "running"

    @property
    def busy(self) -> bool:
        return self._operation is not None

    @property
    def operation(self) -> Optional[str]:
        return self._operation

    @property
    def platform_supported(self) -> Optional[bool]:
        return self._platform_supported

    @property
    def bundle_present(self) -> Optional[bool]:
        return self._bundle_present

    @property
    def log_text(self) -> str:
        return self._log_text

    @property
    def is_monitoring(self) -> bool:
        return self._status_timer.isActive()

    @property
    def is_tailing_log(self) -> bool:
        return self._log_timer.isActive()

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def start_monitoring(self):
        """Probe availability, then poll the status periodically."""
        self._status_timer.start()
        worker = ServerProbeWorker(self.backend)
        worker.succeeded.connect(self._on_probed)
        worker.failed.connect(lambda _token, _message: self._on_probed(None, (False, False)))
        self._launch(worker)

    def stop_monitoring(self):
        self._status_timer.stop()
        self._log_timer.stop()

    def _on_probed(self, _token, availability):
        supported, bundle_present = availability
        self._platform_supported = supported
        self._bundle_present = bundle_present
        self.availability_changed.emit(supported, bundle_present)
        if supported:
            self.refresh_status()
        else:
            logger.info("Local server not supported on this platform")
            self._status_timer.stop()

    def refresh_status(self):
        if self._status_polling:
            return
        self._status_polling = True
        worker = ServerStatusWorker(self.backend)
        worker.succeeded.connect(lambda _token, status: self._set_status(status))
        worker.failed.connect(lambda _token, _message: self._set_status("error"))
        self._launch(worker)

    def _set_status(self, status: str):
        self._status_polling = False
        if status not in SERVER_STATUSES:
            logger.warning(f"Unexpected server status: {status}")
            status = "unknown"
        if status != self._status:
            logger.info(f"Local server status: {self._status} -> {status}")
            self._status = status
            self.status_changed.emit(status)

    def refresh_log(self):
        if self._log_polling:
            return
        self._log_polling = True
        worker = ServerLogWorker(self.backend, SERVER_LOG_NAME)
        worker.succeeded.connect(lambda _token, text: self._set_log(text))
        worker.failed.connect(lambda _token, _message: self._set_log(None))
        self._launch(worker)

    def _set_log(self, text: Optional[str]):
        self._log_polling = False
        if text is None or text == self._log_text:
            return
        self._log_text = text
        self.log_updated.emit(text)

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def install(self) -> bool:
        return self._run("install")

    def start(self) -> bool:
        return self._run("start")

    def stop(self) -> bool:
        return self._run("stop")

    def toggle(self) -> bool:
        """Stop a running server, otherwise (install and) start it."""
        return self.stop() if self.is_running else self.start()

    def _run(self, operation: str) -> bool:
        """Launch an operation. Returns False if another one is in flight."""
        if self._operation is not None:
            logger.warning(f"Server {self._operation} in progress, {operation} ignored")
            return False
        self._operation = operation
        self.operation_started.emit(operation)
        self._log_timer.start()
        worker = ServerCommandWorker(self.backend, operation, port=self.port)
        worker.succeeded.connect(lambda _token, message: self._on_operation_done(operation, message))
        worker.failed.connect(lambda _token, message: self._on_operation_failed(operation, message))
        self._launch(worker)
        return True

    def _end_operation(self):
        self._operation = None
        self._log_timer.stop()
        self.refresh_log()
        self.refresh_status()

    def _on_operation_done(self, operation: str, message):
        logger.info(f"Local server {operation} finished")
        if operation in ("install", "start"):
            self._bundle_present = True
        if operation == "start":
            profile = self.registry.ensure_local_server_connection()
            if self.explorer is not None:
                self.explorer.set_active_connection(profile.id)
            self.local_connection_ready.emit(profile.id)
        self._end_operation()
        self.operation_finished.emit(operation, str(message or ""))

    def _on_operation_failed(self, operation: str, message: str):
        logger.error(f"Local server {operation} failed: {message}")
        self._end_operation()
        self.operation_failed.emit(operation, message)
