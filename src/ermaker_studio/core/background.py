"""
Background task mixin - Tracks running QThread workers of a service.
"""
from typing import Set
import logging

from PySide6.QtCore import QThread

from ..constants import WORKER_STOP_TIMEOUT_MS

logger = logging.getLogger(__name__)


class BackgroundTaskMixin:
    """
    Mixin for QObject services that run workers.

    Keeps a reference to every running worker until it finishes (a QThread
    collected while running aborts the process).
    """

    def _init_workers(self):
        self._workers: Set[QThread] = set()

    def _launch(self, worker: QThread):
        """Start a worker and keep it alive until its thread finishes."""
        self._workers.add(worker)
        worker.finished.connect(lambda w=worker: self._on_worker_finished(w))
        worker.start()

    def _on_worker_finished(self, worker: QThread):
        self._workers.discard(worker)
        worker.deleteLater()

    def stop_all(self):
        """
        Wait briefly for running workers and forget the stopped ones.

        A worker still running after the timeout stays tracked until its
        ``finished`` signal.
        """
        for worker in list(self._workers):
            worker.quit()
            if worker.wait(WORKER_STOP_TIMEOUT_MS):
                self._workers.discard(worker)
            else:
                logger.warning(f"Worker {type(worker).__name__} still running at shutdown")
