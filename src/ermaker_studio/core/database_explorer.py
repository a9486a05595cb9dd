"""
Database Explorer - Active connection, its databases and the expanded nodes

The database list of the active connection is loaded on a worker thread.
A listing that arrives after the user switched to another connection (or
deleted the connection) is dropped.
"""
from typing import List, Optional, Set
import logging

from PySide6.QtCore import QObject, Signal

from ..database.models import ConnectionProfile, DatabaseInfo
from ..services.commands import CachedIntrospection, CommandBackend
from ..workers.command_workers import ConnectionTestWorker, DatabaseListWorker
from .background import BackgroundTaskMixin
from .connection_registry import ConnectionRegistry
from .editor_sessions import EditorSessionManager
from .request_tracker import RequestToken, RequestTracker

logger = logging.getLogger(__name__)


class DatabaseExplorer(BackgroundTaskMixin, QObject):
    """
    Signals:
        active_connection_changed(object): new active connection id or None
        databases_loaded(str): connection id whose listing was stored
        load_failed(str, str): connection id, error message
        connection_tested(str, bool, str): connection id, success, message
    """

    active_connection_changed = Signal(object)
    databases_loaded = Signal(str)
    load_failed = Signal(str, str)
    connection_tested = Signal(str, bool, str)

    def __init__(self, registry: ConnectionRegistry, introspection: CachedIntrospection,
                 backend: CommandBackend, sessions: EditorSessionManager,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self._init_workers()
        self.registry = registry
        self.introspection = introspection
        self.backend = backend
        self.sessions = sessions
        self.requests = RequestTracker()
        self._active_connection_id: Optional[str] = None
        self._databases: List[DatabaseInfo] = []
        self._error: Optional[str] = None
        self._expanded: Set[str] = set()

        registry.connection_deleted.connect(self._on_connection_deleted)
        registry.connection_updated.connect(self._on_connection_updated)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active_connection_id(self) -> Optional[str]:
        return self._active_connection_id

    @property
    def active_connection(self) -> Optional[ConnectionProfile]:
        if self._active_connection_id is None:
            return None
        return self.registry.get(self._active_connection_id)

    @property
    def databases(self) -> List[DatabaseInfo]:
        return list(self._databases)

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return (self._active_connection_id is not None
                and self.requests.is_pending(self._active_connection_id))

    @property
    def expanded_nodes(self) -> Set[str]:
        return set(self._expanded)

    def set_active_connection(self, connection_id: Optional[str]):
        """Switch the active connection and load its databases."""
        if connection_id is not None:
            self.registry.require(connection_id)
        if connection_id == self._active_connection_id:
            return
        if self._active_connection_id is not None:
            self.requests.forget(self._active_connection_id)
        self._active_connection_id = connection_id
        self._databases = []
        self._error = None
        self._expanded.clear()
        self.active_connection_changed.emit(connection_id)
        if connection_id is not None:
            self.refresh()

    def toggle_node(self, node_id: str) -> bool:
        """Expand or collapse a tree node. Returns the new expanded state."""
        if node_id in self._expanded:
            self._expanded.discard(node_id)
            return False
        self._expanded.add(node_id)
        return True

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self._expanded

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def refresh(self, force: bool = False) -> Optional[RequestToken]:
        """Load the database list of the active connection."""
        profile = self.active_connection
        if profile is None:
            return None
        token = self.requests.begin(profile.id)
        self._error = None
        worker = DatabaseListWorker(self.introspection, profile, token, refresh=force)
        worker.succeeded.connect(self._on_databases)
        worker.failed.connect(self._on_load_failed)
        self._launch(worker)
        return token

    def _on_databases(self, token: RequestToken, databases: List[DatabaseInfo]):
        if token.target_id != self._active_connection_id or not self.requests.finish(token):
            logger.warning(f"Discarded database list of inactive connection {token.target_id}")
            return
        self._databases = list(databases)
        logger.info(f"Loaded {len(self._databases)} database(s)")
        self.databases_loaded.emit(token.target_id)

    def _on_load_failed(self, token: RequestToken, message: str):
        if token.target_id != self._active_connection_id or not self.requests.finish(token):
            return
        self._error = message
        self.load_failed.emit(token.target_id, message)

    def test_connection(self, profile: ConnectionProfile):
        """Check a (possibly unsaved) profile; reports through connection_tested."""
        worker = ConnectionTestWorker(self.backend, profile)
        worker.succeeded.connect(
            lambda _token, message, pid=profile.id: self.connection_tested.emit(pid, True, str(message)))
        worker.failed.connect(
            lambda _token, message, pid=profile.id: self.connection_tested.emit(pid, False, message))
        self._launch(worker)

    def open_diagram(self, database_name: Optional[str] = None) -> Optional[str]:
        """Open the ER diagram tab of the active connection (context menu action)."""
        if self._active_connection_id is None:
            return None
        return self.sessions.open_diagram(self._active_connection_id, database_name)

    # ------------------------------------------------------------------
    # Registry notifications
    # ------------------------------------------------------------------

    def _on_connection_deleted(self, connection_id: str):
        self.introspection.invalidate(connection_id)
        if connection_id == self._active_connection_id:
            logger.info("Active connection deleted")
            self.set_active_connection(None)

    def _on_connection_updated(self, connection_id: str):
        self.introspection.invalidate(connection_id)
        if connection_id == self._active_connection_id:
            self.refresh()
