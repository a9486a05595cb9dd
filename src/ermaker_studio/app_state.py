"""
Application state - Process-wide owner of the workspace components

AppState wires the tree, path resolver, project manager, editor sessions and
connection registry together, plus the collaborator services when a command
backend is available. It is created once at startup with ``AppState.load()``
(snapshot from durable storage, or defaults) and written back with ``save()``.
"""
from typing import Optional
import logging

from PySide6.QtCore import QObject, Signal

from .config import AppConfig
from .core.connection_registry import ConnectionRegistry
from .core.database_explorer import DatabaseExplorer
from .core.diagram_service import DiagramService
from .core.editor_sessions import EditorSessionManager
from .core.local_server import LocalServerMonitor
from .core.path_resolver import PathResolver
from .core.persistence import PersistenceLayer, StateSnapshot
from .core.project_manager import ProjectManager
from .core.query_runner import QueryRunner
from .database.connection_pool import ConnectionPool
from .database.repositories import StorageRepository
from .database.schema_manager import SchemaManager
from .logging_setup import configure_logging
from .services.commands import CachedIntrospection, CommandBackend
from .services.filesystem import FileSystemGateway, LocalFileSystemGateway

logger = logging.getLogger(__name__)


class AppState(QObject):
    """
    Signals:
        saved: the snapshot was written
        active_connection_changed(object): connection id or None
    """

    saved = Signal()
    active_connection_changed = Signal(object)

    def __init__(self, snapshot: Optional[StateSnapshot] = None,
                 gateway: Optional[FileSystemGateway] = None,
                 backend: Optional[CommandBackend] = None,
                 persistence: Optional[PersistenceLayer] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        snapshot = snapshot or StateSnapshot()
        self.gateway = gateway or LocalFileSystemGateway()
        self.backend = backend
        self.persistence = persistence
        self._pool: Optional[ConnectionPool] = None
        self._active_connection_id: Optional[str] = None

        self.tree = snapshot.tree
        self.registry = ConnectionRegistry(snapshot.connections, parent=self)
        self.resolver = PathResolver(self.tree, snapshot.project_path)
        self.projects = ProjectManager(self.tree, self.resolver, self.gateway,
                                       project_name=snapshot.project_name, parent=self)
        self.sessions = EditorSessionManager(self.tree, self.registry, self.resolver,
                                             self.gateway, parent=self)

        self.projects.nodes_relocated.connect(self.sessions.on_nodes_relocated)
        self.projects.nodes_deleted.connect(self.sessions.on_nodes_deleted)
        self.registry.connection_deleted.connect(self._on_connection_deleted)

        self.introspection: Optional[CachedIntrospection] = None
        self.explorer: Optional[DatabaseExplorer] = None
        self.diagrams: Optional[DiagramService] = None
        self.queries: Optional[QueryRunner] = None
        self.local_server: Optional[LocalServerMonitor] = None
        if backend is not None:
            self.introspection = CachedIntrospection(backend)
            self.explorer = DatabaseExplorer(self.registry, self.introspection, backend,
                                             self.sessions, parent=self)
            self.diagrams = DiagramService(self.sessions, self.registry, backend, parent=self)
            self.queries = QueryRunner(self.sessions, self.explorer, backend, parent=self)
            self.local_server = LocalServerMonitor(backend, self.registry, self.explorer,
                                                   parent=self)
            self.explorer.active_connection_changed.connect(self.active_connection_changed)

    # ------------------------------------------------------------------
    # Loading / saving
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, config: Optional[AppConfig] = None,
             gateway: Optional[FileSystemGateway] = None,
             backend: Optional[CommandBackend] = None) -> "AppState":
        """Open durable storage and restore the last snapshot, or start empty."""
        config = config or AppConfig.from_env()
        SchemaManager(config.storage_path).initialize()
        pool = ConnectionPool(config.storage_path)
        persistence = PersistenceLayer(StorageRepository(pool))
        snapshot = persistence.load() or StateSnapshot()
        state = cls(snapshot,
                    gateway=gateway or LocalFileSystemGateway(home=config.home),
                    backend=backend,
                    persistence=persistence)
        state._pool = pool
        return state

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            connections=self.registry.all(),
            tree=self.tree,
            project_path=self.projects.project_path,
            project_name=self.projects.project_name,
        )

    def save(self) -> bool:
        """Write the snapshot. Returns False when no storage is attached."""
        if self.persistence is None:
            logger.debug("No persistence attached, snapshot not saved")
            return False
        self.persistence.save(self.snapshot())
        self.saved.emit()
        return True

    def enable_autosave(self):
        """Save after every change of the persisted subset."""
        self.registry.connection_added.connect(self._autosave)
        self.registry.connection_updated.connect(self._autosave)
        self.registry.connection_deleted.connect(self._autosave)
        self.projects.tree_changed.connect(self._autosave)
        self.projects.project_changed.connect(self._autosave)

    def _autosave(self, *_args):
        self.save()

    def shutdown(self):
        """Stop background work, save and release storage."""
        for service in (self.explorer, self.diagrams, self.queries, self.local_server):
            if service is not None:
                service.stop_all()
        if self.local_server is not None:
            self.local_server.stop_monitoring()
        self.save()
        if self._pool is not None:
            self._pool.close_all()
            self._pool = None
            self.persistence = None

    # ------------------------------------------------------------------
    # Active connection
    # ------------------------------------------------------------------

    @property
    def active_connection_id(self) -> Optional[str]:
        if self.explorer is not None:
            return self.explorer.active_connection_id
        return self._active_connection_id

    def set_active_connection(self, connection_id: Optional[str]):
        if self.explorer is not None:
            self.explorer.set_active_connection(connection_id)
            return
        if connection_id is not None:
            self.registry.require(connection_id)
        if connection_id != self._active_connection_id:
            self._active_connection_id = connection_id
            self.active_connection_changed.emit(connection_id)

    def _on_connection_deleted(self, connection_id: str):
        if self.explorer is None and connection_id == self._active_connection_id:
            self.set_active_connection(None)


# Global application state instance
_app_state: Optional[AppState] = None


def get_app_state() -> AppState:
    """Get the global application state, loading it (and logging) on first use."""
    global _app_state
    if _app_state is None:
        config = AppConfig.from_env()
        configure_logging(config.log_level, log_dir=config.log_dir)
        _app_state = AppState.load(config)
    return _app_state


def set_app_state(state: AppState):
    global _app_state
    _app_state = state


def reset_app_state():
    """Drop the global instance (tests)."""
    global _app_state
    _app_state = None
