"""
Core module - Workspace state and the services built on it.

Architecture:
    WorkspaceTree  <-  PathResolver  <-  ProjectManager  ->  FileSystemGateway
          ^                                    |
          |                         nodes_relocated / nodes_deleted
          |                                    v
    EditorSessionManager  ->  ConnectionRegistry
          ^
    DiagramService / QueryRunner / DatabaseExplorer / LocalServerMonitor
          (QThread workers, results checked through RequestTracker)
"""

from .workspace_tree import WorkspaceTree
from .path_resolver import PathResolver
from .request_tracker import RequestToken, RequestTracker
from .connection_registry import ConnectionRegistry
from .editor_sessions import EditorSessionManager
from .project_manager import ProjectManager
from .persistence import PersistenceLayer, StateSnapshot
from .diagram_service import DiagramService
from .database_explorer import DatabaseExplorer
from .query_runner import QueryRunner
from .local_server import LocalServerMonitor

__all__ = [
    "WorkspaceTree",
    "PathResolver",
    "RequestToken",
    "RequestTracker",
    "ConnectionRegistry",
    "EditorSessionManager",
    "ProjectManager",
    "PersistenceLayer",
    "StateSnapshot",
    "DiagramService",
    "DatabaseExplorer",
    "QueryRunner",
    "LocalServerMonitor",
]
