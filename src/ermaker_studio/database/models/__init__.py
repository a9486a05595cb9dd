"""
Models - Dataclasses for workspace, editor and connection entities

All models are re-exported here for convenience:
    from ermaker_studio.database.models import WorkspaceNode, FileTab, ...
"""

from .workspace_node import WorkspaceNode, NODE_FILE, NODE_FOLDER, NODE_KINDS
from .connection_profile import ConnectionProfile
from .editor_tab import (
    DiagramSettings,
    DiagramTab,
    EditorTab,
    FileTab,
    SOURCE_DIAGRAM,
    SOURCE_PLAIN_FILE,
)
from .results import DatabaseInfo, DiagramRequest, DiagramResult, FileEntry, QueryResult

__all__ = [
    "WorkspaceNode",
    "NODE_FILE",
    "NODE_FOLDER",
    "NODE_KINDS",
    "ConnectionProfile",
    "DiagramSettings",
    "DiagramTab",
    "EditorTab",
    "FileTab",
    "SOURCE_DIAGRAM",
    "SOURCE_PLAIN_FILE",
    "DatabaseInfo",
    "DiagramRequest",
    "DiagramResult",
    "FileEntry",
    "QueryResult",
]
