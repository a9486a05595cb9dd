"""
Error taxonomy for ERMaker Studio.

All errors raised by the workspace core derive from ERMakerError so callers
can catch the whole family at the UI boundary.
"""
from typing import Optional


class ERMakerError(Exception):
    """Base class for all ERMaker Studio errors."""


class ValidationError(ERMakerError):
    """A required field is missing or structurally invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class WorkspaceIOError(ERMakerError):
    """A filesystem gateway call failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class RemoteError(ERMakerError):
    """A collaborator command (query, introspection, diagram, server) failed."""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.command = command


class ParseError(ERMakerError):
    """A persisted snapshot is corrupt."""


class TreeStructureError(ERMakerError):
    """Base class for workspace tree structural failures."""


class NotFoundError(TreeStructureError):
    """No node with the given id."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class InvalidParentError(TreeStructureError):
    """The target parent does not resolve to a folder node."""

    def __init__(self, parent_id: str):
        super().__init__(f"Parent is not a folder: {parent_id}")
        self.parent_id = parent_id


class CycleError(TreeStructureError):
    """A move would make a node its own ancestor."""

    def __init__(self, node_id: str, target_id: str):
        super().__init__(f"Cannot move {node_id} into its own subtree ({target_id})")
        self.node_id = node_id
        self.target_id = target_id


class TabNotFoundError(ERMakerError):
    """No open editor tab with the given id."""

    def __init__(self, tab_id: str):
        super().__init__(f"Tab not found: {tab_id}")
        self.tab_id = tab_id
