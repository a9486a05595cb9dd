"""
Project Manager - Keeps the workspace tree and the project folder in step

Each user action is applied to disk first through the FileSystemGateway and
only committed to the in-memory tree once the disk operation succeeded. A
failing gateway call raises WorkspaceIOError and leaves the tree untouched.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from PySide6.QtCore import QObject, Signal

from ..constants import DEFAULT_PROJECT_NAME, NEW_FILE_TEMPLATE, SQL_EXTENSION
from ..database.models import NODE_FILE, NODE_FOLDER, WorkspaceNode
from ..errors import ValidationError
from ..services.filesystem import FileSystemGateway
from .path_resolver import PathResolver
from .workspace_tree import WorkspaceTree

logger = logging.getLogger(__name__)


@dataclass
class _DiskEntry:
    """Intermediate listing used while importing a directory."""
    name: str
    kind: str
    content: Optional[str] = None
    children: List["_DiskEntry"] = field(default_factory=list)


def project_name_from_path(path: str) -> str:
    """Last path segment, or the default project name."""
    segments = [s for s in path.replace("\\", "/").split("/") if s]
    return segments[-1] if segments else DEFAULT_PROJECT_NAME


class ProjectManager(QObject):
    """
    Workspace operations that touch both the tree and the disk.

    Signals:
        tree_changed: any structural or content change
        nodes_relocated(list): ids whose path changed (rename / move)
        nodes_deleted(list): ids removed from the tree
        project_changed(str): new project path
    """

    tree_changed = Signal()
    nodes_relocated = Signal(list)
    nodes_deleted = Signal(list)
    project_changed = Signal(str)

    def __init__(self, tree: WorkspaceTree, resolver: PathResolver,
                 gateway: FileSystemGateway, project_name: str = DEFAULT_PROJECT_NAME,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.tree = tree
        self.resolver = resolver
        self.gateway = gateway
        self.project_name = project_name

    # ------------------------------------------------------------------
    # Project folder
    # ------------------------------------------------------------------

    @property
    def project_path(self) -> Optional[str]:
        return self.resolver.project_root

    def set_project_path(self, path: str, name: Optional[str] = None):
        self.resolver.project_root = path
        self.project_name = name or project_name_from_path(path)
        self.project_changed.emit(path)

    def initialize_project(self) -> str:
        """
        Make sure a project folder exists.

        On first run the next free ``ProjectN`` folder under the default
        root is allocated and its name becomes the project name.
        """
        if self.project_path:
            return self.project_path

        base_path = self.gateway.get_default_project_root()
        path = self.gateway.allocate_next_project_folder(base_path)
        self.set_project_path(path)
        logger.info(f"Project initialized at {path}")
        return path

    def context_parent(self, node_id: Optional[str]) -> Optional[str]:
        """
        Folder in which "New file / New folder" creates its item when
        invoked on node_id: the folder itself, a file's parent, or the root.
        """
        if node_id is None:
            return None
        node = self.tree.get(node_id)
        return node.id if node.is_folder else node.parent_id

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _check_free(self, parent_id: Optional[str], name: str, ignore_id: Optional[str] = None):
        existing = self.tree.child_named(parent_id, name)
        if existing is not None and existing.id != ignore_id:
            raise ValidationError(f"An item named '{name}' already exists here", field="name")

    def create_file(self, parent_id: Optional[str], name: str,
                    content: str = NEW_FILE_TEMPLATE) -> str:
        """Create a SQL file on disk, then in the tree. Returns the node id."""
        self.tree.require_folder(parent_id)
        name = self.resolver.normalize_name(name, NODE_FILE)
        self._check_free(parent_id, name)

        parent_path = self.resolver.folder_path(parent_id)
        self.gateway.create_directory(parent_path)
        self.gateway.write_file(self.resolver.join(parent_path, name), content)

        node_id = self.tree.insert(parent_id, name, NODE_FILE, content=content)
        self.tree_changed.emit()
        return node_id

    def create_folder(self, parent_id: Optional[str], name: str) -> str:
        """Create a directory on disk, then in the tree. Returns the node id."""
        self.tree.require_folder(parent_id)
        name = self.resolver.normalize_name(name, NODE_FOLDER)
        self._check_free(parent_id, name)

        self.gateway.create_directory(self.resolver.child_path(parent_id, name))

        node_id = self.tree.insert(parent_id, name, NODE_FOLDER)
        self.tree_changed.emit()
        return node_id

    # ------------------------------------------------------------------
    # Rename / move / delete
    # ------------------------------------------------------------------

    def rename(self, node_id: str, new_name: str) -> WorkspaceNode:
        """Rename on disk, then in the tree."""
        node = self.tree.get(node_id)
        new_name = self.resolver.normalize_name(new_name, node.kind)
        if new_name == node.name:
            return node
        self._check_free(node.parent_id, new_name, ignore_id=node_id)

        old_path = self.resolver.resolve_path(node_id)
        new_path = self.resolver.child_path(node.parent_id, new_name)
        self.gateway.rename_path(old_path, new_path)

        self.tree.update(node_id, name=new_name)
        self.nodes_relocated.emit(self.tree.descendant_ids(node_id))
        self.tree_changed.emit()
        return node

    def move(self, node_id: str, new_parent_id: Optional[str]) -> WorkspaceNode:
        """
        Move a subtree under another folder (or to the root).

        Structural checks run before the disk is touched; a move into the
        node's own subtree raises CycleError.
        """
        self.tree.check_move(node_id, new_parent_id)
        node = self.tree.get(node_id)
        if node.parent_id == new_parent_id:
            return node
        self._check_free(new_parent_id, node.name)

        old_path = self.resolver.resolve_path(node_id)
        new_path = self.resolver.child_path(new_parent_id, node.name)
        self.gateway.rename_path(old_path, new_path)

        self.tree.move(node_id, new_parent_id)
        self.nodes_relocated.emit(self.tree.descendant_ids(node_id))
        self.tree_changed.emit()
        return node

    def delete(self, node_id: str) -> List[str]:
        """Delete on disk (recursively for folders), then the subtree."""
        path = self.resolver.resolve_path(node_id)
        self.gateway.delete_path(path)

        removed = self.tree.delete(node_id)
        self.nodes_deleted.emit(removed)
        self.tree_changed.emit()
        return removed

    # ------------------------------------------------------------------
    # Resync
    # ------------------------------------------------------------------

    def _scan(self, path: str) -> List[_DiskEntry]:
        entries = []
        for entry in self.gateway.list_directory(path):
            if entry.is_directory:
                entries.append(_DiskEntry(entry.name, NODE_FOLDER,
                                          children=self._scan(entry.path)))
            elif entry.name.endswith(SQL_EXTENSION):
                entries.append(_DiskEntry(entry.name, NODE_FILE,
                                          content=self.gateway.read_file(entry.path)))
        return entries

    def import_directory(self) -> int:
        """
        Rebuild the tree from the project folder on disk.

        The whole folder is read before the tree is replaced, so a failing
        read leaves the current tree as it was.

        Returns:
            Number of nodes imported
        """
        root = self.resolver.folder_path(None)
        scanned = self._scan(root)

        removed = [node.id for node in self.tree.walk()]
        self.tree.clear()

        def insert_all(parent_id, entries):
            for entry in entries:
                node_id = self.tree.insert(parent_id, entry.name, entry.kind, content=entry.content)
                insert_all(node_id, entry.children)

        insert_all(None, scanned)
        if removed:
            self.nodes_deleted.emit(removed)
        self.tree_changed.emit()
        logger.info(f"Imported {len(self.tree)} item(s) from {root}")
        return len(self.tree)
