"""
Path Resolver - Derives storage paths for workspace nodes

Every create / rename / move / delete computes its disk path through this
class so the in-memory tree and the on-disk layout cannot diverge.
"""
from typing import Optional
import logging

from ..constants import SQL_EXTENSION
from ..database.models import NODE_FILE
from ..errors import ValidationError
from .workspace_tree import WorkspaceTree

logger = logging.getLogger(__name__)

SEPARATOR = "/"


class PathResolver:
    """
    Maps node ids to absolute paths under the project root.

    Args:
        tree: Workspace tree to resolve against
        project_root: Absolute path of the project folder (may be set later)
        extension: Extension appended to file names that lack it
    """

    def __init__(self, tree: WorkspaceTree, project_root: Optional[str] = None,
                 extension: str = SQL_EXTENSION):
        self.tree = tree
        self.project_root = project_root
        self.extension = extension

    def normalize_name(self, name: str, kind: str) -> str:
        """
        Apply the naming policy: trim, reject blanks, append the extension
        to file names that lack it.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required", field="name")
        if SEPARATOR in name or "\\" in name:
            raise ValidationError("Name cannot contain path separators", field="name")
        if kind == NODE_FILE and not name.endswith(self.extension):
            name = f"{name}{self.extension}"
        return name

    def _root(self) -> str:
        if not self.project_root:
            raise ValidationError("Project path is not set", field="projectPath")
        return self.project_root.rstrip("/\\") or self.project_root

    def join(self, base: str, name: str) -> str:
        return f"{base}{SEPARATOR}{name}"

    def folder_path(self, folder_id: Optional[str]) -> str:
        """Path of a folder node, or the project root for None."""
        if folder_id is None:
            return self._root()
        return self.resolve_path(folder_id)

    def resolve_path(self, node_id: str) -> str:
        """Absolute path of a node: root + names along the ancestor chain."""
        names = [node.name for node in self.tree.ancestors(node_id)]
        return SEPARATOR.join([self._root()] + names)

    def child_path(self, parent_id: Optional[str], name: str) -> str:
        """Path a node called ``name`` would have under parent_id."""
        return self.join(self.folder_path(parent_id), name)
