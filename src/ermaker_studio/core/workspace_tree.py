"""
Workspace Tree - In-memory file/folder hierarchy of the project

The tree is kept as a flat arena: a map from id to WorkspaceNode where each
node knows its parent id and the ordered ids of its children. Lookups are
O(1), ancestor walks are O(depth), and no operation re-walks sibling
subtrees.

Invariants:
- ids are unique across the whole tree
- the tree is acyclic
- every non-root node appears in exactly one parent's child_ids
- content is set iff the node is a file, child_ids iff it is a folder
"""
from typing import Dict, Iterator, List, Optional
import logging

from ..database.models import WorkspaceNode, NODE_FILE, NODE_FOLDER
from ..errors import (
    CycleError,
    InvalidParentError,
    NotFoundError,
    TreeStructureError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Fields a caller may change through update()
_UPDATABLE_FIELDS = ("name", "content")


class WorkspaceTree:
    """
    Arena-backed workspace tree.

    Usage:
        tree = WorkspaceTree()
        folder_id = tree.insert(None, "reports", NODE_FOLDER)
        file_id = tree.insert(folder_id, "q1.sql", NODE_FILE, content="SELECT 1")
        tree.move(file_id, None)
        tree.delete(folder_id)
    """

    def __init__(self):
        self._nodes: Dict[str, WorkspaceNode] = {}
        self._root_ids: List[str] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_by_id(self, node_id: str) -> Optional[WorkspaceNode]:
        """Return the node with this id, or None."""
        return self._nodes.get(node_id)

    def get(self, node_id: str) -> WorkspaceNode:
        """Return the node with this id or raise NotFoundError."""
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError(node_id)
        return node

    def roots(self) -> List[WorkspaceNode]:
        """Root-level nodes in display order."""
        return [self._nodes[i] for i in self._root_ids]

    def children(self, parent_id: Optional[str] = None) -> List[WorkspaceNode]:
        """Children of a folder (or the root list when parent_id is None)."""
        if parent_id is None:
            return self.roots()
        parent = self.get(parent_id)
        if not parent.is_folder:
            return []
        return [self._nodes[i] for i in parent.child_ids]

    def ancestors(self, node_id: str) -> List[WorkspaceNode]:
        """Chain from the root-level ancestor down to the node itself."""
        chain = []
        node = self.get(node_id)
        while node is not None:
            chain.append(node)
            node = self._nodes.get(node.parent_id) if node.parent_id else None
        chain.reverse()
        return chain

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        """True when ancestor_id is node_id itself or one of its ancestors."""
        current = self._nodes.get(node_id)
        while current is not None:
            if current.id == ancestor_id:
                return True
            current = self._nodes.get(current.parent_id) if current.parent_id else None
        return False

    def descendant_ids(self, node_id: str) -> List[str]:
        """Ids of the subtree rooted at node_id, root first (pre-order)."""
        result = []
        stack = [node_id]
        while stack:
            current = self.get(stack.pop())
            result.append(current.id)
            if current.is_folder:
                stack.extend(reversed(current.child_ids))
        return result

    def walk(self) -> Iterator[WorkspaceNode]:
        """Depth-first traversal of the whole tree in display order."""
        stack = list(reversed(self._root_ids))
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            if node.is_folder:
                stack.extend(reversed(node.child_ids))

    def child_named(self, parent_id: Optional[str], name: str) -> Optional[WorkspaceNode]:
        """Return the child of parent_id called name, if any."""
        for child in self.children(parent_id):
            if child.name == name:
                return child
        return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def require_folder(self, parent_id: Optional[str]):
        """Raise InvalidParentError unless parent_id is None or a folder id."""
        if parent_id is None:
            return
        parent = self._nodes.get(parent_id)
        if parent is None or not parent.is_folder:
            raise InvalidParentError(parent_id)

    def _sibling_list(self, parent_id: Optional[str]) -> List[str]:
        if parent_id is None:
            return self._root_ids
        return self._nodes[parent_id].child_ids

    def insert(self, parent_id: Optional[str], name: str, kind: str,
               content: Optional[str] = None, node_id: Optional[str] = None) -> str:
        """
        Create a node and append it to the parent's children.

        Args:
            parent_id: Folder id, or None for the root list
            name: Display name (already normalized by the caller)
            kind: NODE_FILE or NODE_FOLDER
            content: Initial content for files
            node_id: Explicit id (restore); a new uuid when omitted

        Returns:
            The new node id

        Raises:
            InvalidParentError: parent_id does not resolve to a folder
        """
        self.require_folder(parent_id)
        if node_id is not None and node_id in self._nodes:
            raise TreeStructureError(f"Duplicate node id: {node_id}")

        node = WorkspaceNode(
            id=node_id or "",
            name=name,
            kind=kind,
            content=content if kind == NODE_FILE else None,
            parent_id=parent_id,
        )
        self._nodes[node.id] = node
        self._sibling_list(parent_id).append(node.id)
        return node.id

    def attach(self, node: WorkspaceNode):
        """
        Attach a fully built node (restore path).

        The node's parent must already be present. Its child_ids are reset
        and refilled as children get attached.
        """
        if node.id in self._nodes:
            raise TreeStructureError(f"Duplicate node id: {node.id}")
        self.require_folder(node.parent_id)
        if node.is_folder:
            node.child_ids = []
        self._nodes[node.id] = node
        self._sibling_list(node.parent_id).append(node.id)

    def update(self, node_id: str, **changes) -> WorkspaceNode:
        """
        Merge fields into a node and refresh its updated_at.

        Only ``name`` and ``content`` may be changed; content only on files.

        Raises:
            NotFoundError: no such node
        """
        node = self.get(node_id)
        for key in changes:
            if key not in _UPDATABLE_FIELDS:
                raise ValidationError(f"Field cannot be updated: {key}", field=key)
        if "content" in changes and not node.is_file:
            raise ValidationError("Folders have no content", field="content")
        for key, value in changes.items():
            setattr(node, key, value)
        node.touch()
        return node

    def delete(self, node_id: str) -> List[str]:
        """
        Remove a node and its entire subtree.

        Returns:
            Ids of every removed node (pre-order)
        """
        node = self.get(node_id)
        removed = self.descendant_ids(node_id)
        self._sibling_list(node.parent_id).remove(node_id)
        for rid in removed:
            del self._nodes[rid]
        logger.debug(f"Deleted {len(removed)} node(s) under {node.name}")
        return removed

    def check_move(self, node_id: str, new_parent_id: Optional[str]):
        """
        Validate a move without applying it.

        Raises:
            NotFoundError: node_id is unknown
            InvalidParentError: new_parent_id is not a folder
            CycleError: new_parent_id is node_id or one of its descendants
        """
        self.get(node_id)
        if new_parent_id is not None and self.is_descendant(new_parent_id, node_id):
            raise CycleError(node_id, new_parent_id)
        self.require_folder(new_parent_id)

    def move(self, node_id: str, new_parent_id: Optional[str]) -> WorkspaceNode:
        """
        Detach the subtree rooted at node_id and append it under new_parent_id.

        The tree is left unchanged when the move is rejected.
        """
        self.check_move(node_id, new_parent_id)
        node = self._nodes[node_id]
        self._sibling_list(node.parent_id).remove(node_id)
        node.parent_id = new_parent_id
        self._sibling_list(new_parent_id).append(node_id)
        node.touch()
        return node

    def clear(self):
        """Remove every node."""
        self._nodes.clear()
        self._root_ids.clear()

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def validate(self):
        """
        Check every structural invariant.

        Raises:
            TreeStructureError: describing the first violation found
        """
        seen = set()
        for node in self.walk():
            if node.id in seen:
                raise TreeStructureError(f"Node reachable twice: {node.id}")
            seen.add(node.id)
            if node.is_file and (node.content is None or node.child_ids is not None):
                raise TreeStructureError(f"File node has folder fields: {node.id}")
            if node.is_folder and (node.content is not None or node.child_ids is None):
                raise TreeStructureError(f"Folder node has file fields: {node.id}")
            siblings = self._sibling_list(node.parent_id) if (
                node.parent_id is None or node.parent_id in self._nodes) else None
            if siblings is None or node.id not in siblings:
                raise TreeStructureError(f"Dangling parent reference: {node.id}")
        if len(seen) != len(self._nodes):
            raise TreeStructureError("Unreachable nodes in tree")
