"""
Persistence layer - Snapshot and restore of durable application state.

A snapshot holds connection profiles, the workspace tree, the project root path
and the project display name. It is stored as one JSON document under a single
namespaced key. A missing or corrupt snapshot never aborts startup: ``load``
logs a warning and returns ``None`` so the caller can fall back to defaults.

Connection passwords are left out of the document and kept in the system
keyring (see CredentialManager).
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants import STORAGE_KEY, STORAGE_VERSION, DEFAULT_PROJECT_NAME
from ..database.models import ConnectionProfile, WorkspaceNode, NODE_KINDS
from ..database.repositories import StorageRepository
from ..errors import ParseError, TreeStructureError
from ..utils.credential_manager import CredentialManager
from .workspace_tree import WorkspaceTree

logger = logging.getLogger(__name__)


@dataclass
class StateSnapshot:
    """Persisted subset of the application state."""
    connections: List[ConnectionProfile] = field(default_factory=list)
    tree: WorkspaceTree = field(default_factory=WorkspaceTree)
    project_path: Optional[str] = None
    project_name: str = DEFAULT_PROJECT_NAME


# ----------------------------------------------------------------------
# Tree (de)serialization
# ----------------------------------------------------------------------

def node_to_dict(tree: WorkspaceTree, node: WorkspaceNode) -> Dict[str, Any]:
    data = {
        "id": node.id,
        "name": node.name,
        "type": node.kind,
        "createdAt": node.created_at,
        "updatedAt": node.updated_at,
    }
    if node.parent_id is not None:
        data["parentId"] = node.parent_id
    if node.is_file:
        data["content"] = node.content
    else:
        data["children"] = [node_to_dict(tree, child) for child in tree.children(node.id)]
    return data


def tree_to_list(tree: WorkspaceTree) -> List[Dict[str, Any]]:
    """Serialize the tree as nested dicts (root order preserved)."""
    return [node_to_dict(tree, node) for node in tree.roots()]


def tree_from_list(items: Any) -> WorkspaceTree:
    """
    Rebuild a tree from nested dicts.

    Raises:
        ParseError: malformed entries or violated tree invariants
    """
    if not isinstance(items, list):
        raise ParseError("projectFiles must be a list")
    tree = WorkspaceTree()

    def attach(entries, parent_id):
        for entry in entries:
            if not isinstance(entry, dict):
                raise ParseError(f"Invalid node entry: {entry!r}")
            kind = entry.get("type")
            if kind not in NODE_KINDS:
                raise ParseError(f"Invalid node type: {kind!r}")
            if not isinstance(entry.get("id"), str) or not entry["id"] \
                    or not isinstance(entry.get("name"), str):
                raise ParseError("Node entry without id or name")
            children = entry.get("children")
            if children is not None and not isinstance(children, list):
                raise ParseError(f"Children of {entry['id']} must be a list")
            if kind == "file" and children is not None:
                raise ParseError(f"File node has children: {entry['id']}")
            if kind == "folder" and entry.get("content") is not None:
                raise ParseError(f"Folder node has content: {entry['id']}")
            node = WorkspaceNode(
                id=entry["id"],
                name=entry["name"],
                kind=kind,
                content=entry.get("content"),
                parent_id=parent_id,
                created_at=entry.get("createdAt"),
                updated_at=entry.get("updatedAt"),
            )
            tree.attach(node)
            if kind == "folder":
                attach(children or [], node.id)

    try:
        attach(items, None)
        tree.validate()
    except (TreeStructureError, TypeError, ValueError) as e:
        raise ParseError(f"Invalid workspace tree: {e}") from e
    return tree


# ----------------------------------------------------------------------
# Snapshot (de)serialization
# ----------------------------------------------------------------------

def snapshot_to_json(snapshot: StateSnapshot) -> str:
    payload = {
        "state": {
            "connections": [profile.to_dict(include_password=False)
                            for profile in snapshot.connections],
            "projectFiles": tree_to_list(snapshot.tree),
            "projectPath": snapshot.project_path,
            "projectName": snapshot.project_name,
        },
        "version": STORAGE_VERSION,
    }
    return json.dumps(payload, ensure_ascii=False)


def snapshot_from_json(text: str) -> StateSnapshot:
    """
    Parse a stored snapshot.

    Raises:
        ParseError: the document is not a valid snapshot
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("state"), dict):
        raise ParseError("Snapshot has no state object")
    state = payload["state"]

    raw_connections = state.get("connections")
    if raw_connections is None:
        raw_connections = []
    if not isinstance(raw_connections, list):
        raise ParseError("connections must be a list")
    try:
        connections = [ConnectionProfile.from_dict(item) for item in raw_connections]
    except (KeyError, TypeError, AttributeError) as e:
        raise ParseError(f"Invalid connection profile: {e}") from e
    ids = [profile.id for profile in connections]
    if len(ids) != len(set(ids)):
        raise ParseError("Duplicate connection ids")

    project_path = state.get("projectPath")
    if project_path is not None and not isinstance(project_path, str):
        raise ParseError("projectPath must be a string")
    project_name = state.get("projectName") or DEFAULT_PROJECT_NAME
    if not isinstance(project_name, str):
        raise ParseError("projectName must be a string")

    project_files = state.get("projectFiles")
    if project_files is None:
        project_files = []

    return StateSnapshot(
        connections=connections,
        tree=tree_from_list(project_files),
        project_path=project_path or None,
        project_name=project_name,
    )


class PersistenceLayer:
    """Reads and writes the state snapshot through a StorageRepository."""

    def __init__(self, repository: StorageRepository, key: str = STORAGE_KEY):
        self.repository = repository
        self.key = key

    def save(self, snapshot: StateSnapshot):
        """Write the snapshot; passwords go to the keyring."""
        for profile in snapshot.connections:
            if profile.password is not None:
                CredentialManager.save_password(profile.id, profile.password)
            else:
                CredentialManager.delete_password(profile.id)
        self.repository.set(self.key, snapshot_to_json(snapshot))
        logger.debug(f"Saved snapshot ({len(snapshot.connections)} connection(s), "
                     f"{len(snapshot.tree)} node(s))")

    def load(self) -> Optional[StateSnapshot]:
        """
        Load the stored snapshot.

        Returns:
            The snapshot, or None when it is absent or unparsable
        """
        text = self.repository.get(self.key)
        if text is None:
            logger.info("No stored snapshot, starting with defaults")
            return None
        try:
            snapshot = snapshot_from_json(text)
        except ParseError as e:
            logger.warning(f"Ignoring corrupt snapshot: {e}")
            return None
        for profile in snapshot.connections:
            if profile.password is None:
                profile.password = CredentialManager.get_password(profile.id)
        logger.info(f"Restored snapshot: {len(snapshot.connections)} connection(s), "
                    f"{len(snapshot.tree)} node(s), project {snapshot.project_name!r}")
        return snapshot

    def clear(self):
        self.repository.delete(self.key)
