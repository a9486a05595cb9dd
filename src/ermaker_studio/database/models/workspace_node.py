"""
WorkspaceNode model - File or folder entry of the project workspace tree
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import uuid

NODE_FILE = "file"
NODE_FOLDER = "folder"
NODE_KINDS = (NODE_FILE, NODE_FOLDER)


@dataclass
class WorkspaceNode:
    """
    Arena entry of the workspace tree.

    Children are stored as an ordered list of ids (insertion order is display
    order). ``content`` is only set for files, ``child_ids`` only for folders.
    """
    id: str
    name: str
    kind: str
    content: Optional[str] = None
    child_ids: Optional[List[str]] = field(default=None)
    parent_id: Optional[str] = None
    created_at: str = None
    updated_at: str = None

    def __post_init__(self):
        if self.kind not in NODE_KINDS:
            raise ValueError(f"Unknown node kind: {self.kind}")
        if not self.id:
            self.id = str(uuid.uuid4())
        if self.kind == NODE_FILE:
            self.child_ids = None
            if self.content is None:
                self.content = ""
        else:
            self.content = None
            if self.child_ids is None:
                self.child_ids = []
        if not self.created_at:
            self.created_at = datetime.now().isoformat()
        if not self.updated_at:
            self.updated_at = self.created_at

    @property
    def is_file(self) -> bool:
        return self.kind == NODE_FILE

    @property
    def is_folder(self) -> bool:
        return self.kind == NODE_FOLDER

    def touch(self):
        """Refresh the modification timestamp."""
        self.updated_at = datetime.now().isoformat()
