"""
Editor Session Manager - Open tabs, dirty tracking and the active tab pointer

Maps workspace files, external files and diagram requests to editor tabs.

Invariants:
- at most one tab per workspace file id
- at most one diagram tab per (connection id, database name)
- the active tab id is None or the id of an open tab
"""
from typing import List, Optional
import logging
import uuid

from PySide6.QtCore import QObject, Signal

from ..constants import DIAGRAM_TAB_PREFIX, FALLBACK_FILE_NAME, SQL_EXTENSION, UNTITLED_PREFIX
from ..database.models import (
    DiagramResult,
    DiagramSettings,
    DiagramTab,
    EditorTab,
    FileTab,
    WorkspaceNode,
)
from ..errors import TabNotFoundError, ValidationError
from ..services.filesystem import FileSystemGateway
from .connection_registry import ConnectionRegistry
from .path_resolver import PathResolver
from .request_tracker import RequestToken, RequestTracker
from .workspace_tree import WorkspaceTree

logger = logging.getLogger(__name__)


class EditorSessionManager(QObject):
    """
    Owns the ordered list of editor tabs.

    Signals:
        tabs_changed: a tab was opened or closed
        active_tab_changed(object): new active tab id (or None)
        tab_updated(str): content, dirty flag or link of a tab changed
    """

    tabs_changed = Signal()
    active_tab_changed = Signal(object)
    tab_updated = Signal(str)

    def __init__(self, tree: WorkspaceTree, registry: ConnectionRegistry,
                 resolver: PathResolver, gateway: FileSystemGateway,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.tree = tree
        self.registry = registry
        self.resolver = resolver
        self.gateway = gateway
        self.requests = RequestTracker()
        self._tabs: List[EditorTab] = []
        self._active_tab_id: Optional[str] = None
        self._untitled_counter = 0

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def tabs(self) -> List[EditorTab]:
        return list(self._tabs)

    @property
    def active_tab_id(self) -> Optional[str]:
        return self._active_tab_id

    @property
    def active_tab(self) -> Optional[EditorTab]:
        return self.find_tab(self._active_tab_id) if self._active_tab_id else None

    def find_tab(self, tab_id: str) -> Optional[EditorTab]:
        for tab in self._tabs:
            if tab.id == tab_id:
                return tab
        return None

    def get_tab(self, tab_id: str) -> EditorTab:
        tab = self.find_tab(tab_id)
        if tab is None:
            raise TabNotFoundError(tab_id)
        return tab

    def tab_for_file(self, file_id: str) -> Optional[FileTab]:
        for tab in self._tabs:
            if isinstance(tab, FileTab) and tab.file_id == file_id:
                return tab
        return None

    def tab_for_diagram(self, connection_id: str,
                        database_name: Optional[str] = None) -> Optional[DiagramTab]:
        for tab in self._tabs:
            if isinstance(tab, DiagramTab) and tab.dedup_key == (connection_id, database_name):
                return tab
        return None

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def _add(self, tab: EditorTab) -> str:
        self._tabs.append(tab)
        self.tabs_changed.emit()
        self._set_active(tab.id)
        return tab.id

    def _set_active(self, tab_id: Optional[str]):
        if tab_id != self._active_tab_id:
            self._active_tab_id = tab_id
            self.active_tab_changed.emit(tab_id)

    def set_active(self, tab_id: str):
        """Make an open tab the active one."""
        self.get_tab(tab_id)
        self._set_active(tab_id)

    def open_file(self, node: WorkspaceNode) -> str:
        """
        Open a workspace file, focusing its tab if it is already open.

        Returns:
            Id of the (new or existing) tab
        """
        if not node.is_file:
            raise ValidationError("Only files can be opened in the editor", field="fileId")
        existing = self.tab_for_file(node.id)
        if existing is not None:
            self._set_active(existing.id)
            return existing.id

        tab = FileTab(
            id=str(uuid.uuid4()),
            display_name=node.name,
            content=node.content or "",
            file_id=node.id,
        )
        return self._add(tab)

    def open_external(self, path: str, content: str) -> str:
        """Open a file read from outside the workspace ("Open file...")."""
        for tab in self._tabs:
            if isinstance(tab, FileTab) and tab.file_id is None and tab.file_path == path:
                self._set_active(tab.id)
                return tab.id

        name = path.replace("\\", "/").rstrip("/").split("/")[-1] or FALLBACK_FILE_NAME
        tab = FileTab(id=str(uuid.uuid4()), display_name=name, content=content, file_path=path)
        return self._add(tab)

    def new_untitled(self) -> str:
        """Open an empty, unlinked SQL tab."""
        self._untitled_counter += 1
        name = f"{UNTITLED_PREFIX}{self._untitled_counter}{SQL_EXTENSION}"
        return self._add(FileTab(id=str(uuid.uuid4()), display_name=name))

    def open_diagram(self, connection_id: str, database_name: Optional[str] = None) -> str:
        """
        Open the ER diagram tab of a connection (and optionally one database).

        Settings are seeded from the connection's stored preferences, falling
        back to the global defaults.
        """
        existing = self.tab_for_diagram(connection_id, database_name)
        if existing is not None:
            self._set_active(existing.id)
            return existing.id

        profile = self.registry.require(connection_id)
        tab = DiagramTab(
            id=str(uuid.uuid4()),
            display_name=f"{DIAGRAM_TAB_PREFIX}{database_name or profile.name}",
            connection_id=connection_id,
            database_name=database_name,
            settings=DiagramSettings(
                style=profile.diagram_style,
                theme=profile.diagram_theme,
                curve=profile.diagram_curve,
            ),
        )
        return self._add(tab)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def edit(self, tab_id: str, content: str):
        """Replace the content of a tab and mark it dirty."""
        tab = self.get_tab(tab_id)
        tab.content = content
        tab.dirty = True
        self.tab_updated.emit(tab_id)

    def update_diagram_settings(self, tab_id: str, **settings) -> DiagramSettings:
        """Change style / theme / curve / background of a diagram tab."""
        tab = self.get_tab(tab_id)
        if not isinstance(tab, DiagramTab):
            raise ValidationError("Only diagram tabs have diagram settings", field="settings")
        unknown = set(settings) - {"style", "theme", "curve", "background"}
        if unknown:
            raise ValidationError(f"Unknown diagram setting: {sorted(unknown)[0]}",
                                  field=sorted(unknown)[0])
        tab.settings = tab.settings.merged(**settings)
        tab.dirty = True
        self.tab_updated.emit(tab_id)
        return tab.settings

    def save(self, tab_id: str) -> str:
        """
        Write a file tab to disk.

        Path resolution: the linked workspace node's path, else the tab's own
        file_path, else ``<project root>/<display name>``. An unlinked tab saved
        over a root file of the same name becomes linked to that file. The
        dirty flag is cleared only after the write succeeded.

        Returns:
            The path written

        Raises:
            WorkspaceIOError: the gateway write failed (tab stays dirty)
            ValidationError: the tab's display name is taken by a root folder or
                by a root file open in another tab
        """
        tab = self.get_tab(tab_id)
        if not isinstance(tab, FileTab):
            raise ValidationError("Diagram tabs are exported, not saved", field="tabId")

        node = self.tree.find_by_id(tab.file_id) if tab.file_id else None
        if node is None and not tab.file_path:
            node = self.tree.child_named(None, tab.display_name)
            if node is not None and not node.is_file:
                raise ValidationError(f"A folder named {tab.display_name} already exists",
                                      field="name")
            if node is not None and self.tab_for_file(node.id) is not None:
                raise ValidationError(f"{tab.display_name} is open in another tab", field="name")
        if node is not None:
            path = self.resolver.resolve_path(node.id)
            self.gateway.create_directory(self.resolver.folder_path(node.parent_id))
            self.gateway.write_file(path, tab.content)
            self.tree.update(node.id, content=tab.content)
            tab.file_id = node.id
        elif tab.file_path:
            path = tab.file_path
            self.gateway.write_file(path, tab.content)
        else:
            root = self.resolver.folder_path(None)
            path = self.resolver.join(root, tab.display_name)
            self.gateway.create_directory(root)
            self.gateway.write_file(path, tab.content)

        tab.file_path = path
        tab.dirty = False
        logger.info(f"Saved {tab.display_name} to {path}")
        self.tab_updated.emit(tab_id)
        return path

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def close(self, tab_id: str):
        """
        Close a tab.

        If it was active, the tab now at the same index becomes active, else
        the one before it, else nothing is active.
        """
        tab = self.get_tab(tab_id)
        index = self._tabs.index(tab)
        self._tabs.pop(index)
        self.requests.forget(tab_id)
        self.tabs_changed.emit()

        if self._active_tab_id == tab_id:
            if index < len(self._tabs):
                new_active = self._tabs[index].id
            elif index - 1 >= 0:
                new_active = self._tabs[index - 1].id
            else:
                new_active = None
            self._set_active(new_active)

    def close_all(self):
        for tab in list(self._tabs):
            self.requests.forget(tab.id)
        self._tabs.clear()
        self.tabs_changed.emit()
        self._set_active(None)

    # ------------------------------------------------------------------
    # Diagram results
    # ------------------------------------------------------------------

    def begin_diagram_request(self, tab_id: str) -> RequestToken:
        """Issue the correlation token for a diagram generation on tab_id."""
        tab = self.get_tab(tab_id)
        if not isinstance(tab, DiagramTab):
            raise ValidationError("Not a diagram tab", field="tabId")
        return self.requests.begin(tab_id)

    def apply_diagram_result(self, token: RequestToken, result: DiagramResult) -> bool:
        """
        Store a generated diagram if its tab is still open and the request
        was not superseded.

        Returns:
            True if applied, False if the result was stale and discarded
        """
        if not self.requests.finish(token):
            return False
        tab = self.find_tab(token.target_id)
        if not isinstance(tab, DiagramTab):
            logger.warning(f"Diagram result for closed tab {token.target_id} discarded")
            return False
        tab.content = result.mermaid_code
        if result.schema is not None:
            tab.schema = result.schema
        tab.dirty = False
        self.tab_updated.emit(tab.id)
        return True

    def discard_request(self, token: RequestToken):
        """Complete a failed request so the tab is no longer pending."""
        self.requests.finish(token)

    # ------------------------------------------------------------------
    # Workspace notifications
    # ------------------------------------------------------------------

    def on_nodes_relocated(self, node_ids: List[str]):
        """A node was renamed or moved: refresh names and paths of linked tabs."""
        for node_id in node_ids:
            tab = self.tab_for_file(node_id)
            node = self.tree.find_by_id(node_id)
            if tab is None or node is None:
                continue
            tab.display_name = node.name
            if tab.file_path:
                tab.file_path = self.resolver.resolve_path(node_id)
            self.tab_updated.emit(tab.id)

    def on_nodes_deleted(self, node_ids: List[str]):
        """Workspace nodes were deleted: unlink their tabs, keeping them open."""
        for node_id in node_ids:
            tab = self.tab_for_file(node_id)
            if tab is None:
                continue
            tab.file_id = None
            tab.file_path = None
            tab.dirty = True
            self.tab_updated.emit(tab.id)
