"""
Diagram Service - Generates, regenerates and exports ER diagrams of tabs.

Generation runs on worker threads. Each request takes a token from the
session manager; when the worker reports back, the result is applied only if
the tab is still open and no newer request replaced it.
"""
from typing import Any, Optional
import logging

from PySide6.QtCore import QObject, Signal

from ..constants import EXPORT_FORMATS
from ..database.models import DiagramRequest, DiagramResult, DiagramTab
from ..errors import ValidationError
from ..services.commands import CommandBackend
from ..utils.connection_helpers import build_connection_string, generator_type
from ..workers.command_workers import DiagramExportWorker, DiagramWorker, SchemaDiagramWorker
from .background import BackgroundTaskMixin
from .connection_registry import ConnectionRegistry
from .editor_sessions import EditorSessionManager
from .request_tracker import RequestToken

logger = logging.getLogger(__name__)


class DiagramService(BackgroundTaskMixin, QObject):
    """
    Signals:
        diagram_ready(str): tab id whose diagram was updated
        diagram_failed(str, str): tab id, error message
        export_finished(str): exported file path
        export_failed(str): error message
    """

    diagram_ready = Signal(str)
    diagram_failed = Signal(str, str)
    export_finished = Signal(str)
    export_failed = Signal(str)

    def __init__(self, sessions: EditorSessionManager, registry: ConnectionRegistry,
                 backend: CommandBackend, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._init_workers()
        self.sessions = sessions
        self.registry = registry
        self.backend = backend

    def _diagram_tab(self, tab_id: str) -> DiagramTab:
        tab = self.sessions.get_tab(tab_id)
        if not isinstance(tab, DiagramTab):
            raise ValidationError("Not a diagram tab", field="tabId")
        return tab

    def is_generating(self, tab_id: str) -> bool:
        return self.sessions.requests.is_pending(tab_id)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, tab_id: str) -> RequestToken:
        """Introspect the tab's connection and generate its diagram."""
        tab = self._diagram_tab(tab_id)
        profile = self.registry.require(tab.connection_id)
        request = DiagramRequest(
            type=generator_type(profile.db_type),
            connection_string=build_connection_string(profile, tab.database_name),
            style=tab.settings.style,
            theme=tab.settings.theme,
            curve=tab.settings.curve,
        )
        token = self.sessions.begin_diagram_request(tab_id)
        logger.info(f"Generating diagram for {tab.display_name}")
        worker = DiagramWorker(self.backend, request, token, db_type=profile.db_type)
        worker.succeeded.connect(self._on_generated)
        worker.failed.connect(self._on_failed)
        self._launch(worker)
        return token

    def generate_from_sql(self, tab_id: str, sql: str) -> RequestToken:
        """Generate the tab's diagram by parsing SQL DDL instead of a live database."""
        if not (sql or "").strip():
            raise ValidationError("SQL code is required", field="sql")
        tab = self._diagram_tab(tab_id)
        request = DiagramRequest(
            type="sql",
            sql=sql,
            style=tab.settings.style,
            theme=tab.settings.theme,
            curve=tab.settings.curve,
        )
        token = self.sessions.begin_diagram_request(tab_id)
        worker = DiagramWorker(self.backend, request, token)
        worker.succeeded.connect(self._on_generated)
        worker.failed.connect(self._on_failed)
        self._launch(worker)
        return token

    def regenerate_from_schema(self, tab_id: str, schema: Any = None) -> RequestToken:
        """
        Rebuild Mermaid code from a locally edited schema (no database access).

        Uses the tab's last known schema when none is given.
        """
        tab = self._diagram_tab(tab_id)
        schema = schema if schema is not None else tab.schema
        if schema is None:
            raise ValidationError("No schema available, generate the diagram first",
                                  field="schema")
        token = self.sessions.begin_diagram_request(tab_id)
        worker = SchemaDiagramWorker(self.backend, schema, tab.settings, token)
        worker.succeeded.connect(
            lambda tok, code, s=schema: self._on_generated(tok, DiagramResult(code, s)))
        worker.failed.connect(self._on_failed)
        self._launch(worker)
        return token

    def _on_generated(self, token: RequestToken, result: DiagramResult):
        if self.sessions.apply_diagram_result(token, result):
            self.diagram_ready.emit(token.target_id)

    def _on_failed(self, token: RequestToken, message: str):
        if not self.sessions.requests.is_current(token):
            logger.debug(f"Ignoring error of stale diagram request for {token.target_id}")
            return
        self.sessions.discard_request(token)
        if self.sessions.find_tab(token.target_id) is None:
            return
        self.diagram_failed.emit(token.target_id, message)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, tab_id: str, path: str, fmt: str = "png"):
        """Export the tab's rendered diagram using its background setting."""
        tab = self._diagram_tab(tab_id)
        fmt = fmt.lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format: {fmt}", field="format")
        if not tab.content:
            raise ValidationError("Nothing to export, generate the diagram first",
                                  field="content")
        if not (path or "").strip():
            raise ValidationError("Export path is required", field="path")
        worker = DiagramExportWorker(self.backend, tab.content, path, fmt, tab.settings.background)
        worker.succeeded.connect(lambda _token, exported: self.export_finished.emit(exported))
        worker.failed.connect(lambda _token, message: self.export_failed.emit(message))
        self._launch(worker)
