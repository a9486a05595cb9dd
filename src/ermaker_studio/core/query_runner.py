"""
Query Runner - Executes the SQL of a file tab against the active connection.
"""
from typing import Dict, Optional
import logging

from PySide6.QtCore import QObject, Signal

from ..database.models import FileTab, QueryResult
from ..errors import ValidationError
from ..services.commands import CommandBackend
from ..workers.command_workers import QueryWorker
from .background import BackgroundTaskMixin
from .database_explorer import DatabaseExplorer
from .editor_sessions import EditorSessionManager
from .request_tracker import RequestToken, RequestTracker

logger = logging.getLogger(__name__)


class QueryRunner(BackgroundTaskMixin, QObject):
    """
    One pending execution per tab; re-running a tab supersedes the previous
    run. Results of tabs closed meanwhile are dropped.

    Signals:
        query_started(str): tab id
        query_finished(str, object): tab id, QueryResult
        query_failed(str, str): tab id, error message
    """

    query_started = Signal(str)
    query_finished = Signal(str, object)
    query_failed = Signal(str, str)

    def __init__(self, sessions: EditorSessionManager, explorer: DatabaseExplorer,
                 backend: CommandBackend, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._init_workers()
        self.sessions = sessions
        self.explorer = explorer
        self.backend = backend
        self.requests = RequestTracker()
        self._results: Dict[str, QueryResult] = {}
        self._last_tab_id: Optional[str] = None

        sessions.tabs_changed.connect(self._prune_closed_tabs)

    @property
    def is_executing(self) -> bool:
        return any(self.requests.is_pending(tab.id) for tab in self.sessions.tabs)

    @property
    def last_result(self) -> Optional[QueryResult]:
        if self._last_tab_id is None:
            return None
        return self._results.get(self._last_tab_id)

    def result_for(self, tab_id: str) -> Optional[QueryResult]:
        return self._results.get(tab_id)

    def execute(self, tab_id: Optional[str] = None, sql: Optional[str] = None) -> RequestToken:
        """
        Run SQL for a tab (the active tab by default).

        Args:
            tab_id: File tab the results belong to
            sql: Statement(s) to run; defaults to the tab content (or a selection
                 passed by the editor)
        """
        tab_id = tab_id or self.sessions.active_tab_id
        if tab_id is None:
            raise ValidationError("No open query tab", field="tabId")
        tab = self.sessions.get_tab(tab_id)
        if not isinstance(tab, FileTab):
            raise ValidationError("Only SQL tabs can be executed", field="tabId")
        sql = tab.content if sql is None else sql
        if not sql.strip():
            raise ValidationError("Query is empty", field="sql")
        profile = self.explorer.active_connection
        if profile is None:
            raise ValidationError("Select a connection first", field="connectionId")

        token = self.requests.begin(tab_id)
        self.query_started.emit(tab_id)
        logger.info(f"Executing query of {tab.display_name} on {profile.name}")
        worker = QueryWorker(self.backend, profile, sql, token)
        worker.succeeded.connect(self._on_finished)
        worker.failed.connect(self._on_failed)
        self._launch(worker)
        return token

    def _accept(self, token: RequestToken) -> bool:
        if not self.requests.finish(token):
            return False
        if self.sessions.find_tab(token.target_id) is None:
            logger.warning(f"Query result for closed tab {token.target_id} discarded")
            return False
        return True

    def _on_finished(self, token: RequestToken, result: QueryResult):
        if not self._accept(token):
            return
        self._results[token.target_id] = result
        self._last_tab_id = token.target_id
        self.query_finished.emit(token.target_id, result)

    def _on_failed(self, token: RequestToken, message: str):
        if not self._accept(token):
            return
        self._results[token.target_id] = QueryResult(error=message)
        self._last_tab_id = token.target_id
        self.query_failed.emit(token.target_id, message)

    def _prune_closed_tabs(self):
        open_ids = {tab.id for tab in self.sessions.tabs}
        for tab_id in list(self._results):
            if tab_id not in open_ids:
                del self._results[tab_id]
        if self._last_tab_id not in open_ids:
            self._last_tab_id = None
