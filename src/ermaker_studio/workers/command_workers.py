"""
Command Workers - Background threads for collaborator commands.

Each worker runs one backend command in a QThread and reports the outcome
through signals. The request token handed in at construction is emitted back
unchanged so the receiver can discard results that went stale meanwhile.
"""

from typing import Any, Optional
import logging

from PySide6.QtCore import QThread, Signal

from ..database.models import ConnectionProfile, DiagramRequest, DiagramSettings
from ..errors import RemoteError
from ..services.commands import CachedIntrospection, CommandBackend
from ..utils.remote_error_handler import format_remote_error

logger = logging.getLogger(__name__)


class CommandWorker(QThread):
    """
    Base worker: runs ``execute()`` and emits its result or error.

    Signals:
        succeeded: Emitted with (token, result) on success
        failed: Emitted with (token, error_message) on failure
    """

    succeeded = Signal(object, object)  # token, result
    failed = Signal(object, str)        # token, error message

    command_name = "command"

    def __init__(self, token: Any = None, db_type: str = "", parent=None):
        super().__init__(parent)
        self.token = token
        self.db_type = db_type
        self.error: Optional[RemoteError] = None

    def execute(self) -> Any:
        raise NotImplementedError

    def run(self):
        try:
            result = self.execute()
        except Exception as e:
            logger.error(f"{self.command_name} failed: {e}")
            self.error = RemoteError(format_remote_error(e, self.db_type), command=self.command_name)
            self.failed.emit(self.token, self.error.message)
            return
        self.succeeded.emit(self.token, result)


class ConnectionTestWorker(CommandWorker):
    """Checks that a profile can connect. Result: backend message."""

    command_name = "test_connection"

    def __init__(self, backend: CommandBackend, profile: ConnectionProfile, token: Any = None):
        super().__init__(token, profile.db_type)
        self.backend = backend
        self.profile = profile

    def execute(self):
        return self.backend.test_connection(self.profile)


class DatabaseListWorker(CommandWorker):
    """Lists databases of a profile. Result: List[DatabaseInfo]."""

    command_name = "get_databases"

    def __init__(self, introspection: CachedIntrospection, profile: ConnectionProfile,
                 token: Any = None, refresh: bool = False):
        super().__init__(token, profile.db_type)
        self.introspection = introspection
        self.profile = profile
        self.refresh = refresh

    def execute(self):
        return self.introspection.get_databases(self.profile, refresh=self.refresh)


class QueryWorker(CommandWorker):
    """Executes SQL. Result: QueryResult."""

    command_name = "execute_query"

    def __init__(self, backend: CommandBackend, profile: ConnectionProfile, sql: str,
                 token: Any = None):
        super().__init__(token, profile.db_type)
        self.backend = backend
        self.profile = profile
        self.sql = sql

    def execute(self):
        return self.backend.execute_query(self.profile, self.sql)


class DiagramWorker(CommandWorker):
    """Generates a diagram from a live connection or SQL. Result: DiagramResult."""

    command_name = "generate_diagram"

    def __init__(self, backend: CommandBackend, request: DiagramRequest,
                 token: Any = None, db_type: str = ""):
        super().__init__(token, db_type)
        self.backend = backend
        self.request = request

    def execute(self):
        return self.backend.generate_diagram(self.request)


class SchemaDiagramWorker(CommandWorker):
    """Regenerates Mermaid code from an edited schema. Result: str."""

    command_name = "generate_mermaid_from_schema"

    def __init__(self, backend: CommandBackend, schema: Any, settings: DiagramSettings,
                 token: Any = None):
        super().__init__(token)
        self.backend = backend
        self.schema = schema
        self.settings = settings

    def execute(self):
        return self.backend.generate_mermaid_from_schema(
            self.schema, self.settings.style, self.settings.theme, self.settings.curve)


class DiagramExportWorker(CommandWorker):
    """Exports a rendered diagram to a file. Result: the target path."""

    command_name = "export_diagram"

    def __init__(self, backend: CommandBackend, mermaid_code: str, path: str, fmt: str,
                 background: str, token: Any = None):
        super().__init__(token)
        self.backend = backend
        self.mermaid_code = mermaid_code
        self.path = path
        self.fmt = fmt
        self.background = background

    def execute(self):
        self.backend.export_diagram(self.mermaid_code, self.path, self.fmt, self.background)
        return self.path


class ServerCommandWorker(CommandWorker):
    """
    Runs a local server lifecycle operation.

    ``operation`` is "install", "start" or "stop"; "start" installs the bundle
    first when it is missing. Result: the backend's message.
    """

    OPERATIONS = ("install", "start", "stop")

    def __init__(self, backend: CommandBackend, operation: str, port: Optional[int] = None,
                 token: Any = None):
        if operation not in self.OPERATIONS:
            raise ValueError(f"Unknown server operation: {operation}")
        super().__init__(token, "mariadb")
        self.backend = backend
        self.operation = operation
        self.port = port
        self.command_name = f"server_{operation}"

    def execute(self):
        if self.operation == "install":
            return self.backend.server_install()
        if self.operation == "stop":
            return self.backend.server_stop()
        if not self.backend.server_bundle_exists():
            logger.info("Server bundle missing, installing before start")
            self.backend.server_install()
        return self.backend.server_start(self.port)


class ServerStatusWorker(CommandWorker):
    """Polls the local server status. Result: status string."""

    command_name = "server_status"

    def __init__(self, backend: CommandBackend, token: Any = None):
        super().__init__(token, "mariadb")
        self.backend = backend

    def execute(self):
        return str(self.backend.server_status())


class ServerProbeWorker(CommandWorker):
    """Checks platform support and bundle presence. Result: (supported, bundle_present)."""

    command_name = "server_probe"

    def __init__(self, backend: CommandBackend, token: Any = None):
        super().__init__(token, "mariadb")
        self.backend = backend

    def execute(self):
        supported = bool(self.backend.server_platform_supported())
        if not supported:
            return False, False
        return True, bool(self.backend.server_bundle_exists())


class ServerLogWorker(CommandWorker):
    """Reads a server log. Result: log text."""

    command_name = "read_log"

    def __init__(self, backend: CommandBackend, name: str, token: Any = None):
        super().__init__(token, "mariadb")
        self.backend = backend
        self.name = name

    def execute(self):
        return self.backend.read_log(self.name) or ""
