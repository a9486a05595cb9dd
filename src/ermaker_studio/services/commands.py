"""
Command boundary - Interface of the external collaborators

Query execution, introspection, diagram generation/export and the bundled
local server are performed by a command backend. The core only depends on the
CommandBackend protocol below; every call is synchronous from the caller's
point of view and is run on a worker thread by the services.

CachedIntrospection adds a TTL cache in front of ``get_databases``.
"""
from typing import Any, List, Optional, Protocol, runtime_checkable
import logging
import threading

from cachetools import TTLCache

from ..constants import INTROSPECTION_CACHE_SIZE, INTROSPECTION_CACHE_TTL_S
from ..database.models import ConnectionProfile, DatabaseInfo, DiagramRequest, DiagramResult, QueryResult

logger = logging.getLogger(__name__)


@runtime_checkable
class CommandBackend(Protocol):
    """
    Collaborator commands. Every method may raise; the raised exception's
    message is shown to the user through format_remote_error().
    """

    # Connections / introspection
    def test_connection(self, profile: ConnectionProfile) -> str:
        ...

    def get_databases(self, profile: ConnectionProfile) -> List[DatabaseInfo]:
        ...

    def execute_query(self, profile: ConnectionProfile, sql: str) -> QueryResult:
        ...

    # Diagrams
    def generate_diagram(self, request: DiagramRequest) -> DiagramResult:
        ...

    def generate_mermaid_from_schema(self, schema: Any, style: str, theme: str, curve: str) -> str:
        ...

    def export_diagram(self, mermaid_code: str, path: str, fmt: str, background: str) -> None:
        ...

    # Local server lifecycle
    def server_status(self) -> str:
        ...

    def server_bundle_exists(self) -> bool:
        ...

    def server_platform_supported(self) -> bool:
        ...

    def server_install(self) -> str:
        ...

    def server_start(self, port: int) -> str:
        ...

    def server_stop(self) -> str:
        ...

    def read_log(self, name: str) -> str:
        ...


class CachedIntrospection:
    """
    Caches database listings per connection profile.

    Entries expire after ``ttl`` seconds and are dropped explicitly when the
    profile changes (see ``invalidate``). Connect a registry's
    ``connection_updated`` / ``connection_deleted`` signals to ``invalidate``.
    """

    def __init__(self, backend: CommandBackend,
                 ttl: int = INTROSPECTION_CACHE_TTL_S,
                 maxsize: int = INTROSPECTION_CACHE_SIZE):
        self.backend = backend
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.RLock()

    def get_databases(self, profile: ConnectionProfile, refresh: bool = False) -> List[DatabaseInfo]:
        with self._lock:
            if not refresh and profile.id in self._cache:
                logger.debug(f"Database list cache hit: {profile.name}")
                return self._cache[profile.id]
        databases = self.backend.get_databases(profile)
        with self._lock:
            self._cache[profile.id] = databases
        return databases

    def invalidate(self, connection_id: Optional[str] = None):
        """Drop one profile's entry, or everything when no id is given."""
        with self._lock:
            if connection_id is None:
                self._cache.clear()
            else:
                self._cache.pop(connection_id, None)

    def __contains__(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._cache
