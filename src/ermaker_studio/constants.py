"""
Centralized constants for ERMaker Studio.

Eliminates magic numbers scattered across the codebase.
Import from here instead of hardcoding values.
"""

# ===========================================================================
# Workspace files
# ===========================================================================
SQL_EXTENSION = ".sql"
NEW_FILE_TEMPLATE = "-- New SQL query\n"
UNTITLED_PREFIX = "Untitled-"
FALLBACK_FILE_NAME = "query.sql"

# ===========================================================================
# Projects
# ===========================================================================
DEFAULT_PROJECT_BASE_NAME = "ERMaker"
PROJECT_FOLDER_PREFIX = "Project"
PROJECT_FOLDER_LIMIT = 1000     # Safety limit for sequential folder allocation
DEFAULT_PROJECT_NAME = "Project"

# ===========================================================================
# Persistence
# ===========================================================================
STORAGE_KEY = "sql-ide-storage"
STORAGE_VERSION = 0
POOL_MAX_CONNECTIONS = 3
POOL_WAIT_TIMEOUT_S = 30

# ===========================================================================
# Diagrams
# ===========================================================================
DIAGRAM_STYLES = ("chen", "crows_foot")
DEFAULT_DIAGRAM_STYLE = "chen"
DEFAULT_DIAGRAM_THEME = "default"
DEFAULT_DIAGRAM_CURVE = "basis"
DEFAULT_DIAGRAM_BACKGROUND = "light"
DIAGRAM_TAB_PREFIX = "ER: "
EXPORT_FORMATS = ("png", "svg")

# ===========================================================================
# Database types: value -> (label, default port)
# ===========================================================================
DB_TYPES = {
    "postgresql": ("PostgreSQL", "5432"),
    "mysql":      ("MySQL", "3306"),
    "mariadb":    ("MariaDB", "3306"),
    "sqlite":     ("SQLite", ""),
    "mssql":      ("SQL Server", "1433"),
}

CONNECTION_MODES = ("string", "params")


def default_port(db_type: str) -> str:
    """Return the default port for a database type ("" when unknown)."""
    entry = DB_TYPES.get(db_type)
    return entry[1] if entry else ""


# ===========================================================================
# Introspection cache
# ===========================================================================
INTROSPECTION_CACHE_TTL_S = 60
INTROSPECTION_CACHE_SIZE = 50

# ===========================================================================
# Local database server
# ===========================================================================
LOCAL_SERVER_HOST = "127.0.0.1"
LOCAL_SERVER_PORT = 3307
LOCAL_SERVER_USER = "root"
LOCAL_SERVER_CONNECTION_NAME = "Local MariaDB (offline)"
SERVER_STATUSES = ("unknown", "stopped", "running", "error")
SERVER_LOG_NAME = "server"

# ===========================================================================
# Timer intervals (milliseconds)
# ===========================================================================
STATUS_POLL_INTERVAL_MS = 5000
LOG_POLL_INTERVAL_MS = 1000
WORKER_STOP_TIMEOUT_MS = 1000
