"""
Schema Manager Module - Storage database initialization and migrations.
"""
import sqlite3
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class SchemaManager:
    """
    Creates and migrates the storage database schema.

    The storage database holds a single key-value table: each key is a
    namespaced snapshot (JSON text).
    """

    # Current schema version (increment when adding migrations)
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def initialize(self):
        """Create missing tables and apply pending migrations."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS app_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL
                )
            """)
            cursor.execute("SELECT version FROM schema_version")
            row = cursor.fetchone()
            current = row[0] if row else 0
            if current < self.SCHEMA_VERSION:
                self._migrate(cursor, current)
                if row:
                    cursor.execute("UPDATE schema_version SET version = ?", (self.SCHEMA_VERSION,))
                else:
                    cursor.execute("INSERT INTO schema_version (version) VALUES (?)",
                                   (self.SCHEMA_VERSION,))
            conn.commit()
        finally:
            conn.close()

    def _migrate(self, cursor: sqlite3.Cursor, from_version: int):
        """Apply migrations newer than from_version."""
        if from_version < 1:
            logger.info(f"Initialized storage schema v{self.SCHEMA_VERSION} at {self.db_path}")
