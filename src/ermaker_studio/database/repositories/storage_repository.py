"""
Storage Repository - Key-value store for persisted application snapshots.
"""
from typing import Dict, Optional
from datetime import datetime

from ..connection_pool import ConnectionPool


class StorageRepository:
    """
    Repository over the ``app_storage`` table.

    Values are opaque text (the persistence layer stores JSON).
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get the value stored under key.

        Args:
            key: Storage key
            default: Value returned when the key is absent

        Returns:
            Stored text or default
        """
        with self.pool.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM app_storage WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else default

    def set(self, key: str, value: str):
        """Insert or replace the value stored under key."""
        now = datetime.now().isoformat()
        with self.pool.transaction() as conn:
            conn.execute("""
                INSERT INTO app_storage (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
            """, (key, value, now))

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if a row was removed."""
        with self.pool.transaction() as conn:
            cursor = conn.execute("DELETE FROM app_storage WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def get_all(self) -> Dict[str, str]:
        with self.pool.get_connection() as conn:
            rows = conn.execute("SELECT key, value FROM app_storage").fetchall()
            return {row[0]: row[1] for row in rows}
