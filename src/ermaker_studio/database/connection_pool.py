"""
Connection Pool Module - Pooled SQLite connections for the state store.

Provides:
- ConnectionPool: reusable connections to the storage database
- transaction() context manager for atomic writes
"""
import sqlite3
import queue
import threading
from pathlib import Path
from contextlib import contextmanager
import logging

from ..constants import POOL_MAX_CONNECTIONS, POOL_WAIT_TIMEOUT_S

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    SQLite connection pool.

    Usage:
        pool = ConnectionPool(db_path)

        with pool.get_connection() as conn:
            conn.execute("SELECT value FROM app_storage WHERE key = ?", (key,))

        with pool.transaction() as conn:
            conn.execute("INSERT ...")
            # commit on success, rollback on exception
    """

    def __init__(self, db_path: Path, max_connections: int = POOL_MAX_CONNECTIONS):
        self.db_path = Path(db_path)
        self.max_connections = max_connections
        self._pool: queue.Queue = queue.Queue(maxsize=max_connections)
        self._lock = threading.Lock()
        self._created_count = 0

    def _create_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _is_alive(conn: sqlite3.Connection) -> bool:
        try:
            conn.execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    def _acquire(self) -> sqlite3.Connection:
        try:
            conn = self._pool.get_nowait()
            if self._is_alive(conn):
                return conn
            with self._lock:
                self._created_count -= 1
        except queue.Empty:
            pass

        with self._lock:
            if self._created_count < self.max_connections:
                self._created_count += 1
                logger.debug(f"Opening storage connection "
                             f"({self._created_count}/{self.max_connections})")
                return self._create_connection()
        return self._pool.get(timeout=POOL_WAIT_TIMEOUT_S)

    def _release(self, conn: sqlite3.Connection):
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            conn.close()
            with self._lock:
                self._created_count -= 1

    @contextmanager
    def get_connection(self):
        """Yield a pooled connection, returned to the pool afterwards."""
        conn = self._acquire()
        try:
            yield conn
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self):
        """Yield a connection; commit on success, roll back on exception."""
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def close_all(self):
        """Close every idle connection."""
        while True:
            try:
                conn = self._pool.get_nowait()
            except queue.Empty:
                break
            try:
                conn.close()
            except sqlite3.Error:
                pass
        with self._lock:
            self._created_count = 0
        logger.debug("Closed all storage connections")
