import atexit
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import List, Optional, Set

from timeclock.shared.logger import app_logger

# Applied in order; PRAGMA user_version records how many have run
MIGRATIONS = (
    (
        """
        CREATE TABLE IF NOT EXISTS attendance_cache (
            worker_id TEXT PRIMARY KEY,
            work_date TEXT NOT NULL,
            status TEXT NOT NULL,
            check_in_time TEXT NULL,
            check_out_time TEXT NULL,
            break_start_time TEXT NULL,
            break_end_time TEXT NULL,
            total_hours REAL DEFAULT 0,
            break_time_total REAL DEFAULT 0,
            pending_sync BOOLEAN DEFAULT FALSE,
            version INTEGER DEFAULT 0,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS pending_transitions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            worker_id TEXT NOT NULL,
            work_date TEXT NOT NULL,
            event TEXT NOT NULL,
            occurred_at TEXT NOT NULL,
            base_version INTEGER NOT NULL,
            error_count INTEGER DEFAULT 0,
            last_error TEXT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_pending_worker_date ON pending_transitions(worker_id, work_date)",
    ),
    (
        """
        CREATE TABLE IF NOT EXISTS reconciliation_conflicts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            worker_id TEXT NOT NULL,
            work_date TEXT NOT NULL,
            local_version INTEGER NOT NULL,
            remote_version INTEGER NOT NULL,
            discarded_events TEXT,
            local_record TEXT,
            remote_record TEXT,
            reason TEXT,
            acknowledged BOOLEAN DEFAULT FALSE,
            detected_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_conflicts_acknowledged ON reconciliation_conflicts(acknowledged)",
    ),
)


def resolve_db_path(db_path: Optional[str] = None) -> str:
    """Explicit path, then TIMECLOCK_DB_PATH, then timeclock.db in the working directory"""
    path = db_path or os.environ.get("TIMECLOCK_DB_PATH") or "timeclock.db"
    if path == ":memory:":
        return path

    path = os.path.abspath(os.path.expanduser(path))
    directory = os.path.dirname(path)
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Unable to create database directory '{directory}': {exc}") from exc
    return path


class DatabaseManager:
    """SQLite access for the local attendance cache, one connection per thread"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = resolve_db_path(db_path)
        self._local = threading.local()
        self._connections: Set[sqlite3.Connection] = set()
        self._registry_lock = threading.Lock()

        atexit.register(self.close_all_connections)

        self.init_database()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        for pragma in ("journal_mode = WAL", "synchronous = NORMAL", "temp_store = MEMORY"):
            conn.execute(f"PRAGMA {pragma}")
        with self._registry_lock:
            self._connections.add(conn)
        return conn

    def get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._local.connection = self._open()
        return conn

    @contextmanager
    def get_cursor(self):
        """Cursor inside one transaction: committed on success, rolled back on error"""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def init_database(self):
        """Bring the schema up to the latest migration"""
        with self.get_cursor() as cursor:
            current = cursor.execute("PRAGMA user_version").fetchone()[0]
            for number, statements in enumerate(MIGRATIONS, start=1):
                if number <= current:
                    continue
                for statement in statements:
                    cursor.execute(statement)
                cursor.execute(f"PRAGMA user_version = {number}")
                app_logger.info(f"Applied cache schema migration {number}")

        app_logger.debug(f"Database ready at: {self.db_path}")

    def execute_query(self, query: str, params: tuple = ()) -> int:
        """Run a write statement and return the affected row count"""
        with self.get_cursor() as cursor:
            return cursor.execute(query, params).rowcount

    def fetch_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_cursor() as cursor:
            return cursor.execute(query, params).fetchone()

    def fetch_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.get_cursor() as cursor:
            return cursor.execute(query, params).fetchall()

    def close_connection(self):
        """Close this thread's connection, if it has one"""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            return
        self._local.connection = None
        with self._registry_lock:
            self._connections.discard(conn)
        try:
            conn.close()
        except sqlite3.Error as e:
            app_logger.error(f"Error closing database connection: {e}")

    def close_all_connections(self):
        """Close every connection opened by this manager, from any thread"""
        with self._registry_lock:
            connections, self._connections = self._connections, set()

        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as e:
                app_logger.error(f"Error closing database connection: {e}")

        # Other threads reopen lazily on next use
        self._local = threading.local()
        app_logger.debug(f"Closed {len(connections)} database connection(s)")


_db_manager: Optional[DatabaseManager] = None
_db_manager_lock = threading.Lock()


def get_db_manager() -> DatabaseManager:
    """Process-wide database manager, created on first use"""
    global _db_manager
    with _db_manager_lock:
        if _db_manager is None:
            _db_manager = DatabaseManager()
        return _db_manager
