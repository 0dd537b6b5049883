"""
CourtBot - Database Manager
===========================

Central SQLite store for admin grants, special permissions, silences,
the audit log and runtime bot state.
"""

import os
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from courtbot.core.errors import InvariantViolation
from courtbot.core.logger import logger

from courtbot.core.database.schema import SchemaMixin
from courtbot.core.database.state import StateMixin
from courtbot.core.database.admins import AdminsMixin
from courtbot.core.database.permissions import PermissionsMixin
from courtbot.core.database.silences import SilencesMixin
from courtbot.core.database.audit import AuditMixin


# =============================================================================
# Constants
# =============================================================================

# Path: courtbot/core/database/manager.py -> go up 4 levels to reach project root
DATA_DIR: Path = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent.parent.parent / "data"))
DB_PATH: Path = DATA_DIR / "courtbot.db"

DB_CONNECTION_TIMEOUT = 30.0
SQLITE_BUSY_TIMEOUT = 5000  # ms


# =============================================================================
# Database Manager (Singleton)
# =============================================================================

class DatabaseManager(
    SchemaMixin,
    StateMixin,
    AdminsMixin,
    PermissionsMixin,
    SilencesMixin,
    AuditMixin,
):
    """
    Centralized database manager with thread-safe operations.

    DESIGN: Singleton pattern ensures single database connection.
    Uses WAL mode for better concurrency with multiple readers.
    All operations are thread-safe via internal locking, so the pipeline
    can call it from asyncio.to_thread workers.
    """

    _instance: Optional["DatabaseManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "DatabaseManager":
        """Singleton pattern - only one instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """Initialize database connection and tables."""
        if self._initialized:
            return

        self._db_lock: threading.Lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self.master_actor_id: Optional[str] = os.getenv("MASTER_ACTOR_ID") or None

        DATA_DIR.mkdir(parents=True, exist_ok=True)
        self._connect()
        self._init_tables()
        self._initialized = True

        logger.tree("Database Manager Initialized", [
            ("Path", str(DB_PATH)),
            ("WAL Mode", "Enabled"),
            ("Master", self.master_actor_id or "Not set"),
        ], emoji="🗄️")

    # =========================================================================
    # Master Protection
    # =========================================================================

    def set_master(self, actor_id: str) -> None:
        """Set the actor protected by guard_master()."""
        self.master_actor_id = actor_id

    def is_master(self, actor_id: str) -> bool:
        return bool(self.master_actor_id) and actor_id == self.master_actor_id

    def guard_master(self, actor_id: str, action: str) -> None:
        """
        Reject a mutation aimed at the master actor.

        Raises:
            InvariantViolation: If actor_id is the master.
        """
        if self.is_master(actor_id):
            logger.warning("Master Mutation Blocked", [
                ("Action", action),
                ("Actor", actor_id),
            ])
            raise InvariantViolation(f"cannot {action} the master actor")

    # =========================================================================
    # Connection Management
    # =========================================================================

    def _connect(self) -> None:
        """
        Establish database connection with WAL mode.

        DESIGN: WAL mode provides better concurrency for read-heavy workloads,
        and the permission cache reads far more than moderation writes.
        """
        try:
            self._conn = sqlite3.connect(
                str(DB_PATH),
                check_same_thread=False,
                timeout=DB_CONNECTION_TIMEOUT,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA temp_store=MEMORY")
            self._conn.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT}")
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            logger.error("Database Connection Failed", [("Error", str(e))])
            raise

    def _ensure_connection(self) -> sqlite3.Connection:
        """Ensure connection is valid, reconnect if needed."""
        if self._conn is None:
            self._connect()
        try:
            self._conn.execute("SELECT 1")
        except sqlite3.Error:
            self._connect()
        return self._conn

    def execute(
        self,
        query: str,
        params: Tuple = (),
        commit: bool = True
    ) -> sqlite3.Cursor:
        """Execute a query with thread safety."""
        with self._db_lock:
            conn = self._ensure_connection()
            cursor = conn.cursor()
            cursor.execute(query, params)
            if commit:
                conn.commit()
            return cursor

    def fetchone(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        """Execute query and fetch one result."""
        with self._db_lock:
            conn = self._ensure_connection()
            return conn.execute(query, params).fetchone()

    def fetchall(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        """Execute query and fetch all results."""
        with self._db_lock:
            conn = self._ensure_connection()
            return conn.execute(query, params).fetchall()

    def close(self) -> None:
        """Close database connection."""
        with self._db_lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("Database Connection Closed")

    # =========================================================================
    # Transaction Support
    # =========================================================================

    class Transaction:
        """Context manager for atomic database transactions."""

        def __init__(self, db: "DatabaseManager"):
            self._db = db
            self._cursor: Optional[sqlite3.Cursor] = None

        def __enter__(self) -> "DatabaseManager.Transaction":
            self._db._db_lock.acquire()
            try:
                conn = self._db._ensure_connection()
                conn.execute("BEGIN IMMEDIATE")
                self._cursor = conn.cursor()
            except sqlite3.Error:
                self._db._db_lock.release()
                raise
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            conn = self._db._conn
            try:
                if exc_type is None:
                    conn.commit()
                else:
                    conn.rollback()
                    logger.warning("Database Transaction Rolled Back", [
                        ("Error", str(exc_val)[:100] if exc_val else "Unknown"),
                    ])
            finally:
                self._db._db_lock.release()
            return False

        def execute(self, query: str, params: Tuple = ()) -> sqlite3.Cursor:
            """Execute a query within this transaction."""
            self._cursor.execute(query, params)
            return self._cursor

        def fetchall(self) -> List[sqlite3.Row]:
            """Fetch all results from the last query."""
            return self._cursor.fetchall() if self._cursor else []

    def transaction(self) -> "DatabaseManager.Transaction":
        """Create a new transaction context manager."""
        return self.Transaction(self)


# =============================================================================
# Global Accessor
# =============================================================================

def get_db() -> DatabaseManager:
    """Get the global database manager instance."""
    return DatabaseManager()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["DatabaseManager", "get_db", "DB_PATH", "DATA_DIR"]
