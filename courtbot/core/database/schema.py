"""
Database Schema Module
======================

Table definitions.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from courtbot.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Initialize all database tables.

        DESIGN: Tables are created if not exist, allowing safe restarts.
        Indexes added for the point lookups the permission cache runs.
        """
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Bot State Table
        # DESIGN: Key-value store for runtime toggles (enabled commands,
        # allow-lists, scope lock)
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS bot_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        # -----------------------------------------------------------------
        # Admin Grants Table
        # DESIGN: Master is never stored here, it is implicit everywhere
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS admin_grants (
                scope_id TEXT NOT NULL,
                actor_id TEXT NOT NULL,
                granted_by TEXT NOT NULL,
                granted_at REAL NOT NULL,
                PRIMARY KEY (scope_id, actor_id)
            )
        """)

        # -----------------------------------------------------------------
        # Special Permissions Table
        # DESIGN: expires_at NULL means the override never expires
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS special_permissions (
                scope_id TEXT NOT NULL,
                actor_id TEXT NOT NULL,
                command TEXT NOT NULL,
                allowed INTEGER NOT NULL,
                granted_by TEXT NOT NULL,
                granted_at REAL NOT NULL,
                expires_at REAL,
                PRIMARY KEY (scope_id, actor_id, command)
            )
        """)

        # -----------------------------------------------------------------
        # Silence Records Table
        # DESIGN: expires_at NULL means permanent
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS silence_records (
                scope_id TEXT NOT NULL,
                actor_id TEXT NOT NULL,
                silenced_by TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL,
                PRIMARY KEY (scope_id, actor_id)
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_silence_expires ON silence_records(expires_at)"
        )

        # -----------------------------------------------------------------
        # Audit Log Table
        # DESIGN: Append-only from the pipeline, cleaned by housekeeping
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                scope_id TEXT NOT NULL,
                command TEXT NOT NULL,
                arguments TEXT NOT NULL DEFAULT '[]',
                success INTEGER NOT NULL,
                reason TEXT,
                timestamp REAL NOT NULL
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_audit_actor ON audit_log(actor_id, timestamp)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_audit_scope ON audit_log(scope_id, timestamp)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp)"
        )

        conn.commit()
