"""
CourtBot - Silence Records Mixin
================================

Silence lookups and mutations.

DESIGN:
    Expiry is lazy: lookups filter expired rows, and the silence expiry
    scheduler deletes them later. The scheduler is housekeeping only.
"""

import sqlite3
import time
from typing import TYPE_CHECKING, List, Optional

from courtbot.core.logger import logger
from courtbot.core.models import SilenceRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


def _row_to_silence(row: sqlite3.Row) -> SilenceRecord:
    return SilenceRecord(
        scope_id=row["scope_id"],
        actor_id=row["actor_id"],
        silenced_by=row["silenced_by"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


class SilencesMixin:
    """Mixin for silence record operations."""

    # =========================================================================
    # Lookups
    # =========================================================================

    def find_silence_record(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: str,
        now: Optional[float] = None,
    ) -> Optional[SilenceRecord]:
        """Get the active silence for an actor in a scope, if any."""
        row = self.fetchone(
            """SELECT * FROM silence_records
               WHERE scope_id = ? AND actor_id = ?
               AND (expires_at IS NULL OR expires_at > ?)""",
            (scope_id, actor_id, now if now is not None else time.time()),
        )
        return _row_to_silence(row) if row else None

    def list_silence_records(self: "DatabaseManager", scope_id: str) -> List[SilenceRecord]:
        """List active silences of a scope, oldest first."""
        rows = self.fetchall(
            """SELECT * FROM silence_records
               WHERE scope_id = ? AND (expires_at IS NULL OR expires_at > ?)
               ORDER BY created_at ASC""",
            (scope_id, time.time()),
        )
        return [_row_to_silence(row) for row in rows]

    def get_expired_silence_records(
        self: "DatabaseManager",
        now: Optional[float] = None,
    ) -> List[SilenceRecord]:
        """Get silences whose expiry is in the past (permanent ones never are)."""
        rows = self.fetchall(
            """SELECT * FROM silence_records
               WHERE expires_at IS NOT NULL AND expires_at <= ?""",
            (now if now is not None else time.time(),),
        )
        return [_row_to_silence(row) for row in rows]

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_silence_record(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: str,
        silenced_by: str,
        expires_at: Optional[float] = None,
    ) -> SilenceRecord:
        """
        Silence an actor in a scope, replacing any existing silence.

        Raises:
            InvariantViolation: If actor_id is the master.
        """
        self.guard_master(actor_id, "silence")
        record = SilenceRecord(
            scope_id=scope_id,
            actor_id=actor_id,
            silenced_by=silenced_by,
            created_at=time.time(),
            expires_at=expires_at,
        )
        self.execute(
            """INSERT OR REPLACE INTO silence_records
               (scope_id, actor_id, silenced_by, created_at, expires_at)
               VALUES (?, ?, ?, ?, ?)""",
            (record.scope_id, record.actor_id, record.silenced_by, record.created_at, record.expires_at),
        )
        logger.tree("Silence Recorded", [
            ("Scope", scope_id),
            ("Actor", actor_id),
            ("By", silenced_by),
            ("Expires", "Permanent" if expires_at is None else str(int(expires_at))),
        ], emoji="🔇")
        return record

    def remove_silence_record(self: "DatabaseManager", scope_id: str, actor_id: str) -> bool:
        """
        Lift a silence.

        Returns:
            True if a record was removed.
        """
        cursor = self.execute(
            "DELETE FROM silence_records WHERE scope_id = ? AND actor_id = ?",
            (scope_id, actor_id),
        )
        return cursor.rowcount > 0

    def remove_all_silence_records(self: "DatabaseManager", scope_id: str) -> List[str]:
        """
        Lift every silence of a scope.

        Returns:
            Actor ids whose silence was removed.
        """
        with self.transaction() as tx:
            tx.execute("SELECT actor_id FROM silence_records WHERE scope_id = ?", (scope_id,))
            actors = [row["actor_id"] for row in tx.fetchall()]
            tx.execute("DELETE FROM silence_records WHERE scope_id = ?", (scope_id,))
        return actors
