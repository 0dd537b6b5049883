"""
CourtBot - Audit Log Mixin
==========================

Append-only audit trail plus the reporting queries built on it.
"""

import json
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from courtbot.core.constants import SECONDS_PER_DAY, SUSPICIOUS_FAILURE_THRESHOLD
from courtbot.core.database.models import AuditStatsRow, FailureSummaryRow
from courtbot.core.models import AuditRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


class AuditMixin:
    """Mixin for audit log operations."""

    # =========================================================================
    # Append
    # =========================================================================

    def append_audit(self: "DatabaseManager", record: AuditRecord) -> int:
        """
        Append one audit record.

        Returns:
            Row id of the new record.
        """
        cursor = self.execute(
            """INSERT INTO audit_log
               (actor_id, scope_id, command, arguments, success, reason, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                record.actor_id,
                record.scope_id,
                record.command,
                json.dumps(list(record.arguments)),
                1 if record.success else 0,
                record.reason,
                record.timestamp,
            ),
        )
        return cursor.lastrowid

    # =========================================================================
    # Queries
    # =========================================================================

    def get_audit_history(
        self: "DatabaseManager",
        actor_id: str,
        scope_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AuditRecord]:
        """Get an actor's most recent audit records, newest first."""
        query = "SELECT * FROM audit_log WHERE actor_id = ?"
        params: tuple = (actor_id,)
        if scope_id is not None:
            query += " AND scope_id = ?"
            params += (scope_id,)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params += (limit,)

        records = []
        for row in self.fetchall(query, params):
            try:
                arguments = tuple(json.loads(row["arguments"]))
            except (json.JSONDecodeError, TypeError):
                arguments = ()
            records.append(AuditRecord(
                actor_id=row["actor_id"],
                scope_id=row["scope_id"],
                command=row["command"],
                arguments=arguments,
                success=bool(row["success"]),
                reason=row["reason"],
                timestamp=row["timestamp"],
            ))
        return records

    def get_audit_stats(
        self: "DatabaseManager",
        scope_id: Optional[str] = None,
        days: int = 30,
    ) -> List[AuditStatsRow]:
        """
        Per-command usage counts over the last `days` days.

        Returns:
            Rows sorted by total uses, most used first.
        """
        query = """SELECT command,
                          COUNT(*) AS total,
                          SUM(success) AS successes,
                          COUNT(DISTINCT actor_id) AS actors
                   FROM audit_log WHERE timestamp >= ?"""
        params: tuple = (time.time() - days * SECONDS_PER_DAY,)
        if scope_id is not None:
            query += " AND scope_id = ?"
            params += (scope_id,)
        query += " GROUP BY command ORDER BY total DESC"

        return [
            AuditStatsRow(
                command=row["command"],
                total=row["total"],
                successes=row["successes"] or 0,
                failures=row["total"] - (row["successes"] or 0),
                actors=row["actors"],
            )
            for row in self.fetchall(query, params)
        ]

    def get_failed_audit_summary(
        self: "DatabaseManager",
        days: int = 7,
        threshold: int = SUSPICIOUS_FAILURE_THRESHOLD,
        limit: int = 20,
    ) -> List[FailureSummaryRow]:
        """
        Actors with at least `threshold` failed attempts in the last `days` days.

        Returns:
            Rows sorted by failure count, worst first.
        """
        rows = self.fetchall(
            """SELECT actor_id,
                      COUNT(*) AS failures,
                      GROUP_CONCAT(DISTINCT command) AS commands,
                      MAX(timestamp) AS last_failure
               FROM audit_log
               WHERE success = 0 AND timestamp >= ?
               GROUP BY actor_id
               HAVING COUNT(*) >= ?
               ORDER BY failures DESC
               LIMIT ?""",
            (time.time() - days * SECONDS_PER_DAY, threshold, limit),
        )
        return [
            FailureSummaryRow(
                actor_id=row["actor_id"],
                failures=row["failures"],
                commands=sorted((row["commands"] or "").split(",")) if row["commands"] else [],
                last_failure=row["last_failure"],
            )
            for row in rows
        ]

    def cleanup_audit_log(self: "DatabaseManager", retention_days: int) -> int:
        """
        Delete audit records older than the retention window.

        Args:
            retention_days: Records older than this are removed. 0 disables.

        Returns:
            Number of records deleted.
        """
        if retention_days <= 0:
            return 0
        cursor = self.execute(
            "DELETE FROM audit_log WHERE timestamp < ?",
            (time.time() - retention_days * SECONDS_PER_DAY,),
        )
        return cursor.rowcount

    def count_audit_records(self: "DatabaseManager") -> Dict[str, Any]:
        """Total, successful and failed record counts."""
        row = self.fetchone(
            "SELECT COUNT(*) AS total, COALESCE(SUM(success), 0) AS successes FROM audit_log"
        )
        return {
            "total": row["total"],
            "successes": row["successes"],
            "failures": row["total"] - row["successes"],
        }
