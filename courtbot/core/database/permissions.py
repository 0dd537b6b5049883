"""
CourtBot - Special Permissions Mixin
====================================

Per-command allow/deny overrides for a single actor in a single scope.
"""

import sqlite3
import time
from typing import TYPE_CHECKING, List, Optional

from courtbot.core.logger import logger
from courtbot.core.models import SpecialPermission

if TYPE_CHECKING:
    from .manager import DatabaseManager


def _row_to_permission(row: sqlite3.Row) -> SpecialPermission:
    return SpecialPermission(
        scope_id=row["scope_id"],
        actor_id=row["actor_id"],
        command=row["command"],
        allowed=bool(row["allowed"]),
        granted_by=row["granted_by"],
        granted_at=row["granted_at"],
        expires_at=row["expires_at"],
    )


class PermissionsMixin:
    """Mixin for special permission operations."""

    def find_special_permission(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: str,
        command: str,
        now: Optional[float] = None,
    ) -> Optional[SpecialPermission]:
        """
        Get the unexpired override for (scope, actor, command), if any.

        Expired rows are ignored, not deleted.
        """
        row = self.fetchone(
            """SELECT * FROM special_permissions
               WHERE scope_id = ? AND actor_id = ? AND command = ?
               AND (expires_at IS NULL OR expires_at > ?)""",
            (scope_id, actor_id, command, now if now is not None else time.time()),
        )
        return _row_to_permission(row) if row else None

    def list_special_permissions(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: Optional[str] = None,
    ) -> List[SpecialPermission]:
        """List unexpired overrides in a scope, optionally for one actor."""
        query = """SELECT * FROM special_permissions
                   WHERE scope_id = ? AND (expires_at IS NULL OR expires_at > ?)"""
        params: tuple = (scope_id, time.time())
        if actor_id is not None:
            query += " AND actor_id = ?"
            params += (actor_id,)
        query += " ORDER BY actor_id, command"
        return [_row_to_permission(row) for row in self.fetchall(query, params)]

    def set_special_permission(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: str,
        command: str,
        allowed: bool,
        granted_by: str,
        expires_at: Optional[float] = None,
    ) -> SpecialPermission:
        """
        Create or replace an override.

        Raises:
            InvariantViolation: If actor_id is the master. Master needs no
                grants and must never be denied.
        """
        self.guard_master(actor_id, "set a special permission for")
        permission = SpecialPermission(
            scope_id=scope_id,
            actor_id=actor_id,
            command=command,
            allowed=allowed,
            granted_by=granted_by,
            granted_at=time.time(),
            expires_at=expires_at,
        )
        self.execute(
            """INSERT OR REPLACE INTO special_permissions
               (scope_id, actor_id, command, allowed, granted_by, granted_at, expires_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                permission.scope_id,
                permission.actor_id,
                permission.command,
                1 if permission.allowed else 0,
                permission.granted_by,
                permission.granted_at,
                permission.expires_at,
            ),
        )
        logger.tree("Special Permission Set", [
            ("Scope", scope_id),
            ("Actor", actor_id),
            ("Command", command),
            ("Allowed", str(allowed)),
            ("Expires", "Never" if expires_at is None else str(int(expires_at))),
        ], emoji="🔑")
        return permission

    def remove_special_permission(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: str,
        command: Optional[str] = None,
    ) -> int:
        """
        Remove one override, or every override of the actor when command is None.

        Returns:
            Number of rows removed.
        """
        if command is None:
            cursor = self.execute(
                "DELETE FROM special_permissions WHERE scope_id = ? AND actor_id = ?",
                (scope_id, actor_id),
            )
        else:
            cursor = self.execute(
                "DELETE FROM special_permissions WHERE scope_id = ? AND actor_id = ? AND command = ?",
                (scope_id, actor_id, command),
            )
        return cursor.rowcount
