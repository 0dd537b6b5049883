"""
CourtBot - Admin Grants Mixin
=============================

Admin grant lookups and mutations.

DESIGN:
    The master actor is an implicit admin of every scope and is never
    stored. Any mutation naming the master raises InvariantViolation here,
    at the mutation boundary, so no caller can bypass the check.
"""

import time
from typing import TYPE_CHECKING, List, Optional

from courtbot.core.logger import logger
from courtbot.core.models import AdminGrant

if TYPE_CHECKING:
    from .manager import DatabaseManager


class AdminsMixin:
    """Mixin for admin grant operations."""

    # =========================================================================
    # Lookups
    # =========================================================================

    def find_admin_grant(self: "DatabaseManager", scope_id: str, actor_id: str) -> bool:
        """
        Check whether an actor holds an admin grant in a scope.

        The master actor always holds one.
        """
        if self.is_master(actor_id):
            return True
        row = self.fetchone(
            "SELECT 1 FROM admin_grants WHERE scope_id = ? AND actor_id = ?",
            (scope_id, actor_id),
        )
        return row is not None

    def list_admin_grants(self: "DatabaseManager", scope_id: str) -> List[AdminGrant]:
        """
        List the admins of a scope, master first.

        Args:
            scope_id: Scope to list.

        Returns:
            Grants ordered by grant time, with a synthesised master grant
            at the head when a master is configured.
        """
        rows = self.fetchall(
            """SELECT scope_id, actor_id, granted_by, granted_at FROM admin_grants
               WHERE scope_id = ? ORDER BY granted_at ASC""",
            (scope_id,),
        )
        grants = [
            AdminGrant(
                scope_id=row["scope_id"],
                actor_id=row["actor_id"],
                granted_by=row["granted_by"],
                granted_at=row["granted_at"],
            )
            for row in rows
        ]
        if self.master_actor_id:
            grants.insert(0, AdminGrant(
                scope_id=scope_id,
                actor_id=self.master_actor_id,
                granted_by=self.master_actor_id,
                granted_at=0.0,
            ))
        return grants

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_admin_grant(
        self: "DatabaseManager",
        scope_id: str,
        actor_id: str,
        granted_by: str,
        granted_at: Optional[float] = None,
    ) -> bool:
        """
        Grant admin privilege to an actor in a scope.

        Returns:
            True if a new grant was written, False if it already existed.

        Raises:
            InvariantViolation: If actor_id is the master.
        """
        self.guard_master(actor_id, "grant admin to")
        cursor = self.execute(
            """INSERT OR IGNORE INTO admin_grants (scope_id, actor_id, granted_by, granted_at)
               VALUES (?, ?, ?, ?)""",
            (scope_id, actor_id, granted_by, granted_at if granted_at is not None else time.time()),
        )
        added = cursor.rowcount > 0
        if added:
            logger.tree("Admin Granted", [
                ("Scope", scope_id),
                ("Actor", actor_id),
                ("By", granted_by),
            ], emoji="🛡️")
        return added

    def remove_admin_grant(self: "DatabaseManager", scope_id: str, actor_id: str) -> bool:
        """
        Revoke an actor's admin privilege in a scope.

        Returns:
            True if a grant was removed.

        Raises:
            InvariantViolation: If actor_id is the master.
        """
        self.guard_master(actor_id, "revoke admin from")
        cursor = self.execute(
            "DELETE FROM admin_grants WHERE scope_id = ? AND actor_id = ?",
            (scope_id, actor_id),
        )
        removed = cursor.rowcount > 0
        if removed:
            logger.tree("Admin Revoked", [
                ("Scope", scope_id),
                ("Actor", actor_id),
            ], emoji="🛡️")
        return removed
