"""
CourtBot - Moderation Service
=============================

Every change to admin grants, silences and special permissions goes
through here.

DESIGN:
    Each method writes the store and then invalidates the matching
    permission cache entry before returning, so the next read sees the
    new state. The invalidation runs in a finally block: dropping a cache
    entry is always safe, keeping a stale one is not.

    Store calls run in a worker thread (asyncio.to_thread) so a slow
    SQLite write never stalls dispatch in other scopes. Writes are awaited
    to completion rather than timed out: a write abandoned mid-flight could
    land after its invalidation.

    The master actor is protected by the store itself (guard_master), so
    InvariantViolation propagates out of these methods to the command
    that asked for the change.
"""

import asyncio
import time
from typing import List, Optional

from courtbot.core.constants import MAX_SILENCE_MINUTES, SECONDS_PER_MINUTE
from courtbot.core.database import DatabaseManager
from courtbot.core.logger import logger
from courtbot.core.models import AdminGrant, SilenceRecord, SpecialPermission
from courtbot.pipeline.permission_cache import PermissionCache


def minutes_to_expiry(minutes: Optional[int], now: Optional[float] = None) -> Optional[float]:
    """
    Convert a duration to an absolute expiry. None stays permanent.

    Raises:
        ValueError: If minutes is not positive.
    """
    if minutes is None:
        return None
    if minutes <= 0:
        raise ValueError("duration must be positive")
    minutes = min(minutes, MAX_SILENCE_MINUTES)
    return (time.time() if now is None else now) + minutes * SECONDS_PER_MINUTE


class ModerationService:
    """Store mutations paired with cache invalidation."""

    def __init__(self, db: DatabaseManager, cache: PermissionCache) -> None:
        self.db = db
        self.cache = cache

    # =========================================================================
    # Admin Grants
    # =========================================================================

    async def grant_admin(self, scope_id: str, actor_id: str, granted_by: str) -> bool:
        """
        Make an actor admin of a scope.

        Returns:
            False if the actor already was one.
        """
        try:
            return await asyncio.to_thread(self.db.add_admin_grant, scope_id, actor_id, granted_by)
        finally:
            self.cache.invalidate_admin(scope_id, actor_id)

    async def revoke_admin(self, scope_id: str, actor_id: str) -> bool:
        """
        Remove an actor's admin grant.

        Returns:
            False if the actor was not an admin.
        """
        try:
            return await asyncio.to_thread(self.db.remove_admin_grant, scope_id, actor_id)
        finally:
            self.cache.invalidate_admin(scope_id, actor_id)

    async def list_admins(self, scope_id: str) -> List[AdminGrant]:
        return await asyncio.to_thread(self.db.list_admin_grants, scope_id)

    # =========================================================================
    # Silences
    # =========================================================================

    async def silence(
        self,
        scope_id: str,
        actor_id: str,
        silenced_by: str,
        duration_minutes: Optional[int] = None,
    ) -> SilenceRecord:
        """
        Silence an actor, permanently when no duration is given.

        Raises:
            InvariantViolation: If actor_id is the master.
            ValueError: If duration_minutes is not positive.
        """
        expires_at = minutes_to_expiry(duration_minutes)
        try:
            return await asyncio.to_thread(
                self.db.add_silence_record, scope_id, actor_id, silenced_by, expires_at
            )
        finally:
            self.cache.invalidate_silence(scope_id, actor_id)

    async def unsilence(self, scope_id: str, actor_id: str) -> bool:
        """
        Lift an actor's silence.

        Returns:
            False if the actor was not silenced.
        """
        try:
            removed = await asyncio.to_thread(self.db.remove_silence_record, scope_id, actor_id)
        finally:
            self.cache.invalidate_silence(scope_id, actor_id)
        if removed:
            logger.tree("Silence Lifted", [
                ("Scope", scope_id),
                ("Actor", actor_id),
            ], emoji="🔊")
        return removed

    async def unsilence_all(self, scope_id: str) -> List[str]:
        """
        Lift every silence in a scope.

        Returns:
            Actors that were released.
        """
        try:
            actors = await asyncio.to_thread(self.db.remove_all_silence_records, scope_id)
        finally:
            self.cache.invalidate_scope(scope_id)
        if actors:
            logger.tree("Scope Silences Lifted", [
                ("Scope", scope_id),
                ("Released", str(len(actors))),
            ], emoji="🔊")
        return actors

    async def expire_silences(self, now: Optional[float] = None) -> List[SilenceRecord]:
        """
        Delete silences whose expiry has passed.

        Returns:
            Records that were removed.
        """
        removed = []
        for record in await asyncio.to_thread(self.db.get_expired_silence_records, now):
            try:
                if await asyncio.to_thread(self.db.remove_silence_record, record.scope_id, record.actor_id):
                    removed.append(record)
            finally:
                self.cache.invalidate_silence(record.scope_id, record.actor_id)
        return removed

    async def list_silences(self, scope_id: str) -> List[SilenceRecord]:
        return await asyncio.to_thread(self.db.list_silence_records, scope_id)

    # =========================================================================
    # Special Permissions
    # =========================================================================

    async def grant_special_permission(
        self,
        scope_id: str,
        actor_id: str,
        command: str,
        granted_by: str,
        allowed: bool = True,
        duration_minutes: Optional[int] = None,
    ) -> SpecialPermission:
        """
        Set an explicit allow (or deny) for one command.

        Raises:
            InvariantViolation: If actor_id is the master.
        """
        return await asyncio.to_thread(
            self.db.set_special_permission,
            scope_id, actor_id, command, allowed, granted_by, minutes_to_expiry(duration_minutes),
        )

    async def revoke_special_permission(
        self,
        scope_id: str,
        actor_id: str,
        command: Optional[str] = None,
    ) -> int:
        """Remove one override, or all of an actor's overrides when command is None."""
        return await asyncio.to_thread(self.db.remove_special_permission, scope_id, actor_id, command)

    async def list_special_permissions(
        self,
        scope_id: str,
        actor_id: Optional[str] = None,
    ) -> List[SpecialPermission]:
        return await asyncio.to_thread(self.db.list_special_permissions, scope_id, actor_id)


__all__ = [
    "ModerationService",
    "minutes_to_expiry",
]
