"""
CourtBot - Authorization Resolver
=================================

Decides whether an actor may run a command in a scope.

DESIGN:
    Rules are evaluated in a fixed order and the first match wins:

    1. master actor                          -> allow
    2. master-only command                   -> deny
    3. unexpired special permission          -> its allowed value
    4. command does not require admin        -> allow
    5. group scope                           -> allow iff group admin
    6. direct scope, admin required          -> deny
    7. fallback                              -> allow

    Special permissions sit above the public rule so an explicit deny can
    close a public command to one actor, and above the admin rule so an
    explicit grant can open an admin command to one non-admin. Master-only
    commands sit above both, so no grant opens them. Scope allow-lists are
    not checked here; that belongs to the dispatcher.

    A failed special permission lookup denies (reason STORE_UNAVAILABLE)
    rather than falling through, since falling through could ignore an
    explicit deny.
"""

import time
from typing import Optional, Protocol

from courtbot.core.config import PipelineSettings
from courtbot.core.errors import StoreUnavailable
from courtbot.core.logger import logger
from courtbot.core.models import (
    AuthDecision,
    AuthReason,
    CommandConfig,
    Scope,
    SpecialPermission,
)
from courtbot.pipeline.permission_cache import PermissionCache
from courtbot.utils.async_utils import call_blocking


class SpecialPermissionStore(Protocol):
    def find_special_permission(
        self, scope_id: str, actor_id: str, command: str
    ) -> Optional[SpecialPermission]: ...


class AuthorizationResolver:
    """Precedence-ordered allow/deny decisions with reason codes."""

    def __init__(
        self,
        store: SpecialPermissionStore,
        cache: PermissionCache,
        settings: PipelineSettings,
    ) -> None:
        self._store = store
        self._cache = cache
        self.master_actor_id = settings.master_actor_id
        self.store_timeout = settings.store_timeout_seconds

    def is_master(self, actor_id: str) -> bool:
        return actor_id == self.master_actor_id

    async def _special_permission(
        self, actor_id: str, scope: Scope, command: str
    ) -> Optional[SpecialPermission]:
        permission = await call_blocking(
            "find_special_permission",
            self._store.find_special_permission,
            scope.id, actor_id, command,
            timeout=self.store_timeout,
        )
        if permission is not None and permission.is_expired(time.time()):
            return None
        return permission

    async def authorize(
        self,
        actor_id: str,
        scope: Scope,
        command: str,
        config: CommandConfig,
    ) -> AuthDecision:
        """
        Resolve an allow/deny verdict.

        Args:
            actor_id: Sender of the command.
            scope: Where the command was sent.
            command: Canonical command name.
            config: The command's admission settings.

        Returns:
            AuthDecision with the reason of the rule that matched.
        """
        if self.is_master(actor_id):
            return AuthDecision(True, AuthReason.MASTER)

        if config.master_only:
            return AuthDecision(False, AuthReason.MASTER_ONLY)

        try:
            permission = await self._special_permission(actor_id, scope, command)
        except StoreUnavailable as e:
            logger.error("Special Permission Lookup Failed", [
                ("Scope", scope.id),
                ("Actor", actor_id),
                ("Command", command),
                ("Error", str(e)[:100]),
                ("Decision", "Deny"),
            ])
            return AuthDecision(False, AuthReason.STORE_UNAVAILABLE)

        if permission is not None:
            if permission.allowed:
                return AuthDecision(True, AuthReason.SPECIAL_GRANT)
            return AuthDecision(False, AuthReason.SPECIAL_DENY)

        if not config.require_admin:
            return AuthDecision(True, AuthReason.PUBLIC)

        if scope.is_group:
            if await self._cache.is_group_admin(scope.id, actor_id):
                return AuthDecision(True, AuthReason.GROUP_ADMIN)
            return AuthDecision(False, AuthReason.NOT_GROUP_ADMIN)

        if config.require_admin:
            return AuthDecision(False, AuthReason.ADMIN_OUTSIDE_GROUP)

        return AuthDecision(True, AuthReason.DEFAULT)


__all__ = [
    "AuthorizationResolver",
    "SpecialPermissionStore",
]
