"""
CourtBot - Runtime Container
============================

Builds and holds every component of the admission pipeline.

DESIGN:
    Components are constructed once, in dependency order, and wired by
    explicit constructor arguments. Nothing reaches for a global at call
    time, so tests build a runtime over a temporary database and a fake
    clock and exercise the whole flow without a chat transport.

    Construction order:
        store -> permission cache -> rate limiter / cooldowns
        -> resolver -> audit sink -> dispatcher
        -> registry + command settings -> moderation -> housekeeping
        -> message handler
"""

import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from courtbot.commands import register_builtin_commands
from courtbot.core.config import Config, PipelineSettings
from courtbot.core.constants import (
    DEFAULT_AUDIT_RETENTION_DAYS,
    DEFAULT_COMMAND_PREFIX,
    DEFAULT_SILENCE_CHECK_INTERVAL,
)
from courtbot.core.database import DatabaseManager
from courtbot.core.logger import logger
from courtbot.handlers.messages import MessageHandler
from courtbot.pipeline.authorization import AuthorizationResolver
from courtbot.pipeline.cooldowns import CooldownTracker
from courtbot.pipeline.dispatcher import Dispatcher
from courtbot.pipeline.permission_cache import PermissionCache
from courtbot.pipeline.rate_limiter import CommandRateLimiter
from courtbot.pipeline.registry import CommandRegistry, CommandSettings
from courtbot.services.audit import AuditSink
from courtbot.services.housekeeping import HousekeepingScheduler
from courtbot.services.moderation import ModerationService


@dataclass
class CourtRuntime:
    """Every pipeline component, wired together."""

    settings: PipelineSettings
    db: DatabaseManager
    cache: PermissionCache
    rate_limiter: CommandRateLimiter
    cooldowns: CooldownTracker
    resolver: AuthorizationResolver
    audit: AuditSink
    dispatcher: Dispatcher
    registry: CommandRegistry
    command_settings: CommandSettings
    moderation: ModerationService
    housekeeping: HousekeepingScheduler
    handler: Optional[MessageHandler] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the background loops. Needs a running event loop."""
        self.cache.start_sweeper()
        await self.housekeeping.start()

    async def stop(self) -> None:
        """Stop the background loops. The database stays open."""
        await self.housekeeping.stop()
        await self.cache.stop_sweeper()


def build_runtime(
    settings: PipelineSettings,
    db: DatabaseManager,
    prefix: str = DEFAULT_COMMAND_PREFIX,
    scope_lock: bool = False,
    restricted_scopes: FrozenSet[str] = frozenset(),
    housekeeping_interval: float = DEFAULT_SILENCE_CHECK_INTERVAL,
    audit_retention_days: int = DEFAULT_AUDIT_RETENTION_DAYS,
    clock: Callable[[], float] = time.monotonic,
) -> CourtRuntime:
    """
    Construct a fully wired runtime.

    Args:
        settings: Pipeline tunables.
        db: Durable store.
        prefix: Command prefix.
        scope_lock: Initial global scope lock, overridden by persisted state.
        restricted_scopes: Groups the moderation commands are limited to.
        housekeeping_interval: Seconds between housekeeping passes.
        audit_retention_days: Days audit records are kept, 0 keeps forever.
        clock: Monotonic clock shared by the in-memory tables.

    Returns:
        CourtRuntime with built-in commands registered and settings loaded.
    """
    db.set_master(settings.master_actor_id)

    cache = PermissionCache(db, settings, clock=clock)
    rate_limiter = CommandRateLimiter(settings.max_per_window, settings.window_seconds, clock=clock)
    cooldowns = CooldownTracker(clock=clock)
    resolver = AuthorizationResolver(db, cache, settings)
    audit = AuditSink(db, timeout=settings.store_timeout_seconds)
    dispatcher = Dispatcher(rate_limiter, resolver, cooldowns, audit)

    registry = CommandRegistry(prefix=prefix)
    register_builtin_commands(registry, restricted_scopes)
    command_settings = CommandSettings(registry, db, scope_lock=scope_lock)
    command_settings.load()

    moderation = ModerationService(db, cache)
    housekeeping = HousekeepingScheduler(
        moderation,
        rate_limiter,
        cooldowns,
        audit,
        interval=housekeeping_interval,
        audit_retention_days=audit_retention_days,
    )

    runtime = CourtRuntime(
        settings=settings,
        db=db,
        cache=cache,
        rate_limiter=rate_limiter,
        cooldowns=cooldowns,
        resolver=resolver,
        audit=audit,
        dispatcher=dispatcher,
        registry=registry,
        command_settings=command_settings,
        moderation=moderation,
        housekeeping=housekeeping,
    )
    runtime.handler = MessageHandler(runtime)

    logger.tree("Runtime Built", [
        ("Master", settings.master_actor_id),
        ("Commands", str(len(registry))),
        ("Rate Limit", f"{settings.max_per_window}/{settings.window_seconds:g}s"),
    ], emoji="🧩")
    return runtime


def runtime_from_config(config: Config, db: DatabaseManager) -> CourtRuntime:
    """Build a runtime from the environment configuration."""
    return build_runtime(
        config.pipeline_settings(),
        db,
        prefix=config.command_prefix,
        scope_lock=config.scope_lock,
        restricted_scopes=config.authorized_scope_ids,
        housekeeping_interval=config.silence_check_interval,
        audit_retention_days=config.audit_retention_days,
    )


__all__ = [
    "CourtRuntime",
    "build_runtime",
    "runtime_from_config",
]
