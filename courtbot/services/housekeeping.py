"""
CourtBot - Housekeeping Scheduler
=================================

Background service that removes expired silences, trims the in-memory
pipeline tables and applies audit retention.

DESIGN:
    Nothing here is needed for correctness. Silence lookups already ignore
    expired rows, and the rate limiter, cooldown tracker and permission
    cache all check expiry on access. This loop only keeps the database
    and process memory from growing without bound.

    Runs every `interval` seconds. Audit retention runs at most once a day.
    Errors in one pass are logged and the loop keeps going.
"""

import asyncio
import time
from typing import Optional

from courtbot.core.constants import DEFAULT_AUDIT_RETENTION_DAYS, DEFAULT_SILENCE_CHECK_INTERVAL, SECONDS_PER_DAY
from courtbot.core.logger import logger
from courtbot.pipeline.cooldowns import CooldownTracker
from courtbot.pipeline.rate_limiter import CommandRateLimiter
from courtbot.services.audit import AuditSink
from courtbot.services.moderation import ModerationService


class HousekeepingScheduler:
    """
    Periodic cleanup loop.

    Attributes:
        task: Background task reference.
        running: Whether the scheduler is active.
    """

    def __init__(
        self,
        moderation: ModerationService,
        rate_limiter: CommandRateLimiter,
        cooldowns: CooldownTracker,
        audit: AuditSink,
        interval: float = DEFAULT_SILENCE_CHECK_INTERVAL,
        audit_retention_days: int = DEFAULT_AUDIT_RETENTION_DAYS,
    ) -> None:
        self.moderation = moderation
        self.rate_limiter = rate_limiter
        self.cooldowns = cooldowns
        self.audit = audit
        self.interval = interval
        self.audit_retention_days = audit_retention_days
        self.task: Optional[asyncio.Task] = None
        self.running: bool = False
        self._last_audit_cleanup: float = 0.0

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """Start the background task, replacing any previous one."""
        if self.task and not self.task.done():
            self.task.cancel()

        self.running = True
        self.task = asyncio.create_task(self._scheduler_loop())

        logger.tree("Housekeeping Scheduler Started", [
            ("Check Interval", f"{self.interval:g} seconds"),
            ("Audit Retention", f"{self.audit_retention_days} days"),
        ], emoji="⏰")

    async def stop(self) -> None:
        """Stop the background task."""
        self.running = False

        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Housekeeping Scheduler Stopped")

    # =========================================================================
    # Scheduler Loop
    # =========================================================================

    async def _scheduler_loop(self) -> None:
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Housekeeping Error", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:100]),
                ])
            await asyncio.sleep(self.interval)

    async def run_once(self) -> int:
        """
        Run one cleanup pass.

        Returns:
            Number of silences that were expired.
        """
        expired = await self.moderation.expire_silences()
        for record in expired:
            logger.tree("Silence Expired", [
                ("Scope", record.scope_id),
                ("Actor", record.actor_id),
            ], emoji="🔊")

        windows = self.rate_limiter.sweep()
        cooldowns = self.cooldowns.sweep()
        if windows or cooldowns:
            logger.debug(f"Swept {windows} rate windows and {cooldowns} cooldowns")

        now = time.time()
        if now - self._last_audit_cleanup >= SECONDS_PER_DAY:
            self._last_audit_cleanup = now
            await self.audit.cleanup(self.audit_retention_days)

        return len(expired)


__all__ = [
    "HousekeepingScheduler",
]
