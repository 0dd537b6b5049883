"""
CourtBot - Command Dispatcher
=============================

Runs one inbound command through the admission pipeline.

DESIGN:
    Order per event, first failing check ends it:

        rate limit -> scope allow-list -> enabled -> authorization
        -> cooldown -> execute -> audit

    Terminal states are EXECUTED, DENIED, THROTTLED and ERRORED. A rate
    limit rejection writes no audit record: it is volume control, and
    skipping the write keeps a flooding actor cheap to reject. Every
    other outcome is audited.

    The cooldown is claimed only once every check has passed, so a
    denied attempt never consumes the actor's cooldown window. Claiming
    and checking happen atomically in CooldownTracker.try_acquire().

    A command body that raises ends in ERRORED with an unsuccessful audit
    record. The exception never escapes handle(). Cancellation is not
    caught.

    A body that refuses the request raises CommandRejected instead. That
    ends in DENIED with the body's reason, and the cooldown claimed for
    the attempt is given back, since nothing ran.

Scope rule:
    Direct scopes are never restricted by the allow-list. In a group, a
    non-empty allowed_scopes must contain the scope. An empty list allows
    every group unless the global scope lock is on, in which case only
    listed groups pass.
"""

from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from courtbot.core.errors import CommandFault, CommandRejected
from courtbot.core.logger import logger
from courtbot.core.models import (
    REASON_COOLDOWN,
    REASON_DISABLED,
    REASON_RATE_LIMITED,
    REASON_SCOPE_NOT_PERMITTED,
    CommandConfig,
    DispatchResult,
    DispatchState,
    Scope,
)
from courtbot.pipeline.authorization import AuthorizationResolver
from courtbot.pipeline.cooldowns import CooldownTracker
from courtbot.pipeline.rate_limiter import CommandRateLimiter
from courtbot.services.audit import AuditSink
from courtbot.utils.async_utils import maybe_await
from courtbot.utils.metrics import metrics


CommandBody = Callable[[], Union[Awaitable[Any], Any]]


def scope_permitted(config: CommandConfig, scope: Scope, scope_lock: bool = False) -> bool:
    """Static allow-list check, independent of the actor."""
    if not scope.is_group:
        return True
    if config.allowed_scopes:
        return scope.id in config.allowed_scopes
    return not scope_lock


class Dispatcher:
    """Single entry point for running a command."""

    def __init__(
        self,
        rate_limiter: CommandRateLimiter,
        resolver: AuthorizationResolver,
        cooldowns: CooldownTracker,
        audit: AuditSink,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.resolver = resolver
        self.cooldowns = cooldowns
        self.audit = audit

    async def _deny(
        self,
        actor_id: str,
        scope: Scope,
        command: str,
        args: Sequence[str],
        state: DispatchState,
        reason: str,
        retry_after: int = 0,
        detail: Optional[str] = None,
    ) -> DispatchResult:
        await self.audit.record(actor_id, scope.id, command, args, success=False, reason=reason)
        metrics.increment(f"dispatch.{state.value}")
        logger.tree("Command Denied" if state is DispatchState.DENIED else "Command Throttled", [
            ("Actor", actor_id),
            ("Scope", f"{scope.id} ({'group' if scope.is_group else 'direct'})"),
            ("Command", command),
            ("Reason", reason),
        ], emoji="🚫" if state is DispatchState.DENIED else "⏳")
        return DispatchResult(
            state=state, command=command, reason=reason, retry_after=retry_after, detail=detail,
        )

    async def handle(
        self,
        actor_id: str,
        scope: Scope,
        command: str,
        config: Optional[CommandConfig],
        body: CommandBody,
        args: Sequence[str] = (),
        scope_lock: bool = False,
    ) -> DispatchResult:
        """
        Admit and run one command.

        Args:
            actor_id: Sender.
            scope: Where it was sent.
            command: Canonical command name.
            config: Snapshot configuration for the command. None is treated
                as a disabled command.
            body: Zero-argument callable running the command, sync or async.
            args: Raw arguments, redacted before auditing.
            scope_lock: Global scope lock from the same snapshot.

        Returns:
            DispatchResult describing the terminal state.
        """
        if not self.rate_limiter.is_allowed(actor_id):
            metrics.increment("dispatch.rate_limited")
            return DispatchResult(
                state=DispatchState.THROTTLED,
                command=command,
                reason=REASON_RATE_LIMITED,
            )

        if config is None:
            logger.warning("Command Config Missing", [
                ("Command", command),
                ("Decision", "Treated as disabled"),
            ])
            return await self._deny(actor_id, scope, command, args, DispatchState.DENIED, REASON_DISABLED)

        if not scope_permitted(config, scope, scope_lock):
            return await self._deny(
                actor_id, scope, command, args, DispatchState.DENIED, REASON_SCOPE_NOT_PERMITTED
            )

        if not config.enabled:
            return await self._deny(actor_id, scope, command, args, DispatchState.DENIED, REASON_DISABLED)

        decision = await self.resolver.authorize(actor_id, scope, command, config)
        if not decision.allowed:
            return await self._deny(
                actor_id, scope, command, args, DispatchState.DENIED, decision.reason.value
            )

        remaining = self.cooldowns.try_acquire(actor_id, command, config.cooldown_seconds)
        if remaining > 0:
            return await self._deny(
                actor_id, scope, command, args, DispatchState.THROTTLED, REASON_COOLDOWN,
                retry_after=remaining,
            )

        try:
            with metrics.timer(f"command.{command}"):
                await maybe_await(body())
        except CommandRejected as e:
            self.cooldowns.clear(actor_id, command)
            return await self._deny(
                actor_id, scope, command, args, DispatchState.DENIED, e.reason, detail=e.reply,
            )
        except Exception as e:
            fault = CommandFault(command, e)
            await self.audit.record(actor_id, scope.id, command, args, success=False, reason=str(fault)[:200])
            metrics.increment("dispatch.errored")
            logger.error("Command Failed", [
                ("Actor", actor_id),
                ("Scope", scope.id),
                ("Command", command),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            return DispatchResult(
                state=DispatchState.ERRORED,
                command=command,
                reason=str(fault),
                error=e,
            )

        await self.audit.record(actor_id, scope.id, command, args, success=True, reason=decision.reason.value)
        metrics.increment("dispatch.executed")
        logger.debug(f"Command executed: {command} by {actor_id} in {scope.id} ({decision.reason.value})")
        return DispatchResult(state=DispatchState.EXECUTED, command=command, reason=decision.reason.value)


__all__ = [
    "Dispatcher",
    "CommandBody",
    "scope_permitted",
]
