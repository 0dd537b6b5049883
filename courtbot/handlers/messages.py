"""
CourtBot - Message Handler
==========================

Entry point for every inbound chat message.

DESIGN:
    Silencing is checked before anything is parsed: a silenced actor's
    message in a group is deleted and dropped whatever it contains, and
    it never reaches the rate limiter, the resolver or the audit log.
    The master actor is never silenced.

    The handler is transport-neutral. It receives an InboundMessage and a
    ReplyChannel; the discord adapter in courtbot.bot builds both.

    Flow:
        own/empty message          -> ignored
        silenced in group          -> SUPPRESSED
        no prefix / unknown name   -> ignored
        otherwise                  -> Dispatcher.handle() + reply

    A wrong argument count is a refusal raised from inside the body, so it
    is audited as DENIED and does not use up the cooldown.
"""

from typing import TYPE_CHECKING, Optional

from courtbot.commands.context import CommandContext, ReplyChannel
from courtbot.core.logger import logger
from courtbot.core.models import (
    REASON_COOLDOWN,
    REASON_DISABLED,
    REASON_SCOPE_NOT_PERMITTED,
    REASON_SILENCED,
    AuthReason,
    DispatchResult,
    DispatchState,
    InboundMessage,
)
from courtbot.utils.metrics import metrics

if TYPE_CHECKING:
    from courtbot.runtime import CourtRuntime


DENIAL_REPLIES = {
    REASON_SCOPE_NOT_PERMITTED: "⛔ This command is not permitted in this chat.",
    REASON_DISABLED: "⛔ This command is disabled.",
    AuthReason.MASTER_ONLY.value: "⛔ Only the bot master can use this command.",
    AuthReason.STORE_UNAVAILABLE.value: "⚠️ Permissions are unavailable right now, try again later.",
    AuthReason.ADMIN_OUTSIDE_GROUP.value: "⛔ Admin commands only work in groups.",
}
DEFAULT_DENIAL_REPLY = "⛔ You don't have permission to use this command."


class MessageHandler:
    """Routes inbound messages through silencing and the dispatcher."""

    def __init__(self, runtime: "CourtRuntime") -> None:
        self.runtime = runtime

    async def _send(self, channel: ReplyChannel, text: str) -> None:
        try:
            await channel.send(text)
        except Exception as e:
            logger.warning("Reply Failed", [
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])

    async def _suppress(self, message: InboundMessage, channel: ReplyChannel) -> DispatchResult:
        metrics.increment("messages.suppressed")
        logger.tree("Message Suppressed", [
            ("Actor", message.actor_id),
            ("Scope", message.scope.id),
        ], emoji="🔇")
        try:
            await channel.delete_message()
        except Exception as e:
            logger.warning("Silenced Message Not Deleted", [
                ("Actor", message.actor_id),
                ("Scope", message.scope.id),
                ("Error", str(e)[:100]),
            ])
        return DispatchResult(state=DispatchState.SUPPRESSED, command="", reason=REASON_SILENCED)

    async def handle(self, message: InboundMessage, channel: ReplyChannel) -> Optional[DispatchResult]:
        """
        Process one inbound message.

        Returns:
            The dispatch outcome, or None when the message was not a command.
        """
        if message.from_self or not message.text.strip():
            return None

        runtime = self.runtime
        scope = message.scope
        is_master = message.actor_id == runtime.settings.master_actor_id

        if scope.is_group and not is_master:
            if await runtime.cache.is_silenced(scope.id, message.actor_id):
                return await self._suppress(message, channel)

        prefix = runtime.registry.prefix
        text = message.text.strip()
        if not text.startswith(prefix):
            return None

        parts = text[len(prefix):].split()
        if not parts:
            return None
        descriptor = runtime.registry.resolve(parts[0])
        if descriptor is None:
            logger.debug(f"Unknown command ignored: {parts[0]}")
            return None

        args = tuple(parts[1:])
        snapshot = runtime.command_settings.snapshot()
        body_handler = runtime.registry.handler(descriptor.name)
        ctx = CommandContext(
            message=message,
            args=args,
            descriptor=descriptor,
            channel=channel,
            runtime=runtime,
        )

        async def body() -> None:
            if not descriptor.accepts_arg_count(len(args)):
                raise ctx.usage_error()
            if body_handler is not None:
                await body_handler(ctx)

        result = await runtime.dispatcher.handle(
            message.actor_id,
            scope,
            descriptor.name,
            snapshot.get(descriptor.name),
            body,
            args=args,
            scope_lock=snapshot.scope_lock,
        )
        await self._report(result, channel)
        return result

    async def _report(self, result: DispatchResult, channel: ReplyChannel) -> None:
        """Tell the sender why a command did not run."""
        if result.state is DispatchState.THROTTLED:
            if result.reason == REASON_COOLDOWN:
                await self._send(channel, f"⏳ Wait {result.retry_after}s before using this command again.")
            # Rate-limited senders get no reply, replies would amplify the flood
            return

        if result.state is DispatchState.DENIED:
            await self._send(channel, result.detail or DENIAL_REPLIES.get(result.reason, DEFAULT_DENIAL_REPLY))
            return

        if result.state is DispatchState.ERRORED:
            await self._send(channel, "❌ Something went wrong while running this command.")


__all__ = [
    "MessageHandler",
    "DENIAL_REPLIES",
]
