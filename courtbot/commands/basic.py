"""
CourtBot - Basic Commands
=========================

Commands open to everyone: ping, dados, ajuda. Plus status for admins.
"""

from typing import Callable, List, Tuple

from courtbot.commands.context import CommandContext
from courtbot.core.models import CommandConfig, CommandDescriptor
from courtbot.pipeline.dispatcher import scope_permitted
from courtbot.utils.async_utils import call_blocking
from courtbot.utils.metrics import metrics


# =============================================================================
# Command Bodies
# =============================================================================

async def ping(ctx: CommandContext) -> None:
    await ctx.reply("🏓 Pong!")


async def dados(ctx: CommandContext) -> None:
    """Show what the bot knows about the caller in this scope."""
    cache = ctx.runtime.cache
    lines = [
        "📋 **Info**",
        f"• Actor: `{ctx.actor_id}`",
        f"• Scope: `{ctx.scope.id}` ({'group' if ctx.scope.is_group else 'direct'})",
    ]
    if ctx.is_master:
        lines.append("• Role: master")
    elif ctx.scope.is_group:
        is_admin = await cache.is_group_admin(ctx.scope.id, ctx.actor_id)
        lines.append(f"• Role: {'admin' if is_admin else 'member'}")
    await ctx.reply("\n".join(lines))


async def ajuda(ctx: CommandContext) -> None:
    """List the commands the caller can run here."""
    runtime = ctx.runtime
    snapshot = runtime.command_settings.snapshot()
    prefix = runtime.registry.prefix

    can_admin = ctx.is_master
    if not can_admin and ctx.scope.is_group:
        can_admin = await runtime.cache.is_group_admin(ctx.scope.id, ctx.actor_id)

    visible: List[str] = []
    for descriptor in runtime.registry.descriptors():
        config = snapshot.get(descriptor.name)
        if config is None or not config.enabled:
            continue
        if not scope_permitted(config, ctx.scope, snapshot.scope_lock):
            continue
        if config.master_only and not ctx.is_master:
            continue
        if config.require_admin and not can_admin:
            continue
        line = f"• `{prefix}{descriptor.name}`"
        if descriptor.description:
            line += f" - {descriptor.description}"
        visible.append(line)

    if not visible:
        await ctx.reply("No commands available here.")
        return
    await ctx.reply("📖 **Commands**\n" + "\n".join(visible))


async def status(ctx: CommandContext) -> None:
    """Pipeline counters, cache state and audit totals."""
    runtime = ctx.runtime
    summary = metrics.get_summary()
    counters = summary["counters"]
    cache_stats = runtime.cache.stats()
    audit_totals = await call_blocking(
        "count_audit_records", runtime.db.count_audit_records,
        timeout=runtime.settings.store_timeout_seconds,
    )
    uptime_min = int(summary["uptime_seconds"] // 60)

    lines = [
        "📊 **Status**",
        f"• Uptime: {uptime_min} min",
        f"• Executed: {counters.get('dispatch.executed', 0)}",
        f"• Denied: {counters.get('dispatch.denied', 0)}",
        f"• Throttled: {counters.get('dispatch.throttled', 0) + counters.get('dispatch.rate_limited', 0)}",
        f"• Errored: {counters.get('dispatch.errored', 0)}",
        f"• Suppressed: {counters.get('messages.suppressed', 0)}",
        f"• Cache: {cache_stats['hits']} hits / {cache_stats['misses']} misses",
        f"• Tracked: {len(runtime.rate_limiter)} rate windows, {len(runtime.cooldowns)} cooldowns",
        f"• Audit: {audit_totals['total']} records, {audit_totals['failures']} refused or failed",
    ]
    await ctx.reply("\n".join(lines))


# =============================================================================
# Descriptors
# =============================================================================

def basic_commands() -> List[Tuple[CommandDescriptor, Callable]]:
    """(descriptor, body) pairs for the basic commands."""
    return [
        (CommandDescriptor(
            name="ping",
            config=CommandConfig(cooldown_seconds=1),
            description="Check the bot is alive",
        ), ping),
        (CommandDescriptor(
            name="dados",
            config=CommandConfig(cooldown_seconds=2),
            aliases=("info",),
            description="Your info in this chat",
        ), dados),
        (CommandDescriptor(
            name="ajuda",
            config=CommandConfig(cooldown_seconds=3),
            aliases=("help", "comandos", "?"),
            description="List available commands",
        ), ajuda),
        (CommandDescriptor(
            name="status",
            config=CommandConfig(require_admin=True, cooldown_seconds=5),
            description="Pipeline statistics",
            category="admin",
        ), status),
    ]


__all__ = [
    "basic_commands",
]
