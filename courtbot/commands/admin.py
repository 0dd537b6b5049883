"""
CourtBot - Admin Commands
=========================

Moderation and configuration commands.

DESIGN:
    Every state change goes through ModerationService or CommandSettings,
    never the database directly, so cache invalidation and persistence
    cannot be skipped.

    A body that cannot act raises CommandRejected (bad arguments, a group
    command used in a direct chat, a change touching the master). The
    dispatcher audits that as DENIED and gives the cooldown back.

    Commands that change global configuration (comando, escopo, travar)
    are master_only; the resolver turns everyone else away before the
    body runs.
"""

from datetime import datetime
from typing import Callable, List, Optional, Tuple

from courtbot.commands.context import CommandContext, parse_actor
from courtbot.core.errors import CommandRejected, ConfigMissing, InvariantViolation
from courtbot.core.logger import LOCAL_TZ
from courtbot.core.models import (
    REASON_GROUP_ONLY,
    REASON_INVALID_USAGE,
    REASON_PROTECTED_ACTOR,
    CommandConfig,
    CommandDescriptor,
)


# =============================================================================
# Helpers
# =============================================================================

def _require_group(ctx: CommandContext) -> None:
    if not ctx.scope.is_group:
        raise CommandRejected(REASON_GROUP_ONLY, "⚠️ This command only works in groups.")


def _require_actor(ctx: CommandContext, raw: str) -> str:
    target = parse_actor(raw)
    if target is None:
        raise ctx.usage_error()
    return target


def _parse_minutes(ctx: CommandContext, raw: str) -> int:
    try:
        minutes = int(raw)
    except ValueError:
        raise ctx.usage_error() from None
    if minutes <= 0:
        raise ctx.usage_error()
    return minutes


def _format_ts(ts: Optional[float]) -> str:
    if ts is None:
        return "permanent"
    return datetime.fromtimestamp(ts, LOCAL_TZ).strftime("%d/%m %H:%M")


def _unknown_commands(names: List[str]) -> CommandRejected:
    return CommandRejected(
        REASON_INVALID_USAGE, "⚠️ Unknown command(s): " + ", ".join(f"`{n}`" for n in names)
    )


def _resolve_commands(ctx: CommandContext, raw: str) -> List[str]:
    """Split "a,b,c" into canonical names. Unknown names are refused."""
    known, unknown = [], []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        descriptor = ctx.runtime.registry.resolve(part)
        if descriptor is None:
            unknown.append(part)
        elif descriptor.name not in known:
            known.append(descriptor.name)
    if unknown:
        raise _unknown_commands(unknown)
    if not known:
        raise ctx.usage_error()
    return known


# =============================================================================
# Silencing
# =============================================================================

async def silenciar(ctx: CommandContext) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0])
    minutes = _parse_minutes(ctx, ctx.args[1]) if len(ctx.args) > 1 else None

    try:
        record = await ctx.runtime.moderation.silence(ctx.scope.id, target, ctx.actor_id, minutes)
    except InvariantViolation:
        raise CommandRejected(REASON_PROTECTED_ACTOR, "⛔ The bot master cannot be silenced.") from None

    until = "permanently" if record.is_permanent else f"until {_format_ts(record.expires_at)}"
    await ctx.reply(f"🔇 `{target}` silenced {until}.")


async def liberar(ctx: CommandContext) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0])
    if await ctx.runtime.moderation.unsilence(ctx.scope.id, target):
        await ctx.reply(f"🔊 `{target}` can talk again.")
    else:
        await ctx.reply(f"ℹ️ `{target}` was not silenced.")


async def liberartodos(ctx: CommandContext) -> None:
    _require_group(ctx)
    released = await ctx.runtime.moderation.unsilence_all(ctx.scope.id)
    await ctx.reply(f"🔊 Released {len(released)} silenced member(s).")


async def silenciados(ctx: CommandContext) -> None:
    _require_group(ctx)
    records = await ctx.runtime.moderation.list_silences(ctx.scope.id)
    if not records:
        await ctx.reply("Nobody is silenced here.")
        return
    lines = [f"• `{r.actor_id}` by `{r.silenced_by}` ({_format_ts(r.expires_at)})" for r in records]
    await ctx.reply("🔇 **Silenced**\n" + "\n".join(lines))


# =============================================================================
# Admins
# =============================================================================

async def addadm(ctx: CommandContext) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0])
    try:
        added = await ctx.runtime.moderation.grant_admin(ctx.scope.id, target, ctx.actor_id)
    except InvariantViolation:
        raise CommandRejected(REASON_PROTECTED_ACTOR, "ℹ️ The bot master is already admin everywhere.") from None
    await ctx.reply(f"🛡️ `{target}` is now admin." if added else f"ℹ️ `{target}` already is admin.")


async def deladm(ctx: CommandContext) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0])
    try:
        removed = await ctx.runtime.moderation.revoke_admin(ctx.scope.id, target)
    except InvariantViolation:
        raise CommandRejected(REASON_PROTECTED_ACTOR, "⛔ The bot master cannot be removed.") from None
    await ctx.reply(f"🛡️ `{target}` is no longer admin." if removed else f"ℹ️ `{target}` was not admin.")


async def listaadm(ctx: CommandContext) -> None:
    _require_group(ctx)
    master = ctx.runtime.settings.master_actor_id
    grants = await ctx.runtime.moderation.list_admins(ctx.scope.id)
    lines = [
        f"• `{g.actor_id}`" + (" (master)" if g.actor_id == master else "")
        for g in grants
    ]
    await ctx.reply("🛡️ **Admins**\n" + "\n".join(lines) if lines else "No admins here.")


# =============================================================================
# Special Permissions
# =============================================================================

async def _set_permissions(ctx: CommandContext, allowed: bool) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0])
    commands = _resolve_commands(ctx, ctx.args[1])
    minutes = _parse_minutes(ctx, ctx.args[2]) if len(ctx.args) > 2 else None

    try:
        for command in commands:
            await ctx.runtime.moderation.grant_special_permission(
                ctx.scope.id, target, command, ctx.actor_id, allowed=allowed, duration_minutes=minutes,
            )
    except InvariantViolation:
        raise CommandRejected(REASON_PROTECTED_ACTOR, "⛔ The bot master needs no permissions.") from None

    verb = "allowed" if allowed else "denied"
    until = f" for {minutes} min" if minutes else ""
    await ctx.reply(f"🔑 `{target}` {verb}{until}: " + ", ".join(f"`{c}`" for c in commands))


async def addpermissao(ctx: CommandContext) -> None:
    await _set_permissions(ctx, allowed=True)


async def negarpermissao(ctx: CommandContext) -> None:
    await _set_permissions(ctx, allowed=False)


async def delpermissao(ctx: CommandContext) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0])

    moderation = ctx.runtime.moderation
    if len(ctx.args) < 2:
        removed = await moderation.revoke_special_permission(ctx.scope.id, target)
    else:
        removed = 0
        for command in _resolve_commands(ctx, ctx.args[1]):
            removed += await moderation.revoke_special_permission(ctx.scope.id, target, command)
    await ctx.reply(f"🔑 Removed {removed} permission(s) from `{target}`.")


async def listpermissao(ctx: CommandContext) -> None:
    _require_group(ctx)
    target = _require_actor(ctx, ctx.args[0]) if ctx.args else None
    permissions = await ctx.runtime.moderation.list_special_permissions(ctx.scope.id, target)
    if not permissions:
        await ctx.reply("No special permissions here.")
        return
    lines = [
        f"• `{p.actor_id}` {'✅' if p.allowed else '⛔'} `{p.command}` ({_format_ts(p.expires_at)})"
        for p in permissions
    ]
    await ctx.reply("🔑 **Special permissions**\n" + "\n".join(lines))


# =============================================================================
# Audit
# =============================================================================

async def historico(ctx: CommandContext) -> None:
    target = _require_actor(ctx, ctx.args[0])
    scope_id = ctx.scope.id if ctx.scope.is_group else None
    records = await ctx.runtime.audit.history(target, scope_id, limit=10)
    if not records:
        await ctx.reply(f"No history for `{target}`.")
        return
    lines = [
        f"• {_format_ts(r.timestamp)} `{r.command}` {'✅' if r.success else '❌ ' + (r.reason or '')}".rstrip()
        for r in records
    ]
    await ctx.reply(f"📜 **History of `{target}`**\n" + "\n".join(lines))


# =============================================================================
# Runtime Configuration
# =============================================================================

async def comando(ctx: CommandContext) -> None:
    """Enable or disable a command everywhere, or drop its overrides."""
    state = ctx.args[1].lower()
    settings = ctx.runtime.command_settings
    try:
        if state == "reset":
            name, removed = settings.reset(ctx.args[0])
            await ctx.reply(f"⚙️ `{name}` back to defaults." if removed else f"ℹ️ `{name}` had no overrides.")
            return
        if state not in ("on", "off"):
            raise ctx.usage_error()
        name = settings.set_enabled(ctx.args[0], state == "on")
    except ConfigMissing:
        raise _unknown_commands([ctx.args[0]]) from None
    await ctx.reply(f"⚙️ `{name}` {'enabled' if state == 'on' else 'disabled'}.")


async def escopo(ctx: CommandContext) -> None:
    """Restrict a command to this group, or open it everywhere again."""
    settings = ctx.runtime.command_settings
    action = ctx.args[1].lower()
    descriptor = ctx.runtime.registry.resolve(ctx.args[0])
    if descriptor is None:
        raise _unknown_commands([ctx.args[0]])

    current = set(settings.snapshot().get(descriptor.name).allowed_scopes)
    if action == "add" and ctx.scope.is_group:
        current.add(ctx.scope.id)
    elif action == "remove" and ctx.scope.is_group:
        current.discard(ctx.scope.id)
    elif action == "clear":
        current = set()
    else:
        raise ctx.usage_error()

    settings.set_allowed_scopes(descriptor.name, current)
    where = f"{len(current)} group(s)" if current else "all groups"
    await ctx.reply(f"⚙️ `{descriptor.name}` allowed in {where}.")


async def travar(ctx: CommandContext) -> None:
    """Turn the global scope lock on or off."""
    state = ctx.args[0].lower()
    if state not in ("on", "off"):
        raise ctx.usage_error()
    ctx.runtime.command_settings.set_scope_lock(state == "on")
    await ctx.reply(f"🔒 Scope lock {'on' if state == 'on' else 'off'}.")


# =============================================================================
# Descriptors
# =============================================================================

def admin_commands(restricted_scopes: frozenset = frozenset()) -> List[Tuple[CommandDescriptor, Callable]]:
    """
    (descriptor, body) pairs for the admin commands.

    Args:
        restricted_scopes: Default allow-list for moderation commands.
            Empty means every group.
    """
    def moderation(cooldown: float) -> CommandConfig:
        return CommandConfig(require_admin=True, allowed_scopes=restricted_scopes, cooldown_seconds=cooldown)

    admin = CommandConfig(require_admin=True, cooldown_seconds=3)
    system = CommandConfig(require_admin=True, master_only=True, cooldown_seconds=2)

    return [
        (CommandDescriptor("silenciar", moderation(2), aliases=("mute",), description="Silence a member",
                           category="moderation", usage="<actor> [minutes]", min_args=1, max_args=2), silenciar),
        (CommandDescriptor("liberar", moderation(2), aliases=("unmute", "unsilenciar"), description="Lift a silence",
                           category="moderation", usage="<actor>", min_args=1, max_args=1), liberar),
        (CommandDescriptor("liberartodos", moderation(10), aliases=("unmuteall",), description="Lift every silence here",
                           category="moderation", max_args=0), liberartodos),
        (CommandDescriptor("silenciados", moderation(3), aliases=("muted",), description="List silenced members",
                           category="moderation", max_args=0), silenciados),
        (CommandDescriptor("addadm", moderation(5), aliases=("addadmin",), description="Grant admin",
                           category="system", usage="<actor>", min_args=1, max_args=1), addadm),
        (CommandDescriptor("deladm", moderation(5), aliases=("removeadmin",), description="Revoke admin",
                           category="system", usage="<actor>", min_args=1, max_args=1), deladm),
        (CommandDescriptor("listaadm", admin, aliases=("admins",), description="List admins",
                           category="system", max_args=0), listaadm),
        (CommandDescriptor("addpermissao", admin, aliases=("grantperm", "addperm"),
                           description="Allow commands for a member", category="admin",
                           usage="<actor> <cmd,cmd> [minutes]", min_args=2, max_args=3), addpermissao),
        (CommandDescriptor("negarpermissao", admin, aliases=("denyperm",),
                           description="Deny commands for a member", category="admin",
                           usage="<actor> <cmd,cmd> [minutes]", min_args=2, max_args=3), negarpermissao),
        (CommandDescriptor("delpermissao", admin, aliases=("revokeperm", "delperm"),
                           description="Remove special permissions", category="admin",
                           usage="<actor> [cmd,cmd]", min_args=1, max_args=2), delpermissao),
        (CommandDescriptor("listpermissao", admin, aliases=("listperm",),
                           description="List special permissions", category="admin",
                           usage="[actor]", max_args=1), listpermissao),
        (CommandDescriptor("historico", CommandConfig(require_admin=True, cooldown_seconds=5), aliases=("history",),
                           description="Recent commands of a member", category="admin",
                           usage="<actor>", min_args=1, max_args=1), historico),
        (CommandDescriptor("comando", system, aliases=("toggle",), description="Enable or disable a command",
                           category="system", usage="<command> on|off|reset", min_args=2, max_args=2), comando),
        (CommandDescriptor("escopo", system, aliases=("scope",), description="Restrict a command to groups",
                           category="system", usage="<command> add|remove|clear", min_args=2, max_args=2), escopo),
        (CommandDescriptor("travar", system, aliases=("lockdown",), description="Toggle the global scope lock",
                           category="system", usage="on|off", min_args=1, max_args=1), travar),
    ]


__all__ = [
    "admin_commands",
]
