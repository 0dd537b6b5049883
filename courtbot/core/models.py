"""
CourtBot - Domain Models
========================

Value types shared by the store, the admission pipeline and the handlers.

DESIGN:
    Everything here is a frozen dataclass or an Enum. The mutable tables of
    the pipeline live inside their owning component; anything that crosses
    a component boundary is immutable.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from courtbot.core.constants import COOLDOWN_FORGET_FACTOR


# =============================================================================
# Scopes
# =============================================================================

@dataclass(frozen=True)
class Scope:
    """A conversation context: a group or a direct channel."""

    id: str
    is_group: bool

    @classmethod
    def group(cls, scope_id: str) -> "Scope":
        return cls(id=str(scope_id), is_group=True)

    @classmethod
    def direct(cls, scope_id: str) -> "Scope":
        return cls(id=str(scope_id), is_group=False)


# =============================================================================
# Durable Records
# =============================================================================

@dataclass(frozen=True)
class AdminGrant:
    """An actor's administrative privilege within a scope."""

    scope_id: str
    actor_id: str
    granted_by: str
    granted_at: float


@dataclass(frozen=True)
class SpecialPermission:
    """Explicit allow/deny override for one (scope, actor, command)."""

    scope_id: str
    actor_id: str
    command: str
    allowed: bool
    granted_by: str
    granted_at: float
    expires_at: Optional[float] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (time.time() if now is None else now)


@dataclass(frozen=True)
class SilenceRecord:
    """Moderation record suppressing an actor in a scope. No expiry means permanent."""

    scope_id: str
    actor_id: str
    silenced_by: str
    created_at: float
    expires_at: Optional[float] = None

    @property
    def is_permanent(self) -> bool:
        return self.expires_at is None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (time.time() if now is None else now)


@dataclass(frozen=True)
class AuditRecord:
    """Immutable trace of one dispatch decision. Arguments are already redacted."""

    actor_id: str
    scope_id: str
    command: str
    arguments: Tuple[str, ...]
    success: bool
    reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


# =============================================================================
# Ephemeral Entries
# =============================================================================

@dataclass(frozen=True)
class CacheEntry:
    """A cached boolean predicate with its own expiry (monotonic clock)."""

    value: bool
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class RateWindow:
    """Per-actor fixed window counter."""

    count: int
    window_start: float


@dataclass(frozen=True)
class CooldownEntry:
    """Last use of one command by one actor."""

    last_used: float
    cooldown_seconds: float

    def remaining(self, now: float) -> float:
        return max(0.0, self.last_used + self.cooldown_seconds - now)

    @property
    def forget_at(self) -> float:
        return self.last_used + COOLDOWN_FORGET_FACTOR * self.cooldown_seconds


# =============================================================================
# Command Configuration
# =============================================================================

@dataclass(frozen=True)
class CommandConfig:
    """
    Per-command admission settings.

    Attributes:
        require_admin: Whether the command needs group admin privilege.
        enabled: Global on/off switch.
        allowed_scopes: Group scopes the command may run in. Empty means
            everywhere unless the scope lock is on.
        cooldown_seconds: Per-actor reuse delay, 0 for none.
        master_only: Only the master actor may run the command, whatever
            its admin grants or special permissions say.
    """

    require_admin: bool = False
    enabled: bool = True
    allowed_scopes: FrozenSet[str] = frozenset()
    cooldown_seconds: float = 0
    master_only: bool = False


@dataclass(frozen=True)
class CommandDescriptor:
    """A registered command, keyed by its canonical name."""

    name: str
    config: CommandConfig
    aliases: Tuple[str, ...] = ()
    description: str = ""
    category: str = "basic"
    usage: str = ""
    min_args: int = 0
    max_args: Optional[int] = None

    def accepts_arg_count(self, count: int) -> bool:
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args


# =============================================================================
# Decisions
# =============================================================================

class AuthReason(str, Enum):
    """Why the resolver reached its verdict."""

    MASTER = "master"
    MASTER_ONLY = "master_only"
    SPECIAL_GRANT = "special_grant"
    SPECIAL_DENY = "special_deny"
    PUBLIC = "public"
    GROUP_ADMIN = "group_admin"
    NOT_GROUP_ADMIN = "not_group_admin"
    ADMIN_OUTSIDE_GROUP = "admin_outside_group"
    STORE_UNAVAILABLE = "store_unavailable"
    DEFAULT = "default"


@dataclass(frozen=True)
class AuthDecision:
    allowed: bool
    reason: AuthReason


class DispatchState(str, Enum):
    """Terminal states of one inbound event."""

    EXECUTED = "executed"
    DENIED = "denied"
    THROTTLED = "throttled"
    ERRORED = "errored"
    SUPPRESSED = "suppressed"


# Denial and throttle reasons reported by the dispatcher
REASON_RATE_LIMITED = "rate limited"
REASON_SCOPE_NOT_PERMITTED = "scope not permitted"
REASON_DISABLED = "disabled"
REASON_COOLDOWN = "cooldown"
REASON_SILENCED = "silenced"

# Refusals raised by command bodies through CommandRejected
REASON_INVALID_USAGE = "invalid usage"
REASON_GROUP_ONLY = "group only"
REASON_PROTECTED_ACTOR = "protected actor"


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of Dispatcher.handle().

    Attributes:
        detail: Reply text supplied by a command body that refused the
            request, None otherwise.
    """

    state: DispatchState
    command: str
    reason: Optional[str] = None
    retry_after: int = 0
    error: Optional[BaseException] = None
    detail: Optional[str] = None

    @property
    def executed(self) -> bool:
        return self.state is DispatchState.EXECUTED


# =============================================================================
# Inbound Messages
# =============================================================================

@dataclass(frozen=True)
class InboundMessage:
    """Transport-neutral view of one chat message."""

    actor_id: str
    scope: Scope
    text: str
    from_self: bool = False


__all__ = [
    "Scope",
    "AdminGrant",
    "SpecialPermission",
    "SilenceRecord",
    "AuditRecord",
    "CacheEntry",
    "RateWindow",
    "CooldownEntry",
    "CommandConfig",
    "CommandDescriptor",
    "AuthReason",
    "AuthDecision",
    "DispatchState",
    "DispatchResult",
    "InboundMessage",
    "REASON_RATE_LIMITED",
    "REASON_SCOPE_NOT_PERMITTED",
    "REASON_DISABLED",
    "REASON_COOLDOWN",
    "REASON_SILENCED",
    "REASON_INVALID_USAGE",
    "REASON_GROUP_ONLY",
    "REASON_PROTECTED_ACTOR",
]
