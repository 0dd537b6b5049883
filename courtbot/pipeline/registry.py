"""
CourtBot - Command Registry & Runtime Settings
==============================================

Canonical command descriptors, alias resolution, and the runtime toggles
that produce per-dispatch configuration snapshots.

DESIGN:
    Aliases are resolved once, at registration, into a flat lookup table.
    Dispatch never re-resolves them.

    Runtime toggles (enabled flag, allowed scopes, scope lock) are changed
    only through CommandSettings. Each change rebuilds an immutable
    ConfigSnapshot; handlers take the current snapshot and pass it into
    the dispatcher, so a toggle landing mid-dispatch cannot change the
    configuration a running decision sees.

    Overrides are persisted in bot_state so they survive restarts. Once
    the last override is reset the key is removed again.
"""

import threading
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Union

from courtbot.core.errors import ConfigMissing
from courtbot.core.logger import logger
from courtbot.core.models import CommandConfig, CommandDescriptor


CommandHandler = Callable[..., Union[Awaitable[Any], Any]]

STATE_KEY_OVERRIDES = "command_overrides"
STATE_KEY_SCOPE_LOCK = "scope_lock"


def normalize_name(name: str, prefix: str = "!") -> str:
    """Lower-case a command name and strip the prefix ("!Ping" -> "ping")."""
    name = name.strip().lower()
    if prefix and name.startswith(prefix):
        name = name[len(prefix):]
    return name


# =============================================================================
# Registry
# =============================================================================

class CommandRegistry:
    """Descriptors keyed by canonical name, with aliases pre-resolved."""

    def __init__(self, prefix: str = "!") -> None:
        self.prefix = prefix
        self._descriptors: Dict[str, CommandDescriptor] = {}
        self._handlers: Dict[str, CommandHandler] = {}
        self._lookup: Dict[str, str] = {}

    def register(self, descriptor: CommandDescriptor, handler: Optional[CommandHandler] = None) -> bool:
        """
        Register a command and its aliases.

        Returns:
            False (and nothing is registered) if the name or any alias is taken.
        """
        name = normalize_name(descriptor.name, self.prefix)
        aliases = tuple(normalize_name(a, self.prefix) for a in descriptor.aliases)

        clashes = [key for key in (name, *aliases) if key in self._lookup]
        if clashes or len(set(aliases)) != len(aliases) or name in aliases:
            logger.warning("Command Registration Rejected", [
                ("Command", name),
                ("Clashes", ", ".join(clashes) if clashes else "duplicate alias"),
            ])
            return False

        descriptor = replace(descriptor, name=name, aliases=aliases)
        self._descriptors[name] = descriptor
        if handler is not None:
            self._handlers[name] = handler
        self._lookup[name] = name
        for alias in aliases:
            self._lookup[alias] = name
        return True

    def resolve(self, name_or_alias: str) -> Optional[CommandDescriptor]:
        """Find the descriptor for a name or alias, prefix and case ignored."""
        canonical = self._lookup.get(normalize_name(name_or_alias, self.prefix))
        return self._descriptors.get(canonical) if canonical else None

    def get(self, name: str) -> Optional[CommandDescriptor]:
        """Find a descriptor by canonical name only."""
        return self._descriptors.get(name)

    def handler(self, name: str) -> Optional[CommandHandler]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return sorted(self._descriptors)

    def descriptors(self) -> List[CommandDescriptor]:
        return [self._descriptors[name] for name in self.names()]

    def __contains__(self, name_or_alias: str) -> bool:
        return self.resolve(name_or_alias) is not None

    def __len__(self) -> int:
        return len(self._descriptors)


# =============================================================================
# Snapshot
# =============================================================================

@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of every command's configuration at one point in time."""

    commands: Mapping[str, CommandConfig]
    scope_lock: bool = False
    version: int = 0

    def get(self, name: str) -> Optional[CommandConfig]:
        return self.commands.get(name)


# =============================================================================
# Runtime Settings
# =============================================================================

class StateStore(Protocol):
    def get_bot_state(self, key: str, default: Any = None) -> Any: ...

    def set_bot_state(self, key: str, value: Any) -> None: ...

    def delete_bot_state(self, key: str) -> None: ...


class CommandSettings:
    """
    The only mutation API for command configuration at runtime.

    Attributes:
        registry: Registry holding the base configuration.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        state: Optional[StateStore] = None,
        scope_lock: bool = False,
    ) -> None:
        self.registry = registry
        self._state = state
        self._lock = threading.Lock()
        self._overrides: Dict[str, Dict[str, Any]] = {}
        self._scope_lock = scope_lock
        self._version = 0
        self._snapshot = self._build()

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Apply overrides persisted by a previous run."""
        if self._state is None:
            return
        stored = self._state.get_bot_state(STATE_KEY_OVERRIDES, {}) or {}
        scope_lock = self._state.get_bot_state(STATE_KEY_SCOPE_LOCK, self._scope_lock)
        with self._lock:
            self._overrides = {
                name: dict(values) for name, values in stored.items()
                if self.registry.get(name) is not None
            }
            self._scope_lock = bool(scope_lock)
            self._rebuild_locked()
        logger.tree("Command Settings Loaded", [
            ("Overrides", str(len(self._overrides))),
            ("Scope Lock", "On" if self._scope_lock else "Off"),
        ], emoji="⚙️")

    def _persist_locked(self) -> None:
        if self._state is None:
            return
        if self._overrides:
            self._state.set_bot_state(STATE_KEY_OVERRIDES, self._overrides)
        else:
            self._state.delete_bot_state(STATE_KEY_OVERRIDES)
        self._state.set_bot_state(STATE_KEY_SCOPE_LOCK, self._scope_lock)

    # =========================================================================
    # Snapshot Construction
    # =========================================================================

    def _build(self) -> ConfigSnapshot:
        commands: Dict[str, CommandConfig] = {}
        for descriptor in self.registry.descriptors():
            config = descriptor.config
            override = self._overrides.get(descriptor.name, {})
            if "enabled" in override:
                config = replace(config, enabled=bool(override["enabled"]))
            if "allowed_scopes" in override:
                config = replace(config, allowed_scopes=frozenset(override["allowed_scopes"]))
            commands[descriptor.name] = config
        return ConfigSnapshot(
            commands=MappingProxyType(commands),
            scope_lock=self._scope_lock,
            version=self._version,
        )

    def _rebuild_locked(self) -> None:
        self._version += 1
        self._snapshot = self._build()

    def snapshot(self) -> ConfigSnapshot:
        """Current immutable configuration."""
        return self._snapshot

    # =========================================================================
    # Toggles
    # =========================================================================

    def _canonical(self, name_or_alias: str) -> str:
        descriptor = self.registry.resolve(name_or_alias)
        if descriptor is None:
            raise ConfigMissing(name_or_alias)
        return descriptor.name

    def set_enabled(self, name_or_alias: str, enabled: bool) -> str:
        """
        Switch a command on or off.

        Returns:
            Canonical name of the command.

        Raises:
            ConfigMissing: If the command is unknown.
        """
        name = self._canonical(name_or_alias)
        with self._lock:
            self._overrides.setdefault(name, {})["enabled"] = enabled
            self._persist_locked()
            self._rebuild_locked()
        logger.tree("Command Toggled", [
            ("Command", name),
            ("Enabled", str(enabled)),
        ], emoji="⚙️")
        return name

    def set_allowed_scopes(self, name_or_alias: str, scopes: Iterable[str]) -> str:
        """
        Replace a command's group allow-list. An empty list means everywhere
        (unless the scope lock is on).

        Raises:
            ConfigMissing: If the command is unknown.
        """
        name = self._canonical(name_or_alias)
        scope_list = sorted({str(s) for s in scopes})
        with self._lock:
            self._overrides.setdefault(name, {})["allowed_scopes"] = scope_list
            self._persist_locked()
            self._rebuild_locked()
        logger.tree("Command Scopes Updated", [
            ("Command", name),
            ("Scopes", ", ".join(scope_list) if scope_list else "All"),
        ], emoji="⚙️")
        return name

    def set_scope_lock(self, locked: bool) -> None:
        """Turn the global scope lock on or off."""
        with self._lock:
            self._scope_lock = locked
            self._persist_locked()
            self._rebuild_locked()
        logger.tree("Scope Lock Changed", [
            ("Locked", str(locked)),
        ], emoji="🔒")

    def reset(self, name_or_alias: str) -> Tuple[str, bool]:
        """
        Drop all overrides of one command.

        Returns:
            (canonical name, whether anything was removed)
        """
        name = self._canonical(name_or_alias)
        with self._lock:
            removed = self._overrides.pop(name, None) is not None
            if removed:
                self._persist_locked()
                self._rebuild_locked()
        return name, removed


__all__ = [
    "CommandRegistry",
    "CommandSettings",
    "CommandHandler",
    "ConfigSnapshot",
    "StateStore",
    "normalize_name",
]
