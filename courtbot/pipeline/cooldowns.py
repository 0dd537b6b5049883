"""
CourtBot - Cooldown Tracker
===========================

Per (actor, command) reuse delay.

DESIGN:
    Keyed per command, so a long cooldown on one command never blocks an
    unrelated command of the same actor. Entries carry their own timestamp
    and are forgotten lazily once twice their cooldown has passed; sweep()
    exists only to bound memory for actors that never come back.

    try_acquire() is the check-and-register the dispatcher uses. It holds
    the lock across both steps so two near-simultaneous commands from one
    actor cannot both pass.
"""

import math
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from courtbot.core.models import CooldownEntry


class CooldownTracker:
    """Per-actor, per-command cooldown table."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[Tuple[str, str], CooldownEntry] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Queries
    # =========================================================================

    def _remaining_locked(self, key: Tuple[str, str], now: float) -> int:
        entry = self._entries.get(key)
        if entry is None:
            return 0
        if now >= entry.forget_at:
            del self._entries[key]
            return 0
        return math.ceil(entry.remaining(now))

    def seconds_remaining(self, actor_id: str, command: str) -> int:
        """
        Whole seconds until the actor may use the command again.

        Returns:
            0 when the command is clear, otherwise the remaining time rounded up.
        """
        now = self._clock()
        with self._lock:
            return self._remaining_locked((actor_id, command), now)

    # =========================================================================
    # Mutations
    # =========================================================================

    def register_use(self, actor_id: str, command: str, cooldown_seconds: float) -> None:
        """Record a use now. A zero cooldown records nothing."""
        if cooldown_seconds <= 0:
            return
        now = self._clock()
        with self._lock:
            self._entries[(actor_id, command)] = CooldownEntry(
                last_used=now,
                cooldown_seconds=cooldown_seconds,
            )

    def try_acquire(self, actor_id: str, command: str, cooldown_seconds: float) -> int:
        """
        Register a use if the command is clear.

        Returns:
            0 if the use was registered (or the command has no cooldown),
            otherwise the seconds remaining and nothing is registered.
        """
        if cooldown_seconds <= 0:
            return 0
        key = (actor_id, command)
        now = self._clock()
        with self._lock:
            remaining = self._remaining_locked(key, now)
            if remaining > 0:
                return remaining
            self._entries[key] = CooldownEntry(last_used=now, cooldown_seconds=cooldown_seconds)
            return 0

    def clear(self, actor_id: str, command: Optional[str] = None) -> int:
        """
        Remove one cooldown, or all of an actor's cooldowns.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if command is not None:
                return 1 if self._entries.pop((actor_id, command), None) else 0
            keys = [key for key in self._entries if key[0] == actor_id]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def sweep(self) -> int:
        """Drop entries past their forget time. Returns the number removed."""
        now = self._clock()
        with self._lock:
            stale = [key for key, entry in self._entries.items() if now >= entry.forget_at]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "CooldownTracker",
]
