"""
CourtBot - Command Rate Limiter
===============================

Fixed-window volume control per actor, regardless of which command is sent.

DESIGN:
    Each actor owns one RateWindow (count, window_start). The first call
    after the window has run its full length starts a fresh window. This
    is coarse abuse damping, not fairness: a burst straddling two windows
    can get through twice the ceiling, which is acceptable here.

    The table is guarded by a threading.Lock so it stays consistent when
    the transport delivers events for different scopes concurrently.

Usage:
    limiter = CommandRateLimiter(max_per_window=5, window_seconds=10)

    if not limiter.is_allowed(actor_id):
        return  # Throttled
"""

import threading
import time
from typing import Callable, Dict

from courtbot.core.constants import DEFAULT_RATE_LIMIT_MAX, DEFAULT_RATE_LIMIT_WINDOW
from courtbot.core.logger import logger
from courtbot.core.models import RateWindow


class CommandRateLimiter:
    """
    Fixed-window rate limiter keyed by actor.

    Attributes:
        max_per_window: Calls allowed per window.
        window_seconds: Window length.
    """

    def __init__(
        self,
        max_per_window: int = DEFAULT_RATE_LIMIT_MAX,
        window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_per_window < 1:
            raise ValueError("max_per_window must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def is_allowed(self, actor_id: str) -> bool:
        """
        Count one call for the actor and report whether it is within the ceiling.

        Returns:
            False once the actor has exceeded max_per_window in the current window.
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(actor_id)
            if window is None or now - window.window_start >= self.window_seconds:
                self._windows[actor_id] = RateWindow(count=1, window_start=now)
                return True

            window.count += 1
            allowed = window.count <= self.max_per_window
            first_rejection = window.count == self.max_per_window + 1

        if first_rejection:
            # Later rejections in the same window stay quiet
            logger.tree("Rate Limit Hit", [
                ("Actor", actor_id),
                ("Limit", f"{self.max_per_window}/{self.window_seconds:g}s"),
            ], emoji="🚦")
        return allowed

    def reset(self, actor_id: str) -> None:
        """Forget an actor's window. No-op if none exists."""
        with self._lock:
            self._windows.pop(actor_id, None)

    def sweep(self) -> int:
        """
        Drop windows that have run their full length.

        Returns:
            Number of windows removed.
        """
        now = self._clock()
        with self._lock:
            stale = [
                actor_id for actor_id, window in self._windows.items()
                if now - window.window_start >= self.window_seconds
            ]
            for actor_id in stale:
                del self._windows[actor_id]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


__all__ = [
    "CommandRateLimiter",
]
