"""
Tests for courtbot/pipeline/rate_limiter.py

Fixed-window counting per actor.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from courtbot.pipeline.rate_limiter import CommandRateLimiter


class TestCommandRateLimiter:
    """Tests for the fixed-window limiter."""

    def test_allows_up_to_max_then_rejects(self, clock):
        limiter = CommandRateLimiter(max_per_window=3, window_seconds=10, clock=clock)
        assert [limiter.is_allowed("a") for _ in range(3)] == [True, True, True]
        assert limiter.is_allowed("a") is False
        assert limiter.is_allowed("a") is False

    def test_actors_are_independent(self, clock):
        limiter = CommandRateLimiter(max_per_window=1, window_seconds=10, clock=clock)
        assert limiter.is_allowed("a") is True
        assert limiter.is_allowed("a") is False
        assert limiter.is_allowed("b") is True

    def test_window_resets_after_it_elapses(self, clock):
        limiter = CommandRateLimiter(max_per_window=2, window_seconds=10, clock=clock)
        limiter.is_allowed("a")
        limiter.is_allowed("a")
        assert limiter.is_allowed("a") is False

        clock.advance(9.9)
        assert limiter.is_allowed("a") is False

        clock.advance(0.2)
        assert limiter.is_allowed("a") is True

    def test_rejected_calls_still_count(self, clock):
        """Spamming inside a window does not extend it."""
        limiter = CommandRateLimiter(max_per_window=1, window_seconds=10, clock=clock)
        limiter.is_allowed("a")
        for _ in range(5):
            clock.advance(1)
            limiter.is_allowed("a")
        clock.advance(5)
        assert limiter.is_allowed("a") is True

    def test_reset_forgets_actor(self, clock):
        limiter = CommandRateLimiter(max_per_window=1, window_seconds=10, clock=clock)
        limiter.is_allowed("a")
        assert limiter.is_allowed("a") is False
        limiter.reset("a")
        assert limiter.is_allowed("a") is True
        limiter.reset("nobody")

    def test_sweep_drops_finished_windows(self, clock):
        limiter = CommandRateLimiter(max_per_window=5, window_seconds=10, clock=clock)
        limiter.is_allowed("a")
        clock.advance(5)
        limiter.is_allowed("b")
        clock.advance(5)

        assert limiter.sweep() == 1
        assert len(limiter) == 1

    @pytest.mark.parametrize("max_per_window,window", [(0, 10), (5, 0), (5, -1)])
    def test_invalid_arguments(self, max_per_window, window):
        with pytest.raises(ValueError):
            CommandRateLimiter(max_per_window=max_per_window, window_seconds=window)


class TestConcurrentCounting:
    """Calls counted from several threads at once."""

    def test_threads_share_one_window(self, clock):
        limiter = CommandRateLimiter(max_per_window=50, window_seconds=10, clock=clock)
        start = threading.Barrier(8)

        def burst():
            start.wait()
            return [limiter.is_allowed("a") for _ in range(25)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = [allowed for batch in pool.map(lambda _: burst(), range(8)) for allowed in batch]

        assert len(results) == 200
        assert sum(results) == 50
        assert limiter.is_allowed("a") is False
