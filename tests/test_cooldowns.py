"""
Tests for courtbot/pipeline/cooldowns.py
"""

from courtbot.pipeline.cooldowns import CooldownTracker


class TestCooldownTracker:
    """Tests for per-command cooldowns."""

    def test_unused_command_is_clear(self, clock):
        tracker = CooldownTracker(clock=clock)
        assert tracker.seconds_remaining("a", "ping") == 0

    def test_remaining_is_rounded_up(self, clock):
        tracker = CooldownTracker(clock=clock)
        tracker.register_use("a", "ping", 5)
        assert tracker.seconds_remaining("a", "ping") == 5

        clock.advance(0.5)
        assert tracker.seconds_remaining("a", "ping") == 5

        clock.advance(3.6)
        assert tracker.seconds_remaining("a", "ping") == 1

        clock.advance(1.0)
        assert tracker.seconds_remaining("a", "ping") == 0

    def test_cooldowns_are_per_command(self, clock):
        tracker = CooldownTracker(clock=clock)
        tracker.register_use("a", "ping", 60)
        assert tracker.seconds_remaining("a", "dados") == 0
        assert tracker.seconds_remaining("b", "ping") == 0

    def test_zero_cooldown_records_nothing(self, clock):
        tracker = CooldownTracker(clock=clock)
        tracker.register_use("a", "ping", 0)
        assert len(tracker) == 0
        assert tracker.try_acquire("a", "ping", 0) == 0
        assert tracker.try_acquire("a", "ping", 0) == 0

    def test_try_acquire_claims_once(self, clock):
        tracker = CooldownTracker(clock=clock)
        assert tracker.try_acquire("a", "ping", 3) == 0
        assert tracker.try_acquire("a", "ping", 3) == 3

        clock.advance(3)
        assert tracker.try_acquire("a", "ping", 3) == 0

    def test_rejected_acquire_does_not_restart_cooldown(self, clock):
        tracker = CooldownTracker(clock=clock)
        tracker.try_acquire("a", "ping", 10)
        clock.advance(6)
        assert tracker.try_acquire("a", "ping", 10) == 4
        clock.advance(4)
        assert tracker.try_acquire("a", "ping", 10) == 0

    def test_entries_forgotten_after_twice_the_cooldown(self, clock):
        tracker = CooldownTracker(clock=clock)
        tracker.register_use("a", "ping", 5)
        tracker.register_use("a", "dados", 50)

        clock.advance(10)
        assert tracker.sweep() == 1
        assert len(tracker) == 1

    def test_clear(self, clock):
        tracker = CooldownTracker(clock=clock)
        tracker.register_use("a", "ping", 5)
        tracker.register_use("a", "dados", 5)
        tracker.register_use("b", "ping", 5)

        assert tracker.clear("a", "ping") == 1
        assert tracker.clear("a", "ping") == 0
        assert tracker.clear("a") == 1
        assert tracker.seconds_remaining("b", "ping") == 5
