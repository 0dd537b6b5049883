"""
CourtBot - Performance Metrics
==============================

Lightweight counters and timings for the admission pipeline.

DESIGN:
    Tracks dispatch outcomes, cache hit rates and command durations
    without significant overhead. Uses a rolling window per timing metric
    to prevent unbounded memory growth. Counters are guarded by a lock
    because the permission cache updates them from store worker paths.
"""

import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Generator, List, Optional

from courtbot.core.logger import LOCAL_TZ, logger


# =============================================================================
# Constants
# =============================================================================

DEFAULT_WINDOW_SIZE = 100
"""Number of samples to keep per metric."""

SLOW_THRESHOLD_MS = 1000
"""Operations taking longer than this (ms) are logged as slow."""


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class MetricSample:
    """Single metric sample."""
    value: float  # Duration in milliseconds
    timestamp: datetime = field(default_factory=lambda: datetime.now(LOCAL_TZ))


@dataclass
class MetricStats:
    """Aggregated statistics for a metric."""
    name: str
    count: int
    avg_ms: float
    min_ms: float
    max_ms: float
    p50_ms: float
    p95_ms: float
    slow_count: int


# =============================================================================
# Metrics Collector
# =============================================================================

class MetricsCollector:
    """
    Collects and aggregates performance metrics.

    Attributes:
        metrics: Dictionary of metric name to sample deque.
        window_size: Maximum samples per metric.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE) -> None:
        self.metrics: Dict[str, Deque[MetricSample]] = {}
        self.window_size = window_size
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._start_time = time.monotonic()

    def record(self, name: str, duration_ms: float) -> None:
        """
        Record a timing sample.

        Args:
            name: Metric name (e.g., "command.ping").
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            if name not in self.metrics:
                self.metrics[name] = deque(maxlen=self.window_size)
            self.metrics[name].append(MetricSample(value=duration_ms))

        if duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow Operation Detected", [
                ("Metric", name),
                ("Duration", f"{duration_ms:.0f}ms"),
                ("Threshold", f"{SLOW_THRESHOLD_MS}ms"),
            ])

    def increment(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        with self._lock:
            return self._counters.get(name, 0)

    def get_stats(self, name: str) -> Optional[MetricStats]:
        """
        Calculate statistics for a metric.

        Returns:
            MetricStats or None if no samples exist.
        """
        with self._lock:
            samples = list(self.metrics.get(name, ()))
        if not samples:
            return None

        values = sorted(s.value for s in samples)
        count = len(values)

        def percentile(data: List[float], p: float) -> float:
            idx = int(len(data) * p / 100)
            return data[min(idx, len(data) - 1)]

        return MetricStats(
            name=name,
            count=count,
            avg_ms=sum(values) / count,
            min_ms=values[0],
            max_ms=values[-1],
            p50_ms=percentile(values, 50),
            p95_ms=percentile(values, 95),
            slow_count=sum(1 for v in values if v > SLOW_THRESHOLD_MS),
        )

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of all metrics and counters.

        Returns:
            Dictionary with uptime, counters, and metric stats.
        """
        with self._lock:
            counters = dict(self._counters)
            names = list(self.metrics)
        stats = {name: s for name in names if (s := self.get_stats(name)) is not None}
        return {
            "uptime_seconds": time.monotonic() - self._start_time,
            "counters": counters,
            "metrics": {
                name: {
                    "count": s.count,
                    "avg_ms": round(s.avg_ms, 2),
                    "p95_ms": round(s.p95_ms, 2),
                    "max_ms": round(s.max_ms, 2),
                    "slow_count": s.slow_count,
                }
                for name, s in stats.items()
            },
        }

    def clear(self) -> None:
        """Clear all metrics and counters."""
        with self._lock:
            self.metrics.clear()
            self._counters.clear()

    @contextmanager
    def timer(self, name: str) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Example:
            with metrics.timer("command.ping"):
                await body()
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, (time.perf_counter() - start) * 1000)


# =============================================================================
# Global Instance
# =============================================================================

metrics = MetricsCollector()
"""Global metrics collector instance."""


__all__ = [
    "MetricsCollector",
    "MetricSample",
    "MetricStats",
    "metrics",
]
