"""
Latency metrics collection for hybrid search.

Tracks:
- P50, P95, P99 latencies
- Per-stage latencies (semantic, lexical, scoring)
- Semantic fallbacks (requests served lexical-only after a failure)
"""

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

STAGES = ("semantic", "lexical", "scoring")


@dataclass
class SearchLatency:
    """Latency metrics for a single search request."""

    total_ms: float = 0.0
    stages: Dict[str, float] = field(default_factory=dict)
    semantic_fallback: bool = False

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time a block and add it to the named stage."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - start) * 1000
            self.stages[name] = self.stages.get(name, 0.0) + elapsed


class LatencyCollector:
    """
    Collect and analyze search latency.

    Maintains rolling windows for percentile calculations.
    """

    def __init__(self, window_size: int = 1000):
        """
        Args:
            window_size: Number of recent requests to keep for percentiles
        """
        self.window_size = window_size
        self.metrics: deque = deque(maxlen=window_size)
        self._stage_metrics: Dict[str, deque] = {
            stage: deque(maxlen=window_size) for stage in STAGES
        }
        self.requests = 0
        self.semantic_fallbacks = 0

    def record(self, metrics: SearchLatency):
        """Record a latency measurement."""
        self.requests += 1
        self.metrics.append(metrics.total_ms)

        for stage, value in metrics.stages.items():
            if stage in self._stage_metrics:
                self._stage_metrics[stage].append(value)

        if metrics.semantic_fallback:
            self.semantic_fallbacks += 1

    def get_percentiles(self, stage: Optional[str] = None) -> Dict[str, float]:
        """
        Get latency percentiles.

        Args:
            stage: Stage name (semantic, lexical, scoring) or None for total latency

        Returns:
            Dict with p50, p95, p99 values
        """
        if stage:
            values = list(self._stage_metrics.get(stage, []))
        else:
            values = list(self.metrics)

        if not values:
            return {"p50": 0.0, "p95": 0.0, "p99": 0.0}

        sorted_values = sorted(values)
        n = len(sorted_values)

        return {
            "p50": sorted_values[int(n * 0.50)],
            "p95": sorted_values[int(n * 0.95)],
            "p99": sorted_values[int(n * 0.99)],
            "mean": sum(sorted_values) / n,
            "min": sorted_values[0],
            "max": sorted_values[-1],
        }

    def get_summary(self) -> Dict:
        """Get comprehensive latency summary."""
        summary = {
            "total": self.get_percentiles(),
            "stages": {},
            "requests": self.requests,
            "semantic_fallbacks": self.semantic_fallbacks,
        }

        for stage in self._stage_metrics:
            if self._stage_metrics[stage]:
                summary["stages"][stage] = self.get_percentiles(stage)

        return summary

    def reset(self):
        """Reset all metrics."""
        self.metrics.clear()
        for stage in self._stage_metrics:
            self._stage_metrics[stage].clear()
        self.requests = 0
        self.semantic_fallbacks = 0


# Global latency collector
_latency_collector: Optional[LatencyCollector] = None


def get_latency_collector() -> LatencyCollector:
    """Get global latency collector."""
    global _latency_collector
    if _latency_collector is None:
        _latency_collector = LatencyCollector()
    return _latency_collector
