"""
Monitoring Module.

Per-stage search latency and semantic fallback counts.

Usage:
    from monitoring import get_latency_collector

    summary = get_latency_collector().get_summary()
"""

from .latency_metrics import LatencyCollector, SearchLatency, get_latency_collector

__all__ = ["LatencyCollector", "SearchLatency", "get_latency_collector"]
