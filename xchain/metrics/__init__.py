"""
XChain Metrics Module

Prometheus-compatible metrics for monitoring bridge activity.
"""

from .collector import (
    BridgeMetrics,
    Counter,
    Gauge,
    Histogram,
    LabeledCounter,
    MetricsRegistry,
)

__all__ = [
    "BridgeMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "LabeledCounter",
    "MetricsRegistry",
]
