"""
XChain Prometheus Metrics Collector

Pure-Python Prometheus exposition format for the bridge engine. Every
metric renders itself as a list of samples; the registry joins them
into the scrape body.

Metric types:
    - Counter:        monotonically increasing (e.g. quote requests)
    - LabeledCounter: one counter per label value (e.g. per provider)
    - Gauge:          can go up and down (e.g. pending transfers)
    - Histogram:      latencies with configurable buckets
"""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

# (name suffix, label string, value)
Sample = Tuple[str, str, float]


def _label_key(label_value: Any) -> str:
    """Enum members are labelled by their value."""
    return str(getattr(label_value, "value", label_value))


# ---------------------------------------------------------------------------
# Metric primitives
# ---------------------------------------------------------------------------

class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help: str = ""):
        self.name = name
        self.help = help
        self._lock = threading.Lock()

    def _samples(self) -> Iterable[Sample]:
        raise NotImplementedError

    def expose(self) -> str:
        out: List[str] = []
        if self.help:
            out.append(f"# HELP {self.name} {self.help}")
        out.append(f"# TYPE {self.name} {self.kind}")
        with self._lock:
            samples = list(self._samples())
        for suffix, labels, value in samples:
            out.append(f"{self.name}{suffix}{labels} {value}")
        return "\n".join(out)


class Counter(_Metric):
    """Monotonically increasing counter."""
    kind = "counter"

    def __init__(self, name: str, help: str = ""):
        super().__init__(name, help)
        self._count = 0.0

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError(f"{self.name}: counters only go up")
        with self._lock:
            self._count += amount

    @property
    def value(self) -> float:
        return self._count

    def _samples(self) -> Iterable[Sample]:
        yield "", "", self._count


class LabeledCounter(_Metric):
    """Counter partitioned by a single label (provider, status, saga state)."""
    kind = "counter"

    def __init__(self, name: str, label: str, help: str = ""):
        super().__init__(name, help)
        self.label = label
        self._counts: Dict[str, float] = {}

    def inc(self, label_value: Any, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError(f"{self.name}: counters only go up")
        key = _label_key(label_value)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0.0) + amount

    def value(self, label_value: Any) -> float:
        return self._counts.get(_label_key(label_value), 0.0)

    @property
    def total(self) -> float:
        with self._lock:
            return sum(self._counts.values())

    def _samples(self) -> Iterable[Sample]:
        for key in sorted(self._counts):
            yield "", f'{{{self.label}="{key}"}}', self._counts[key]


class Gauge(_Metric):
    """Point-in-time value."""
    kind = "gauge"

    def __init__(self, name: str, help: str = ""):
        super().__init__(name, help)
        self._current = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._current = value

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self._current += amount

    def dec(self, amount: float = 1.0) -> None:
        self.inc(-amount)

    @property
    def value(self) -> float:
        return self._current

    def _samples(self) -> Iterable[Sample]:
        yield "", "", self._current


# Quote aggregation latency, seconds
DEFAULT_BUCKETS: Tuple[float, ...] = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class Histogram(_Metric):
    """Cumulative histogram; observations above the last bucket only count toward +Inf."""
    kind = "histogram"

    def __init__(self, name: str, help: str = "", buckets: Tuple[float, ...] = DEFAULT_BUCKETS):
        super().__init__(name, help)
        self.buckets = tuple(sorted(buckets))
        self._hits = [0] * len(self.buckets)
        self._total = 0.0
        self._observations = 0

    def observe(self, value: float) -> None:
        with self._lock:
            self._total += value
            self._observations += 1
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    self._hits[i] += 1
                    break

    @property
    def count(self) -> int:
        return self._observations

    @property
    def sum(self) -> float:
        return self._total

    def _samples(self) -> Iterable[Sample]:
        running = 0
        for bound, hits in zip(self.buckets, self._hits):
            running += hits
            yield "_bucket", f'{{le="{bound}"}}', running
        yield "_bucket", '{le="+Inf"}', self._observations
        yield "_sum", "", self._total
        yield "_count", "", self._observations


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class MetricsRegistry:
    """Metrics by name, rendered together in Prometheus text format."""

    def __init__(self):
        self._by_name: Dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def register(self, metric: _Metric) -> None:
        with self._lock:
            if metric.name in self._by_name:
                raise ValueError(f"Duplicate metric name: {metric.name}")
            self._by_name[metric.name] = metric

    def get(self, name: str) -> Optional[_Metric]:
        return self._by_name.get(name)

    @property
    def metric_count(self) -> int:
        return len(self._by_name)

    def expose(self) -> str:
        with self._lock:
            metrics = list(self._by_name.values())
        return "\n\n".join(m.expose() for m in metrics) + "\n"


# ---------------------------------------------------------------------------
# Bridge engine collector
# ---------------------------------------------------------------------------

class BridgeMetrics:
    """
    Pre-configured metrics for the bridge and swap engine.

    One instance is shared by the orchestrator, tracker and saga
    coordinator; ``expose()`` returns the scrape body.
    """

    def __init__(self):
        self.registry = MetricsRegistry()

        # --- Quoting ---
        self.quote_requests = Counter(
            "xchain_quote_requests_total",
            "Bridge quote aggregations requested",
        )
        self.quote_cache_hits = Counter(
            "xchain_quote_cache_hits_total",
            "Quote aggregations served from cache",
        )
        self.adapter_quote_errors = LabeledCounter(
            "xchain_adapter_quote_errors_total",
            "provider",
            "Adapter quote failures and timeouts",
        )
        self.quote_latency = Histogram(
            "xchain_quote_latency_seconds",
            "Quote aggregation latency in seconds",
        )

        # --- Transfers ---
        self.transfers_initiated = LabeledCounter(
            "xchain_transfers_initiated_total",
            "provider",
            "Bridge transfers initiated",
        )
        self.status_transitions = LabeledCounter(
            "xchain_status_transitions_total",
            "status",
            "Bridge status transitions applied",
        )
        self.pending_transfers = Gauge(
            "xchain_pending_transfers",
            "Tracked transfers not yet in a terminal status",
        )

        # --- Sagas ---
        self.saga_outcomes = LabeledCounter(
            "xchain_saga_outcomes_total",
            "state",
            "Cross-chain swap sagas by final state",
        )

        self.uptime_seconds = Gauge(
            "xchain_uptime_seconds",
            "Engine uptime in seconds",
        )
        self._start_time = time.time()

        for attr in list(vars(self).values()):
            if isinstance(attr, _Metric):
                self.registry.register(attr)

    def expose(self) -> str:
        self.uptime_seconds.set(time.time() - self._start_time)
        return self.registry.expose()
