"""Prometheus-compatible metrics for the arbitration engine.

Tracked metrics:
- gesture_arbiter_events_total (counter, by event name)
- gesture_arbiter_decisions_total (counter, by arbitration source)
- gesture_arbiter_training_total (counter, by outcome)
- gesture_arbiter_recognizer_latency_seconds (histogram)
- gesture_arbiter_samples_total (counter)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects engine counters and renders them in Prometheus text format."""

    def __init__(self):
        self._events: Counter = Counter()
        self._decisions: Counter = Counter()
        self._training: Counter = Counter()
        self._samples_total = 0
        self._lock = threading.Lock()
        self._latency = _Histogram([0.001, 0.005, 0.010, 0.025, 0.050, 0.100, 0.250, 1.0])
        self._start_time = time.time()

    def record_event(self, name: str):
        with self._lock:
            self._events[name] += 1

    def record_decision(self, source: str):
        with self._lock:
            self._decisions[source] += 1

    def record_training(self, outcome: str):
        with self._lock:
            self._training[outcome] += 1

    def record_sample(self):
        with self._lock:
            self._samples_total += 1

    def record_latency(self, seconds: float):
        self._latency.observe(seconds)

    @property
    def event_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._events)

    @property
    def decision_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._decisions)

    @property
    def training_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._training)

    def _render_counter(self, lines: list[str], name: str, help_text: str, label: str, counts: Counter):
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} counter")
        with self._lock:
            for key, count in sorted(counts.items()):
                lines.append(f'{name}{{{label}="{key}"}} {count}')
        lines.append("")

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP gesture_arbiter_uptime_seconds Time since engine start")
        lines.append("# TYPE gesture_arbiter_uptime_seconds gauge")
        lines.append(f"gesture_arbiter_uptime_seconds {uptime:.1f}")
        lines.append("")

        self._render_counter(lines, "gesture_arbiter_events_total",
                             "Completion events raised by name", "event", self._events)
        self._render_counter(lines, "gesture_arbiter_decisions_total",
                             "Smart identify decisions by source", "source", self._decisions)
        self._render_counter(lines, "gesture_arbiter_training_total",
                             "Signature training steps by outcome", "outcome", self._training)

        lines.append(self._latency.render(
            "gesture_arbiter_recognizer_latency_seconds",
            "Recognizer round trip latency in seconds",
        ))
        lines.append("")

        lines.append("# HELP gesture_arbiter_samples_total Samples received from capture")
        lines.append("# TYPE gesture_arbiter_samples_total counter")
        lines.append(f"gesture_arbiter_samples_total {self._samples_total}")
        lines.append("")

        return "\n".join(lines) + "\n"
