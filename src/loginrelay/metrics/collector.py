"""In-process metrics collector.

Collects counters without external dependencies and exports them in
Prometheus text format.
"""

from __future__ import annotations

import threading
import time


class MetricsCollector:
    """Thread-safe in-process metrics collector."""

    def __init__(self, prefix: str = "loginrelay") -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._prefix = prefix
        self._start_time = time.time()

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self._start_time

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def get(self, name: str, labels: dict | None = None) -> int:
        """Get the current value of a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def export(self) -> str:
        """Export all metrics in Prometheus text format."""
        uptime = f"{self._prefix}_uptime_seconds"
        lines = [
            f"# HELP {uptime} Time since process start",
            f"# TYPE {uptime} gauge",
            f"{uptime} {self.uptime_seconds:.1f}",
            "",
        ]

        with self._lock:
            for name, value in sorted(self._gauges.items()):
                lines.append(f"# TYPE {name} gauge")
                lines.append(f"{name} {value}")
                lines.append("")

            grouped: dict[str, list[tuple[str, int]]] = {}
            for key, value in sorted(self._counters.items()):
                name = key.split("{")[0] if "{" in key else key
                grouped.setdefault(name, []).append((key, value))

            for name, entries in sorted(grouped.items()):
                lines.append(f"# TYPE {name} counter")
                for key, value in entries:
                    lines.append(f"{key} {value}")
                lines.append("")

        return "\n".join(lines) + "\n"

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"
