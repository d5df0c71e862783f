"""In-process latency aggregates for export and reconciliation runs."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class OperationStats:
    """Running totals for one named operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, duration_ms: float, ok: bool) -> None:
        self.count += 1
        if not ok:
            self.error_count += 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        if self.count == 1:
            self.min_ms = self.max_ms = duration_ms
        else:
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)


class _Recorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, OperationStats] = {}

    def record(self, operation: str, duration_ms: float, ok: bool) -> None:
        duration_ms = max(float(duration_ms), 0.0)
        with self._lock:
            self._stats.setdefault(operation, OperationStats()).add(duration_ms, ok)
        logger.info(
            "latency operation=%s duration_ms=%.3f ok=%s",
            operation,
            duration_ms,
            ok,
        )

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            out: dict[str, dict[str, float | int]] = {}
            for operation, stats in sorted(self._stats.items()):
                avg = stats.total_ms / stats.count if stats.count else 0.0
                out[operation] = {
                    "count": stats.count,
                    "error_count": stats.error_count,
                    "total_ms": round(stats.total_ms, 3),
                    "avg_ms": round(avg, 3),
                    "min_ms": round(stats.min_ms, 3),
                    "max_ms": round(stats.max_ms, 3),
                    "last_ms": round(stats.last_ms, 3),
                }
            return out

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_RECORDER = _Recorder()


def record_latency(*, operation: str, duration_ms: float, ok: bool = True) -> None:
    """Record one latency sample."""
    _RECORDER.record(operation, duration_ms, ok)


@contextmanager
def track_latency(operation: str) -> Iterator[None]:
    """Time the enclosed block; an escaping exception counts as an error."""
    start = perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        record_latency(
            operation=operation,
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


def latency_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current in-process latency aggregates."""
    return _RECORDER.snapshot()


def reset_latency_metrics() -> None:
    """Clear all latency aggregates (test helper)."""
    _RECORDER.reset()
