"""In-process counters and timing spans for registry refreshes."""
from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from time import perf_counter
from typing import Iterator


@dataclass
class MetricSnapshot:
    values: dict[str, int]

    def get(self, name: str) -> int:
        return self.values.get(name, 0)


class InMemoryMetrics:
    def __init__(self) -> None:
        self._lock = RLock()
        self._counter: Counter[str] = Counter()

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counter[name] += value

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(values=dict(self._counter))

    def reset(self) -> None:
        with self._lock:
            self._counter.clear()


metrics = InMemoryMetrics()


@contextmanager
def traced_span(name: str) -> Iterator[None]:
    started = perf_counter()
    try:
        yield
    except BaseException:
        metrics.inc(f"trace.{name}.errors")
        raise
    finally:
        elapsed_ms = int((perf_counter() - started) * 1000)
        metrics.inc(f"trace.{name}.count")
        metrics.inc(f"trace.{name}.elapsed_ms_total", elapsed_ms)
