"""
In-process scan telemetry.

Counters and latency samples are kept in memory and echoed to the
``swipeq.telemetry`` logger; nothing leaves the process. Scan workers record
from several threads at once, so every read and write takes ``_LOCK``.

Names are dotted: ``swipes.scan.discarded.timeout``, ``gmail.fetch.count``.
Latency names gain an ``_ms`` suffix, e.g. ``swipes.scan.latency_ms``.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections import deque
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("swipeq.telemetry")

_LOCK = threading.Lock()
_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, deque[float]] = {}

# Per-metric sample cap; a long-running server keeps only the newest samples.
LATENCY_SAMPLE_LIMIT = 1000


def _latency_key(metric_name: str) -> str:
    if metric_name.endswith(".latency"):
        return f"{metric_name}_ms"
    return metric_name


def log_event(event_name: str, **fields: Any) -> None:
    """Structured INFO line. Callers redact subjects and senders first."""
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """Add ``increment`` to ``name`` and return the new total."""
    with _LOCK:
        total = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = total
    logger.debug("counter=%s value=%s", name, total)
    return total


def get_counter(name: str) -> int:
    with _LOCK:
        return _COUNTERS.get(name, 0)


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """Record wall time of the block under ``metric_name``, even if it raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        key = _latency_key(metric_name)
        logger.debug("timing=%s seconds=%.6f", key, elapsed)
        with _LOCK:
            _LATENCIES.setdefault(key, deque(maxlen=LATENCY_SAMPLE_LIMIT)).append(elapsed)


def latency_stats(metric_name: str) -> dict[str, float]:
    """Count, mean and max (seconds) over the retained samples of one metric."""
    with _LOCK:
        samples = list(_LATENCIES.get(_latency_key(metric_name), ()))
    if not samples:
        return {"count": 0, "avg": 0.0, "max": 0.0}
    return {"count": len(samples), "avg": sum(samples) / len(samples), "max": max(samples)}


def snapshot(prefix: str = "") -> dict[str, int]:
    """Copy of all counters whose name starts with ``prefix``."""
    with _LOCK:
        return {name: value for name, value in _COUNTERS.items() if name.startswith(prefix)}


def reset() -> None:
    """Forget every counter and latency sample (tests call this between cases)."""
    with _LOCK:
        _COUNTERS.clear()
        _LATENCIES.clear()
