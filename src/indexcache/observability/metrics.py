"""Metrics collectors for cache operations.

The cache engine reports each operation to a ``MetricsCollector``. The
default collector drops everything, so the engine never depends on a
particular telemetry system.

Example:
    >>> collector = InMemoryMetricsCollector()
    >>> backend = IndexCacheBackend(config, metrics=collector)
    >>> backend.set("a", b"x")
    >>> collector.get(CacheEvent.INSERTS)
    1
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Protocol, runtime_checkable

DEFAULT_PREFIX = "indexcache"


class CacheEvent(str, Enum):
    """Points at which the engine reports to its collector."""

    INSERTS = "inserts"
    HITS = "hits"
    MISSES = "misses"
    REMOVES = "removes"
    FLUSHES = "flushes"
    FLUSHES_BY_TAG = "flushes-by-tag"
    FLUSHES_BY_TAGS = "flushes-by-tags"
    COMMITS = "commits"
    GARBAGE_COLLECTIONS = "garbage-collections"


@runtime_checkable
class MetricsCollector(Protocol):
    """Protocol for receiving cache events."""

    def collect(self, event: CacheEvent, value: int = 1) -> None: ...


class NoopMetricsCollector:
    """Collector that discards every event."""

    def collect(self, event: CacheEvent, value: int = 1) -> None:
        pass


class InMemoryMetricsCollector:
    """Thread-safe counters kept in memory.

    Counter names are ``<prefix>_<event>``, e.g. ``indexcache_hits``.
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self.prefix = prefix
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def _name(self, event: CacheEvent) -> str:
        return f"{self.prefix}_{event.value}" if self.prefix else event.value

    def collect(self, event: CacheEvent, value: int = 1) -> None:
        name = self._name(event)
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def get(self, event: CacheEvent) -> int:
        with self._lock:
            return self._counters.get(self._name(event), 0)

    def snapshot(self) -> dict[str, int]:
        """Get a copy of all counters."""
        with self._lock:
            return dict(self._counters)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


class LoggingMetricsCollector:
    """Collector that writes each event to a logger."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        level: int = logging.DEBUG,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._level = level
        self.prefix = prefix

    def collect(self, event: CacheEvent, value: int = 1) -> None:
        self._logger.log(self._level, "%s_%s %d", self.prefix, event.value, value)
