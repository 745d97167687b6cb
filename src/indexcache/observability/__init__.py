"""Observability hooks for the cache engine."""

from indexcache.observability.metrics import (
    DEFAULT_PREFIX,
    CacheEvent,
    InMemoryMetricsCollector,
    LoggingMetricsCollector,
    MetricsCollector,
    NoopMetricsCollector,
)

__all__ = [
    "DEFAULT_PREFIX",
    "CacheEvent",
    "MetricsCollector",
    "NoopMetricsCollector",
    "InMemoryMetricsCollector",
    "LoggingMetricsCollector",
]
