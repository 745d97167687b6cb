"""Shared fixtures for indexcache tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from indexcache.backends import ExecutionClock, IndexCacheBackend, IndexCacheConfig
from indexcache.index import MemoryDocumentIndex
from indexcache.observability import InMemoryMetricsCollector

NOW = 1_700_000_000


@pytest.fixture
def clock() -> ExecutionClock:
    """Create a clock frozen at a fixed timestamp."""
    return ExecutionClock(NOW)


@pytest.fixture
def metrics() -> InMemoryMetricsCollector:
    """Create an in-memory metrics collector."""
    return InMemoryMetricsCollector()


@pytest.fixture
def config(tmp_path: Path) -> IndexCacheConfig:
    """Create a configuration rooted in a temporary directory."""
    return IndexCacheConfig(
        context="Testing",
        index_name="testing",
        storage_root=str(tmp_path / "cache"),
    )


@pytest.fixture
def backend(config: IndexCacheConfig, clock: ExecutionClock, metrics: InMemoryMetricsCollector):
    """Create a backend persisted to a temporary directory."""
    cache = IndexCacheBackend(config, clock=clock, metrics=metrics)
    yield cache
    cache.close()


@pytest.fixture
def memory_backend(clock: ExecutionClock) -> IndexCacheBackend:
    """Create a backend on an in-memory index."""
    return IndexCacheBackend(
        IndexCacheConfig(max_buffered_docs=5),
        index=MemoryDocumentIndex(),
        clock=clock,
    )
