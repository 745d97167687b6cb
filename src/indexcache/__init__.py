"""Tag-aware cache backend stored in an inverted document index.

Example:
    >>> from indexcache import IndexCacheBackend, IndexCacheConfig
    >>>
    >>> with IndexCacheBackend(IndexCacheConfig(context="Production")) as cache:
    ...     cache.set("page_1", b"<html>...</html>", tags=["pages"], lifetime=600)
    ...     cache.flush_by_tag("pages")
"""

from indexcache.backends import (
    CacheError,
    CompressionFailedError,
    CompressionUnsupportedError,
    DirectoryCreationError,
    ExecutionClock,
    IndexCacheBackend,
    IndexCacheConfig,
    IndexUnavailableError,
    InvalidPayloadError,
    TaggableBackend,
)
from indexcache.frontend import (
    ExtensionType,
    JsonSerializer,
    MsgpackSerializer,
    PickleSerializer,
    VariableFrontend,
)
from indexcache.observability import CacheEvent, InMemoryMetricsCollector, NoopMetricsCollector

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Backend
    "IndexCacheBackend",
    "IndexCacheConfig",
    "ExecutionClock",
    "TaggableBackend",
    # Errors
    "CacheError",
    "CompressionFailedError",
    "CompressionUnsupportedError",
    "DirectoryCreationError",
    "IndexUnavailableError",
    "InvalidPayloadError",
    # Frontend
    "VariableFrontend",
    "PickleSerializer",
    "JsonSerializer",
    "MsgpackSerializer",
    "ExtensionType",
    # Observability
    "CacheEvent",
    "InMemoryMetricsCollector",
    "NoopMetricsCollector",
]
