"""Cache backends.

Example:
    >>> from indexcache.backends import IndexCacheBackend, IndexCacheConfig
    >>>
    >>> backend = IndexCacheBackend.from_options(
    ...     "Production",
    ...     {"indexName": "pages", "maxBufferedDocs": 500, "compression": True},
    ... )
    >>> backend.set("page_1", b"...", tags=["pages"])
    >>> backend.close()
"""

from indexcache.backends.base import (
    CacheError,
    CompressionFailedError,
    CompressionUnsupportedError,
    DirectoryCreationError,
    ExecutionClock,
    IndexUnavailableError,
    InvalidPayloadError,
    TaggableBackend,
)
from indexcache.backends.buffer import BufferedEntry, WriteBuffer
from indexcache.backends.config import IndexCacheConfig, sanitize_index_name
from indexcache.backends.expiry import UNLIMITED_EXPIRES_AT, ExpiryPolicy
from indexcache.backends.index_backend import (
    CONTENT_FIELD,
    IDENTIFIER_FIELD,
    TAGS_FIELD,
    IndexCacheBackend,
)

__all__ = [
    # Base
    "CacheError",
    "CompressionFailedError",
    "CompressionUnsupportedError",
    "DirectoryCreationError",
    "ExecutionClock",
    "IndexUnavailableError",
    "InvalidPayloadError",
    "TaggableBackend",
    # Buffer
    "BufferedEntry",
    "WriteBuffer",
    # Config
    "IndexCacheConfig",
    "sanitize_index_name",
    # Expiry
    "ExpiryPolicy",
    "UNLIMITED_EXPIRES_AT",
    # Backend
    "IndexCacheBackend",
    "IDENTIFIER_FIELD",
    "CONTENT_FIELD",
    "TAGS_FIELD",
]
