"""Base classes and interfaces for cache backends.

This module defines the exceptions, the execution clock and the abstract
contract every taggable cache backend follows. Backends store opaque
byte payloads; serializing values is the caller's job (see
``indexcache.frontend``).
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator


# =============================================================================
# Exceptions
# =============================================================================


class CacheError(Exception):
    """Base exception for all cache-related errors."""

    pass


class InvalidPayloadError(CacheError, TypeError):
    """Raised when a payload is not a byte string."""

    def __init__(self, identifier: str, payload: Any) -> None:
        self.identifier = identifier
        self.payload_type = type(payload).__name__
        super().__init__(
            f"Cache entry '{identifier}' must be bytes, got {self.payload_type}"
        )


class DirectoryCreationError(CacheError):
    """Raised when the storage directory cannot be created."""

    def __init__(self, directory: str, message: str) -> None:
        self.directory = directory
        super().__init__(f"Could not create directory {directory}: {message}")


class CompressionFailedError(CacheError):
    """Raised when a payload cannot be compressed or decompressed."""

    def __init__(self, identifier: str, message: str) -> None:
        self.identifier = identifier
        super().__init__(f"Compression failed for '{identifier}': {message}")


class CompressionUnsupportedError(CacheError):
    """Raised at configuration time when no encoder is available."""

    def __init__(self, algorithm: str, message: str) -> None:
        self.algorithm = algorithm
        super().__init__(f"Compression '{algorithm}' unavailable: {message}")


class IndexUnavailableError(CacheError):
    """Raised when the document index cannot be opened, queried or committed."""

    def __init__(self, directory: str | None, message: str) -> None:
        self.directory = directory
        where = f" at {directory}" if directory else ""
        super().__init__(f"Document index unavailable{where}: {message}")


# =============================================================================
# Execution Clock
# =============================================================================


class ExecutionClock:
    """A fixed notion of "now" shared by every operation of one engine.

    The timestamp is captured once and does not move on its own, so all
    operations within one logical request agree on what is expired.
    Long-running processes and tests move it explicitly.

    Example:
        >>> clock = ExecutionClock(1_700_000_000)
        >>> clock.advance(60)
        >>> clock.now
        1700000060
    """

    def __init__(self, timestamp: int | None = None) -> None:
        self._timestamp = int(time.time()) if timestamp is None else int(timestamp)

    @property
    def now(self) -> int:
        return self._timestamp

    def advance(self, seconds: int) -> None:
        self._timestamp += int(seconds)

    def set(self, timestamp: int) -> None:
        self._timestamp = int(timestamp)

    def refresh(self) -> None:
        """Recapture the current wall-clock time."""
        self._timestamp = int(time.time())

    def __repr__(self) -> str:
        return f"ExecutionClock({self._timestamp})"


# =============================================================================
# Abstract Backend
# =============================================================================


class TaggableBackend(ABC):
    """Abstract contract for cache backends supporting tags.

    Backends must be closed (or used as a context manager) so buffered
    writes reach durable storage before the instance is discarded.
    """

    @abstractmethod
    def set(
        self,
        identifier: str,
        content: bytes,
        tags: Iterable[str] = (),
        lifetime: int | None = None,
    ) -> None:
        """Store a payload.

        Args:
            identifier: Cache entry identifier.
            content: Opaque payload.
            tags: Tags for bulk invalidation.
            lifetime: Seconds to live; None for the default, 0 for unlimited.

        Raises:
            InvalidPayloadError: If content is not bytes.
        """
        pass

    @abstractmethod
    def get(self, identifier: str) -> bytes | None:
        """Get a payload, or None if there is no live entry."""
        pass

    @abstractmethod
    def has(self, identifier: str) -> bool:
        """Check if a live entry exists."""
        pass

    @abstractmethod
    def remove(self, identifier: str) -> bool:
        """Remove an entry.

        Returns:
            True if an entry was found and removed.
        """
        pass

    @abstractmethod
    def flush(self) -> None:
        """Remove every entry."""
        pass

    @abstractmethod
    def flush_by_tag(self, tag: str) -> None:
        """Remove every entry carrying the tag."""
        pass

    @abstractmethod
    def flush_by_tags(self, tags: Iterable[str]) -> None:
        """Remove every entry carrying any of the tags."""
        pass

    @abstractmethod
    def find_identifiers_by_tag(self, tag: str) -> Iterator[str]:
        """Get identifiers of live entries carrying the tag."""
        pass

    @abstractmethod
    def collect_garbage(self) -> None:
        """Physically remove expired entries."""
        pass

    def close(self) -> None:
        """Release resources, persisting anything still buffered."""
        pass

    def __enter__(self) -> "TaggableBackend":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
