"""Write buffer staging cache entries before they reach the index.

The index commits in batches and cannot overwrite documents in place,
so writes are collected here and committed together. Until then the
buffer shadows the index: a buffered entry is always the most recent
version of its identifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator


@dataclass(frozen=True)
class BufferedEntry:
    """A cache entry waiting to be committed.

    Attributes:
        identifier: Cache entry identifier.
        payload: Content as it will be stored (already compressed if enabled).
        tags: Tags of the entry.
        expires_at: Unix timestamp after which the entry is gone.
    """

    identifier: str
    payload: bytes
    tags: tuple[str, ...] = field(default_factory=tuple)
    expires_at: int = 0

    def is_alive(self, now: int) -> bool:
        return self.expires_at >= now


class WriteBuffer:
    """Ordered, last-write-wins map of identifier to pending entry.

    Re-setting an identifier replaces its entry but keeps its original
    position, so a commit adds documents in first-write order.

    Example:
        >>> buffer = WriteBuffer()
        >>> buffer.put(BufferedEntry("a", b"1", expires_at=10))
        >>> buffer.put(BufferedEntry("a", b"2", expires_at=10))
        >>> len(buffer), buffer.get("a").payload
        (1, b'2')
    """

    def __init__(self) -> None:
        self._entries: dict[str, BufferedEntry] = {}

    def put(self, entry: BufferedEntry) -> None:
        self._entries[entry.identifier] = entry

    def get(self, identifier: str) -> BufferedEntry | None:
        return self._entries.get(identifier)

    def pop(self, identifier: str) -> BufferedEntry | None:
        return self._entries.pop(identifier, None)

    def snapshot(self) -> list[BufferedEntry]:
        """Get every entry without removing it."""
        return list(self._entries.values())

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[BufferedEntry]:
        return iter(list(self._entries.values()))
