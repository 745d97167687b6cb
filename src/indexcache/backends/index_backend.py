"""Tag-aware cache backend stored in a document index.

The backend keeps recent writes in a ``WriteBuffer`` and moves them to
the document index in batches. Because the index cannot update a
document in place, a commit first deletes every indexed document of
the buffered identifiers and then adds the new versions, all inside a
single index commit.

Reads check the buffer first and fall back to the index. Expired hits
are hidden from readers and deleted on the spot; ``collect_garbage()``
reclaims everything else that has expired.

Example:
    >>> config = IndexCacheConfig(context="Production", index_name="pages")
    >>> with IndexCacheBackend(config) as cache:
    ...     cache.set("page_1", b"<html>...</html>", tags=["pages", "pid_1"], lifetime=600)
    ...     cache.get("page_1")
    ...     cache.flush_by_tag("pid_1")
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Mapping

from indexcache.backends.base import (
    CompressionFailedError,
    CompressionUnsupportedError,
    DirectoryCreationError,
    ExecutionClock,
    IndexUnavailableError,
    InvalidPayloadError,
    TaggableBackend,
)
from indexcache.backends.buffer import BufferedEntry, WriteBuffer
from indexcache.backends.config import IndexCacheConfig
from indexcache.backends.expiry import LIFETIME_FIELD, ExpiryPolicy
from indexcache.compression import (
    BaseCompressor,
    CompressionError,
    UnsupportedAlgorithmError,
    get_compressor,
)
from indexcache.index import (
    AnyTermQuery,
    Document,
    DocumentIndex,
    DocumentIndexError,
    Field,
    FileSystemDocumentIndex,
    Hit,
    RangeQuery,
    TermQuery,
    WildcardQuery,
)
from indexcache.observability import CacheEvent, MetricsCollector, NoopMetricsCollector

logger = logging.getLogger(__name__)

IDENTIFIER_FIELD = "identifier"
CONTENT_FIELD = "content"
TAGS_FIELD = "tags"


class IndexCacheBackend(TaggableBackend):
    """Cache backend whose persistent store is a document index.

    Every indexed entry is one document with four fields:

    - ``identifier``: keyword, exact-match lookups
    - ``content``: binary payload, compressed if enabled
    - ``tags``: space-joined tags, tokenized for term and OR queries
    - ``lifetime``: numeric expiry timestamp, range-queryable and stored

    The backend is meant for a single writer per index directory. Calls
    on one instance are serialized by an internal lock. Instances must be
    closed, or used as context managers, so buffered entries are
    committed; an abandoned buffer is lost.

    Changing the compression settings between deployments does not
    re-encode stored documents. Payloads written under the old settings
    fail to decode and raise ``CompressionFailedError``; flush the cache
    when switching.
    """

    def __init__(
        self,
        config: IndexCacheConfig | None = None,
        index: DocumentIndex | None = None,
        clock: ExecutionClock | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            config: Backend configuration. If None, uses defaults.
            index: Document index to use. If None, a filesystem index is
                opened (or created) in the configured directory on first use.
            clock: Execution clock. If None, captures the current time.
            metrics: Collector for cache events. If None, events are dropped.

        Raises:
            CompressionUnsupportedError: If compression is enabled but the
                configured algorithm is unavailable.
        """
        self._config = config or IndexCacheConfig()
        self._index = index
        self._clock = clock or ExecutionClock()
        self._metrics = metrics or NoopMetricsCollector()
        self._expiry = ExpiryPolicy(default_lifetime=self._config.default_lifetime)
        self._buffer = WriteBuffer()
        self._compressor = self._create_compressor() if self._config.compression else None
        self._lock = threading.RLock()
        self._closed = False

    @classmethod
    def from_options(
        cls,
        context: str,
        options: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> "IndexCacheBackend":
        """Create a backend from an options mapping (see ``IndexCacheConfig.from_options``)."""
        return cls(IndexCacheConfig.from_options(options, context=context), **kwargs)

    def _create_compressor(self) -> BaseCompressor:
        algorithm = self._config.compression_algorithm
        try:
            return get_compressor(algorithm, self._config.compression_level)
        except UnsupportedAlgorithmError as e:
            raise CompressionUnsupportedError(str(algorithm), str(e)) from e

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> IndexCacheConfig:
        return self._config

    @property
    def clock(self) -> ExecutionClock:
        return self._clock

    @property
    def buffer(self) -> WriteBuffer:
        return self._buffer

    @property
    def expiry(self) -> ExpiryPolicy:
        return self._expiry

    @property
    def index(self) -> DocumentIndex:
        """Get the document index, opening or creating it on first use.

        Raises:
            DirectoryCreationError: If the index directory cannot be created.
            IndexUnavailableError: If the index cannot be opened.
        """
        if self._index is None:
            directory = self._config.get_directory()
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DirectoryCreationError(str(directory), str(e)) from e
            try:
                self._index = FileSystemDocumentIndex(directory)
            except DocumentIndexError as e:
                raise IndexUnavailableError(str(directory), str(e)) from e
            logger.debug("Opened cache index at %s", directory)
        return self._index

    @contextmanager
    def _index_errors(self) -> Iterator[DocumentIndex]:
        """Yield the index, translating its failures to IndexUnavailableError."""
        index = self.index
        try:
            yield index
        except DocumentIndexError as e:
            raise IndexUnavailableError(e.directory, str(e)) from e

    # -------------------------------------------------------------------------
    # Payload encoding
    # -------------------------------------------------------------------------

    def _encode(self, identifier: str, content: bytes) -> bytes:
        if self._compressor is None:
            return content
        try:
            return self._compressor.compress(content)
        except CompressionError as e:
            raise CompressionFailedError(identifier, str(e)) from e

    def _decode(self, identifier: str, payload: bytes) -> bytes:
        if self._compressor is None:
            return payload
        try:
            return self._compressor.decompress(payload)
        except CompressionError as e:
            raise CompressionFailedError(identifier, str(e)) from e

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    def set(
        self,
        identifier: str,
        content: bytes,
        tags: Iterable[str] = (),
        lifetime: int | None = None,
    ) -> None:
        """Stage an entry; commit once the buffer outgrows ``max_buffered_docs``.

        A negative lifetime means the entry is already expired, so
        nothing is stored.

        Raises:
            InvalidPayloadError: If content is not bytes.
            CompressionFailedError: If compression is enabled and fails.
        """
        if not isinstance(content, (bytes, bytearray)):
            raise InvalidPayloadError(identifier, content)
        if isinstance(tags, str):
            tags = [tags]

        with self._lock:
            expires_at = self._expiry.expires_at(lifetime, self._clock.now)
            if expires_at is None:
                logger.debug("Skipping '%s': lifetime %s already expired", identifier, lifetime)
                return

            payload = self._encode(identifier, bytes(content))
            self._buffer.put(
                BufferedEntry(
                    identifier=identifier,
                    payload=payload,
                    tags=tuple(dict.fromkeys(tags)),
                    expires_at=expires_at,
                )
            )
            self._metrics.collect(CacheEvent.INSERTS)
            # A buffered entry needs another close() to reach the index.
            self._closed = False

            if len(self._buffer) > self._config.max_buffered_docs:
                self.commit()

    def _build_document(self, entry: BufferedEntry) -> Document:
        return Document(
            [
                Field.keyword(IDENTIFIER_FIELD, entry.identifier),
                Field.binary(CONTENT_FIELD, entry.payload),
                Field.text(TAGS_FIELD, " ".join(entry.tags)),
                Field.numeric(LIFETIME_FIELD, entry.expires_at),
            ]
        )

    def commit(self) -> None:
        """Move every buffered entry into the index.

        Existing documents of the buffered identifiers are deleted and
        the new versions added within one index commit, so afterwards
        each identifier has at most one live document. The buffer is
        cleared only once the index commit has succeeded.

        Raises:
            IndexUnavailableError: If the index fails.
        """
        with self._lock:
            if self._buffer.is_empty:
                return

            entries = self._buffer.snapshot()
            with self._index_errors() as index:
                previous = index.max_buffered_docs
                if self._config.tune_index_buffering:
                    index.max_buffered_docs = max(
                        previous, len(entries) + self._config.commit_batch_margin
                    )
                try:
                    stale = index.find(
                        AnyTermQuery(IDENTIFIER_FIELD, [e.identifier for e in entries])
                    )
                    for hit in stale:
                        index.delete(hit)
                    for entry in entries:
                        index.add_document(self._build_document(entry))
                    index.commit()
                finally:
                    index.max_buffered_docs = previous

            self._buffer.clear()
            self._metrics.collect(CacheEvent.COMMITS)
            logger.debug(
                "Committed %d buffered entries, replaced %d documents",
                len(entries),
                len(stale),
            )

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def _delete_stale(self, index: DocumentIndex, stale: list[Hit]) -> None:
        if not stale:
            return
        for hit in stale:
            index.delete(hit)
        index.commit()
        logger.debug("Lazily deleted %d expired documents", len(stale))

    def _find_live(self, index: DocumentIndex, identifier: str) -> Hit | None:
        live, stale = self._expiry.partition(
            index.find(TermQuery(IDENTIFIER_FIELD, identifier)), self._clock.now
        )
        self._delete_stale(index, stale)
        return live[0] if live else None

    def get(self, identifier: str) -> bytes | None:
        """Get a payload, or None if there is no live entry.

        A buffered entry shadows the index, even once it has expired.

        Raises:
            CompressionFailedError: If the stored payload cannot be decompressed.
            IndexUnavailableError: If the index fails.
        """
        with self._lock:
            entry = self._buffer.get(identifier)
            if entry is not None:
                if not entry.is_alive(self._clock.now):
                    self._metrics.collect(CacheEvent.MISSES)
                    return None
                self._metrics.collect(CacheEvent.HITS)
                return self._decode(identifier, entry.payload)

            with self._index_errors() as index:
                hit = self._find_live(index, identifier)

            payload = hit.get(CONTENT_FIELD) if hit is not None else None
            if not isinstance(payload, bytes):
                self._metrics.collect(CacheEvent.MISSES)
                return None
            self._metrics.collect(CacheEvent.HITS)
            return self._decode(identifier, payload)

    def has(self, identifier: str) -> bool:
        """Check if a live entry exists."""
        with self._lock:
            entry = self._buffer.get(identifier)
            if entry is not None:
                return entry.is_alive(self._clock.now)

            with self._index_errors() as index:
                return self._find_live(index, identifier) is not None

    # -------------------------------------------------------------------------
    # Removal and invalidation
    # -------------------------------------------------------------------------

    def remove(self, identifier: str) -> bool:
        """Remove an entry from both the buffer and the index.

        Returns:
            True if the entry was buffered or indexed.
        """
        with self._lock:
            removed = 0
            if self._buffer.pop(identifier) is not None:
                removed += 1

            with self._index_errors() as index:
                hits = index.find(TermQuery(IDENTIFIER_FIELD, identifier))
                for hit in hits:
                    index.delete(hit)
                if hits:
                    index.commit()
            removed += len(hits)

            if removed:
                self._metrics.collect(CacheEvent.REMOVES, removed)
            return removed > 0

    def _delete_matching(self, index: DocumentIndex, hits: list[Hit]) -> int:
        for hit in hits:
            index.delete(hit)
        index.commit()
        return len(hits)

    def flush(self) -> None:
        """Discard the buffer and delete every indexed document."""
        with self._lock:
            dropped = self._buffer.clear()
            with self._index_errors() as index:
                deleted = self._delete_matching(
                    index, index.find(WildcardQuery(IDENTIFIER_FIELD, "*"))
                )
                if self._config.optimize:
                    index.optimize()

            self._metrics.collect(CacheEvent.FLUSHES)
            logger.info("Flushed cache: %d buffered, %d indexed entries", dropped, deleted)

    def flush_by_tag(self, tag: str) -> None:
        """Delete every entry carrying the tag, buffered ones included."""
        with self._lock:
            self.commit()
            with self._index_errors() as index:
                deleted = self._delete_matching(index, index.find(TermQuery(TAGS_FIELD, tag)))

            self._metrics.collect(CacheEvent.FLUSHES_BY_TAG)
            logger.debug("Flushed %d entries tagged %r", deleted, tag)

    def flush_by_tags(self, tags: Iterable[str]) -> None:
        """Delete every entry carrying any of the tags."""
        if isinstance(tags, str):
            tags = [tags]
        tags = list(dict.fromkeys(tags))
        if not tags:
            return

        with self._lock:
            self.commit()
            with self._index_errors() as index:
                deleted = self._delete_matching(index, index.find(AnyTermQuery(TAGS_FIELD, tags)))

            self._metrics.collect(CacheEvent.FLUSHES_BY_TAGS)
            logger.debug("Flushed %d entries tagged any of %r", deleted, tags)

    def find_identifiers_by_tag(self, tag: str) -> Iterator[str]:
        """Get identifiers of live entries carrying the tag.

        The query runs immediately; the returned iterator walks a
        snapshot of its result and cannot be restarted.
        """
        with self._lock:
            self.commit()
            with self._index_errors() as index:
                live, stale = self._expiry.partition(
                    index.find(TermQuery(TAGS_FIELD, tag)), self._clock.now
                )
                self._delete_stale(index, stale)

            identifiers = [str(hit.get(IDENTIFIER_FIELD)) for hit in live]
        return iter(identifiers)

    # -------------------------------------------------------------------------
    # Garbage collection
    # -------------------------------------------------------------------------

    def collect_garbage(self) -> None:
        """Delete every document whose lifetime ended before now."""
        with self._lock:
            self.commit()
            now = self._clock.now
            with self._index_errors() as index:
                deleted = self._delete_matching(
                    index, index.find(RangeQuery(LIFETIME_FIELD, upper=now, inclusive=False))
                )
                if self._config.optimize:
                    index.optimize()

            self._metrics.collect(CacheEvent.GARBAGE_COLLECTIONS)
            logger.info("Garbage collection removed %d expired entries", deleted)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def optimize(self) -> None:
        """Commit the buffer and compact the index."""
        with self._lock:
            self.commit()
            with self._index_errors() as index:
                index.optimize()

    def stats(self) -> dict[str, Any]:
        """Get buffer and index statistics."""
        with self._lock:
            with self._index_errors() as index:
                documents = index.count()
            return {
                "buffered": len(self._buffer),
                "documents": documents,
                "directory": str(getattr(index, "directory", "")) or None,
                "compression": self._compressor.algorithm.value if self._compressor else None,
                "now": self._clock.now,
            }

    def close(self) -> None:
        """Commit anything still buffered and close the index.

        Safe to call more than once. Writing to a closed backend reopens
        it, so the next close commits those writes as well.
        """
        with self._lock:
            if self._closed:
                return
            self.commit()
            if self._index is not None:
                with self._index_errors() as index:
                    index.close()
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "IndexCacheBackend":
        return self

    def __repr__(self) -> str:
        return (
            f"IndexCacheBackend(directory={str(self._config.get_directory())!r}, "
            f"buffered={len(self._buffer)})"
        )
