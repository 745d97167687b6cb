"""Filesystem-backed document index.

The index directory holds immutable segment files and a manifest:

    <directory>/
        manifest.json       # generation, next document id, segments, tombstones
        seg_000001.json     # documents added by one commit
        seg_000002.json
        write.lock          # held while a commit writes files

Every commit that adds documents writes one new segment. Deletions
are recorded as tombstones in the manifest, so a deleted document
stays on disk until ``optimize()`` merges all live documents into a
single segment. Files are written to a temporary name and renamed into
place, so a crash mid-commit leaves the previous manifest intact.

Example:
    >>> index = FileSystemDocumentIndex.open_or_create(".indexcache/default/cache")
    >>> index.add_document(Document([Field.keyword("identifier", "a")]))
    >>> index.commit()
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from indexcache.index.analysis import Tokenizer
from indexcache.index.base import (
    Document,
    DocumentIndex,
    DocumentIndexError,
    IndexCorruptedError,
)
from indexcache.index.memory import MemoryDocumentIndex

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
LOCK_FILENAME = "write.lock"
FORMAT_VERSION = 1


def _atomic_write(path: Path, content: bytes) -> None:
    """Write content to path via a synced temp file and a rename."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class FileSystemDocumentIndex(MemoryDocumentIndex):
    """Document index persisted as segment files in a directory.

    Queries are answered from memory; the files are read once when the
    index is opened. Commits from several processes are serialized by a
    lock file, but the index does not reload changes made by another
    process after it was opened.
    """

    def __init__(
        self,
        directory: str | Path,
        max_buffered_docs: int = DocumentIndex.DEFAULT_MAX_BUFFERED_DOCS,
        tokenizer: Tokenizer | None = None,
        lock_timeout: float = 30.0,
    ) -> None:
        """Open the index stored in an existing directory.

        Args:
            directory: Index directory.
            max_buffered_docs: Pending additions allowed before an automatic commit.
            tokenizer: Tokenizer for TEXT and UNSTORED fields.
            lock_timeout: Seconds to wait for the write lock.

        Raises:
            DocumentIndexError: If the directory does not exist.
            IndexCorruptedError: If the manifest or a segment is unreadable.
        """
        super().__init__(max_buffered_docs=max_buffered_docs, tokenizer=tokenizer)
        self._directory = Path(directory)
        if not self._directory.is_dir():
            raise DocumentIndexError("Index directory does not exist", str(self._directory))

        self._lock = FileLock(str(self._directory / LOCK_FILENAME), timeout=lock_timeout)
        self._generation = 0
        self._segments: list[str] = []
        self._tombstones: set[int] = set()
        self._load()

    @classmethod
    def open_or_create(
        cls,
        directory: str | Path,
        **kwargs: Any,
    ) -> "FileSystemDocumentIndex":
        """Open the index in a directory, creating an empty one if needed.

        Raises:
            DocumentIndexError: If the directory cannot be created.
        """
        path = Path(directory)
        if not path.is_dir():
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DocumentIndexError(f"Could not create index directory: {e}", str(path)) from e
            logger.debug("Created index directory %s", path)
        return cls(path, **kwargs)

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def segment_count(self) -> int:
        return len(self._segments)

    @property
    def deleted_count(self) -> int:
        """Documents deleted but still present in segment files."""
        return len(self._tombstones)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _manifest_path(self) -> Path:
        return self._directory / MANIFEST_FILENAME

    def _read_json(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, "rb") as f:
                return json.loads(f.read().decode("utf-8"))
        except (OSError, ValueError) as e:
            raise IndexCorruptedError(f"Could not read {path.name}: {e}", str(self._directory)) from e

    def _load(self) -> None:
        manifest_path = self._manifest_path()
        if not manifest_path.exists():
            return

        manifest = self._read_json(manifest_path)
        if not isinstance(manifest, dict):
            raise IndexCorruptedError("Manifest is not a JSON object", str(self._directory))
        if manifest.get("format") != FORMAT_VERSION:
            raise IndexCorruptedError(
                f"Unsupported index format {manifest.get('format')!r}", str(self._directory)
            )

        try:
            self._generation = int(manifest.get("generation", 0))
            self._next_id = int(manifest.get("next_doc_id", 0))
            self._segments = [str(name) for name in manifest.get("segments", [])]
            self._tombstones = {int(doc_id) for doc_id in manifest.get("deleted", [])}
        except (AttributeError, TypeError, ValueError) as e:
            raise IndexCorruptedError(f"Malformed manifest: {e}", str(self._directory)) from e

        for segment in self._segments:
            data = self._read_json(self._directory / segment)
            try:
                for doc_id, doc_data in data["documents"].items():
                    doc_id = int(doc_id)
                    if doc_id not in self._tombstones:
                        self._index(doc_id, Document.from_dict(doc_data))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise IndexCorruptedError(
                    f"Malformed segment {segment}: {e!r}", str(self._directory)
                ) from e

        logger.debug(
            "Opened index %s: %d documents in %d segments",
            self._directory,
            self.count(),
            len(self._segments),
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _write_manifest(self) -> None:
        manifest = {
            "format": FORMAT_VERSION,
            "generation": self._generation,
            "next_doc_id": self._next_id,
            "segments": self._segments,
            "deleted": sorted(self._tombstones),
        }
        _atomic_write(self._manifest_path(), json.dumps(manifest).encode("utf-8"))

    def _write_segment(self, doc_ids: list[int]) -> str:
        self._generation += 1
        name = f"seg_{self._generation:06d}.json"
        payload = {
            "documents": {
                str(doc_id): self._documents[doc_id].to_dict() for doc_id in doc_ids
            }
        }
        _atomic_write(self._directory / name, json.dumps(payload).encode("utf-8"))
        return name

    def _persist(self, added: list[int], deleted: list[int]) -> None:
        try:
            with self._lock:
                self._tombstones.update(deleted)
                if added:
                    self._segments.append(self._write_segment(added))
                self._write_manifest()
        except Timeout as e:
            raise DocumentIndexError("Timed out waiting for the write lock", str(self._directory)) from e
        except OSError as e:
            raise DocumentIndexError(f"Could not write index files: {e}", str(self._directory)) from e

    def optimize(self) -> None:
        """Merge every live document into one segment and drop tombstones."""
        super().optimize()
        if len(self._segments) <= 1 and not self._tombstones:
            return

        old_segments = list(self._segments)
        try:
            with self._lock:
                self._segments = [self._write_segment(sorted(self._documents))]
                self._tombstones = set()
                self._write_manifest()
                for name in old_segments:
                    (self._directory / name).unlink(missing_ok=True)
        except Timeout as e:
            raise DocumentIndexError("Timed out waiting for the write lock", str(self._directory)) from e
        except OSError as e:
            raise DocumentIndexError(f"Could not optimize index: {e}", str(self._directory)) from e

        logger.info(
            "Optimized index %s: merged %d segments, %d live documents",
            self._directory,
            len(old_segments),
            self.count(),
        )
