"""In-memory document index.

Keeps an inverted index (field -> term -> document ids) next to the
documents themselves. Nothing is persisted; the filesystem index builds
on this class and adds segment files.

Example:
    >>> index = MemoryDocumentIndex()
    >>> index.add_document(Document([Field.keyword("identifier", "a")]))
    >>> len(index.find(TermQuery("identifier", "a")))
    1
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from indexcache.index.analysis import Tokenizer, WhitespaceTokenizer
from indexcache.index.base import (
    Document,
    DocumentIndex,
    Hit,
    Query,
)

logger = logging.getLogger(__name__)


class MemoryDocumentIndex(DocumentIndex):
    """Inverted document index held in process memory.

    Additions and deletions are staged until ``commit()``. Staged
    additions are committed automatically once more than
    ``max_buffered_docs`` are pending, and ``find()`` always commits
    first so a search sees every earlier call.
    """

    def __init__(
        self,
        max_buffered_docs: int = DocumentIndex.DEFAULT_MAX_BUFFERED_DOCS,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        """Initialize the index.

        Args:
            max_buffered_docs: Pending additions allowed before an automatic commit.
            tokenizer: Tokenizer for TEXT and UNSTORED fields.
        """
        self._max_buffered_docs = max(1, int(max_buffered_docs))
        self._tokenizer = tokenizer or WhitespaceTokenizer()
        self._documents: dict[int, Document] = {}
        self._postings: dict[str, dict[str, set[int]]] = defaultdict(
            lambda: defaultdict(set)
        )
        self._next_id = 0
        self._pending_adds: list[Document] = []
        self._pending_deletes: set[int] = set()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def max_buffered_docs(self) -> int:
        return self._max_buffered_docs

    @max_buffered_docs.setter
    def max_buffered_docs(self, value: int) -> None:
        self._max_buffered_docs = max(1, int(value))

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._pending_adds or self._pending_deletes)

    @property
    def tokenizer(self) -> Tokenizer:
        return self._tokenizer

    # -------------------------------------------------------------------------
    # TermLookup
    # -------------------------------------------------------------------------

    def postings(self, field_name: str, term: str) -> set[int]:
        field_postings = self._postings.get(field_name)
        if not field_postings:
            return set()
        return set(field_postings.get(term, ()))

    def terms(self, field_name: str) -> Iterable[str]:
        field_postings = self._postings.get(field_name)
        if not field_postings:
            return []
        return [term for term, ids in field_postings.items() if ids]

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def add_document(self, document: Document) -> None:
        self._pending_adds.append(document)
        if len(self._pending_adds) > self._max_buffered_docs:
            self.commit()

    def delete(self, doc_id: int | Hit) -> None:
        if isinstance(doc_id, Hit):
            doc_id = doc_id.doc_id
        if doc_id in self._documents:
            self._pending_deletes.add(doc_id)

    def commit(self) -> None:
        if not self.has_pending_changes:
            return

        deleted = sorted(self._pending_deletes)
        for doc_id in deleted:
            self._unindex(doc_id)

        added: list[int] = []
        for document in self._pending_adds:
            doc_id = self._next_id
            self._next_id += 1
            self._index(doc_id, document)
            added.append(doc_id)

        self._pending_adds = []
        self._pending_deletes = set()
        self._persist(added, deleted)
        logger.debug(
            "Committed index: %d added, %d deleted, %d live",
            len(added),
            len(deleted),
            len(self._documents),
        )

    def optimize(self) -> None:
        self.commit()
        for field_name in list(self._postings):
            field_postings = self._postings[field_name]
            for term in [t for t, ids in field_postings.items() if not ids]:
                del field_postings[term]
            if not field_postings:
                del self._postings[field_name]

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def find(self, query: Query) -> list[Hit]:
        self.commit()
        doc_ids = sorted(query.evaluate(self))
        return [
            Hit(doc_id=doc_id, fields=self._documents[doc_id].stored_fields())
            for doc_id in doc_ids
            if doc_id in self._documents
        ]

    def count(self) -> int:
        return len(self._documents)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _terms_for(self, document: Document) -> Iterable[tuple[str, str]]:
        for item in document.fields:
            if not item.kind.is_indexed:
                continue
            if item.kind.is_tokenized:
                for token in self._tokenizer.tokenize(str(item.value)):
                    yield item.name, token.text
            else:
                yield item.name, str(item.value)

    def _index(self, doc_id: int, document: Document) -> None:
        self._documents[doc_id] = document
        for field_name, term in self._terms_for(document):
            self._postings[field_name][term].add(doc_id)

    def _unindex(self, doc_id: int) -> None:
        document = self._documents.pop(doc_id, None)
        if document is None:
            return
        for field_name, term in self._terms_for(document):
            field_postings = self._postings.get(field_name)
            if field_postings and term in field_postings:
                field_postings[term].discard(doc_id)

    def _persist(self, added: list[int], deleted: list[int]) -> None:
        """Hook for subclasses that store committed changes."""
        pass
