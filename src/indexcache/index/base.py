"""Base classes and interfaces for the document index.

A document index stores documents made of named fields and answers
term, OR-of-terms, range and wildcard queries over them. Additions and
deletions only become visible to queries after ``commit()``; ``find()``
commits any pending changes before it searches.

Documents cannot be updated in place. Replacing a document means
deleting the old one and adding a new one.

Example:
    >>> index = MemoryDocumentIndex()
    >>> doc = Document()
    >>> doc.add(Field.keyword("identifier", "page-1"))
    >>> doc.add(Field.text("tags", "pages news"))
    >>> index.add_document(doc)
    >>> index.commit()
    >>> [hit.get("identifier") for hit in index.find(TermQuery("tags", "news"))]
    ['page-1']
"""

from __future__ import annotations

import fnmatch
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol, Union

StoredValue = Union[str, int, bytes]


# =============================================================================
# Exceptions
# =============================================================================


class DocumentIndexError(Exception):
    """Base exception for document index errors."""

    def __init__(self, message: str, directory: str | None = None) -> None:
        self.directory = directory
        super().__init__(f"{message} ({directory})" if directory else message)


class IndexCorruptedError(DocumentIndexError):
    """Raised when persisted index data cannot be read back."""

    pass


# =============================================================================
# Fields and Documents
# =============================================================================


class FieldKind(str, Enum):
    """How a field is indexed and stored.

    KEYWORD: indexed as one untokenized term, stored.
    TEXT: tokenized and indexed, stored.
    UNSTORED: tokenized and indexed, not stored.
    BINARY: stored only, never indexed.
    NUMERIC: indexed as one integer term, stored as an integer.
    """

    KEYWORD = "keyword"
    TEXT = "text"
    UNSTORED = "unstored"
    BINARY = "binary"
    NUMERIC = "numeric"

    @property
    def is_indexed(self) -> bool:
        return self is not FieldKind.BINARY

    @property
    def is_stored(self) -> bool:
        return self is not FieldKind.UNSTORED

    @property
    def is_tokenized(self) -> bool:
        return self in (FieldKind.TEXT, FieldKind.UNSTORED)


@dataclass(frozen=True)
class Field:
    """A named document field.

    Attributes:
        name: Field name.
        value: Field value (str, int or bytes depending on kind).
        kind: Indexing/storage behaviour.
    """

    name: str
    value: StoredValue
    kind: FieldKind

    @classmethod
    def keyword(cls, name: str, value: str) -> "Field":
        return cls(name, str(value), FieldKind.KEYWORD)

    @classmethod
    def text(cls, name: str, value: str) -> "Field":
        return cls(name, str(value), FieldKind.TEXT)

    @classmethod
    def unstored(cls, name: str, value: str) -> "Field":
        return cls(name, str(value), FieldKind.UNSTORED)

    @classmethod
    def binary(cls, name: str, value: bytes) -> "Field":
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"Binary field '{name}' requires bytes")
        return cls(name, bytes(value), FieldKind.BINARY)

    @classmethod
    def numeric(cls, name: str, value: int) -> "Field":
        return cls(name, int(value), FieldKind.NUMERIC)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        value: Any = self.value
        if self.kind is FieldKind.BINARY:
            value = bytes(self.value).hex()  # type: ignore[arg-type]
        return {"name": self.name, "kind": self.kind.value, "value": value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Field":
        kind = FieldKind(data["kind"])
        value = data["value"]
        if kind is FieldKind.BINARY:
            value = bytes.fromhex(value)
        elif kind is FieldKind.NUMERIC:
            value = int(value)
        return cls(data["name"], value, kind)


@dataclass
class Document:
    """An ordered collection of fields."""

    fields: list[Field] = field(default_factory=list)

    def add(self, item: Field) -> "Document":
        self.fields.append(item)
        return self

    def get(self, name: str) -> Field | None:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def stored_fields(self) -> dict[str, StoredValue]:
        """Get the values of every stored field, keyed by name."""
        return {f.name: f.value for f in self.fields if f.kind.is_stored}

    def to_dict(self) -> dict[str, Any]:
        return {"fields": [f.to_dict() for f in self.fields]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(fields=[Field.from_dict(f) for f in data.get("fields", [])])


@dataclass(frozen=True)
class Hit:
    """A document matched by a query.

    Only stored fields are readable from a hit. Unstored fields were
    indexed but their values are gone.

    Attributes:
        doc_id: Internal document number, valid until the next optimize.
        fields: Stored field values.
    """

    doc_id: int
    fields: dict[str, StoredValue]

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.fields


# =============================================================================
# Queries
# =============================================================================


class TermLookup(Protocol):
    """Read access to the inverted index used when evaluating queries."""

    def postings(self, field_name: str, term: str) -> set[int]: ...

    def terms(self, field_name: str) -> Iterable[str]: ...


class Query(ABC):
    """A query over the inverted index."""

    @abstractmethod
    def evaluate(self, lookup: TermLookup) -> set[int]:
        """Get the ids of every live document matching this query."""
        pass


@dataclass(frozen=True)
class TermQuery(Query):
    """Match documents holding an exact term in a field."""

    field_name: str
    term: str

    def evaluate(self, lookup: TermLookup) -> set[int]:
        return set(lookup.postings(self.field_name, str(self.term)))


@dataclass(frozen=True)
class AnyTermQuery(Query):
    """Match documents holding any of several terms in a field (boolean OR)."""

    field_name: str
    terms: tuple[str, ...]

    def __init__(self, field_name: str, terms: Iterable[str]) -> None:
        object.__setattr__(self, "field_name", field_name)
        object.__setattr__(self, "terms", tuple(str(t) for t in terms))

    def evaluate(self, lookup: TermLookup) -> set[int]:
        matches: set[int] = set()
        for term in self.terms:
            matches |= lookup.postings(self.field_name, term)
        return matches


def _compare_key(term: str) -> tuple[int, Any]:
    """Order integers numerically and everything else lexicographically."""
    try:
        return (0, int(term))
    except ValueError:
        return (1, term)


@dataclass(frozen=True)
class RangeQuery(Query):
    """Match documents whose term in a field lies within bounds.

    Integer terms are compared numerically. A bound of ``None`` leaves
    that side open.

    Attributes:
        field_name: Field to search.
        lower: Lower bound or None.
        upper: Upper bound or None.
        inclusive: Whether the bounds themselves match.
    """

    field_name: str
    lower: str | int | None = None
    upper: str | int | None = None
    inclusive: bool = True

    def _in_range(self, term: str) -> bool:
        key = _compare_key(term)
        if self.lower is not None:
            low = _compare_key(str(self.lower))
            if key < low or (key == low and not self.inclusive):
                return False
        if self.upper is not None:
            high = _compare_key(str(self.upper))
            if key > high or (key == high and not self.inclusive):
                return False
        return True

    def evaluate(self, lookup: TermLookup) -> set[int]:
        matches: set[int] = set()
        for term in lookup.terms(self.field_name):
            if self._in_range(term):
                matches |= lookup.postings(self.field_name, term)
        return matches


@dataclass(frozen=True)
class WildcardQuery(Query):
    """Match documents with a term matching a shell-style pattern (``*``, ``?``)."""

    field_name: str
    pattern: str

    def evaluate(self, lookup: TermLookup) -> set[int]:
        matches: set[int] = set()
        for term in lookup.terms(self.field_name):
            if fnmatch.fnmatchcase(term, self.pattern):
                matches |= lookup.postings(self.field_name, term)
        return matches


# =============================================================================
# Abstract Document Index
# =============================================================================


class DocumentIndex(ABC):
    """Abstract base class for document indexes.

    Subclasses provide the storage. Every index has an internal
    buffering threshold, ``max_buffered_docs``: once more documents
    than that are pending, the index commits on its own.
    """

    DEFAULT_MAX_BUFFERED_DOCS = 10

    @property
    @abstractmethod
    def max_buffered_docs(self) -> int:
        pass

    @max_buffered_docs.setter
    @abstractmethod
    def max_buffered_docs(self, value: int) -> None:
        pass

    @abstractmethod
    def add_document(self, document: Document) -> None:
        """Stage a document for addition."""
        pass

    @abstractmethod
    def delete(self, doc_id: int | Hit) -> None:
        """Stage a document for deletion."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Make all staged additions and deletions visible and durable."""
        pass

    @abstractmethod
    def find(self, query: Query) -> list[Hit]:
        """Commit pending changes, then get matching hits in document order."""
        pass

    @abstractmethod
    def optimize(self) -> None:
        """Compact storage, physically dropping deleted documents."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get the number of live committed documents."""
        pass

    @property
    @abstractmethod
    def has_pending_changes(self) -> bool:
        pass

    def close(self) -> None:
        """Commit pending changes and release resources."""
        self.commit()

    def __enter__(self) -> "DocumentIndex":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
