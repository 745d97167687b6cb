"""Document index used as the persistent store of the cache.

Example:
    >>> from indexcache.index import (
    ...     Document,
    ...     Field,
    ...     FileSystemDocumentIndex,
    ...     TermQuery,
    ... )
    >>>
    >>> index = FileSystemDocumentIndex.open_or_create("/tmp/my-index")
    >>> index.add_document(Document([Field.keyword("identifier", "a")]))
    >>> hits = index.find(TermQuery("identifier", "a"))
"""

from indexcache.index.analysis import Token, Tokenizer, WhitespaceTokenizer
from indexcache.index.base import (
    AnyTermQuery,
    Document,
    DocumentIndex,
    DocumentIndexError,
    Field,
    FieldKind,
    Hit,
    IndexCorruptedError,
    Query,
    RangeQuery,
    TermQuery,
    WildcardQuery,
)
from indexcache.index.filesystem import FileSystemDocumentIndex
from indexcache.index.memory import MemoryDocumentIndex

__all__ = [
    # Base
    "Document",
    "DocumentIndex",
    "DocumentIndexError",
    "Field",
    "FieldKind",
    "Hit",
    "IndexCorruptedError",
    # Queries
    "Query",
    "TermQuery",
    "AnyTermQuery",
    "RangeQuery",
    "WildcardQuery",
    # Analysis
    "Token",
    "Tokenizer",
    "WhitespaceTokenizer",
    # Implementations
    "MemoryDocumentIndex",
    "FileSystemDocumentIndex",
]
