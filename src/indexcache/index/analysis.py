"""Tokenizers for tokenized document fields."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Protocol, runtime_checkable


@dataclass(frozen=True)
class Token:
    """A term with its position in the source text."""

    text: str
    position: int
    start: int
    end: int


@runtime_checkable
class Tokenizer(Protocol):
    """Protocol for splitting field values into terms."""

    def tokenize(self, value: str) -> Iterator[Token]: ...


class WhitespaceTokenizer:
    """Split on single spaces, keeping everything else intact.

    Terms are not lowercased or stemmed, so tags such as ``page_12`` or
    ``Tx-Foo%1`` are indexed exactly as given. Empty terms produced by
    consecutive spaces are dropped.

    Example:
        >>> [t.text for t in WhitespaceTokenizer().tokenize("a  Tag_1 b")]
        ['a', 'Tag_1', 'b']
    """

    def tokenize(self, value: str) -> Iterator[Token]:
        offset = 0
        for position, part in enumerate(value.split(" ")):
            term = part.strip()
            if term:
                yield Token(term, position, offset, offset + len(part))
            offset += len(part) + 1

    def terms(self, value: str) -> list[str]:
        """Get just the term texts."""
        return [token.text for token in self.tokenize(value)]
