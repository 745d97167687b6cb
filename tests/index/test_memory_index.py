"""Tests for the in-memory document index and its queries."""

from __future__ import annotations

import pytest

from indexcache.index import (
    AnyTermQuery,
    Document,
    Field,
    FieldKind,
    Hit,
    MemoryDocumentIndex,
    RangeQuery,
    TermQuery,
    WhitespaceTokenizer,
    WildcardQuery,
)


def make_doc(identifier: str, tags: str = "", lifetime: int = 100) -> Document:
    return Document(
        [
            Field.keyword("identifier", identifier),
            Field.binary("content", identifier.encode()),
            Field.text("tags", tags),
            Field.numeric("lifetime", lifetime),
        ]
    )


@pytest.fixture
def index() -> MemoryDocumentIndex:
    return MemoryDocumentIndex()


def identifiers(hits: list[Hit]) -> list[str]:
    return [hit.get("identifier") for hit in hits]


class TestTokenizer:
    """Tests for WhitespaceTokenizer."""

    def test_splits_on_single_spaces(self) -> None:
        assert WhitespaceTokenizer().terms("a b c") == ["a", "b", "c"]

    def test_drops_empty_terms(self) -> None:
        assert WhitespaceTokenizer().terms("  a   b ") == ["a", "b"]

    def test_keeps_case_and_punctuation(self) -> None:
        assert WhitespaceTokenizer().terms("Page_1 tx-Foo%2") == ["Page_1", "tx-Foo%2"]


class TestFields:
    """Tests for Field and Document."""

    def test_unstored_field_not_readable(self) -> None:
        doc = Document([Field.keyword("identifier", "a"), Field.unstored("lifetime", "5")])
        assert doc.stored_fields() == {"identifier": "a"}

    def test_binary_field_requires_bytes(self) -> None:
        with pytest.raises(TypeError):
            Field.binary("content", "text")  # type: ignore[arg-type]

    def test_document_dict_roundtrip_keeps_kinds(self) -> None:
        doc = make_doc("a", "x y", 42)
        restored = Document.from_dict(doc.to_dict())
        assert restored == doc
        assert restored.get("lifetime").kind is FieldKind.NUMERIC
        assert restored.get("content").value == b"a"


class TestVisibility:
    """Tests for commit visibility rules."""

    def test_find_commits_pending_additions(self, index: MemoryDocumentIndex) -> None:
        index.add_document(make_doc("a"))
        assert index.has_pending_changes
        assert identifiers(index.find(TermQuery("identifier", "a"))) == ["a"]
        assert not index.has_pending_changes

    def test_count_ignores_uncommitted(self, index: MemoryDocumentIndex) -> None:
        index.add_document(make_doc("a"))
        assert index.count() == 0
        index.commit()
        assert index.count() == 1

    def test_auto_commit_over_threshold(self) -> None:
        index = MemoryDocumentIndex(max_buffered_docs=2)
        for name in "abc":
            index.add_document(make_doc(name))
        assert index.count() == 3
        assert not index.has_pending_changes

    def test_delete_then_add_replaces(self, index: MemoryDocumentIndex) -> None:
        index.add_document(make_doc("a", lifetime=1))
        index.commit()
        for hit in index.find(TermQuery("identifier", "a")):
            index.delete(hit)
        index.add_document(make_doc("a", lifetime=2))
        index.commit()

        hits = index.find(TermQuery("identifier", "a"))
        assert len(hits) == 1
        assert hits[0].get("lifetime") == 2

    def test_delete_unknown_id_is_ignored(self, index: MemoryDocumentIndex) -> None:
        index.delete(999)
        assert not index.has_pending_changes


class TestQueries:
    """Tests for query types."""

    @pytest.fixture(autouse=True)
    def populate(self, index: MemoryDocumentIndex) -> None:
        index.add_document(make_doc("a", "red blue", 10))
        index.add_document(make_doc("b", "blue", 20))
        index.add_document(make_doc("c", "green", 30))
        index.commit()

    def test_term_query_matches_tokenized_tags(self, index: MemoryDocumentIndex) -> None:
        assert identifiers(index.find(TermQuery("tags", "blue"))) == ["a", "b"]

    def test_term_query_is_exact(self, index: MemoryDocumentIndex) -> None:
        assert index.find(TermQuery("tags", "blu")) == []

    def test_any_term_query_is_or(self, index: MemoryDocumentIndex) -> None:
        hits = index.find(AnyTermQuery("tags", ["red", "green"]))
        assert identifiers(hits) == ["a", "c"]

    def test_range_query_exclusive_upper(self, index: MemoryDocumentIndex) -> None:
        hits = index.find(RangeQuery("lifetime", upper=20, inclusive=False))
        assert identifiers(hits) == ["a"]

    def test_range_query_inclusive(self, index: MemoryDocumentIndex) -> None:
        hits = index.find(RangeQuery("lifetime", lower=20, upper=30))
        assert identifiers(hits) == ["b", "c"]

    def test_range_query_numeric_not_lexicographic(self, index: MemoryDocumentIndex) -> None:
        index.add_document(make_doc("d", "", 9))
        hits = index.find(RangeQuery("lifetime", upper=10, inclusive=False))
        assert identifiers(hits) == ["d"]

    def test_wildcard_matches_everything(self, index: MemoryDocumentIndex) -> None:
        assert identifiers(index.find(WildcardQuery("identifier", "*"))) == ["a", "b", "c"]

    def test_wildcard_pattern(self, index: MemoryDocumentIndex) -> None:
        index.add_document(make_doc("page_1"))
        assert identifiers(index.find(WildcardQuery("identifier", "page_?"))) == ["page_1"]

    def test_range_over_unstored_terms(self, index: MemoryDocumentIndex) -> None:
        index.add_document(Document([Field.keyword("identifier", "legacy"), Field.unstored("lifetime", "5")]))
        hits = index.find(RangeQuery("lifetime", upper=6, inclusive=False))
        assert identifiers(hits) == ["legacy"]
        assert "lifetime" not in hits[0]

    def test_optimize_keeps_live_documents(self, index: MemoryDocumentIndex) -> None:
        for hit in index.find(TermQuery("identifier", "a")):
            index.delete(hit)
        index.optimize()
        assert index.count() == 2
        assert index.find(TermQuery("tags", "red")) == []
