"""Tests for VariableFrontend."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

import pytest

from indexcache.backends import IndexCacheBackend
from indexcache.frontend import (
    ExtensionType,
    JsonSerializer,
    MsgpackSerializer,
    PickleSerializer,
    VariableFrontend,
    is_valid_identifier,
    is_valid_tag,
)


@pytest.fixture
def frontend(memory_backend: IndexCacheBackend) -> VariableFrontend:
    return VariableFrontend("pages", memory_backend)


class TestValidation:
    @pytest.mark.parametrize("value", ["page_1", "a-b", "tx%2F&x", "A" * 250])
    def test_valid(self, value: str) -> None:
        assert is_valid_identifier(value)
        assert is_valid_tag(value)

    @pytest.mark.parametrize("value", ["", "with space", "a/b", "A" * 251, "ü", None, 1])
    def test_invalid(self, value: object) -> None:
        assert not is_valid_identifier(value)
        assert not is_valid_tag(value)

    def test_invalid_cache_name(self, memory_backend: IndexCacheBackend) -> None:
        with pytest.raises(ValueError):
            VariableFrontend("bad name", memory_backend)

    def test_invalid_entry_identifier(self, frontend: VariableFrontend) -> None:
        with pytest.raises(ValueError):
            frontend.set("bad id", 1)

    def test_invalid_tag(self, frontend: VariableFrontend) -> None:
        with pytest.raises(ValueError):
            frontend.set("ok", 1, ["bad tag"])
        assert not frontend.has("ok")


class TestVariableFrontend:
    """Tests for storing values through the frontend."""

    def test_roundtrip_python_values(self, frontend: VariableFrontend) -> None:
        value = {"title": "Home", "ids": [1, 2, 3], "nested": {"x": None}}
        frontend.set("page_1", value, ["pages"])
        assert frontend.get("page_1") == value

    def test_missing_is_none(self, frontend: VariableFrontend) -> None:
        assert frontend.get("missing") is None

    def test_falsy_values_survive(self, frontend: VariableFrontend) -> None:
        frontend.set("zero", 0)
        frontend.set("empty", "")
        assert frontend.get("zero") == 0
        assert frontend.get("empty") == ""

    def test_flush_by_tag(self, frontend: VariableFrontend) -> None:
        frontend.set("a", 1, "pages")
        frontend.set("b", 2, ["news"])
        frontend.flush_by_tag("pages")
        assert not frontend.has("a")
        assert frontend.has("b")

    def test_flush_by_tags_and_flush(self, frontend: VariableFrontend) -> None:
        frontend.set("a", 1, ["t1"])
        frontend.set("b", 2, ["t2"])
        frontend.set("c", 3, ["t3"])
        frontend.flush_by_tags(["t1", "t2"])
        assert [frontend.has(i) for i in "abc"] == [False, False, True]
        frontend.flush()
        assert not frontend.has("c")

    def test_remove(self, frontend: VariableFrontend) -> None:
        frontend.set("a", 1)
        assert frontend.remove("a") is True
        assert frontend.remove("a") is False

    def test_json_serializer(self, memory_backend: IndexCacheBackend) -> None:
        frontend = VariableFrontend("pages", memory_backend, serializer=JsonSerializer())
        frontend.set("a", {"k": [1, 2]})
        assert memory_backend.get("a") == b'{"k":[1,2]}'
        assert frontend.get("a") == {"k": [1, 2]}

    def test_context_manager_closes_backend(self, memory_backend: IndexCacheBackend) -> None:
        with VariableFrontend("pages", memory_backend, PickleSerializer()) as frontend:
            frontend.set("a", 1)
        assert memory_backend.closed
        assert memory_backend.index.count() == 1


@dataclass
class PageRecord:
    uid: int
    title: str
    url: SplitResult | None = None


class TestMsgpackSerializer:
    """Tests for MessagePack serialization with extension types."""

    @pytest.fixture
    def serializer(self) -> MsgpackSerializer:
        pytest.importorskip("msgpack")
        return MsgpackSerializer(
            [ExtensionType.for_dataclass(1, PageRecord), ExtensionType.for_url(2)]
        )

    def test_plain_values(self, serializer: MsgpackSerializer) -> None:
        value = {"ids": [1, 2, 3], "raw": b"\x00\xff", "name": "Home", 7: None}
        assert serializer.loads(serializer.dumps(value)) == value

    def test_url_extension(self, serializer: MsgpackSerializer) -> None:
        url = urlsplit("https://example.org/page?id=1#top")
        assert serializer.loads(serializer.dumps(url)) == url

    def test_nested_extensions(self, serializer: MsgpackSerializer) -> None:
        page = PageRecord(1, "Home", urlsplit("https://example.org/"))
        restored = serializer.loads(serializer.dumps([page]))
        assert restored == [page]
        assert isinstance(restored[0].url, SplitResult)

    def test_unregistered_type(self, serializer: MsgpackSerializer) -> None:
        with pytest.raises(TypeError):
            serializer.dumps(object())

    def test_unknown_extension_code_is_kept(self, serializer: MsgpackSerializer) -> None:
        msgpack = pytest.importorskip("msgpack")
        data = msgpack.packb(msgpack.ExtType(99, b"opaque"))
        assert serializer.loads(data) == msgpack.ExtType(99, b"opaque")

    def test_duplicate_code(self) -> None:
        pytest.importorskip("msgpack")
        with pytest.raises(ValueError):
            MsgpackSerializer([ExtensionType.for_url(1), ExtensionType.for_dataclass(1, PageRecord)])

    def test_code_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            ExtensionType.for_url(128)

    def test_roundtrip_through_frontend(
        self, serializer: MsgpackSerializer, memory_backend: IndexCacheBackend
    ) -> None:
        frontend = VariableFrontend("pages", memory_backend, serializer=serializer)
        page = PageRecord(5, "News", urlsplit("https://example.org/news"))
        frontend.set("page_5", page, ["pages"])
        memory_backend.commit()
        assert frontend.get("page_5") == page
