"""Frontend serializing Python values for byte-oriented cache backends.

Backends only ever see byte strings. The frontend validates identifiers
and tags, turns values into bytes with a pluggable serializer and turns
them back on the way out.

Example:
    >>> cache = VariableFrontend("pages", IndexCacheBackend(config))
    >>> cache.set("page_1", {"title": "Home"}, tags=["pages"])
    >>> cache.get("page_1")
    {'title': 'Home'}
"""

from __future__ import annotations

import dataclasses
import json
import pickle
import re
from typing import Any, Callable, Iterable, Protocol, runtime_checkable
from urllib.parse import SplitResult, urlsplit

from indexcache.backends.base import TaggableBackend

_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z0-9_%\-&]{1,250}$")
_TAG_PATTERN = re.compile(r"^[a-zA-Z0-9_%\-&]{1,250}$")


def is_valid_identifier(identifier: Any) -> bool:
    return isinstance(identifier, str) and _IDENTIFIER_PATTERN.match(identifier) is not None


def is_valid_tag(tag: Any) -> bool:
    return isinstance(tag, str) and _TAG_PATTERN.match(tag) is not None


# =============================================================================
# Serializers
# =============================================================================


@runtime_checkable
class Serializer(Protocol):
    """Protocol for turning values into bytes and back."""

    def dumps(self, value: Any) -> bytes: ...

    def loads(self, data: bytes) -> Any: ...


class PickleSerializer:
    """Serialize with pickle. Only use with caches nobody else can write to."""

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    def dumps(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self.protocol)

    def loads(self, data: bytes) -> Any:
        return pickle.loads(data)


class JsonSerializer:
    """Serialize JSON-compatible values as UTF-8 JSON."""

    def dumps(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":"), default=str).encode("utf-8")

    def loads(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


# =============================================================================
# MessagePack
# =============================================================================


@dataclasses.dataclass(frozen=True)
class ExtensionType:
    """A MessagePack extension type for one Python class.

    ``encode`` turns an instance into plain MessagePack data (packed
    recursively, so it may hold other extension values) and ``decode``
    rebuilds the instance from it.

    Attributes:
        code: Extension type code, 0-127.
        cls: Class whose instances use this extension.
        encode: Instance to plain data.
        decode: Plain data to instance.
    """

    code: int
    cls: type
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]

    def __post_init__(self) -> None:
        if not 0 <= self.code <= 127:
            raise ValueError(f"Extension type code {self.code} is outside 0..127")

    @classmethod
    def for_dataclass(cls, code: int, dataclass_type: type) -> "ExtensionType":
        """Store a dataclass as a mapping of its fields."""
        return cls(
            code=code,
            cls=dataclass_type,
            encode=lambda value: {
                f.name: getattr(value, f.name) for f in dataclasses.fields(value)
            },
            decode=lambda data: dataclass_type(**data),
        )

    @classmethod
    def for_url(cls, code: int) -> "ExtensionType":
        """Store ``urllib.parse.SplitResult`` values as their URL string."""
        return cls(
            code=code,
            cls=SplitResult,
            encode=lambda value: value.geturl(),
            decode=urlsplit,
        )


class MsgpackSerializer:
    """Serialize with MessagePack, extensible with custom extension types.

    Requires the optional ``msgpack`` distribution
    (``pip install indexcache[msgpack]``).

    Example:
        >>> serializer = MsgpackSerializer([ExtensionType.for_url(1)])
        >>> serializer.loads(serializer.dumps({"home": urlsplit("https://example.org/")}))
        {'home': SplitResult(scheme='https', netloc='example.org', path='/', query='', fragment='')}
    """

    def __init__(self, extensions: Iterable[ExtensionType] = ()) -> None:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack is required for MsgpackSerializer") from None
        self._msgpack = msgpack
        self._by_code: dict[int, ExtensionType] = {}
        for extension in extensions:
            if extension.code in self._by_code:
                raise ValueError(f"Extension type code {extension.code} registered twice")
            self._by_code[extension.code] = extension

    @property
    def extensions(self) -> list[ExtensionType]:
        return list(self._by_code.values())

    def _default(self, value: Any) -> Any:
        for extension in self._by_code.values():
            if isinstance(value, extension.cls):
                return self._msgpack.ExtType(extension.code, self.dumps(extension.encode(value)))
        # strict_types routes tuples and builtin subclasses here too
        if isinstance(value, tuple):
            return list(value)
        for builtin in (dict, list, str, bytes, int, float):
            if isinstance(value, builtin):
                return builtin(value)
        raise TypeError(f"Cannot serialize {type(value).__name__} with MessagePack")

    def _ext_hook(self, code: int, data: bytes) -> Any:
        extension = self._by_code.get(code)
        if extension is None:
            return self._msgpack.ExtType(code, data)
        return extension.decode(self.loads(data))

    def dumps(self, value: Any) -> bytes:
        return self._msgpack.packb(
            value, default=self._default, use_bin_type=True, strict_types=True
        )

    def loads(self, data: bytes) -> Any:
        return self._msgpack.unpackb(
            data, ext_hook=self._ext_hook, raw=False, strict_map_key=False
        )


# =============================================================================
# Frontend
# =============================================================================


class VariableFrontend:
    """Cache frontend storing arbitrary values through a serializer.

    Attributes:
        identifier: Name of the cache this frontend serves.
    """

    def __init__(
        self,
        identifier: str,
        backend: TaggableBackend,
        serializer: Serializer | None = None,
    ) -> None:
        if not is_valid_identifier(identifier):
            raise ValueError(f"'{identifier}' is not a valid cache identifier")
        self.identifier = identifier
        self._backend = backend
        self._serializer = serializer or PickleSerializer()

    @property
    def backend(self) -> TaggableBackend:
        return self._backend

    def _check_identifier(self, entry_identifier: str) -> None:
        if not is_valid_identifier(entry_identifier):
            raise ValueError(f"'{entry_identifier}' is not a valid cache entry identifier")

    def _check_tags(self, tags: Iterable[str]) -> list[str]:
        tags = list(tags)
        for tag in tags:
            if not is_valid_tag(tag):
                raise ValueError(f"'{tag}' is not a valid tag for a cache entry")
        return tags

    def set(
        self,
        entry_identifier: str,
        value: Any,
        tags: Iterable[str] = (),
        lifetime: int | None = None,
    ) -> None:
        """Serialize and store a value.

        Raises:
            ValueError: If the identifier or a tag is invalid.
        """
        self._check_identifier(entry_identifier)
        checked = self._check_tags([tags] if isinstance(tags, str) else tags)
        self._backend.set(entry_identifier, self._serializer.dumps(value), checked, lifetime)

    def get(self, entry_identifier: str) -> Any:
        """Get a value, or None if there is no live entry."""
        self._check_identifier(entry_identifier)
        raw = self._backend.get(entry_identifier)
        if raw is None:
            return None
        return self._serializer.loads(raw)

    def has(self, entry_identifier: str) -> bool:
        self._check_identifier(entry_identifier)
        return self._backend.has(entry_identifier)

    def remove(self, entry_identifier: str) -> bool:
        self._check_identifier(entry_identifier)
        return self._backend.remove(entry_identifier)

    def flush(self) -> None:
        self._backend.flush()

    def flush_by_tag(self, tag: str) -> None:
        self._check_tags([tag])
        self._backend.flush_by_tag(tag)

    def flush_by_tags(self, tags: Iterable[str]) -> None:
        self._backend.flush_by_tags(self._check_tags(tags))

    def collect_garbage(self) -> None:
        self._backend.collect_garbage()

    def close(self) -> None:
        self._backend.close()

    def __enter__(self) -> "VariableFrontend":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
