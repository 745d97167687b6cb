"""Configuration for the index cache backend."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from indexcache.compression import DEFAULT_LEVEL, CompressionAlgorithm, is_valid_level

logger = logging.getLogger(__name__)

_INDEX_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9\-_]")

# Option names accepted by from_options(), camelCase spelling -> field name.
_OPTION_ALIASES = {
    "directory": "directory",
    "maxBufferedDocs": "max_buffered_docs",
    "compression": "compression",
    "compressionLevel": "compression_level",
    "compressionAlgorithm": "compression_algorithm",
    "optimize": "optimize",
    "indexName": "index_name",
    "defaultLifetime": "default_lifetime",
    "storageRoot": "storage_root",
    "commitBatchMargin": "commit_batch_margin",
    "tuneIndexBuffering": "tune_index_buffering",
}


def sanitize_index_name(name: str) -> str:
    """Strip everything except letters, digits, '-' and '_'."""
    return _INDEX_NAME_PATTERN.sub("", str(name))


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


def parse_bool(value: Any) -> bool | None:
    """Interpret an option value as a boolean.

    Strings from configuration files are matched case-insensitively
    against the usual spellings (``"true"``/``"false"``, ``"1"``/``"0"``,
    ``"yes"``/``"no"``, ``"on"``/``"off"``). Returns None for strings
    that are none of these.
    """
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        return None
    return bool(value)


@dataclass
class IndexCacheConfig:
    """Configuration for ``IndexCacheBackend``.

    Attributes:
        context: Namespace the cache belongs to (e.g. an application context).
        index_name: Name of the index within the context.
        storage_root: Root under which per-context index directories live.
        directory: Explicit index directory, overriding the derived one.
        default_lifetime: Seconds to live when set() gets no lifetime.
        max_buffered_docs: Buffered entries allowed before a commit.
        commit_batch_margin: Added to the entry count when raising the
            index's own buffering threshold during a commit.
        tune_index_buffering: Whether to raise that threshold at all.
        compression: Whether payloads are compressed.
        compression_level: -1 for the algorithm default, otherwise 0-9.
        compression_algorithm: Encoder name ("zlib", "gzip", "zstd").
        optimize: Whether flush and garbage collection compact the index.
    """

    context: str = "default"
    index_name: str = "cache"
    storage_root: str = ".indexcache"
    directory: str | None = None
    default_lifetime: int = 3600
    max_buffered_docs: int = 1000
    commit_batch_margin: int = 10
    tune_index_buffering: bool = True
    compression: bool = False
    compression_level: int = DEFAULT_LEVEL
    compression_algorithm: str = CompressionAlgorithm.ZLIB.value
    optimize: bool = False

    def __post_init__(self) -> None:
        sanitized = sanitize_index_name(self.index_name)
        if sanitized != self.index_name:
            logger.warning("Index name %r sanitized to %r", self.index_name, sanitized)
            self.index_name = sanitized

        if self.max_buffered_docs < 0:
            logger.warning("maxBufferedDocs %d coerced to %d", self.max_buffered_docs, -self.max_buffered_docs)
            self.max_buffered_docs = abs(self.max_buffered_docs)

        if not is_valid_level(self.compression_level):
            logger.warning(
                "Ignoring compression level %d, keeping %d", self.compression_level, DEFAULT_LEVEL
            )
            self.compression_level = DEFAULT_LEVEL

    def get_directory(self) -> Path:
        """Get the index directory, derived from root, context and name unless set."""
        if self.directory:
            return Path(self.directory)
        path = Path(self.storage_root)
        if self.context:
            path = path / self.context
        return path / (self.index_name or "cache")

    @classmethod
    def from_options(
        cls,
        options: Mapping[str, Any] | None = None,
        context: str = "default",
    ) -> "IndexCacheConfig":
        """Build a configuration from backend options.

        Both camelCase (``maxBufferedDocs``) and snake_case option names
        are accepted. Unknown options are ignored with a warning.

        Example:
            >>> config = IndexCacheConfig.from_options(
            ...     {"indexName": "pages", "compression": True, "compressionLevel": 12},
            ...     context="Production",
            ... )
            >>> config.compression_level
            -1
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {"context": context}

        for key, value in (options or {}).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                logger.warning("Ignoring unknown cache option %r", key)
                continue
            kwargs[name] = value

        for name in ("max_buffered_docs", "compression_level", "default_lifetime", "commit_batch_margin"):
            if name in kwargs:
                kwargs[name] = int(kwargs[name])
        for name in ("compression", "optimize", "tune_index_buffering"):
            if name in kwargs:
                parsed = parse_bool(kwargs[name])
                if parsed is None:
                    logger.warning("Ignoring option %s=%r, not a boolean", name, kwargs.pop(name))
                else:
                    kwargs[name] = parsed
        if kwargs.get("directory") is not None:
            kwargs["directory"] = str(kwargs["directory"])

        return cls(**kwargs)
