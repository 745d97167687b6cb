"""Tests for IndexCacheConfig."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from indexcache.backends import IndexCacheConfig, sanitize_index_name


class TestSanitizeIndexName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("cache", "cache"),
            ("page-cache_2", "page-cache_2"),
            ("../etc/passwd", "etcpasswd"),
            ("with space", "withspace"),
            ("ümlaut", "mlaut"),
        ],
    )
    def test_sanitize(self, name: str, expected: str) -> None:
        assert sanitize_index_name(name) == expected


class TestIndexCacheConfig:
    """Tests for defaults and coercion."""

    def test_defaults(self) -> None:
        config = IndexCacheConfig()
        assert config.default_lifetime == 3600
        assert config.max_buffered_docs == 1000
        assert config.commit_batch_margin == 10
        assert config.compression is False
        assert config.compression_level == -1
        assert config.optimize is False

    def test_index_name_is_sanitized(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            config = IndexCacheConfig(index_name="a/b")
        assert config.index_name == "ab"
        assert "sanitized" in caplog.text

    def test_negative_max_buffered_docs(self) -> None:
        assert IndexCacheConfig(max_buffered_docs=-20).max_buffered_docs == 20

    @pytest.mark.parametrize("level", [-2, 10, 42])
    def test_invalid_compression_level_is_ignored(self, level: int) -> None:
        assert IndexCacheConfig(compression_level=level).compression_level == -1

    @pytest.mark.parametrize("level", [-1, 0, 5, 9])
    def test_valid_compression_level_is_kept(self, level: int) -> None:
        assert IndexCacheConfig(compression_level=level).compression_level == level

    def test_derived_directory(self, tmp_path: Path) -> None:
        config = IndexCacheConfig(context="Development", index_name="pages", storage_root=str(tmp_path))
        assert config.get_directory() == tmp_path / "Development" / "pages"

    def test_explicit_directory_wins(self, tmp_path: Path) -> None:
        config = IndexCacheConfig(index_name="pages", directory=str(tmp_path / "custom"))
        assert config.get_directory() == tmp_path / "custom"

    def test_empty_index_name_falls_back(self, tmp_path: Path) -> None:
        config = IndexCacheConfig(index_name="///", storage_root=str(tmp_path))
        assert config.get_directory().name == "cache"


class TestFromOptions:
    """Tests for building configs from option mappings."""

    def test_camel_case_options(self) -> None:
        config = IndexCacheConfig.from_options(
            {
                "maxBufferedDocs": "50",
                "compression": 1,
                "compressionLevel": "9",
                "compressionAlgorithm": "gzip",
                "indexName": "pages",
                "defaultLifetime": 60,
                "optimize": True,
            },
            context="Production",
        )
        assert config.context == "Production"
        assert config.max_buffered_docs == 50
        assert config.compression is True
        assert config.compression_level == 9
        assert config.compression_algorithm == "gzip"
        assert config.index_name == "pages"
        assert config.default_lifetime == 60
        assert config.optimize is True

    def test_snake_case_options(self) -> None:
        config = IndexCacheConfig.from_options({"max_buffered_docs": 7})
        assert config.max_buffered_docs == 7

    def test_unknown_option_is_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            config = IndexCacheConfig.from_options({"colour": "blue"})
        assert config == IndexCacheConfig()
        assert "colour" in caplog.text

    def test_directory_option_accepts_path(self, tmp_path: Path) -> None:
        config = IndexCacheConfig.from_options({"directory": tmp_path})
        assert config.directory == str(tmp_path)
        assert config.get_directory() == tmp_path

    def test_no_options(self) -> None:
        assert IndexCacheConfig.from_options(None, context="x").context == "x"

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("false", False),
            ("False", False),
            ("0", False),
            ("off", False),
            ("", False),
            ("true", True),
            (" YES ", True),
            ("1", True),
            (0, False),
            (1, True),
            (True, True),
        ],
    )
    def test_boolean_options(self, value: object, expected: bool) -> None:
        config = IndexCacheConfig.from_options({"compression": value, "optimize": value})
        assert config.compression is expected
        assert config.optimize is expected

    def test_unparsable_boolean_keeps_default(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            config = IndexCacheConfig.from_options({"tuneIndexBuffering": "maybe"})
        assert config.tune_index_buffering is True
        assert "tune_index_buffering" in caplog.text
