"""Payload encoders and the registry that looks them up by name.

``zlib`` and ``gzip`` ship with Python. ``zstd`` needs the optional
``zstandard`` distribution (``pip install indexcache[zstd]``), which is
only imported when a zstd encoder is created.
"""

from __future__ import annotations

import gzip
import zlib
from abc import ABC, abstractmethod
from typing import Type

from indexcache.compression.base import (
    DEFAULT_LEVEL,
    CompressionAlgorithm,
    CompressionError,
    DecompressionError,
    UnsupportedAlgorithmError,
    is_valid_level,
)


# =============================================================================
# Base Compressor
# =============================================================================


class BaseCompressor(ABC):
    """Shared level handling and error wrapping for payload encoders.

    Subclasses implement ``_encode``/``_decode``; whatever they raise
    reaches callers as ``CompressionError`` or ``DecompressionError``.
    """

    def __init__(self, level: int = DEFAULT_LEVEL) -> None:
        """Create an encoder.

        Args:
            level: -1 for the algorithm default, otherwise 0-9.

        Raises:
            CompressionError: If the level is out of range.
        """
        if not is_valid_level(level):
            raise CompressionError(f"level {level} is outside -1..9", self.algorithm.value)
        self._level = level

    @property
    @abstractmethod
    def algorithm(self) -> CompressionAlgorithm:
        pass

    @property
    def level(self) -> int:
        return self._level

    @abstractmethod
    def _encode(self, data: bytes) -> bytes:
        pass

    @abstractmethod
    def _decode(self, data: bytes) -> bytes:
        pass

    def compress(self, data: bytes) -> bytes:
        """Encode a payload for storage.

        Raises:
            CompressionError: If the encoder fails.
        """
        try:
            return self._encode(data)
        except Exception as e:
            raise CompressionError(str(e), self.algorithm.value) from e

    def decompress(self, data: bytes) -> bytes:
        """Decode a stored payload.

        Raises:
            DecompressionError: If the bytes were not produced by this encoder.
        """
        try:
            return self._decode(data)
        except Exception as e:
            raise DecompressionError(str(e), self.algorithm.value) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}(level={self._level})"


# =============================================================================
# Built-in Encoders
# =============================================================================


class ZlibCompressor(BaseCompressor):
    """Zlib stream format, the default for cache payloads.

    Level -1 maps to zlib's own default (currently 6).
    """

    @property
    def algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.ZLIB

    def _encode(self, data: bytes) -> bytes:
        return zlib.compress(data, self._level)

    def _decode(self, data: bytes) -> bytes:
        return zlib.decompress(data)


class GzipCompressor(BaseCompressor):
    """Gzip member format with a zeroed timestamp, so output is reproducible."""

    @property
    def algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.GZIP

    def _encode(self, data: bytes) -> bytes:
        level = 6 if self._level == DEFAULT_LEVEL else self._level
        return gzip.compress(data, compresslevel=level, mtime=0)

    def _decode(self, data: bytes) -> bytes:
        return gzip.decompress(data)


# =============================================================================
# Optional Encoders
# =============================================================================


class ZstdCompressor(BaseCompressor):
    """Zstandard frames via the ``zstandard`` package.

    Levels 0-9 are passed through; -1 uses zstd's default of 3.
    """

    _zstd = None

    def __init__(self, level: int = DEFAULT_LEVEL) -> None:
        super().__init__(level)
        self._module()

    @classmethod
    def _module(cls):
        if cls._zstd is None:
            try:
                import zstandard
            except ImportError:
                raise UnsupportedAlgorithmError(
                    CompressionAlgorithm.ZSTD.value,
                    [CompressionAlgorithm.ZLIB.value, CompressionAlgorithm.GZIP.value],
                ) from None
            cls._zstd = zstandard
        return cls._zstd

    @property
    def algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.ZSTD

    def _encode(self, data: bytes) -> bytes:
        level = 3 if self._level == DEFAULT_LEVEL else self._level
        return self._module().ZstdCompressor(level=level).compress(data)

    def _decode(self, data: bytes) -> bytes:
        return self._module().ZstdDecompressor().decompress(data)


# =============================================================================
# Registry
# =============================================================================


_ENCODERS: dict[CompressionAlgorithm, Type[BaseCompressor]] = {
    CompressionAlgorithm.ZLIB: ZlibCompressor,
    CompressionAlgorithm.GZIP: GzipCompressor,
    CompressionAlgorithm.ZSTD: ZstdCompressor,
}


def get_compressor(
    algorithm: str | CompressionAlgorithm = CompressionAlgorithm.ZLIB,
    level: int = DEFAULT_LEVEL,
) -> BaseCompressor:
    """Create the encoder for an algorithm.

    Args:
        algorithm: Algorithm name (case-insensitive) or enum member.
        level: -1 for the algorithm default, otherwise 0-9.

    Raises:
        UnsupportedAlgorithmError: If the algorithm is unknown or its
            library is not installed.

    Example:
        >>> encoder = get_compressor("zlib", level=9)
        >>> encoder.decompress(encoder.compress(b"<p>hi</p>"))
        b'<p>hi</p>'
    """
    parsed = CompressionAlgorithm.parse(algorithm)
    encoder = _ENCODERS.get(parsed)
    if encoder is None:
        raise UnsupportedAlgorithmError(parsed.value, [a.value for a in _ENCODERS])
    return encoder(level)
