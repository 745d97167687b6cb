"""Payload compression for cache entries.

Example:
    >>> from indexcache.compression import get_compressor
    >>>
    >>> compressor = get_compressor("zlib", level=-1)
    >>> data = compressor.compress(b"<html>...</html>")
    >>> compressor.decompress(data)
    b'<html>...</html>'
"""

from indexcache.compression.base import (
    DEFAULT_LEVEL,
    MAX_LEVEL,
    MIN_LEVEL,
    CompressionAlgorithm,
    CompressionError,
    Compressor,
    DecompressionError,
    UnsupportedAlgorithmError,
    is_valid_level,
)
from indexcache.compression.providers import (
    BaseCompressor,
    GzipCompressor,
    ZlibCompressor,
    ZstdCompressor,
    get_compressor,
)

__all__ = [
    # Base
    "DEFAULT_LEVEL",
    "MIN_LEVEL",
    "MAX_LEVEL",
    "CompressionAlgorithm",
    "CompressionError",
    "Compressor",
    "DecompressionError",
    "UnsupportedAlgorithmError",
    "is_valid_level",
    # Providers
    "BaseCompressor",
    "ZlibCompressor",
    "GzipCompressor",
    "ZstdCompressor",
    "get_compressor",
]
