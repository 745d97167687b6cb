"""Base classes, protocols, and types for payload compression."""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

DEFAULT_LEVEL = -1
MIN_LEVEL = -1
MAX_LEVEL = 9


# =============================================================================
# Exceptions
# =============================================================================


class CompressionError(Exception):
    """Raised when a payload cannot be encoded."""

    def __init__(self, message: str, algorithm: str | None = None) -> None:
        self.algorithm = algorithm
        prefix = f"{algorithm}: " if algorithm else ""
        super().__init__(prefix + message)


class DecompressionError(CompressionError):
    """Raised when stored bytes are not valid output of the encoder."""

    pass


class UnsupportedAlgorithmError(CompressionError):
    """Raised when an encoder is unknown or its library is missing."""

    def __init__(self, algorithm: str, available: list[str] | None = None) -> None:
        self.available = list(available or [])
        choices = ", ".join(self.available) or "none"
        super().__init__(f"no usable encoder (choose from {choices})", algorithm)


# =============================================================================
# Enums
# =============================================================================


class CompressionAlgorithm(str, Enum):
    """Payload encoders known to the cache."""

    ZLIB = "zlib"
    GZIP = "gzip"
    ZSTD = "zstd"

    @classmethod
    def parse(cls, value: "str | CompressionAlgorithm") -> "CompressionAlgorithm":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedAlgorithmError(str(value), [a.value for a in cls]) from None


def is_valid_level(level: int) -> bool:
    """Check a level is -1 (algorithm default) or an explicit 0-9."""
    return MIN_LEVEL <= level <= MAX_LEVEL


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Compressor(Protocol):
    """Anything that turns payload bytes into stored bytes and back."""

    @property
    def algorithm(self) -> CompressionAlgorithm: ...

    def compress(self, data: bytes) -> bytes: ...

    def decompress(self, data: bytes) -> bytes: ...
