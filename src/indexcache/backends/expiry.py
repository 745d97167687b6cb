"""Expiry policy for cache entries.

Entries store an absolute expiry timestamp. An entry is alive while
``expires_at >= now`` and expired from the second after that.

Documents written before the lifetime field was stored carry no
readable expiry. They are treated as expired so they get cleaned up
instead of being served forever.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from indexcache.index import Hit

logger = logging.getLogger(__name__)

# 9999-12-31T23:59:59Z, the expiry of entries with unlimited lifetime.
UNLIMITED_EXPIRES_AT = 253_402_300_799

LIFETIME_FIELD = "lifetime"


@dataclass(frozen=True)
class ExpiryPolicy:
    """Computes expiry timestamps and filters query hits.

    Attributes:
        default_lifetime: Seconds to live when no lifetime is given.
        field_name: Document field holding the expiry timestamp.
    """

    default_lifetime: int = 3600
    field_name: str = LIFETIME_FIELD

    def expires_at(self, lifetime: int | None, now: int) -> int | None:
        """Resolve a lifetime to an absolute expiry timestamp.

        Args:
            lifetime: None for the default, 0 for unlimited, seconds otherwise.
            now: Current execution time.

        Returns:
            The expiry timestamp, or None if the entry is already expired
            and must not be stored.
        """
        if lifetime is None:
            lifetime = self.default_lifetime
        lifetime = int(lifetime)
        if lifetime < 0:
            return None
        if lifetime == 0:
            return UNLIMITED_EXPIRES_AT
        return now + lifetime

    def read_expires_at(self, hit: Hit) -> int | None:
        """Get the stored expiry of a hit, or None if it has none readable."""
        value = hit.get(self.field_name)
        if value is None or isinstance(value, bytes):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def is_alive(self, expires_at: int | None, now: int) -> bool:
        return expires_at is not None and expires_at >= now

    def partition(self, hits: Iterable[Hit], now: int) -> tuple[list[Hit], list[Hit]]:
        """Split hits into live and stale ones.

        Stale hits are expired or lack a readable lifetime; callers are
        expected to delete them.
        """
        live: list[Hit] = []
        stale: list[Hit] = []
        for hit in hits:
            expires_at = self.read_expires_at(hit)
            if expires_at is None:
                logger.warning(
                    "Document %d has no readable %s field, treating it as expired",
                    hit.doc_id,
                    self.field_name,
                )
                stale.append(hit)
            elif expires_at >= now:
                live.append(hit)
            else:
                stale.append(hit)
        return live, stale
