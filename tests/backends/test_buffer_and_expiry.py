"""Tests for the write buffer and the expiry policy."""

from __future__ import annotations

import logging

import pytest

from indexcache.backends import (
    UNLIMITED_EXPIRES_AT,
    BufferedEntry,
    ExecutionClock,
    ExpiryPolicy,
    WriteBuffer,
)
from indexcache.index import Hit

NOW = 1_000


class TestWriteBuffer:
    """Tests for WriteBuffer."""

    def test_last_write_wins_keeps_position(self) -> None:
        buffer = WriteBuffer()
        buffer.put(BufferedEntry("a", b"1"))
        buffer.put(BufferedEntry("b", b"1"))
        buffer.put(BufferedEntry("a", b"2"))

        assert [e.identifier for e in buffer] == ["a", "b"]
        assert buffer.get("a").payload == b"2"

    def test_pop(self) -> None:
        buffer = WriteBuffer()
        buffer.put(BufferedEntry("a", b"1"))
        assert buffer.pop("a").payload == b"1"
        assert buffer.pop("a") is None
        assert buffer.is_empty

    def test_snapshot_keeps_entries(self) -> None:
        buffer = WriteBuffer()
        buffer.put(BufferedEntry("a", b"1"))
        assert [e.identifier for e in buffer.snapshot()] == ["a"]
        assert "a" in buffer

    def test_clear_returns_count(self) -> None:
        buffer = WriteBuffer()
        buffer.put(BufferedEntry("a", b"1"))
        assert buffer.clear() == 1
        assert buffer.clear() == 0

    def test_iteration_survives_mutation(self) -> None:
        buffer = WriteBuffer()
        buffer.put(BufferedEntry("a", b"1"))
        buffer.put(BufferedEntry("b", b"1"))
        for entry in buffer:
            buffer.pop(entry.identifier)
        assert buffer.is_empty

    def test_entry_alive_until_expiry_second(self) -> None:
        entry = BufferedEntry("a", b"1", expires_at=NOW)
        assert entry.is_alive(NOW)
        assert not entry.is_alive(NOW + 1)


class TestExpiryPolicy:
    """Tests for ExpiryPolicy."""

    @pytest.fixture
    def policy(self) -> ExpiryPolicy:
        return ExpiryPolicy(default_lifetime=60)

    def test_default_lifetime(self, policy: ExpiryPolicy) -> None:
        assert policy.expires_at(None, NOW) == NOW + 60

    def test_explicit_lifetime(self, policy: ExpiryPolicy) -> None:
        assert policy.expires_at(5, NOW) == NOW + 5

    def test_zero_is_unlimited(self, policy: ExpiryPolicy) -> None:
        assert policy.expires_at(0, NOW) == UNLIMITED_EXPIRES_AT

    def test_negative_is_already_expired(self, policy: ExpiryPolicy) -> None:
        assert policy.expires_at(-1, NOW) is None

    def test_read_expires_at(self, policy: ExpiryPolicy) -> None:
        assert policy.read_expires_at(Hit(0, {"lifetime": 42})) == 42
        assert policy.read_expires_at(Hit(0, {"lifetime": "42"})) == 42
        assert policy.read_expires_at(Hit(0, {})) is None
        assert policy.read_expires_at(Hit(0, {"lifetime": "soon"})) is None
        assert policy.read_expires_at(Hit(0, {"lifetime": b"42"})) is None

    def test_partition(self, policy: ExpiryPolicy, caplog: pytest.LogCaptureFixture) -> None:
        hits = [
            Hit(0, {"lifetime": NOW}),
            Hit(1, {"lifetime": NOW - 1}),
            Hit(2, {}),
            Hit(3, {"lifetime": NOW + 1}),
        ]
        with caplog.at_level(logging.WARNING):
            live, stale = policy.partition(hits, NOW)

        assert [h.doc_id for h in live] == [0, 3]
        assert [h.doc_id for h in stale] == [1, 2]
        assert "no readable lifetime" in caplog.text


class TestExecutionClock:
    def test_fixed_until_moved(self) -> None:
        clock = ExecutionClock(NOW)
        assert clock.now == NOW
        clock.advance(10)
        assert clock.now == NOW + 10
        clock.set(5)
        assert clock.now == 5

    def test_refresh_uses_wall_clock(self) -> None:
        clock = ExecutionClock(0)
        clock.refresh()
        assert clock.now > 1_600_000_000
