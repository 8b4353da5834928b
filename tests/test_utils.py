"""
Tests for the utility helpers.

uuid7() must return a stdlib uuid.UUID with UUIDv7 properties (version 7,
RFC 4122 variant, time-sortable); it is used for store ids and trace ids.
"""

import time
from datetime import datetime, timezone
from uuid import UUID

from signature_reconciler.utils import ensure_utc, utc_now, uuid7


class TestUuid7:
    def test_returns_stdlib_uuid(self):
        """uuid7() must return a stdlib uuid.UUID, not fastuuid.UUID."""
        result = uuid7()
        assert type(result) is UUID

    def test_version_is_7(self):
        assert uuid7().version == 7

    def test_rfc4122_variant_bits(self):
        """RFC 4122 variant: bits 62-63 of the 128-bit value must be 0b10."""
        variant_bits = (uuid7().int >> 62) & 0b11
        assert variant_bits == 0b10

    def test_timestamp_within_tolerance(self):
        """Top 48 bits encode Unix ms timestamp within 100ms of wall clock."""
        now_ms = time.time_ns() // 1_000_000
        ts_ms = uuid7().int >> 80
        assert abs(ts_ms - now_ms) < 100

    def test_sequential_ids_sort(self):
        ids = [uuid7() for _ in range(50)]
        timestamps = [u.int >> 80 for u in ids]
        assert timestamps == sorted(timestamps)

    def test_unique(self):
        assert len({uuid7() for _ in range(1000)}) == 1000


class TestTime:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None

    def test_ensure_utc_tags_naive(self):
        naive = datetime(2026, 3, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_ensure_utc_keeps_aware(self):
        aware = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert ensure_utc(aware) is aware
