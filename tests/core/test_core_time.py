"""
Tests for core.time — Clock protocol and TTL helpers.
"""

import pytest
from datetime import datetime, timezone, timedelta

from core.time import FixedClock, SystemClock, expires_at, is_expired


T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class TestSystemClock:
    def test_returns_utc_datetime(self):
        dt = SystemClock().now_utc()
        assert dt.tzinfo == timezone.utc

    def test_time_advances(self):
        clock = SystemClock()
        t1 = clock.now_utc()
        t2 = clock.now_utc()
        assert t2 >= t1


class TestFixedClock:
    def test_returns_fixed_time(self):
        clock = FixedClock(T0)
        assert clock.now_utc() == T0
        assert clock.now_utc() == T0

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2026, 1, 1))

    def test_advance(self):
        clock = FixedClock(T0)
        clock.advance(2.5)
        assert clock.now_utc() == T0 + timedelta(seconds=2.5)


class TestTtlHelpers:
    def test_expires_at(self):
        assert expires_at(T0, 5) == T0 + timedelta(seconds=5)

    def test_not_expired_before_ttl(self):
        assert not is_expired(T0, 5, T0 + timedelta(seconds=4.999))

    def test_expired_exactly_at_ttl(self):
        assert is_expired(T0, 5, T0 + timedelta(seconds=5))
