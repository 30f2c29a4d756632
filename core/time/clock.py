"""
POS Core Time — Injectable Clock
==================================
Register logic never calls datetime.now() directly.
Alert expiry, freshness markers and sale timestamps all read
the time from a Clock so tests can pin and advance it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    """Wall-clock time for running registers."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Manually driven clock for tests.

    Usage:
        clock = FixedClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(5)   # five seconds later
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def advance(self, seconds: float) -> None:
        self._fixed_dt = self._fixed_dt + timedelta(seconds=seconds)


# ══════════════════════════════════════════════════════════════
# TTL HELPERS
# ══════════════════════════════════════════════════════════════

def expires_at(issued_at: datetime, ttl_seconds: float) -> datetime:
    return issued_at + timedelta(seconds=ttl_seconds)


def is_expired(issued_at: datetime, ttl_seconds: float, now: datetime) -> bool:
    """
    True once `ttl_seconds` have fully elapsed since `issued_at`.

    All arguments are explicit — no hidden clock.
    """
    return (now - issued_at).total_seconds() >= ttl_seconds
