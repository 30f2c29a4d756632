"""
POS Core Time — Public API
============================
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    expires_at,
    is_expired,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "expires_at",
    "is_expired",
]
