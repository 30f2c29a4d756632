"""
POS Alerts — Public API
=========================
"""

from core.alerts.queue import (
    DEFAULT_ALERT_TTL_SECONDS,
    Alert,
    AlertListener,
    AlertQueue,
    AlertSeverity,
)

__all__ = [
    "Alert",
    "AlertListener",
    "AlertQueue",
    "AlertSeverity",
    "DEFAULT_ALERT_TTL_SECONDS",
]
