"""
POS Alerts — Self-Expiring Alert Queue
========================================
Short-lived operator notifications for every register step:
cart warnings, commit outcomes, print problems, sync notices.

Rules:
- Append-only; several alerts coexist
- Each alert expires on its own TTL (no shared timer)
- Expiry is evaluated against the injected clock on read
- dismiss() is idempotent
- Listeners are notified on push; a failing listener is logged
  and never blocks the queue
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Callable, List, Optional

from core.time import Clock, SystemClock, expires_at, is_expired

logger = logging.getLogger("pos.alerts")

DEFAULT_ALERT_TTL_SECONDS = 5.0


class AlertSeverity(Enum):
    SUCCESS = "SUCCESS"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Alert:
    message: str
    severity: AlertSeverity
    created_at: datetime
    ttl_seconds: float = DEFAULT_ALERT_TTL_SECONDS
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")
        if not isinstance(self.severity, AlertSeverity):
            raise ValueError("severity must be AlertSeverity.")

    @property
    def expires_at(self) -> datetime:
        return expires_at(self.created_at, self.ttl_seconds)

    def is_expired(self, now: datetime) -> bool:
        return is_expired(self.created_at, self.ttl_seconds, now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


AlertListener = Callable[[Alert], None]


class AlertQueue:
    """Ephemeral alert list surfaced to the cashier."""

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        ttl_seconds: float = DEFAULT_ALERT_TTL_SECONDS,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        self._clock = clock or SystemClock()
        self._ttl = ttl_seconds
        self._alerts: List[Alert] = []
        self._listeners: List[AlertListener] = []
        self._lock = Lock()

    # ── Push ──────────────────────────────────────────────────

    def push(self, severity: AlertSeverity, message: str) -> Alert:
        alert = Alert(
            message=message,
            severity=severity,
            created_at=self._clock.now_utc(),
            ttl_seconds=self._ttl,
        )
        with self._lock:
            self._alerts.append(alert)
            listeners = list(self._listeners)

        log = logger.warning if severity in (
            AlertSeverity.WARNING, AlertSeverity.ERROR,
        ) else logger.info
        log(f"[{severity.value}] {message}")

        for listener in listeners:
            try:
                listener(alert)
            except Exception:
                logger.exception("Alert listener failed")
        return alert

    def success(self, message: str) -> Alert:
        return self.push(AlertSeverity.SUCCESS, message)

    def info(self, message: str) -> Alert:
        return self.push(AlertSeverity.INFO, message)

    def warning(self, message: str) -> Alert:
        return self.push(AlertSeverity.WARNING, message)

    def error(self, message: str) -> Alert:
        return self.push(AlertSeverity.ERROR, message)

    # ── Read / evict ──────────────────────────────────────────

    def active(self) -> tuple[Alert, ...]:
        """Alerts still alive now; expired ones are evicted."""
        now = self._clock.now_utc()
        with self._lock:
            self._alerts = [a for a in self._alerts if not a.is_expired(now)]
            return tuple(self._alerts)

    def get(self, alert_id: str) -> Optional[Alert]:
        for alert in self.active():
            if alert.id == alert_id:
                return alert
        return None

    def dismiss(self, alert_id: str) -> bool:
        """Remove an alert. Returns False if it was already gone."""
        with self._lock:
            before = len(self._alerts)
            self._alerts = [a for a in self._alerts if a.id != alert_id]
            return len(self._alerts) != before

    def clear(self) -> None:
        with self._lock:
            self._alerts = []

    # ── Stream ────────────────────────────────────────────────

    def subscribe(self, listener: AlertListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
