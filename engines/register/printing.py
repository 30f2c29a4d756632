"""
POS Register Engine — Print Orchestrator
==========================================
Best-effort output after a sale: invoice, then (for cash sales) the
cash drawer. Also serves manual label / barcode / QR / test prints.

RULES:
- A job is validated before it reaches the printer; a bad payload is
  REJECTED and nothing is sent
- A printer failure (success false, malformed reply, or an exception)
  marks the job FAILED and raises a warning alert
- The sale is never modified by anything that happens here
- No automatic retry; every job stays in history
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.config import RegisterSettings
from core.time import Clock, SystemClock
from engines.register.models import PaymentMethod, Sale
from integration import PrintService, coerce_service_result

logger = logging.getLogger("pos.printing")

PRINTER_SYSTEM_ID = "printer"


# ══════════════════════════════════════════════════════════════
# JOB MODEL
# ══════════════════════════════════════════════════════════════

class PrintJobKind(Enum):
    INVOICE = "INVOICE"
    LABEL = "LABEL"
    BARCODE = "BARCODE"
    QR = "QR"
    CASH_DRAWER = "CASH_DRAWER"
    TEST_PAGE = "TEST_PAGE"


class PrintAttemptStatus(Enum):
    PRINTED = "PRINTED"
    FAILED = "FAILED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class PrintAttempt:
    status: PrintAttemptStatus
    error: Optional[str] = None
    rejection: Optional[RejectionReason] = None

    @property
    def ok(self) -> bool:
        return self.status is PrintAttemptStatus.PRINTED


@dataclass(frozen=True)
class PrintJob:
    kind: PrintJobKind
    payload: Dict[str, Any]
    created_at: datetime
    attempt: Optional[PrintAttempt] = None
    sale_id: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.attempt is not None and self.attempt.ok

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "sale_id": self.sale_id,
            "status": self.attempt.status.value if self.attempt else None,
            "error": self.attempt.error if self.attempt else None,
            "created_at": self.created_at.isoformat(),
        }


# ══════════════════════════════════════════════════════════════
# PAYLOAD VALIDATION
# ══════════════════════════════════════════════════════════════

def _reject(message: str) -> RejectionReason:
    return RejectionReason(
        code=ReasonCode.INVALID_PRINT_PAYLOAD,
        message=message,
        policy_name="print_payload_policy",
    )


def validate_invoice(sale: Optional[Sale]) -> Optional[RejectionReason]:
    if sale is None:
        return _reject("There is no sale to print.")
    if sale.id is None:
        return _reject("Cannot print an invoice for an unsaved sale.")
    if not sale.details:
        return _reject("Cannot print an invoice without lines.")
    return None


def validate_label(item: Mapping[str, Any]) -> Optional[RejectionReason]:
    name = item.get("name")
    if not name or not str(name).strip():
        return _reject("Label needs a product name.")
    try:
        price = float(item.get("price"))
    except (TypeError, ValueError):
        return _reject("Label needs a numeric price.")
    if price < 0:
        return _reject("Label price must be non-negative.")
    return None


def validate_text(text: Any, what: str) -> Optional[RejectionReason]:
    if text is None or not str(text).strip():
        return _reject(f"{what} needs a non-empty value.")
    return None


# ══════════════════════════════════════════════════════════════
# ORCHESTRATOR
# ══════════════════════════════════════════════════════════════

class PrintOrchestrator:
    """Runs print jobs against a PrintService and records the outcome."""

    def __init__(
        self,
        service: PrintService,
        *,
        settings: RegisterSettings | None = None,
        warn: Callable[[str], Any] | None = None,
        clock: Clock | None = None,
    ):
        self._service = service
        self._settings = settings or RegisterSettings()
        self._warn = warn
        self._clock = clock or SystemClock()
        self._jobs: List[PrintJob] = []
        self._lock = Lock()

    @property
    def jobs(self) -> tuple[PrintJob, ...]:
        with self._lock:
            return tuple(self._jobs)

    # ── Post-commit ───────────────────────────────────────────

    def after_commit(self, sale: Sale) -> list[PrintJob]:
        """
        Automatic output for a completed sale.

        Drawer opens only when enabled, the invoice printed, and the
        sale was paid in cash.
        """
        if not self._settings.print_after_sale:
            logger.debug(f"Automatic invoice disabled (sale {sale.id})")
            return []

        jobs = [self.print_invoice(sale)]
        if (
            self._settings.open_cash_drawer
            and jobs[0].ok
            and sale.payment_method is PaymentMethod.CASH
        ):
            jobs.append(self.open_cash_drawer(sale_id=sale.id))
        return jobs

    # ── Jobs ──────────────────────────────────────────────────

    def print_invoice(self, sale: Optional[Sale]) -> PrintJob:
        payload = sale.to_dict() if sale is not None else {}
        if self._settings.invoice_printer:
            payload["printer_name"] = self._settings.invoice_printer
        return self._run(
            PrintJobKind.INVOICE,
            payload,
            validate_invoice(sale),
            self._service.print_invoice,
            sale_id=sale.id if sale is not None else None,
        )

    def print_label(self, item: Mapping[str, Any]) -> PrintJob:
        payload = dict(item)
        return self._run(
            PrintJobKind.LABEL,
            payload,
            validate_label(payload),
            self._service.print_label,
        )

    def print_barcode(self, text: Any, **options) -> PrintJob:
        payload = {"text": text, **options}
        return self._run(
            PrintJobKind.BARCODE,
            payload,
            validate_text(text, "Barcode"),
            self._service.print_barcode,
        )

    def print_qr(self, text: Any, **options) -> PrintJob:
        payload = {"text": text, **options}
        return self._run(
            PrintJobKind.QR,
            payload,
            validate_text(text, "QR code"),
            self._service.print_qr,
        )

    def test_printer(self, name: Optional[str] = None) -> PrintJob:
        name = name if name is not None else self._settings.invoice_printer
        return self._run(
            PrintJobKind.TEST_PAGE,
            {"printer_name": name},
            None,
            lambda payload: self._service.test_printer(payload["printer_name"]),
        )

    def open_cash_drawer(self, sale_id: Any = None) -> PrintJob:
        return self._run(
            PrintJobKind.CASH_DRAWER,
            {},
            None,
            lambda payload: self._service.open_cash_drawer(),
            sale_id=sale_id,
        )

    # ── Internals ─────────────────────────────────────────────

    def _run(
        self,
        kind: PrintJobKind,
        payload: Dict[str, Any],
        rejection: Optional[RejectionReason],
        send: Callable[[Dict[str, Any]], Any],
        *,
        sale_id: Any = None,
    ) -> PrintJob:
        job = PrintJob(
            kind=kind,
            payload=payload,
            created_at=self._clock.now_utc(),
            sale_id=sale_id,
        )

        if rejection is not None:
            attempt = PrintAttempt(
                status=PrintAttemptStatus.REJECTED,
                error=rejection.message,
                rejection=rejection,
            )
            logger.warning(f"{kind.value} print rejected: {rejection.message}")
            self._notify(rejection.message)
        else:
            attempt = self._send(kind, payload, send)

        job = replace(job, attempt=attempt)
        with self._lock:
            self._jobs.append(job)
        return job

    def _send(
        self,
        kind: PrintJobKind,
        payload: Dict[str, Any],
        send: Callable[[Dict[str, Any]], Any],
    ) -> PrintAttempt:
        try:
            result = coerce_service_result(
                send(payload), system_id=PRINTER_SYSTEM_ID,
            )
        except Exception as exc:
            # printer problems never escalate past the job record
            logger.warning(f"{kind.value} print failed: {exc}", exc_info=True)
            self._notify(f"Print failed: {exc}")
            return PrintAttempt(status=PrintAttemptStatus.FAILED, error=str(exc))

        if not result.success:
            error = result.error or "Printer reported a failure."
            logger.warning(f"{kind.value} print failed: {error}")
            self._notify(f"Print failed: {error}")
            return PrintAttempt(status=PrintAttemptStatus.FAILED, error=error)

        logger.info(f"{kind.value} printed")
        return PrintAttempt(status=PrintAttemptStatus.PRINTED)

    def _notify(self, message: str) -> None:
        if self._warn is not None:
            self._warn(message)
