"""
POS Register Engine — Sale Commit Coordinator
===============================================
Turns the current cart into exactly one sale on the ledger.

State machine (per attempt):

    DRAFT → VALIDATING → SUBMITTING → COMPLETED
                 │             │
                 └──→ FAILED ←─┘

FAILED and COMPLETED end the attempt; the next commit() starts over
from DRAFT. Only one attempt runs at a time per session.

On COMPLETED, in order:
  1. the cart is cleared
  2. one inventory:stock_updated per line (backend stock when the
     ledger returns it, else last known stock minus quantity sold)
  3. one sale:created
  4. a success alert, carrying the ledger's first warning if any

On FAILED the cart is exactly what it was before commit().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, List, Mapping, Optional, Tuple

from core.alerts import AlertQueue
from core.commands.rejection import RejectionReason
from core.config import RegisterSettings
from core.events import SyncBus
from core.time import Clock, SystemClock
from engines.register.cart import CartLedger, compute_totals
from engines.register.events import (
    ACTION_CANCELLED,
    ACTION_CREATED,
    ACTION_STOCK_UPDATED,
    INVENTORY_CHANNEL,
    SALE_CHANNEL,
    build_sale_cancelled_payload,
    build_sale_created_payload,
    build_stock_updated_payload,
)
from engines.register.models import (
    Cart,
    PaymentMethod,
    Sale,
    SaleStatus,
    settle_payment,
)
from engines.register.policies import (
    COMMIT_POLICIES,
    payment_method_policy,
    resolve_payment_method,
)
from engines.register.printing import PrintJob
from integration import (
    SalePersistenceService,
    ServiceResult,
    coerce_service_result,
)
from projections.catalog import CatalogProjection

logger = logging.getLogger("pos.register")

SALE_LEDGER_SYSTEM_ID = "sale_ledger"


# ══════════════════════════════════════════════════════════════
# STATE / OUTCOME
# ══════════════════════════════════════════════════════════════

class CommitState(Enum):
    DRAFT = "DRAFT"
    VALIDATING = "VALIDATING"
    SUBMITTING = "SUBMITTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


IN_FLIGHT_STATES = frozenset({CommitState.VALIDATING, CommitState.SUBMITTING})


class CommitInProgressError(RuntimeError):
    """commit() called while another attempt is still running."""


@dataclass(frozen=True)
class CommitOutcome:
    state: CommitState
    sale: Optional[Sale] = None
    sale_id: Optional[Any] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    rejection: Optional[RejectionReason] = None
    stock_updates: Tuple[dict, ...] = ()
    print_jobs: Tuple[PrintJob, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state is CommitState.COMPLETED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "sale_id": self.sale_id,
            "sale": self.sale.to_dict() if self.sale else None,
            "error": self.error,
            "warnings": list(self.warnings),
            "rejection": self.rejection.to_dict() if self.rejection else None,
            "stock_updates": list(self.stock_updates),
            "print_jobs": [job.to_dict() for job in self.print_jobs],
        }


# ══════════════════════════════════════════════════════════════
# COORDINATOR
# ══════════════════════════════════════════════════════════════

class SaleCommitCoordinator:
    """Validates, submits and publishes one sale at a time."""

    def __init__(
        self,
        *,
        ledger: CartLedger,
        sale_service: SalePersistenceService,
        catalog: CatalogProjection,
        bus: SyncBus,
        alerts: AlertQueue | None = None,
        settings: RegisterSettings | None = None,
        clock: Clock | None = None,
        view_id: str = "register",
    ):
        self._ledger = ledger
        self._sale_service = sale_service
        self._catalog = catalog
        self._bus = bus
        self._alerts = alerts
        self._settings = settings or RegisterSettings()
        self._clock = clock or SystemClock()
        self._view_id = view_id

        self._state = CommitState.DRAFT
        self._transitions: List[Tuple[CommitState, CommitState]] = []
        self._last_sale: Optional[Sale] = None
        self._commit_lock = Lock()

    # ── State ─────────────────────────────────────────────────

    @property
    def state(self) -> CommitState:
        return self._state

    @property
    def transitions(self) -> tuple[Tuple[CommitState, CommitState], ...]:
        return tuple(self._transitions)

    @property
    def last_sale(self) -> Optional[Sale]:
        return self._last_sale

    @property
    def can_commit(self) -> bool:
        return self._state not in IN_FLIGHT_STATES and not self._ledger.cart.is_empty

    def _transition(self, target: CommitState) -> None:
        if target is self._state:
            return
        logger.debug(f"Commit state {self._state.value} → {target.value}")
        self._transitions.append((self._state, target))
        self._state = target

    # ── Commit ────────────────────────────────────────────────

    def commit(self) -> CommitOutcome:
        """
        Run one commit attempt.

        Raises:
            CommitInProgressError: another attempt is VALIDATING or
                SUBMITTING.
        """
        if not self._commit_lock.acquire(blocking=False):
            raise CommitInProgressError("A sale is already being committed.")
        try:
            if self._state in IN_FLIGHT_STATES:
                raise CommitInProgressError(
                    f"A sale is already being committed ({self._state.value})."
                )
            self._transition(CommitState.DRAFT)
            try:
                return self._attempt()
            except Exception as exc:
                if self._state not in IN_FLIGHT_STATES:
                    raise
                logger.error(
                    f"Commit aborted in {self._state.value}: {exc}",
                    exc_info=True,
                )
                return self._fail(str(exc) or type(exc).__name__)
        finally:
            self._commit_lock.release()

    def _attempt(self) -> CommitOutcome:
        self._transition(CommitState.VALIDATING)
        cart = self._ledger.cart

        rejection = self._validate(cart)
        if rejection is not None:
            self._transition(CommitState.FAILED)
            logger.info(
                f"Commit rejected by {rejection.policy_name}: {rejection.message}"
            )
            self._warn(rejection.message)
            return CommitOutcome(
                state=CommitState.FAILED,
                error=rejection.message,
                rejection=rejection,
            )

        method, normalized = resolve_payment_method(cart.payment_method)
        if normalized:
            self._warn(
                f"Unknown payment method '{cart.payment_method}'; "
                f"the sale is recorded as cash."
            )
        sale = self._build_sale(cart, method)

        self._transition(CommitState.SUBMITTING)
        try:
            result = coerce_service_result(
                self._sale_service.create_sale(sale.to_payload()),
                system_id=SALE_LEDGER_SYSTEM_ID,
            )
        except Exception as exc:
            logger.error(f"Sale submission failed: {exc}", exc_info=True)
            return self._fail(str(exc) or type(exc).__name__)

        if not result.success:
            return self._fail(result.error or "The sale could not be saved.")
        if result.id is None:
            return self._fail("The sale ledger did not return a sale id.")

        return self._complete(sale, result)

    def _validate(self, cart: Cart) -> Optional[RejectionReason]:
        for policy in COMMIT_POLICIES:
            rejection = policy(cart)
            if rejection is not None:
                return rejection
        return payment_method_policy(
            cart, strict=self._settings.strict_payment_method,
        )

    def _build_sale(self, cart: Cart, method: PaymentMethod) -> Sale:
        totals = compute_totals(cart)
        amount_received, change = settle_payment(
            method, cart.amount_received, totals.grand_total,
        )
        customer_id = cart.customer_id
        if customer_id is None:
            customer_id = self._settings.default_customer_id

        customer_name = self._catalog.customer_name(customer_id)
        if customer_name is None and customer_id == self._settings.default_customer_id:
            customer_name = self._settings.default_customer_name

        return Sale(
            customer_id=customer_id,
            customer_name=customer_name or "",
            total=totals.grand_total,
            discount=totals.discount,
            tax_amount=totals.tax_amount,
            subtotal_ex_tax=totals.subtotal_ex_tax,
            payment_method=method,
            amount_received=amount_received,
            change=change,
            details=cart.lines,
            notes=cart.notes,
            created_at=self._clock.now_utc(),
            status=SaleStatus.COMPLETED,
        )

    def _fail(self, error: str) -> CommitOutcome:
        self._transition(CommitState.FAILED)
        logger.warning(f"Commit failed: {error}")
        if self._alerts is not None:
            self._alerts.error(error)
        return CommitOutcome(state=CommitState.FAILED, error=error)

    def _complete(self, sale: Sale, result: ServiceResult) -> CommitOutcome:
        completed = sale.completed(result.id, self._clock.now_utc())
        self._transition(CommitState.COMPLETED)
        self._last_sale = completed

        self._ledger.clear()
        stock_updates = self._publish_sale_stock(
            completed, result.data.get("stock"),
        )
        self._bus.broadcast(
            SALE_CHANNEL,
            ACTION_CREATED,
            build_sale_created_payload(completed),
            origin_id=self._view_id,
        )

        message = f"Sale #{completed.id} completed."
        if result.first_warning:
            message = f"{message} {result.first_warning}"
        logger.info(
            f"Sale {completed.id} committed: total {completed.total:.2f} "
            f"({completed.payment_method.value})"
        )
        if self._alerts is not None:
            self._alerts.success(message)

        return CommitOutcome(
            state=CommitState.COMPLETED,
            sale=completed,
            sale_id=completed.id,
            warnings=result.warnings,
            stock_updates=stock_updates,
        )

    # ── Stock propagation ─────────────────────────────────────

    def _publish_sale_stock(
        self, sale: Sale, stock_map: Any,
    ) -> Tuple[dict, ...]:
        if stock_map is not None and not isinstance(stock_map, Mapping):
            logger.warning(
                f"Ignoring non-mapping stock in ledger reply for sale {sale.id}"
            )
            stock_map = None

        updates = []
        for line in sale.details:
            previous = self._catalog.stock_of(line.product_id)
            reported = _reported_stock(stock_map, line.product_id)
            if reported is not None:
                stock, authoritative = reported, True
            elif previous is not None:
                stock, authoritative = max(0, previous - line.quantity), False
            else:
                logger.debug(
                    f"No stock known for product {line.product_id}; "
                    f"skipping stock update"
                )
                continue

            updates.append(self._publish_stock(
                line.product_id,
                stock,
                previous_stock=previous,
                quantity_sold=line.quantity,
                authoritative=authoritative,
                reason="sale",
            ))
        return tuple(updates)

    def _publish_stock(self, product_id: Any, stock: int, **details) -> dict:
        self._catalog.set_stock(product_id, stock)
        payload = build_stock_updated_payload(product_id, stock, **details)
        # the local catalog is already updated; other views hear the event
        self._bus.broadcast(
            INVENTORY_CHANNEL,
            ACTION_STOCK_UPDATED,
            payload,
            origin_id=self._view_id,
            exclude_origin=True,
        )
        return payload

    # ── Cancellation ──────────────────────────────────────────

    def cancel_sale(self, sale_id: Any) -> ServiceResult:
        """Cancel a committed sale on the ledger and tell other views."""
        try:
            result = coerce_service_result(
                self._sale_service.cancel_sale(sale_id),
                system_id=SALE_LEDGER_SYSTEM_ID,
            )
        except Exception as exc:
            logger.error(f"Cancelling sale {sale_id} failed: {exc}", exc_info=True)
            error = str(exc) or type(exc).__name__
            if self._alerts is not None:
                self._alerts.error(error)
            return ServiceResult(success=False, error=error)

        if not result.success:
            error = result.error or f"Sale #{sale_id} could not be cancelled."
            logger.warning(f"Cancel rejected for sale {sale_id}: {error}")
            if self._alerts is not None:
                self._alerts.error(error)
            return result

        stock_map = result.data.get("stock")
        if isinstance(stock_map, Mapping):
            for key, value in stock_map.items():
                stock = _coerce_stock(value, key)
                if stock is None:
                    continue
                product_id = self._resolve_product_id(key)
                self._publish_stock(
                    product_id,
                    stock,
                    previous_stock=self._catalog.stock_of(product_id),
                    authoritative=True,
                    reason="cancel",
                )

        self._bus.broadcast(
            SALE_CHANNEL,
            ACTION_CANCELLED,
            build_sale_cancelled_payload(sale_id),
            origin_id=self._view_id,
        )
        logger.info(f"Sale {sale_id} cancelled")
        if self._alerts is not None:
            self._alerts.success(f"Sale #{sale_id} cancelled.")
        return result

    def _resolve_product_id(self, key: Any) -> Any:
        if self._catalog.get(key) is not None:
            return key
        for product in self._catalog.products():
            if str(product.id) == str(key):
                return product.id
        return key

    def _warn(self, message: str) -> None:
        if self._alerts is not None:
            self._alerts.warning(message)


def _reported_stock(stock_map: Optional[Mapping], product_id: Any) -> Optional[int]:
    """Stock for a product from the ledger reply; JSON keys may be strings."""
    if not stock_map:
        return None
    value = stock_map.get(product_id)
    if value is None:
        value = stock_map.get(str(product_id))
    if value is None:
        return None
    return _coerce_stock(value, product_id)


def _coerce_stock(value: Any, product_id: Any) -> Optional[int]:
    """Non-negative stock count, or None when the ledger sent garbage."""
    if isinstance(value, bool):
        value = None
    try:
        stock = int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning(
            f"Ignoring malformed stock {value!r} for product {product_id} "
            f"in ledger reply"
        )
        return None
    return max(0, stock)
