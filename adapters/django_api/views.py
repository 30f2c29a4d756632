"""
POS Django Adapter Views
========================
JSON views over the process-wide RegisterSession.

Every response uses one envelope:
    {"ok": true,  "data": ...}
    {"ok": false, "error": {"code", "message", "details"}}
"""

from __future__ import annotations

import json
from typing import Any, Optional

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_register_session
from engines.register.printing import PrintAttemptStatus
from engines.register.services import CommitInProgressError, CommitState
from integration import IntegrationError


def _json_ok(data: Any, status: int = 200) -> JsonResponse:
    return JsonResponse({"ok": True, "data": data}, status=status)


def _json_error(
    code: str,
    message: str,
    status: int = 400,
    details: Optional[dict[str, Any]] = None,
) -> JsonResponse:
    return JsonResponse(
        {
            "ok": False,
            "error": {"code": code, "message": message, "details": details or {}},
        },
        status=status,
    )


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_int(body: dict[str, Any], field_name: str) -> int:
    if field_name not in body:
        raise ValueError(f"{field_name} is required.")
    value = body[field_name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer.")
    return value


def _parse_number(body: dict[str, Any], field_name: str, default=None) -> float:
    value = body.get(field_name, default)
    if value is None:
        raise ValueError(f"{field_name} is required.")
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number.")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a number.") from exc


def _cart_action(request: HttpRequest, action) -> JsonResponse:
    """Parse the body, run `action(session, body)`, answer with the state."""
    if request.method != "POST":
        return _method_not_allowed()
    session = build_register_session()
    try:
        body = _parse_json_body(request)
        action(session, body)
    except (ValueError, KeyError, IndexError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    return _json_ok(session.state())


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def register_state_view(request: HttpRequest):
    if request.method != "GET":
        return _method_not_allowed()
    return _json_ok(build_register_session().state())


@csrf_exempt
def cart_add_view(request: HttpRequest):
    if request.method != "POST":
        return _method_not_allowed()
    session = build_register_session()
    try:
        body = _parse_json_body(request)
        if "barcode" in body:
            added = session.add_by_barcode(str(body["barcode"]))
        elif "product_id" in body:
            added = session.add_product(body["product_id"])
        else:
            raise ValueError("product_id or barcode is required.")
    except ValueError as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    if not added:
        return _json_error(
            "PRODUCT_NOT_FOUND", "No matching product in the catalog.", status=404,
        )
    return _json_ok(session.state())


@csrf_exempt
def cart_remove_view(request: HttpRequest):
    return _cart_action(
        request,
        lambda session, body: session.remove_line(_parse_int(body, "index")),
    )


@csrf_exempt
def cart_quantity_view(request: HttpRequest):
    return _cart_action(
        request,
        lambda session, body: session.set_quantity(
            _parse_int(body, "index"), _parse_int(body, "quantity"),
        ),
    )


@csrf_exempt
def cart_clear_view(request: HttpRequest):
    return _cart_action(request, lambda session, body: session.clear_cart())


@csrf_exempt
def cart_discount_view(request: HttpRequest):
    return _cart_action(
        request,
        lambda session, body: session.apply_discount(
            _parse_number(body, "amount"),
        ),
    )


@csrf_exempt
def payment_view(request: HttpRequest):
    return _cart_action(
        request,
        lambda session, body: session.set_payment(
            body.get("method"),
            _parse_number(body, "amount_received", default=0),
        ),
    )


@csrf_exempt
def cart_notes_view(request: HttpRequest):
    return _cart_action(
        request,
        lambda session, body: session.set_notes(str(body.get("notes") or "")),
    )


@csrf_exempt
def customer_view(request: HttpRequest):
    return _cart_action(
        request,
        lambda session, body: session.set_customer(body["customer_id"]),
    )


# ══════════════════════════════════════════════════════════════
# SALE
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def commit_view(request: HttpRequest):
    if request.method != "POST":
        return _method_not_allowed()
    session = build_register_session()
    try:
        outcome = session.commit()
    except CommitInProgressError as exc:
        return _json_error("COMMIT_IN_PROGRESS", str(exc), status=409)

    if outcome.state is CommitState.COMPLETED:
        return _json_ok(outcome.to_dict())
    if outcome.rejection is not None:
        return _json_error(
            outcome.rejection.code,
            outcome.rejection.message,
            status=400,
            details=outcome.to_dict(),
        )
    return _json_error(
        "SALE_NOT_SAVED", outcome.error or "", status=502, details=outcome.to_dict(),
    )


@csrf_exempt
def print_invoice_view(request: HttpRequest):
    if request.method != "POST":
        return _method_not_allowed()
    job = build_register_session().reprint_last_invoice()
    status = job.attempt.status
    if status is PrintAttemptStatus.REJECTED:
        return _json_error(
            "INVALID_PRINT_PAYLOAD", job.attempt.error, status=400,
            details=job.to_dict(),
        )
    if status is PrintAttemptStatus.FAILED:
        return _json_error(
            "PRINT_FAILED", job.attempt.error, status=502, details=job.to_dict(),
        )
    return _json_ok(job.to_dict())


@csrf_exempt
def sales_feed_view(request: HttpRequest):
    if request.method != "GET":
        return _method_not_allowed()
    return _json_ok(build_register_session().sales_feed())


@csrf_exempt
def sale_history_view(request: HttpRequest):
    if request.method != "GET":
        return _method_not_allowed()
    filters = {key: request.GET[key] for key in request.GET}
    try:
        history = build_register_session().sale_history(filters)
    except IntegrationError as exc:
        return _json_error("LEDGER_UNAVAILABLE", str(exc), status=502)
    return _json_ok(history)


@csrf_exempt
def sale_detail_view(request: HttpRequest, sale_id: int):
    if request.method != "GET":
        return _method_not_allowed()
    try:
        sale = build_register_session().sale_details(sale_id)
    except IntegrationError as exc:
        return _json_error("LEDGER_UNAVAILABLE", str(exc), status=502)
    if sale is None:
        return _json_error("SALE_NOT_FOUND", f"Sale {sale_id} not found.", status=404)
    return _json_ok(sale)


@csrf_exempt
def sale_cancel_view(request: HttpRequest, sale_id: int):
    if request.method != "POST":
        return _method_not_allowed()
    result = build_register_session().cancel_sale(sale_id)
    if not result.success:
        return _json_error(
            "CANCEL_FAILED", result.error or "", status=409,
            details={"sale_id": sale_id},
        )
    return _json_ok({"sale_id": sale_id, "cancelled": True})


# ══════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def catalog_view(request: HttpRequest):
    if request.method != "GET":
        return _method_not_allowed()
    return _json_ok(
        build_register_session().catalog_view(
            request.GET.get("q", ""), request.GET.get("category") or None,
        )
    )


@csrf_exempt
def product_publish_view(request: HttpRequest):
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        product = build_register_session().publish_product(body)
    except ValueError as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    return _json_ok(product.to_dict())


@csrf_exempt
def product_delete_view(request: HttpRequest):
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        product_id = body["id"]
    except (ValueError, KeyError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    if not build_register_session().remove_product(product_id):
        return _json_error(
            "PRODUCT_NOT_FOUND", f"Product {product_id} not found.", status=404,
        )
    return _json_ok({"id": product_id, "deleted": True})


# ══════════════════════════════════════════════════════════════
# ALERTS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def alerts_view(request: HttpRequest):
    if request.method != "GET":
        return _method_not_allowed()
    alerts = build_register_session().alerts.active()
    return _json_ok([alert.to_dict() for alert in alerts])


@csrf_exempt
def alerts_dismiss_view(request: HttpRequest):
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        alert_id = body["alert_id"]
    except (ValueError, KeyError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    dismissed = build_register_session().alerts.dismiss(str(alert_id))
    return _json_ok({"alert_id": alert_id, "dismissed": dismissed})
