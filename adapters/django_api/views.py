"""
POS Django Adapter Views
========================
Thin HTTP views over the bill session of a till.

Every response uses the {"ok": ..., "data"/"error": ...} envelope.
Malformed requests get 400 INVALID_REQUEST, refused bill operations get
409 (404 when the referenced product, line or combo does not exist).
"""

from __future__ import annotations

import json
from typing import Any, Callable

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import DEFAULT_TILL_ID, build_dependencies
from core.http_api.errors import (
    HTTP_STATUS_INVALID,
    HTTP_STATUS_METHOD_NOT_ALLOWED,
    INVALID_REQUEST,
    METHOD_NOT_ALLOWED,
    error_response,
    rejection_response,
    success_response,
)
from engines.combo.cart import CartLineSnapshot
from engines.combo.commands import (
    BillFinalizeRequest,
    ComboCloseRequest,
    ComboOpenRequest,
    LineQuantityUpdateRequest,
    ManualItemRequest,
    ScanRequest,
)
from engines.combo.errors import PosEngineError
from engines.combo.services import BillSession, instance_to_dict


def _json_error(
    code: str, message: str, status: int = HTTP_STATUS_INVALID,
) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        METHOD_NOT_ALLOWED,
        "Method not allowed for this endpoint.",
        status=HTTP_STATUS_METHOD_NOT_ALLOWED,
    )


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except Exception as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer.")
    return value


def _till_id(request: HttpRequest, body: dict[str, Any] | None = None) -> str:
    till_id = (body or {}).get("till_id") or request.GET.get("till_id")
    return str(till_id) if till_id else DEFAULT_TILL_ID


def _session(till_id: str) -> BillSession:
    return build_dependencies().session_for(till_id)


def _line_to_dict(line: CartLineSnapshot, consumed: int) -> dict[str, Any]:
    override = line.auto_tier_override
    return {
        "cart_line_id": line.cart_line_id,
        "product_id": line.product_id,
        "name": line.name,
        "quantity": line.quantity,
        "consumed_quantity": consumed,
        "unit_price": line.unit_price,
        "original_unit_price": line.original_unit_price,
        "is_manual": line.is_manual,
        "auto_tier": (
            None
            if override is None
            else {
                "rule_id": override.rule_id,
                "tier_price": override.tier_price,
                "savings": override.savings,
            }
        ),
    }


def _bill_state(session: BillSession) -> dict[str, Any]:
    return {
        "bill_ref": session.bill_ref,
        "lines": [
            _line_to_dict(line, session.consumed_quantity(line.cart_line_id))
            for line in session.cart_lines()
        ],
        "combos": [instance_to_dict(i) for i in session.combo_instances()],
        "totals": session.current_totals().to_dict(),
    }


def _dispatch_write(
    request: HttpRequest,
    request_factory: Callable[[dict[str, Any]], Any],
    operation: Callable[[BillSession, Any], dict[str, Any]],
) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        command = request_factory(body)
    except (ValueError, KeyError, TypeError) as exc:
        return _json_error(INVALID_REQUEST, str(exc))

    session = _session(_till_id(request, body))
    try:
        data = operation(session, command)
    except PosEngineError as exc:
        status, error_body = rejection_response(exc.reason)
        return JsonResponse(error_body, status=status)
    return JsonResponse(success_response(data))


def _dispatch_read(
    request: HttpRequest,
    query: Callable[[BillSession], Any],
) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return JsonResponse(success_response(query(_session(_till_id(request)))))


# ── Request factories ─────────────────────────────────────────

def _scan_request(body: dict[str, Any]) -> ScanRequest:
    return ScanRequest(
        code=str(body["code"]),
        quantity=_parse_int(body.get("quantity", 1), "quantity"),
    )


def _manual_item_request(body: dict[str, Any]) -> ManualItemRequest:
    return ManualItemRequest(
        name=str(body["name"]),
        price=_parse_int(body["price"], "price"),
        quantity=_parse_int(body.get("quantity", 1), "quantity"),
    )


def _line_quantity_request(body: dict[str, Any]) -> LineQuantityUpdateRequest:
    return LineQuantityUpdateRequest(
        cart_line_id=str(body["cart_line_id"]),
        quantity=_parse_int(body["quantity"], "quantity"),
    )


def _combo_open_request(body: dict[str, Any]) -> ComboOpenRequest:
    return ComboOpenRequest(combo_id=str(body["combo_id"]))


def _combo_close_request(body: dict[str, Any]) -> ComboCloseRequest:
    return ComboCloseRequest(instance_id=str(body["instance_id"]))


def _finalize_request(body: dict[str, Any]) -> BillFinalizeRequest:
    phone = body.get("customer_phone")
    return BillFinalizeRequest(
        payment_method=str(body["payment_method"]),
        customer_phone=str(phone) if phone else None,
        redeem_points=_parse_int(body.get("redeem_points", 0), "redeem_points"),
    )


# ── Operations ────────────────────────────────────────────────

def _scan(session: BillSession, command: ScanRequest) -> dict[str, Any]:
    result = session.scan(command)
    state = _bill_state(session)
    state["assignment"] = {
        "product_id": result.product_id,
        "combo_instance_id": result.combo_instance_id,
        "slot_index": result.slot_index,
        "singles_quantity_added": result.singles_quantity_added,
    }
    return state


def _manual_item(session: BillSession, command: ManualItemRequest) -> dict[str, Any]:
    session.add_manual_item(command)
    return _bill_state(session)


def _line_quantity(
    session: BillSession, command: LineQuantityUpdateRequest,
) -> dict[str, Any]:
    session.update_line_quantity(command)
    return _bill_state(session)


def _combo_open(session: BillSession, command: ComboOpenRequest) -> dict[str, Any]:
    instance = session.open_combo(command)
    state = _bill_state(session)
    state["instance_id"] = instance.instance_id
    return state


def _combo_close(session: BillSession, command: ComboCloseRequest) -> dict[str, Any]:
    session.close_combo(command)
    return _bill_state(session)


def _finalize(session: BillSession, command: BillFinalizeRequest) -> dict[str, Any]:
    return session.finalize(command).to_dict()


# ── Views ─────────────────────────────────────────────────────

@csrf_exempt
def bill_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_read(request, _bill_state)


@csrf_exempt
def totals_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_read(request, lambda s: s.current_totals().to_dict())


@csrf_exempt
def line_items_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_read(
        request, lambda s: [l.to_dict() for l in s.line_items_for_billing()],
    )


@csrf_exempt
def points_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_read(request, lambda s: s.points_estimate().to_dict())


@csrf_exempt
def taxes_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_read(
        request, lambda s: [t.to_dict() for t in s.tax_breakdown()],
    )


@csrf_exempt
def active_combos_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    definitions = build_dependencies().combo_catalog.list_active_combos()
    return JsonResponse(success_response([
        {
            "combo_id": d.combo_id,
            "name": d.name,
            "sku": d.sku,
            "combo_type": d.combo_type,
            "fixed_price": d.fixed_price,
            "slots": [
                {"min_price": s.min_price, "max_price": s.max_price}
                for s in d.slots
            ],
        }
        for d in definitions
    ]))


@csrf_exempt
def scan_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(request, _scan_request, _scan)


@csrf_exempt
def manual_item_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(request, _manual_item_request, _manual_item)


@csrf_exempt
def line_quantity_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(request, _line_quantity_request, _line_quantity)


@csrf_exempt
def combo_open_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(request, _combo_open_request, _combo_open)


@csrf_exempt
def combo_close_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(request, _combo_close_request, _combo_close)


@csrf_exempt
def finalize_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(request, _finalize_request, _finalize)


@csrf_exempt
def clear_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
    except ValueError as exc:
        return _json_error(INVALID_REQUEST, str(exc))
    session = _session(_till_id(request, body))
    session.clear()
    return JsonResponse(success_response(_bill_state(session)))
