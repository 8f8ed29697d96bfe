"""
POS Combo Engine - Event Types and Payload Builders
=====================================================
Every accepted bill mutation is journaled as one event. Each bill gets
a fresh journal; only the last closed bill's journal is kept after
finalize or clear. Billing persistence receives the finalized submission.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

POS_ITEM_SCANNED_V1 = "pos.item.scanned.v1"
POS_ITEM_MANUAL_ADDED_V1 = "pos.item.manual_added.v1"
POS_LINE_QUANTITY_UPDATED_V1 = "pos.line.quantity_updated.v1"
POS_COMBO_OPENED_V1 = "pos.combo.opened.v1"
POS_COMBO_CLOSED_V1 = "pos.combo.closed.v1"
POS_BILL_FINALIZED_V1 = "pos.bill.finalized.v1"
POS_BILL_CLEARED_V1 = "pos.bill.cleared.v1"

POS_EVENT_TYPES = (
    POS_ITEM_SCANNED_V1,
    POS_ITEM_MANUAL_ADDED_V1,
    POS_LINE_QUANTITY_UPDATED_V1,
    POS_COMBO_OPENED_V1,
    POS_COMBO_CLOSED_V1,
    POS_BILL_FINALIZED_V1,
    POS_BILL_CLEARED_V1,
)


# ══════════════════════════════════════════════════════════════
# COMMAND → EVENT MAPPING
# ══════════════════════════════════════════════════════════════

COMMAND_TO_EVENT_TYPE = {
    "pos.item.scan.request": POS_ITEM_SCANNED_V1,
    "pos.item.manual_add.request": POS_ITEM_MANUAL_ADDED_V1,
    "pos.line.update_quantity.request": POS_LINE_QUANTITY_UPDATED_V1,
    "pos.combo.open.request": POS_COMBO_OPENED_V1,
    "pos.combo.close.request": POS_COMBO_CLOSED_V1,
    "pos.bill.finalize.request": POS_BILL_FINALIZED_V1,
}


def resolve_pos_event_type(command_type: str) -> Optional[str]:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def _base_payload(bill_ref: str, occurred_at: datetime) -> dict:
    return {"bill_ref": bill_ref, "occurred_at": occurred_at}


def build_item_scanned_payload(bill_ref, occurred_at, *, code, result) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "code": code,
        "product_id": result.product_id,
        "requested_quantity": result.requested_quantity,
        "combo_instance_id": result.combo_instance_id,
        "slot_index": result.slot_index,
        "slot_cart_line_id": result.slot_cart_line_id,
        "singles_cart_line_id": result.singles_cart_line_id,
        "singles_quantity_added": result.singles_quantity_added,
        "created_line_ids": list(result.created_line_ids),
    })
    return payload


def build_item_manual_added_payload(bill_ref, occurred_at, *, line) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "cart_line_id": line.cart_line_id,
        "name": line.name,
        "unit_price": line.original_unit_price,
        "quantity": line.quantity,
    })
    return payload


def build_line_quantity_updated_payload(
    bill_ref, occurred_at, *, cart_line_id, previous_quantity, quantity,
) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "cart_line_id": cart_line_id,
        "previous_quantity": previous_quantity,
        "quantity": quantity,
        "removed": quantity == 0,
    })
    return payload


def build_combo_opened_payload(bill_ref, occurred_at, *, instance) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "instance_id": instance.instance_id,
        "combo_id": instance.combo_id,
        "fixed_price": instance.fixed_price,
        "slot_count": len(instance.slots),
    })
    return payload


def build_combo_closed_payload(bill_ref, occurred_at, *, result) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "instance_id": result.instance_id,
        "combo_id": result.combo_id,
        "restored": [
            {
                "product_id": r.product_id,
                "from_cart_line_id": r.from_cart_line_id,
                "to_cart_line_id": r.to_cart_line_id,
                "quantity": r.quantity,
            }
            for r in result.restored
        ],
    })
    return payload


def build_bill_finalized_payload(bill_ref, occurred_at, *, submission) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "payment_method": submission.payment_method,
        "customer_phone": submission.customer_phone,
        "grand_total": submission.totals.grand_total,
        "payable_amount": submission.payable_amount,
        "redeemed_points": submission.redeemed_points,
        "earned_points": submission.earned_points,
        "line_count": len(submission.lines),
    })
    return payload


def build_bill_cleared_payload(bill_ref, occurred_at, *, line_count, combo_count) -> dict:
    payload = _base_payload(bill_ref, occurred_at)
    payload.update({
        "line_count": line_count,
        "combo_count": combo_count,
    })
    return payload
