"""
POS Combo Engine - Request Commands
=====================================
Typed till requests. Shape is validated here (ValueError); business
refusals (stock, combo status, points) come later from the policies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional


# ══════════════════════════════════════════════════════════════
# COMMAND TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

POS_ITEM_SCAN_REQUEST = "pos.item.scan.request"
POS_ITEM_MANUAL_ADD_REQUEST = "pos.item.manual_add.request"
POS_LINE_UPDATE_QUANTITY_REQUEST = "pos.line.update_quantity.request"
POS_COMBO_OPEN_REQUEST = "pos.combo.open.request"
POS_COMBO_CLOSE_REQUEST = "pos.combo.close.request"
POS_BILL_FINALIZE_REQUEST = "pos.bill.finalize.request"

POS_COMMAND_TYPES = frozenset({
    POS_ITEM_SCAN_REQUEST,
    POS_ITEM_MANUAL_ADD_REQUEST,
    POS_LINE_UPDATE_QUANTITY_REQUEST,
    POS_COMBO_OPEN_REQUEST,
    POS_COMBO_CLOSE_REQUEST,
    POS_BILL_FINALIZE_REQUEST,
})

VALID_PAYMENT_METHODS = frozenset({
    "CASH", "CARD", "UPI", "WALLET", "SPLIT",
})


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ScanRequest:
    """Scan a barcode or pick a search result."""
    command_type: ClassVar[str] = POS_ITEM_SCAN_REQUEST
    code: str
    quantity: int = 1

    def __post_init__(self):
        if not self.code or not self.code.strip():
            raise ValueError("code must be non-empty.")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("quantity must be positive integer.")

    def to_payload(self) -> dict:
        return {"code": self.code.strip(), "quantity": self.quantity}


@dataclass(frozen=True)
class ManualItemRequest:
    """Free-text item keyed in after a failed lookup."""
    command_type: ClassVar[str] = POS_ITEM_MANUAL_ADD_REQUEST
    name: str
    price: int
    quantity: int = 1

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("name must be non-empty.")
        if not isinstance(self.price, int) or self.price < 0:
            raise ValueError("price must be non-negative integer.")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("quantity must be positive integer.")

    def to_payload(self) -> dict:
        return {
            "name": self.name.strip(),
            "price": self.price,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class LineQuantityUpdateRequest:
    """Set a cart line's quantity; 0 removes the line."""
    command_type: ClassVar[str] = POS_LINE_UPDATE_QUANTITY_REQUEST
    cart_line_id: str
    quantity: int

    def __post_init__(self):
        if not self.cart_line_id:
            raise ValueError("cart_line_id must be non-empty.")
        if not isinstance(self.quantity, int) or self.quantity < 0:
            raise ValueError("quantity must be non-negative integer.")

    def to_payload(self) -> dict:
        return {"cart_line_id": self.cart_line_id, "quantity": self.quantity}


@dataclass(frozen=True)
class ComboOpenRequest:
    """Place a catalog combo on the bill."""
    command_type: ClassVar[str] = POS_COMBO_OPEN_REQUEST
    combo_id: str

    def __post_init__(self):
        if not self.combo_id:
            raise ValueError("combo_id must be non-empty.")

    def to_payload(self) -> dict:
        return {"combo_id": self.combo_id}


@dataclass(frozen=True)
class ComboCloseRequest:
    """Remove a combo instance and return its units to singles."""
    command_type: ClassVar[str] = POS_COMBO_CLOSE_REQUEST
    instance_id: str

    def __post_init__(self):
        if not self.instance_id:
            raise ValueError("instance_id must be non-empty.")

    def to_payload(self) -> dict:
        return {"instance_id": self.instance_id}


@dataclass(frozen=True)
class BillFinalizeRequest:
    """Close the bill and hand it to billing, payment and loyalty."""
    command_type: ClassVar[str] = POS_BILL_FINALIZE_REQUEST
    payment_method: str
    customer_phone: Optional[str] = None
    redeem_points: int = 0

    def __post_init__(self):
        if self.payment_method not in VALID_PAYMENT_METHODS:
            raise ValueError(f"payment_method '{self.payment_method}' not valid.")
        if not isinstance(self.redeem_points, int) or self.redeem_points < 0:
            raise ValueError("redeem_points must be non-negative integer.")
        if self.redeem_points and not self.customer_phone:
            raise ValueError("customer_phone is required to redeem points.")
        if self.customer_phone is not None and not self.customer_phone.strip():
            raise ValueError("customer_phone must be non-empty when given.")

    def to_payload(self) -> dict:
        return {
            "payment_method": self.payment_method,
            "customer_phone": self.customer_phone,
            "redeem_points": self.redeem_points,
        }
