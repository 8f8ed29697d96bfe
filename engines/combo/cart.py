"""
POS Combo Engine - Cart Ledger
================================
Ordered collection of purchased lines for one open bill.

RULES:
- Every line has an opaque id that is never reused, even after clear()
- A line whose quantity reaches 0 is removed
- Several lines may exist for the same product (a combo can pull a
  fresh unit into its own line while an older line is fully consumed)
- unit_price is what a singles unit is charged; original_unit_price is
  the product's offer price and never changes after the line is created

Consumption by combo slots is NOT stored here. It is derived from the
open combo instances (see instances.ComboInstanceManager).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple


# ══════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AutoTierOverride:
    """Quantity-slab price applied to a whole line."""
    rule_id: str
    tier_price: int
    savings: int  # per unit: original_unit_price - tier_price


@dataclass
class CartLine:
    """
    Internal mutable cart line (not exposed outside the session).
    stock is the catalog snapshot at first scan; None means unlimited
    (manual entries).
    """
    cart_line_id: str
    product_id: str
    name: str
    unit_price: int
    quantity: int
    original_unit_price: int
    stock: Optional[int] = None
    auto_tier_override: Optional[AutoTierOverride] = None
    is_manual: bool = False

    def snapshot(self) -> "CartLineSnapshot":
        return CartLineSnapshot(
            cart_line_id=self.cart_line_id,
            product_id=self.product_id,
            name=self.name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            original_unit_price=self.original_unit_price,
            auto_tier_override=self.auto_tier_override,
            is_manual=self.is_manual,
        )


@dataclass(frozen=True)
class CartLineSnapshot:
    """Immutable view of a cart line for read queries."""
    cart_line_id: str
    product_id: str
    name: str
    unit_price: int
    quantity: int
    original_unit_price: int
    auto_tier_override: Optional[AutoTierOverride]
    is_manual: bool

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price


# ══════════════════════════════════════════════════════════════
# CART LEDGER
# ══════════════════════════════════════════════════════════════

class CartLedger:
    """Lines of one open bill, in scan order."""

    def __init__(self, id_prefix: str = "L"):
        self._lines: Dict[str, CartLine] = {}
        self._id_prefix = id_prefix
        self._line_sequence: int = 0

    def _next_line_id(self) -> str:
        self._line_sequence += 1
        return f"{self._id_prefix}{self._line_sequence:04d}"

    # ── Queries ───────────────────────────────────────────────

    def __iter__(self) -> Iterator[CartLine]:
        return iter(list(self._lines.values()))

    def __len__(self) -> int:
        return len(self._lines)

    def get(self, cart_line_id: str) -> Optional[CartLine]:
        return self._lines.get(cart_line_id)

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def lines_for_product(self, product_id: str) -> List[CartLine]:
        return [l for l in self._lines.values() if l.product_id == product_id]

    def first_line_for_product(self, product_id: str) -> Optional[CartLine]:
        for line in self._lines.values():
            if line.product_id == product_id:
                return line
        return None

    def product_quantity(self, product_id: str) -> int:
        """Total units of a product across all of its lines."""
        return sum(l.quantity for l in self.lines_for_product(product_id))

    def snapshot(self) -> Tuple[CartLineSnapshot, ...]:
        return tuple(l.snapshot() for l in self._lines.values())

    # ── Mutations ─────────────────────────────────────────────

    def add_line(
        self,
        product_id: str,
        name: str,
        unit_price: int,
        quantity: int,
        stock: Optional[int] = None,
        is_manual: bool = False,
    ) -> CartLine:
        if quantity <= 0:
            raise ValueError(f"Line quantity must be positive, got {quantity}.")
        if unit_price < 0:
            raise ValueError(f"unit_price cannot be negative, got {unit_price}.")
        line = CartLine(
            cart_line_id=self._next_line_id(),
            product_id=product_id,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            original_unit_price=unit_price,
            stock=stock,
            is_manual=is_manual,
        )
        self._lines[line.cart_line_id] = line
        return line

    def increment(self, cart_line_id: str, quantity: int) -> CartLine:
        if quantity <= 0:
            raise ValueError(f"Increment must be positive, got {quantity}.")
        line = self._lines[cart_line_id]
        line.quantity += quantity
        return line

    def set_quantity(self, cart_line_id: str, quantity: int) -> Optional[CartLine]:
        """Set a line's quantity; 0 removes the line and returns None."""
        if quantity < 0:
            raise ValueError(f"Quantity cannot be negative, got {quantity}.")
        if quantity == 0:
            self.remove(cart_line_id)
            return None
        line = self._lines[cart_line_id]
        line.quantity = quantity
        return line

    def remove(self, cart_line_id: str) -> CartLine:
        return self._lines.pop(cart_line_id)

    def clear(self) -> None:
        # sequence is kept so ids are never reused within a session
        self._lines.clear()
