"""
POS Combo Engine - Assignment
===============================
Decides where a scanned unit goes: into a combo slot or onto a singles
line.

RULES (NON-NEGOTIABLE):
- Open combos are tried newest first; inside a combo, slots in order
- At most ONE slot is filled per scan, whatever the requested quantity
- A slot takes a free unit already on the bill before a new one is added
- Any remaining requested quantity becomes a singles addition
- Every check runs before the first mutation (all-or-nothing)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from engines.combo.cart import CartLedger, CartLine
from engines.combo.catalog import ProductRecord
from engines.combo.errors import error_for
from engines.combo.instances import ComboInstanceManager, SlotAssignment
from engines.combo.policies import (
    cart_quantity_within_stock_policy,
    requested_quantity_within_stock_policy,
)

logger = logging.getLogger("pos.assignment")


@dataclass(frozen=True)
class AssignmentResult:
    """What a single scan did to the bill."""
    product_id: str
    requested_quantity: int
    combo_instance_id: Optional[str]
    slot_index: Optional[int]
    slot_cart_line_id: Optional[str]
    singles_cart_line_id: Optional[str]
    singles_quantity_added: int
    created_line_ids: Tuple[str, ...]

    @property
    def filled_slot(self) -> bool:
        return self.combo_instance_id is not None


def candidate_price(product: ProductRecord) -> int:
    """Discounted price, else offer price, else 0 (zero counts as absent)."""
    return product.discounted_price or product.offer_price or 0


def _line_with_free_units(
    ledger: CartLedger, manager: ComboInstanceManager, product_id: str,
) -> Optional[CartLine]:
    for line in ledger.lines_for_product(product_id):
        if line.quantity - manager.consumed_quantity(line.cart_line_id) > 0:
            return line
    return None


def _add_singles(
    ledger: CartLedger,
    manager: ComboInstanceManager,
    product: ProductRecord,
    quantity: int,
) -> Tuple[CartLine, bool]:
    line = _line_with_free_units(ledger, manager, product.product_id)
    if line is None:
        line = ledger.first_line_for_product(product.product_id)
    if line is not None:
        ledger.increment(line.cart_line_id, quantity)
        return line, False
    line = ledger.add_line(
        product_id=product.product_id,
        name=product.name,
        unit_price=product.offer_price,
        quantity=quantity,
        stock=product.stock,
    )
    return line, True


def resolve_and_assign(
    product: ProductRecord,
    requested_quantity: int,
    ledger: CartLedger,
    manager: ComboInstanceManager,
) -> AssignmentResult:
    """
    Place requested_quantity units of product on the bill.

    Raises InsufficientStock without touching the bill when the scan or
    the resulting cart quantity would exceed the stock snapshot.
    """
    if not isinstance(requested_quantity, int) or requested_quantity <= 0:
        raise ValueError("requested_quantity must be positive integer.")

    rejection = requested_quantity_within_stock_policy(product, requested_quantity)
    if rejection is not None:
        raise error_for(rejection)

    price = candidate_price(product)
    match = manager.find_accepting_slot(price)
    in_cart = ledger.product_quantity(product.product_id)

    # ── Plan (no mutation) ────────────────────────────────────
    free_line = None
    if match is not None:
        free_line = _line_with_free_units(ledger, manager, product.product_id)
        slot_units_needed = 0 if free_line is not None else 1
        remainder = requested_quantity - 1
    else:
        slot_units_needed = 0
        remainder = requested_quantity

    rejection = cart_quantity_within_stock_policy(
        product.name, product.stock, in_cart, slot_units_needed + remainder,
    )
    if rejection is not None:
        raise error_for(rejection)

    # ── Apply ─────────────────────────────────────────────────
    for line in ledger.lines_for_product(product.product_id):
        line.stock = product.stock

    created = []
    instance_id = None
    slot_index = None
    slot_line_id = None

    if match is not None:
        instance, slot_index = match
        if free_line is None:
            free_line = ledger.add_line(
                product_id=product.product_id,
                name=product.name,
                unit_price=product.offer_price,
                quantity=1,
                stock=product.stock,
            )
            created.append(free_line.cart_line_id)
        manager.assign(
            instance.instance_id,
            slot_index,
            SlotAssignment(
                product_id=product.product_id,
                cart_line_id=free_line.cart_line_id,
                offer_price=product.offer_price,
                name=product.name,
            ),
        )
        instance_id = instance.instance_id
        slot_line_id = free_line.cart_line_id

    singles_line_id = None
    if remainder > 0:
        singles_line, is_new = _add_singles(ledger, manager, product, remainder)
        singles_line_id = singles_line.cart_line_id
        if is_new:
            created.append(singles_line_id)

    manager.assert_conservation(ledger)

    logger.debug(
        f"Scan {product.product_id} x{requested_quantity} at {price}: "
        + (
            f"slot {slot_index} of {instance_id}"
            if instance_id is not None
            else "no accepting slot"
        )
        + (f", +{remainder} singles" if remainder > 0 else "")
    )

    return AssignmentResult(
        product_id=product.product_id,
        requested_quantity=requested_quantity,
        combo_instance_id=instance_id,
        slot_index=slot_index,
        slot_cart_line_id=slot_line_id,
        singles_cart_line_id=singles_line_id,
        singles_quantity_added=remainder,
        created_line_ids=tuple(created),
    )
