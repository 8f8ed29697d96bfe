"""
POS Combo Engine - Policies
=============================
Pre-mutation checks. Each policy returns None to allow or a
RejectionReason to refuse; callers evaluate them before touching the
cart or the combo instances, so a refusal never leaves partial state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.combo.catalog import ComboDefinition, ComboStatus, ProductRecord


def combo_must_be_active_policy(
    definition: ComboDefinition,
    now: datetime,
) -> Optional[RejectionReason]:
    """Paused, upcoming and expired combos cannot be placed on a bill."""
    status = definition.status(now)
    if status is ComboStatus.ACTIVE:
        return None

    if status is ComboStatus.PAUSED:
        detail = "is paused"
    elif status is ComboStatus.UPCOMING:
        detail = f"starts on {definition.valid_from.date().isoformat()}"
    else:
        detail = f"expired on {definition.valid_to.date().isoformat()}"

    return RejectionReason(
        code=ReasonCode.COMBO_NOT_ACTIVE,
        message=f"Combo '{definition.name or definition.combo_id}' {detail}.",
        policy_name="combo_must_be_active_policy",
    )


def requested_quantity_within_stock_policy(
    product: ProductRecord,
    requested_quantity: int,
) -> Optional[RejectionReason]:
    """A single scan may never ask for more than the stock snapshot."""
    if product.stock >= requested_quantity:
        return None
    return RejectionReason(
        code=ReasonCode.INSUFFICIENT_STOCK,
        message=(
            f"Only {product.stock} of '{product.name}' in stock, "
            f"{requested_quantity} requested."
        ),
        policy_name="requested_quantity_within_stock_policy",
    )


def cart_quantity_within_stock_policy(
    name: str,
    stock: Optional[int],
    quantity_in_cart: int,
    additional_quantity: int,
) -> Optional[RejectionReason]:
    """Units already on the bill plus the new ones must fit the stock."""
    if stock is None or additional_quantity <= 0:
        return None
    if quantity_in_cart + additional_quantity <= stock:
        return None
    available = max(0, stock - quantity_in_cart)
    return RejectionReason(
        code=ReasonCode.INSUFFICIENT_STOCK,
        message=(
            f"Only {available} more of '{name}' available "
            f"({quantity_in_cart} already on the bill, stock {stock})."
        ),
        policy_name="cart_quantity_within_stock_policy",
    )


def quantity_covers_consumption_policy(
    cart_line_id: str,
    new_quantity: int,
    consumed_quantity: int,
) -> Optional[RejectionReason]:
    """A line cannot shrink below the units its combo slots hold."""
    if new_quantity >= consumed_quantity:
        return None
    return RejectionReason(
        code=ReasonCode.LINE_CONSUMED_BY_COMBO,
        message=(
            f"Line '{cart_line_id}' has {consumed_quantity} unit(s) in a combo; "
            f"remove the combo first or keep at least {consumed_quantity}."
        ),
        policy_name="quantity_covers_consumption_policy",
    )


def combos_must_be_complete_policy(
    instances: Iterable,
) -> Optional[RejectionReason]:
    """Every combo on the bill must have all of its slots filled."""
    incomplete = [i for i in instances if not i.is_complete]
    if not incomplete:
        return None
    names = ", ".join(
        f"{i.name or i.combo_id} ({i.filled_count}/{len(i.slots)})"
        for i in incomplete
    )
    return RejectionReason(
        code=ReasonCode.COMBO_INCOMPLETE,
        message=f"Fill or remove incomplete combos before billing: {names}.",
        policy_name="combos_must_be_complete_policy",
    )


def sufficient_points_policy(
    phone: str,
    balance: int,
    points: int,
) -> Optional[RejectionReason]:
    """Wallet must hold enough points to redeem."""
    if points <= balance:
        return None
    return RejectionReason(
        code=ReasonCode.INSUFFICIENT_POINTS,
        message=f"Customer {phone} has {balance} points, needs {points}.",
        policy_name="sufficient_points_policy",
    )
