"""
POS Combo Engine - Pricing
============================
Pure pricing functions over the cart lines and combo instances of a bill.
Safe to re-run after every scan: same inputs -> same outputs.

RULES (NON-NEGOTIABLE):
- Integer currency units in, integer currency units out
- Proportional allocation uses Decimal and ROUND_HALF_UP per unit
- Allocation residue (at most len(slots) - 1 units) is NOT redistributed
- Incomplete combos price slots at plain offer price and add 0 to totals
- Tier grouping keys on original_unit_price, never on an applied tier
  price, so the tier pass is idempotent
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from engines.combo.cart import AutoTierOverride, CartLine
from engines.combo.catalog import AutoTierRule
from engines.combo.instances import ComboInstance, ComboSlot, consumption_of

logger = logging.getLogger("pos.pricing")


# ══════════════════════════════════════════════════════════════
# RESULT STRUCTURES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SlotAllocation:
    slot_index: int
    product_id: str
    quantity: int
    offer_price: int
    unit_price: int

    @property
    def adjusted_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Totals:
    singles_subtotal: int
    combos_subtotal: int
    auto_tier_discount: int
    grand_total: int
    total_savings: int

    def to_dict(self) -> dict:
        return {
            "singles_subtotal": self.singles_subtotal,
            "combos_subtotal": self.combos_subtotal,
            "auto_tier_discount": self.auto_tier_discount,
            "grand_total": self.grand_total,
            "total_savings": self.total_savings,
        }


@dataclass(frozen=True)
class BillingLine:
    """One persisted bill item. Singles and combo units stay distinguishable."""
    product_id: str
    name: str
    quantity: int
    unit_price_charged: int
    is_combo_applied: bool
    cart_line_id: str
    original_unit_price: int
    combo_id: Optional[str] = None
    combo_instance_id: Optional[str] = None

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price_charged

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_charged": self.unit_price_charged,
            "line_total": self.line_total,
            "original_unit_price": self.original_unit_price,
            "is_combo_applied": self.is_combo_applied,
            "combo_id": self.combo_id,
            "combo_instance_id": self.combo_instance_id,
            "cart_line_id": self.cart_line_id,
        }


# ══════════════════════════════════════════════════════════════
# PROPORTIONAL ALLOCATION
# ══════════════════════════════════════════════════════════════

def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def total_basis(instance: ComboInstance) -> int:
    """Sum of offer price x quantity over assigned slots."""
    return sum(
        s.assignment.offer_price * s.assignment.quantity
        for s in instance.slots
        if s.assignment is not None
    )


def compute_adjusted_unit_price(instance: ComboInstance, slot: ComboSlot) -> int:
    """
    Per-unit price of the product held by slot.

    Complete combo: the slot's share of fixed_price in proportion to its
    offer value, rounded half-up per unit. Incomplete combo: plain offer
    price (preview). Empty slot: 0.
    """
    assignment = slot.assignment
    if assignment is None:
        return 0
    if not instance.is_complete:
        return assignment.offer_price

    basis = total_basis(instance)
    if basis == 0:
        logger.warning(
            f"Degenerate allocation for combo {instance.combo_id} "
            f"({instance.instance_id}): total basis is 0; pricing slots at 0"
        )
        return 0

    share = Decimal(assignment.offer_price * assignment.quantity)
    adjusted_total = share * Decimal(instance.fixed_price) / Decimal(basis)
    return _round_half_up(adjusted_total / Decimal(assignment.quantity))


def compute_adjusted_total(instance: ComboInstance, slot: ComboSlot) -> int:
    """Adjusted unit price x units held by the slot."""
    if slot.assignment is None:
        return 0
    return compute_adjusted_unit_price(instance, slot) * slot.assignment.quantity


def compute_allocation(instance: ComboInstance) -> Tuple[SlotAllocation, ...]:
    """Allocation for every assigned slot, in slot order."""
    allocations: List[SlotAllocation] = []
    for index, slot in enumerate(instance.slots):
        if slot.assignment is None:
            continue
        allocations.append(SlotAllocation(
            slot_index=index,
            product_id=slot.assignment.product_id,
            quantity=slot.assignment.quantity,
            offer_price=slot.assignment.offer_price,
            unit_price=compute_adjusted_unit_price(instance, slot),
        ))
    return tuple(allocations)


def compute_savings(instance: ComboInstance) -> int:
    if not instance.is_complete:
        return 0
    return max(0, total_basis(instance) - instance.fixed_price)


# ══════════════════════════════════════════════════════════════
# AUTOMATIC QUANTITY TIERS
# ══════════════════════════════════════════════════════════════

def _rule_for_price(
    rules: Sequence[AutoTierRule], price: int,
) -> Optional[AutoTierRule]:
    for rule in rules:
        if rule.covers(price):
            return rule
    return None


def plan_auto_tiers(
    lines: Iterable[CartLine],
    tier_rules: Sequence[AutoTierRule],
) -> Dict[str, Optional[AutoTierOverride]]:
    """
    Work out the override for every line without touching it.

    Lines are grouped by original_unit_price and the group quantity is
    summed, consumed units included. None means "no override".
    """
    groups: Dict[int, List[CartLine]] = {}
    for line in lines:
        groups.setdefault(line.original_unit_price, []).append(line)

    plan: Dict[str, Optional[AutoTierOverride]] = {}
    for price, members in groups.items():
        override = None
        rule = _rule_for_price(tier_rules, price)
        if rule is not None:
            quantity = sum(l.quantity for l in members)
            threshold = rule.threshold_for(quantity)
            if threshold is not None:
                override = AutoTierOverride(
                    rule_id=rule.rule_id,
                    tier_price=threshold.tier_price,
                    savings=price - threshold.tier_price,
                )
        for line in members:
            plan[line.cart_line_id] = override
    return plan


def apply_auto_tiers(
    lines: Iterable[CartLine],
    tier_rules: Sequence[AutoTierRule],
) -> Dict[str, Optional[AutoTierOverride]]:
    """Apply plan_auto_tiers to the lines; cleared groups get their price back."""
    lines = list(lines)
    plan = plan_auto_tiers(lines, tier_rules)
    for line in lines:
        override = plan.get(line.cart_line_id)
        line.auto_tier_override = override
        line.unit_price = (
            override.tier_price if override is not None else line.original_unit_price
        )
    return plan


# ══════════════════════════════════════════════════════════════
# TOTALS
# ══════════════════════════════════════════════════════════════

def compute_totals(
    cart_lines: Iterable[CartLine],
    combo_instances: Iterable[ComboInstance],
) -> Totals:
    """
    singles   = sum((quantity - consumed) x unit_price)  current unit price
    combos    = sum(fixed_price) over complete instances
    tier      = sum(override.savings x quantity) over overridden lines
    grand     = max(0, singles + combos - tier)
    savings   = sum(compute_savings) over complete instances (reported only)
    """
    cart_lines = list(cart_lines)
    combo_instances = list(combo_instances)
    consumed = consumption_of(combo_instances)

    singles = sum(
        (line.quantity - consumed.get(line.cart_line_id, 0)) * line.unit_price
        for line in cart_lines
    )
    complete = [i for i in combo_instances if i.is_complete]
    combos = sum(i.fixed_price for i in complete)
    tier_discount = sum(
        line.auto_tier_override.savings * line.quantity
        for line in cart_lines
        if line.auto_tier_override is not None
    )
    return Totals(
        singles_subtotal=singles,
        combos_subtotal=combos,
        auto_tier_discount=tier_discount,
        grand_total=max(0, singles + combos - tier_discount),
        total_savings=sum(compute_savings(i) for i in complete),
    )


# ══════════════════════════════════════════════════════════════
# BILLING LINES
# ══════════════════════════════════════════════════════════════

def build_billing_lines(
    cart_lines: Iterable[CartLine],
    combo_instances: Iterable[ComboInstance],
) -> Tuple[BillingLine, ...]:
    """
    Flatten the bill: free units of every cart line as singles, then one
    line per slot of every complete combo. Units held by incomplete
    combos are not charged and not listed.
    """
    combo_instances = list(combo_instances)
    consumed = consumption_of(combo_instances)
    result: List[BillingLine] = []

    for line in cart_lines:
        free = line.quantity - consumed.get(line.cart_line_id, 0)
        if free <= 0:
            continue
        result.append(BillingLine(
            product_id=line.product_id,
            name=line.name,
            quantity=free,
            unit_price_charged=line.unit_price,
            is_combo_applied=False,
            cart_line_id=line.cart_line_id,
            original_unit_price=line.original_unit_price,
        ))

    for instance in combo_instances:
        if not instance.is_complete:
            continue
        for slot in instance.slots:
            assignment = slot.assignment
            result.append(BillingLine(
                product_id=assignment.product_id,
                name=assignment.name,
                quantity=assignment.quantity,
                unit_price_charged=compute_adjusted_unit_price(instance, slot),
                is_combo_applied=True,
                cart_line_id=assignment.cart_line_id,
                original_unit_price=assignment.offer_price,
                combo_id=instance.combo_id,
                combo_instance_id=instance.instance_id,
            ))
    return tuple(result)
