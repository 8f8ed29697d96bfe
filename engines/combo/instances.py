"""
POS Combo Engine - Combo Instance Manager
===========================================
Owns the combo instances placed on one open bill.

RULES (NON-NEGOTIABLE):
- Instances are kept in insertion order; matching scans them newest first
- One slot holds exactly one physical unit of one cart line
- consumed_quantity(line) is derived from open instances, never stored
- consumed_quantity(line) <= line.quantity at all times
- close_combo returns every held unit to the singles pool, then the
  instance is Removed; a Removed instance is never reopened

State machine:
    OPEN_EMPTY -> OPEN_PARTIAL -> OPEN_COMPLETE -> REMOVED
    (close_combo moves any open state straight to REMOVED)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from core.commands.rejection import ReasonCode, RejectionReason
from core.time.clock import Clock, SystemClock
from engines.combo.cart import CartLedger
from engines.combo.catalog import ComboDefinition, ComboSlotSpec
from engines.combo.errors import (
    ComboInstanceNotFound,
    ConservationViolation,
    error_for,
)
from engines.combo.policies import combo_must_be_active_policy

logger = logging.getLogger("pos.combos")


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class ComboState(Enum):
    OPEN_EMPTY = "OPEN_EMPTY"
    OPEN_PARTIAL = "OPEN_PARTIAL"
    OPEN_COMPLETE = "OPEN_COMPLETE"
    REMOVED = "REMOVED"


# ══════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SlotAssignment:
    """One unit of a cart line held by a slot, with its offer price."""
    product_id: str
    cart_line_id: str
    offer_price: int
    name: str = ""
    quantity: int = 1


@dataclass
class ComboSlot:
    spec: ComboSlotSpec
    assignment: Optional[SlotAssignment] = None

    @property
    def min_price(self) -> int:
        return self.spec.min_price

    @property
    def max_price(self) -> int:
        return self.spec.max_price

    @property
    def is_filled(self) -> bool:
        return self.assignment is not None

    def accepts(self, price: int) -> bool:
        return not self.is_filled and self.spec.accepts(price)


@dataclass
class ComboInstance:
    """A combo placed on the bill."""
    instance_id: str
    combo_id: str
    name: str
    fixed_price: int
    slots: List[ComboSlot] = field(default_factory=list)
    removed: bool = False

    @property
    def filled_count(self) -> int:
        return sum(1 for s in self.slots if s.is_filled)

    @property
    def is_complete(self) -> bool:
        return all(s.is_filled for s in self.slots)

    @property
    def state(self) -> ComboState:
        if self.removed:
            return ComboState.REMOVED
        filled = self.filled_count
        if filled == 0:
            return ComboState.OPEN_EMPTY
        if filled < len(self.slots):
            return ComboState.OPEN_PARTIAL
        return ComboState.OPEN_COMPLETE

    def first_accepting_slot(self, price: int) -> Optional[int]:
        for index, slot in enumerate(self.slots):
            if slot.accepts(price):
                return index
        return None


def consumption_of(instances: Iterable[ComboInstance]) -> Dict[str, int]:
    """Units held by combo slots, per cart line id."""
    consumed: Dict[str, int] = {}
    for instance in instances:
        for slot in instance.slots:
            if slot.assignment is None:
                continue
            lid = slot.assignment.cart_line_id
            consumed[lid] = consumed.get(lid, 0) + slot.assignment.quantity
    return consumed


@dataclass(frozen=True)
class RestoredUnit:
    """Where a unit went when its combo was closed."""
    product_id: str
    from_cart_line_id: str
    to_cart_line_id: str
    quantity: int


@dataclass(frozen=True)
class ComboCloseResult:
    instance_id: str
    combo_id: str
    restored: Tuple[RestoredUnit, ...]


# ══════════════════════════════════════════════════════════════
# MANAGER
# ══════════════════════════════════════════════════════════════

class ComboInstanceManager:
    """Open combo instances of a single bill."""

    def __init__(self, clock: Optional[Clock] = None, id_prefix: str = "C"):
        self._clock = clock or SystemClock()
        self._instances: Dict[str, ComboInstance] = {}
        self._id_prefix = id_prefix
        self._instance_sequence: int = 0

    # ── Queries ───────────────────────────────────────────────

    def instances(self) -> List[ComboInstance]:
        """Open instances in insertion order."""
        return list(self._instances.values())

    def newest_first(self) -> List[ComboInstance]:
        return list(reversed(self._instances.values()))

    def get(self, instance_id: str) -> Optional[ComboInstance]:
        return self._instances.get(instance_id)

    def require(self, instance_id: str) -> ComboInstance:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise ComboInstanceNotFound(RejectionReason(
                code=ReasonCode.COMBO_INSTANCE_NOT_FOUND,
                message=f"Combo instance '{instance_id}' is not on this bill.",
                policy_name="combo_instance_lookup",
            ))
        return instance

    def consumed_quantity(self, cart_line_id: str) -> int:
        return self.consumption_map().get(cart_line_id, 0)

    def consumption_map(self) -> Dict[str, int]:
        return consumption_of(self._instances.values())

    def find_accepting_slot(
        self, price: int,
    ) -> Optional[Tuple[ComboInstance, int]]:
        """Newest instance first, first accepting slot in array order."""
        for instance in self.newest_first():
            index = instance.first_accepting_slot(price)
            if index is not None:
                return instance, index
        return None

    def assert_conservation(self, ledger: CartLedger) -> None:
        for lid, consumed in self.consumption_map().items():
            line = ledger.get(lid)
            quantity = line.quantity if line is not None else 0
            if consumed > quantity:
                raise ConservationViolation(lid, quantity, consumed)

    # ── Lifecycle ─────────────────────────────────────────────

    def open_combo(self, definition: ComboDefinition) -> ComboInstance:
        rejection = combo_must_be_active_policy(definition, self._clock.now_utc())
        if rejection is not None:
            raise error_for(rejection)

        self._instance_sequence += 1
        instance = ComboInstance(
            instance_id=f"{self._id_prefix}{self._instance_sequence:04d}",
            combo_id=definition.combo_id,
            name=definition.name,
            fixed_price=definition.fixed_price,
            slots=[ComboSlot(spec=spec) for spec in definition.slots],
        )
        self._instances[instance.instance_id] = instance
        logger.info(
            f"Combo {definition.combo_id} opened as {instance.instance_id} "
            f"({len(instance.slots)} slots, fixed price {instance.fixed_price})"
        )
        return instance

    def assign(
        self,
        instance_id: str,
        slot_index: int,
        assignment: SlotAssignment,
    ) -> ComboInstance:
        instance = self.require(instance_id)
        slot = instance.slots[slot_index]
        if slot.is_filled:
            raise ValueError(
                f"Slot {slot_index} of {instance_id} is already assigned."
            )
        slot.assignment = assignment
        logger.debug(
            f"Slot {slot_index} of {instance_id} <- {assignment.product_id} "
            f"(line {assignment.cart_line_id}); state {instance.state.value}"
        )
        return instance

    def close_combo(
        self, instance_id: str, ledger: CartLedger,
    ) -> ComboCloseResult:
        """
        Remove an instance and hand its units back to singles.

        A unit whose line still has other free units simply becomes free
        again. A unit whose line was fully consumed moves to an existing
        singles line of the product, or to a new line at the product's
        offer price. A unit whose line vanished is re-added the same way.
        Cart quantity of the product is unchanged except in that last case.
        """
        instance = self.require(instance_id)
        restored: List[RestoredUnit] = []

        for slot in instance.slots:
            assignment = slot.assignment
            if assignment is None:
                continue
            # detach first so the remaining consumption excludes this unit
            slot.assignment = None
            restored.append(self._restore_unit(assignment, ledger))

        instance.removed = True
        del self._instances[instance_id]
        self.assert_conservation(ledger)

        logger.info(
            f"Combo {instance.combo_id} ({instance_id}) removed; "
            f"{len(restored)} unit(s) returned to singles"
        )
        return ComboCloseResult(
            instance_id=instance_id,
            combo_id=instance.combo_id,
            restored=tuple(restored),
        )

    def clear(self) -> None:
        for instance in self._instances.values():
            instance.removed = True
        self._instances.clear()

    # ── Internals ─────────────────────────────────────────────

    def _free_quantity(self, ledger: CartLedger, cart_line_id: str) -> int:
        line = ledger.get(cart_line_id)
        if line is None:
            return 0
        return line.quantity - self.consumed_quantity(cart_line_id)

    def _singles_line_for(
        self, ledger: CartLedger, product_id: str, exclude: str,
    ) -> Optional[str]:
        for line in ledger.lines_for_product(product_id):
            if line.cart_line_id == exclude:
                continue
            if self._free_quantity(ledger, line.cart_line_id) > 0:
                return line.cart_line_id
        return None

    def _restore_unit(
        self, assignment: SlotAssignment, ledger: CartLedger,
    ) -> RestoredUnit:
        origin_id = assignment.cart_line_id
        qty = assignment.quantity
        origin = ledger.get(origin_id)

        if origin is not None:
            if self._free_quantity(ledger, origin_id) > qty:
                # origin was already a singles line; the unit rejoins it
                return RestoredUnit(assignment.product_id, origin_id, origin_id, qty)
            # origin was fully consumed: move the unit out of it
            ledger.set_quantity(origin_id, origin.quantity - qty)

        target_id = self._singles_line_for(ledger, assignment.product_id, origin_id)
        if target_id is None:
            target_id = self._first_other_line(ledger, assignment.product_id)
        if target_id is not None:
            ledger.increment(target_id, qty)
        else:
            target = ledger.add_line(
                product_id=assignment.product_id,
                name=assignment.name,
                unit_price=assignment.offer_price,
                quantity=qty,
                stock=origin.stock if origin is not None else None,
            )
            target_id = target.cart_line_id
        return RestoredUnit(assignment.product_id, origin_id, target_id, qty)

    @staticmethod
    def _first_other_line(ledger: CartLedger, product_id: str) -> Optional[str]:
        line = ledger.first_line_for_product(product_id)
        return line.cart_line_id if line is not None else None
