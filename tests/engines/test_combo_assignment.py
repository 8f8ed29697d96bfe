"""
POS Combo Engine - Assignment Tests
======================================
Where a scanned unit lands: combo slot or singles line.
"""

from datetime import datetime, timezone

import pytest

from core.time.clock import FixedClock
from engines.combo.assignment import candidate_price, resolve_and_assign
from engines.combo.cart import CartLedger
from engines.combo.catalog import ComboDefinition, ComboSlotSpec, ProductRecord
from engines.combo.errors import InsufficientStock
from engines.combo.instances import ComboInstanceManager

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

TEE = ProductRecord("TEE", "Cotton Tee", offer_price=400, stock=10)
JEANS = ProductRecord("JEANS", "Slim Jeans", offer_price=600, stock=10)
SHIRT = ProductRecord("SHIRT", "Linen Shirt", offer_price=900, stock=10, discounted_price=450)

PAIR = ComboDefinition(
    combo_id="PAIR", name="Pair", fixed_price=800,
    slots=(ComboSlotSpec(0, 500), ComboSlotSpec(501, 1000)),
)
ANY3 = ComboDefinition(
    combo_id="ANY3", name="Any three", fixed_price=999,
    slots=(ComboSlotSpec(), ComboSlotSpec(), ComboSlotSpec()),
)


def _bill():
    return CartLedger(), ComboInstanceManager(clock=FixedClock(NOW))


def _assert_conserved(ledger, manager):
    for line in ledger.lines():
        assert 0 <= manager.consumed_quantity(line.cart_line_id) <= line.quantity


# ══════════════════════════════════════════════════════════════
# CANDIDATE PRICE
# ══════════════════════════════════════════════════════════════

class TestCandidatePrice:
    def test_discounted_price_wins(self):
        assert candidate_price(SHIRT) == 450

    def test_falls_back_to_offer_price(self):
        assert candidate_price(TEE) == 400

    def test_zero_discount_counts_as_absent(self):
        p = ProductRecord("P", "P", offer_price=300, stock=1, discounted_price=0)
        assert candidate_price(p) == 300

    def test_no_price_is_zero(self):
        p = ProductRecord("P", "P", offer_price=0, stock=1)
        assert candidate_price(p) == 0


# ══════════════════════════════════════════════════════════════
# SINGLES
# ══════════════════════════════════════════════════════════════

class TestSinglesAssignment:
    def test_no_combos_creates_singles_line(self):
        ledger, manager = _bill()
        result = resolve_and_assign(TEE, 2, ledger, manager)

        assert not result.filled_slot
        assert result.singles_quantity_added == 2
        line = ledger.get(result.singles_cart_line_id)
        assert line.quantity == 2
        assert line.unit_price == 400
        assert line.original_unit_price == 400

    def test_repeat_scan_increments_same_line(self):
        ledger, manager = _bill()
        first = resolve_and_assign(TEE, 1, ledger, manager)
        second = resolve_and_assign(TEE, 1, ledger, manager)
        assert first.singles_cart_line_id == second.singles_cart_line_id
        assert len(ledger) == 1
        assert ledger.product_quantity("TEE") == 2
        assert second.created_line_ids == ()

    def test_no_accepting_slot_goes_to_singles(self):
        ledger, manager = _bill()
        manager.open_combo(PAIR)
        expensive = ProductRecord("COAT", "Coat", offer_price=1500, stock=3)
        result = resolve_and_assign(expensive, 1, ledger, manager)
        assert not result.filled_slot
        assert ledger.product_quantity("COAT") == 1

    def test_singles_line_priced_at_offer_price(self):
        ledger, manager = _bill()
        result = resolve_and_assign(SHIRT, 1, ledger, manager)
        assert ledger.get(result.singles_cart_line_id).unit_price == 900

    def test_rejects_non_positive_quantity(self):
        ledger, manager = _bill()
        with pytest.raises(ValueError, match="positive"):
            resolve_and_assign(TEE, 0, ledger, manager)


# ══════════════════════════════════════════════════════════════
# SLOTS
# ══════════════════════════════════════════════════════════════

class TestSlotAssignment:
    def test_fills_slot_matching_price(self):
        ledger, manager = _bill()
        instance = manager.open_combo(PAIR)

        result = resolve_and_assign(JEANS, 1, ledger, manager)

        assert result.combo_instance_id == instance.instance_id
        assert result.slot_index == 1
        assert result.singles_quantity_added == 0
        assignment = instance.slots[1].assignment
        assert assignment.product_id == "JEANS"
        assert assignment.quantity == 1
        assert assignment.offer_price == 600
        assert ledger.get(result.slot_cart_line_id).quantity == 1
        assert manager.consumed_quantity(result.slot_cart_line_id) == 1

    def test_discounted_price_decides_acceptance(self):
        ledger, manager = _bill()
        instance = manager.open_combo(PAIR)
        result = resolve_and_assign(SHIRT, 1, ledger, manager)
        # 450 fits [0, 500] although the offer price is 900
        assert result.slot_index == 0
        assert instance.slots[0].assignment.offer_price == 900

    def test_only_one_slot_per_scan(self):
        ledger, manager = _bill()
        instance = manager.open_combo(ANY3)

        result = resolve_and_assign(TEE, 3, ledger, manager)

        assert instance.filled_count == 1
        assert result.singles_quantity_added == 2
        assert ledger.product_quantity("TEE") == 3
        assert manager.consumed_quantity(result.slot_cart_line_id) == 1
        _assert_conserved(ledger, manager)

    def test_newest_combo_is_filled_first(self):
        ledger, manager = _bill()
        older = manager.open_combo(ANY3)
        newer = manager.open_combo(ANY3)
        result = resolve_and_assign(TEE, 1, ledger, manager)
        assert result.combo_instance_id == newer.instance_id
        assert older.filled_count == 0

    def test_free_unit_on_bill_is_pulled_into_slot(self):
        ledger, manager = _bill()
        resolve_and_assign(TEE, 1, ledger, manager)
        instance = manager.open_combo(ANY3)

        result = resolve_and_assign(TEE, 1, ledger, manager)

        assert result.created_line_ids == ()
        assert ledger.product_quantity("TEE") == 1
        assert instance.slots[0].assignment.cart_line_id == result.slot_cart_line_id
        _assert_conserved(ledger, manager)

    def test_new_line_when_every_unit_is_consumed(self):
        ledger, manager = _bill()
        manager.open_combo(ANY3)
        first = resolve_and_assign(TEE, 1, ledger, manager)
        second = resolve_and_assign(TEE, 1, ledger, manager)

        assert second.slot_cart_line_id != first.slot_cart_line_id
        assert second.created_line_ids == (second.slot_cart_line_id,)
        assert ledger.product_quantity("TEE") == 2
        _assert_conserved(ledger, manager)

    def test_completes_pair(self):
        ledger, manager = _bill()
        instance = manager.open_combo(PAIR)
        resolve_and_assign(JEANS, 1, ledger, manager)
        resolve_and_assign(TEE, 1, ledger, manager)
        assert instance.is_complete
        assert [s.assignment.product_id for s in instance.slots] == ["TEE", "JEANS"]


# ══════════════════════════════════════════════════════════════
# STOCK (ALL-OR-NOTHING)
# ══════════════════════════════════════════════════════════════

class TestStock:
    def test_request_above_stock_leaves_cart_unchanged(self):
        ledger, manager = _bill()
        limited = ProductRecord("LTD", "Limited", offer_price=300, stock=2)
        with pytest.raises(InsufficientStock, match="Only 2"):
            resolve_and_assign(limited, 3, ledger, manager)
        assert len(ledger) == 0

    def test_cart_quantity_counts_against_stock(self):
        ledger, manager = _bill()
        limited = ProductRecord("LTD", "Limited", offer_price=300, stock=2)
        resolve_and_assign(limited, 2, ledger, manager)
        snapshot = ledger.snapshot()

        with pytest.raises(InsufficientStock):
            resolve_and_assign(limited, 1, ledger, manager)
        assert ledger.snapshot() == snapshot

    def test_failed_scan_does_not_fill_slot(self):
        ledger, manager = _bill()
        instance = manager.open_combo(ANY3)
        limited = ProductRecord("LTD", "Limited", offer_price=300, stock=2)
        resolve_and_assign(limited, 2, ledger, manager)
        assert instance.filled_count == 1

        with pytest.raises(InsufficientStock):
            resolve_and_assign(limited, 2, ledger, manager)
        assert instance.filled_count == 1
        assert ledger.product_quantity("LTD") == 2

    def test_slot_reusing_free_unit_needs_no_extra_stock(self):
        ledger, manager = _bill()
        limited = ProductRecord("LTD", "Limited", offer_price=300, stock=1)
        resolve_and_assign(limited, 1, ledger, manager)
        instance = manager.open_combo(ANY3)

        resolve_and_assign(limited, 1, ledger, manager)

        assert instance.filled_count == 1
        assert ledger.product_quantity("LTD") == 1
