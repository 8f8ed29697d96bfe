"""
POS Combo Engine - Loyalty Adapter Tests
===========================================
"""

import pytest

from core.config.rules import PointRule
from engines.combo.errors import InsufficientPoints
from engines.combo.loyalty import PointRuleLoyaltyAdapter, PointsItem


class TestCalculatePoints:
    def test_points_per_product_band(self):
        adapter = PointRuleLoyaltyAdapter()
        estimate = adapter.calculate_points([
            PointsItem("TEE", price=400, quantity=1, name="Tee"),     # 400 -> 300
            PointsItem("SOCK", price=60, quantity=2, name="Sock"),    # 120 -> 100
            PointsItem("PIN", price=20, quantity=1, name="Pin"),      # 20 -> 0
        ])
        assert [p.points for p in estimate.per_product] == [300, 100, 0]
        assert estimate.total == 400
        assert estimate.per_product[1].total_price == 120

    def test_custom_rules(self):
        adapter = PointRuleLoyaltyAdapter(point_rules=[PointRule(0, 1000, 7)])
        assert adapter.calculate_points([PointsItem("A", 10, 1)]).total == 7
        assert adapter.points_for_bill(1001) == 0

    def test_empty_items(self):
        estimate = PointRuleLoyaltyAdapter().calculate_points([])
        assert estimate.total == 0
        assert estimate.to_dict() == {"per_product": [], "total": 0}


class TestWallet:
    def test_earn_credits_balance(self):
        adapter = PointRuleLoyaltyAdapter()
        tx = adapter.apply_earn("9000000001", 300, "BILL-0001", 1200)
        assert tx.transaction_type == "EARNED"
        assert tx.balance_after == 300
        assert adapter.get_balance("9000000001") == 300

    def test_redeem_debits_balance(self):
        adapter = PointRuleLoyaltyAdapter(balances={"9000000001": 500})
        tx = adapter.apply_redemption("9000000001", 200, "BILL-0001", 1200)
        assert tx.transaction_type == "REDEEMED"
        assert tx.points == 200
        assert adapter.get_balance("9000000001") == 300

    def test_redeem_more_than_balance_rejected(self):
        adapter = PointRuleLoyaltyAdapter(balances={"9000000001": 50})
        with pytest.raises(InsufficientPoints, match="has 50 points"):
            adapter.apply_redemption("9000000001", 100, "BILL-0001", 1200)
        assert adapter.get_balance("9000000001") == 50
        assert adapter.transactions == ()

    def test_unknown_phone_has_zero_balance(self):
        assert PointRuleLoyaltyAdapter().get_balance("9999999999") == 0

    def test_transactions_recorded_in_order(self):
        adapter = PointRuleLoyaltyAdapter(balances={"p": 100})
        adapter.apply_redemption("p", 100, "B1", 500)
        adapter.apply_earn("p", 300, "B1", 500)
        assert [t.transaction_type for t in adapter.transactions] == ["REDEEMED", "EARNED"]
        assert adapter.transactions[-1].balance_after == 300

    def test_negative_earn_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            PointRuleLoyaltyAdapter().apply_earn("p", -1, "B1", 0)
