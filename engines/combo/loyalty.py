"""
POS Combo Engine - Loyalty Adapter
====================================
Points are estimated per billed item from amount bands and settled
against a phone-keyed wallet at finalization. The engine only calls
this adapter; wallet storage belongs to the loyalty service.

PointRuleLoyaltyAdapter is the in-process implementation used by the
dev adapter and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from core.config.rules import PointRule, default_point_rules, points_for_amount
from engines.combo.errors import error_for
from engines.combo.policies import sufficient_points_policy

logger = logging.getLogger("pos.loyalty")


@dataclass(frozen=True)
class PointsItem:
    product_id: str
    price: int
    quantity: int
    name: str = ""


@dataclass(frozen=True)
class ProductPoints:
    product_id: str
    name: str
    price: int
    quantity: int
    total_price: int
    points: int


@dataclass(frozen=True)
class PointsEstimate:
    per_product: Tuple[ProductPoints, ...]
    total: int

    def to_dict(self) -> dict:
        return {
            "per_product": [
                {
                    "product_id": p.product_id,
                    "name": p.name,
                    "price": p.price,
                    "quantity": p.quantity,
                    "total_price": p.total_price,
                    "points": p.points,
                }
                for p in self.per_product
            ],
            "total": self.total,
        }


@dataclass(frozen=True)
class WalletTransaction:
    phone: str
    transaction_type: str  # EARNED | REDEEMED
    points: int
    bill_ref: str
    bill_total: int
    balance_after: int


class LoyaltyAdapter(Protocol):
    def calculate_points(self, items: Sequence[PointsItem]) -> PointsEstimate:
        ...

    def get_balance(self, phone: str) -> int:
        ...

    def apply_redemption(
        self, phone: str, points: int, bill_ref: str, bill_total: int,
    ) -> WalletTransaction:
        ...

    def apply_earn(
        self, phone: str, points: int, bill_ref: str, bill_total: int,
    ) -> WalletTransaction:
        ...


class PointRuleLoyaltyAdapter:
    """Band-based point estimates with an in-memory wallet ledger."""

    def __init__(
        self,
        point_rules: Optional[Iterable[PointRule]] = None,
        balances: Optional[Dict[str, int]] = None,
    ):
        self._rules: Tuple[PointRule, ...] = tuple(
            point_rules if point_rules is not None else default_point_rules()
        )
        self._balances: Dict[str, int] = dict(balances or {})
        self._transactions: List[WalletTransaction] = []

    def calculate_points(self, items: Sequence[PointsItem]) -> PointsEstimate:
        per_product = []
        for item in items:
            total_price = item.price * item.quantity
            per_product.append(ProductPoints(
                product_id=item.product_id,
                name=item.name,
                price=item.price,
                quantity=item.quantity,
                total_price=total_price,
                points=points_for_amount(self._rules, total_price),
            ))
        return PointsEstimate(
            per_product=tuple(per_product),
            total=sum(p.points for p in per_product),
        )

    def points_for_bill(self, bill_amount: int) -> int:
        return points_for_amount(self._rules, bill_amount)

    def get_balance(self, phone: str) -> int:
        return self._balances.get(phone, 0)

    def apply_redemption(
        self, phone: str, points: int, bill_ref: str, bill_total: int,
    ) -> WalletTransaction:
        rejection = sufficient_points_policy(phone, self.get_balance(phone), points)
        if rejection is not None:
            raise error_for(rejection)
        return self._record(phone, "REDEEMED", -points, points, bill_ref, bill_total)

    def apply_earn(
        self, phone: str, points: int, bill_ref: str, bill_total: int,
    ) -> WalletTransaction:
        return self._record(phone, "EARNED", points, points, bill_ref, bill_total)

    @property
    def transactions(self) -> Tuple[WalletTransaction, ...]:
        return tuple(self._transactions)

    def _record(
        self,
        phone: str,
        transaction_type: str,
        delta: int,
        points: int,
        bill_ref: str,
        bill_total: int,
    ) -> WalletTransaction:
        if points < 0:
            raise ValueError("points cannot be negative.")
        self._balances[phone] = self.get_balance(phone) + delta
        transaction = WalletTransaction(
            phone=phone,
            transaction_type=transaction_type,
            points=points,
            bill_ref=bill_ref,
            bill_total=bill_total,
            balance_after=self._balances[phone],
        )
        self._transactions.append(transaction)
        logger.info(
            f"Wallet {phone} {transaction_type} {points} on {bill_ref}; "
            f"balance {transaction.balance_after}"
        )
        return transaction
