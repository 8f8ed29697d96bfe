"""
POS Core Config - Admin-Configurable Rules
============================================
Tax slabs, loyalty point bands and the point value come from
admin-configurable data, not from engine source code. The defaults
below only seed a fresh store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Tuple


# ══════════════════════════════════════════════════════════════
# TAX RULE (GST slab on tax-inclusive prices)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TaxBreakdown:
    """Reverse-calculated tax for one tax-inclusive amount."""

    rate_percent: int
    base_amount: float
    cgst: float
    sgst: float
    total_tax: float


@dataclass(frozen=True)
class TaxRule:
    """
    GST slab keyed on unit price.

    The rule applies to unit prices strictly above price_above. Prices
    are tax-inclusive, so tax is extracted, never added.
    """

    tax_type: str  # GST
    rate: float  # 0.05 means 5%
    price_above: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.rate <= 1:
            raise ValueError(f"Tax rate must be between 0 and 1, got {self.rate}.")
        if self.price_above < 0:
            raise ValueError("price_above cannot be negative.")

    @property
    def rate_percent(self) -> int:
        return int(round(self.rate * 100))

    def compute_inclusive_tax(self, amount: float) -> TaxBreakdown:
        """Split a tax-inclusive amount into base and CGST/SGST halves."""
        base = amount / (1 + self.rate)
        total_tax = amount - base
        half = total_tax / 2
        return TaxBreakdown(
            rate_percent=self.rate_percent,
            base_amount=round(base, 2),
            cgst=round(half, 2),
            sgst=round(half, 2),
            total_tax=round(total_tax, 2),
        )


def select_tax_rule(
    rules: Iterable[TaxRule], unit_price: int,
) -> Optional[TaxRule]:
    """
    Pick the slab with the highest price_above still below unit_price.
    Falls back to the lowest slab so zero-priced lines are still taxed
    at the base rate.
    """
    ordered = sorted(rules, key=lambda r: r.price_above)
    if not ordered:
        return None
    chosen = ordered[0]
    for rule in ordered:
        if unit_price > rule.price_above:
            chosen = rule
    return chosen


# ══════════════════════════════════════════════════════════════
# LOYALTY POINT RULE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PointRule:
    """Amount band [min_amount, max_amount] earns a flat number of points."""

    min_amount: int
    max_amount: int
    points: int

    def __post_init__(self) -> None:
        if self.min_amount < 0 or self.max_amount < 0:
            raise ValueError("Point rule amounts cannot be negative.")
        if self.min_amount > self.max_amount:
            raise ValueError(
                f"min_amount ({self.min_amount}) must be <= "
                f"max_amount ({self.max_amount})."
            )
        if self.points < 0:
            raise ValueError("points cannot be negative.")

    def matches(self, amount: int) -> bool:
        return self.min_amount <= amount <= self.max_amount


def points_for_amount(rules: Iterable[PointRule], amount: int) -> int:
    """First band (ascending min_amount) containing amount; none -> 0."""
    for rule in sorted(rules, key=lambda r: r.min_amount):
        if rule.matches(amount):
            return rule.points
    return 0


# ══════════════════════════════════════════════════════════════
# ENGINE CONFIG
# ══════════════════════════════════════════════════════════════

def default_tax_rules() -> Tuple[TaxRule, ...]:
    return (
        TaxRule(tax_type="GST", rate=0.05, price_above=0),
        TaxRule(tax_type="GST", rate=0.12, price_above=2500),
    )


def default_point_rules() -> Tuple[PointRule, ...]:
    return (
        PointRule(60, 200, 100),
        PointRule(210, 350, 200),
        PointRule(360, 500, 300),
        PointRule(510, 700, 400),
        PointRule(710, 1100, 500),
        PointRule(1110, 999999, 600),
    )


@dataclass(frozen=True)
class PosEngineConfig:
    """Per-store pricing configuration injected into every bill session."""

    currency: str = "INR"
    point_value: int = 1  # currency units per redeemed point
    tax_rules: Tuple[TaxRule, ...] = field(default_factory=default_tax_rules)
    point_rules: Tuple[PointRule, ...] = field(default_factory=default_point_rules)

    def __post_init__(self) -> None:
        if not self.currency or len(self.currency) != 3:
            raise ValueError("currency must be 3-letter ISO 4217 code.")
        if not isinstance(self.point_value, int) or self.point_value <= 0:
            raise ValueError("point_value must be positive integer.")


# ══════════════════════════════════════════════════════════════
# CONFIG STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    """Admin-configured rule storage (database, file or memory)."""

    def get_engine_config(self) -> PosEngineConfig:
        ...  # pragma: no cover


class InMemoryConfigStore:
    """Simple in-memory config store for tests and adapter wiring."""

    def __init__(self, config: Optional[PosEngineConfig] = None) -> None:
        self._config = config or PosEngineConfig()

    def get_engine_config(self) -> PosEngineConfig:
        return self._config

    def set_engine_config(self, config: PosEngineConfig) -> None:
        self._config = config
