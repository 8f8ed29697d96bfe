"""
POS Combo Engine - Catalog Records
====================================
Read-only records the engine consumes from the product catalog and the
combo catalog, plus the lookup protocols the till wires in.

The engine never owns these records. It snapshots what it needs (price,
stock) at scan time; stock is an optimistic pre-check only and the
stock service rejects the final sale transactionally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

from core.commands.rejection import ReasonCode, RejectionReason
from core.time.clock import Clock, SystemClock
from core.time.temporal import ValidityWindow
from engines.combo.errors import ProductNotFound


# ══════════════════════════════════════════════════════════════
# PRODUCTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProductRecord:
    """Catalog product as resolved from a scan or search."""
    product_id: str
    name: str
    offer_price: int
    stock: int
    discounted_price: Optional[int] = None
    barcode: Optional[str] = None

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("product_id must be non-empty.")
        if not isinstance(self.offer_price, int) or self.offer_price < 0:
            raise ValueError("offer_price must be non-negative integer.")
        if self.discounted_price is not None and self.discounted_price < 0:
            raise ValueError("discounted_price cannot be negative.")
        if not isinstance(self.stock, int) or self.stock < 0:
            raise ValueError("stock must be non-negative integer.")


class CatalogLookup(Protocol):
    def resolve(self, code_or_query: str) -> ProductRecord:
        """Return the product or raise ProductNotFound."""
        ...


def product_not_found(code_or_query: str) -> ProductNotFound:
    return ProductNotFound(RejectionReason(
        code=ReasonCode.PRODUCT_NOT_FOUND,
        message=f"No product matches '{code_or_query}'.",
        policy_name="catalog_lookup",
    ))


class InMemoryCatalog:
    """
    Catalog stand-in for tests and the dev adapter.

    Exact product id or barcode wins; otherwise the first product whose
    name contains the query (case-insensitive).
    """

    def __init__(self, products: Tuple[ProductRecord, ...] = ()):
        self._products: Dict[str, ProductRecord] = {}
        for product in products:
            self.add(product)

    def add(self, product: ProductRecord) -> None:
        self._products[product.product_id] = product

    def resolve(self, code_or_query: str) -> ProductRecord:
        key = (code_or_query or "").strip()
        if not key:
            raise product_not_found(code_or_query)
        if key in self._products:
            return self._products[key]
        for product in self._products.values():
            if product.barcode and product.barcode == key:
                return product
        needle = key.lower()
        for product in self._products.values():
            if needle in product.name.lower():
                return product
        raise product_not_found(code_or_query)


# ══════════════════════════════════════════════════════════════
# COMBO DEFINITIONS
# ══════════════════════════════════════════════════════════════

class ComboStatus(Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    UPCOMING = "UPCOMING"
    EXPIRED = "EXPIRED"


VALID_COMBO_TYPES = frozenset({
    "outfit", "clearance", "festive", "family", "kids", "accessory", "custom",
})


@dataclass(frozen=True)
class ComboSlotSpec:
    """Price band for one slot. (0, 0) accepts any price."""
    min_price: int = 0
    max_price: int = 0

    def __post_init__(self):
        if self.min_price < 0 or self.max_price < 0:
            raise ValueError("Slot prices cannot be negative.")
        if not self.is_open and self.min_price > self.max_price:
            raise ValueError(
                f"Slot min_price ({self.min_price}) must be <= "
                f"max_price ({self.max_price})."
            )

    @property
    def is_open(self) -> bool:
        return self.min_price == 0 and self.max_price == 0

    def accepts(self, price: int) -> bool:
        if self.is_open:
            return True
        return self.min_price <= price <= self.max_price


@dataclass(frozen=True)
class ComboDefinition:
    """Fixed-price bundle as defined in the combo catalog."""
    combo_id: str
    name: str
    fixed_price: int
    slots: Tuple[ComboSlotSpec, ...]
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    paused: bool = False
    combo_type: str = "custom"
    sku: str = ""
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.combo_id:
            raise ValueError("combo_id must be non-empty.")
        if not isinstance(self.fixed_price, int) or self.fixed_price < 0:
            raise ValueError("fixed_price must be non-negative integer.")
        if not isinstance(self.slots, tuple) or len(self.slots) == 0:
            raise ValueError("slots must be non-empty tuple.")
        if self.combo_type not in VALID_COMBO_TYPES:
            raise ValueError(f"combo_type '{self.combo_type}' not valid.")
        if self.created_at is not None and self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware.")
        ValidityWindow(self.valid_from, self.valid_to)

    @property
    def validity(self) -> ValidityWindow:
        return ValidityWindow(self.valid_from, self.valid_to)

    def status(self, now: datetime) -> ComboStatus:
        if self.paused:
            return ComboStatus.PAUSED
        if self.validity.is_upcoming(now):
            return ComboStatus.UPCOMING
        if self.validity.is_expired(now):
            return ComboStatus.EXPIRED
        return ComboStatus.ACTIVE

    def is_active(self, now: datetime) -> bool:
        return self.status(now) is ComboStatus.ACTIVE


# ══════════════════════════════════════════════════════════════
# AUTO-TIER (QUANTITY SLAB) RULES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TierThreshold:
    min_quantity: int
    tier_price: int

    def __post_init__(self):
        if not isinstance(self.min_quantity, int) or self.min_quantity <= 0:
            raise ValueError("min_quantity must be positive integer.")
        if not isinstance(self.tier_price, int) or self.tier_price < 0:
            raise ValueError("tier_price must be non-negative integer.")


@dataclass(frozen=True)
class AutoTierRule:
    """
    Quantity slab for one price band. Thresholds are kept sorted
    ascending by min_quantity.
    """
    rule_id: str
    price_range_min: int
    price_range_max: int
    thresholds: Tuple[TierThreshold, ...]
    name: str = ""

    def __post_init__(self):
        if not self.rule_id:
            raise ValueError("rule_id must be non-empty.")
        if self.price_range_min > self.price_range_max:
            raise ValueError("price_range_min must be <= price_range_max.")
        if not self.thresholds:
            raise ValueError("thresholds must be non-empty.")
        object.__setattr__(
            self,
            "thresholds",
            tuple(sorted(self.thresholds, key=lambda t: t.min_quantity)),
        )

    def covers(self, price: int) -> bool:
        return self.price_range_min <= price <= self.price_range_max

    def threshold_for(self, quantity: int) -> Optional[TierThreshold]:
        """Highest threshold whose min_quantity <= quantity."""
        matched = None
        for threshold in self.thresholds:
            if threshold.min_quantity <= quantity:
                matched = threshold
            else:
                break
        return matched


# ══════════════════════════════════════════════════════════════
# COMBO CATALOG
# ══════════════════════════════════════════════════════════════

class ComboCatalog(Protocol):
    def get(self, combo_id: str) -> Optional[ComboDefinition]:
        ...

    def list_active_combos(self) -> List[ComboDefinition]:
        ...

    def list_tier_rules(self) -> List[AutoTierRule]:
        ...


@dataclass
class InMemoryComboCatalog:
    """Combo catalog stand-in. Active combos are listed newest first."""
    definitions: List[ComboDefinition] = field(default_factory=list)
    tier_rules: List[AutoTierRule] = field(default_factory=list)
    clock: Clock = field(default_factory=SystemClock)

    def add_definition(self, definition: ComboDefinition) -> None:
        self.definitions.append(definition)

    def add_tier_rule(self, rule: AutoTierRule) -> None:
        self.tier_rules.append(rule)

    def get(self, combo_id: str) -> Optional[ComboDefinition]:
        for definition in self.definitions:
            if definition.combo_id == combo_id:
                return definition
        return None

    def list_active_combos(self) -> List[ComboDefinition]:
        now = self.clock.now_utc()
        active = [d for d in reversed(self.definitions) if d.is_active(now)]
        # stable: undated definitions keep newest-inserted-first order
        return sorted(
            active,
            key=lambda d: d.created_at.timestamp() if d.created_at else 0.0,
            reverse=True,
        )

    def list_tier_rules(self) -> List[AutoTierRule]:
        return list(self.tier_rules)
