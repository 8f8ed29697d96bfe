"""
POS Django Adapter Wiring
=========================
Builds the bill-session dependencies for local/staging live runs.

This module is adapter-only glue:
- no engine contract changes
- in-memory catalog, wallet and billing for smoke usage
- one BillSession per till id, created on first use
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from django.conf import settings

from core.config.rules import InMemoryConfigStore, PosEngineConfig
from core.time.clock import Clock, SystemClock
from engines.combo.catalog import (
    AutoTierRule,
    ComboDefinition,
    ComboSlotSpec,
    InMemoryCatalog,
    InMemoryComboCatalog,
    ProductRecord,
    TierThreshold,
)
from engines.combo.loyalty import PointRuleLoyaltyAdapter
from engines.combo.services import BillSession, InMemoryBillingGateway


DEFAULT_TILL_ID = "till-1"

DEV_CUSTOMER_PHONE = "9000000001"

_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: "PosDependencies | None" = None


@dataclass
class PosDependencies:
    catalog: InMemoryCatalog
    combo_catalog: InMemoryComboCatalog
    loyalty: PointRuleLoyaltyAdapter
    billing_gateway: InMemoryBillingGateway
    config_store: InMemoryConfigStore
    clock: Clock
    sessions: dict[str, BillSession] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def session_for(self, till_id: str) -> BillSession:
        with self._lock:
            session = self.sessions.get(till_id)
            if session is None:
                session = BillSession(
                    catalog=self.catalog,
                    combo_catalog=self.combo_catalog,
                    loyalty=self.loyalty,
                    billing_gateway=self.billing_gateway,
                    config_store=self.config_store,
                    clock=self.clock,
                    bill_prefix=f"{till_id.upper()}-BILL",
                )
                self.sessions[till_id] = session
            return session


def _build_catalog() -> InMemoryCatalog:
    return InMemoryCatalog((
        ProductRecord("SKU-TEE", "Cotton Tee", offer_price=400, stock=50, barcode="8900000000011"),
        ProductRecord("SKU-JEANS", "Slim Jeans", offer_price=600, stock=30, barcode="8900000000028"),
        ProductRecord(
            "SKU-SHIRT", "Linen Shirt", offer_price=900, stock=20,
            discounted_price=850, barcode="8900000000035",
        ),
        ProductRecord("SKU-SOCKS", "Ankle Socks", offer_price=60, stock=200, barcode="8900000000042"),
        ProductRecord("SKU-KURTA", "Festive Kurta", offer_price=2800, stock=10, barcode="8900000000059"),
    ))


def _build_combo_catalog(clock: Clock) -> InMemoryComboCatalog:
    created = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return InMemoryComboCatalog(
        definitions=[
            ComboDefinition(
                combo_id="COMBO-OUTFIT",
                name="Outfit Pair",
                fixed_price=800,
                slots=(ComboSlotSpec(0, 500), ComboSlotSpec(501, 1000)),
                combo_type="outfit",
                sku="CMB-OUTFIT",
                created_at=created,
            ),
            ComboDefinition(
                combo_id="COMBO-ANY3",
                name="Any 3 for 999",
                fixed_price=999,
                slots=(ComboSlotSpec(), ComboSlotSpec(), ComboSlotSpec()),
                combo_type="custom",
                sku="CMB-ANY3",
                created_at=created,
            ),
        ],
        tier_rules=[
            AutoTierRule(
                rule_id="SLAB-SOCKS",
                name="Socks slab",
                price_range_min=50,
                price_range_max=100,
                thresholds=(TierThreshold(5, 55), TierThreshold(10, 50)),
            ),
        ],
        clock=clock,
    )


def _build_config_store() -> InMemoryConfigStore:
    point_value = int(getattr(settings, "POS_POINT_VALUE", 1))
    currency = getattr(settings, "POS_CURRENCY", "INR")
    return InMemoryConfigStore(
        PosEngineConfig(currency=currency, point_value=point_value)
    )


def _create_dependencies() -> PosDependencies:
    clock = SystemClock()
    config_store = _build_config_store()
    return PosDependencies(
        catalog=_build_catalog(),
        combo_catalog=_build_combo_catalog(clock),
        loyalty=PointRuleLoyaltyAdapter(
            point_rules=config_store.get_engine_config().point_rules,
            balances={DEV_CUSTOMER_PHONE: 500},
        ),
        billing_gateway=InMemoryBillingGateway(),
        config_store=config_store,
        clock=clock,
    )


def build_dependencies() -> PosDependencies:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _create_dependencies()
        return _DEPENDENCIES


def reset_dependencies() -> None:
    """Drop the singleton so the next request rebuilds it (tests)."""
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        _DEPENDENCIES = None
