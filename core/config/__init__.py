"""
POS Core Config - Public API
==============================
Admin-configurable rules (GST slabs, loyalty bands, point value).
"""

from core.config.rules import (
    ConfigStore,
    InMemoryConfigStore,
    PointRule,
    PosEngineConfig,
    TaxBreakdown,
    TaxRule,
    default_point_rules,
    default_tax_rules,
    points_for_amount,
    select_tax_rule,
)

__all__ = [
    "ConfigStore",
    "InMemoryConfigStore",
    "PointRule",
    "PosEngineConfig",
    "TaxBreakdown",
    "TaxRule",
    "default_point_rules",
    "default_tax_rules",
    "points_for_amount",
    "select_tax_rule",
]
