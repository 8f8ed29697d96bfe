"""
POS Django HTTP adapter.
Thin framework glue over the combo engine's bill sessions.
"""

from adapters.django_api.wiring import (
    DEFAULT_TILL_ID,
    DEV_CUSTOMER_PHONE,
    PosDependencies,
    build_dependencies,
    reset_dependencies,
)

__all__ = [
    "DEFAULT_TILL_ID",
    "DEV_CUSTOMER_PHONE",
    "PosDependencies",
    "build_dependencies",
    "reset_dependencies",
]
