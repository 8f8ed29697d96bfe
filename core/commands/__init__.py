"""
POS Command Layer - Public API
================================
Rejections are first-class: every refused bill operation explains
itself with a RejectionReason.
"""

from core.commands.rejection import (
    NOT_FOUND_CODES,
    ReasonCode,
    RejectionReason,
)

__all__ = [
    "NOT_FOUND_CODES",
    "ReasonCode",
    "RejectionReason",
]
