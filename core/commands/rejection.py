"""
POS Command Layer - Rejection Model
=====================================
Structured rejection reasons for refused bill operations.

A rejection is returned (or carried by an engine error) whenever a scan,
combo selection, quantity edit or finalization is refused. It is never
raised on its own; engine errors wrap it.

Every rejection must be:
- Deterministic (same cart state + same input -> same rejection)
- Machine-readable (code)
- Human-readable (message, shown at the till)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a refused operation.

    Fields:
        code:        Machine-readable rejection code (e.g. 'INSUFFICIENT_STOCK').
        message:     Human-readable explanation.
        policy_name: Name of the policy that caused rejection.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Catalog / stock ───────────────────────────────────────
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"

    # ── Combos ────────────────────────────────────────────────
    COMBO_NOT_ACTIVE = "COMBO_NOT_ACTIVE"
    COMBO_INSTANCE_NOT_FOUND = "COMBO_INSTANCE_NOT_FOUND"
    COMBO_INCOMPLETE = "COMBO_INCOMPLETE"

    # ── Cart lines ────────────────────────────────────────────
    LINE_NOT_FOUND = "LINE_NOT_FOUND"
    LINE_CONSUMED_BY_COMBO = "LINE_CONSUMED_BY_COMBO"

    # ── Loyalty ───────────────────────────────────────────────
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"


NOT_FOUND_CODES = frozenset({
    ReasonCode.PRODUCT_NOT_FOUND,
    ReasonCode.COMBO_INSTANCE_NOT_FOUND,
    ReasonCode.LINE_NOT_FOUND,
})
