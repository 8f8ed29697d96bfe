"""
POS Combo Engine - Errors
===========================
Every user-visible failure is a rejected operation carrying a
RejectionReason. Nothing is mutated before one of these is raised.

ConservationViolation is different: it signals a broken engine
invariant (a cart line consumed beyond its quantity) and is never
shown to the cashier.
"""

from __future__ import annotations

from typing import Dict, Type

from core.commands.rejection import ReasonCode, RejectionReason


class PosEngineError(Exception):
    """Base error for refused bill operations."""

    recoverable = True

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        super().__init__(reason.message)

    @property
    def code(self) -> str:
        return self.reason.code


class ProductNotFound(PosEngineError):
    """Scanned code or search term did not resolve; offer manual entry."""


class InsufficientStock(PosEngineError):
    """Requested quantity exceeds the stock snapshot."""


class ComboNotActive(PosEngineError):
    """Combo definition is paused, upcoming or expired."""


class ComboInstanceNotFound(PosEngineError):
    """No open combo instance with that id on this bill."""


class ComboIncomplete(PosEngineError):
    """Bill cannot be finalized while a combo still has empty slots."""


class LineNotFound(PosEngineError):
    """No cart line with that id on this bill."""


class LineConsumedByCombo(PosEngineError):
    """Quantity edit would free units that a combo slot still holds."""


class InsufficientPoints(PosEngineError):
    """Wallet balance is lower than the requested redemption."""


class ConservationViolation(RuntimeError):
    """A cart line is consumed beyond its quantity. Engine bug."""

    def __init__(self, cart_line_id: str, quantity: int, consumed: int):
        self.cart_line_id = cart_line_id
        self.quantity = quantity
        self.consumed = consumed
        super().__init__(
            f"Cart line '{cart_line_id}' has quantity {quantity} "
            f"but {consumed} units are assigned to combo slots."
        )


ERROR_BY_CODE: Dict[str, Type[PosEngineError]] = {
    ReasonCode.PRODUCT_NOT_FOUND: ProductNotFound,
    ReasonCode.INSUFFICIENT_STOCK: InsufficientStock,
    ReasonCode.COMBO_NOT_ACTIVE: ComboNotActive,
    ReasonCode.COMBO_INSTANCE_NOT_FOUND: ComboInstanceNotFound,
    ReasonCode.COMBO_INCOMPLETE: ComboIncomplete,
    ReasonCode.LINE_NOT_FOUND: LineNotFound,
    ReasonCode.LINE_CONSUMED_BY_COMBO: LineConsumedByCombo,
    ReasonCode.INSUFFICIENT_POINTS: InsufficientPoints,
}


def error_for(reason: RejectionReason) -> PosEngineError:
    """Build the typed error for a policy rejection."""
    return ERROR_BY_CODE.get(reason.code, PosEngineError)(reason)
