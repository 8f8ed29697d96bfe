"""
POS Combo Engine - Bill Session
=================================
One open bill at one till: cart ledger, combo instances, repricing and
hand-off to billing and loyalty at checkout.

Every mutating call is all-or-nothing. Policies run first; the cart and
the combo instances are touched only after every check has passed, then
the tier pass re-runs and the change is journaled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from core.commands.rejection import ReasonCode, RejectionReason
from core.config.rules import (
    ConfigStore,
    InMemoryConfigStore,
    TaxBreakdown,
    select_tax_rule,
)
from core.time.clock import Clock, SystemClock
from engines.combo.assignment import AssignmentResult, resolve_and_assign
from engines.combo.cart import CartLedger, CartLine, CartLineSnapshot
from engines.combo.catalog import CatalogLookup, ComboCatalog
from engines.combo.commands import (
    BillFinalizeRequest,
    ComboCloseRequest,
    ComboOpenRequest,
    LineQuantityUpdateRequest,
    ManualItemRequest,
    ScanRequest,
)
from engines.combo.errors import ComboNotActive, LineNotFound, error_for
from engines.combo.events import (
    POS_BILL_CLEARED_V1,
    build_bill_cleared_payload,
    build_bill_finalized_payload,
    build_combo_closed_payload,
    build_combo_opened_payload,
    build_item_manual_added_payload,
    build_item_scanned_payload,
    build_line_quantity_updated_payload,
    resolve_pos_event_type,
)
from engines.combo.instances import (
    ComboCloseResult,
    ComboInstance,
    ComboInstanceManager,
)
from engines.combo.loyalty import LoyaltyAdapter, PointsEstimate, PointsItem
from engines.combo.policies import (
    cart_quantity_within_stock_policy,
    combos_must_be_complete_policy,
    quantity_covers_consumption_policy,
    sufficient_points_policy,
)
from engines.combo.pricing import (
    BillingLine,
    Totals,
    apply_auto_tiers,
    build_billing_lines,
    compute_adjusted_unit_price,
    compute_savings,
    compute_totals,
)

logger = logging.getLogger("pos.session")


# ══════════════════════════════════════════════════════════════
# JOURNAL
# ══════════════════════════════════════════════════════════════

class BillJournal:
    """Append-only record of accepted bill mutations."""

    def __init__(self):
        self._events: List[dict] = []

    def record(self, event_type: str, payload: dict) -> dict:
        event = {"event_type": event_type, "payload": payload}
        self._events.append(event)
        return event

    def events_of_type(self, event_type: str) -> List[dict]:
        return [e for e in self._events if e["event_type"] == event_type]

    @property
    def events(self) -> Tuple[dict, ...]:
        return tuple(self._events)

    @property
    def event_count(self) -> int:
        return len(self._events)


# ══════════════════════════════════════════════════════════════
# SUBMISSION STRUCTURES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineTax:
    cart_line_id: str
    product_id: str
    name: str
    quantity: int
    line_total: int
    breakdown: TaxBreakdown

    def to_dict(self) -> dict:
        return {
            "cart_line_id": self.cart_line_id,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "line_total": self.line_total,
            "gst_rate_percent": self.breakdown.rate_percent,
            "base_amount": self.breakdown.base_amount,
            "cgst": self.breakdown.cgst,
            "sgst": self.breakdown.sgst,
            "total_tax": self.breakdown.total_tax,
        }


@dataclass(frozen=True)
class BillSubmission:
    """Everything billing, payment and loyalty receive for one bill."""
    bill_ref: str
    payment_method: str
    customer_phone: Optional[str]
    lines: Tuple[BillingLine, ...]
    totals: Totals
    points_estimate: PointsEstimate
    redeemed_points: int
    redeemed_value: int
    payable_amount: int
    earned_points: int
    taxes: Tuple[LineTax, ...]
    currency: str = "INR"

    def to_dict(self) -> dict:
        return {
            "bill_ref": self.bill_ref,
            "payment_method": self.payment_method,
            "customer_phone": self.customer_phone,
            "currency": self.currency,
            "lines": [l.to_dict() for l in self.lines],
            "totals": self.totals.to_dict(),
            "points_estimate": self.points_estimate.to_dict(),
            "redeemed_points": self.redeemed_points,
            "redeemed_value": self.redeemed_value,
            "payable_amount": self.payable_amount,
            "earned_points": self.earned_points,
            "taxes": [t.to_dict() for t in self.taxes],
        }


class BillingGateway(Protocol):
    def submit(self, submission: BillSubmission) -> str:
        """Persist the bill and return its external id."""
        ...


class InMemoryBillingGateway:
    """Billing stand-in that keeps submissions in memory."""

    def __init__(self):
        self._submissions: Dict[str, BillSubmission] = {}

    def submit(self, submission: BillSubmission) -> str:
        self._submissions[submission.bill_ref] = submission
        return submission.bill_ref

    def get(self, bill_ref: str) -> Optional[BillSubmission]:
        return self._submissions.get(bill_ref)

    @property
    def submissions(self) -> Tuple[BillSubmission, ...]:
        return tuple(self._submissions.values())


def instance_to_dict(instance: ComboInstance) -> dict:
    return {
        "instance_id": instance.instance_id,
        "combo_id": instance.combo_id,
        "name": instance.name,
        "fixed_price": instance.fixed_price,
        "state": instance.state.value,
        "is_complete": instance.is_complete,
        "savings": compute_savings(instance),
        "slots": [
            {
                "min_price": slot.min_price,
                "max_price": slot.max_price,
                "product_id": slot.assignment.product_id if slot.assignment else None,
                "cart_line_id": slot.assignment.cart_line_id if slot.assignment else None,
                "adjusted_unit_price": compute_adjusted_unit_price(instance, slot),
            }
            for slot in instance.slots
        ],
    }


# ══════════════════════════════════════════════════════════════
# BILL SESSION
# ══════════════════════════════════════════════════════════════

class BillSession:
    """The open bill of one till. Single writer; no internal locking."""

    def __init__(
        self,
        *,
        catalog: CatalogLookup,
        combo_catalog: ComboCatalog,
        loyalty: LoyaltyAdapter,
        billing_gateway: Optional[BillingGateway] = None,
        config_store: Optional[ConfigStore] = None,
        clock: Optional[Clock] = None,
        bill_prefix: str = "BILL",
    ):
        self._catalog = catalog
        self._combo_catalog = combo_catalog
        self._loyalty = loyalty
        self._billing_gateway = billing_gateway or InMemoryBillingGateway()
        self._config_store = config_store or InMemoryConfigStore()
        self._clock = clock or SystemClock()
        self._ledger = CartLedger()
        self._combos = ComboInstanceManager(clock=self._clock)
        self._journal = BillJournal()
        self._closed_journal: Optional[BillJournal] = None
        self._bill_prefix = bill_prefix
        self._bill_sequence = 0
        self._bill_ref = self._next_bill_ref()

    # ── Properties ────────────────────────────────────────────

    @property
    def bill_ref(self) -> str:
        return self._bill_ref

    @property
    def journal(self) -> BillJournal:
        return self._journal

    @property
    def closed_journal(self) -> Optional[BillJournal]:
        """Journal of the bill most recently finalized or cleared."""
        return self._closed_journal

    @property
    def ledger(self) -> CartLedger:
        return self._ledger

    @property
    def combos(self) -> ComboInstanceManager:
        return self._combos

    # ── Mutations ─────────────────────────────────────────────

    def scan(self, request: ScanRequest) -> AssignmentResult:
        product = self._catalog.resolve(request.code)
        result = resolve_and_assign(
            product, request.quantity, self._ledger, self._combos,
        )
        self.reprice()
        self._record(
            request.command_type,
            build_item_scanned_payload(
                self._bill_ref, self._clock.now_utc(),
                code=request.code, result=result,
            ),
        )
        return result

    def add_manual_item(self, request: ManualItemRequest) -> CartLineSnapshot:
        name = request.name.strip()
        line = self._ledger.add_line(
            product_id=f"MANUAL:{name.upper()}",
            name=name,
            unit_price=request.price,
            quantity=request.quantity,
            stock=None,
            is_manual=True,
        )
        self.reprice()
        self._record(
            request.command_type,
            build_item_manual_added_payload(
                self._bill_ref, self._clock.now_utc(), line=line,
            ),
        )
        logger.info(
            f"Manual item '{name}' x{request.quantity} at {request.price} "
            f"on {self._bill_ref}"
        )
        return line.snapshot()

    def update_line_quantity(
        self, request: LineQuantityUpdateRequest,
    ) -> Optional[CartLineSnapshot]:
        """Returns the updated line, or None when it was removed."""
        line = self._require_line(request.cart_line_id)
        previous = line.quantity

        rejection = quantity_covers_consumption_policy(
            line.cart_line_id,
            request.quantity,
            self._combos.consumed_quantity(line.cart_line_id),
        )
        if rejection is None:
            rejection = cart_quantity_within_stock_policy(
                line.name,
                line.stock,
                self._ledger.product_quantity(line.product_id),
                request.quantity - previous,
            )
        if rejection is not None:
            raise error_for(rejection)

        updated = self._ledger.set_quantity(line.cart_line_id, request.quantity)
        self._combos.assert_conservation(self._ledger)
        self.reprice()
        self._record(
            request.command_type,
            build_line_quantity_updated_payload(
                self._bill_ref, self._clock.now_utc(),
                cart_line_id=request.cart_line_id,
                previous_quantity=previous,
                quantity=request.quantity,
            ),
        )
        return updated.snapshot() if updated is not None else None

    def open_combo(self, request: ComboOpenRequest) -> ComboInstance:
        definition = self._combo_catalog.get(request.combo_id)
        if definition is None:
            raise ComboNotActive(RejectionReason(
                code=ReasonCode.COMBO_NOT_ACTIVE,
                message=f"Combo '{request.combo_id}' is not in the catalog.",
                policy_name="combo_catalog_lookup",
            ))
        instance = self._combos.open_combo(definition)
        self._record(
            request.command_type,
            build_combo_opened_payload(
                self._bill_ref, self._clock.now_utc(), instance=instance,
            ),
        )
        return instance

    def close_combo(self, request: ComboCloseRequest) -> ComboCloseResult:
        result = self._combos.close_combo(request.instance_id, self._ledger)
        self.reprice()
        self._record(
            request.command_type,
            build_combo_closed_payload(
                self._bill_ref, self._clock.now_utc(), result=result,
            ),
        )
        return result

    def reprice(self) -> None:
        """Re-run the automatic tier pass over the whole cart."""
        apply_auto_tiers(self._ledger.lines(), self._combo_catalog.list_tier_rules())

    def finalize(self, request: BillFinalizeRequest) -> BillSubmission:
        """
        Hand the bill to billing and loyalty, then start a fresh bill.

        Refused with ComboIncomplete while any combo has an empty slot
        and with InsufficientPoints when the wallet cannot cover the
        redemption. Both checks run before anything is submitted.
        """
        instances = self._combos.instances()
        rejection = combos_must_be_complete_policy(instances)
        if rejection is None and request.redeem_points:
            rejection = sufficient_points_policy(
                request.customer_phone,
                self._loyalty.get_balance(request.customer_phone),
                request.redeem_points,
            )
        if rejection is not None:
            raise error_for(rejection)

        config = self._config_store.get_engine_config()
        totals = self.current_totals()
        lines = self.line_items_for_billing()
        estimate = self._loyalty.calculate_points(self._points_items(lines))
        redeemed_value = request.redeem_points * config.point_value
        earned = estimate.total if request.customer_phone else 0

        submission = BillSubmission(
            bill_ref=self._bill_ref,
            payment_method=request.payment_method,
            customer_phone=request.customer_phone,
            lines=lines,
            totals=totals,
            points_estimate=estimate,
            redeemed_points=request.redeem_points,
            redeemed_value=redeemed_value,
            payable_amount=max(0, totals.grand_total - redeemed_value),
            earned_points=earned,
            taxes=self.tax_breakdown(),
            currency=config.currency,
        )
        self._billing_gateway.submit(submission)

        if request.redeem_points:
            self._loyalty.apply_redemption(
                request.customer_phone, request.redeem_points,
                self._bill_ref, totals.grand_total,
            )
        if earned:
            self._loyalty.apply_earn(
                request.customer_phone, earned,
                self._bill_ref, totals.grand_total,
            )

        self._record(
            request.command_type,
            build_bill_finalized_payload(
                self._bill_ref, self._clock.now_utc(), submission=submission,
            ),
        )
        logger.info(
            f"Bill {self._bill_ref} finalized: {len(lines)} line(s), "
            f"grand total {totals.grand_total}, payable {submission.payable_amount} "
            f"via {request.payment_method}"
        )
        self._reset()
        return submission

    def clear(self) -> None:
        """Discard the cart and every combo instance together."""
        self._journal.record(
            POS_BILL_CLEARED_V1,
            build_bill_cleared_payload(
                self._bill_ref, self._clock.now_utc(),
                line_count=len(self._ledger),
                combo_count=len(self._combos.instances()),
            ),
        )
        logger.info(f"Bill {self._bill_ref} cleared")
        self._reset()

    # ── Queries ───────────────────────────────────────────────

    def current_totals(self) -> Totals:
        return compute_totals(self._ledger.lines(), self._combos.instances())

    def line_items_for_billing(self) -> Tuple[BillingLine, ...]:
        return build_billing_lines(self._ledger.lines(), self._combos.instances())

    def cart_lines(self) -> Tuple[CartLineSnapshot, ...]:
        return self._ledger.snapshot()

    def combo_instances(self) -> List[ComboInstance]:
        return self._combos.instances()

    def consumed_quantity(self, cart_line_id: str) -> int:
        return self._combos.consumed_quantity(cart_line_id)

    def points_estimate(self) -> PointsEstimate:
        return self._loyalty.calculate_points(
            self._points_items(self.line_items_for_billing())
        )

    def tax_breakdown(self) -> Tuple[LineTax, ...]:
        rules = self._config_store.get_engine_config().tax_rules
        taxes = []
        for line in self.line_items_for_billing():
            rule = select_tax_rule(rules, line.unit_price_charged)
            if rule is None:
                continue
            taxes.append(LineTax(
                cart_line_id=line.cart_line_id,
                product_id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                line_total=line.line_total,
                breakdown=rule.compute_inclusive_tax(line.line_total),
            ))
        return tuple(taxes)

    # ── Internals ─────────────────────────────────────────────

    def _require_line(self, cart_line_id: str) -> CartLine:
        line = self._ledger.get(cart_line_id)
        if line is None:
            raise LineNotFound(RejectionReason(
                code=ReasonCode.LINE_NOT_FOUND,
                message=f"Cart line '{cart_line_id}' is not on this bill.",
                policy_name="cart_line_lookup",
            ))
        return line

    @staticmethod
    def _points_items(lines: Tuple[BillingLine, ...]) -> List[PointsItem]:
        return [
            PointsItem(
                product_id=line.product_id,
                price=line.unit_price_charged,
                quantity=line.quantity,
                name=line.name,
            )
            for line in lines
        ]

    def _record(self, command_type: str, payload: dict) -> None:
        event_type = resolve_pos_event_type(command_type)
        if event_type is None:
            raise ValueError(f"No event type for command '{command_type}'.")
        self._journal.record(event_type, payload)

    def _next_bill_ref(self) -> str:
        self._bill_sequence += 1
        return f"{self._bill_prefix}-{self._bill_sequence:04d}"

    def _reset(self) -> None:
        self._ledger.clear()
        self._combos.clear()
        self._closed_journal = self._journal
        self._journal = BillJournal()
        self._bill_ref = self._next_bill_ref()
