"""
collision_engines.receiving -- receiving decision table for part lines.

Responsibility:
    Given the ordered quantity of a part line and one receiving report
    (received quantity + condition), decide the line's new status, the
    quantity variance, and whether a return to the vendor is owed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``ProcurementService.receive``, which persists the decision,
    writes the ReturnOrder ledger rows and aggregates the PO status.

Decision table (evaluated top to bottom, condition overrides quantity):

    condition    | quantity             | new status  | return owed
    -------------|----------------------|-------------|------------------------
    damaged      | any                  | damaged     | received qty, damaged
    wrong_part   | any                  | wrong_part  | received qty, wrong_part
    good         | received < ordered   | partial     | none
    good         | received > ordered   | received    | excess, over_delivery
    good         | received == ordered  | received    | none

Invariants enforced:
    - ``quantity_variance == received - ordered`` (signed).
    - A return quantity is always > 0 when a return reason is present.
    - ``counts_as_received`` is True only for status ``received``.

Failure modes:
    - ValueError for negative quantities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

_ZERO = Decimal("0")


class ReceiptCondition(str, Enum):
    """Condition reported by the person receiving the shipment."""

    GOOD = "good"
    DAMAGED = "damaged"
    WRONG_PART = "wrong_part"


class ReturnReason(str, Enum):
    OVER_DELIVERY = "over_delivery"
    DAMAGED = "damaged"
    WRONG_PART = "wrong_part"


@dataclass(frozen=True)
class ReceiptDecision:
    """Outcome of one receiving report against one part line."""

    new_status: str
    quantity_variance: Decimal
    return_quantity: Decimal = _ZERO
    return_reason: ReturnReason | None = None

    @property
    def counts_as_received(self) -> bool:
        return self.new_status == "received"

    @property
    def has_variance(self) -> bool:
        return self.quantity_variance != _ZERO


def decide_receipt(
    ordered_quantity: Decimal,
    received_quantity: Decimal,
    condition: ReceiptCondition | str = ReceiptCondition.GOOD,
) -> ReceiptDecision:
    """Apply the decision table to one report."""
    if ordered_quantity < _ZERO or received_quantity < _ZERO:
        raise ValueError(
            f"Quantities must be non-negative "
            f"(ordered={ordered_quantity}, received={received_quantity})"
        )
    condition = ReceiptCondition(condition)
    variance = received_quantity - ordered_quantity

    if condition is not ReceiptCondition.GOOD:
        reason = (
            ReturnReason.DAMAGED
            if condition is ReceiptCondition.DAMAGED
            else ReturnReason.WRONG_PART
        )
        return ReceiptDecision(
            new_status=condition.value,
            quantity_variance=variance,
            return_quantity=received_quantity,
            return_reason=reason if received_quantity > _ZERO else None,
        )

    if received_quantity < ordered_quantity:
        return ReceiptDecision(new_status="partial", quantity_variance=variance)

    if received_quantity > ordered_quantity:
        return ReceiptDecision(
            new_status="received",
            quantity_variance=variance,
            return_quantity=variance,
            return_reason=ReturnReason.OVER_DELIVERY,
        )

    return ReceiptDecision(new_status="received", quantity_variance=variance)
