"""
collision_engines.pricing -- estimate line totals and purchase-order totals.

Responsibility:
    - Damage line totals: percentage discount first, then the fixed
      discount amount, floored at zero and rounded to cents.
    - Purchase order totals: subtotal, flat-rate tax, total, and the
      estimated margin implied by the vendor's discount agreement.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``line_total >= 0`` for every damage line.
    - ``total == subtotal + tax`` exactly (both already rounded).
    - Rounding is ROUND_HALF_UP to 0.01 throughout.

Usage:
    compute_line_total(Decimal("2"), Decimal("100"), Decimal("10"), Decimal("5"))
    # Decimal("175.00")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def to_money(value: Decimal | int | str | float | None) -> Decimal:
    """Round to cents (half-up). ``None`` and blanks are zero.

    Floats go through ``str()`` so that 0.1 becomes Decimal("0.1").
    """
    if value is None or value == "":
        return _ZERO.quantize(CENT)
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_line_total(
    quantity: Decimal,
    unit_price: Decimal,
    discount_pct: Decimal = _ZERO,
    discount_amount: Decimal = _ZERO,
) -> Decimal:
    """``max(0, quantity * unit_price * (1 - discount_pct/100) - discount_amount)``.

    ``discount_pct`` is in percent (10 means ten percent).
    """
    gross = quantity * unit_price
    after_pct = gross * (1 - discount_pct / _HUNDRED)
    net = after_pct - discount_amount
    return to_money(max(_ZERO, net))


@dataclass(frozen=True)
class OrderLineAmount:
    """Quantity and unit cost of one part line on a purchase order."""

    quantity: Decimal
    unit_cost: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    estimated_margin: Decimal


def compute_order_totals(
    lines: Iterable[OrderLineAmount],
    tax_rate: Decimal,
    vendor_discount_pct: Decimal = _ZERO,
) -> OrderTotals:
    """Totals for one vendor group.

    The margin is what the shop keeps when the vendor bills
    ``unit_cost * (1 - discount/100)`` while the estimate carries
    ``unit_cost``: ``sum(quantity * unit_cost) * discount / 100``.
    """
    if tax_rate < _ZERO:
        raise ValueError(f"tax_rate must be non-negative, got {tax_rate}")

    raw_subtotal = _ZERO
    for line in lines:
        raw_subtotal += line.quantity * line.unit_cost

    subtotal = to_money(raw_subtotal)
    tax = to_money(subtotal * tax_rate)
    margin = to_money(raw_subtotal * (vendor_discount_pct or _ZERO) / _HUNDRED)
    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        estimated_margin=margin,
    )
