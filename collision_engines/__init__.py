"""
Module: collision_engines
Responsibility:
    Re-exports the pure calculation engines used by ingestion and
    procurement: line/order pricing, PO number formatting, and the
    receiving decision table.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import collision_kernel.logging_config only.
    MUST NOT import collision_modules or collision_ingestion.

Invariants enforced:
    - Purity: engines never read the clock; dates are parameters.
    - Decimal-only money arithmetic, rounded half-up to cents.
    - Determinism: identical inputs produce identical outputs.
"""

from collision_engines.numbering import format_po_number, vendor_code, year_month
from collision_engines.pricing import (
    CENT,
    OrderLineAmount,
    OrderTotals,
    compute_line_total,
    compute_order_totals,
    to_money,
)
from collision_engines.receiving import (
    ReceiptCondition,
    ReceiptDecision,
    ReturnReason,
    decide_receipt,
)

__all__ = [
    "CENT",
    "OrderLineAmount",
    "OrderTotals",
    "compute_line_total",
    "compute_order_totals",
    "to_money",
    "format_po_number",
    "vendor_code",
    "year_month",
    "ReceiptCondition",
    "ReceiptDecision",
    "ReturnReason",
    "decide_receipt",
]
