"""
Procurement Domain Models (``collision_modules.procurement.models``).

Responsibility
--------------
Frozen value objects representing the nouns of parts procurement: vendors,
part lines, purchase orders, return orders, and the request/result shapes
of the receiving, split and creation operations.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database, no
imports from ``collision_kernel/services`` or ``collision_kernel/db``.
These objects flow *into* ``ProcurementService`` and *out of* it as
immutable snapshots.

Invariants enforced
-------------------
* All monetary and quantity fields use ``Decimal`` (never ``float``).
* All dataclasses are ``frozen=True``.
* ``PurchaseOrder.__post_init__`` enforces ``total == subtotal + tax``.
* ``SplitGroup`` names its vendor by id or by 4-letter vendor code.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from collision_engines.receiving import ReceiptCondition, ReturnReason
from collision_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.models")

__all__ = [
    "PartLineStatus",
    "POStatus",
    "VendorType",
    "ReceiptCondition",
    "ReturnReason",
    "Vendor",
    "PartLine",
    "PurchaseOrder",
    "ReturnOrder",
    "ReceiveItem",
    "ReceiveItemResult",
    "ReceivingResult",
    "SplitGroup",
    "FailedGroup",
    "POCreationResult",
    "VendorMetrics",
]


class PartLineStatus(Enum):
    """Part line states.  Must align with ``workflows.PART_LINE_WORKFLOW.states``."""
    NEEDED = "needed"
    ORDERED = "ordered"
    BACKORDERED = "backordered"
    PARTIAL = "partial"
    RECEIVED = "received"
    DAMAGED = "damaged"
    WRONG_PART = "wrong_part"
    INSTALLED = "installed"


class POStatus(Enum):
    """Purchase order states.  Must align with ``workflows.PURCHASE_ORDER_WORKFLOW.states``."""
    DRAFT = "draft"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"
    PARTIAL = "partial"
    RECEIVED = "received"
    SPLIT = "split"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class VendorType(Enum):
    OEM = "oem"
    AFTERMARKET = "aftermarket"
    RECYCLED = "recycled"
    REMANUFACTURED = "remanufactured"
    PAINT_SUPPLIER = "paint_supplier"


@dataclass(frozen=True)
class Vendor:
    """A parts supplier for one shop.

    Contract: frozen.  ``alternate_names`` are spellings that estimating
    systems use for this vendor; the resolver matches on them.
    """
    id: UUID
    shop_id: UUID
    name: str
    vendor_type: VendorType
    vendor_number: str | None = None
    alternate_names: tuple[str, ...] = ()
    rating: Decimal = Decimal("0")
    fill_rate: Decimal = Decimal("0")
    discount_percentage: Decimal = Decimal("0")
    is_active: bool = True
    is_default: bool = False


@dataclass(frozen=True)
class PartLine:
    """One needed replacement part on a repair order."""
    id: UUID
    shop_id: UUID
    ro_number: str
    part_number: str
    description: str
    quantity_ordered: Decimal
    unit_cost: Decimal
    status: PartLineStatus = PartLineStatus.NEEDED
    vendor_id: UUID | None = None
    part_type: str = ""
    source_code: str = ""
    supplier_ref: str = ""
    received_quantity: Decimal | None = None
    installed_quantity: Decimal | None = None
    purchase_order_id: UUID | None = None
    order_date: datetime | None = None
    received_date: datetime | None = None
    installed_date: datetime | None = None
    last_receipt_condition: ReceiptCondition | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PurchaseOrder:
    """A parts order to one vendor for one repair order.

    Guarantees: ``total_amount == subtotal + tax_amount``.
    """
    id: UUID
    shop_id: UUID
    po_number: str
    ro_number: str
    vendor_id: UUID
    status: POStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    estimated_margin: Decimal = Decimal("0")
    line_item_count: int = 0
    requested_delivery_date: date | None = None
    parent_order_id: UUID | None = None
    received_date: datetime | None = None
    notes: str | None = None

    def __post_init__(self):
        expected_total = self.subtotal + self.tax_amount
        if self.total_amount != expected_total:
            logger.warning(
                "purchase_order_total_mismatch",
                extra={
                    "po_number": self.po_number,
                    "total_amount": str(self.total_amount),
                    "expected_total": str(expected_total),
                },
            )
            raise ValueError(
                f"total_amount ({self.total_amount}) must equal "
                f"subtotal + tax_amount ({expected_total})"
            )


@dataclass(frozen=True)
class ReturnOrder:
    """A quantity owed back to the vendor. Ledger row, never edited."""
    id: UUID
    purchase_order_id: UUID
    part_line_id: UUID
    quantity: Decimal
    reason: ReturnReason
    notes: str | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReceiveItem:
    """One line of a receiving report: the quantity physically counted."""
    part_line_id: UUID
    received_quantity: Decimal
    condition: ReceiptCondition = ReceiptCondition.GOOD
    notes: str | None = None

    def __post_init__(self):
        if self.received_quantity < 0:
            raise ValueError("received_quantity cannot be negative")


@dataclass(frozen=True)
class ReceiveItemResult:
    part_line_id: UUID
    status: str  # "processed" | "error"
    message: str
    new_status: PartLineStatus | None = None
    quantity_variance: Decimal | None = None
    unchanged: bool = False
    error_code: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == "error"


@dataclass(frozen=True)
class ReceivingResult:
    po_id: UUID
    po_number: str
    po_status: POStatus
    items: tuple[ReceiveItemResult, ...]
    returns: tuple[ReturnOrder, ...] = ()

    @property
    def processed_count(self) -> int:
        return sum(1 for i in self.items if not i.is_error)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.items if i.is_error)


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SplitGroup:
    """One child order of a split: its vendor and the parent lines it takes."""
    part_line_ids: tuple[UUID, ...]
    vendor_id: UUID | None = None
    vendor_code: str | None = None
    delivery_date: date | None = None

    def __post_init__(self):
        if self.vendor_id is None and not self.vendor_code:
            raise ValueError("SplitGroup requires vendor_id or vendor_code")
        if not self.part_line_ids:
            raise ValueError("SplitGroup requires at least one part line")
        object.__setattr__(self, "part_line_ids", tuple(self.part_line_ids))


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FailedGroup:
    vendor_id: UUID
    part_line_ids: tuple[UUID, ...]
    error_code: str
    message: str


@dataclass(frozen=True)
class POCreationResult:
    """Outcome of grouped PO creation.

    Each vendor group succeeds or fails on its own; ``unassigned_line_ids``
    are lines the resolver could not match to a vendor.
    """
    orders: tuple[PurchaseOrder, ...] = ()
    unassigned_line_ids: tuple[UUID, ...] = ()
    failed_groups: tuple[FailedGroup, ...] = field(default_factory=tuple)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed_groups and not self.unassigned_line_ids


@dataclass(frozen=True)
class VendorMetrics:
    vendor_id: UUID
    total_orders: int
    open_orders: int
    received_orders: int
    total_spend: Decimal
    ordered_quantity: Decimal
    received_quantity: Decimal
    returned_quantity: Decimal

    @property
    def fill_rate(self) -> Decimal:
        """Received over ordered quantity, 0 when nothing was ordered."""
        if not self.ordered_quantity:
            return Decimal("0")
        return (self.received_quantity / self.ordered_quantity).quantize(Decimal("0.0001"))
