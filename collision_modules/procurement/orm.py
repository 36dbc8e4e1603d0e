"""
Procurement ORM Models (``collision_modules.procurement.orm``).

Responsibility
--------------
SQLAlchemy persistence models for vendors, part lines, purchase orders and
return orders.  Maps the frozen dataclasses from ``models.py`` to tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``collision_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``collision_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from collision_kernel.db.base import TrackedBase
from collision_modules.procurement.models import (
    PartLine,
    PartLineStatus,
    POStatus,
    PurchaseOrder,
    ReceiptCondition,
    ReturnOrder,
    ReturnReason,
    Vendor,
    VendorType,
)


# ---------------------------------------------------------------------------
# 1. VendorModel
# ---------------------------------------------------------------------------


class VendorModel(TrackedBase):
    """
    ORM model for shop vendors.

    Guarantees:
        - name is unique per shop (uq_vendors_shop_name).
        - vendor_type stored as string enum value.
        - alternate_names stored as a JSON list of strings.
    """

    __tablename__ = "vendors"

    __table_args__ = (
        UniqueConstraint("shop_id", "name", name="uq_vendors_shop_name"),
        Index("idx_vendors_shop_active", "shop_id", "is_active"),
        Index("idx_vendors_shop_type", "shop_id", "vendor_type"),
    )

    shop_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    vendor_type: Mapped[str] = mapped_column(String(30), nullable=False)
    alternate_names: Mapped[list[Any]] = mapped_column(default=list)
    rating: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    fill_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_percentage: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self) -> Vendor:
        return Vendor(
            id=self.id,
            shop_id=self.shop_id,
            name=self.name,
            vendor_type=VendorType(self.vendor_type),
            vendor_number=self.vendor_number,
            alternate_names=tuple(self.alternate_names or ()),
            rating=self.rating,
            fill_rate=self.fill_rate,
            discount_percentage=self.discount_percentage,
            is_active=self.is_active,
            is_default=self.is_default,
        )

    @classmethod
    def from_dto(cls, dto: Vendor, created_by_id: UUID) -> "VendorModel":
        return cls(
            id=dto.id,
            shop_id=dto.shop_id,
            name=dto.name,
            vendor_number=dto.vendor_number,
            vendor_type=dto.vendor_type.value,
            alternate_names=list(dto.alternate_names),
            rating=dto.rating,
            fill_rate=dto.fill_rate,
            discount_percentage=dto.discount_percentage,
            is_active=dto.is_active,
            is_default=dto.is_default,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<VendorModel {self.name} ({self.vendor_type})>"


# ---------------------------------------------------------------------------
# 2. PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    ORM model for purchase orders.

    Guarantees:
        - po_number is unique (uq_purchase_orders_po_number).
        - status stored as string enum value.
        - parent_order_id set only on orders created by a split.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_orders_po_number"),
        Index("idx_purchase_orders_vendor_id", "vendor_id"),
        Index("idx_purchase_orders_status", "status"),
        Index("idx_purchase_orders_ro", "shop_id", "ro_number"),
        Index("idx_purchase_orders_parent", "parent_order_id"),
    )

    shop_id: Mapped[UUID] = mapped_column(nullable=False)
    po_number: Mapped[str] = mapped_column(String(100), nullable=False)
    ro_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=POStatus.DRAFT.value)
    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    estimated_margin: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    line_item_count: Mapped[int] = mapped_column(default=0)
    requested_delivery_date: Mapped[date | None] = mapped_column(nullable=True)
    parent_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=True,
    )
    received_date: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> PurchaseOrder:
        return PurchaseOrder(
            id=self.id,
            shop_id=self.shop_id,
            po_number=self.po_number,
            ro_number=self.ro_number,
            vendor_id=self.vendor_id,
            status=POStatus(self.status),
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            estimated_margin=self.estimated_margin,
            line_item_count=self.line_item_count,
            requested_delivery_date=self.requested_delivery_date,
            parent_order_id=self.parent_order_id,
            received_date=self.received_date,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: PurchaseOrder, created_by_id: UUID) -> "PurchaseOrderModel":
        return cls(
            id=dto.id,
            shop_id=dto.shop_id,
            po_number=dto.po_number,
            ro_number=dto.ro_number,
            vendor_id=dto.vendor_id,
            status=dto.status.value,
            subtotal=dto.subtotal,
            tax_amount=dto.tax_amount,
            total_amount=dto.total_amount,
            estimated_margin=dto.estimated_margin,
            line_item_count=dto.line_item_count,
            requested_delivery_date=dto.requested_delivery_date,
            parent_order_id=dto.parent_order_id,
            received_date=dto.received_date,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} ({self.status})>"


# ---------------------------------------------------------------------------
# 3. PartLineModel
# ---------------------------------------------------------------------------


class PartLineModel(TrackedBase):
    """
    ORM model for part lines.

    Guarantees:
        - purchase_order_id references at most one PO at a time.
        - received_quantity is NULL until the first receiving report.
    """

    __tablename__ = "part_lines"

    __table_args__ = (
        Index("idx_part_lines_ro", "shop_id", "ro_number"),
        Index("idx_part_lines_status", "status"),
        Index("idx_part_lines_purchase_order_id", "purchase_order_id"),
        Index("idx_part_lines_vendor_id", "vendor_id"),
    )

    shop_id: Mapped[UUID] = mapped_column(nullable=False)
    ro_number: Mapped[str] = mapped_column(String(50), nullable=False)
    part_number: Mapped[str] = mapped_column(String(100), default="")
    description: Mapped[str] = mapped_column(String(500), default="")
    part_type: Mapped[str] = mapped_column(String(50), default="")
    source_code: Mapped[str] = mapped_column(String(20), default="")
    supplier_ref: Mapped[str] = mapped_column(String(255), default="")
    quantity_ordered: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    unit_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default=PartLineStatus.NEEDED.value)
    vendor_id: Mapped[UUID | None] = mapped_column(ForeignKey("vendors.id"), nullable=True)
    purchase_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=True,
    )
    received_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    installed_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    order_date: Mapped[datetime | None] = mapped_column(nullable=True)
    received_date: Mapped[datetime | None] = mapped_column(nullable=True)
    installed_date: Mapped[datetime | None] = mapped_column(nullable=True)
    last_receipt_condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> PartLine:
        return PartLine(
            id=self.id,
            shop_id=self.shop_id,
            ro_number=self.ro_number,
            part_number=self.part_number,
            description=self.description,
            quantity_ordered=self.quantity_ordered,
            unit_cost=self.unit_cost,
            status=PartLineStatus(self.status),
            vendor_id=self.vendor_id,
            part_type=self.part_type,
            source_code=self.source_code,
            supplier_ref=self.supplier_ref,
            received_quantity=self.received_quantity,
            installed_quantity=self.installed_quantity,
            purchase_order_id=self.purchase_order_id,
            order_date=self.order_date,
            received_date=self.received_date,
            installed_date=self.installed_date,
            last_receipt_condition=(
                ReceiptCondition(self.last_receipt_condition)
                if self.last_receipt_condition else None
            ),
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: PartLine, created_by_id: UUID) -> "PartLineModel":
        return cls(
            id=dto.id,
            shop_id=dto.shop_id,
            ro_number=dto.ro_number,
            part_number=dto.part_number,
            description=dto.description,
            part_type=dto.part_type,
            source_code=dto.source_code,
            supplier_ref=dto.supplier_ref,
            quantity_ordered=dto.quantity_ordered,
            unit_cost=dto.unit_cost,
            status=dto.status.value,
            vendor_id=dto.vendor_id,
            purchase_order_id=dto.purchase_order_id,
            received_quantity=dto.received_quantity,
            installed_quantity=dto.installed_quantity,
            order_date=dto.order_date,
            received_date=dto.received_date,
            installed_date=dto.installed_date,
            last_receipt_condition=(
                dto.last_receipt_condition.value if dto.last_receipt_condition else None
            ),
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PartLineModel {self.part_number} x{self.quantity_ordered} ({self.status})>"


# ---------------------------------------------------------------------------
# 4. ReturnOrderModel
# ---------------------------------------------------------------------------


class ReturnOrderModel(TrackedBase):
    """
    ORM model for return orders (ledger only, never updated).
    """

    __tablename__ = "return_orders"

    __table_args__ = (
        Index("idx_return_orders_purchase_order_id", "purchase_order_id"),
        Index("idx_return_orders_part_line", "part_line_id", "reason"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    part_line_id: Mapped[UUID] = mapped_column(ForeignKey("part_lines.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> ReturnOrder:
        return ReturnOrder(
            id=self.id,
            purchase_order_id=self.purchase_order_id,
            part_line_id=self.part_line_id,
            quantity=self.quantity,
            reason=ReturnReason(self.reason),
            notes=self.notes,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<ReturnOrderModel {self.quantity} ({self.reason})>"
