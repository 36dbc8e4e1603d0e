"""Vendor performance figures computed from purchase orders and part lines."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from collision_kernel.exceptions import VendorNotFoundError
from collision_modules.procurement.models import PartLineStatus, POStatus, VendorMetrics
from collision_modules.procurement.orm import (
    PartLineModel,
    PurchaseOrderModel,
    ReturnOrderModel,
    VendorModel,
)

_OPEN_PO_STATES = (
    POStatus.DRAFT.value,
    POStatus.SENT.value,
    POStatus.ACKNOWLEDGED.value,
    POStatus.PARTIAL.value,
)

# Split parents are replaced by their children
_COUNTED_PO_STATES = tuple(s.value for s in POStatus if s is not POStatus.SPLIT)

_RECEIVED_LINE_STATES = (
    PartLineStatus.PARTIAL.value,
    PartLineStatus.RECEIVED.value,
    PartLineStatus.INSTALLED.value,
)


def _decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def vendor_metrics(session: Session, vendor_id: UUID) -> VendorMetrics:
    """Order counts, spend, and fill rate (good received / ordered quantity)."""
    if session.get(VendorModel, vendor_id) is None:
        raise VendorNotFoundError(vendor_id)

    po_filter = (
        PurchaseOrderModel.vendor_id == vendor_id,
        PurchaseOrderModel.status.in_(_COUNTED_PO_STATES),
    )
    total_orders, total_spend = session.execute(
        select(func.count(PurchaseOrderModel.id), func.sum(PurchaseOrderModel.total_amount))
        .where(*po_filter)
    ).one()
    open_orders = session.execute(
        select(func.count(PurchaseOrderModel.id)).where(
            PurchaseOrderModel.vendor_id == vendor_id,
            PurchaseOrderModel.status.in_(_OPEN_PO_STATES),
        )
    ).scalar_one()
    received_orders = session.execute(
        select(func.count(PurchaseOrderModel.id)).where(
            PurchaseOrderModel.vendor_id == vendor_id,
            PurchaseOrderModel.status.in_((POStatus.RECEIVED.value, POStatus.CLOSED.value)),
        )
    ).scalar_one()

    lines_on_orders = (
        select(PartLineModel.id)
        .join(PurchaseOrderModel, PartLineModel.purchase_order_id == PurchaseOrderModel.id)
        .where(*po_filter)
    )
    ordered_quantity = session.execute(
        select(func.sum(PartLineModel.quantity_ordered)).where(PartLineModel.id.in_(lines_on_orders))
    ).scalar_one()
    # Over-delivered excess is returned, so a line contributes at most its ordered quantity
    received_quantity = session.execute(
        select(func.sum(case(
            (PartLineModel.received_quantity < PartLineModel.quantity_ordered,
             PartLineModel.received_quantity),
            else_=PartLineModel.quantity_ordered,
        ))).where(
            PartLineModel.id.in_(lines_on_orders),
            PartLineModel.status.in_(_RECEIVED_LINE_STATES),
        )
    ).scalar_one()
    returned_quantity = session.execute(
        select(func.sum(ReturnOrderModel.quantity))
        .join(PurchaseOrderModel, ReturnOrderModel.purchase_order_id == PurchaseOrderModel.id)
        .where(PurchaseOrderModel.vendor_id == vendor_id)
    ).scalar_one()

    return VendorMetrics(
        vendor_id=vendor_id,
        total_orders=int(total_orders or 0),
        open_orders=int(open_orders or 0),
        received_orders=int(received_orders or 0),
        total_spend=_decimal(total_spend),
        ordered_quantity=_decimal(ordered_quantity),
        received_quantity=_decimal(received_quantity),
        returned_quantity=_decimal(returned_quantity),
    )
