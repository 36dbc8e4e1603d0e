"""
Return ledger: quantities owed back to a vendor.

Rows are append-only.  ``recorded_quantity`` answers "how much has already been
recorded for this line and reason" so that receiving can stay idempotent.
The caller owns the transaction.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from collision_kernel.logging_config import get_logger
from collision_modules.procurement.models import ReturnOrder, ReturnReason
from collision_modules.procurement.orm import ReturnOrderModel

logger = get_logger("modules.procurement.returns")


class ReturnLedger:
    def __init__(self, session: Session):
        self._session = session

    def record(
        self,
        po_id: UUID,
        part_line_id: UUID,
        quantity: Decimal,
        reason: ReturnReason,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ReturnOrder:
        if quantity <= 0:
            raise ValueError(f"Return quantity must be positive, got {quantity}")
        model = ReturnOrderModel(
            purchase_order_id=po_id,
            part_line_id=part_line_id,
            quantity=quantity,
            reason=ReturnReason(reason).value,
            notes=notes,
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._session.flush()
        logger.info(
            "return_order_recorded",
            extra={
                "return_id": str(model.id),
                "purchase_order_id": str(po_id),
                "part_line_id": str(part_line_id),
                "quantity": str(quantity),
                "reason": model.reason,
            },
        )
        return model.to_dto()

    def recorded_quantity(self, part_line_id: UUID, reason: ReturnReason) -> Decimal:
        total = self._session.execute(
            select(func.coalesce(func.sum(ReturnOrderModel.quantity), 0)).where(
                ReturnOrderModel.part_line_id == part_line_id,
                ReturnOrderModel.reason == ReturnReason(reason).value,
            )
        ).scalar_one()
        return Decimal(str(total))

    def list_returns(self, po_id: UUID) -> list[ReturnOrder]:
        rows = self._session.execute(
            select(ReturnOrderModel)
            .where(ReturnOrderModel.purchase_order_id == po_id)
            .order_by(ReturnOrderModel.created_at, ReturnOrderModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]
